"""Distance computation and IP-based geolocation."""

import logging
import math
from dataclasses import dataclass

import httpx

from core.config import settings

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


@dataclass
class Location:
    latitude: float
    longitude: float
    city: str
    country: str
    region: str | None = None
    accuracy: str = "city"


DEFAULT_LOCATION = Location(
    latitude=48.8566,
    longitude=2.3522,
    city="Paris",
    country="France",
    region="Île-de-France",
    accuracy="default",
)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres, rounded to 2 decimals."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)


def distance_between(
    lat1: float | None, lng1: float | None, lat2: float | None, lng2: float | None
) -> float | None:
    """Distance between two optional coordinates; None means unknown (unbounded)."""
    if lat1 is None or lng1 is None or lat2 is None or lng2 is None:
        return None
    return haversine_km(lat1, lng1, lat2, lng2)


def validate_coordinates(latitude: float, longitude: float) -> bool:
    return (
        not math.isnan(latitude)
        and not math.isnan(longitude)
        and -90 <= latitude <= 90
        and -180 <= longitude <= 180
    )


class GeolocationService:
    """IP geolocation with a fallback provider."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self.client = client or httpx.AsyncClient(timeout=5.0, headers={"User-Agent": "Matcha-API/1.0"})

    async def close(self) -> None:
        await self.client.aclose()

    async def _lookup_primary(self, ip: str | None) -> Location | None:
        url = f"{settings.geo_primary_url}/{ip}/json/" if ip else f"{settings.geo_primary_url}/json/"
        response = await self.client.get(url)
        response.raise_for_status()
        data = response.json()
        if data.get("error") or not data.get("latitude") or not data.get("longitude"):
            logger.warning(f"Primary geolocation returned no position: {data.get('reason', 'missing data')}")
            return None
        return Location(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            city=data.get("city") or "Unknown city",
            country=data.get("country_name") or "Unknown country",
            region=data.get("region"),
        )

    async def _lookup_fallback(self, ip: str | None) -> Location | None:
        fields = "status,message,country,regionName,city,lat,lon"
        url = f"{settings.geo_fallback_url}/json/{ip or ''}"
        response = await self.client.get(url, params={"fields": fields})
        response.raise_for_status()
        data = response.json()
        if data.get("status") != "success" or data.get("lat") is None or data.get("lon") is None:
            logger.warning(f"Fallback geolocation returned no position: {data.get('message', 'missing data')}")
            return None
        return Location(
            latitude=float(data["lat"]),
            longitude=float(data["lon"]),
            city=data.get("city") or "Unknown city",
            country=data.get("country") or "Unknown country",
            region=data.get("regionName"),
        )

    async def locate(self, ip: str | None) -> Location:
        """
        Resolve an IP address to a location.

        Loopback addresses are looked up as "the server's own IP". Provider
        failures are logged; when both providers fail the default location
        is returned.
        """
        if ip in ("127.0.0.1", "::1", "localhost"):
            ip = None

        for lookup in (self._lookup_primary, self._lookup_fallback):
            try:
                location = await lookup(ip)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Geolocation lookup {lookup.__name__} failed: {e}")
                continue
            if location:
                return location

        return DEFAULT_LOCATION
