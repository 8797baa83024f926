"""Own profile editing, location and public profile views."""

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db, get_geolocation
from apps.api.services.geolocation import GeolocationService, validate_coordinates
from apps.api.services.interactions import InteractionService
from apps.api.services.profiles import load_photos, load_user_with_profile, serialize_profile
from apps.api.services.visits import VisitService
from core.auth import Principal, get_current_user
from models import Like, Profile, ProfileVisit, User

router = APIRouter(prefix="/profile", tags=["profile"])
logger = logging.getLogger(__name__)

MAX_INTERESTS = 10


def clean_interests(interests: list[str]) -> list[str]:
    """Strip, drop empties and deduplicate case-insensitively (first spelling wins)."""
    seen: set[str] = set()
    cleaned: list[str] = []
    for interest in interests:
        tag = interest.strip()
        if not tag or tag.casefold() in seen:
            continue
        seen.add(tag.casefold())
        cleaned.append(tag)
    return cleaned


class ProfileIn(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""

    biography: str | None = Field(default=None, min_length=10, max_length=500)
    age: int | None = Field(default=None, ge=18, le=100)
    gender: Literal["homme", "femme"] | None = None
    sexual_orientation: Literal["hetero", "homo", "bi"] | None = None
    interests: list[str] | None = None
    city: str | None = Field(default=None, max_length=100)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("interests")
    @classmethod
    def _check_interests(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        cleaned = clean_interests(value)
        if len(cleaned) > MAX_INTERESTS:
            raise ValueError(f"At most {MAX_INTERESTS} interests are allowed")
        if any(len(tag) > 50 for tag in cleaned):
            raise ValueError("Each interest must be at most 50 characters")
        return cleaned


class UserInfoIn(BaseModel):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: EmailStr


class LocationIn(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    city: str | None = Field(default=None, max_length=100)


async def _own_profile(db: AsyncSession, user_id: int) -> Profile:
    """The caller's profile, created empty if missing."""
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        profile = Profile(user_id=user_id, interests=[], fame_rating=0)
        db.add(profile)
        await db.flush()
    return profile


async def _full_profile(db: AsyncSession, user_id: int) -> dict[str, Any]:
    loaded = await load_user_with_profile(db, user_id)
    if not loaded:
        raise HTTPException(404, "User not found")
    user, profile = loaded
    data = serialize_profile(user, profile, include_private=True)
    data["photos"] = (await load_photos(db, [user_id])).get(user_id, [])
    return data


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.get("")
async def get_my_profile(
    principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict[str, Any]:
    return {"success": True, "profile": await _full_profile(db, principal.user_id)}


@router.put("")
async def update_my_profile(
    body: ProfileIn,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Update the caller's profile fields.

    Coordinates must be given together. The fame rating is derived and is
    never set from here.
    """
    if (body.latitude is None) != (body.longitude is None):
        raise HTTPException(400, "latitude and longitude must be provided together")

    profile = await _own_profile(db, principal.user_id)
    changes = body.model_dump(exclude_unset=True, exclude={"latitude", "longitude"})
    for field, value in changes.items():
        if value is not None:
            setattr(profile, field, value)
    if body.latitude is not None and body.longitude is not None:
        profile.location_lat = body.latitude
        profile.location_lng = body.longitude

    await db.commit()
    logger.info(f"Profile updated for user {principal.user_id}: {sorted(changes)}")

    return {"success": True, "message": "Profile updated", "profile": await _full_profile(db, principal.user_id)}


@router.put("/user")
async def update_user_info(
    body: UserInfoIn,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    email = body.email.lower()
    taken = await db.execute(select(User.id).where(func.lower(User.email) == email, User.id != principal.user_id))
    if taken.first():
        raise HTTPException(409, "This email is already in use")

    result = await db.execute(select(User).where(User.id == principal.user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(404, "User not found")

    user.first_name = body.first_name.strip()
    user.last_name = body.last_name.strip()
    user.email = email
    await db.commit()

    return {
        "success": True,
        "message": "User information updated",
        "user": {"id": user.id, "email": user.email, "first_name": user.first_name, "last_name": user.last_name},
    }


@router.put("/location")
async def update_location(
    body: LocationIn,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    if not validate_coordinates(body.latitude, body.longitude):
        raise HTTPException(400, "Invalid coordinates")

    profile = await _own_profile(db, principal.user_id)
    profile.location_lat = body.latitude
    profile.location_lng = body.longitude
    if body.city is not None:
        profile.city = body.city
    await db.commit()

    return {
        "success": True,
        "message": "Location updated",
        "location": {"latitude": body.latitude, "longitude": body.longitude, "city": profile.city},
    }


@router.post("/location/auto")
async def auto_locate(
    request: Request,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    geolocation: GeolocationService = Depends(get_geolocation),
) -> dict[str, Any]:
    """Locate the caller from their IP; falls back to the default city."""
    location = await geolocation.locate(client_ip(request))

    profile = await _own_profile(db, principal.user_id)
    profile.location_lat = location.latitude
    profile.location_lng = location.longitude
    profile.city = location.city
    await db.commit()

    return {
        "success": True,
        "message": "Location detected",
        "location": {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "city": location.city,
            "country": location.country,
            "accuracy": location.accuracy,
        },
    }


@router.get("/history/likes")
async def likes_history(
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Positive likes received, most recent first."""
    result = await db.execute(
        select(Like.created_at, User.id, User.username, User.first_name, User.last_name)
        .join(User, User.id == Like.liker_id)
        .where(Like.liked_id == principal.user_id, Like.is_like.is_(True))
        .order_by(Like.created_at.desc())
        .limit(limit)
    )
    likes = [
        {
            "user_id": row.id,
            "username": row.username,
            "first_name": row.first_name,
            "last_name": row.last_name,
            "liked_at": row.created_at.isoformat(),
        }
        for row in result.all()
    ]
    return {"success": True, "likes": likes}


@router.get("/history/visits")
async def visits_history(
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Profile views received, most recent first."""
    result = await db.execute(
        select(ProfileVisit.visited_at, User.id, User.username, User.first_name, User.last_name)
        .join(User, User.id == ProfileVisit.visitor_id)
        .where(ProfileVisit.visited_id == principal.user_id)
        .order_by(ProfileVisit.visited_at.desc())
        .limit(limit)
    )
    visits = [
        {
            "user_id": row.id,
            "username": row.username,
            "first_name": row.first_name,
            "last_name": row.last_name,
            "visited_at": row.visited_at.isoformat(),
        }
        for row in result.all()
    ]
    return {"success": True, "visits": visits}


@router.get("/{user_id:int}")
async def view_profile(
    user_id: int,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Public profile of another user, with like/match flags.

    Viewing someone else's profile records a visit.

    Raises:
        HTTPException: 403 if either user blocked the other, 404 if unknown
    """
    loaded = await load_user_with_profile(db, user_id)
    if not loaded:
        raise HTTPException(404, "User not found")

    interactions = InteractionService(db)
    if user_id != principal.user_id and await interactions.is_blocked(principal.user_id, user_id):
        raise HTTPException(403, "This profile is not available")

    user, profile = loaded
    data = serialize_profile(user, profile)
    data["photos"] = (await load_photos(db, [user_id], include_data=True)).get(user_id, [])
    data.update(await interactions.relationship(principal.user_id, user_id))

    await VisitService(db).record(principal.user_id, user_id)

    return {"success": True, "profile": data}
