"""Candidate selection for profile browsing."""

import logging
import re
import time
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Literal

from fastapi import HTTPException
from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.services.geolocation import distance_between
from apps.api.services.profiles import load_photos, serialize_profile
from core.metrics import browse_latency_seconds, browse_requests_total
from models import Block, Like, Profile, User
from models.profile import GENDERS, ORIENTATIONS

logger = logging.getLogger(__name__)

PAGE_SIZE = 50

SortKey = Literal["distance", "age", "fame_rating", "common_tags", "intelligent"]
SortOrder = Literal["asc", "desc"]

DEFAULT_SORT_ORDER: dict[str, SortOrder] = {
    "distance": "asc",
    "age": "asc",
    "fame_rating": "desc",
    "common_tags": "desc",
    "intelligent": "asc",
}

_NON_ALNUM = re.compile(r"[\W_]+", re.UNICODE)


@dataclass
class BrowseFilters:
    """Optional browse filters; None means "not applied"."""

    age_min: int | None = None
    age_max: int | None = None
    max_distance: float | None = None
    min_fame_rating: int | None = None
    max_fame_rating: int | None = None
    common_tags: list[str] = field(default_factory=list)
    sort_by: SortKey = "intelligent"
    sort_order: SortOrder | None = None

    @property
    def effective_order(self) -> SortOrder:
        return self.sort_order or DEFAULT_SORT_ORDER[self.sort_by]


@dataclass
class Candidate:
    user: User
    profile: Profile
    distance: float | None
    common_tags: int


def normalize_tag(tag: str) -> str:
    """Lowercase, strip accents and punctuation: "Ciné-ma!" -> "cinema"."""
    decomposed = unicodedata.normalize("NFKD", tag)
    without_accents = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _NON_ALNUM.sub("", without_accents.casefold())


def tags_match(a: str, b: str) -> bool:
    """Partial match on normalized tags (either contains the other)."""
    na, nb = normalize_tag(a), normalize_tag(b)
    if not na or not nb:
        return False
    return na in nb or nb in na


def common_tag_count(viewer_interests: list[str] | None, candidate_interests: list[str] | None) -> int:
    """Size of the intersection of both normalized interest sets."""
    viewer = {normalize_tag(t) for t in viewer_interests or []} - {""}
    candidate = {normalize_tag(t) for t in candidate_interests or []} - {""}
    return len(viewer & candidate)


def has_required_tags(candidate_interests: list[str] | None, required: list[str]) -> bool:
    """Every required tag must partially match one of the candidate's interests."""
    interests = candidate_interests or []
    return all(any(tags_match(tag, interest) for interest in interests) for tag in required if normalize_tag(tag))


def wants(own_gender: str, orientation: str | None, other_gender: str) -> bool:
    """Whether someone of `own_gender` with `orientation` is interested in `other_gender`."""
    orientation = orientation or "bi"
    if orientation == "hetero":
        return other_gender != own_gender
    if orientation == "homo":
        return other_gender == own_gender
    return True


def is_compatible(
    viewer_gender: str, viewer_orientation: str | None, candidate_gender: str, candidate_orientation: str | None
) -> bool:
    """Mutual interest: each side's orientation accepts the other's gender."""
    return wants(viewer_gender, viewer_orientation, candidate_gender) and wants(
        candidate_gender, candidate_orientation, viewer_gender
    )


def compatible_targets(viewer_gender: str, viewer_orientation: str | None) -> list[tuple[str, list[str]]]:
    """(candidate gender, accepted candidate orientations) pairs for a viewer."""
    targets = []
    for gender in GENDERS:
        orientations = [o for o in ORIENTATIONS if is_compatible(viewer_gender, viewer_orientation, gender, o)]
        if orientations:
            targets.append((gender, orientations))
    return targets


def build_candidate_query(viewer: Profile, filters: BrowseFilters) -> Select:
    """
    SQL pre-selection of candidates for `viewer`.

    Fixed exclusions first, then each optional filter appends one predicate
    when set: age_min, age_max, min_fame_rating, max_fame_rating. Distance
    and tag filters need per-row computation and are applied afterwards.
    """
    viewer_id = viewer.user_id
    orientation = func.coalesce(Profile.sexual_orientation, "bi")

    compatibility = or_(
        *(
            and_(Profile.gender == gender, orientation.in_(orientations))
            for gender, orientations in compatible_targets(viewer.gender, viewer.sexual_orientation)
        )
    )

    predicates = [
        User.id != viewer_id,
        User.is_verified.is_(True),
        Profile.age.is_not(None),
        Profile.gender.is_not(None),
        compatibility,
        User.id.not_in(select(Like.liked_id).where(Like.liker_id == viewer_id)),
        User.id.not_in(select(Block.blocked_id).where(Block.blocker_id == viewer_id)),
        User.id.not_in(select(Block.blocker_id).where(Block.blocked_id == viewer_id)),
    ]

    optional = [
        (filters.age_min, lambda v: Profile.age >= v),
        (filters.age_max, lambda v: Profile.age <= v),
        (filters.min_fame_rating, lambda v: Profile.fame_rating >= v),
        (filters.max_fame_rating, lambda v: Profile.fame_rating <= v),
    ]
    predicates.extend(effect(value) for value, effect in optional if value is not None)

    return select(User, Profile).join(Profile, Profile.user_id == User.id).where(and_(*predicates))


def _distance_key(candidate: Candidate, descending: bool = False) -> tuple[bool, float]:
    # Unknown distances sort last in both directions
    if candidate.distance is None:
        return (True, 0.0)
    return (False, -candidate.distance if descending else candidate.distance)


def sort_candidates(candidates: list[Candidate], sort_by: SortKey, order: SortOrder) -> list[Candidate]:
    """Order candidates; ties fall back to user id for a stable page."""
    descending = order == "desc"

    if sort_by == "intelligent":
        return sorted(
            candidates,
            key=lambda c: (-c.common_tags, -c.profile.fame_rating, _distance_key(c), c.user.id),
        )
    if sort_by == "distance":
        return sorted(candidates, key=lambda c: (_distance_key(c, descending), c.user.id))

    attribute = {
        "age": lambda c: c.profile.age or 0,
        "fame_rating": lambda c: c.profile.fame_rating,
        "common_tags": lambda c: c.common_tags,
    }[sort_by]
    sign = -1 if descending else 1
    return sorted(candidates, key=lambda c: (sign * attribute(c), c.user.id))


def apply_post_filters(candidates: list[Candidate], filters: BrowseFilters) -> list[Candidate]:
    """Filters that depend on per-row distance and tag matching."""
    kept = candidates
    if filters.max_distance is not None:
        kept = [c for c in kept if c.distance is not None and c.distance <= filters.max_distance]
    if filters.common_tags:
        kept = [c for c in kept if has_required_tags(c.profile.interests, filters.common_tags)]
    return kept


class BrowseService:
    """Builds a ranked page of candidate profiles for a viewer."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _viewer_profile(self, viewer_id: int) -> Profile:
        result = await self.db.execute(select(Profile).where(Profile.user_id == viewer_id))
        profile = result.scalar_one_or_none()
        if not profile or not profile.is_complete:
            raise HTTPException(status_code=400, detail="Profile incomplete: age and gender are required to browse")
        return profile

    def rank(self, viewer: Profile, rows: list[tuple[User, Profile]], filters: BrowseFilters) -> list[Candidate]:
        candidates = [
            Candidate(
                user=user,
                profile=profile,
                distance=distance_between(
                    viewer.location_lat, viewer.location_lng, profile.location_lat, profile.location_lng
                ),
                common_tags=common_tag_count(viewer.interests, profile.interests),
            )
            for user, profile in rows
        ]
        candidates = apply_post_filters(candidates, filters)
        return sort_candidates(candidates, filters.sort_by, filters.effective_order)

    async def browse(self, viewer_id: int, filters: BrowseFilters) -> tuple[list[dict[str, Any]], int]:
        """
        Return one page of candidates and the number of eligible candidates.

        Raises:
            HTTPException: 400 if the viewer's profile lacks age or gender
        """
        t0 = time.perf_counter()
        try:
            viewer = await self._viewer_profile(viewer_id)
            result = await self.db.execute(build_candidate_query(viewer, filters))
            ranked = self.rank(viewer, [(row[0], row[1]) for row in result.all()], filters)
            page = ranked[:PAGE_SIZE]

            photos = await load_photos(self.db, [c.user.id for c in page], include_data=True)
            profiles = []
            for c in page:
                data = serialize_profile(c.user, c.profile)
                data["distance_km"] = c.distance
                data["common_tags_count"] = c.common_tags
                data["photos"] = photos.get(c.user.id, [])
                profiles.append(data)

            browse_requests_total.labels(sort_by=filters.sort_by).inc()
            logger.debug(f"Browse for user {viewer_id}: {len(ranked)} candidates, page of {len(page)}")
            return profiles, len(ranked)
        finally:
            browse_latency_seconds.observe(time.perf_counter() - t0)
