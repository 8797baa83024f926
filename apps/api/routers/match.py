"""Browse, like/unlike and match listing endpoints."""

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db
from apps.api.errors import validation_error
from apps.api.services.browse import BrowseFilters, BrowseService
from apps.api.services.interactions import InteractionService
from core.auth import Principal, get_current_user

router = APIRouter(prefix="/profile", tags=["match"])
logger = logging.getLogger(__name__)


class LikeIn(BaseModel):
    """Input model for a like or dislike."""

    model_config = ConfigDict(populate_by_name=True)

    target_user_id: int = Field(alias="targetUserId", gt=0)
    is_like: bool = Field(default=True, alias="isLike")


def _tag_params(request: Request) -> list[str]:
    # Accepts both commonTags[]=a&commonTags[]=b and commonTags=a,b
    tags = request.query_params.getlist("commonTags[]")
    for value in request.query_params.getlist("commonTags"):
        tags.extend(value.split(","))
    return [tag.strip() for tag in tags if tag.strip()]


@router.get("/browse")
async def browse(
    request: Request,
    sort_by: Literal["distance", "age", "fame_rating", "common_tags", "intelligent"] = Query(
        "intelligent", alias="sortBy"
    ),
    sort_order: Literal["asc", "desc"] | None = Query(None, alias="sortOrder"),
    age_min: int | None = Query(None, alias="ageMin", ge=18, le=100),
    age_max: int | None = Query(None, alias="ageMax", ge=18, le=100),
    max_distance: float | None = Query(None, alias="maxDistance", gt=0),
    min_fame_rating: int | None = Query(None, alias="minFameRating", ge=0),
    max_fame_rating: int | None = Query(None, alias="maxFameRating", ge=0),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Ranked page of candidate profiles for the caller.

    Returns:
        {"success": True, "profiles": [...], "total": <eligible candidates>}
    """
    if age_min is not None and age_max is not None and age_min > age_max:
        raise validation_error("ageMin", "ageMin must not exceed ageMax")
    if min_fame_rating is not None and max_fame_rating is not None and min_fame_rating > max_fame_rating:
        raise validation_error("minFameRating", "minFameRating must not exceed maxFameRating")

    filters = BrowseFilters(
        age_min=age_min,
        age_max=age_max,
        max_distance=max_distance,
        min_fame_rating=min_fame_rating,
        max_fame_rating=max_fame_rating,
        common_tags=_tag_params(request),
        sort_by=sort_by,
        sort_order=sort_order,
    )
    profiles, total = await BrowseService(db).browse(principal.user_id, filters)
    return {"success": True, "profiles": profiles, "total": total}


@router.post("/like")
async def like(
    body: LikeIn,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    is_match = await InteractionService(db).like(principal.user_id, body.target_user_id, body.is_like)

    if is_match:
        logger.info(f"Match between users {principal.user_id} and {body.target_user_id}")
        message = "It's a match!"
    elif body.is_like:
        message = "Profile liked"
    else:
        message = "Profile passed"
    return {"success": True, "message": message, "isMatch": is_match}


@router.delete("/like/{user_id:int}")
async def unlike(
    user_id: int,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    had_match = await InteractionService(db).unlike(principal.user_id, user_id)
    if had_match:
        logger.info(f"User {principal.user_id} dissolved match with user {user_id}")
    return {
        "success": True,
        "message": "Like removed and match dissolved" if had_match else "Like removed",
        "hadMatch": had_match,
    }


@router.get("/matches")
async def matches(
    principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict[str, Any]:
    items = await InteractionService(db).list_matches(principal.user_id)
    return {"success": True, "matches": items, "total": len(items)}
