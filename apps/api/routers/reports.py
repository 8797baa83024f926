"""Block and report endpoints for safety & moderation."""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db
from apps.api.services.interactions import InteractionService
from core.auth import Principal, get_current_user
from core.metrics import blocks_latency_seconds, reports_latency_seconds
from core.redis import acquire_rate_limit

router = APIRouter(prefix="/profile", tags=["reports"])
logger = logging.getLogger(__name__)

REPORT_COOLDOWN_SECONDS = 60


class BlockIn(BaseModel):
    """Input model for blocking a user."""

    model_config = ConfigDict(populate_by_name=True)

    target_user_id: int = Field(alias="targetUserId", gt=0)


class ReportIn(BaseModel):
    """Input model for reporting a user."""

    model_config = ConfigDict(populate_by_name=True)

    target_user_id: int = Field(alias="targetUserId", gt=0)
    reason: str = Field(min_length=1, max_length=500)


@router.post("/block")
async def block_user(
    body: BlockIn,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool | str]:
    """
    Block another user.

    Effects:
    - Removes likes in both directions
    - Removes the match and deactivates the conversation
    - Hides both users from each other's browse results

    The blocked user is not notified. Blocking twice is a no-op.
    """
    t0 = time.perf_counter()
    try:
        await InteractionService(db).block(principal.user_id, body.target_user_id)
        logger.info(f"User {principal.user_id} blocked user {body.target_user_id}")
        return {"success": True, "message": "User blocked"}
    finally:
        blocks_latency_seconds.observe(time.perf_counter() - t0)


@router.post("/report")
async def report_user(
    body: ReportIn,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool | str]:
    """
    Report another user to moderation.

    Validates:
    - Reason is 1-500 characters after trimming
    - Rate limit: 1 report per 60 seconds per user
    - A second open report for the same user is ignored

    Raises:
        HTTPException: 400 on empty reason or self-report, 404 on unknown user, 429 when rate-limited
    """
    t0 = time.perf_counter()
    try:
        reason = body.reason.strip()
        if not reason:
            raise HTTPException(400, "A reason is required")

        service = InteractionService(db)
        # Self-reports and unknown targets must not consume the cooldown
        await service.check_target(principal.user_id, body.target_user_id)

        if not await acquire_rate_limit(f"rl:report:{principal.user_id}", REPORT_COOLDOWN_SECONDS):
            logger.warning(f"Report rate limit hit for user {principal.user_id}")
            raise HTTPException(429, "Too many reports. Please wait before reporting again.")

        await service.report(principal.user_id, body.target_user_id, reason)
        logger.info(f"User {principal.user_id} reported user {body.target_user_id}")
        return {"success": True, "message": "Report submitted"}
    finally:
        reports_latency_seconds.observe(time.perf_counter() - t0)
