"""Fame rating calculator."""

import logging

from sqlalchemy import text, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.metrics import fame_recalc_errors_total
from models.profile import Profile

logger = logging.getLogger(__name__)

LIKE_WEIGHT = 2
VISIT_WEIGHT = 1
MATCH_WEIGHT = 5
DISLIKE_WEIGHT = 1

_STATS_QUERY = text(
    """
    SELECT
        (SELECT COUNT(*) FROM likes WHERE liked_id = :uid AND is_like = true) AS likes_received,
        (SELECT COUNT(*) FROM likes WHERE liked_id = :uid AND is_like = false) AS dislikes_received,
        (SELECT COUNT(*) FROM profile_visits WHERE visited_id = :uid) AS visits_received,
        (SELECT COUNT(*) FROM matches WHERE user1_id = :uid OR user2_id = :uid) AS matches
"""
)


def compute_fame_rating(likes_received: int, visits_received: int, matches: int, dislikes_received: int) -> int:
    """Popularity score: likes*2 + visits + matches*5 - dislikes, never below zero."""
    score = (
        likes_received * LIKE_WEIGHT
        + visits_received * VISIT_WEIGHT
        + matches * MATCH_WEIGHT
        - dislikes_received * DISLIKE_WEIGHT
    )
    return max(0, score)


class FameService:
    """Recomputes profile.fame_rating from the interaction ledger."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def recalculate(self, user_id: int) -> int:
        """Recompute, store and commit the fame rating of one user."""
        row = (await self.db.execute(_STATS_QUERY, {"uid": user_id})).mappings().one()
        rating = compute_fame_rating(
            likes_received=row["likes_received"],
            visits_received=row["visits_received"],
            matches=row["matches"],
            dislikes_received=row["dislikes_received"],
        )
        await self.db.execute(update(Profile).where(Profile.user_id == user_id).values(fame_rating=rating))
        await self.db.commit()
        return rating

    async def refresh_quietly(self, *user_ids: int) -> None:
        """Recompute after an interaction; failures are logged, never raised."""
        for user_id in user_ids:
            try:
                await self.recalculate(user_id)
            except Exception:
                fame_recalc_errors_total.inc()
                logger.exception(f"Fame rating recompute failed for user {user_id}")
                await self.db.rollback()
