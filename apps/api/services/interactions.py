"""Like / unlike / block / report transitions between two users."""

import logging

from fastapi import HTTPException
from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.services.fame import FameService
from apps.api.services.notifier import Notifier
from core.metrics import blocks_total, likes_total, matches_created_total, reports_total, unlikes_total
from models import Block, Conversation, Like, Match, Photo, Report, User
from models.match import canonical_pair

logger = logging.getLogger(__name__)


class InteractionService:
    """
    State transitions for an ordered pair of users.

    Each transition is one transaction (a single commit). Notifications and
    fame recomputation run after the commit and never fail the transition.
    """

    def __init__(self, db: AsyncSession, notifier: Notifier | None = None, fame: FameService | None = None) -> None:
        self.db = db
        self.notifier = notifier or Notifier(db)
        self.fame = fame or FameService(db)

    # Queries

    async def _user_exists(self, user_id: int) -> bool:
        result = await self.db.execute(select(User.id).where(User.id == user_id))
        return result.scalar_one_or_none() is not None

    async def is_blocked(self, a: int, b: int) -> bool:
        """True if a block exists in either direction."""
        result = await self.db.execute(
            select(Block.id).where(
                or_(
                    and_(Block.blocker_id == a, Block.blocked_id == b),
                    and_(Block.blocker_id == b, Block.blocked_id == a),
                )
            )
        )
        return result.first() is not None

    async def _photo_count(self, user_id: int) -> int:
        result = await self.db.execute(select(func.count(Photo.id)).where(Photo.user_id == user_id))
        return int(result.scalar() or 0)

    async def _upsert_like(self, liker_id: int, liked_id: int, is_like: bool) -> None:
        stmt = insert(Like).values(liker_id=liker_id, liked_id=liked_id, is_like=is_like)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_likes_pair",
            set_={"is_like": stmt.excluded.is_like, "created_at": func.now()},
        )
        await self.db.execute(stmt)

    async def _likes_back(self, liker_id: int, liked_id: int) -> bool:
        """True if `liked_id` already positively likes `liker_id`."""
        result = await self.db.execute(
            select(Like.id).where(Like.liker_id == liked_id, Like.liked_id == liker_id, Like.is_like.is_(True))
        )
        return result.first() is not None

    async def _create_match(self, a: int, b: int) -> bool:
        """Insert the canonical match row. Returns True only if it is new."""
        user1, user2 = canonical_pair(a, b)
        stmt = (
            insert(Match)
            .values(user1_id=user1, user2_id=user2)
            .on_conflict_do_nothing(constraint="uq_matches_pair")
            .returning(Match.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def _dissolve_match(self, a: int, b: int) -> bool:
        """Delete the pair's match and deactivate its conversation. Returns True if a match existed."""
        user1, user2 = canonical_pair(a, b)
        result = await self.db.execute(
            delete(Match).where(Match.user1_id == user1, Match.user2_id == user2).returning(Match.id)
        )
        had_match = result.scalar_one_or_none() is not None
        if had_match:
            await self.db.execute(
                update(Conversation)
                .where(Conversation.user1_id == user1, Conversation.user2_id == user2)
                .values(is_active=False)
            )
        return had_match

    async def _delete_like(self, liker_id: int, liked_id: int) -> bool:
        result = await self.db.execute(
            delete(Like).where(Like.liker_id == liker_id, Like.liked_id == liked_id).returning(Like.id)
        )
        return result.scalar_one_or_none() is not None

    async def check_target(self, caller_id: int, target_id: int) -> None:
        if caller_id == target_id:
            raise HTTPException(status_code=400, detail="You cannot target yourself")
        if not await self._user_exists(target_id):
            raise HTTPException(status_code=404, detail="User not found")

    # Transitions

    async def like(self, liker_id: int, liked_id: int, is_like: bool = True) -> bool:
        """
        Like (or dislike) `liked_id`.

        Returns:
            True if the pair is matched after this call

        Raises:
            HTTPException: 400 self/no photo, 403 blocked, 404 unknown user
        """
        await self.check_target(liker_id, liked_id)
        if await self.is_blocked(liker_id, liked_id):
            raise HTTPException(status_code=403, detail="Interaction not allowed with this user")
        if is_like and await self._photo_count(liker_id) == 0:
            raise HTTPException(status_code=400, detail="You must have a profile picture to like")

        await self._upsert_like(liker_id, liked_id, is_like)

        is_match = False
        new_match = False
        match_dissolved = False
        if is_like:
            if await self._likes_back(liker_id, liked_id):
                is_match = True
                new_match = await self._create_match(liker_id, liked_id)
        else:
            match_dissolved = await self._dissolve_match(liker_id, liked_id)

        await self.db.commit()

        likes_total.labels(kind="like" if is_like else "dislike").inc()
        logger.info(f"Like recorded: liker={liker_id}, liked={liked_id}, is_like={is_like}, match={is_match}")

        if new_match:
            matches_created_total.inc()
            await self.notifier.send_match(liked_id, liker_id)
            await self.notifier.send_match(liker_id, liked_id)
        elif is_like:
            await self.notifier.send_like(liked_id, liker_id)
        elif match_dissolved:
            await self.notifier.send_unlike(liked_id, liker_id)

        if new_match or match_dissolved:
            await self.fame.refresh_quietly(liked_id, liker_id)
        else:
            await self.fame.refresh_quietly(liked_id)

        return is_match

    async def unlike(self, liker_id: int, liked_id: int) -> bool:
        """
        Remove the like from `liker_id` to `liked_id`.

        Returns:
            True if the pair had a match (now removed)

        Raises:
            HTTPException: 404 if there was no like to remove
        """
        if not await self._delete_like(liker_id, liked_id):
            raise HTTPException(status_code=404, detail="Like not found")

        had_match = await self._dissolve_match(liker_id, liked_id)
        await self.db.commit()

        unlikes_total.labels(had_match=str(had_match).lower()).inc()
        logger.info(f"Unlike recorded: liker={liker_id}, liked={liked_id}, had_match={had_match}")

        if had_match:
            await self.notifier.send_unlike(liked_id, liker_id)
            await self.fame.refresh_quietly(liked_id, liker_id)
        else:
            await self.fame.refresh_quietly(liked_id)

        return had_match

    async def block(self, blocker_id: int, blocked_id: int) -> None:
        """Block `blocked_id`: removes likes in both directions and any match. Silent."""
        await self.check_target(blocker_id, blocked_id)

        await self.db.execute(
            insert(Block)
            .values(blocker_id=blocker_id, blocked_id=blocked_id)
            .on_conflict_do_nothing(constraint="uq_blocks_pair")
        )
        await self.db.execute(
            delete(Like).where(
                or_(
                    and_(Like.liker_id == blocker_id, Like.liked_id == blocked_id),
                    and_(Like.liker_id == blocked_id, Like.liked_id == blocker_id),
                )
            )
        )
        await self._dissolve_match(blocker_id, blocked_id)
        await self.db.commit()

        blocks_total.inc()
        logger.info(f"Block executed: blocker={blocker_id}, blocked={blocked_id}")

        await self.fame.refresh_quietly(blocked_id, blocker_id)

    async def report(self, reporter_id: int, reported_id: int, reason: str) -> None:
        """Record a report; a second open report for the same pair is ignored."""
        await self.check_target(reporter_id, reported_id)

        await self.db.execute(
            insert(Report)
            .values(reporter_id=reporter_id, reported_id=reported_id, reason=reason, status="new")
            .on_conflict_do_nothing(
                index_elements=["reporter_id", "reported_id"],
                index_where=Report.status.in_(["new", "in_review"]),
            )
        )
        await self.db.commit()

        reports_total.inc()
        logger.info(f"Report created: reporter={reporter_id}, reported={reported_id}")

    # Reads

    async def relationship(self, viewer_id: int, target_id: int) -> dict[str, bool]:
        """Like/match flags between the viewer and another user."""
        result = await self.db.execute(
            select(Like.liker_id).where(
                Like.is_like.is_(True),
                or_(
                    and_(Like.liker_id == viewer_id, Like.liked_id == target_id),
                    and_(Like.liker_id == target_id, Like.liked_id == viewer_id),
                ),
            )
        )
        likers = set(result.scalars().all())
        user1, user2 = canonical_pair(viewer_id, target_id)
        match = await self.db.execute(select(Match.id).where(Match.user1_id == user1, Match.user2_id == user2))
        return {
            "liked_by_me": viewer_id in likers,
            "likes_me": target_id in likers,
            "is_match": match.first() is not None,
        }

    async def list_matches(self, user_id: int) -> list[dict]:
        """The user's matches, newest first, with the other user's summary."""
        other_id = func.coalesce(func.nullif(Match.user1_id, user_id), Match.user2_id)
        result = await self.db.execute(
            select(Match, User)
            .join(User, User.id == other_id)
            .where(or_(Match.user1_id == user_id, Match.user2_id == user_id))
            .order_by(Match.created_at.desc())
        )
        return [
            {
                "match_id": match.id,
                "matched_at": match.created_at.isoformat() if match.created_at else None,
                "user": {
                    "id": other.id,
                    "username": other.username,
                    "first_name": other.first_name,
                    "last_name": other.last_name,
                    "last_seen": other.last_seen.isoformat() if other.last_seen else None,
                },
            }
            for match, other in result.all()
        ]
