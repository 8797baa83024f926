"""Profile visit recording."""

import logging

from sqlalchemy import func, literal_column
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.services.fame import FameService
from apps.api.services.notifier import Notifier
from core.metrics import profile_visits_total
from models import ProfileVisit

logger = logging.getLogger(__name__)


class VisitService:
    """One visit row per (visitor, visited, calendar day)."""

    def __init__(self, db: AsyncSession, notifier: Notifier | None = None, fame: FameService | None = None) -> None:
        self.db = db
        self.notifier = notifier or Notifier(db)
        self.fame = fame or FameService(db)

    async def _upsert(self, visitor_id: int, visited_id: int) -> bool:
        """Insert today's visit or bump its timestamp. Returns True if the row is new."""
        stmt = (
            insert(ProfileVisit)
            .values(visitor_id=visitor_id, visited_id=visited_id)
            .on_conflict_do_update(constraint="uq_profile_visits_daily", set_={"visited_at": func.now()})
            .returning(literal_column("(xmax = 0)").label("inserted"))
        )
        result = await self.db.execute(stmt)
        return bool(result.scalar_one())

    async def record(self, visitor_id: int, visited_id: int) -> bool:
        """
        Record that `visitor_id` viewed `visited_id`'s profile.

        Self-views are ignored. The visit notification is sent only for the
        first view of the day.

        Returns:
            True if this was the first view of the day
        """
        if visitor_id == visited_id:
            return False

        is_new = await self._upsert(visitor_id, visited_id)
        await self.db.commit()
        profile_visits_total.labels(new_visit=str(is_new).lower()).inc()

        if is_new:
            logger.debug(f"New visit: visitor={visitor_id}, visited={visited_id}")
            await self.notifier.send_visit(visited_id, visitor_id)
            await self.fame.refresh_quietly(visited_id)
        return is_new
