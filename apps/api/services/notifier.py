"""Notification service for recording user-facing events."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.metrics import notifications_created_total, notifications_failed_total
from models import Notification, NotificationType, User

logger = logging.getLogger(__name__)


class Notifier:
    """Service for creating notifications. Every send is best-effort."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(
        self, user_id: int, type_: NotificationType, message: str, data: dict[str, Any] | None = None
    ) -> bool:
        """
        Store a notification for `user_id` and commit it.

        Returns:
            True if stored; False if it failed (the error is logged)
        """
        try:
            self.db.add(Notification(user_id=user_id, type=type_.value, message=message, data=data))
            await self.db.commit()
        except Exception as e:
            logger.error(f"Failed to create {type_.value} notification for user {user_id}: {e}")
            notifications_failed_total.labels(type=type_.value).inc()
            await self.db.rollback()
            return False

        notifications_created_total.labels(type=type_.value).inc()
        return True

    async def _send_about(
        self, user_id: int, actor_id: int, type_: NotificationType, template: str, **extra: Any
    ) -> bool:
        """Create a notification whose text names the acting user."""
        try:
            result = await self.db.execute(select(User.first_name).where(User.id == actor_id))
            name = result.scalar_one_or_none() or "Someone"
        except Exception as e:
            logger.error(f"Failed to resolve user {actor_id} for {type_.value} notification: {e}")
            notifications_failed_total.labels(type=type_.value).inc()
            await self.db.rollback()
            return False

        data = {"userId": actor_id, **extra}
        return await self.create(user_id, type_, template.format(name=name), data)

    async def send_like(self, user_id: int, liker_id: int) -> bool:
        return await self._send_about(user_id, liker_id, NotificationType.LIKE, "{name} liked your profile")

    async def send_match(self, user_id: int, partner_id: int) -> bool:
        return await self._send_about(user_id, partner_id, NotificationType.MATCH, "It's a match with {name}!")

    async def send_unlike(self, user_id: int, unliker_id: int) -> bool:
        return await self._send_about(
            user_id, unliker_id, NotificationType.UNLIKE, "{name} is no longer connected with you"
        )

    async def send_visit(self, user_id: int, visitor_id: int) -> bool:
        return await self._send_about(user_id, visitor_id, NotificationType.VISIT, "{name} viewed your profile")

    async def send_message(self, user_id: int, sender_id: int, conversation_id: int) -> bool:
        return await self._send_about(
            user_id,
            sender_id,
            NotificationType.MESSAGE,
            "{name} sent you a message",
            conversationId=conversation_id,
        )
