"""Messaging between matched users."""

from typing import Any

from fastapi import HTTPException
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.services.notifier import Notifier
from core.metrics import messages_sent_total
from models import Conversation, Match, Message, User
from models.match import canonical_pair


def serialize_message(message: Message, sender_name: str | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "is_read": message.is_read,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }
    if sender_name is not None:
        data["sender_name"] = sender_name
    return data


class ChatService:
    """Conversations exist only between matched users."""

    def __init__(self, db: AsyncSession, notifier: Notifier | None = None) -> None:
        self.db = db
        self.notifier = notifier or Notifier(db)

    async def _get_conversation(self, conversation_id: int) -> Conversation | None:
        result = await self.db.execute(select(Conversation).where(Conversation.id == conversation_id))
        return result.scalar_one_or_none()

    async def _has_match(self, a: int, b: int) -> bool:
        user1, user2 = canonical_pair(a, b)
        result = await self.db.execute(select(Match.id).where(Match.user1_id == user1, Match.user2_id == user2))
        return result.first() is not None

    async def _find_pair_conversation(self, a: int, b: int) -> Conversation | None:
        user1, user2 = canonical_pair(a, b)
        result = await self.db.execute(
            select(Conversation).where(Conversation.user1_id == user1, Conversation.user2_id == user2)
        )
        return result.scalar_one_or_none()

    async def _participant_conversation(self, conversation_id: int, user_id: int) -> Conversation:
        """Active conversation the user takes part in, else 403."""
        conversation = await self._get_conversation(conversation_id)
        if not conversation or not conversation.has_participant(user_id) or not conversation.is_active:
            raise HTTPException(status_code=403, detail="Access to this conversation denied or conversation inactive")
        return conversation

    async def list_conversations(self, user_id: int) -> list[dict[str, Any]]:
        """Active conversations with the other user's name, last message and unread count."""
        other_id = func.coalesce(func.nullif(Conversation.user1_id, user_id), Conversation.user2_id)
        last_message = (
            select(Message.content)
            .where(Message.conversation_id == Conversation.id)
            .order_by(Message.created_at.desc())
            .limit(1)
            .scalar_subquery()
        )
        unread = (
            select(func.count(Message.id))
            .where(
                Message.conversation_id == Conversation.id,
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(
                Conversation,
                other_id.label("other_user_id"),
                User.first_name,
                last_message.label("last"),
                unread.label("unread"),
            )
            .join(User, User.id == other_id)
            .where(
                or_(Conversation.user1_id == user_id, Conversation.user2_id == user_id),
                Conversation.is_active.is_(True),
            )
            .order_by(Conversation.last_message_at.desc())
        )
        conversations = []
        for conversation, other_user_id, other_name, last, unread_count in result.all():
            conversations.append(
                {
                    "id": conversation.id,
                    "user1_id": conversation.user1_id,
                    "user2_id": conversation.user2_id,
                    "is_active": conversation.is_active,
                    "created_at": conversation.created_at.isoformat() if conversation.created_at else None,
                    "last_message_at": (
                        conversation.last_message_at.isoformat() if conversation.last_message_at else None
                    ),
                    "other_user_id": other_user_id,
                    "other_user_name": other_name,
                    "last_message_content": last,
                    "unread_count": int(unread_count or 0),
                }
            )
        return conversations

    async def start(self, user_id: int, other_id: int) -> int:
        """
        Open (or reactivate) the conversation with a matched user.

        Returns:
            Conversation id
        """
        if user_id == other_id:
            raise HTTPException(status_code=400, detail="You cannot start a conversation with yourself")
        if not await self._has_match(user_id, other_id):
            raise HTTPException(status_code=403, detail="You must match with this user to start a conversation")

        conversation = await self._find_pair_conversation(user_id, other_id)
        if conversation:
            conversation.is_active = True
        else:
            user1, user2 = canonical_pair(user_id, other_id)
            conversation = Conversation(user1_id=user1, user2_id=user2, is_active=True)
            self.db.add(conversation)
            await self.db.flush()

        await self.db.commit()
        return conversation.id

    async def get_messages(
        self, conversation_id: int, user_id: int, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        """A window of the newest messages, returned oldest-first."""
        await self._participant_conversation(conversation_id, user_id)

        result = await self.db.execute(
            select(Message, User.first_name)
            .join(User, User.id == Message.sender_id)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
            .offset(offset)
        )
        window = [serialize_message(message, name) for message, name in result.all()]
        window.reverse()
        return window

    async def send(self, conversation_id: int, sender_id: int, content: str) -> dict[str, Any]:
        """Store a message, bump the conversation and notify the other participant."""
        conversation = await self._participant_conversation(conversation_id, sender_id)

        message = Message(conversation_id=conversation_id, sender_id=sender_id, content=content, is_read=False)
        self.db.add(message)
        await self.db.execute(
            update(Conversation).where(Conversation.id == conversation_id).values(last_message_at=func.now())
        )
        await self.db.flush()
        await self.db.refresh(message)
        await self.db.commit()

        messages_sent_total.inc()
        # A failed notification rolls the session back and expires `message`
        data = serialize_message(message)
        await self.notifier.send_message(conversation.other(sender_id), sender_id, conversation_id)
        return data

    async def mark_read(self, conversation_id: int, user_id: int) -> None:
        """Mark every message not sent by `user_id` as read."""
        await self._participant_conversation(conversation_id, user_id)
        await self.db.execute(
            update(Message)
            .where(
                and_(
                    Message.conversation_id == conversation_id,
                    Message.sender_id != user_id,
                    Message.is_read.is_(False),
                )
            )
            .values(is_read=True)
        )
        await self.db.commit()
