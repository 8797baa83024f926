"""Chat endpoints for matched users."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db
from apps.api.errors import validation_error
from apps.api.services.chat import ChatService
from core.auth import Principal, get_current_user
from models.chat import MAX_MESSAGE_LENGTH

router = APIRouter(prefix="/chat", tags=["chat"])
logger = logging.getLogger(__name__)


class MessageIn(BaseModel):
    """Message to send in a conversation."""

    content: str


def clean_content(content: str) -> str:
    """Trimmed message text; 400 if empty or too long."""
    text = content.strip()
    if not text:
        raise validation_error("content", "Message content is required")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise validation_error("content", f"Message must be at most {MAX_MESSAGE_LENGTH} characters")
    return text


@router.get("/conversations")
async def list_conversations(
    principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict[str, Any]:
    conversations = await ChatService(db).list_conversations(principal.user_id)
    return {"success": True, "conversations": conversations}


@router.get("/conversations/{user_id:int}/start")
async def start_conversation(
    user_id: int,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Open the conversation with a matched user (reactivated if it already exists)."""
    conversation_id = await ChatService(db).start(principal.user_id, user_id)
    logger.info(f"Conversation {conversation_id} opened by user {principal.user_id}")
    return {"success": True, "conversationId": conversation_id}


@router.get("/conversations/{conversation_id:int}/messages")
async def get_messages(
    conversation_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    messages = await ChatService(db).get_messages(conversation_id, principal.user_id, limit=limit, offset=offset)
    return {"success": True, "messages": messages}


@router.post("/conversations/{conversation_id:int}/messages", status_code=201)
async def send_message(
    conversation_id: int,
    body: MessageIn,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Send a message to the other participant.

    Raises:
        HTTPException: 400 on empty or oversized content, 403 if the caller is
            not a participant or the conversation is inactive
    """
    content = clean_content(body.content)
    message = await ChatService(db).send(conversation_id, principal.user_id, content)
    return {"success": True, "message": message}


@router.put("/conversations/{conversation_id:int}/read")
async def mark_read(
    conversation_id: int,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await ChatService(db).mark_read(conversation_id, principal.user_id)
    return {"success": True, "message": "Messages marked as read"}
