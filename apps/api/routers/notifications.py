"""Notification inbox endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db
from core.auth import Principal, get_current_user
from models import Notification

router = APIRouter(prefix="/notifications", tags=["notifications"])


def serialize_notification(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "message": notification.message,
        "data": notification.data,
        "is_read": notification.is_read,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


@router.get("")
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """The caller's notifications, newest first, with the overall total."""
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == principal.user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    notifications = [serialize_notification(n) for n in result.scalars().all()]

    total = await db.execute(select(func.count(Notification.id)).where(Notification.user_id == principal.user_id))
    return {"success": True, "notifications": notifications, "total": int(total.scalar() or 0)}


@router.get("/unread-count")
async def unread_count(
    principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict[str, Any]:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == principal.user_id, Notification.is_read.is_(False)
        )
    )
    return {"success": True, "count": int(result.scalar() or 0)}


@router.put("/read-all")
async def mark_all_read(
    principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict[str, Any]:
    await db.execute(
        update(Notification)
        .where(Notification.user_id == principal.user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return {"success": True, "message": "All notifications marked as read"}


@router.put("/{notification_id:int}/read")
async def mark_read(
    notification_id: int,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Mark one notification as read; another user's notification is reported as not found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == principal.user_id)
        .values(is_read=True)
        .returning(Notification.id)
    )
    if result.scalar_one_or_none() is None:
        raise HTTPException(404, "Notification not found")
    await db.commit()
    return {"success": True, "message": "Notification marked as read"}
