"""Profile and photo serialization shared by the routers."""

from collections import defaultdict
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Photo, Profile, User


def serialize_photo(photo: Photo, include_data: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": photo.id,
        "filename": photo.filename,
        "mime_type": photo.mime_type,
        "is_profile_picture": photo.is_profile_picture,
        "upload_date": photo.upload_date.isoformat() if photo.upload_date else None,
    }
    if include_data:
        data["image_data"] = photo.image_data
    return data


def serialize_profile(user: User, profile: Profile | None, include_private: bool = False) -> dict[str, Any]:
    """Flatten user + profile into the API shape. Email only for the owner."""
    data: dict[str, Any] = {
        "id": user.id,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "last_seen": user.last_seen.isoformat() if user.last_seen else None,
        "biography": profile.biography if profile else None,
        "age": profile.age if profile else None,
        "gender": profile.gender if profile else None,
        "sexual_orientation": profile.sexual_orientation if profile else None,
        "interests": list(profile.interests or []) if profile else [],
        "city": profile.city if profile else None,
        "fame_rating": profile.fame_rating if profile else 0,
    }
    if include_private:
        data["email"] = user.email
        data["is_verified"] = user.is_verified
        data["location_lat"] = profile.location_lat if profile else None
        data["location_lng"] = profile.location_lng if profile else None
    return data


async def load_photos(
    db: AsyncSession, user_ids: list[int], include_data: bool = False
) -> dict[int, list[dict[str, Any]]]:
    """Photos per user, profile picture first, then by upload time."""
    if not user_ids:
        return {}
    result = await db.execute(
        select(Photo)
        .where(Photo.user_id.in_(user_ids))
        .order_by(Photo.user_id, Photo.is_profile_picture.desc(), Photo.upload_date.asc())
    )
    photos: dict[int, list[dict[str, Any]]] = defaultdict(list)
    for photo in result.scalars().all():
        photos[photo.user_id].append(serialize_photo(photo, include_data=include_data))
    return dict(photos)


async def load_user_with_profile(db: AsyncSession, user_id: int) -> tuple[User, Profile | None] | None:
    result = await db.execute(
        select(User, Profile).outerjoin(Profile, Profile.user_id == User.id).where(User.id == user_id)
    )
    row = result.first()
    if not row:
        return None
    return row[0], row[1]
