"""Photo upload validation and profile-picture bookkeeping."""

import base64
import binascii
import logging
import re
from dataclasses import dataclass

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.metrics import photos_uploaded_total
from models import Photo

logger = logging.getLogger(__name__)

MAX_PHOTOS = 5
MAX_PHOTO_BYTES = 5 * 1024 * 1024
ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")

_DATA_URI = re.compile(r"^data:([A-Za-z0-9.+/-]+);base64,(.+)$", re.DOTALL)


class PhotoError(ValueError):
    """An uploaded image was rejected."""


@dataclass
class DecodedImage:
    mime_type: str
    content: bytes


def decode_data_uri(data_uri: str) -> DecodedImage:
    """
    Split a `data:<mime>;base64,<payload>` URI into MIME type and bytes.

    Raises:
        PhotoError: malformed URI, unsupported type, bad base64 or too large
    """
    if not data_uri.startswith("data:image/"):
        raise PhotoError("Image must be a data:image/ URI")
    match = _DATA_URI.match(data_uri)
    if not match:
        raise PhotoError("Malformed image data")

    mime_type = match.group(1).lower()
    if mime_type not in ALLOWED_MIME_TYPES:
        raise PhotoError(f"Unsupported image type: {mime_type}")

    try:
        content = base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError):
        raise PhotoError("Image data is not valid base64") from None

    if not content:
        raise PhotoError("Image is empty")
    if len(content) > MAX_PHOTO_BYTES:
        raise PhotoError("Image exceeds the 5 MB limit")
    return DecodedImage(mime_type=mime_type, content=content)


class PhotoService:
    """Photos of one owner; at most one of them is the profile picture."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def count(self, user_id: int) -> int:
        result = await self.db.execute(select(func.count(Photo.id)).where(Photo.user_id == user_id))
        return int(result.scalar() or 0)

    async def get_owned(self, photo_id: int, user_id: int) -> Photo:
        result = await self.db.execute(select(Photo).where(Photo.id == photo_id, Photo.user_id == user_id))
        photo = result.scalar_one_or_none()
        if not photo:
            raise HTTPException(404, "Photo not found")
        return photo

    async def upload(self, user_id: int, images: list[tuple[str, str]]) -> list[Photo]:
        """
        Store `(filename, data_uri)` images for a user.

        All images are validated before anything is written. A user's first
        photo becomes the profile picture.

        Raises:
            HTTPException: 400 if an image is invalid or the limit would be exceeded
        """
        existing = await self.count(user_id)
        if existing + len(images) > MAX_PHOTOS:
            raise HTTPException(400, f"You can have at most {MAX_PHOTOS} photos (currently {existing})")

        decoded = []
        for filename, data_uri in images:
            try:
                decoded.append((filename, data_uri, decode_data_uri(data_uri)))
            except PhotoError as e:
                raise HTTPException(400, f"{filename}: {e}") from None

        photos = []
        for index, (filename, data_uri, image) in enumerate(decoded):
            photo = Photo(
                user_id=user_id,
                filename=filename,
                image_data=data_uri,
                mime_type=image.mime_type,
                is_profile_picture=existing == 0 and index == 0,
            )
            self.db.add(photo)
            photos.append(photo)

        await self.db.flush()
        await self.db.commit()

        photos_uploaded_total.inc(len(photos))
        logger.info(f"User {user_id} uploaded {len(photos)} photo(s)")
        return photos

    async def set_profile_picture(self, photo_id: int, user_id: int) -> None:
        """Unset every profile picture of the user, then set this one, in one commit."""
        await self.get_owned(photo_id, user_id)
        await self.db.execute(update(Photo).where(Photo.user_id == user_id).values(is_profile_picture=False))
        await self.db.execute(
            update(Photo).where(Photo.id == photo_id, Photo.user_id == user_id).values(is_profile_picture=True)
        )
        await self.db.commit()

    async def delete(self, photo_id: int, user_id: int) -> None:
        """Delete a photo; if it was the profile picture the oldest remaining photo takes over."""
        photo = await self.get_owned(photo_id, user_id)
        was_profile_picture = photo.is_profile_picture
        await self.db.delete(photo)
        await self.db.flush()

        if was_profile_picture:
            result = await self.db.execute(
                select(Photo.id)
                .where(Photo.user_id == user_id)
                .order_by(Photo.upload_date.asc(), Photo.id.asc())
                .limit(1)
            )
            replacement = result.scalar_one_or_none()
            if replacement is not None:
                await self.db.execute(update(Photo).where(Photo.id == replacement).values(is_profile_picture=True))

        await self.db.commit()
        logger.info(f"User {user_id} deleted photo {photo_id}")
