"""Photo upload and management endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db
from apps.api.services.photos import PhotoError, PhotoService, decode_data_uri
from apps.api.services.profiles import serialize_photo
from core.auth import Principal, get_current_user
from models import Photo

router = APIRouter(prefix="/photos", tags=["photos"])


class ImageIn(BaseModel):
    base64: str = Field(min_length=1)
    filename: str = Field(default="photo", max_length=255)
    type: str | None = None


class UploadIn(BaseModel):
    """Input model for a batch of base64 images."""

    images: list[ImageIn] = Field(min_length=1)


@router.post("", status_code=201)
async def upload_photos(
    body: UploadIn,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    photos = await PhotoService(db).upload(principal.user_id, [(image.filename, image.base64) for image in body.images])
    return {
        "success": True,
        "message": f"{len(photos)} photo(s) uploaded",
        "photos": [serialize_photo(photo) for photo in photos],
    }


@router.delete("/{photo_id:int}")
async def delete_photo(
    photo_id: int,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await PhotoService(db).delete(photo_id, principal.user_id)
    return {"success": True, "message": "Photo deleted"}


@router.put("/{photo_id:int}/profile-picture")
async def set_profile_picture(
    photo_id: int,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await PhotoService(db).set_profile_picture(photo_id, principal.user_id)
    return {"success": True, "message": "Profile picture updated"}


@router.get("/{photo_id:int}/image")
async def get_image(photo_id: int, db: AsyncSession = Depends(get_db)) -> Response:
    """Raw image bytes with the stored MIME type."""
    result = await db.execute(select(Photo.image_data, Photo.mime_type).where(Photo.id == photo_id))
    row = result.first()
    if not row:
        raise HTTPException(404, "Photo not found")
    try:
        image = decode_data_uri(row.image_data)
    except PhotoError:
        raise HTTPException(404, "Photo not found") from None
    return Response(
        content=image.content, media_type=row.mime_type, headers={"Cache-Control": "public, max-age=86400"}
    )
