import base64
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException

from apps.api.services.photos import MAX_PHOTO_BYTES, PhotoError, PhotoService, decode_data_uri
from models import Photo

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def _data_uri(content: bytes = PNG_BYTES, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(content).decode()}"


def test_decode_valid_image():
    image = decode_data_uri(_data_uri())
    assert image.mime_type == "image/png"
    assert image.content == PNG_BYTES


@pytest.mark.parametrize(
    "data_uri",
    [
        "iVBORw0KGgo=",
        "data:text/plain;base64,aGVsbG8=",
        "data:image/bmp;base64,aGVsbG8=",
        "data:image/png;base64,***not-base64***",
        "data:image/png,aGVsbG8=",
    ],
)
def test_decode_rejects_invalid_images(data_uri):
    with pytest.raises(PhotoError):
        decode_data_uri(data_uri)


def test_decode_rejects_oversized_image():
    with pytest.raises(PhotoError, match="5 MB"):
        decode_data_uri(_data_uri(b"\x00" * (MAX_PHOTO_BYTES + 1), "image/jpeg"))


@pytest.mark.asyncio
async def test_upload_enforces_photo_limit(mock_session):
    service = PhotoService(mock_session)
    service.count = AsyncMock(return_value=4)

    with pytest.raises(HTTPException) as exc:
        await service.upload(1, [("a.png", _data_uri()), ("b.png", _data_uri())])

    assert exc.value.status_code == 400
    mock_session.add.assert_not_called()


@pytest.mark.asyncio
async def test_upload_validates_every_image_before_writing(mock_session):
    service = PhotoService(mock_session)
    service.count = AsyncMock(return_value=0)

    with pytest.raises(HTTPException) as exc:
        await service.upload(1, [("a.png", _data_uri()), ("b.gif", "data:image/gif;base64,@@@")])

    assert exc.value.status_code == 400
    assert "b.gif" in exc.value.detail
    mock_session.add.assert_not_called()


@pytest.mark.asyncio
async def test_first_photo_becomes_profile_picture(mock_session):
    service = PhotoService(mock_session)
    service.count = AsyncMock(return_value=0)

    photos = await service.upload(1, [("a.png", _data_uri()), ("b.jpg", _data_uri(mime="image/jpeg"))])

    assert [p.is_profile_picture for p in photos] == [True, False]
    assert photos[1].mime_type == "image/jpeg"
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_later_uploads_keep_existing_profile_picture(mock_session):
    service = PhotoService(mock_session)
    service.count = AsyncMock(return_value=2)

    photos = await service.upload(1, [("c.png", _data_uri())])

    assert photos[0].is_profile_picture is False


@pytest.mark.asyncio
async def test_deleting_profile_picture_promotes_oldest(mock_session, mock_result):
    service = PhotoService(mock_session)
    photo = Photo(id=5, user_id=1, is_profile_picture=True)
    service.get_owned = AsyncMock(return_value=photo)
    mock_result.scalar_one_or_none.return_value = 7

    await service.delete(5, 1)

    mock_session.delete.assert_awaited_once_with(photo)
    # Oldest-remaining lookup + promotion update
    assert mock_session.execute.await_count == 2
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_deleting_other_photo_promotes_nothing(mock_session):
    service = PhotoService(mock_session)
    service.get_owned = AsyncMock(return_value=Photo(id=6, user_id=1, is_profile_picture=False))

    await service.delete(6, 1)

    mock_session.execute.assert_not_awaited()
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_set_profile_picture_unsets_then_sets(mock_session):
    service = PhotoService(mock_session)
    service.get_owned = AsyncMock(return_value=Photo(id=6, user_id=1, is_profile_picture=False))

    await service.set_profile_picture(6, 1)

    assert mock_session.execute.await_count == 2
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_foreign_photo_is_not_found(mock_session):
    with pytest.raises(HTTPException) as exc:
        await PhotoService(mock_session).get_owned(5, 2)

    assert exc.value.status_code == 404
