from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from core.auth import get_current_user
from core.config import settings
from core.security import (
    create_access_token,
    decode_access_token,
    generate_token,
    hash_password,
    validate_password,
    verify_password,
)


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_hash_and_verify_password():
    hashed = hash_password("Secret123")
    assert hashed.startswith("pbkdf2_sha256$")
    assert "Secret123" not in hashed
    assert verify_password("Secret123", hashed)
    assert not verify_password("secret123", hashed)


def test_hashes_are_salted():
    assert hash_password("Secret123") != hash_password("Secret123")


def test_verify_password_rejects_malformed_hash():
    assert not verify_password("Secret123", "not-a-hash")
    assert not verify_password("Secret123", "md5$1$salt$abc")


def test_generate_token_is_random_hex():
    token = generate_token()
    assert len(token) == 64
    int(token, 16)
    assert generate_token() != token


def test_validate_password_accepts_strong_password():
    assert validate_password("Tr0ubadour") == []


@pytest.mark.parametrize(
    "password,expected",
    [
        ("Ab1", "at least 8 characters"),
        ("abcdefg1", "uppercase"),
        ("ABCDEFG1", "lowercase"),
        ("Abcdefgh", "digit"),
    ],
)
def test_validate_password_reports_each_violation(password, expected):
    errors = validate_password(password)
    assert any(expected in error for error in errors)


def test_validate_password_rejects_common_password():
    assert "Password is too common" in validate_password("Password123")


def test_access_token_roundtrip():
    token = create_access_token(42, "bob@example.com", "bob")
    payload = decode_access_token(token)
    assert payload["userId"] == 42
    assert payload["email"] == "bob@example.com"
    assert payload["username"] == "bob"
    assert payload["exp"] > payload["iat"]


@pytest.mark.asyncio
async def test_get_current_user_returns_principal():
    principal = await get_current_user(_bearer(create_access_token(7, "c@example.com", "carol")))
    assert principal.user_id == 7
    assert principal.username == "carol"


@pytest.mark.asyncio
async def test_get_current_user_requires_token():
    with pytest.raises(HTTPException) as exc:
        await get_current_user(None)
    assert exc.value.status_code == 401
    assert exc.value.detail == "Access token required"


@pytest.mark.asyncio
async def test_get_current_user_rejects_expired_token():
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    token = jwt.encode(
        {"userId": 1, "email": "a@example.com", "username": "a", "exp": int(past.timestamp())},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(HTTPException) as exc:
        await get_current_user(_bearer(token))
    assert exc.value.status_code == 401
    assert exc.value.detail == "Token expired"


@pytest.mark.asyncio
async def test_get_current_user_rejects_foreign_signature():
    token = jwt.encode({"userId": 1}, "another-secret", algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        await get_current_user(_bearer(token))
    assert exc.value.detail == "Invalid token"


@pytest.mark.asyncio
async def test_get_current_user_rejects_token_without_user_id():
    token = jwt.encode({"email": "a@example.com"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    with pytest.raises(HTTPException) as exc:
        await get_current_user(_bearer(token))
    assert exc.value.detail == "Invalid token"
