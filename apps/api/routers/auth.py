"""Account registration, email verification and login."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.deps import get_db, get_mailer
from apps.api.errors import validation_error
from apps.api.services.mailer import Mailer
from core.auth import Principal, get_current_user
from core.metrics import logins_total, registrations_total
from core.redis import acquire_rate_limit
from core.security import create_access_token, generate_token, hash_password, validate_password, verify_password
from models import Profile, User

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

USERNAME_PATTERN = r"^[A-Za-z0-9_-]{3,30}$"
VERIFICATION_TTL = timedelta(hours=24)
RESET_TTL = timedelta(hours=1)
RESEND_COOLDOWN_SECONDS = 60


class RegisterIn(BaseModel):
    """Input model for account creation."""

    email: EmailStr
    username: str = Field(pattern=USERNAME_PATTERN)
    password: str
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class EmailIn(BaseModel):
    email: EmailStr


class ResetPasswordIn(BaseModel):
    token: str = Field(min_length=1)
    password: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _user_summary(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_verified": user.is_verified,
    }


async def _find_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


@router.post("/register", status_code=201)
async def register(
    body: RegisterIn,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> dict[str, Any]:
    """
    Create an unverified account and its empty profile.

    Raises:
        HTTPException: 400 on password policy violations, 409 if the email or
            username is already taken
    """
    password_errors = validate_password(body.password)
    if password_errors:
        raise validation_error("password", password_errors)

    email = body.email.lower()
    existing = await db.execute(
        select(User.email, User.username).where(or_(func.lower(User.email) == email, User.username == body.username))
    )
    taken = existing.first()
    if taken:
        field = "email" if taken.email.lower() == email else "username"
        raise HTTPException(409, f"An account with this {field} already exists")

    token = generate_token()
    user = User(
        email=email,
        username=body.username,
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        password_hash=hash_password(body.password),
        is_verified=False,
        verification_token=token,
        verification_token_expires=_utcnow() + VERIFICATION_TTL,
    )
    db.add(user)
    try:
        await db.flush()
        db.add(Profile(user_id=user.id, interests=[], fame_rating=0))
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(409, "An account with this email or username already exists") from None

    registrations_total.inc()
    logger.info(f"User registered: id={user.id}, username={user.username}")

    await mailer.send_verification(user.email, user.first_name, token)

    return {
        "success": True,
        "message": "Account created. Check your email to verify your account.",
        "user": {"id": user.id, "email": user.email, "username": user.username, "is_verified": False},
    }


@router.get("/verify-email/{token}")
async def verify_email(token: str, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Verify the account owning `token`; expired tokens are reported as such."""
    result = await db.execute(select(User).where(User.verification_token == token))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(400, "Invalid verification token")

    if user.is_verified:
        return {"success": True, "message": "This account is already verified. You can log in."}

    if user.verification_token_expires and user.verification_token_expires <= _utcnow():
        raise HTTPException(
            400,
            {
                "message": "Verification token expired. You can request a new verification link.",
                "expired": True,
                "email": user.email,
            },
        )

    user.is_verified = True
    user.verification_token = None
    user.verification_token_expires = None
    await db.commit()

    logger.info(f"Email verified for user {user.id}")
    return {"success": True, "message": "Email verified. You can now log in."}


@router.post("/resend-verification")
async def resend_verification(
    body: EmailIn,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> dict[str, Any]:
    user = await _find_by_email(db, body.email)
    if not user:
        raise HTTPException(404, "No account found with this email")
    if user.is_verified:
        raise HTTPException(400, "This account is already verified")

    if not await acquire_rate_limit(f"rl:resend:{user.email}", RESEND_COOLDOWN_SECONDS):
        raise HTTPException(429, "Please wait before requesting another verification email")

    token = generate_token()
    user.verification_token = token
    user.verification_token_expires = _utcnow() + VERIFICATION_TTL
    await db.commit()

    await mailer.send_verification(user.email, user.first_name, token)
    return {"success": True, "message": "A new verification email has been sent"}


@router.post("/login")
async def login(body: LoginIn, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """
    Exchange credentials for a bearer token.

    Raises:
        HTTPException: 401 on bad credentials, 403 if the email is not verified
    """
    user = await _find_by_email(db, body.email)
    if not user or not verify_password(body.password, user.password_hash):
        logins_total.labels(status="invalid").inc()
        raise HTTPException(401, "Invalid email or password")

    if not user.is_verified:
        logins_total.labels(status="unverified").inc()
        raise HTTPException(
            403,
            {
                "message": "Please verify your email before logging in",
                "needs_verification": True,
                "email": user.email,
            },
        )

    user.last_seen = _utcnow()
    await db.commit()

    logins_total.labels(status="success").inc()
    logger.info(f"User {user.id} logged in")

    return {
        "success": True,
        "message": "Login successful",
        "token": create_access_token(user.id, user.email, user.username),
        "user": _user_summary(user),
    }


@router.post("/forgot-password")
async def forgot_password(
    body: EmailIn,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> dict[str, Any]:
    """Always succeeds so the response does not reveal which emails exist."""
    user = await _find_by_email(db, body.email)
    if user and user.is_verified:
        token = generate_token()
        user.reset_password_token = token
        user.reset_password_expires = _utcnow() + RESET_TTL
        await db.commit()
        await mailer.send_password_reset(user.email, user.first_name, token)
    else:
        logger.info("Password reset requested for an unknown or unverified email")

    return {"success": True, "message": "If an account exists for this email, a reset link has been sent"}


@router.post("/reset-password")
async def reset_password(body: ResetPasswordIn, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    password_errors = validate_password(body.password)
    if password_errors:
        raise validation_error("password", password_errors)

    result = await db.execute(select(User).where(User.reset_password_token == body.token))
    user = result.scalar_one_or_none()
    if not user or not user.reset_password_expires or user.reset_password_expires <= _utcnow():
        raise HTTPException(400, "Invalid or expired reset token")

    user.password_hash = hash_password(body.password)
    user.reset_password_token = None
    user.reset_password_expires = None
    await db.commit()

    logger.info(f"Password reset for user {user.id}")
    return {"success": True, "message": "Password updated. You can now log in."}


@router.get("/me")
async def me(principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    result = await db.execute(select(User).where(User.id == principal.user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(404, "User not found")
    return {"success": True, "user": _user_summary(user)}
