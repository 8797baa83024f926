import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt

from core.config import settings

PBKDF2_ITERATIONS = 260_000

COMMON_PASSWORDS = {
    "123456",
    "password",
    "123456789",
    "12345678",
    "12345",
    "azerty",
    "qwerty",
    "111111",
    "123123",
    "password123",
}


def generate_token(length: int = 32) -> str:
    """Generate a secure random token."""
    return secrets.token_hex(length)


def hash_password(password: str) -> str:
    """
    Hash a password with salted PBKDF2-SHA256.

    Returns:
        "pbkdf2_sha256$<iterations>$<salt>$<hex digest>"
    """
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against its hash."""
    try:
        algorithm, iterations, salt, expected = hashed.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def validate_password(password: str) -> list[str]:
    """Return the list of password policy violations (empty when valid)."""
    errors: list[str] = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not any(c.isupper() for c in password):
        errors.append("Password must contain an uppercase letter")
    if not any(c.islower() for c in password):
        errors.append("Password must contain a lowercase letter")
    if not any(c.isdigit() for c in password):
        errors.append("Password must contain a digit")
    if password.lower() in COMMON_PASSWORDS:
        errors.append("Password is too common")
    return errors


def create_access_token(user_id: int, email: str, username: str) -> str:
    """Issue a signed JWT for an authenticated user."""
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "email": email,
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=settings.jwt_expires_hours)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT. Raises jose.JWTError (or ExpiredSignatureError)."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
