"""
Credential and token primitives.

- Password hashing with bcrypt.  Hashing is CPU bound, so both hashing and
  verification run in a worker thread to keep the event loop responsive.
- HS256 JWTs via PyJWT.  Every token kind has its own secret, its own
  expiry and a ``type`` claim; a token of one kind never validates as
  another.

Token verification failures are always reported as
:class:`~readstack.errors.InvalidTokenError` regardless of the cause
(bad signature, expiry, wrong type), so callers cannot build an oracle
that distinguishes them.
"""
from __future__ import annotations

import asyncio
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from readstack.config import settings
from readstack.errors import InvalidTokenError, PasswordHashError

ACCESS = "access"
REFRESH = "refresh"
VERIFICATION = "email_verification"
PASSWORD_RESET = "password_reset"


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def _hash_sync(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _verify_sync(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash (wrong prefix, truncated, ...)
        return False


async def hash_password(password: str) -> str:
    """Return a salted bcrypt hash of *password*.  Raises PasswordHashError if empty."""
    if not password:
        raise PasswordHashError("Password didn't reach the hashing function")
    return await asyncio.to_thread(_hash_sync, password)


async def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Check *password* against *password_hash*.

    Never raises on mismatch; a missing or malformed hash is a mismatch.
    """
    if not password or not password_hash:
        return False
    return await asyncio.to_thread(_verify_sync, password, password_hash)


# Hash of a random throwaway password, checked against when the account does
# not exist so both sign-in failure paths cost one bcrypt round.
_DUMMY_HASH: str | None = None


async def burn_password_check(password: str) -> None:
    global _DUMMY_HASH  # noqa: PLW0603
    if _DUMMY_HASH is None:
        _DUMMY_HASH = await asyncio.to_thread(_hash_sync, "readstack-dummy-password-1")
    await verify_password(password or "x", _DUMMY_HASH)


def password_fingerprint(password_hash: str) -> str:
    """Short digest of a stored hash, embedded in reset tokens to make them single-use."""
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

_SECRETS = {
    ACCESS: lambda: settings.JWT_ACCESS_SECRET,
    REFRESH: lambda: settings.JWT_REFRESH_SECRET,
    VERIFICATION: lambda: settings.JWT_VERIFICATION_SECRET,
    PASSWORD_RESET: lambda: settings.JWT_RESET_SECRET,
}


def _encode(token_type: str, claims: dict[str, Any], lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**claims, "type": token_type, "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, _SECRETS[token_type](), algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, token_type: str) -> dict[str, Any]:
    """Decode and validate *token* as a token of *token_type*."""
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            _SECRETS[token_type](),
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.PyJWTError as exc:
        raise InvalidTokenError("Token is invalid or expired") from exc

    if payload.get("type") != token_type:
        raise InvalidTokenError("Token is invalid or expired")
    return payload


def create_access_token(user_id: int) -> str:
    return _encode(
        ACCESS,
        {"sub": str(user_id), "id": user_id},
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user_id: int) -> str:
    return _encode(
        REFRESH,
        {"sub": str(user_id)},
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def create_verification_token(email: str) -> str:
    return _encode(
        VERIFICATION,
        {"email": email},
        timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
    )


def create_reset_token(email: str, password_hash: str) -> str:
    return _encode(
        PASSWORD_RESET,
        {"email": email, "pwd": password_fingerprint(password_hash)},
        timedelta(hours=settings.RESET_TOKEN_EXPIRE_HOURS),
    )


def verify_access_token(token: str) -> int:
    """Return the user id carried by an access token."""
    payload = decode_token(token, ACCESS)
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidTokenError("Token is invalid or expired") from exc


def verify_verification_token(token: str) -> str:
    """Return the email carried by an email-verification token."""
    payload = decode_token(token, VERIFICATION)
    email = payload.get("email")
    if not isinstance(email, str):
        raise InvalidTokenError("Token is invalid or expired")
    return email


def verify_reset_token(token: str) -> tuple[str, str]:
    """Return ``(email, password_fingerprint)`` from a password-reset token."""
    payload = decode_token(token, PASSWORD_RESET)
    email, fingerprint = payload.get("email"), payload.get("pwd")
    if not isinstance(email, str) or not isinstance(fingerprint, str):
        raise InvalidTokenError("Token is invalid or expired")
    return email, fingerprint
