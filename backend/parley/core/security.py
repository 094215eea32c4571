"""Security helpers for password hashing and token management."""

from __future__ import annotations

import hashlib
import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from fastapi import HTTPException, status
from passlib.context import CryptContext

from parley.config import get_settings
from parley.services import get_cache

settings = get_settings()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(slots=True)
class RefreshTokenData:
    """Structured data extracted from a stored refresh token."""

    token_id: str
    subject: str
    expires_at: datetime


class RefreshTokenError(Exception):
    """Raised when a refresh token cannot be validated."""


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a plain password against its hashed counterpart."""

    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password for storing in the database."""

    return pwd_context.hash(password)


def create_access_token(data: Dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT access token with an expiration time."""

    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT access token."""

    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc
    return payload


def _refresh_cache_key(token_id: str) -> str:
    return f"auth:refresh:{token_id}"


def _hash_refresh_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def create_refresh_token(subject: str) -> tuple[str, int]:
    """Issue an opaque ``<id>.<secret>`` refresh token for ``subject``.

    Only a hash of the secret is kept in the cache, keyed by the id, so a
    leaked cache entry cannot be replayed. Returns the token and its TTL.
    """

    token_id = secrets.token_urlsafe(16)
    token_secret = secrets.token_urlsafe(32)
    ttl = max(int(settings.refresh_token_expire_minutes), 1) * 60
    record = {
        "sub": subject,
        "hash": _hash_refresh_secret(token_secret),
        "exp": int(datetime.now(timezone.utc).timestamp()) + ttl,
    }
    get_cache().set(_refresh_cache_key(token_id), json.dumps(record), ttl)
    return f"{token_id}.{token_secret}", ttl


def _read_record(cache_key: str) -> dict[str, Any]:
    cache = get_cache()
    raw = cache.get(cache_key)
    if raw is None:
        raise RefreshTokenError("Refresh token not found")
    try:
        record = json.loads(raw)
    except json.JSONDecodeError as exc:
        cache.delete(cache_key)
        raise RefreshTokenError("Corrupted refresh token payload") from exc
    if not isinstance(record, dict):
        cache.delete(cache_key)
        raise RefreshTokenError("Corrupted refresh token payload")
    return record


def validate_refresh_token(token: str, *, revoke: bool = False) -> RefreshTokenData:
    """Check a refresh token against its stored record.

    A token whose secret does not match is revoked on the spot. With
    ``revoke=True`` a valid token is consumed, which makes rotation one-time.
    """

    token_id, separator, token_secret = token.partition(".")
    if not separator or not token_id or not token_secret:
        raise RefreshTokenError("Malformed refresh token")

    cache_key = _refresh_cache_key(token_id)
    record = _read_record(cache_key)
    expected = str(record.get("hash") or "")
    if not secrets.compare_digest(expected, _hash_refresh_secret(token_secret)):
        get_cache().delete(cache_key)
        raise RefreshTokenError("Refresh token signature mismatch")

    exp = record.get("exp")
    if not isinstance(exp, (int, float)):
        get_cache().delete(cache_key)
        raise RefreshTokenError("Refresh token is missing expiration")
    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    if expires_at <= datetime.now(timezone.utc):
        get_cache().delete(cache_key)
        raise RefreshTokenError("Refresh token expired")

    if revoke:
        get_cache().delete(cache_key)
    return RefreshTokenData(token_id=token_id, subject=str(record.get("sub")), expires_at=expires_at)


def revoke_refresh_token(token: str, subject: str) -> bool:
    """Drop a refresh token issued to ``subject``.

    Tokens that are unknown, expired or belong to someone else are left
    alone. Returns whether a token was revoked.
    """

    try:
        data = validate_refresh_token(token)
    except RefreshTokenError:
        return False
    if data.subject != subject:
        return False
    get_cache().delete(_refresh_cache_key(data.token_id))
    return True
