from datetime import datetime, timedelta, timezone
import logging
import secrets
from typing import Any
from uuid import uuid4

from jose import JWTError, jwt

from mywish.core.config import settings

_dev_logger = logging.getLogger("mywish.security")
_insecure_keys = {"CHANGE_ME", "secret", "jwt_secret", "changeme", ""}

if not settings.jwt_secret_key or settings.jwt_secret_key in _insecure_keys or len(settings.jwt_secret_key) < 32:
    env = getattr(settings, "environment", "local") or "local"
    if env.lower() in {"local", "test"}:
        settings.jwt_secret_key = secrets.token_urlsafe(64)
        _dev_logger.warning("JWT_SECRET_KEY was missing/insecure; generated ephemeral key for local dev")
    else:
        raise RuntimeError("JWT_SECRET_KEY must be set to a secure value (32+ chars) in production")


def _encode(payload: dict[str, Any]) -> str:
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _decode_token_raw(token: str) -> dict[str, Any] | None:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None


def create_access_token(subject: str, expires_delta_minutes: int | None = None) -> str:
    expire_minutes = expires_delta_minutes or settings.access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    return _encode({"sub": subject, "exp": expire, "type": "access", "jti": str(uuid4())})


def decode_access_token(token: str) -> dict[str, Any] | None:
    payload = _decode_token_raw(token)
    if not payload or payload.get("type") != "access":
        return None
    return payload


def create_upload_token(subject: str) -> str:
    """Short-lived token that lets its holder upload images to the blob store."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.upload_token_expire_minutes)
    return _encode({"sub": subject, "exp": expire, "type": "upload", "jti": uuid4().hex})


def decode_upload_token(token: str) -> str | None:
    payload = _decode_token_raw(token)
    if not payload or payload.get("type") != "upload":
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) else None
