"""Audit logging for critical operations."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from fastapi import Request


logger = logging.getLogger("mywish.audit")

_SENSITIVE_KEYS = ("token", "secret", "key", "authorization", "code")


class AuditAction(str, Enum):
    """Audit action types."""
    # Authentication
    LOGIN = "login"
    LOGOUT = "logout"
    LOGIN_FAILED = "login_failed"

    # Event operations
    EVENT_CREATE = "event_create"
    EVENT_UPDATE = "event_update"
    EVENT_DELETE = "event_delete"
    EVENT_JOIN = "event_join"
    EVENT_CONFIG_SET = "event_config_set"

    # Gift operations
    GIFT_CREATE = "gift_create"
    GIFT_UPDATE = "gift_update"
    GIFT_DELETE = "gift_delete"
    GIFT_RESERVE = "gift_reserve"

    # Uploads
    IMAGE_UPLOAD = "image_upload"


def audit_log(
    action: AuditAction,
    request: Request | None = None,
    user_id: int | str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """
    Log an audit event.

    Args:
        action: The action being performed
        request: FastAPI request object (for IP, user agent)
        user_id: ID of the user performing the action
        details: Additional details about the action
        success: Whether the action was successful
    """
    event: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action.value,
        "success": success,
    }

    if user_id is not None:
        event["user_id"] = str(user_id)

    if request:
        client_host = request.client.host if request.client else None
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_host = forwarded.split(",")[0].strip()

        event["ip"] = client_host
        event["user_agent"] = request.headers.get("User-Agent", "")[:200]
        event["request_id"] = request.headers.get("X-Request-Id", "")

    if details:
        event["details"] = {
            key: "***REDACTED***" if key in _SENSITIVE_KEYS else value
            for key, value in details.items()
        }

    if success:
        logger.info("AUDIT: %s", event)
    else:
        logger.warning("AUDIT: %s", event)


def audit_login(request: Request, user_id: int, email: str, provider: str = "google") -> None:
    audit_log(
        AuditAction.LOGIN,
        request=request,
        user_id=user_id,
        details={"provider": provider, "email": email},
    )


def audit_login_failed(request: Request, reason: str, provider: str = "google") -> None:
    audit_log(
        AuditAction.LOGIN_FAILED,
        request=request,
        details={"provider": provider, "reason": reason},
        success=False,
    )


def audit_logout(request: Request, user_id: int | None) -> None:
    audit_log(AuditAction.LOGOUT, request=request, user_id=user_id)


def audit_event_action(
    action: AuditAction,
    user_id: int,
    event_id: int,
    request: Request | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Log an event mutation."""
    event_details: dict[str, Any] = {"event_id": event_id}
    if details:
        event_details.update(details)
    audit_log(action, request=request, user_id=user_id, details=event_details)


def audit_gift_action(
    action: AuditAction,
    user_id: int,
    gift_id: int,
    event_id: int,
    request: Request | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Log a gift mutation or reservation."""
    event_details: dict[str, Any] = {"gift_id": gift_id, "event_id": event_id}
    if details:
        event_details.update(details)
    audit_log(action, request=request, user_id=user_id, details=event_details)
