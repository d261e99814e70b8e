from typing import TypedDict
import logging
import secrets

import httpx
from authlib.common.errors import AuthlibBaseError
from fastapi import APIRouter, Cookie, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import select

from mywish.api.deps import ACCESS_TOKEN_COOKIE, CurrentUserDep, DbSessionDep, OptionalUserDep
from mywish.core import oauth
from mywish.core.audit import audit_login, audit_login_failed, audit_logout
from mywish.core.config import settings
from mywish.core.security import create_access_token
from mywish.models.models import User
from mywish.schemas.auth import OAuthLoginUrl, UserPublic


router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("mywish.auth")

OAUTH_STATE_COOKIE = "oauth_state_google"
OAUTH_NEXT_COOKIE = "oauth_next"
OAUTH_COOKIE_MAX_AGE = 600
DEFAULT_NEXT_PATH = "/"


class CookieOptions(TypedDict, total=False):
    samesite: str
    secure: bool


def _cookie_options() -> CookieOptions:
    """Lax cookies over HTTP locally, cross-site secure cookies everywhere else."""
    environment = (settings.environment or "local").lower()
    if environment in {"local", "test"}:
        return {"samesite": "lax", "secure": False}
    return {"samesite": "none", "secure": True}


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        token,
        httponly=True,
        max_age=settings.access_token_expire_minutes * 60,
        path="/",
        **_cookie_options(),
    )


def _safe_next_path(next_path: str | None) -> str:
    """Only same-site relative paths are allowed as post-login destinations.

    Rejects protocol-relative URLs (``//host``), absolute URLs and paths such as
    ``/.evil.com`` that browsers may read as a host name.
    """
    if not next_path:
        return DEFAULT_NEXT_PATH
    if not next_path.startswith("/") or next_path.startswith("//") or "://" in next_path:
        return DEFAULT_NEXT_PATH
    if next_path.startswith("/.") and len(next_path) > 2 and "." in next_path[2:]:
        return DEFAULT_NEXT_PATH
    return next_path


def _validate_oauth_state(*, expected_state: str | None, provided_state: str | None) -> None:
    if not expected_state or not provided_state:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OAuth state")
    if not secrets.compare_digest(expected_state, provided_state):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OAuth state")


async def get_or_create_user(
    db: DbSessionDep,
    *,
    email: str,
    name: str | None,
    avatar_url: str | None = None,
) -> User:
    """Find the user by e-mail, refreshing the profile fields, or create it."""
    email = email.strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        changed = False
        if name and user.name != name:
            user.name = name
            changed = True
        if avatar_url and user.avatar_url != avatar_url:
            user.avatar_url = avatar_url
            changed = True
        if changed:
            await db.commit()
            await db.refresh(user)
        return user

    user = User(email=email, name=name, avatar_url=avatar_url)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User created user_id=%s", user.id)
    return user


@router.get("/me", response_model=UserPublic)
async def get_me(current_user: CurrentUserDep) -> UserPublic:
    return UserPublic.model_validate(current_user)


@router.get("/oauth/google", response_model=OAuthLoginUrl)
async def oauth_google_login(next: str | None = Query(default=None)):
    """Begin the Google login; the caller redirects the browser to ``url``."""
    if not oauth.google_configured():
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Google OAuth not configured",
        )

    auth_url, state = oauth.google_authorization_url()
    response = JSONResponse({"url": auth_url})
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        httponly=True,
        max_age=OAUTH_COOKIE_MAX_AGE,
        **_cookie_options(),
    )
    if next:
        response.set_cookie(
            OAUTH_NEXT_COOKIE,
            _safe_next_path(next),
            httponly=True,
            max_age=OAUTH_COOKIE_MAX_AGE,
            **_cookie_options(),
        )
    return response


@router.get("/oauth/callback/google")
async def oauth_google_callback(
    request: Request,
    code: str,
    db: DbSessionDep,
    state: str | None = None,
    oauth_state_google: str | None = Cookie(default=None),
    oauth_next: str | None = Cookie(default=None),
):
    if not oauth.google_configured():
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Google OAuth not configured",
        )
    _validate_oauth_state(expected_state=oauth_state_google, provided_state=state)

    try:
        profile = await oauth.fetch_google_profile(code, state=state)
    except (httpx.HTTPError, AuthlibBaseError) as exc:
        audit_login_failed(request, reason=str(exc))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Google OAuth request failed") from exc

    email = profile.get("email")
    if not email:
        audit_login_failed(request, reason="email missing")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Google OAuth email is missing")

    user = await get_or_create_user(
        db,
        email=email,
        name=(profile.get("name") or "").strip() or None,
        avatar_url=profile.get("picture"),
    )
    audit_login(request, user.id, user.email)

    response = RedirectResponse(
        url=f"{settings.frontend_url.rstrip('/')}{_safe_next_path(oauth_next)}",
        status_code=status.HTTP_302_FOUND,
    )
    _set_auth_cookie(response, create_access_token(str(user.id)))
    response.delete_cookie(OAUTH_STATE_COOKIE, **_cookie_options())
    response.delete_cookie(OAUTH_NEXT_COOKIE, **_cookie_options())
    return response


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout_user(request: Request, response: Response, current_user: OptionalUserDep) -> None:
    response.delete_cookie(ACCESS_TOKEN_COOKIE, path="/", **_cookie_options())
    audit_logout(request, current_user.id if current_user else None)
