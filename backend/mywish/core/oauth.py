from typing import Any

from authlib.integrations.httpx_client import AsyncOAuth2Client

from mywish.core.config import settings


GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPE = "openid profile email"


def google_redirect_uri() -> str:
    return f"{settings.backend_url.rstrip('/')}/auth/oauth/callback/google"


def google_configured() -> bool:
    return bool(settings.google_client_id and settings.google_client_secret)


def get_google_session(state: str | None = None) -> AsyncOAuth2Client:
    return AsyncOAuth2Client(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=google_redirect_uri(),
        scope=GOOGLE_SCOPE,
        state=state,
        timeout=15.0,
    )


def google_authorization_url() -> tuple[str, str]:
    """Return the consent page URL and the state it carries."""
    session = get_google_session()
    url, state = session.create_authorization_url(GOOGLE_AUTHORIZE_URL, prompt="select_account")
    return url, state


async def fetch_google_profile(code: str, state: str | None = None) -> dict[str, Any]:
    """Exchange the authorization code and load the user's Google profile."""
    async with get_google_session(state=state) as session:
        await session.fetch_token(GOOGLE_TOKEN_URL, code=code)
        response = await session.get(GOOGLE_USERINFO_URL)
        response.raise_for_status()
        return response.json()
