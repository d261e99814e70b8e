"""Async HTTP client for the registry API."""

from typing import Any
import logging

import httpx

from mywish.core import errors


logger = logging.getLogger("mywish.client.api")


class ApiError(Exception):
    """An error response that does not belong to the registry error taxonomy."""

    def __init__(self, status_code: int, detail: Any) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


_STATUS_FALLBACK: dict[int, type[errors.RegistryError]] = {
    401: errors.Unauthenticated,
    403: errors.ForbiddenNotHost,
    404: errors.NotFound,
}


def error_from_response(response: httpx.Response) -> Exception:
    try:
        body = response.json()
    except ValueError:
        body = {}
    detail = body.get("detail") if isinstance(body, dict) else None
    code = body.get("code") if isinstance(body, dict) else None

    error_cls = errors.ERRORS_BY_CODE.get(code) if code else None
    if error_cls is None:
        error_cls = _STATUS_FALLBACK.get(response.status_code)
    if error_cls is not None:
        return error_cls(detail if isinstance(detail, str) else None)
    return ApiError(response.status_code, detail)


class RegistryClient:
    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        *,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        if token:
            self.set_token(token)

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_token(self, token: str | None) -> None:
        if token:
            self._client.headers["Authorization"] = f"Bearer {token}"
        else:
            self._client.headers.pop("Authorization", None)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(method, path, **kwargs)
        if response.status_code >= 400:
            logger.debug("API error method=%s path=%s status=%s", method, path, response.status_code)
            raise error_from_response(response)
        return response

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        return response.json()

    # identity

    async def current_user(self) -> dict[str, Any]:
        return await self._json("GET", "/auth/me")

    async def begin_login(self, return_path: str) -> str:
        data = await self._json("GET", "/auth/oauth/google", params={"next": return_path})
        return data["url"]

    async def logout(self) -> None:
        await self._request("POST", "/auth/logout")

    # events

    async def list_event_types(self) -> list[dict[str, Any]]:
        return await self._json("GET", "/events/types")

    async def create_event(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._json("POST", "/events", json=payload)

    async def get_event_by_slug(self, slug: str) -> dict[str, Any] | None:
        return await self._json("GET", f"/events/by-slug/{slug}")

    async def search_public_events(self, search: str | None = None) -> list[dict[str, Any]]:
        params = {"search": search} if search else None
        return await self._json("GET", "/events/search", params=params)

    async def list_my_events(self) -> list[dict[str, Any]]:
        return await self._json("GET", "/events/mine")

    async def list_my_events_grouped(self) -> dict[str, list[dict[str, Any]]]:
        return await self._json("GET", "/events/mine/grouped")

    async def update_event(self, event_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        return await self._json("PATCH", f"/events/{event_id}", json=changes)

    async def delete_event(self, event_id: int) -> None:
        await self._request("DELETE", f"/events/{event_id}")

    async def get_membership(self, event_id: int) -> dict[str, Any] | None:
        return await self._json("GET", f"/events/{event_id}/membership")

    async def join_event(self, event_id: int) -> dict[str, Any]:
        return await self._json("POST", f"/events/{event_id}/join")

    async def get_event_config(self, event_id: int) -> list[dict[str, Any]]:
        return await self._json("GET", f"/events/{event_id}/config")

    async def set_event_config(self, event_id: int, key: str, value: str) -> dict[str, Any]:
        return await self._json("PUT", f"/events/{event_id}/config", json={"key": key, "value": value})

    # gifts

    async def list_gifts(self, event_id: int) -> list[dict[str, Any]]:
        return await self._json("GET", f"/events/{event_id}/gifts")

    async def create_gift(self, event_id: int, payload: dict[str, Any]) -> int:
        data = await self._json("POST", f"/events/{event_id}/gifts", json=payload)
        return data["gift_id"]

    async def update_gift(self, gift_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        return await self._json("PATCH", f"/gifts/{gift_id}", json=changes)

    async def delete_gift(self, gift_id: int) -> None:
        await self._request("DELETE", f"/gifts/{gift_id}")

    async def reserve_gift(self, gift_id: int) -> None:
        await self._request("POST", f"/gifts/{gift_id}/reserve")

    # blobs and site

    async def generate_upload_target(self) -> dict[str, Any]:
        return await self._json("POST", "/uploads/target")

    async def upload_image(
        self,
        upload_url: str,
        data: bytes,
        *,
        filename: str = "image",
        content_type: str = "image/jpeg",
    ) -> dict[str, Any]:
        return await self._json("POST", upload_url, files={"file": (filename, data, content_type)})

    async def site_config(self) -> dict[str, str]:
        return await self._json("GET", "/config/site")


class HttpIdentity:
    """Identity backed by the API session of a ``RegistryClient``."""

    def __init__(self, client: RegistryClient) -> None:
        self.client = client

    async def current_user_id(self) -> int | None:
        try:
            user = await self.client.current_user()
        except errors.Unauthenticated:
            return None
        return int(user["id"])

    async def begin_login(self, return_path: str) -> str:
        return await self.client.begin_login(return_path)
