"""Blog articles fetched from the external content feed."""

import json
import logging
import re
from typing import Any

import httpx

from mywish.core.config import settings
from mywish.core.content_cache import ContentCache, content_cache


logger = logging.getLogger("mywish.content")

FAQ_START_MARKER = "<!-- FAQ_SCHEMA_START -->"
FAQ_END_MARKER = "<!-- FAQ_SCHEMA_END -->"

_FRONTMATTER_RE = re.compile(r"^---\n.*?\n---(?:\n|$)", re.DOTALL)
_INTERNAL_LINK_RE = re.compile(r"\[LINK: ([^\]]+)\]\(INTERNAL\)")


class ContentFeedError(Exception):
    """The content feed is not configured or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def strip_frontmatter(markdown: str) -> str:
    normalized = markdown.replace("\r\n", "\n").replace("\r", "\n")
    normalized = normalized.removeprefix("\ufeff")
    return _FRONTMATTER_RE.sub("", normalized, count=1)


def sanitize_internal_links(markdown: str) -> str:
    return _INTERNAL_LINK_RE.sub(r"[\1](/blog)", markdown)


def extract_faq_schema(markdown: str) -> tuple[str, str | None]:
    """Split the FAQ JSON-LD block out of the article body."""
    start = markdown.find(FAQ_START_MARKER)
    end = markdown.find(FAQ_END_MARKER)
    if start == -1 or end == -1 or end <= start:
        return markdown.strip(), None

    faq = markdown[start + len(FAQ_START_MARKER):end].strip()
    before = markdown[:start].strip()
    after = markdown[end + len(FAQ_END_MARKER):].strip()
    body = "\n\n".join(part for part in (before, after) if part)
    return body, faq or None


def safe_faq_schema(faq_schema: str | None) -> str | None:
    """Re-serialize the FAQ schema, dropping it when it is not valid JSON."""
    if not faq_schema:
        return None
    try:
        return json.dumps(json.loads(faq_schema), ensure_ascii=False)
    except ValueError:
        return None


def normalize_list_payload(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("contents"), list):
        return payload["contents"]
    return []


class ContentFeed:
    def __init__(
        self,
        base_url: str | None = None,
        project_slug: str | None = None,
        cache: ContentCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (settings.content_base_url if base_url is None else base_url).rstrip("/")
        self.project_slug = project_slug or settings.content_project_slug
        self.cache = cache or content_cache
        self._transport = transport

    async def _fetch_json(self, path: str) -> Any:
        key = f"{self.project_slug}:{path}"
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        if not self._base_url:
            raise ContentFeedError("CONTENT_BASE_URL is not configured")

        async with httpx.AsyncClient(
            timeout=settings.content_timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(f"{self._base_url}{path}", headers={"Accept": "application/json"})
            except httpx.HTTPError as exc:
                logger.warning("Content feed request failed path=%s error=%s", path, exc)
                raise ContentFeedError(f"Content feed request failed: {exc}") from exc
        if response.status_code >= 400:
            logger.warning("Content feed error path=%s status=%s", path, response.status_code)
            raise ContentFeedError(
                f"Content feed request failed: {response.status_code}",
                status_code=response.status_code,
            )

        data = response.json()
        await self.cache.set(key, data)
        return data

    async def list_articles(self) -> list[dict[str, Any]]:
        payload = await self._fetch_json(f"/api/content/{self.project_slug}/list")
        return normalize_list_payload(payload)

    async def get_article(self, content_slug: str) -> dict[str, Any]:
        article = await self._fetch_json(f"/api/content/{self.project_slug}/{content_slug}")
        markdown = sanitize_internal_links(strip_frontmatter(article.get("markdown") or ""))
        body, faq = extract_faq_schema(markdown)
        return {
            **article,
            "markdown": body,
            "faqSchema": safe_faq_schema(article.get("faqSchema") or faq),
        }

    async def sitemap_entries(self) -> list[dict[str, Any]]:
        payload = await self._fetch_json(f"/api/content/{self.project_slug}/sitemap")
        entries = payload.get("entries") if isinstance(payload, dict) else None
        return entries or []

    async def purge(self) -> int:
        return await self.cache.purge()


content_feed = ContentFeed()
