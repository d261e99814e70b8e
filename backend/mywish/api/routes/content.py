from typing import Annotated, Any
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from mywish.core.config import settings
from mywish.services.content import ContentFeed, ContentFeedError, content_feed


logger = logging.getLogger("mywish.content")

router = APIRouter(tags=["content"])


def get_content_feed() -> ContentFeed:
    return content_feed


ContentFeedDep = Annotated[ContentFeed, Depends(get_content_feed)]


class RevalidatePayload(BaseModel):
    projectSlug: str | None = None
    event: str | None = None
    slugs: list[str] = []
    updatedAt: str | None = None


def _feed_error(exc: ContentFeedError) -> HTTPException:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artigo não encontrado")
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Conteúdo indisponível no momento")


@router.get("/blog")
async def list_articles(feed: ContentFeedDep) -> list[dict[str, Any]]:
    try:
        return await feed.list_articles()
    except ContentFeedError as exc:
        raise _feed_error(exc) from exc


@router.get("/blog-sitemap")
async def sitemap_entries(feed: ContentFeedDep) -> list[dict[str, Any]]:
    try:
        return await feed.sitemap_entries()
    except ContentFeedError as exc:
        raise _feed_error(exc) from exc


@router.get("/blog/{content_slug}")
async def get_article(content_slug: str, feed: ContentFeedDep) -> dict[str, Any]:
    try:
        return await feed.get_article(content_slug)
    except ContentFeedError as exc:
        raise _feed_error(exc) from exc


@router.post("/api/slop/revalidate")
async def revalidate_content(request: Request, payload: RevalidatePayload, feed: ContentFeedDep):
    """Webhook from the content feed: drop cached articles after a publish."""
    expected_secret = settings.content_webhook_secret
    if not expected_secret:
        return JSONResponse(
            {"ok": False, "error": "CONTENT_WEBHOOK_SECRET is missing"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    header = request.headers.get("Authorization") or ""
    if not secrets.compare_digest(header, f"Bearer {expected_secret}"):
        return JSONResponse({"ok": False, "error": "Unauthorized"}, status_code=status.HTTP_401_UNAUTHORIZED)

    if payload.projectSlug and payload.projectSlug != feed.project_slug:
        return {"ok": True, "ignored": True, "reason": "project_slug_mismatch"}

    purged = await feed.purge()
    logger.info("Content cache revalidated event=%s slugs=%s purged=%s", payload.event, payload.slugs, purged)
    return {
        "ok": True,
        "received": {
            "projectSlug": payload.projectSlug,
            "event": payload.event,
            "slugs": payload.slugs,
            "updatedAt": payload.updatedAt,
        },
    }
