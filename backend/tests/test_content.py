import json
from unittest.mock import AsyncMock

import httpx
import pytest
import redis.asyncio as redis

from mywish.api.routes.content import get_content_feed
from mywish.core.content_cache import ContentCache
from mywish.main import app
from mywish.models.models import SiteConfig
from mywish.services.content import (
    ContentFeed,
    ContentFeedError,
    extract_faq_schema,
    normalize_list_payload,
    safe_faq_schema,
    sanitize_internal_links,
    strip_frontmatter,
)


ARTICLE_MARKDOWN = (
    "---\ntitle: Lista de casamento\n---\n"
    "# Como montar\n\nVeja [LINK: nossas dicas](INTERNAL).\n\n"
    "<!-- FAQ_SCHEMA_START -->\n"
    '{"@type": "FAQPage", "mainEntity": []}\n'
    "<!-- FAQ_SCHEMA_END -->\n\nFim."
)


class FakeFeedServer:
    def __init__(self):
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request.url.path)
        path = request.url.path
        if path == "/api/content/demo/list":
            return httpx.Response(200, json={"contents": [{"slug": "lista-de-casamento", "title": "Lista"}]})
        if path == "/api/content/demo/sitemap":
            return httpx.Response(200, json={"entries": [{"slug": "lista-de-casamento", "updatedAt": "2025-01-01"}]})
        if path == "/api/content/demo/lista-de-casamento":
            return httpx.Response(200, json={"slug": "lista-de-casamento", "markdown": ARTICLE_MARKDOWN})
        if path == "/api/content/demo/quebrado":
            return httpx.Response(500, json={"error": "boom"})
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def feed_server():
    return FakeFeedServer()


@pytest.fixture
def feed(feed_server):
    return ContentFeed(
        base_url="https://feed.example/",
        project_slug="demo",
        cache=ContentCache(redis_dsn="", ttl_seconds=60),
        transport=httpx.MockTransport(feed_server),
    )


@pytest.fixture
def feed_app(feed):
    app.dependency_overrides[get_content_feed] = lambda: feed
    return feed


def test_strip_frontmatter():
    assert strip_frontmatter("\ufeff---\r\ntitle: x\r\n---\r\nCorpo") == "Corpo"
    assert strip_frontmatter("Sem frontmatter") == "Sem frontmatter"


def test_sanitize_internal_links():
    assert sanitize_internal_links("Leia [LINK: o guia](INTERNAL) hoje") == "Leia [o guia](/blog) hoje"


def test_extract_faq_schema():
    body, faq = extract_faq_schema("Antes\n<!-- FAQ_SCHEMA_START -->{\"a\": 1}<!-- FAQ_SCHEMA_END -->\nDepois")
    assert body == "Antes\n\nDepois"
    assert faq == '{"a": 1}'

    assert extract_faq_schema("  Só texto  ") == ("Só texto", None)


def test_safe_faq_schema():
    assert safe_faq_schema('{"q": "Olá"}') == '{"q": "Olá"}'
    assert safe_faq_schema("{broken") is None
    assert safe_faq_schema(None) is None


def test_normalize_list_payload():
    assert normalize_list_payload([{"slug": "a"}]) == [{"slug": "a"}]
    assert normalize_list_payload({"contents": [{"slug": "b"}]}) == [{"slug": "b"}]
    assert normalize_list_payload({"unexpected": True}) == []


@pytest.mark.anyio
async def test_get_article_cleans_markdown(feed):
    article = await feed.get_article("lista-de-casamento")
    assert article["slug"] == "lista-de-casamento"
    assert article["markdown"] == "# Como montar\n\nVeja [nossas dicas](/blog).\n\nFim."
    assert json.loads(article["faqSchema"]) == {"@type": "FAQPage", "mainEntity": []}


@pytest.mark.anyio
async def test_feed_responses_are_cached(feed, feed_server):
    await feed.list_articles()
    await feed.list_articles()
    assert feed_server.requests == ["/api/content/demo/list"]
    assert feed.cache.stats()["hits"] == 1

    assert await feed.purge() == 1
    await feed.list_articles()
    assert len(feed_server.requests) == 2


@pytest.mark.anyio
async def test_feed_errors(feed):
    with pytest.raises(ContentFeedError) as excinfo:
        await feed.get_article("nao-existe")
    assert excinfo.value.status_code == 404

    unconfigured = ContentFeed(base_url="", project_slug="demo", cache=ContentCache(redis_dsn=""))
    with pytest.raises(ContentFeedError):
        await unconfigured.list_articles()


@pytest.mark.anyio
async def test_memory_cache_expires_and_caps():
    cache = ContentCache(redis_dsn="", ttl_seconds=10, max_items=2)

    await cache.set("a", {"v": 1})
    await cache.set("b", {"v": 2})
    await cache.set("c", {"v": 3})
    assert await cache.get("a") is None
    assert await cache.get("c") == {"v": 3}

    # Age the entry past its deadline.
    key = "content:c"
    _, payload = cache._memory[key]
    cache._memory[key] = (0.0, payload)
    assert await cache.get("c") is None
    assert cache.stats()["backend"] == "memory"


@pytest.mark.anyio
async def test_blog_routes(async_client, feed_app):
    res = await async_client.get("/blog")
    assert res.status_code == 200
    assert res.json() == [{"slug": "lista-de-casamento", "title": "Lista"}]

    res = await async_client.get("/blog-sitemap")
    assert res.json()[0]["slug"] == "lista-de-casamento"

    res = await async_client.get("/blog/lista-de-casamento")
    assert res.status_code == 200
    assert "FAQ_SCHEMA" not in res.json()["markdown"]

    assert (await async_client.get("/blog/nao-existe")).status_code == 404
    assert (await async_client.get("/blog/quebrado")).status_code == 502


@pytest.mark.anyio
async def test_revalidate_webhook(async_client, feed_app, feed_server):
    await async_client.get("/blog")

    res = await async_client.post("/api/slop/revalidate", json={"projectSlug": "demo"})
    assert res.status_code == 401

    res = await async_client.post(
        "/api/slop/revalidate",
        json={"projectSlug": "other"},
        headers={"Authorization": "Bearer webhook-secret"},
    )
    assert res.json() == {"ok": True, "ignored": True, "reason": "project_slug_mismatch"}

    res = await async_client.post(
        "/api/slop/revalidate",
        json={"projectSlug": "demo", "event": "content.published", "slugs": ["lista-de-casamento"]},
        headers={"Authorization": "Bearer webhook-secret"},
    )
    assert res.status_code == 200
    assert res.json()["ok"] is True
    assert res.json()["received"]["slugs"] == ["lista-de-casamento"]

    await async_client.get("/blog")
    assert feed_server.requests == ["/api/content/demo/list", "/api/content/demo/list"]


@pytest.mark.anyio
async def test_revalidate_without_secret(async_client, feed_app, monkeypatch):
    from mywish.core.config import settings

    monkeypatch.setattr(settings, "content_webhook_secret", "")
    res = await async_client.post("/api/slop/revalidate", json={})
    assert res.status_code == 500
    assert res.json()["ok"] is False


@pytest.mark.anyio
async def test_site_config_defaults_and_overrides(async_client, session_factory):
    res = await async_client.get("/config/site")
    assert res.status_code == 200
    defaults = res.json()
    assert defaults["partnerOneName"] == ""
    assert defaults["thankYouMessage"].startswith("Muito obrigado")

    async with session_factory() as session:
        session.add(SiteConfig(key="partnerOneName", value="Ana"))
        session.add(SiteConfig(key="internalFlag", value="x"))
        await session.commit()

    res = await async_client.get("/config/site")
    assert res.json()["partnerOneName"] == "Ana"
    assert "internalFlag" not in res.json()


async def _scan(*keys):
    for key in keys:
        yield key


@pytest.mark.anyio
async def test_redis_cache_roundtrip():
    cache = ContentCache(redis_dsn="redis://cache:6379/0", ttl_seconds=60)
    mock_redis = AsyncMock()
    mock_redis.get = AsyncMock(return_value=json.dumps([{"slug": "a"}]))
    mock_redis.setex = AsyncMock(return_value=True)
    cache._redis = mock_redis

    assert await cache.get("demo:list") == [{"slug": "a"}]
    mock_redis.get.assert_awaited_once_with("content:demo:list")

    await cache.set("demo:list", [{"slug": "b"}])
    mock_redis.setex.assert_awaited_once_with("content:demo:list", 60, json.dumps([{"slug": "b"}]))
    assert cache.stats()["backend"] == "redis"

    mock_redis.scan_iter = lambda match: _scan("content:demo:list", "content:demo:sitemap")
    mock_redis.delete = AsyncMock(return_value=2)
    assert await cache.purge() == 2


@pytest.mark.anyio
async def test_redis_failure_falls_back_to_memory():
    cache = ContentCache(redis_dsn="redis://cache:6379/0", ttl_seconds=60)
    mock_redis = AsyncMock()
    mock_redis.get = AsyncMock(side_effect=redis.ConnectionError("down"))
    cache._redis = mock_redis

    assert await cache.get("demo:list") is None
    stats = cache.stats()
    assert stats["errors"] == 1
    assert stats["backend"] == "memory"

    # Redis is cooling down, so writes land in memory.
    await cache.set("demo:list", {"ok": True})
    assert await cache.get("demo:list") == {"ok": True}
