import asyncio
import json
import logging
import time
from typing import Any

import redis.asyncio as redis

from mywish.core.config import settings


logger = logging.getLogger("mywish.content_cache")

KEY_PREFIX = "content:"


class ContentCache:
    """TTL cache for content feed responses.

    Uses Redis when ``content_cache_redis_dsn`` is configured and keeps entries in
    process memory otherwise (or while Redis is cooling down after a failure).
    """

    def __init__(
        self,
        redis_dsn: str | None = None,
        ttl_seconds: int | None = None,
        max_items: int | None = None,
    ) -> None:
        self._redis_dsn = settings.content_cache_redis_dsn if redis_dsn is None else redis_dsn
        self._ttl = ttl_seconds or settings.content_cache_ttl_seconds
        self._max_items = max_items or settings.content_cache_max_items
        self._redis: redis.Redis | None = None
        self._connect_lock = asyncio.Lock()
        self._cooldown_until_monotonic = 0.0
        self._connect_failures = 0
        self._memory: dict[str, tuple[float, str]] = {}
        self._hits = 0
        self._misses = 0
        self._errors = 0

    def _key(self, key: str) -> str:
        return f"{KEY_PREFIX}{key}"

    def _in_cooldown(self) -> bool:
        return time.monotonic() < self._cooldown_until_monotonic

    def _mark_redis_failed(self, exc: Exception) -> None:
        self._redis = None
        self._connect_failures += 1
        cooldown = min(60.0, 1.0 * (2 ** min(self._connect_failures, 6)))
        self._cooldown_until_monotonic = time.monotonic() + cooldown
        logger.warning(
            "ContentCache redis unavailable failures=%s cooldown_s=%.0f error=%s",
            self._connect_failures,
            cooldown,
            exc,
        )

    async def _get_redis(self) -> redis.Redis | None:
        if not self._redis_dsn or not self._redis_dsn.strip():
            return None
        if self._redis is not None:
            return self._redis
        if self._in_cooldown():
            return None
        async with self._connect_lock:
            if self._redis is not None:
                return self._redis
            if self._in_cooldown():
                return None
            try:
                client = redis.from_url(
                    self._redis_dsn,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
                await client.ping()
                self._redis = client
                self._connect_failures = 0
                logger.info("ContentCache connected redis=%s", self._redis_dsn)
            except redis.RedisError as exc:
                self._mark_redis_failed(exc)
        return self._redis

    def _mem_get(self, key: str) -> str | None:
        entry = self._memory.get(key)
        if not entry:
            return None
        expires_at, payload = entry
        if expires_at <= time.monotonic():
            self._memory.pop(key, None)
            return None
        return payload

    def _mem_set(self, key: str, payload: str) -> None:
        now = time.monotonic()
        self._memory[key] = (now + max(1, int(self._ttl)), payload)
        if len(self._memory) <= self._max_items:
            return
        for k in [k for k, (exp, _) in self._memory.items() if exp <= now]:
            self._memory.pop(k, None)
        overflow = len(self._memory) - self._max_items
        for k in list(self._memory.keys())[:max(0, overflow)]:
            self._memory.pop(k, None)

    async def get(self, key: str) -> Any | None:
        full_key = self._key(key)
        client = await self._get_redis()
        data: str | None
        if client is None:
            data = self._mem_get(full_key)
        else:
            try:
                data = await client.get(full_key)
            except redis.RedisError as exc:
                self._errors += 1
                self._mark_redis_failed(exc)
                data = self._mem_get(full_key)
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: Any) -> None:
        full_key = self._key(key)
        payload = json.dumps(value, ensure_ascii=False)
        client = await self._get_redis()
        if client is not None:
            try:
                await client.setex(full_key, max(1, int(self._ttl)), payload)
                return
            except redis.RedisError as exc:
                self._errors += 1
                self._mark_redis_failed(exc)
        self._mem_set(full_key, payload)

    async def purge(self) -> int:
        """Drop every cached entry and return how many were removed."""
        removed = len(self._memory)
        self._memory.clear()
        client = await self._get_redis()
        if client is not None:
            try:
                keys = [key async for key in client.scan_iter(match=f"{KEY_PREFIX}*")]
                if keys:
                    removed += await client.delete(*keys)
            except redis.RedisError as exc:
                self._errors += 1
                self._mark_redis_failed(exc)
        logger.info("ContentCache purged entries=%s", removed)
        return removed

    def stats(self) -> dict[str, Any]:
        return {
            "backend": "redis" if self._redis is not None else "memory",
            "hits": self._hits,
            "misses": self._misses,
            "errors": self._errors,
            "memory_items": len(self._memory),
        }


content_cache = ContentCache()
