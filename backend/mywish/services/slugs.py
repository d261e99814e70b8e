"""Human-readable, collision-free event slugs."""

import logging
import random
import re
import unicodedata
from collections.abc import Awaitable, Callable, Iterator, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mywish.core import errors
from mywish.core.config import settings
from mywish.models.models import Event


logger = logging.getLogger("mywish.slugs")

SUFFIX_MIN = 1000
SUFFIX_MAX = 9999
FALLBACK_BASE = "evento"

_rng = random.SystemRandom()


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold(value: str) -> str:
    """Case- and accent-insensitive form used for comparisons."""
    return strip_diacritics(value.casefold())


def slug_base(name: str, hosts: Sequence[str]) -> str:
    host_part = "-".join(host.strip() for host in list(hosts)[:2] if host and host.strip())
    raw = f"{host_part}-{name}" if host_part else name
    slug = strip_diacritics(raw.lower())
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-") or FALLBACK_BASE


def random_suffix() -> int:
    return _rng.randint(SUFFIX_MIN, SUFFIX_MAX)


async def slug_exists(db: AsyncSession, slug: str) -> bool:
    result = await db.execute(select(Event.id).where(Event.slug == slug).limit(1))
    return result.scalar_one_or_none() is not None


def candidate_slugs(base: str, attempts: int | None = None) -> Iterator[str]:
    total = attempts or settings.slug_max_attempts
    for _ in range(total):
        yield f"{base}-{random_suffix()}"


async def insert_with_unique_slug(
    db: AsyncSession,
    name: str,
    hosts: Sequence[str],
    insert: Callable[[str], Awaitable[None]],
    *,
    attempts: int | None = None,
) -> str:
    """Look up a free slug and run ``insert(slug)``, retrying on a lost race.

    The existence check is not serialized with the insert; the unique index on
    ``events.slug`` catches the residual race.

    ``insert`` must flush/commit so that a duplicate slug surfaces as
    ``IntegrityError``; it is retried with a fresh candidate inside the same
    attempt budget.
    """
    base = slug_base(name, hosts)
    for candidate in candidate_slugs(base, attempts):
        if await slug_exists(db, candidate):
            logger.info("Slug collision slug=%s", candidate)
            continue
        try:
            await insert(candidate)
        except IntegrityError:
            await db.rollback()
            if not await slug_exists(db, candidate):
                raise
            logger.warning("Slug insert race lost slug=%s", candidate)
            continue
        return candidate
    logger.warning("Slug generation exhausted base=%s", base)
    raise errors.SlugGenerationFailed()
