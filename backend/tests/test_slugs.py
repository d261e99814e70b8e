import re

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import create_user
from mywish.core import errors
from mywish.models.models import Event
from mywish.services import slugs


def test_slug_base_joins_hosts_and_strips_accents():
    assert slugs.slug_base("Chá de Panela", ["Ana Silva", "Ana Souza"]) == "ana-silva-ana-souza-cha-de-panela"


def test_slug_base_uses_first_two_hosts_only():
    assert slugs.slug_base("Festa", ["João", "Maria", "Pedro"]) == "joao-maria-festa"


def test_slug_base_without_hosts_and_symbols():
    assert slugs.slug_base("  Casamento!!  2025 ", []) == "casamento-2025"


def test_slug_base_falls_back_when_empty():
    assert slugs.slug_base("!!!", ["   "]) == "evento"


def test_fold_ignores_case_and_accents():
    assert slugs.fold("CHÁ de Panela") == "cha de panela"


def test_random_suffix_range():
    for _ in range(200):
        assert 1000 <= slugs.random_suffix() <= 9999


def _add_event(session, slug: str, user_id: int) -> None:
    session.add(
        Event(
            name="Existing",
            slug=slug,
            event_type="wedding",
            hosts=["Ana"],
            partner_one_name="Ana",
            created_by_user_id=user_id,
        )
    )


@pytest.mark.anyio
async def test_insert_with_unique_slug_matches_pattern(session_factory):
    user = await create_user(session_factory)
    async with session_factory() as session:

        async def insert(slug: str) -> None:
            _add_event(session, slug, user.id)
            await session.commit()

        slug = await slugs.insert_with_unique_slug(session, "Chá de Panela", ["Ana Silva", "Ana Souza"], insert)
        assert await slugs.slug_exists(session, slug)
    assert re.fullmatch(r"ana-silva-ana-souza-cha-de-panela-\d{4}", slug)


@pytest.mark.anyio
async def test_insert_with_unique_slug_skips_taken_candidates(session_factory, monkeypatch):
    user = await create_user(session_factory)
    inserted: list[str] = []
    async with session_factory() as session:
        _add_event(session, "festa-1234", user.id)
        await session.commit()

        suffixes = iter([1234, 1234, 5678])
        monkeypatch.setattr(slugs, "random_suffix", lambda: next(suffixes))

        async def insert(slug: str) -> None:
            inserted.append(slug)

        slug = await slugs.insert_with_unique_slug(session, "Festa", [], insert)
    assert slug == "festa-5678"
    assert inserted == ["festa-5678"]


@pytest.mark.anyio
async def test_insert_with_unique_slug_gives_up_after_attempt_budget(session_factory, monkeypatch):
    user = await create_user(session_factory)
    async with session_factory() as session:
        _add_event(session, "festa-1234", user.id)
        await session.commit()

        calls = []

        def always_same():
            calls.append(1)
            return 1234

        async def insert(slug: str) -> None:
            raise AssertionError("no free candidate should reach insert")

        monkeypatch.setattr(slugs, "random_suffix", always_same)
        with pytest.raises(errors.SlugGenerationFailed):
            await slugs.insert_with_unique_slug(session, "Festa", [], insert)
    assert len(calls) == 10


@pytest.mark.anyio
async def test_insert_with_unique_slug_retries_lost_race(session_factory, monkeypatch):
    user = await create_user(session_factory)
    suffixes = iter([1111, 2222])
    monkeypatch.setattr(slugs, "random_suffix", lambda: next(suffixes))
    attempts: list[str] = []

    async with session_factory() as session:

        async def insert(slug: str) -> None:
            attempts.append(slug)
            if slug == "festa-1111":
                # Another request commits the same slug between lookup and insert.
                async with session_factory() as other:
                    _add_event(other, slug, user.id)
                    await other.commit()
            _add_event(session, slug, user.id)
            await session.commit()

        slug = await slugs.insert_with_unique_slug(session, "Festa", [], insert)

    assert slug == "festa-2222"
    assert attempts == ["festa-1111", "festa-2222"]


@pytest.mark.anyio
async def test_insert_with_unique_slug_reraises_unrelated_integrity_error(session_factory):
    async with session_factory() as session:

        async def insert(slug: str) -> None:
            raise IntegrityError("INSERT", {}, Exception("other constraint"))

        with pytest.raises(IntegrityError):
            await slugs.insert_with_unique_slug(session, "Festa", [], insert)
