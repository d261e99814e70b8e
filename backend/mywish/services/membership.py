import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mywish.core import errors
from mywish.models.models import EventMember, MemberRoleEnum, utcnow


logger = logging.getLogger("mywish.membership")


async def get_membership(db: AsyncSession, event_id: int, user_id: int | None) -> EventMember | None:
    if user_id is None:
        return None
    result = await db.execute(
        select(EventMember)
        .where(EventMember.event_id == event_id)
        .where(EventMember.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def role_of(db: AsyncSession, event_id: int, user_id: int | None) -> str | None:
    membership = await get_membership(db, event_id, user_id)
    return membership.role if membership else None


async def require_host(db: AsyncSession, event_id: int, user_id: int | None) -> EventMember:
    if user_id is None:
        raise errors.Unauthenticated()
    membership = await get_membership(db, event_id, user_id)
    if membership is None or membership.role != MemberRoleEnum.HOST.value:
        logger.info("Host check failed event_id=%s user_id=%s", event_id, user_id)
        raise errors.ForbiddenNotHost()
    return membership


async def ensure_guest(db: AsyncSession, event_id: int, user_id: int) -> EventMember:
    """Return the caller's membership, inserting a guest row on first contact.

    Never changes the role of an existing row. Commits the new row; a
    concurrent insert for the same pair loses on the unique constraint and
    re-reads the winner.
    """
    existing = await get_membership(db, event_id, user_id)
    if existing:
        return existing

    membership = EventMember(
        event_id=event_id,
        user_id=user_id,
        role=MemberRoleEnum.GUEST.value,
        joined_at=utcnow(),
    )
    db.add(membership)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await get_membership(db, event_id, user_id)
        if existing is None:
            raise
        return existing
    logger.info("Guest membership created event_id=%s user_id=%s", event_id, user_id)
    return membership
