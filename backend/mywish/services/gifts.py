"""Gift records and the reservation state machine."""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mywish.core import errors
from mywish.core.audit import AuditAction, audit_gift_action
from mywish.core.locks import KeyedLocks
from mywish.core.media import blob_store
from mywish.core.patch import FieldPatch, PatchAction
from mywish.models.models import Event, Gift, GiftStatusEnum, User, utcnow
from mywish.schemas.gift import GiftCreate, GiftPublic
from mywish.services import membership


logger = logging.getLogger("mywish.gifts")

_gift_locks = KeyedLocks()


def _display_name(name: str | None) -> str | None:
    if not name:
        return None
    return name.strip() or None


def serialize_gift(gift: Gift, reserved_by_name: str | None = None) -> GiftPublic:
    data = GiftPublic.model_validate(gift)
    data.reserved_by_name = _display_name(reserved_by_name)
    data.image_url = blob_store.resolve(gift.image_ref) if gift.image_ref else None
    return data


async def get_gift(db: AsyncSession, gift_id: int) -> Gift:
    gift = await db.get(Gift, gift_id)
    if gift is None:
        raise errors.NotFound("Presente não encontrado")
    return gift


async def list_gifts_for_event(db: AsyncSession, event_id: int) -> list[GiftPublic]:
    result = await db.execute(
        select(Gift, User.name)
        .outerjoin(User, User.id == Gift.reserved_by_user_id)
        .where(Gift.event_id == event_id)
        .order_by(Gift.created_at.asc(), Gift.id.asc())
    )
    return [serialize_gift(gift, reserved_by_name) for gift, reserved_by_name in result.all()]


async def create_gift(db: AsyncSession, caller_id: int | None, event_id: int, payload: GiftCreate) -> int:
    event = await db.get(Event, event_id)
    if event is None:
        raise errors.NotFound("Evento não encontrado")
    await membership.require_host(db, event_id, caller_id)

    if not payload.name:
        raise errors.ValidationError("O nome do presente é obrigatório")
    blob_store.validate_ref(payload.image_ref)

    gift = Gift(
        event_id=event_id,
        name=payload.name,
        description=payload.description,
        category=payload.category,
        reference_url=payload.reference_url,
        image_ref=payload.image_ref,
        status=GiftStatusEnum.AVAILABLE.value,
        created_at=utcnow(),
    )
    db.add(gift)
    await db.commit()
    await db.refresh(gift)

    logger.info("Gift created gift_id=%s event_id=%s", gift.id, event_id)
    audit_gift_action(AuditAction.GIFT_CREATE, caller_id, gift.id, event_id)
    return gift.id


async def update_gift(
    db: AsyncSession,
    caller_id: int | None,
    gift_id: int,
    patches: dict[str, FieldPatch],
) -> GiftPublic:
    """Apply a partial update; the status and reservation fields are never touched."""
    gift = await get_gift(db, gift_id)
    await membership.require_host(db, gift.event_id, caller_id)

    name_patch = patches.get("name", FieldPatch.keep())
    if name_patch.action is PatchAction.CLEAR or (
        name_patch.action is PatchAction.REPLACE and not (name_patch.value or "").strip()
    ):
        raise errors.ValidationError("O nome do presente é obrigatório")

    image_patch = patches.get("image_ref", FieldPatch.keep())
    if image_patch.action is PatchAction.REPLACE:
        blob_store.validate_ref(image_patch.value)

    released_ref = None
    if not image_patch.is_keep and gift.image_ref and gift.image_ref != image_patch.value:
        released_ref = gift.image_ref

    for field in ("name", "description", "category", "reference_url", "image_ref"):
        patch = patches.get(field)
        if patch is None or patch.is_keep:
            continue
        setattr(gift, field, patch.apply(getattr(gift, field)))

    await db.commit()
    await db.refresh(gift)

    if released_ref:
        blob_store.release(released_ref)

    logger.info("Gift updated gift_id=%s", gift.id)
    audit_gift_action(AuditAction.GIFT_UPDATE, caller_id, gift.id, gift.event_id)

    reserved_by_name = None
    if gift.reserved_by_user_id is not None:
        reserver = await db.get(User, gift.reserved_by_user_id)
        reserved_by_name = reserver.name if reserver else None
    return serialize_gift(gift, reserved_by_name)


async def delete_gift(db: AsyncSession, caller_id: int | None, gift_id: int) -> None:
    gift = await get_gift(db, gift_id)
    await membership.require_host(db, gift.event_id, caller_id)

    event_id = gift.event_id
    if gift.image_ref:
        blob_store.release(gift.image_ref)
    await db.delete(gift)
    await db.commit()

    logger.info("Gift deleted gift_id=%s event_id=%s", gift_id, event_id)
    audit_gift_action(AuditAction.GIFT_DELETE, caller_id, gift_id, event_id)


async def reserve_gift(db: AsyncSession, gift_id: int, caller_id: int | None) -> None:
    """Claim a gift for the caller.

    Exactly one of several concurrent attempts on the same gift succeeds; the
    others get ``AlreadyClaimed``. The guest membership created on the way is
    kept even when the claim itself loses.
    """
    if caller_id is None:
        raise errors.Unauthenticated()

    async with _gift_locks.hold(gift_id):
        gift = await get_gift(db, gift_id)
        if gift.status != GiftStatusEnum.AVAILABLE.value:
            raise errors.AlreadyClaimed()
        event_id = gift.event_id

        await membership.ensure_guest(db, event_id, caller_id)

        result = await db.execute(
            update(Gift)
            .where(Gift.id == gift_id)
            .where(Gift.status == GiftStatusEnum.AVAILABLE.value)
            .values(
                status=GiftStatusEnum.RESERVED.value,
                reserved_by_user_id=caller_id,
                reserved_at=utcnow(),
            )
        )
        if result.rowcount != 1:
            await db.rollback()
            logger.info("Reservation lost gift_id=%s user_id=%s", gift_id, caller_id)
            raise errors.AlreadyClaimed()
        await db.commit()

    logger.info("Gift reserved gift_id=%s user_id=%s", gift_id, caller_id)
    audit_gift_action(AuditAction.GIFT_RESERVE, caller_id, gift_id, event_id)
