"""Event records, visibility, host-only mutations and per-event config."""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mywish.core import errors
from mywish.core.audit import AuditAction, audit_event_action
from mywish.core.config import settings
from mywish.core.media import blob_store
from mywish.core.patch import FieldPatch, PatchAction
from mywish.models.models import (
    CreatedByPartnerEnum,
    Event,
    EventConfig,
    EventMember,
    EventTypeEnum,
    Gift,
    MemberRoleEnum,
    utcnow,
)
from mywish.schemas.event import EventCreate, EventPublic, EventTypeOption, MyEventItem, MyEventsGrouped
from mywish.services import membership
from mywish.services.slugs import fold, insert_with_unique_slug


logger = logging.getLogger("mywish.events")


@dataclass(frozen=True)
class EventTypeInfo:
    label: str
    supports_pair_names: bool


EVENT_TYPES: dict[EventTypeEnum, EventTypeInfo] = {
    EventTypeEnum.WEDDING: EventTypeInfo("Casamento", True),
    EventTypeEnum.ENGAGEMENT: EventTypeInfo("Noivado", True),
    EventTypeEnum.BRIDAL_SHOWER: EventTypeInfo("Chá de panela", True),
    EventTypeEnum.HOUSEWARMING: EventTypeInfo("Chá de casa nova", True),
    EventTypeEnum.ANNIVERSARY: EventTypeInfo("Bodas", True),
    EventTypeEnum.BABY_SHOWER: EventTypeInfo("Chá de bebê", True),
    EventTypeEnum.BIRTHDAY: EventTypeInfo("Aniversário", False),
    EventTypeEnum.GRADUATION: EventTypeInfo("Formatura", False),
    EventTypeEnum.OTHER: EventTypeInfo("Outro", False),
}


def list_event_types() -> list[EventTypeOption]:
    return [
        EventTypeOption(value=value, label=info.label, supports_pair_names=info.supports_pair_names)
        for value, info in EVENT_TYPES.items()
    ]


def _type_info(event_type: str) -> EventTypeInfo:
    try:
        return EVENT_TYPES[EventTypeEnum(event_type)]
    except ValueError:
        return EVENT_TYPES[EventTypeEnum.OTHER]


def event_type_label(event: Event) -> str:
    if event.event_type == EventTypeEnum.OTHER.value and event.custom_event_type:
        return event.custom_event_type
    return _type_info(event.event_type).label


def normalize_hosts(hosts: Sequence[str] | None) -> list[str]:
    cleaned = [host.strip() for host in hosts or [] if host and host.strip()]
    return cleaned[: settings.event_max_hosts]


def display_host_names(hosts: Sequence[str]) -> list[str]:
    """First names, with the last-name initial added when first names repeat.

    ``["Ana Silva", "Ana Souza", "Bruno"]`` becomes ``["Ana S.", "Ana S.", "Bruno"]``.
    """
    cleaned = [host.strip() for host in hosts if host and host.strip()]
    first_names = [re.split(r"\s+", host)[0] for host in cleaned]
    counts: dict[str, int] = {}
    for first in first_names:
        counts[first.lower()] = counts.get(first.lower(), 0) + 1

    names = []
    for host, first in zip(cleaned, first_names):
        if counts[first.lower()] <= 1:
            names.append(first)
            continue
        parts = re.split(r"\s+", host)
        if len(parts) >= 2:
            names.append(f"{parts[0]} {parts[1][0].upper()}.")
        else:
            names.append(host)
    return names


def _partner_fields(event_type: str, hosts: list[str], created_by_partner: str | None) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "partner_one_name": hosts[0],
        "partner_two_name": hosts[1] if len(hosts) > 1 else None,
        "created_by_partner": None,
    }
    if _type_info(event_type).supports_pair_names and len(hosts) >= 2:
        fields["created_by_partner"] = created_by_partner or CreatedByPartnerEnum.PARTNER_ONE.value
    return fields


def _validate_custom_type(event_type: str, custom_event_type: str | None) -> None:
    if event_type == EventTypeEnum.OTHER.value and not (custom_event_type or "").strip():
        raise errors.ValidationError("Descreva o tipo do evento")


def serialize_event(event: Event) -> EventPublic:
    return EventPublic(
        id=event.id,
        name=event.name,
        slug=event.slug,
        event_type=event.event_type,
        event_type_label=event_type_label(event),
        custom_event_type=event.custom_event_type,
        hosts=list(event.hosts or []),
        display_host_names=display_host_names(event.hosts or []),
        is_public=event.is_public,
        partner_one_name=event.partner_one_name,
        partner_two_name=event.partner_two_name,
        created_by_user_id=event.created_by_user_id,
        created_by_partner=event.created_by_partner,
        event_date=event.event_date,
        location=event.location,
        description=event.description,
        cover_image_ref=event.cover_image_ref,
        cover_image_url=blob_store.resolve(event.cover_image_ref) if event.cover_image_ref else None,
        created_at=event.created_at,
    )


async def get_event(db: AsyncSession, event_id: int) -> Event:
    event = await db.get(Event, event_id)
    if event is None:
        raise errors.NotFound("Evento não encontrado")
    return event


async def get_event_by_slug(db: AsyncSession, slug: str) -> Event | None:
    result = await db.execute(select(Event).where(Event.slug == slug))
    return result.scalar_one_or_none()


async def create_event(db: AsyncSession, caller_id: int | None, payload: EventCreate) -> tuple[int, str]:
    """Create the event and the caller's host membership in one transaction."""
    if caller_id is None:
        raise errors.Unauthenticated()

    hosts = normalize_hosts(payload.hosts)
    if not hosts:
        raise errors.ValidationError("Informe pelo menos um anfitrião")
    name = payload.name.strip()
    if not name:
        raise errors.ValidationError("O nome do evento é obrigatório")
    event_type = payload.event_type.value
    _validate_custom_type(event_type, payload.custom_event_type)
    blob_store.validate_ref(payload.cover_image_ref)

    partner_fields = _partner_fields(
        event_type,
        hosts,
        payload.created_by_partner.value if payload.created_by_partner else None,
    )
    created: list[Event] = []

    async def _insert(slug: str) -> None:
        now = utcnow()
        event = Event(
            name=name,
            slug=slug,
            event_type=event_type,
            custom_event_type=payload.custom_event_type if event_type == EventTypeEnum.OTHER.value else None,
            hosts=hosts,
            is_public=payload.is_public,
            created_by_user_id=caller_id,
            event_date=payload.event_date,
            location=payload.location,
            description=payload.description,
            cover_image_ref=payload.cover_image_ref,
            created_at=now,
            **partner_fields,
        )
        db.add(event)
        await db.flush()
        db.add(
            EventMember(
                event_id=event.id,
                user_id=caller_id,
                role=MemberRoleEnum.HOST.value,
                joined_at=now,
            )
        )
        await db.commit()
        created.append(event)

    slug = await insert_with_unique_slug(db, name, hosts, _insert)
    event = created[-1]

    logger.info("Event created event_id=%s slug=%s user_id=%s", event.id, slug, caller_id)
    audit_event_action(AuditAction.EVENT_CREATE, caller_id, event.id, details={"slug": slug})
    return event.id, slug


def _require_value(patch: FieldPatch, message: str) -> None:
    if patch.action is PatchAction.CLEAR:
        raise errors.ValidationError(message)


async def update_event(
    db: AsyncSession,
    caller_id: int | None,
    event_id: int,
    patches: dict[str, FieldPatch],
) -> EventPublic:
    """Apply a partial update. The slug never changes."""
    event = await get_event(db, event_id)
    await membership.require_host(db, event_id, caller_id)

    def patch_for(field: str) -> FieldPatch:
        return patches.get(field, FieldPatch.keep())

    name_patch = patch_for("name")
    _require_value(name_patch, "O nome do evento é obrigatório")
    _require_value(patch_for("event_type"), "O tipo do evento é obrigatório")
    _require_value(patch_for("hosts"), "Informe pelo menos um anfitrião")
    _require_value(patch_for("is_public"), "Visibilidade inválida")

    name = name_patch.apply(event.name)
    if not (name or "").strip():
        raise errors.ValidationError("O nome do evento é obrigatório")

    type_value = patch_for("event_type").apply(event.event_type)
    event_type = type_value.value if isinstance(type_value, EventTypeEnum) else type_value
    custom_event_type = patch_for("custom_event_type").apply(event.custom_event_type)
    _validate_custom_type(event_type, custom_event_type)
    if event_type != EventTypeEnum.OTHER.value:
        custom_event_type = None

    hosts_patch = patch_for("hosts")
    hosts = normalize_hosts(hosts_patch.value) if not hosts_patch.is_keep else list(event.hosts or [])
    if not hosts:
        raise errors.ValidationError("Informe pelo menos um anfitrião")

    partner_value = patch_for("created_by_partner").apply(event.created_by_partner)
    if isinstance(partner_value, CreatedByPartnerEnum):
        partner_value = partner_value.value

    cover_patch = patch_for("cover_image_ref")
    if cover_patch.action is PatchAction.REPLACE:
        blob_store.validate_ref(cover_patch.value)
    released_ref = None
    if not cover_patch.is_keep and event.cover_image_ref and event.cover_image_ref != cover_patch.value:
        released_ref = event.cover_image_ref

    event.name = name.strip()
    event.event_type = event_type
    event.custom_event_type = custom_event_type
    event.hosts = hosts
    for field, value in _partner_fields(event_type, hosts, partner_value).items():
        setattr(event, field, value)
    event.is_public = patch_for("is_public").apply(event.is_public)
    event.event_date = patch_for("event_date").apply(event.event_date)
    event.location = patch_for("location").apply(event.location)
    event.description = patch_for("description").apply(event.description)
    event.cover_image_ref = cover_patch.apply(event.cover_image_ref)

    await db.commit()
    await db.refresh(event)

    if released_ref:
        blob_store.release(released_ref)

    logger.info("Event updated event_id=%s", event_id)
    audit_event_action(AuditAction.EVENT_UPDATE, caller_id, event_id)
    return serialize_event(event)


async def delete_event(db: AsyncSession, caller_id: int | None, event_id: int) -> None:
    """Delete the event with its gifts, configs and memberships.

    Blobs are released before the rows that reference them are removed.
    """
    event = await get_event(db, event_id)
    await membership.require_host(db, event_id, caller_id)

    image_refs = (
        await db.execute(select(Gift.image_ref).where(Gift.event_id == event_id).where(Gift.image_ref.is_not(None)))
    ).scalars().all()
    for ref in image_refs:
        blob_store.release(ref)
    if event.cover_image_ref:
        blob_store.release(event.cover_image_ref)

    await db.execute(delete(Gift).where(Gift.event_id == event_id))
    await db.execute(delete(EventConfig).where(EventConfig.event_id == event_id))
    await db.execute(delete(EventMember).where(EventMember.event_id == event_id))
    await db.delete(event)
    await db.commit()

    logger.info("Event deleted event_id=%s gifts_images=%d", event_id, len(image_refs))
    audit_event_action(AuditAction.EVENT_DELETE, caller_id, event_id)


def _search_haystack(event: Event) -> str:
    parts = [
        event.name,
        event.slug,
        event.event_type,
        _type_info(event.event_type).label,
        event.custom_event_type or "",
        " ".join(event.hosts or []),
        event.location or "",
        event.description or "",
    ]
    return fold(" ".join(parts))


async def search_public_events(db: AsyncSession, search: str | None = None) -> list[Event]:
    """Full scan over public events, matched ignoring case and accents."""
    needle = fold((search or "").strip())
    result = await db.execute(select(Event).where(Event.is_public.is_(True)).order_by(Event.id.asc()))
    matches: list[Event] = []
    for event in result.scalars():
        if needle and needle not in _search_haystack(event):
            continue
        matches.append(event)
        if len(matches) >= settings.event_search_limit:
            break
    return matches


async def _memberships_with_events(db: AsyncSession, user_id: int) -> list[tuple[EventMember, Event]]:
    result = await db.execute(
        select(EventMember, Event)
        .join(Event, Event.id == EventMember.event_id)
        .where(EventMember.user_id == user_id)
        .order_by(EventMember.joined_at.asc(), EventMember.id.asc())
    )
    return [(row[0], row[1]) for row in result.all()]


async def list_events_for_user(db: AsyncSession, user_id: int | None) -> list[MyEventItem]:
    if user_id is None:
        return []
    return [
        MyEventItem(event_id=event.id, role=member.role, name=event.name, slug=event.slug)
        for member, event in await _memberships_with_events(db, user_id)
    ]


async def list_my_events_grouped(db: AsyncSession, user_id: int | None) -> MyEventsGrouped:
    grouped = MyEventsGrouped()
    if user_id is None:
        return grouped
    for member, event in await _memberships_with_events(db, user_id):
        target = grouped.host if member.role == MemberRoleEnum.HOST.value else grouped.guest
        target.append(serialize_event(event))
    return grouped


async def join_event(db: AsyncSession, caller_id: int | None, event_id: int) -> EventMember:
    if caller_id is None:
        raise errors.Unauthenticated()
    await get_event(db, event_id)
    member = await membership.ensure_guest(db, event_id, caller_id)
    audit_event_action(AuditAction.EVENT_JOIN, caller_id, event_id, details={"role": member.role})
    return member


async def get_event_config(db: AsyncSession, event_id: int) -> list[EventConfig]:
    result = await db.execute(
        select(EventConfig).where(EventConfig.event_id == event_id).order_by(EventConfig.key.asc())
    )
    return list(result.scalars().all())


async def set_event_config(
    db: AsyncSession,
    caller_id: int | None,
    event_id: int,
    key: str,
    value: str,
) -> EventConfig:
    await get_event(db, event_id)
    await membership.require_host(db, event_id, caller_id)

    result = await db.execute(
        select(EventConfig).where(EventConfig.event_id == event_id).where(EventConfig.key == key)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        entry = EventConfig(event_id=event_id, key=key, value=value)
        db.add(entry)
    else:
        entry.value = value
    await db.commit()
    await db.refresh(entry)

    audit_event_action(AuditAction.EVENT_CONFIG_SET, caller_id, event_id, details={"config_key": key})
    return entry
