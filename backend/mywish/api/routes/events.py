from fastapi import APIRouter, Query, status

from mywish.api.deps import DbSessionDep, OptionalUserDep
from mywish.schemas.event import (
    EventConfigEntry,
    EventCreate,
    EventCreated,
    EventPublic,
    EventTypeOption,
    EventUpdate,
    MembershipPublic,
    MyEventItem,
    MyEventsGrouped,
)
from mywish.schemas.gift import GiftCreate, GiftCreated, GiftPublic
from mywish.services import events as event_service
from mywish.services import gifts as gift_service
from mywish.services import membership


router = APIRouter(prefix="/events", tags=["events"])


def _caller_id(user: OptionalUserDep) -> int | None:
    return user.id if user else None


@router.get("/types", response_model=list[EventTypeOption])
async def list_event_types() -> list[EventTypeOption]:
    return event_service.list_event_types()


@router.post("", response_model=EventCreated, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate,
    db: DbSessionDep,
    current_user: OptionalUserDep,
) -> EventCreated:
    event_id, slug = await event_service.create_event(db, _caller_id(current_user), payload)
    return EventCreated(event_id=event_id, slug=slug)


@router.get("/by-slug/{slug}", response_model=EventPublic | None)
async def get_event_by_slug(slug: str, db: DbSessionDep) -> EventPublic | None:
    event = await event_service.get_event_by_slug(db, slug)
    return event_service.serialize_event(event) if event else None


@router.get("/search", response_model=list[EventPublic])
async def search_public_events(
    db: DbSessionDep,
    search: str | None = Query(default=None, max_length=200),
) -> list[EventPublic]:
    found = await event_service.search_public_events(db, search)
    return [event_service.serialize_event(event) for event in found]


@router.get("/mine", response_model=list[MyEventItem])
async def list_my_events(db: DbSessionDep, current_user: OptionalUserDep) -> list[MyEventItem]:
    return await event_service.list_events_for_user(db, _caller_id(current_user))


@router.get("/mine/grouped", response_model=MyEventsGrouped)
async def list_my_events_grouped(db: DbSessionDep, current_user: OptionalUserDep) -> MyEventsGrouped:
    return await event_service.list_my_events_grouped(db, _caller_id(current_user))


@router.patch("/{event_id}", response_model=EventPublic)
async def update_event(
    event_id: int,
    payload: EventUpdate,
    db: DbSessionDep,
    current_user: OptionalUserDep,
) -> EventPublic:
    return await event_service.update_event(db, _caller_id(current_user), event_id, payload.patches())


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(event_id: int, db: DbSessionDep, current_user: OptionalUserDep) -> None:
    await event_service.delete_event(db, _caller_id(current_user), event_id)


@router.get("/{event_id}/membership", response_model=MembershipPublic | None)
async def get_my_membership(
    event_id: int,
    db: DbSessionDep,
    current_user: OptionalUserDep,
) -> MembershipPublic | None:
    member = await membership.get_membership(db, event_id, _caller_id(current_user))
    return MembershipPublic.model_validate(member) if member else None


@router.post("/{event_id}/join", response_model=MembershipPublic)
async def join_event(event_id: int, db: DbSessionDep, current_user: OptionalUserDep) -> MembershipPublic:
    member = await event_service.join_event(db, _caller_id(current_user), event_id)
    return MembershipPublic.model_validate(member)


@router.get("/{event_id}/config", response_model=list[EventConfigEntry])
async def get_event_config(event_id: int, db: DbSessionDep) -> list[EventConfigEntry]:
    entries = await event_service.get_event_config(db, event_id)
    return [EventConfigEntry.model_validate(entry) for entry in entries]


@router.put("/{event_id}/config", response_model=EventConfigEntry)
async def set_event_config(
    event_id: int,
    payload: EventConfigEntry,
    db: DbSessionDep,
    current_user: OptionalUserDep,
) -> EventConfigEntry:
    entry = await event_service.set_event_config(
        db, _caller_id(current_user), event_id, payload.key, payload.value
    )
    return EventConfigEntry.model_validate(entry)


@router.get("/{event_id}/gifts", response_model=list[GiftPublic])
async def list_gifts(event_id: int, db: DbSessionDep) -> list[GiftPublic]:
    return await gift_service.list_gifts_for_event(db, event_id)


@router.post("/{event_id}/gifts", response_model=GiftCreated, status_code=status.HTTP_201_CREATED)
async def create_gift(
    event_id: int,
    payload: GiftCreate,
    db: DbSessionDep,
    current_user: OptionalUserDep,
) -> GiftCreated:
    gift_id = await gift_service.create_gift(db, _caller_id(current_user), event_id, payload)
    return GiftCreated(gift_id=gift_id)
