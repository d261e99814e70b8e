"""Client-held event drafts, published once the user has signed in."""

from abc import ABC, abstractmethod
import logging
from pathlib import Path
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from mywish.client.api import RegistryClient
from mywish.core import errors
from mywish.schemas.event import EventCreate
from mywish.schemas.gift import GiftBase


logger = logging.getLogger("mywish.client.drafts")


class DraftGift(GiftBase):
    temp_id: str = Field(default_factory=lambda: uuid4().hex)


class Draft(BaseModel):
    event: EventCreate | None = None
    gifts: list[DraftGift] = []
    # Set once the event exists server side so a retried publish only sends the remaining gifts.
    published_event_id: int | None = None
    published_slug: str | None = None


class DraftStore(ABC):
    @abstractmethod
    def load(self) -> Draft:
        ...

    @abstractmethod
    def save(self, draft: Draft) -> None:
        ...

    def clear(self) -> None:
        self.save(Draft())

    def set_event(self, event: EventCreate) -> None:
        draft = self.load()
        draft.event = event
        self.save(draft)

    def add_gift(self, gift: DraftGift) -> DraftGift:
        draft = self.load()
        draft.gifts.append(gift)
        self.save(draft)
        return gift

    def remove_gift(self, temp_id: str) -> None:
        draft = self.load()
        draft.gifts = [gift for gift in draft.gifts if gift.temp_id != temp_id]
        self.save(draft)


class MemoryDraftStore(DraftStore):
    def __init__(self) -> None:
        self._draft = Draft()

    def load(self) -> Draft:
        return self._draft.model_copy(deep=True)

    def save(self, draft: Draft) -> None:
        self._draft = draft.model_copy(deep=True)


class FileDraftStore(DraftStore):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Draft:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Draft()
        try:
            return Draft.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("Discarding unreadable draft path=%s", self.path)
            return Draft()

    def save(self, draft: Draft) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(draft.model_dump_json(), encoding="utf-8")
        tmp.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


async def publish_draft(api: RegistryClient, drafts: DraftStore) -> dict[str, object]:
    """Create the drafted event and its gifts, then discard the draft.

    Returns ``{"event_id": ..., "slug": ...}``.
    """
    draft = drafts.load()
    if draft.published_event_id is None:
        if draft.event is None:
            raise errors.ValidationError("Nenhum rascunho de evento para publicar")
        created = await api.create_event(draft.event.model_dump(mode="json"))
        draft.published_event_id = created["event_id"]
        draft.published_slug = created["slug"]
        drafts.save(draft)
        logger.info("Draft event published event_id=%s", draft.published_event_id)

    event_id = draft.published_event_id
    while draft.gifts:
        gift = draft.gifts[0]
        await api.create_gift(event_id, gift.model_dump(mode="json", exclude={"temp_id"}))
        draft.gifts.pop(0)
        drafts.save(draft)

    result = {"event_id": event_id, "slug": draft.published_slug}
    drafts.clear()
    return result
