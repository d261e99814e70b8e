"""Pending user intents that survive a login redirect.

At most one intent is stored at a time; staging a new one replaces the old.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any


logger = logging.getLogger("mywish.client.intents")


@dataclass(frozen=True)
class ReserveGiftIntent:
    gift_id: int
    kind: str = "reserve_gift"


@dataclass(frozen=True)
class PublishDraftIntent:
    kind: str = "publish_draft"


Intent = ReserveGiftIntent | PublishDraftIntent


def encode_intent(intent: Intent) -> dict[str, Any]:
    if isinstance(intent, ReserveGiftIntent):
        return {"kind": intent.kind, "gift_id": intent.gift_id}
    return {"kind": intent.kind}


def decode_intent(data: Any) -> Intent | None:
    """Parse a stored marker; anything unrecognized decodes to ``None``."""
    if not isinstance(data, dict):
        return None
    kind = data.get("kind")
    if kind == "reserve_gift":
        gift_id = data.get("gift_id")
        if isinstance(gift_id, int) and not isinstance(gift_id, bool):
            return ReserveGiftIntent(gift_id=gift_id)
        return None
    if kind == "publish_draft":
        return PublishDraftIntent()
    return None


class IntentStore(ABC):
    """Durable single slot for the pending intent."""

    @abstractmethod
    def load(self) -> Intent | None:
        ...

    @abstractmethod
    def save(self, intent: Intent) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemoryIntentStore(IntentStore):
    def __init__(self) -> None:
        self._intent: Intent | None = None

    def load(self) -> Intent | None:
        return self._intent

    def save(self, intent: Intent) -> None:
        self._intent = intent

    def clear(self) -> None:
        self._intent = None


class FileIntentStore(IntentStore):
    """Keeps the marker in a JSON file so it outlives the process."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Intent | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return decode_intent(json.loads(raw))
        except ValueError:
            logger.warning("Discarding unreadable intent marker path=%s", self.path)
            return None

    def save(self, intent: Intent) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(encode_intent(intent)), encoding="utf-8")
        tmp.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
