"""Three-state field updates: keep the stored value, clear it, or replace it."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel


T = TypeVar("T")


class PatchAction(str, Enum):
    KEEP = "keep"
    CLEAR = "clear"
    REPLACE = "replace"


@dataclass(frozen=True)
class FieldPatch(Generic[T]):
    action: PatchAction = PatchAction.KEEP
    value: T | None = None

    @classmethod
    def keep(cls) -> "FieldPatch[T]":
        return cls(PatchAction.KEEP)

    @classmethod
    def clear(cls) -> "FieldPatch[T]":
        return cls(PatchAction.CLEAR)

    @classmethod
    def replace(cls, value: T) -> "FieldPatch[T]":
        return cls(PatchAction.REPLACE, value)

    @property
    def is_keep(self) -> bool:
        return self.action is PatchAction.KEEP

    def apply(self, current: T | None) -> T | None:
        if self.action is PatchAction.KEEP:
            return current
        if self.action is PatchAction.CLEAR:
            return None
        return self.value


def patches_from_model(model: BaseModel, fields: tuple[str, ...]) -> dict[str, FieldPatch[Any]]:
    """Translate a request body into explicit patches.

    A field missing from the body is kept, an explicit ``null`` clears it and
    any other value replaces it.
    """
    patches: dict[str, FieldPatch[Any]] = {}
    for name in fields:
        if name not in model.model_fields_set:
            patches[name] = FieldPatch.keep()
            continue
        value = getattr(model, name)
        patches[name] = FieldPatch.clear() if value is None else FieldPatch.replace(value)
    return patches
