from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mywish.core.patch import FieldPatch, patches_from_model
from mywish.models.models import GiftStatusEnum


class GiftBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    category: str | None = Field(default=None, max_length=120)
    reference_url: str | None = Field(default=None, max_length=2048)
    image_ref: str | None = None

    @field_validator("name")
    @classmethod
    def _name_strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("description", "category", "reference_url", "image_ref")
    @classmethod
    def _normalize_optional(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


class GiftCreate(GiftBase):
    pass


class GiftCreated(BaseModel):
    gift_id: int


GIFT_PATCH_FIELDS = ("name", "description", "category", "reference_url", "image_ref")


class GiftUpdate(BaseModel):
    """Partial update.

    ``image_ref`` is three-state on the wire: absent keeps the image, ``null``
    removes it and a reference replaces it.
    """

    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    category: str | None = Field(default=None, max_length=120)
    reference_url: str | None = Field(default=None, max_length=2048)
    image_ref: str | None = None

    @field_validator("name", "description", "category", "reference_url", "image_ref")
    @classmethod
    def _normalize_update(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    def patches(self) -> dict[str, FieldPatch]:
        return patches_from_model(self, GIFT_PATCH_FIELDS)


class GiftPublic(BaseModel):
    id: int
    event_id: int
    name: str
    description: str | None = None
    category: str | None = None
    reference_url: str | None = None
    image_ref: str | None = None
    image_url: str | None = None
    status: GiftStatusEnum
    reserved_by_user_id: int | None = None
    reserved_at: datetime | None = None
    reserved_by_name: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
