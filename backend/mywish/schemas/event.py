from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mywish.core.patch import FieldPatch, patches_from_model
from mywish.models.models import CreatedByPartnerEnum, EventTypeEnum


def _strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class EventTypeOption(BaseModel):
    value: EventTypeEnum
    label: str
    supports_pair_names: bool


class EventCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    event_type: EventTypeEnum
    custom_event_type: str | None = Field(default=None, max_length=120)
    hosts: list[str] = Field(default_factory=list)
    is_public: bool = False
    created_by_partner: CreatedByPartnerEnum | None = None
    event_date: date | None = None
    location: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    cover_image_ref: str | None = None

    @field_validator("name")
    @classmethod
    def _event_name_strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("custom_event_type", "location", "description", "cover_image_ref")
    @classmethod
    def _event_optional_strip(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class EventCreated(BaseModel):
    event_id: int
    slug: str


EVENT_PATCH_FIELDS = (
    "name",
    "event_type",
    "custom_event_type",
    "hosts",
    "is_public",
    "created_by_partner",
    "event_date",
    "location",
    "description",
    "cover_image_ref",
)


class EventUpdate(BaseModel):
    """Partial update: omitted fields are kept, ``null`` clears optional ones."""

    name: str | None = Field(default=None, min_length=1, max_length=120)
    event_type: EventTypeEnum | None = None
    custom_event_type: str | None = Field(default=None, max_length=120)
    hosts: list[str] | None = None
    is_public: bool | None = None
    created_by_partner: CreatedByPartnerEnum | None = None
    event_date: date | None = None
    location: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    cover_image_ref: str | None = None

    @field_validator("name", "custom_event_type", "location", "description", "cover_image_ref")
    @classmethod
    def _update_strip(cls, value: str | None) -> str | None:
        return _strip_optional(value)

    def patches(self) -> dict[str, FieldPatch]:
        return patches_from_model(self, EVENT_PATCH_FIELDS)


class EventPublic(BaseModel):
    id: int
    name: str
    slug: str
    event_type: str
    event_type_label: str
    custom_event_type: str | None = None
    hosts: list[str]
    display_host_names: list[str] = []
    is_public: bool
    partner_one_name: str
    partner_two_name: str | None = None
    created_by_user_id: int
    created_by_partner: str | None = None
    event_date: date | None = None
    location: str | None = None
    description: str | None = None
    cover_image_ref: str | None = None
    cover_image_url: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MyEventItem(BaseModel):
    event_id: int
    role: str
    name: str
    slug: str


class MyEventsGrouped(BaseModel):
    host: list[EventPublic] = []
    guest: list[EventPublic] = []


class MembershipPublic(BaseModel):
    id: int
    event_id: int
    user_id: int
    role: str
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EventConfigEntry(BaseModel):
    key: str = Field(min_length=1, max_length=80)
    value: str = Field(max_length=2000)

    model_config = ConfigDict(from_attributes=True)
