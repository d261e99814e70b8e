from datetime import date, datetime, timezone
from enum import Enum as StrEnumBase

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mywish.db.session import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemberRoleEnum(str, StrEnumBase):
    HOST = "host"
    GUEST = "guest"


class GiftStatusEnum(str, StrEnumBase):
    AVAILABLE = "available"
    RESERVED = "reserved"
    RECEIVED = "received"


class CreatedByPartnerEnum(str, StrEnumBase):
    PARTNER_ONE = "partnerOne"
    PARTNER_TWO = "partnerTwo"


class EventTypeEnum(str, StrEnumBase):
    WEDDING = "wedding"
    ENGAGEMENT = "engagement"
    BRIDAL_SHOWER = "bridal_shower"
    HOUSEWARMING = "housewarming"
    ANNIVERSARY = "anniversary"
    BABY_SHOWER = "baby_shower"
    BIRTHDAY = "birthday"
    GRADUATION = "graduation"
    OTHER = "other"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    custom_event_type: Mapped[str | None] = mapped_column(String(120), nullable=True)
    hosts: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    partner_one_name: Mapped[str] = mapped_column(String(120), nullable=False)
    partner_two_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    created_by_partner: Mapped[str | None] = mapped_column(String(20), nullable=True)
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    cover_image_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class EventMember(Base):
    __tablename__ = "event_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(10), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="ux_event_members_event_user"),
        CheckConstraint("role IN ('host', 'guest')", name="ck_event_members_role"),
    )


class EventConfig(Base):
    __tablename__ = "event_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    key: Mapped[str] = mapped_column(String(80), nullable=False)
    value: Mapped[str] = mapped_column(String(2000), nullable=False)

    __table_args__ = (
        UniqueConstraint("event_id", "key", name="ux_event_configs_event_key"),
    )


class SiteConfig(Base):
    __tablename__ = "site_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(80), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(String(2000), nullable=False)


class Gift(Base):
    __tablename__ = "gifts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    category: Mapped[str | None] = mapped_column(String(120), nullable=True)
    reference_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    image_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=GiftStatusEnum.AVAILABLE.value,
        index=True,
    )
    reserved_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    reserved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('available', 'reserved', 'received')",
            name="ck_gifts_status",
        ),
        CheckConstraint(
            "(status = 'available' AND reserved_by_user_id IS NULL AND reserved_at IS NULL)"
            " OR (status != 'available' AND reserved_by_user_id IS NOT NULL AND reserved_at IS NOT NULL)",
            name="ck_gifts_reservation_consistent",
        ),
    )
