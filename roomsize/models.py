"""SQLAlchemy models for the RoomSize catalog.

Data Architecture Overview:
- Reference data (curated out of band, read-only to the app):
  Development → Street ←(house_schema_streets)→ HouseSchema → Room,
  Builder → HouseSchema
- Visitor submissions (insert-only): SchemaRequest, ProblemReport,
  MailingListEntry
- Telemetry (write-once): AnalyticsEvent

Key Concepts:
- A "schema" is a builder's named house model (e.g. "The Ashbourne")
- floor_level is the storey index, 0 = ground floor
- verified is set by data curators only, never by this application

See roomsize/schemas.py for the Pydantic request/response models.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .schemas import ProblemReportStatus, SchemaRequestStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


house_schema_streets = Table(
    "house_schema_streets",
    Base.metadata,
    Column("house_schema_id", Uuid, ForeignKey("house_schemas.id"), primary_key=True),
    Column("street_id", Uuid, ForeignKey("streets.id"), primary_key=True),
)


# =============================================================================
# REFERENCE DATA
# =============================================================================


class Development(Base):
    """A named group of streets, usually one builder's site."""

    __tablename__ = "developments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)

    streets: Mapped[list["Street"]] = relationship("Street", back_populates="development")

    def __repr__(self) -> str:
        return f"<Development {self.name}>"


class Street(Base):
    """A named road within a postcode area."""

    __tablename__ = "streets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    street_name: Mapped[str] = mapped_column(Text, nullable=False)
    postcode: Mapped[str | None] = mapped_column(String(10), index=True)
    postcode_area: Mapped[str | None] = mapped_column(
        String(10), index=True,
        doc="Outward code or area prefix, e.g. 'L1' or 'CH64'"
    )
    development_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("developments.id")
    )

    development: Mapped["Development"] = relationship(
        "Development", back_populates="streets"
    )
    house_schemas: Mapped[list["HouseSchema"]] = relationship(
        "HouseSchema", secondary=house_schema_streets, back_populates="streets"
    )

    def __repr__(self) -> str:
        return f"<Street {self.street_name} {self.postcode}>"


class Builder(Base):
    """A house-builder."""

    __tablename__ = "builders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)

    house_schemas: Mapped[list["HouseSchema"]] = relationship(
        "HouseSchema", back_populates="builder"
    )

    def __repr__(self) -> str:
        return f"<Builder {self.name}>"


class HouseSchema(Base):
    """A builder's house model with its floor plan and rooms."""

    __tablename__ = "house_schemas"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    builder_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("builders.id"))
    model_name: Mapped[str] = mapped_column(Text, nullable=False)
    bedrooms: Mapped[int | None] = mapped_column(Integer)
    property_type: Mapped[str | None] = mapped_column(String(50))
    year_from: Mapped[int | None] = mapped_column(Integer)
    year_to: Mapped[int | None] = mapped_column(Integer)
    floor_plan_url: Mapped[str | None] = mapped_column(Text)
    exterior_photo_url: Mapped[str | None] = mapped_column(Text)
    verified: Mapped[bool] = mapped_column(
        Boolean, default=False,
        doc="Set by curators once dimensions are checked against a real plan"
    )
    notes: Mapped[str | None] = mapped_column(Text)

    builder: Mapped["Builder"] = relationship("Builder", back_populates="house_schemas")
    rooms: Mapped[list["Room"]] = relationship(
        "Room",
        back_populates="house_schema",
    )
    streets: Mapped[list["Street"]] = relationship(
        "Street", secondary=house_schema_streets, back_populates="house_schemas"
    )

    def __repr__(self) -> str:
        return f"<HouseSchema {self.model_name}>"


class Room(Base):
    """One room of a house schema, dimensions in centimetres."""

    __tablename__ = "rooms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    house_schema_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("house_schemas.id"), nullable=False
    )
    room_name: Mapped[str] = mapped_column(Text, nullable=False)
    room_type: Mapped[str] = mapped_column(String(50), nullable=False)
    floor_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    length_cm: Mapped[int | None] = mapped_column(Integer)
    width_cm: Mapped[int | None] = mapped_column(Integer)
    height_cm: Mapped[int | None] = mapped_column(Integer)
    floor_area_sqm: Mapped[Decimal | None] = mapped_column(Numeric(8, 2))
    notes: Mapped[str | None] = mapped_column(Text)
    dimensions_need_verification: Mapped[bool | None] = mapped_column(Boolean, default=False)
    verification_reason: Mapped[str | None] = mapped_column(Text)

    house_schema: Mapped["HouseSchema"] = relationship("HouseSchema", back_populates="rooms")

    __table_args__ = (
        Index("ix_rooms_schema_floor_name", "house_schema_id", "floor_level", "room_name"),
    )

    def __repr__(self) -> str:
        return f"<Room {self.room_name} ({self.length_cm}x{self.width_cm})>"


# =============================================================================
# VISITOR SUBMISSIONS
# =============================================================================


class SchemaRequest(Base):
    """A visitor asking for a house type we have not mapped yet."""

    __tablename__ = "schema_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    postcode: Mapped[str | None] = mapped_column(Text)
    house_type: Mapped[str] = mapped_column(Text, nullable=False)
    builder_name: Mapped[str] = mapped_column(Text, nullable=False)
    development_name: Mapped[str | None] = mapped_column(Text)
    additional_info: Mapped[str | None] = mapped_column(Text)
    user_email: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default=SchemaRequestStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<SchemaRequest {self.postcode} {self.status}>"


class ProblemReport(Base):
    """A visitor report of wrong or missing dimensions."""

    __tablename__ = "schema_problem_reports"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    schema_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, doc="Weak reference to house_schemas.id; may point at nothing"
    )
    builder_name: Mapped[str] = mapped_column(Text, nullable=False)
    house_type: Mapped[str] = mapped_column(Text, nullable=False)
    problem_description: Mapped[str] = mapped_column(Text, nullable=False)
    user_email: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default=ProblemReportStatus.OPEN.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<ProblemReport {self.house_type} {self.status}>"


class MailingListEntry(Base):
    """Waitlist signup. The UNIQUE constraint on email is authoritative."""

    __tablename__ = "mailing_list"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(Text)
    last_name: Mapped[str | None] = mapped_column(Text)
    postcode: Mapped[str | None] = mapped_column(Text)
    builder_name: Mapped[str | None] = mapped_column(Text)
    house_type: Mapped[str | None] = mapped_column(Text)
    development_name: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str] = mapped_column(Text, nullable=False, default="roomsize_footer")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<MailingListEntry {self.email}>"


# =============================================================================
# TELEMETRY
# =============================================================================


class AnalyticsEvent(Base):
    """Write-once telemetry event. event_data is an opaque JSON payload."""

    __tablename__ = "analytics_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    event_data: Mapped[Any] = mapped_column(JSON, nullable=False, default=dict)
    user_id: Mapped[str | None] = mapped_column(String(100))
    session_id: Mapped[str | None] = mapped_column(String(100))
    page_url: Mapped[str | None] = mapped_column(Text)
    referrer: Mapped[str | None] = mapped_column(Text)
    user_agent: Mapped[str | None] = mapped_column(Text)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<AnalyticsEvent {self.event_type} {self.created_at}>"
