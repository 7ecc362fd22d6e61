"""Pydantic models and loader for curated catalog files.

The catalog (developments, streets, builders, house schemas and rooms) is
curated out of band and loaded with scripts/seed_catalog.py. The app itself
never writes to these tables.

Catalog file layout:
    {
      "developments": [{"name": ..., "streets": [<street>, ...]}],
      "streets": [<street>, ...],              # streets outside a development
      "builders": [{"name": ..., "schemas": [<schema>, ...]}]
    }

A schema links to streets by (street_name, postcode), so every street a
schema names must be declared in the same file or already be in the
database.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from .models import Builder, Development, HouseSchema, Room, Street

logger = logging.getLogger(__name__)


# =============================================================================
# Input Models
# =============================================================================


class StreetIn(BaseModel):
    street_name: str = Field(min_length=1)
    postcode: str | None = Field(default=None, description="Full postcode, stored uppercased")
    postcode_area: str | None = Field(
        default=None,
        description="Outward code; derived from postcode when omitted"
    )

    @field_validator("postcode", "postcode_area")
    @classmethod
    def upper(cls, value: str | None) -> str | None:
        return value.strip().upper() if value else None

    def key(self) -> tuple[str, str | None]:
        return (self.street_name, self.postcode)

    def area(self) -> str | None:
        if self.postcode_area:
            return self.postcode_area
        if self.postcode and " " in self.postcode:
            return self.postcode.split(" ", 1)[0]
        return None


class StreetRef(BaseModel):
    street_name: str
    postcode: str | None = None

    @field_validator("postcode")
    @classmethod
    def upper(cls, value: str | None) -> str | None:
        return value.strip().upper() if value else None

    def key(self) -> tuple[str, str | None]:
        return (self.street_name, self.postcode)


class DevelopmentIn(BaseModel):
    name: str = Field(min_length=1)
    streets: list[StreetIn] = Field(default_factory=list)


class RoomIn(BaseModel):
    room_name: str = Field(min_length=1)
    room_type: str = Field(min_length=1)
    floor_level: int = Field(default=0, ge=0)
    length_cm: int | None = Field(default=None, gt=0)
    width_cm: int | None = Field(default=None, gt=0)
    height_cm: int | None = Field(default=None, gt=0)
    floor_area_sqm: Decimal | None = Field(
        default=None,
        description="Defaults to length × width when both are given"
    )
    notes: str | None = None
    dimensions_need_verification: bool = False
    verification_reason: str | None = None

    def computed_floor_area(self) -> Decimal | None:
        if self.floor_area_sqm is not None:
            return self.floor_area_sqm
        if self.length_cm and self.width_cm:
            area = Decimal(self.length_cm) * Decimal(self.width_cm) / Decimal(10_000)
            return area.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return None


class SchemaIn(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_name: str = Field(min_length=1)
    bedrooms: int | None = Field(default=None, ge=0)
    property_type: str | None = None
    year_from: int | None = None
    year_to: int | None = None
    floor_plan_url: str | None = None
    exterior_photo_url: str | None = None
    verified: bool = False
    notes: str | None = None
    rooms: list[RoomIn] = Field(default_factory=list)
    streets: list[StreetRef] = Field(default_factory=list)


class BuilderIn(BaseModel):
    name: str = Field(min_length=1)
    schemas: list[SchemaIn] = Field(default_factory=list)


class CatalogIn(BaseModel):
    developments: list[DevelopmentIn] = Field(default_factory=list)
    streets: list[StreetIn] = Field(default_factory=list)
    builders: list[BuilderIn] = Field(default_factory=list)


class SeedStats(BaseModel):
    """Counts from one catalog load."""

    developments: int = 0
    streets: int = 0
    builders: int = 0
    schemas: int = 0
    schemas_skipped: int = 0
    rooms: int = 0
    street_links: int = 0
    missing_streets: list[str] = Field(default_factory=list)


# =============================================================================
# Loader
# =============================================================================


def load_catalog(session: Session, catalog: CatalogIn) -> SeedStats:
    """Insert a catalog, reusing rows that already exist.

    Developments and builders are matched by name, streets by
    (street_name, postcode), schemas by (builder, model_name). An existing
    schema is left untouched, rooms included. Nothing is committed; the
    caller decides.
    """
    stats = SeedStats()
    streets: dict[tuple[str, str | None], Street] = {}

    def upsert_street(street_in: StreetIn, development: Development | None) -> None:
        if street_in.key() in streets:
            return
        street = (
            session.query(Street)
            .filter(Street.street_name == street_in.street_name, Street.postcode == street_in.postcode)
            .first()
        )
        if street is None:
            street = Street(
                street_name=street_in.street_name,
                postcode=street_in.postcode,
                postcode_area=street_in.area(),
                development=development,
            )
            session.add(street)
            stats.streets += 1
        streets[street_in.key()] = street

    for development_in in catalog.developments:
        development = session.query(Development).filter(Development.name == development_in.name).first()
        if development is None:
            development = Development(name=development_in.name)
            session.add(development)
            stats.developments += 1
        for street_in in development_in.streets:
            upsert_street(street_in, development)

    for street_in in catalog.streets:
        upsert_street(street_in, None)

    session.flush()

    for builder_in in catalog.builders:
        builder = session.query(Builder).filter(Builder.name == builder_in.name).first()
        if builder is None:
            builder = Builder(name=builder_in.name)
            session.add(builder)
            session.flush()
            stats.builders += 1

        for schema_in in builder_in.schemas:
            existing = (
                session.query(HouseSchema.id)
                .filter(HouseSchema.builder_id == builder.id, HouseSchema.model_name == schema_in.model_name)
                .first()
            )
            if existing:
                logger.info(f"Skipping existing schema {builder_in.name} / {schema_in.model_name}")
                stats.schemas_skipped += 1
                continue

            schema = HouseSchema(
                builder=builder,
                **schema_in.model_dump(exclude={"rooms", "streets"}),
            )
            schema.rooms = [
                Room(**room_in.model_dump(exclude={"floor_area_sqm"}), floor_area_sqm=room_in.computed_floor_area())
                for room_in in schema_in.rooms
            ]
            stats.rooms += len(schema.rooms)

            for ref in schema_in.streets:
                street = streets.get(ref.key()) or (
                    session.query(Street)
                    .filter(Street.street_name == ref.street_name, Street.postcode == ref.postcode)
                    .first()
                )
                if street is None:
                    stats.missing_streets.append(f"{schema_in.model_name}: {ref.street_name} {ref.postcode or ''}".strip())
                    continue
                schema.streets.append(street)
                stats.street_links += 1

            session.add(schema)
            session.flush()
            stats.schemas += 1

    session.flush()
    return stats
