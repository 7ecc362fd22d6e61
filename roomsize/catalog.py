"""House schema catalog: houses on a street, schema detail, streets for a schema."""

import logging
import uuid

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .errors import NotFound, UpstreamError, ValidationFailed
from .events import AnalyticsDispatcher, HousesPageView, SchemaPageView
from .models import Development, HouseSchema, Room, Street, house_schema_streets
from .schemas import (
    HouseSummary,
    HousesResponse,
    RoomOut,
    SchemaDetail,
    SchemaResponse,
    SchemaStreet,
    SchemaStreetsResponse,
    StreetInfo,
)

logger = logging.getLogger(__name__)

UNKNOWN_BUILDER = "Unknown Builder"


def parse_id(value: str) -> uuid.UUID | None:
    """Parse a UUID query parameter, returning None when malformed."""
    try:
        return uuid.UUID(value.strip())
    except (AttributeError, ValueError):
        return None


def house_sort_key(house: HouseSummary) -> tuple[bool, str]:
    """Verified houses first, then model name case-insensitively."""
    return (not house.verified, house.model_name.casefold())


def room_to_out(room: Room) -> RoomOut:
    return RoomOut(
        id=str(room.id),
        room_name=room.room_name,
        room_type=room.room_type,
        floor_level=room.floor_level,
        length_cm=room.length_cm,
        width_cm=room.width_cm,
        height_cm=room.height_cm,
        floor_area_sqm=float(room.floor_area_sqm) if room.floor_area_sqm is not None else None,
        notes=room.notes,
        dimensions_need_verification=room.dimensions_need_verification,
        verification_reason=room.verification_reason,
    )


class CatalogService:
    """Read-only queries over streets, house schemas and rooms.

    Nothing is cached; every call goes back to the datastore.
    """

    def __init__(self, db: Session, dispatcher: AnalyticsDispatcher):
        self.db = db
        self.dispatcher = dispatcher

    def get_houses_for_street(
        self, street_id: str | None, background: BackgroundTasks
    ) -> HousesResponse:
        """List the house schemas linked to a street, verified first."""
        if not street_id:
            raise ValidationFailed("street_id is required")

        street_uuid = parse_id(street_id)
        if street_uuid is None:
            raise ValidationFailed("Invalid street_id")

        street_info = None
        try:
            street = self.db.get(Street, street_uuid)
            if street:
                street_info = StreetInfo(
                    street_name=street.street_name,
                    postcode=street.postcode,
                    postcode_area=street.postcode_area,
                )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Street fetch failed for {street_id}")

        try:
            links = (
                self.db.query(house_schema_streets.c.house_schema_id, HouseSchema)
                .select_from(house_schema_streets)
                .outerjoin(HouseSchema, house_schema_streets.c.house_schema_id == HouseSchema.id)
                .options(joinedload(HouseSchema.builder))
                .filter(house_schema_streets.c.street_id == street_uuid)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Schema links fetch failed for street {street_id}")
            return HousesResponse(
                houses=[],
                street=street_info,
                total=0,
                error="Failed to load house types",
                details=str(e),
            )

        houses = []
        for _, schema in links:
            # Junction row pointing at a schema that no longer exists
            if schema is None:
                continue
            houses.append(HouseSummary(
                schema_id=str(schema.id),
                model_name=schema.model_name,
                builder_name=schema.builder.name if schema.builder else UNKNOWN_BUILDER,
                bedrooms=schema.bedrooms,
                property_type=schema.property_type,
                exterior_photo_url=schema.exterior_photo_url,
                verified=bool(schema.verified),
            ))
        houses.sort(key=house_sort_key)

        self.dispatcher.dispatch(
            background,
            HousesPageView(
                street_id=street_id,
                street_name=street_info.street_name if street_info else None,
                houses_count=len(houses),
            ),
        )

        return HousesResponse(houses=houses, street=street_info, total=len(houses))

    def get_schema(self, schema_id: str | None, background: BackgroundTasks) -> SchemaResponse:
        """Schema detail plus its rooms ordered by floor, then name."""
        if not schema_id:
            raise ValidationFailed("schema_id is required")

        schema_uuid = parse_id(schema_id)
        if schema_uuid is None:
            raise NotFound("Schema not found", details=f"Invalid schema_id: {schema_id}")

        try:
            schema = (
                self.db.query(HouseSchema)
                .options(joinedload(HouseSchema.builder))
                .filter(HouseSchema.id == schema_uuid)
                .first()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Schema fetch failed for {schema_id}")
            raise UpstreamError("An unexpected error occurred", details=str(e)) from e

        if schema is None:
            raise NotFound("Schema not found", details=f"No schema with id {schema_id}")

        try:
            rooms = (
                self.db.query(Room)
                .filter(Room.house_schema_id == schema_uuid)
                .order_by(Room.floor_level.asc(), Room.room_name.asc())
                .all()
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Rooms fetch failed for schema {schema_id}")
            rooms = []

        builder_name = schema.builder.name if schema.builder else None

        self.dispatcher.dispatch(
            background,
            SchemaPageView(
                schema_id=schema_id,
                model_name=schema.model_name,
                builder_name=builder_name,
                rooms_count=len(rooms),
            ),
        )

        return SchemaResponse(
            schema_=SchemaDetail(
                id=str(schema.id),
                model_name=schema.model_name,
                builder_name=builder_name or UNKNOWN_BUILDER,
                builder_id=str(schema.builder_id) if schema.builder_id else None,
                bedrooms=schema.bedrooms,
                property_type=schema.property_type,
                year_from=schema.year_from,
                year_to=schema.year_to,
                floor_plan_url=schema.floor_plan_url,
                exterior_photo_url=schema.exterior_photo_url,
                verified=bool(schema.verified),
                notes=schema.notes,
            ),
            rooms=[room_to_out(room) for room in rooms],
        )

    def get_streets_for_schema(self, schema_id: str | None) -> SchemaStreetsResponse:
        """Every street where a schema has been built."""
        if not schema_id:
            raise ValidationFailed("schema_id is required")

        schema_uuid = parse_id(schema_id)
        if schema_uuid is None:
            raise ValidationFailed("Invalid schema_id")

        try:
            rows = (
                self.db.query(house_schema_streets.c.street_id, Street, Development)
                .select_from(house_schema_streets)
                .outerjoin(Street, house_schema_streets.c.street_id == Street.id)
                .outerjoin(Development, Street.development_id == Development.id)
                .filter(house_schema_streets.c.house_schema_id == schema_uuid)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Schema streets fetch failed for {schema_id}")
            raise UpstreamError("Failed to fetch streets") from e

        streets = []
        for street_id, street, development in rows:
            streets.append(SchemaStreet(
                street_id=str(street_id),
                street_name=street.street_name if street else "",
                postcode=street.postcode if street else None,
                postcode_area=(street.postcode_area if street else None) or "",
                development_id=str(street.development_id) if street and street.development_id else None,
                development_name=development.name if development else None,
            ))

        return SchemaStreetsResponse(streets=streets)
