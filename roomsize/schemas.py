"""Pydantic request/response schemas for the RoomSize API.

Request bodies are deliberately loose (every field optional): the services
own the business validation and answer with a human-readable `error`
message instead of FastAPI's field-level 422 payload.

Response models mirror the JSON contract the web client depends on, which
uses camelCase keys for the admin dashboard.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer


# =============================================================================
# ENUMS
# =============================================================================


class SchemaRequestStatus(str, Enum):
    """Lifecycle of a schema request. Only PENDING is written by the app."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ProblemReportStatus(str, Enum):
    """Lifecycle of a problem report. Only OPEN is written by the app."""

    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    CLOSED = "closed"


class StatsPeriod(str, Enum):
    """Reporting windows understood by the admin dashboard."""

    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    ALL = "all"


# =============================================================================
# REQUEST BODIES
# =============================================================================


class AnalyticsEventIn(BaseModel):
    """Telemetry event posted by the web client."""

    event_type: str | None = None
    event_data: Any = None
    page_url: str | None = None


class SchemaRequestIn(BaseModel):
    """Request for a house type we have not mapped yet.

    Two modes share this body:
    - default: the visitor names a street/development we do not know
    - source="house_search": the visitor picked a known house and we record
      their postcode against that schema
    """

    model_config = ConfigDict(str_strip_whitespace=True, protected_namespaces=())

    postcode: str | None = None
    street_name: str | None = None
    development_name: str | None = None
    reason: str | None = None
    email: str | None = None
    source: str | None = None
    schema_id: str | None = None
    model_name: str | None = None
    builder_name: str | None = None


class ProblemReportIn(BaseModel):
    """Report that a schema's dimensions look wrong."""

    schema_id: str | None = None
    builder_name: str | None = None
    house_type: str | None = None
    room_name: str | None = None
    problem_description: str | None = None
    email: str | None = None


class WaitlistSignupIn(BaseModel):
    """Footer waitlist signup."""

    email: str | None = None
    source: str | None = None
    page_path: str | None = None


# =============================================================================
# RESPONSES
# =============================================================================


class DegradableResponse(BaseModel):
    """Read response that can report a failed lookup next to empty results.

    error/details only appear in the JSON when set, so a successful
    response keeps its plain shape.
    """

    error: str | None = None
    details: str | None = None

    @model_serializer(mode="wrap")
    def drop_unset_error(self, handler: SerializerFunctionWrapHandler):
        data = handler(self)
        for key in ("error", "details"):
            if data.get(key) is None:
                data.pop(key, None)
        return data


class StreetMatch(BaseModel):
    """A street found by postcode or development search."""

    street_id: str
    street_name: str
    postcode: str | None = None
    postcode_area: str | None = None
    development_id: str | None = None
    development_name: str | None = None


class SearchResponse(DegradableResponse):
    """Search results. error/details are only set when the street lookup failed."""

    results: list[StreetMatch]
    grouped: dict[str, list[StreetMatch]]
    total: int


class StreetInfo(BaseModel):
    street_name: str
    postcode: str | None = None
    postcode_area: str | None = None


class HouseSummary(BaseModel):
    """A house schema built on a street."""

    model_config = ConfigDict(protected_namespaces=())

    schema_id: str
    model_name: str
    builder_name: str
    bedrooms: int | None = None
    property_type: str | None = None
    exterior_photo_url: str | None = None
    verified: bool = False


class HousesResponse(DegradableResponse):
    houses: list[HouseSummary]
    street: StreetInfo | None = None
    total: int


class SchemaDetail(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str
    model_name: str
    builder_name: str
    builder_id: str | None = None
    bedrooms: int | None = None
    property_type: str | None = None
    year_from: int | None = None
    year_to: int | None = None
    floor_plan_url: str | None = None
    exterior_photo_url: str | None = None
    verified: bool = False
    notes: str | None = None


class RoomOut(BaseModel):
    id: str
    room_name: str
    room_type: str
    floor_level: int
    length_cm: int | None = None
    width_cm: int | None = None
    height_cm: int | None = None
    floor_area_sqm: float | None = None
    notes: str | None = None
    dimensions_need_verification: bool | None = None
    verification_reason: str | None = None


class SchemaResponse(BaseModel):
    schema_: SchemaDetail = Field(alias="schema")
    rooms: list[RoomOut]

    model_config = ConfigDict(populate_by_name=True)


class SchemaStreet(BaseModel):
    street_id: str
    street_name: str = ""
    postcode: str | None = None
    postcode_area: str = ""
    development_id: str | None = None
    development_name: str | None = None


class SchemaStreetsResponse(BaseModel):
    streets: list[SchemaStreet]


class SubmissionResponse(BaseModel):
    success: bool = True
    message: str
    schema_id: str | None = None


class SuccessResponse(BaseModel):
    success: bool = True


class DashboardStats(BaseModel):
    """Headline counters for the admin dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    total_searches: int = Field(alias="totalSearches")
    unique_postcodes: int = Field(alias="uniquePostcodes")
    total_page_views: int = Field(alias="totalPageViews")
    total_schema_views: int = Field(alias="totalSchemaViews")
    total_room_views: int = Field(alias="totalRoomViews")
    waitlist_signups: int = Field(alias="waitlistSignups")
    schema_requests_count: int = Field(alias="schemaRequestsCount")
    problem_reports_count: int = Field(alias="problemReportsCount")


class AdminStatsResponse(BaseModel):
    """Complete admin dashboard payload."""

    model_config = ConfigDict(populate_by_name=True)

    stats: DashboardStats
    schema_requests: list[dict[str, Any]] = Field(alias="schemaRequests")
    problem_reports: list[dict[str, Any]] = Field(alias="problemReports")
    waitlist: list[dict[str, Any]]
    top_postcodes: list[dict[str, Any]] = Field(alias="topPostcodes")
    top_house_types: list[dict[str, Any]] = Field(alias="topHouseTypes")
    top_rooms: list[dict[str, Any]] = Field(alias="topRooms")
    top_reasons: list[dict[str, Any]] = Field(alias="topReasons")
    period: str
