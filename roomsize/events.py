"""Analytics event payloads and the fire-and-forget dispatcher.

event_data is a tagged union keyed by event_type: each known event type has
its own payload model below, looked up through EVENT_PAYLOADS. Payloads
allow extra keys so the client can attach more context without a server
release; unknown event types fall back to the open EventPayload. Client
payloads that do not fit their model are still stored as posted.
"""

import logging
from typing import Any, ClassVar

from fastapi import BackgroundTasks
from pydantic import BaseModel, ConfigDict, ValidationError

from .database import SessionFactory
from .models import AnalyticsEvent

logger = logging.getLogger(__name__)


class EventPayload(BaseModel):
    """Open payload used for event types without a dedicated model."""

    model_config = ConfigDict(extra="allow", protected_namespaces=())

    event_type: ClassVar[str] = ""


# Server-side events: emitted by the API itself after a read or write


class PostcodeSearched(EventPayload):
    event_type: ClassVar[str] = "postcode_searched"

    query: str
    results_count: int


class HousesPageView(EventPayload):
    event_type: ClassVar[str] = "houses_page_view"

    street_id: str
    street_name: str | None = None
    houses_count: int


class SchemaPageView(EventPayload):
    event_type: ClassVar[str] = "schema_page_view"

    schema_id: str
    model_name: str | None = None
    builder_name: str | None = None
    rooms_count: int


class SchemaRequested(EventPayload):
    event_type: ClassVar[str] = "schema_requested"

    postcode: str
    source: str | None = None
    schema_id: str | None = None
    has_street_name: bool = False
    has_development_name: bool = False
    reason: str | None = None


class ProblemReported(EventPayload):
    event_type: ClassVar[str] = "problem_reported"

    schema_id: str | None = None
    builder_name: str | None = None
    house_type: str | None = None
    room_name: str | None = None
    has_email: bool = False


class WaitlistSignup(EventPayload):
    event_type: ClassVar[str] = "waitlist_signup"

    source: str
    page_path: str | None = None


# Client-side events: posted by the web pages to /api/analytics


class LandingPageView(EventPayload):
    event_type: ClassVar[str] = "landing_page_view"


class PageView(EventPayload):
    event_type: ClassVar[str] = "page_view"


class Search(EventPayload):
    event_type: ClassVar[str] = "search"

    query: str | None = None


class StreetSelected(EventPayload):
    event_type: ClassVar[str] = "street_selected"

    street_id: str | None = None
    street_name: str | None = None
    postcode_area: str | None = None


class HouseSelected(EventPayload):
    event_type: ClassVar[str] = "house_selected"

    schema_id: str | None = None
    model_name: str | None = None
    builder_name: str | None = None


class RoomViewed(EventPayload):
    event_type: ClassVar[str] = "room_viewed"

    schema_id: str | None = None
    room_id: str | None = None
    room_name: str | None = None
    room_type: str | None = None


class RoomExpanded(RoomViewed):
    event_type: ClassVar[str] = "room_expanded"


class ReasonSubmitted(EventPayload):
    event_type: ClassVar[str] = "reason_submitted"

    schema_id: str | None = None
    model_name: str | None = None
    builder_name: str | None = None
    reason: str | None = None


EVENT_PAYLOADS: dict[str, type[EventPayload]] = {
    model.event_type: model
    for model in (
        PostcodeSearched,
        HousesPageView,
        SchemaPageView,
        SchemaRequested,
        ProblemReported,
        WaitlistSignup,
        LandingPageView,
        PageView,
        Search,
        StreetSelected,
        HouseSelected,
        RoomViewed,
        RoomExpanded,
        ReasonSubmitted,
    )
}


def parse_event_data(event_type: str, event_data: Any) -> EventPayload | None:
    """Parse event_data with the payload model for event_type.

    Returns None when the payload does not fit its model. Client payloads
    are stored either way, so a mismatch is only logged.
    """
    model = EVENT_PAYLOADS.get(event_type, EventPayload)
    try:
        return model.model_validate(event_data or {})
    except ValidationError as e:
        logger.warning(
            f"event_data for {event_type} does not match {model.__name__}: "
            f"{e.errors(include_url=False, include_context=False)}"
        )
        return None


class AnalyticsDispatcher:
    """Non-blocking analytics writes with at-most-effort delivery.

    dispatch() queues the insert as a background task that runs after the
    response has been produced, in its own session. A failed insert is
    logged and dropped: there is no retry, and an event still queued when
    the process dies is lost. Callers never see the outcome.
    """

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def dispatch(
        self,
        background: BackgroundTasks,
        payload: EventPayload,
        page_url: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        background.add_task(
            self.write,
            payload.event_type,
            payload.model_dump(mode="json", exclude_none=True),
            page_url,
            user_agent,
        )

    def write(
        self,
        event_type: str,
        event_data: dict[str, Any],
        page_url: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        try:
            with self.session_factory() as db:
                db.add(AnalyticsEvent(
                    event_type=event_type,
                    event_data=event_data,
                    page_url=page_url,
                    user_agent=user_agent,
                ))
                db.commit()
        except Exception:
            logger.exception(f"Dropped analytics event {event_type}")
