"""Analytics ingestion and the admin dashboard report."""

import logging
import secrets
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import AppConfig
from .errors import Unauthorized, UpstreamError, ValidationFailed
from .events import parse_event_data
from .models import AnalyticsEvent, MailingListEntry, ProblemReport, SchemaRequest
from .schemas import AdminStatsResponse, DashboardStats, StatsPeriod, SuccessResponse

logger = logging.getLogger(__name__)

PERIOD_WINDOWS = {
    StatsPeriod.LAST_7_DAYS.value: timedelta(days=7),
    StatsPeriod.LAST_30_DAYS.value: timedelta(days=30),
}

# Cutoff for "all" (and for any period we do not recognise)
ALL_TIME_START = datetime(2020, 1, 1, tzinfo=timezone.utc)

RECENT_SUBMISSIONS_LIMIT = 50
LEADERBOARD_SIZE = 10


def period_start(period: str, now: datetime | None = None) -> datetime:
    """Start of the reporting window for a period code."""
    window = PERIOD_WINDOWS.get(period)
    if window is None:
        return ALL_TIME_START
    return (now or datetime.now(timezone.utc)) - window


def event_field(event: AnalyticsEvent, field: str) -> str | None:
    """A non-empty string field from event_data, or None.

    Stored payloads are not trusted to have any particular shape.
    """
    data = event.event_data
    if not isinstance(data, dict):
        return None
    value = data.get(field)
    if isinstance(value, str) and value:
        return value
    return None


def top_values(
    events: Iterable[AnalyticsEvent],
    field: str,
    label: str,
    limit: int | None = LEADERBOARD_SIZE,
    normalize: Callable[[str], str] | None = None,
) -> list[dict[str, Any]]:
    """Group events by an event_data field and rank by frequency.

    Ties keep the order in which values were first seen.
    """
    counts: dict[str, int] = {}
    for event in events:
        value = event_field(event, field)
        if value is None:
            continue
        if normalize:
            value = normalize(value)
        counts[value] = counts.get(value, 0) + 1

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return [{label: value, "count": count} for value, count in ranked]


def row_to_dict(row) -> dict[str, Any]:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


class AnalyticsService:
    """Event ingestion and the key-gated admin report."""

    def __init__(self, db: Session, config: AppConfig):
        self.db = db
        self.config = config

    def record(
        self,
        event_type: str | None,
        event_data: Any,
        page_url: str | None = None,
        user_agent: str | None = None,
    ) -> SuccessResponse:
        """Store a client event. event_data is kept exactly as posted."""
        if not event_type:
            raise ValidationFailed("event_type is required")

        parse_event_data(event_type, event_data)

        try:
            self.db.add(AnalyticsEvent(
                event_type=event_type,
                event_data=event_data or {},
                page_url=page_url or None,
                user_agent=user_agent or None,
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Failed to log {event_type} event")
            raise UpstreamError("Failed to log event") from e

        return SuccessResponse()

    def check_admin_key(self, key: str | None) -> None:
        if not key or not secrets.compare_digest(key.encode(), self.config.admin_key.encode()):
            raise Unauthorized("Unauthorized")

    def report(self, key: str | None, period: str | None) -> AdminStatsResponse:
        """Aggregate counts and leaderboards for the admin dashboard.

        Each underlying query degrades to an empty list on failure so one
        broken table never blanks the whole dashboard.
        """
        self.check_admin_key(key)

        period = period or StatsPeriod.LAST_7_DAYS.value
        start = period_start(period)

        events = self._safe_fetch("analytics events", lambda: (
            self.db.query(AnalyticsEvent)
            .filter(AnalyticsEvent.created_at >= start)
            .order_by(AnalyticsEvent.created_at.desc())
            .all()
        ))
        schema_requests = self._safe_fetch("schema requests", lambda: self._recent(SchemaRequest, start))
        problem_reports = self._safe_fetch("problem reports", lambda: self._recent(ProblemReport, start))
        waitlist = self._safe_fetch("waitlist", lambda: self._recent(MailingListEntry, start))

        by_type: dict[str, list[AnalyticsEvent]] = {}
        for event in events:
            by_type.setdefault(event.event_type, []).append(event)

        searches = by_type.get("search", [])
        unique_postcodes = {
            value.upper() for value in (event_field(e, "query") for e in searches) if value
        }

        stats = DashboardStats(
            total_searches=len(searches),
            unique_postcodes=len(unique_postcodes),
            total_page_views=len(by_type.get("page_view", [])),
            total_schema_views=len(by_type.get("schema_page_view", [])),
            total_room_views=len(by_type.get("room_expanded", [])),
            waitlist_signups=len(waitlist),
            schema_requests_count=len(schema_requests),
            problem_reports_count=len(problem_reports),
        )

        logger.info(f"Admin report for period={period}: {len(events)} events")

        return AdminStatsResponse(
            stats=stats,
            schema_requests=[row_to_dict(r) for r in schema_requests],
            problem_reports=[row_to_dict(r) for r in problem_reports],
            waitlist=[row_to_dict(r) for r in waitlist],
            top_postcodes=top_values(searches, "query", "postcode", normalize=str.upper),
            top_house_types=top_values(by_type.get("schema_page_view", []), "model_name", "model"),
            top_rooms=top_values(by_type.get("room_expanded", []), "room_name", "room"),
            top_reasons=top_values(by_type.get("reason_submitted", []), "reason", "reason", limit=None),
            period=period,
        )

    def _recent(self, model, start: datetime) -> list:
        return (
            self.db.query(model)
            .filter(model.created_at >= start)
            .order_by(model.created_at.desc())
            .limit(RECENT_SUBMISSIONS_LIMIT)
            .all()
        )

    def _safe_fetch(self, label: str, fetch: Callable[[], list]) -> list:
        try:
            return fetch()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Admin stats: {label} fetch failed")
            return []
