"""Visitor submissions: schema requests, problem reports and waitlist signups.

Each operation validates, inserts one row, then dispatches an analytics
event. The insert and the analytics write are not transactional: the event
is only queued once the insert has committed, and its failure never reaches
the visitor.
"""

import logging
import re
import uuid

from fastapi import BackgroundTasks
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import Conflict, UpstreamError, ValidationFailed
from .events import AnalyticsDispatcher, ProblemReported, SchemaRequested, WaitlistSignup
from .models import MailingListEntry, ProblemReport, SchemaRequest
from .schemas import (
    ProblemReportIn,
    ProblemReportStatus,
    SchemaRequestIn,
    SchemaRequestStatus,
    SubmissionResponse,
    WaitlistSignupIn,
)

logger = logging.getLogger(__name__)

MIN_POSTCODE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 10

HOUSE_SEARCH_SOURCE = "house_search"
DEFAULT_WAITLIST_SOURCE = "roomsize_footer"

NOT_SPECIFIED = "Not specified"
UNKNOWN = "Unknown"

# local@domain.tld: no whitespace or "@" in any part, at least one "." after the "@"
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def normalize_postcode(postcode: str) -> str:
    return postcode.strip().upper()


class SubmissionService:
    """Insert-only write paths for visitor submissions."""

    def __init__(self, db: Session, dispatcher: AnalyticsDispatcher):
        self.db = db
        self.dispatcher = dispatcher

    def _insert(self, row, failure_message: str) -> None:
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Insert into {row.__tablename__} failed")
            raise UpstreamError(failure_message) from e

    def request_schema(
        self, body: SchemaRequestIn, background: BackgroundTasks
    ) -> SubmissionResponse:
        """Record a request for a house type we have not mapped.

        In house_search mode the visitor has already picked a known schema;
        we store the model as the house type and point additional_info at
        the schema so curators can connect the postcode to it.
        """
        if not body.postcode or len(body.postcode.strip()) < MIN_POSTCODE_LENGTH:
            raise ValidationFailed("Postcode is required")

        postcode = normalize_postcode(body.postcode)
        house_search = body.source == HOUSE_SEARCH_SOURCE

        if house_search:
            request = SchemaRequest(
                postcode=postcode,
                house_type=body.model_name or NOT_SPECIFIED,
                builder_name=body.builder_name or UNKNOWN,
                development_name=body.development_name or None,
                additional_info=(
                    f"House search for schema {body.schema_id}" if body.schema_id else "House search"
                ),
                user_email=body.email or None,
                status=SchemaRequestStatus.PENDING.value,
            )
        else:
            request = SchemaRequest(
                postcode=postcode,
                house_type=body.street_name or NOT_SPECIFIED,
                builder_name=UNKNOWN,
                development_name=body.development_name or None,
                additional_info=body.reason or None,
                user_email=body.email or None,
                status=SchemaRequestStatus.PENDING.value,
            )

        self._insert(request, "Failed to submit request. Please try again.")
        logger.info(f"Schema request recorded for {postcode} (source={body.source or 'modal'})")

        self.dispatcher.dispatch(
            background,
            SchemaRequested(
                postcode=postcode,
                source=body.source,
                schema_id=body.schema_id,
                has_street_name=bool(body.street_name),
                has_development_name=bool(body.development_name),
                reason=body.reason,
            ),
        )

        if house_search:
            return SubmissionResponse(
                message="Thanks! Loading your room dimensions...",
                schema_id=body.schema_id,
            )
        return SubmissionResponse(message="Thanks! We'll add this schema soon and notify you.")

    def report_problem(
        self, body: ProblemReportIn, background: BackgroundTasks
    ) -> SubmissionResponse:
        """Record a report that a schema's dimensions are wrong."""
        description = (body.problem_description or "").strip()
        if len(description) < MIN_DESCRIPTION_LENGTH:
            raise ValidationFailed(
                "Please provide a detailed description of the problem "
                f"(at least {MIN_DESCRIPTION_LENGTH} characters)"
            )

        if body.room_name:
            description = f"Room: {body.room_name}\n\n{description}"

        report = ProblemReport(
            schema_id=_optional_uuid(body.schema_id),
            builder_name=body.builder_name or UNKNOWN,
            house_type=body.house_type or UNKNOWN,
            problem_description=description,
            user_email=body.email or None,
            status=ProblemReportStatus.OPEN.value,
        )

        self._insert(report, "Failed to submit report. Please try again.")
        logger.info(f"Problem report recorded for schema {body.schema_id}")

        self.dispatcher.dispatch(
            background,
            ProblemReported(
                schema_id=body.schema_id,
                builder_name=body.builder_name,
                house_type=body.house_type,
                room_name=body.room_name,
                has_email=bool(body.email),
            ),
        )

        return SubmissionResponse(
            message="Thanks for reporting. We'll investigate and get back to you.",
        )

    def join_waitlist(
        self,
        body: WaitlistSignupIn,
        background: BackgroundTasks,
        user_agent: str | None = None,
    ) -> SubmissionResponse:
        """Add an email to the mailing list.

        The lookup before the insert only gives a friendly message for the
        common case. Two concurrent signups can both pass it; the UNIQUE
        constraint on mailing_list.email decides, and its violation is
        reported as the same conflict.
        """
        email = (body.email or "").strip()
        if not is_valid_email(email):
            raise ValidationFailed("Please enter a valid email address")

        email = email.lower()
        source = body.source or DEFAULT_WAITLIST_SOURCE

        try:
            existing = (
                self.db.query(MailingListEntry.id)
                .filter(func.lower(MailingListEntry.email) == email)
                .first()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Mailing list lookup failed")
            raise UpstreamError("Failed to join waitlist. Please try again.") from e

        if existing:
            raise Conflict("This email is already on the waitlist")

        try:
            self.db.add(MailingListEntry(email=email, source=source))
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("This email is already on the waitlist") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Mailing list insert failed")
            raise UpstreamError("Failed to join waitlist. Please try again.") from e

        logger.info(f"Waitlist signup from {source}")

        self.dispatcher.dispatch(
            background,
            WaitlistSignup(source=source, page_path=body.page_path),
            page_url=body.page_path,
            user_agent=user_agent,
        )

        return SubmissionResponse(message="Successfully joined the waitlist")


def _optional_uuid(value: str | None) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        logger.warning(f"Ignoring malformed schema_id on problem report: {value!r}")
        return None
