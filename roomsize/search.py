"""Postcode and development search."""

import logging

from fastapi import BackgroundTasks
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from .errors import ValidationFailed
from .events import AnalyticsDispatcher, PostcodeSearched
from .models import Development, Street
from .schemas import SearchResponse, StreetMatch

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
STREET_MATCH_LIMIT = 50
DEVELOPMENT_MATCH_LIMIT = 20
OTHER_AREA = "Other"


def like_pattern(text: str) -> str:
    """Substring LIKE pattern with the LIKE wildcards escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def group_by_area(results: list[StreetMatch]) -> dict[str, list[StreetMatch]]:
    """Group matches by postcode_area, keeping first-seen area order."""
    grouped: dict[str, list[StreetMatch]] = {}
    for match in results:
        grouped.setdefault(match.postcode_area or OTHER_AREA, []).append(match)
    return grouped


class SearchService:
    """Find streets by postcode, postcode area or development name.

    Two passes run against the datastore:
    1. the uppercased query as a substring of postcode or postcode_area
    2. the query as a substring of a development name, expanded to every
       street in the matching developments

    Results are merged by street id (first pass wins) and returned in
    datastore order; there is no relevance ranking.
    """

    def __init__(self, db: Session, dispatcher: AnalyticsDispatcher):
        self.db = db
        self.dispatcher = dispatcher

    def search(self, query: str | None, background: BackgroundTasks) -> SearchResponse:
        raw = (query or "").strip()
        if len(raw) < MIN_QUERY_LENGTH:
            raise ValidationFailed(
                f"Search query must be at least {MIN_QUERY_LENGTH} characters",
                results=[],
                total=0,
            )

        search_term = raw.upper()

        try:
            streets = self._match_streets(search_term)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Street search failed")
            return SearchResponse(
                results=[],
                grouped={},
                total=0,
                error="Database error searching streets",
                details=str(e),
            )

        try:
            developments = self._match_developments(raw)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Development search failed; returning street matches only")
            developments = []

        results_by_id: dict[str, StreetMatch] = {}

        for street in streets:
            results_by_id[str(street.id)] = StreetMatch(
                street_id=str(street.id),
                street_name=street.street_name,
                postcode=street.postcode,
                postcode_area=street.postcode_area,
                development_id=str(street.development_id) if street.development_id else None,
                development_name=street.development.name if street.development else None,
            )

        for development in developments:
            for street in development.streets:
                street_id = str(street.id)
                if street_id in results_by_id:
                    continue
                results_by_id[street_id] = StreetMatch(
                    street_id=street_id,
                    street_name=street.street_name,
                    postcode=street.postcode,
                    postcode_area=street.postcode_area,
                    development_id=str(development.id),
                    development_name=development.name,
                )

        results = list(results_by_id.values())
        logger.info(f"Search '{search_term}' matched {len(results)} streets")

        self.dispatcher.dispatch(
            background,
            PostcodeSearched(query=search_term, results_count=len(results)),
        )

        return SearchResponse(
            results=results,
            grouped=group_by_area(results),
            total=len(results),
        )

    def _match_streets(self, search_term: str) -> list[Street]:
        pattern = like_pattern(search_term)
        return (
            self.db.query(Street)
            .options(joinedload(Street.development))
            .filter(or_(
                Street.postcode.ilike(pattern, escape="\\"),
                Street.postcode_area.ilike(pattern, escape="\\"),
            ))
            .limit(STREET_MATCH_LIMIT)
            .all()
        )

    def _match_developments(self, raw_query: str) -> list[Development]:
        return (
            self.db.query(Development)
            .options(selectinload(Development.streets))
            .filter(Development.name.ilike(like_pattern(raw_query), escape="\\"))
            .limit(DEVELOPMENT_MATCH_LIMIT)
            .all()
        )
