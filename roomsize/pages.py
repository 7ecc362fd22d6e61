"""Server-rendered HTML pages.

Pages call the same services as the JSON API, so a page view produces the
same server-side analytics events as the equivalent API call. Client-side
events (street_selected, room_viewed, ...) are posted by static/roomsize.js.
"""

import logging
from datetime import datetime
from pathlib import Path
from urllib.parse import urlparse

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from starlette.requests import Request

from . import geometry
from .analytics import AnalyticsService
from .catalog import CatalogService
from .config import AppConfig
from .dependencies import get_config, get_db, get_dispatcher
from .errors import NotFound, RoomSizeError, Unauthorized
from .events import AnalyticsDispatcher
from .schemas import StatsPeriod
from .search import SearchService

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["floor_label"] = geometry.floor_label
templates.env.filters["room_color"] = geometry.room_type_color
templates.env.filters["m"] = geometry.format_m

REASONS = [
    "Buying new furniture",
    "Planning a renovation",
    "Buying flooring or carpet",
    "Decorating",
    "Considering buying this house",
    "Just curious",
]

PERIOD_LABELS = {
    StatsPeriod.LAST_7_DAYS.value: "Last 7 days",
    StatsPeriod.LAST_30_DAYS.value: "Last 30 days",
    StatsPeriod.ALL.value: "All time",
}

router = APIRouter(include_in_schema=False)


def allowed_image(url: str | None, hosts: list[str]) -> str | None:
    """The URL if it is served from an allowed image host, else None."""
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme != "https" or parsed.hostname not in hosts:
        return None
    return url


def format_timestamp(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%d %b %Y %H:%M")
    return str(value or "")


templates.env.filters["timestamp"] = format_timestamp


def room_view(room, ceiling_height: float) -> dict:
    """Display values for one room at the chosen ceiling height."""
    walls = geometry.wall_breakdown(room.length_cm, room.width_cm, ceiling_height)
    has_dimensions = bool(room.length_cm and room.width_cm)
    return {
        "room": room,
        "has_dimensions": has_dimensions,
        "length_m": geometry.cm_to_m(room.length_cm),
        "width_m": geometry.cm_to_m(room.width_cm),
        "floor_area": geometry.floor_area(room.length_cm, room.width_cm),
        "walls": walls.walls,
        "total_wall_area": walls.total_area_m2,
    }


def render_not_found(request: Request):
    return templates.TemplateResponse(request, "not_found.html", {}, status_code=404)


@router.get("/")
def home(request: Request, error: str | None = None):
    return templates.TemplateResponse(request, "home.html", {"error": error, "query": ""})


@router.get("/streets")
def streets(
    request: Request,
    background: BackgroundTasks,
    query: str | None = None,
    db: Session = Depends(get_db),
    dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
):
    try:
        result = SearchService(db, dispatcher).search(query, background)
    except RoomSizeError as e:
        # Too-short queries go back to the search form with the message inline
        return templates.TemplateResponse(
            request, "home.html", {"error": e.message, "query": query or ""}, status_code=e.status_code
        )

    return templates.TemplateResponse(request, "streets.html", {
        "query": (query or "").strip(),
        "result": result,
    })


@router.get("/houses")
def houses(
    request: Request,
    background: BackgroundTasks,
    street_id: str | None = None,
    db: Session = Depends(get_db),
    dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
    config: AppConfig = Depends(get_config),
):
    try:
        result = CatalogService(db, dispatcher).get_houses_for_street(street_id, background)
    except RoomSizeError as e:
        return templates.TemplateResponse(
            request, "houses.html", {"result": None, "error": e.message}, status_code=e.status_code
        )

    photos = {
        house.schema_id: allowed_image(house.exterior_photo_url, config.image_hosts)
        for house in result.houses
    }
    return templates.TemplateResponse(request, "houses.html", {
        "result": result,
        "error": result.error,
        "photos": photos,
    })


@router.get("/rooms")
def rooms(
    request: Request,
    background: BackgroundTasks,
    schema_id: str | None = None,
    ceiling_height: str | None = None,
    db: Session = Depends(get_db),
    dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
    config: AppConfig = Depends(get_config),
):
    try:
        result = CatalogService(db, dispatcher).get_schema(schema_id, background)
    except NotFound:
        return render_not_found(request)
    except RoomSizeError as e:
        return templates.TemplateResponse(
            request, "rooms.html", {"result": None, "error": e.message}, status_code=e.status_code
        )

    height = geometry.parse_ceiling_height(ceiling_height)
    floors = [
        (level, [room_view(room, height) for room in floor_rooms])
        for level, floor_rooms in geometry.group_by_floor(result.rooms)
    ]

    return templates.TemplateResponse(request, "rooms.html", {
        "result": result,
        "schema": result.schema_,
        "error": None,
        "floors": floors,
        "ceiling_height": height,
        "floor_plan_url": allowed_image(result.schema_.floor_plan_url, config.image_hosts),
        "exterior_photo_url": allowed_image(result.schema_.exterior_photo_url, config.image_hosts),
        "reasons": REASONS,
    })


@router.get("/admin")
def admin(
    request: Request,
    key: str | None = None,
    period: str | None = None,
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
):
    if not key:
        return templates.TemplateResponse(request, "admin.html", {"report": None, "error": None})

    try:
        report = AnalyticsService(db, config).report(key, period)
    except Unauthorized:
        logger.warning("Admin dashboard login with a wrong key")
        return templates.TemplateResponse(
            request, "admin.html", {"report": None, "error": "Invalid admin key"}, status_code=401
        )

    return templates.TemplateResponse(request, "admin.html", {
        "report": report,
        "error": None,
        "key": key,
        "periods": PERIOD_LABELS,
    })


@router.get("/privacy")
def privacy(request: Request):
    return templates.TemplateResponse(request, "privacy.html", {})
