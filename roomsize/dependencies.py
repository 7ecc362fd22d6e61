"""FastAPI dependencies shared by the JSON API and the HTML pages."""

from starlette.requests import Request

from .config import AppConfig
from .database import session_scope
from .events import AnalyticsDispatcher


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_dispatcher(request: Request) -> AnalyticsDispatcher:
    return request.app.state.dispatcher


def get_db(request: Request):
    """Request-scoped session from the configured session factory."""
    yield from session_scope(request.app.state.config.session_factory)
