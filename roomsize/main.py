"""FastAPI application for RoomSize."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import logfire
from fastapi import BackgroundTasks, Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from . import pages
from .analytics import AnalyticsService
from .catalog import CatalogService
from .config import AppConfig, configure_logging, load_config
from .dependencies import get_config, get_db, get_dispatcher
from .errors import RoomSizeError
from .events import AnalyticsDispatcher
from .schemas import (
    AdminStatsResponse,
    AnalyticsEventIn,
    HousesResponse,
    ProblemReportIn,
    SchemaRequestIn,
    SchemaResponse,
    SchemaStreetsResponse,
    SearchResponse,
    SubmissionResponse,
    SuccessResponse,
    WaitlistSignupIn,
)
from .search import SearchService
from .submissions import SubmissionService

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Build the application. Tests pass their own AppConfig."""
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"RoomSize starting (environment={config.environment}, "
            f"default_admin_key={config.admin_key_is_default})"
        )
        yield

    app = FastAPI(
        title="RoomSize API",
        description="Room dimensions for UK new-build house types, found by postcode",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.dispatcher = AnalyticsDispatcher(config.session_factory)

    # Configure Logfire for observability (after app creation)
    if os.getenv("LOGFIRE_TOKEN"):
        logfire.configure()
        logfire.instrument_fastapi(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    register_api_routes(app)
    app.include_router(pages.router)
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    return app


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RoomSizeError)
    async def roomsize_error_handler(request: Request, exc: RoomSizeError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(exc.to_payload(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": "Invalid request", "details": exc.errors()},
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and not request.url.path.startswith("/api/"):
            return pages.render_not_found(request)
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            {"error": "An unexpected error occurred", "details": str(exc)},
            status_code=500,
        )


def register_api_routes(app: FastAPI) -> None:
    # Plain def handlers: the services do blocking database work, which
    # FastAPI runs in its threadpool.

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "RoomSize API"}

    @app.get("/api/search-location", response_model=SearchResponse)
    def search_location(
        background: BackgroundTasks,
        query: str | None = None,
        db: Session = Depends(get_db),
        dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
    ):
        """Streets matching a postcode, postcode area or development name."""
        return SearchService(db, dispatcher).search(query, background)

    @app.get("/api/get-houses", response_model=HousesResponse)
    def get_houses(
        background: BackgroundTasks,
        street_id: str | None = None,
        db: Session = Depends(get_db),
        dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
    ):
        """House schemas built on a street."""
        return CatalogService(db, dispatcher).get_houses_for_street(street_id, background)

    @app.get("/api/get-schema", response_model=SchemaResponse, response_model_by_alias=True)
    def get_schema(
        background: BackgroundTasks,
        schema_id: str | None = None,
        db: Session = Depends(get_db),
        dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
    ):
        """A house schema and its rooms."""
        return CatalogService(db, dispatcher).get_schema(schema_id, background)

    @app.get("/api/schema-streets", response_model=SchemaStreetsResponse)
    def schema_streets(
        schema_id: str | None = None,
        db: Session = Depends(get_db),
        dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
    ):
        """Streets where a house schema has been built."""
        return CatalogService(db, dispatcher).get_streets_for_schema(schema_id)

    @app.post("/api/analytics", response_model=SuccessResponse)
    def log_event(
        body: AnalyticsEventIn,
        request: Request,
        db: Session = Depends(get_db),
        config: AppConfig = Depends(get_config),
    ):
        """Client telemetry. The user agent is taken from the request header."""
        return AnalyticsService(db, config).record(
            body.event_type,
            body.event_data,
            page_url=body.page_url,
            user_agent=request.headers.get("user-agent"),
        )

    @app.post("/api/schema-request", response_model=SubmissionResponse, response_model_exclude_none=True)
    def schema_request(
        body: SchemaRequestIn,
        background: BackgroundTasks,
        db: Session = Depends(get_db),
        dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
    ):
        return SubmissionService(db, dispatcher).request_schema(body, background)

    @app.post("/api/report-problem", response_model=SubmissionResponse, response_model_exclude_none=True)
    def report_problem(
        body: ProblemReportIn,
        background: BackgroundTasks,
        db: Session = Depends(get_db),
        dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
    ):
        return SubmissionService(db, dispatcher).report_problem(body, background)

    @app.post("/api/waitlist-signup", response_model=SubmissionResponse, response_model_exclude_none=True)
    def waitlist_signup(
        body: WaitlistSignupIn,
        request: Request,
        background: BackgroundTasks,
        db: Session = Depends(get_db),
        dispatcher: AnalyticsDispatcher = Depends(get_dispatcher),
    ):
        return SubmissionService(db, dispatcher).join_waitlist(
            body, background, user_agent=request.headers.get("user-agent")
        )

    @app.get("/api/admin/stats", response_model=AdminStatsResponse, response_model_by_alias=True)
    def admin_stats(
        key: str | None = None,
        period: str | None = None,
        db: Session = Depends(get_db),
        config: AppConfig = Depends(get_config),
    ):
        """Dashboard aggregates, gated on the admin key."""
        return AnalyticsService(db, config).report(key, period)


configure_logging()
app = create_app()
