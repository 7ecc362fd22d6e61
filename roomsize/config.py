"""Application configuration.

Everything process-wide lives on one AppConfig built at startup and handed
to the services; nothing reads the environment after that.
"""

import logging
import os
import sys
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .database import SessionFactory, SessionLocal

load_dotenv()

logger = logging.getLogger(__name__)

# Fallback admin key for local development only. Refused in production.
DEV_ADMIN_KEY = "roomsize-admin-dev"

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:8000"]

# Public storage bucket that serves exterior photos and floor plans
DEFAULT_IMAGE_HOSTS = ["qzbmvybwpsqbtsoakkud.supabase.co"]


class ConfigError(RuntimeError):
    """Configuration that must not be started with."""


def _split_csv(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class AppConfig:
    """Explicit configuration passed to every service.

    Attributes:
        admin_key: Shared passphrase for the admin dashboard.
        session_factory: Datastore handle; returns a new privileged Session.
        environment: "development" or "production".
        cors_origins: Origins allowed to call the JSON API from a browser.
        image_hosts: Hosts the UI may render images from.
        admin_key_is_default: True when ADMIN_KEY was not configured.
    """

    admin_key: str
    session_factory: SessionFactory
    environment: str = "development"
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    image_hosts: list[str] = field(default_factory=lambda: list(DEFAULT_IMAGE_HOSTS))
    admin_key_is_default: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_config(session_factory: SessionFactory | None = None) -> AppConfig:
    """Build the AppConfig from environment variables (and .env)."""
    environment = os.getenv("ROOMSIZE_ENV", "development").strip().lower()
    admin_key = os.getenv("ADMIN_KEY", "").strip()
    admin_key_is_default = not admin_key

    if admin_key_is_default:
        if environment == "production":
            raise ConfigError("ADMIN_KEY must be set when ROOMSIZE_ENV=production")
        logger.warning(
            "ADMIN_KEY is not set; the admin dashboard is using the development fallback key"
        )
        admin_key = DEV_ADMIN_KEY

    return AppConfig(
        admin_key=admin_key,
        session_factory=session_factory or SessionLocal,
        environment=environment,
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS"), DEFAULT_CORS_ORIGINS),
        image_hosts=_split_csv(os.getenv("IMAGE_HOSTS"), DEFAULT_IMAGE_HOSTS),
        admin_key_is_default=admin_key_is_default,
    )


def configure_logging() -> None:
    """Root logger to stdout at LOG_LEVEL (default INFO)."""
    level = (os.getenv("LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(level)

    # uvicorn --reload re-imports the app; avoid stacking handlers
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(
        (os.getenv("SQL_LOG_LEVEL") or "WARNING").upper()
    )
