"""Shared utilities for the storefront packages."""

from .config import DEFAULT_APP_NAME, StorefrontSettings, get_settings
from .database import (
    create_engine,
    create_schema,
    dispose_engines,
    get_session_factory,
    lifespan_session,
    resolve_database_url,
)
from .instrumentation import build_app, instrument_app
from .logging import configure_logging
from .messaging import EventBus, EventConsumer, EventProducer, envelope

__all__ = [
    "StorefrontSettings",
    "get_settings",
    "build_app",
    "instrument_app",
    "configure_logging",
    "DEFAULT_APP_NAME",
    "create_engine",
    "create_schema",
    "dispose_engines",
    "get_session_factory",
    "lifespan_session",
    "resolve_database_url",
    "EventBus",
    "EventProducer",
    "EventConsumer",
    "envelope",
]
