"""Shared utilities for the payment status service."""

from .config import DEFAULT_APP_NAME, ServiceSettings, get_settings
from .instrumentation import build_app, instrument_app
from .logging import configure_logging
from .database import (
    create_engine,
    create_engine_from_settings,
    dispose_engines,
    get_session_factory,
    is_sqlite,
    lifespan_session,
    normalize_database_url,
    resolve_database_url,
)
from .kafka import BusMessage, KafkaConsumerStub, KafkaProducerStub

__all__ = [
    "ServiceSettings",
    "get_settings",
    "build_app",
    "instrument_app",
    "configure_logging",
    "DEFAULT_APP_NAME",
    "create_engine",
    "create_engine_from_settings",
    "dispose_engines",
    "get_session_factory",
    "is_sqlite",
    "lifespan_session",
    "normalize_database_url",
    "resolve_database_url",
    "BusMessage",
    "KafkaProducerStub",
    "KafkaConsumerStub",
]
