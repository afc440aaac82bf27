import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from services.common import (
    DEFAULT_APP_NAME,
    ServiceSettings,
    build_app,
    configure_logging,
    create_engine_from_settings,
    dispose_engines,
    get_session_factory,
    resolve_database_url,
)
from services.common.kafka import KafkaProducerStub

from .api.connections import router as connections_router
from .api.health import router as health_router
from .api.payment_events import router as payment_events_router
from .events import PaymentStatusEventPublisher
from .schema import DEFAULT_DATABASE_URL, apply_schema

SERVICE_NAME = "Payment Status Service"

_LOGGER = logging.getLogger(__name__)


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    """Create the Payment Status Service FastAPI application."""

    resolved_settings = settings or ServiceSettings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)
    database_url = resolve_database_url(resolved_settings, DEFAULT_DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        kafka_producer: KafkaProducerStub | None = None
        engine = create_engine_from_settings(resolved_settings, DEFAULT_DATABASE_URL)
        app.state.session_factory = get_session_factory(database_url)
        try:
            if resolved_settings.apply_schema_on_startup:
                await apply_schema(engine)
            kafka_producer = KafkaProducerStub(bootstrap_servers=resolved_settings.kafka_bootstrap_servers)
            await kafka_producer.connect()
            app.state.kafka_producer = kafka_producer
            app.state.event_publisher = PaymentStatusEventPublisher(
                kafka_producer,
                status_topic=resolved_settings.payment_status_topic,
            )
            _LOGGER.info("%s started", resolved_settings.app_name)
            yield
        finally:
            app.state.session_factory = None  # type: ignore[assignment]
            app.state.event_publisher = None
            app.state.kafka_producer = None
            if kafka_producer is not None:
                await kafka_producer.close()
            await dispose_engines()

    app = build_app(resolved_settings, lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(connections_router)
    app.include_router(payment_events_router)
    return app


app = create_app()
