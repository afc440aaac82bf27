"""Service layer for connection lifecycle and the payment event log."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from .errors import ConnectionAlreadyRegistered, DuplicatePaymentEvent
from .events import PaymentStatusEventPublisher
from .metrics import (
    PAYMENT_EVENTS_DUPLICATE_TOTAL,
    PAYMENT_EVENTS_RECORDED_TOTAL,
    WEBSOCKET_CONNECTION_STATUS_CHANGES_TOTAL,
    WEBSOCKET_CONNECTIONS_REGISTERED_TOTAL,
    WEBSOCKET_CONNECTIONS_REJECTED_TOTAL,
    normalise_status_label,
)
from .models import CONNECTION_STATUS_ACTIVE, CONNECTION_STATUS_CLOSED, PaymentEvent, WebSocketConnection
from .repository import PaymentStatusRepository
from .schemas import ConnectionCreate, PaymentEventCreate

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PaymentStatusSnapshot:
    payment_intent_id: str
    status: str
    updated_at: datetime
    event_count: int
    active_connections: int


class PaymentStatusService:
    """Orchestrates connection registration and payment event recording."""

    def __init__(
        self,
        repository: PaymentStatusRepository,
        event_publisher: PaymentStatusEventPublisher | None = None,
    ) -> None:
        self.repository = repository
        self.event_publisher = event_publisher

    async def register_connection(self, payload: ConnectionCreate) -> WebSocketConnection:
        try:
            connection = await self.repository.create_connection(
                payment_intent_id=payload.payment_intent_id,
                connection_id=payload.connection_id,
                customer_id=payload.customer_id,
                customer_email=payload.customer_email,
            )
        except ConnectionAlreadyRegistered:
            WEBSOCKET_CONNECTIONS_REJECTED_TOTAL.inc()
            _LOGGER.warning("Connection %s is already registered", payload.connection_id)
            raise
        WEBSOCKET_CONNECTIONS_REGISTERED_TOTAL.inc()
        _LOGGER.info(
            "Registered connection %s for payment intent %s",
            connection.connection_id,
            connection.payment_intent_id,
        )
        return connection

    async def update_connection_status(self, connection: WebSocketConnection, *, status: str) -> WebSocketConnection:
        previous = connection.status
        updated = await self.repository.update_connection_status(connection, status=status)
        WEBSOCKET_CONNECTION_STATUS_CHANGES_TOTAL.labels(status=normalise_status_label(status)).inc()
        _LOGGER.info("Connection %s status %s -> %s", connection.connection_id, previous, status)
        if self.event_publisher is not None:
            await self.event_publisher.connection_updated(updated)
        return updated

    async def close_connection(self, connection: WebSocketConnection) -> WebSocketConnection:
        return await self.update_connection_status(connection, status=CONNECTION_STATUS_CLOSED)

    async def record_payment_event(self, payload: PaymentEventCreate) -> PaymentEvent:
        try:
            event = await self.repository.add_payment_event(
                payment_intent_id=payload.payment_intent_id,
                status=payload.status,
                amount=payload.amount,
                currency=payload.currency,
                customer_id=payload.customer_id,
                metadata=payload.metadata,
                created_at=payload.created_at,
            )
        except DuplicatePaymentEvent:
            PAYMENT_EVENTS_DUPLICATE_TOTAL.inc()
            _LOGGER.info(
                "Ignoring duplicate %s event for payment intent %s",
                payload.status,
                payload.payment_intent_id,
            )
            raise
        PAYMENT_EVENTS_RECORDED_TOTAL.labels(status=normalise_status_label(event.status)).inc()
        _LOGGER.info(
            "PaymentIntent status update: id=%s, status=%s, amount=%s",
            event.payment_intent_id,
            event.status,
            event.amount,
        )
        if self.event_publisher is not None:
            await self.event_publisher.payment_status_updated(event)
        return event

    async def payment_status(self, payment_intent_id: str) -> PaymentStatusSnapshot | None:
        latest = await self.repository.latest_payment_event(payment_intent_id)
        if latest is None:
            return None
        event_count = await self.repository.count_payment_events(payment_intent_id=payment_intent_id)
        active = await self.repository.count_connections(
            payment_intent_id=payment_intent_id,
            status=CONNECTION_STATUS_ACTIVE,
        )
        return PaymentStatusSnapshot(
            payment_intent_id=payment_intent_id,
            status=latest.status,
            updated_at=latest.created_at,
            event_count=event_count,
            active_connections=active,
        )
