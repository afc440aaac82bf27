"""Event publishing helpers for the payment status service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from services.common.kafka import KafkaProducerStub

from .models import PaymentEvent, WebSocketConnection

DEFAULT_STATUS_TOPIC = "payment.status.updated.v1"
CONNECTION_TOPIC = "payment.connection.updated.v1"


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    # Stored timestamps are naive UTC.
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat()


def _mask_email(email: str | None) -> str | None:
    if not email or "@" not in email:
        return email
    name, domain = email.split("@", 1)
    if len(name) <= 2:
        return f"{name[0]}*@{domain}"
    return f"{name[0]}{'*' * (len(name) - 2)}{name[-1]}@{domain}"


class PaymentStatusEventPublisher:
    """Publishes payment status updates for realtime fan-out."""

    def __init__(self, producer: KafkaProducerStub | None, *, status_topic: str = DEFAULT_STATUS_TOPIC) -> None:
        self._producer = producer
        self._status_topic = status_topic

    async def _emit(self, topic: str, key: str, payload: dict[str, Any]) -> None:
        if self._producer is None:
            return
        envelope = {
            "eventType": topic,
            "occurredAt": datetime.now(timezone.utc).isoformat(),
            **payload,
        }
        await self._producer.send(topic, envelope, key=key)

    async def payment_status_updated(self, event: PaymentEvent) -> None:
        await self._emit(
            self._status_topic,
            event.payment_intent_id,
            {
                "type": "payment_status_update",
                "payment_intent_id": event.payment_intent_id,
                "status": event.status,
                "timestamp": _iso(event.created_at),
                "amount": event.amount,
                "currency": event.currency,
            },
        )

    async def connection_updated(self, connection: WebSocketConnection) -> None:
        await self._emit(
            CONNECTION_TOPIC,
            connection.payment_intent_id,
            {
                "connection_id": connection.connection_id,
                "payment_intent_id": connection.payment_intent_id,
                "status": connection.status,
                "customer_email": _mask_email(connection.customer_email),
                "updated_at": _iso(connection.updated_at),
            },
        )
