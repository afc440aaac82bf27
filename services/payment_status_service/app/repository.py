"""Database helpers for the payment status service."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Select, and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import ConnectionAlreadyRegistered, DuplicatePaymentEvent
from .models import CONNECTION_STATUS_ACTIVE, PaymentEvent, WebSocketConnection


class PaymentStatusRepository:
    """Persistence utilities for websocket connections and payment events."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_connection(
        self,
        *,
        payment_intent_id: str,
        connection_id: str,
        customer_id: str | None,
        customer_email: str | None,
    ) -> WebSocketConnection:
        connection = WebSocketConnection(
            payment_intent_id=payment_intent_id,
            connection_id=connection_id,
            customer_id=customer_id,
            customer_email=customer_email,
            status=CONNECTION_STATUS_ACTIVE,
        )
        self.session.add(connection)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConnectionAlreadyRegistered(connection_id) from exc
        await self.session.refresh(connection, attribute_names=["created_at", "updated_at"])
        return connection

    async def get_connection(self, connection_id: str) -> WebSocketConnection | None:
        result = await self.session.execute(
            select(WebSocketConnection).where(WebSocketConnection.connection_id == connection_id)
        )
        return result.scalar_one_or_none()

    async def list_connections(
        self,
        *,
        payment_intent_id: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[WebSocketConnection], int]:
        filters = []
        if payment_intent_id is not None:
            filters.append(WebSocketConnection.payment_intent_id == payment_intent_id)
        if status is not None:
            filters.append(WebSocketConnection.status == status)

        base: Select[tuple[WebSocketConnection]] = select(WebSocketConnection).order_by(
            WebSocketConnection.created_at.desc(), WebSocketConnection.connection_id
        )
        count: Select[tuple[int]] = select(func.count(WebSocketConnection.id))

        if filters:
            combined = and_(*filters)
            base = base.where(combined)
            count = count.where(combined)

        total = (await self.session.execute(count)).scalar_one()
        result = await self.session.execute(base.offset(offset).limit(limit))
        return list(result.scalars()), total

    async def count_connections(self, *, payment_intent_id: str, status: str) -> int:
        result = await self.session.execute(
            select(func.count(WebSocketConnection.id)).where(
                WebSocketConnection.payment_intent_id == payment_intent_id,
                WebSocketConnection.status == status,
            )
        )
        return result.scalar_one()

    async def update_connection_status(self, connection: WebSocketConnection, *, status: str) -> WebSocketConnection:
        # No trigger maintains updated_at; status writes set it from the database clock, like created_at.
        connection.status = status
        connection.updated_at = func.now()
        await self.session.flush()
        await self.session.refresh(connection, attribute_names=["updated_at"])
        return connection

    async def add_payment_event(
        self,
        *,
        payment_intent_id: str,
        status: str,
        amount: int | None,
        currency: str | None,
        customer_id: str | None,
        metadata: dict[str, Any] | None,
        created_at: datetime | None = None,
    ) -> PaymentEvent:
        event = PaymentEvent(
            payment_intent_id=payment_intent_id,
            status=status,
            amount=amount,
            currency=currency,
            customer_id=customer_id,
            metadata_json=metadata,
        )
        if created_at is not None:
            event.created_at = created_at
        self.session.add(event)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicatePaymentEvent(payment_intent_id, status) from exc
        await self.session.refresh(event, attribute_names=["created_at"])
        return event

    async def list_payment_events(
        self,
        *,
        payment_intent_id: str | None,
        status: str | None,
        limit: int | None,
        offset: int = 0,
    ) -> tuple[list[PaymentEvent], int]:
        filters = []
        if payment_intent_id is not None:
            filters.append(PaymentEvent.payment_intent_id == payment_intent_id)
        if status is not None:
            filters.append(PaymentEvent.status == status)

        # Replay order: oldest first; id breaks timestamp ties.
        base: Select[tuple[PaymentEvent]] = select(PaymentEvent).order_by(
            PaymentEvent.created_at.asc(), PaymentEvent.id.asc()
        )
        count: Select[tuple[int]] = select(func.count(PaymentEvent.id))

        if filters:
            combined = and_(*filters)
            base = base.where(combined)
            count = count.where(combined)

        total = (await self.session.execute(count)).scalar_one()
        if offset:
            base = base.offset(offset)
        if limit is not None:
            base = base.limit(limit)
        result = await self.session.execute(base)
        return list(result.scalars()), total

    async def count_payment_events(self, *, payment_intent_id: str) -> int:
        result = await self.session.execute(
            select(func.count(PaymentEvent.id)).where(PaymentEvent.payment_intent_id == payment_intent_id)
        )
        return result.scalar_one()

    async def latest_payment_event(self, payment_intent_id: str) -> PaymentEvent | None:
        result = await self.session.execute(
            select(PaymentEvent)
            .where(PaymentEvent.payment_intent_id == payment_intent_id)
            .order_by(PaymentEvent.created_at.desc(), PaymentEvent.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
