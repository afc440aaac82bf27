"""SQLAlchemy models for the payment status service."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Index, Text, UniqueConstraint, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.functions import FunctionElement

CONNECTION_STATUS_ACTIVE = "active"
CONNECTION_STATUS_CLOSED = "closed"


def utcnow() -> datetime:
    """Current UTC time as a naive timestamp, matching the TIMESTAMP columns."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


class uuid_generate_v4(FunctionElement):
    """Server-side random UUID; provided by the uuid-ossp extension on PostgreSQL."""

    type = Uuid()
    inherit_cache = True


@compiles(uuid_generate_v4, "postgresql")
def _uuid_generate_v4_postgresql(element, compiler, **kw) -> str:
    return "uuid_generate_v4()"


@compiles(uuid_generate_v4)
def _uuid_generate_v4_default(element, compiler, **kw) -> str:
    # SQLite stores Uuid as 32 hex characters.
    return "lower(hex(randomblob(16)))"


JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for payment status ORM models."""


class WebSocketConnection(Base):
    __tablename__ = "websocket_connections"
    __table_args__ = (
        UniqueConstraint("connection_id", name="websocket_connections_connection_id_key"),
        Index("idx_websocket_connections_payment_intent_id", "payment_intent_id"),
        Index("idx_websocket_connections_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, server_default=uuid_generate_v4()
    )
    payment_intent_id: Mapped[str] = mapped_column(Text, nullable=False)
    connection_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, server_default=func.now(), onupdate=func.now()
    )
    customer_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=CONNECTION_STATUS_ACTIVE, server_default=CONNECTION_STATUS_ACTIVE
    )


class PaymentEvent(Base):
    """Append-only record of a payment intent's status transitions."""

    __tablename__ = "payment_events"
    __table_args__ = (
        UniqueConstraint(
            "payment_intent_id",
            "status",
            "created_at",
            name="payment_events_payment_intent_id_status_created_at_key",
        ),
        Index("idx_payment_events_payment_intent_id", "payment_intent_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, server_default=uuid_generate_v4()
    )
    payment_intent_id: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    # Assigned with microsecond precision on insert; NOW() covers rows written outside the ORM.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=utcnow, server_default=func.now()
    )
    amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    currency: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes.
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONDocument, nullable=True)
