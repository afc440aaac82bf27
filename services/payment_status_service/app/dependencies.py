"""Dependency helpers for the payment status service."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.common import lifespan_session

from .events import PaymentStatusEventPublisher
from .repository import PaymentStatusRepository
from .services import PaymentStatusService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with lifespan_session(session_factory) as session:
        yield session


def get_repository(session: AsyncSession = Depends(get_session)) -> PaymentStatusRepository:
    return PaymentStatusRepository(session)


def get_event_publisher(request: Request) -> PaymentStatusEventPublisher | None:
    return getattr(request.app.state, "event_publisher", None)


def get_payment_status_service(
    repository: PaymentStatusRepository = Depends(get_repository),
    event_publisher: PaymentStatusEventPublisher | None = Depends(get_event_publisher),
) -> PaymentStatusService:
    return PaymentStatusService(repository, event_publisher=event_publisher)
