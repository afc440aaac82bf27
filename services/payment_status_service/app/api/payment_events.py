"""HTTP endpoints for the payment event log."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_payment_status_service, get_repository
from ..errors import DuplicatePaymentEvent
from ..models import PaymentEvent
from ..repository import PaymentStatusRepository
from ..schemas import (
    PaymentEventCreate,
    PaymentEventListResponse,
    PaymentEventResponse,
    PaymentStatusResponse,
)
from ..services import PaymentStatusService

router = APIRouter(tags=["payment-events"])


def _serialize_event(event: PaymentEvent) -> dict[str, object]:
    return {
        "id": event.id,
        "paymentIntentId": event.payment_intent_id,
        "status": event.status,
        "amount": event.amount,
        "currency": event.currency,
        "customerId": event.customer_id,
        "metadata": event.metadata_json,
        "createdAt": event.created_at,
    }


@router.post("/payment-events", response_model=PaymentEventResponse, status_code=status.HTTP_201_CREATED)
async def record_payment_event(
    payload: PaymentEventCreate,
    service: PaymentStatusService = Depends(get_payment_status_service),
) -> PaymentEventResponse:
    try:
        event = await service.record_payment_event(payload)
    except DuplicatePaymentEvent as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return PaymentEventResponse.model_validate(_serialize_event(event))


@router.get("/payment-events", response_model=PaymentEventListResponse)
async def list_payment_events(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    payment_intent_id: str | None = Query(default=None, alias="paymentIntentId"),
    status_filter: str | None = Query(default=None, alias="status"),
    repository: PaymentStatusRepository = Depends(get_repository),
) -> PaymentEventListResponse:
    events, total = await repository.list_payment_events(
        payment_intent_id=payment_intent_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    items = [PaymentEventResponse.model_validate(_serialize_event(event)) for event in events]
    return PaymentEventListResponse(items=items, total=total)


@router.get("/payment-intents/{payment_intent_id}/events", response_model=list[PaymentEventResponse])
async def get_payment_intent_events(
    payment_intent_id: str,
    repository: PaymentStatusRepository = Depends(get_repository),
) -> list[PaymentEventResponse]:
    events, _ = await repository.list_payment_events(
        payment_intent_id=payment_intent_id,
        status=None,
        limit=None,
    )
    return [PaymentEventResponse.model_validate(_serialize_event(event)) for event in events]


@router.get("/payment-intents/{payment_intent_id}/status", response_model=PaymentStatusResponse)
async def get_payment_intent_status(
    payment_intent_id: str,
    service: PaymentStatusService = Depends(get_payment_status_service),
) -> PaymentStatusResponse:
    snapshot = await service.payment_status(payment_intent_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No events for payment intent")
    return PaymentStatusResponse(
        paymentIntentId=snapshot.payment_intent_id,
        status=snapshot.status,
        updatedAt=snapshot.updated_at,
        eventCount=snapshot.event_count,
        activeConnections=snapshot.active_connections,
    )
