"""HTTP endpoints for websocket connection records."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_payment_status_service, get_repository
from ..errors import ConnectionAlreadyRegistered
from ..models import WebSocketConnection
from ..repository import PaymentStatusRepository
from ..schemas import ConnectionCreate, ConnectionListResponse, ConnectionResponse, ConnectionUpdateStatus
from ..services import PaymentStatusService

router = APIRouter(prefix="/connections", tags=["connections"])


def _serialize_connection(connection: WebSocketConnection) -> dict[str, object]:
    return {
        "id": connection.id,
        "paymentIntentId": connection.payment_intent_id,
        "connectionId": connection.connection_id,
        "customerId": connection.customer_id,
        "customerEmail": connection.customer_email,
        "status": connection.status,
        "createdAt": connection.created_at,
        "updatedAt": connection.updated_at,
    }


async def _require_connection(repository: PaymentStatusRepository, connection_id: str) -> WebSocketConnection:
    connection = await repository.get_connection(connection_id)
    if connection is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found")
    return connection


@router.post("", response_model=ConnectionResponse, status_code=status.HTTP_201_CREATED)
async def register_connection(
    payload: ConnectionCreate,
    service: PaymentStatusService = Depends(get_payment_status_service),
) -> ConnectionResponse:
    try:
        connection = await service.register_connection(payload)
    except ConnectionAlreadyRegistered as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return ConnectionResponse.model_validate(_serialize_connection(connection))


@router.get("", response_model=ConnectionListResponse)
async def list_connections(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    payment_intent_id: str | None = Query(default=None, alias="paymentIntentId"),
    status_filter: str | None = Query(default=None, alias="status"),
    repository: PaymentStatusRepository = Depends(get_repository),
) -> ConnectionListResponse:
    connections, total = await repository.list_connections(
        payment_intent_id=payment_intent_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    items = [ConnectionResponse.model_validate(_serialize_connection(item)) for item in connections]
    return ConnectionListResponse(items=items, total=total)


@router.get("/{connection_id}", response_model=ConnectionResponse)
async def get_connection(
    connection_id: str,
    repository: PaymentStatusRepository = Depends(get_repository),
) -> ConnectionResponse:
    connection = await _require_connection(repository, connection_id)
    return ConnectionResponse.model_validate(_serialize_connection(connection))


@router.patch("/{connection_id}/status", response_model=ConnectionResponse)
async def update_connection_status(
    connection_id: str,
    payload: ConnectionUpdateStatus,
    service: PaymentStatusService = Depends(get_payment_status_service),
) -> ConnectionResponse:
    connection = await _require_connection(service.repository, connection_id)
    updated = await service.update_connection_status(connection, status=payload.status)
    return ConnectionResponse.model_validate(_serialize_connection(updated))


@router.post("/{connection_id}/close", response_model=ConnectionResponse)
async def close_connection(
    connection_id: str,
    service: PaymentStatusService = Depends(get_payment_status_service),
) -> ConnectionResponse:
    connection = await _require_connection(service.repository, connection_id)
    closed = await service.close_connection(connection)
    return ConnectionResponse.model_validate(_serialize_connection(closed))
