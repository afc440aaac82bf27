"""Pydantic schemas for the payment status service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator


def _strip_required(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        msg = "value must be non-empty"
        raise ValueError(msg)
    return cleaned


def _strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class ConnectionCreate(BaseModel):
    payment_intent_id: str = Field(alias="paymentIntentId", min_length=1, max_length=255)
    connection_id: str = Field(alias="connectionId", min_length=1, max_length=255)
    customer_id: str | None = Field(default=None, alias="customerId", max_length=255)
    customer_email: str | None = Field(default=None, alias="customerEmail", max_length=320)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("payment_intent_id", "connection_id")
    @classmethod
    def _strip_ids(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator("customer_id", "customer_email")
    @classmethod
    def _strip_customer(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class ConnectionUpdateStatus(BaseModel):
    status: str = Field(min_length=1, max_length=32)

    @field_validator("status")
    @classmethod
    def _strip_status(cls, value: str) -> str:
        return _strip_required(value)


class ConnectionResponse(BaseModel):
    id: UUID
    payment_intent_id: str = Field(alias="paymentIntentId")
    connection_id: str = Field(alias="connectionId")
    customer_id: str | None = Field(default=None, alias="customerId")
    customer_email: str | None = Field(default=None, alias="customerEmail")
    status: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ConnectionListResponse(BaseModel):
    items: list[ConnectionResponse]
    total: int


class PaymentEventCreate(BaseModel):
    payment_intent_id: str = Field(alias="paymentIntentId", min_length=1, max_length=255)
    status: str = Field(min_length=1, max_length=64)
    amount: NonNegativeInt | None = Field(default=None, le=2**63 - 1)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    customer_id: str | None = Field(default=None, alias="customerId", max_length=255)
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("payment_intent_id")
    @classmethod
    def _strip_intent(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator("customer_id")
    @classmethod
    def _strip_customer(cls, value: str | None) -> str | None:
        return _strip_optional(value)

    @field_validator("status")
    @classmethod
    def _strip_status(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().lower()

    @field_validator("created_at")
    @classmethod
    def _to_naive_utc(cls, value: datetime | None) -> datetime | None:
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)


class PaymentEventResponse(BaseModel):
    id: UUID
    payment_intent_id: str = Field(alias="paymentIntentId")
    status: str
    amount: int | None = None
    currency: str | None = None
    customer_id: str | None = Field(default=None, alias="customerId")
    metadata: dict[str, Any] | None = None
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class PaymentEventListResponse(BaseModel):
    items: list[PaymentEventResponse]
    total: int


class PaymentStatusResponse(BaseModel):
    payment_intent_id: str = Field(alias="paymentIntentId")
    status: str
    updated_at: datetime = Field(alias="updatedAt")
    event_count: NonNegativeInt = Field(alias="eventCount")
    active_connections: NonNegativeInt = Field(alias="activeConnections")

    model_config = ConfigDict(populate_by_name=True)
