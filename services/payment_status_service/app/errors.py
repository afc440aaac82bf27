"""Domain errors raised by the payment status repository."""

from __future__ import annotations


class PaymentStatusError(Exception):
    """Base class for payment status persistence errors."""


class ConnectionAlreadyRegistered(PaymentStatusError):
    """A websocket connection with this connection id already exists."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Connection {connection_id!r} is already registered")
        self.connection_id = connection_id


class DuplicatePaymentEvent(PaymentStatusError):
    """An identical (payment intent, status, timestamp) event was already recorded."""

    def __init__(self, payment_intent_id: str, status: str) -> None:
        super().__init__(f"Event {status!r} for {payment_intent_id!r} was already recorded")
        self.payment_intent_id = payment_intent_id
        self.status = status
