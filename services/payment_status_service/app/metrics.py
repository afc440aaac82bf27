"""Prometheus metrics for the payment status service."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter

_KNOWN_STATUS_LABELS: Final = frozenset(
    {
        "active",
        "closed",
        "created",
        "processing",
        "requires_action",
        "requires_capture",
        "amount_capturable_updated",
        "partially_funded",
        "succeeded",
        "canceled",
        "payment_failed",
    }
)

# Websocket connections ---------------------------------------------------------------------
WEBSOCKET_CONNECTIONS_REGISTERED_TOTAL: Final = Counter(
    "websocket_connections_registered_total",
    "Websocket connections registered against a payment intent.",
)

WEBSOCKET_CONNECTIONS_REJECTED_TOTAL: Final = Counter(
    "websocket_connections_rejected_total",
    "Connection registrations rejected because the connection id already exists.",
)

WEBSOCKET_CONNECTION_STATUS_CHANGES_TOTAL: Final = Counter(
    "websocket_connection_status_changes_total",
    "Connection status transitions by target status.",
    labelnames=("status",),
)

# Payment events ----------------------------------------------------------------------------
PAYMENT_EVENTS_RECORDED_TOTAL: Final = Counter(
    "payment_events_recorded_total",
    "Payment events appended to the event log by status.",
    labelnames=("status",),
)

PAYMENT_EVENTS_DUPLICATE_TOTAL: Final = Counter(
    "payment_events_duplicate_total",
    "Payment events rejected as duplicates of an already recorded event.",
)


def normalise_status_label(raw_status: str) -> str:
    """Return a bounded label value; statuses are free-form text."""

    status = (raw_status or "").strip().lower()
    if status not in _KNOWN_STATUS_LABELS:
        return "other"
    return status
