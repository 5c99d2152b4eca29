"""Prometheus counters for Robokassa payment flows."""

from __future__ import annotations

from prometheus_client import Counter

from ..monitoring.prometheus_metrics import REGISTRY

# Callback outcomes per channel (result | success).
ROBOKASSA_CALLBACK_TOTAL = Counter(
    "robokassa_callback_total",
    "Robokassa callbacks processed",
    ["channel", "outcome"],
    registry=REGISTRY,
)

# Pending -> paid transitions actually performed (not replays).
ROBOKASSA_PAYMENTS_SETTLED_TOTAL = Counter(
    "robokassa_payments_settled_total",
    "Robokassa payments transitioned to paid",
    ["channel"],
    registry=REGISTRY,
)

# Booking sync failures after a settled payment.
BOOKING_PAYMENT_SYNC_FAILURES_TOTAL = Counter(
    "booking_payment_sync_failures_total",
    "Booking payment status updates that failed after payment settlement",
    ["stage"],
    registry=REGISTRY,
)

ROBOKASSA_PAYMENTS_INITIATED_TOTAL = Counter(
    "robokassa_payments_initiated_total",
    "Robokassa checkout links issued",
    registry=REGISTRY,
)
