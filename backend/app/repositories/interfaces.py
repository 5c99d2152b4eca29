"""
Collaborator contracts consumed by the Robokassa payment service.

The SQLAlchemy repositories satisfy these structurally; tests and alternative
stores can substitute anything with the same shape.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol

from ..models.booking import Booking, BookingPaymentStatus
from ..models.robokassa_payment import RobokassaPayment, RobokassaPaymentStatus


class PaymentRepository(Protocol):
    """Store for payment attempts; every status write is guarded against PAID."""

    def create(self, **kwargs: Any) -> RobokassaPayment:
        ...

    def get_by_inv_id(self, inv_id: int) -> Optional[RobokassaPayment]:
        ...

    def update_status(
        self,
        inv_id: int,
        status: RobokassaPaymentStatus,
        raw_body: str,
        reason: str,
        paid_at: Optional[datetime] = None,
        *,
        raw_body_field: str = ...,
    ) -> bool:
        ...

    def update_status_pending_if_not_paid(self, inv_id: int, raw_body: str) -> bool:
        ...

    def save_success_raw_body(self, inv_id: int, raw_body: str) -> None:
        ...

    def mark_paid_idempotent(
        self, inv_id: int, raw_body: str, paid_at: datetime, *, raw_body_field: str = ...
    ) -> bool:
        ...

    def refresh(self, instance: RobokassaPayment) -> None:
        ...


class BookingReader(Protocol):
    def get_by_id(self, id: int) -> Optional[Booking]:
        ...


class BookingPaymentWriter(Protocol):
    """Owns the booking row; the payment service never writes bookings directly."""

    def update_payment_status(self, booking_id: int, status: BookingPaymentStatus) -> Booking:
        """User-initiated change; refuses cancelled bookings."""
        ...

    def update_payment_status_system(
        self, booking_id: int, status: BookingPaymentStatus
    ) -> Booking:
        """System-driven change (provider callbacks); no user-facing guards."""
        ...
