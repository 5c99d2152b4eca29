# backend/app/repositories/booking_repository.py
"""
Booking Repository for the studio booking platform

Only the payment-facing slice of booking data access lives here:
- Lookup by id (inherited)
- Payment status changes, user-initiated and system-driven
"""

from datetime import datetime, timezone
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, RepositoryException, ValidationException
from ..models.booking import Booking, BookingPaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking payment state."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def _load_for_update(self, booking_id: int) -> Booking:
        booking = self.get_by_id(booking_id)
        if not booking:
            raise NotFoundException(f"Booking with id {booking_id} not found")
        return booking

    def _write_payment_status(self, booking: Booking, status: BookingPaymentStatus) -> Booking:
        booking.payment_status = BookingPaymentStatus(status).value
        booking.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        return booking

    def update_payment_status(self, booking_id: int, status: BookingPaymentStatus) -> Booking:
        """
        Change payment status on behalf of a user.

        Raises:
            NotFoundException: If booking not found
            ValidationException: If the booking is cancelled
            RepositoryException: If update fails
        """
        try:
            booking = self._load_for_update(booking_id)
            if booking.is_cancelled():
                raise ValidationException(
                    f"Booking {booking_id} is cancelled; payment status cannot change",
                    code="BOOKING_CANCELLED",
                )
            self._write_payment_status(booking, status)
            self.logger.info(f"Booking {booking_id} payment status set to {status.value}")
            return booking
        except (NotFoundException, ValidationException):
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating payment status for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking payment status: {str(e)}")

    def update_payment_status_system(
        self, booking_id: int, status: BookingPaymentStatus
    ) -> Booking:
        """
        Change payment status from a provider callback.

        Skips user-facing guards: money already moved, so the booking must
        reflect it even when cancelled.

        Raises:
            NotFoundException: If booking not found
            RepositoryException: If update fails
        """
        try:
            booking = self._load_for_update(booking_id)
            self._write_payment_status(booking, status)
            self.logger.info(
                f"Booking {booking_id} payment status set to {status.value} (system)"
            )
            return booking
        except NotFoundException:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating payment status for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking payment status: {str(e)}")
