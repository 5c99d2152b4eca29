from __future__ import annotations

import pytest

from app.core.exceptions import NotFoundException, ValidationException
from app.models.booking import BookingPaymentStatus, BookingStatus
from app.repositories.booking_repository import BookingRepository


def test_update_payment_status_sets_value(db, booking):
    repo = BookingRepository(db)

    updated = repo.update_payment_status(booking.id, BookingPaymentStatus.PAID)
    db.commit()

    assert updated.payment_status == BookingPaymentStatus.PAID.value
    assert updated.updated_at is not None


def test_update_payment_status_refuses_cancelled_booking(db, booking):
    booking.status = BookingStatus.CANCELLED.value
    db.commit()
    repo = BookingRepository(db)

    with pytest.raises(ValidationException):
        repo.update_payment_status(booking.id, BookingPaymentStatus.PAID)


def test_system_update_ignores_cancellation(db, booking):
    booking.status = BookingStatus.CANCELLED.value
    db.commit()
    repo = BookingRepository(db)

    updated = repo.update_payment_status_system(booking.id, BookingPaymentStatus.PAID)
    db.commit()

    assert updated.payment_status == BookingPaymentStatus.PAID.value


@pytest.mark.parametrize("method", ["update_payment_status", "update_payment_status_system"])
def test_missing_booking_raises_not_found(db, method):
    repo = BookingRepository(db)
    with pytest.raises(NotFoundException):
        getattr(repo, method)(987654, BookingPaymentStatus.PAID)
