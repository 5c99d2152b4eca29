"""Repository-level dependency providers."""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...repositories.booking_repository import BookingRepository
from ...repositories.robokassa_payment_repository import RobokassaPaymentRepository
from .database import get_db


def get_robokassa_payment_repo(db: Session = Depends(get_db)) -> RobokassaPaymentRepository:
    """Provide a RobokassaPaymentRepository instance."""

    return RobokassaPaymentRepository(db)


def get_booking_repo(db: Session = Depends(get_db)) -> BookingRepository:
    """Provide a BookingRepository instance."""

    return BookingRepository(db)
