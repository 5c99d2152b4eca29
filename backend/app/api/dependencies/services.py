# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import Settings, settings
from ...repositories.booking_repository import BookingRepository
from ...repositories.robokassa_payment_repository import RobokassaPaymentRepository
from ...services.robokassa_payment_service import RobokassaPaymentService
from .database import get_db
from .repositories import get_booking_repo, get_robokassa_payment_repo

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    """Application settings; overridable in tests."""
    return settings


def get_robokassa_payment_service(
    db: Session = Depends(get_db),
    payments: RobokassaPaymentRepository = Depends(get_robokassa_payment_repo),
    bookings: BookingRepository = Depends(get_booking_repo),
    app_settings: Settings = Depends(get_settings),
) -> RobokassaPaymentService:
    """
    Get Robokassa payment service instance.

    The booking repository serves as both the booking reader and the
    payment status writer.
    """
    return RobokassaPaymentService(
        db,
        payments,
        bookings,
        bookings,
        app_settings.robokassa_credentials(),
        base_url=app_settings.robokassa_base_url,
        result_url=app_settings.robokassa_result_url,
        success_url=app_settings.robokassa_success_url,
        is_test=app_settings.robokassa_is_test,
        trust_success_redirect=app_settings.robokassa_trust_success_redirect,
    )
