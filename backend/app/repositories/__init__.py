# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the studio booking platform

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories
- IRepository: Interface defining required methods for all repositories
- BookingRepository: Booking lookup and payment status writes
- RobokassaPaymentRepository: Payment attempts with guarded status transitions

Usage:
    from app.repositories import RobokassaPaymentRepository

    repo = RobokassaPaymentRepository(db)
    won = repo.mark_paid_idempotent(inv_id, raw_body, paid_at)
"""

from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository
from .robokassa_payment_repository import RobokassaPaymentRepository

__all__ = [
    "BaseRepository",
    "IRepository",
    "BookingRepository",
    "RobokassaPaymentRepository",
]
