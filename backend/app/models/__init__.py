"""
Database models for the studio booking platform.

Importing this package registers every table on ``Base.metadata``:
- Booking: the payment-facing slice of a room booking
- RobokassaPayment: one row per invoice issued to Robokassa
"""

from .booking import Booking, BookingPaymentStatus, BookingStatus
from .robokassa_payment import RobokassaPayment, RobokassaPaymentStatus

__all__ = [
    "Booking",
    "BookingPaymentStatus",
    "BookingStatus",
    "RobokassaPayment",
    "RobokassaPaymentStatus",
]
