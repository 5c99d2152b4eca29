# backend/app/schemas/__init__.py
"""
Pydantic schemas for the studio booking platform.
"""

from .robokassa_payment import (
    InitPaymentRequest,
    InitPaymentResponse,
    SuccessCallbackResponse,
)

__all__ = [
    "InitPaymentRequest",
    "InitPaymentResponse",
    "SuccessCallbackResponse",
]
