"""
Robokassa payment schemas.

Request and response models for the checkout endpoint and the SuccessURL
redirect. The ResultURL endpoint answers in plain text and has no schema.
"""

from typing import Dict, Optional

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel

# ========== Request Models ==========


class InitPaymentRequest(StrictRequestModel):
    """Request to issue a Robokassa invoice for a booking."""

    booking_id: int = Field(..., gt=0, description="Booking the invoice pays for")
    out_sum: str = Field(
        ...,
        min_length=1,
        max_length=32,
        description="Amount as decimal text, e.g. '1500.00'; sent to Robokassa verbatim",
    )
    description: str = Field(default="", max_length=100, description="Shown on the checkout page")
    shp_params: Optional[Dict[str, str]] = Field(
        default=None,
        description="Extra Shp_ parameters (keys without the prefix), echoed back in callbacks",
    )


# ========== Response Models ==========


class InitPaymentResponse(StrictModel):
    """Checkout link for a freshly issued invoice."""

    inv_id: int = Field(..., description="Invoice id correlating both callbacks")
    payment_url: str = Field(..., description="Robokassa checkout URL")
    signature: str = Field(..., description="Init signature embedded in the URL")
    status: str = Field(..., description="Payment attempt status (always 'pending')")


class SuccessCallbackResponse(StrictModel):
    """Result of validating a SuccessURL redirect."""

    status: str = Field(..., description="Payment attempt status after processing")
    validated: bool = Field(..., description="Signature and amount checks passed")
    transitioned: bool = Field(..., description="This redirect moved the payment to paid")
    inv_id: int = Field(..., description="Invoice id from the redirect")


__all__ = ["InitPaymentRequest", "InitPaymentResponse", "SuccessCallbackResponse"]
