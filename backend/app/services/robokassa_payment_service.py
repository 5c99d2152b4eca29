# backend/app/services/robokassa_payment_service.py
"""
Robokassa payment service.

Issues checkout links and reconciles the two provider callbacks against the
payment attempts we issued:

- ResultURL: server-to-server notification signed with Password2. This is the
  authoritative settlement channel; the provider expects ``OK<InvId>`` back.
- SuccessURL: browser redirect signed with Password1. Settles the payment only
  when the redirect is trusted by configuration.

Both channels funnel into the same compare-and-swap on the payment row, so a
payment is marked paid and its booking synced exactly once no matter how many
callbacks arrive or in which order.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
import json
import logging
import time
from typing import Mapping, Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from ..core.exceptions import (
    AmountMismatchException,
    InvoiceNotFoundException,
    NotFoundException,
    PaymentConfigurationError,
    SignatureInvalidException,
    ValidationException,
)
from ..core.metrics import (
    BOOKING_PAYMENT_SYNC_FAILURES_TOTAL,
    ROBOKASSA_CALLBACK_TOTAL,
    ROBOKASSA_PAYMENTS_INITIATED_TOTAL,
    ROBOKASSA_PAYMENTS_SETTLED_TOTAL,
)
from ..models.booking import BookingPaymentStatus
from ..models.robokassa_payment import RobokassaPayment, RobokassaPaymentStatus
from ..repositories.interfaces import BookingPaymentWriter, BookingReader, PaymentRepository
from ..repositories.robokassa_payment_repository import RESULT_RAW_BODY, SUCCESS_RAW_BODY
from .base import BaseService
from .robokassa_signature import (
    SHP_PREFIX,
    RobokassaCredentials,
    RobokassaSignatureVerifier,
    amounts_equal,
    parse_amount,
)

logger = logging.getLogger(__name__)

CHANNEL_RESULT = "result"
CHANNEL_SUCCESS = "success"

# Each channel keeps its payload in its own audit column
_RAW_BODY_FIELD_BY_CHANNEL = {CHANNEL_RESULT: RESULT_RAW_BODY, CHANNEL_SUCCESS: SUCCESS_RAW_BODY}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class InitPaymentResult:
    inv_id: int
    payment_url: str
    signature: str
    status: str


@dataclass(frozen=True)
class ResultCallbackOutcome:
    """Outcome of an accepted ResultURL notification."""

    ack: str
    transitioned: bool
    payment: RobokassaPayment


@dataclass(frozen=True)
class SuccessCallbackOutcome:
    """Outcome of an accepted SuccessURL redirect."""

    inv_id: int
    validated: bool
    transitioned: bool
    status: str


class RobokassaPaymentService(BaseService):
    """Business logic for Robokassa checkout and callback reconciliation."""

    def __init__(
        self,
        db: Session,
        payments: PaymentRepository,
        bookings: BookingReader,
        booking_writer: BookingPaymentWriter,
        credentials: RobokassaCredentials,
        *,
        base_url: str,
        result_url: str = "",
        success_url: str = "",
        is_test: str = "1",
        trust_success_redirect: bool = True,
    ) -> None:
        super().__init__(db)
        self.payments = payments
        self.bookings = bookings
        self.booking_writer = booking_writer
        self.credentials = credentials
        self.verifier = RobokassaSignatureVerifier(credentials)
        self.base_url = base_url
        self.result_url = result_url
        self.success_url = success_url
        self.is_test = is_test
        self.trust_success_redirect = trust_success_redirect

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def _build_payment_url(
        self,
        *,
        out_sum: str,
        inv_id: int,
        description: str,
        signature: str,
        shp_params: Mapping[str, str],
    ) -> str:
        query: list[tuple[str, str]] = [
            ("MerchantLogin", self.credentials.merchant_login),
            ("OutSum", out_sum),
            ("InvId", str(inv_id)),
            ("Description", description),
            ("SignatureValue", signature),
            ("IsTest", self.is_test),
        ]
        if self.result_url:
            query.append(("ResultURL", self.result_url))
        if self.success_url:
            query.append(("SuccessURL", self.success_url))
        for key in sorted(shp_params):
            query.append((f"{SHP_PREFIX}{key}", shp_params[key]))
        return f"{self.base_url}?{urlencode(query)}"

    @BaseService.measure_operation("robokassa.init_payment")
    def init_payment(
        self,
        booking_id: int,
        out_sum: str,
        description: str = "",
        shp_params: Optional[Mapping[str, str]] = None,
    ) -> InitPaymentResult:
        """
        Issue a new invoice for a booking and return the checkout URL.

        Raises:
            PaymentConfigurationError: credentials missing
            ValidationException: ``out_sum`` is not a positive amount
            NotFoundException: booking does not exist
        """
        if not self.credentials.is_configured:
            raise PaymentConfigurationError()

        out_sum = (out_sum or "").strip()
        amount = parse_amount(out_sum)
        if amount is None or amount <= Decimal("0"):
            raise ValidationException("out_sum must be a positive amount", code="INVALID_AMOUNT")

        booking = self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking with id {booking_id} not found")

        shp = dict(shp_params or {})
        inv_id = time.time_ns()
        signature = self.verifier.init_signature(out_sum, inv_id, shp)
        payment_url = self._build_payment_url(
            out_sum=out_sum,
            inv_id=inv_id,
            description=description,
            signature=signature,
            shp_params=shp,
        )

        with self.transaction():
            self.payments.create(
                booking_id=booking_id,
                inv_id=inv_id,
                out_sum=out_sum,
                description=description,
                status=RobokassaPaymentStatus.PENDING.value,
                signature=signature,
                robokassa_url=payment_url,
                shp_params=json.dumps(shp, sort_keys=True) if shp else None,
            )

        try:
            with self.transaction():
                self.booking_writer.update_payment_status(booking_id, BookingPaymentStatus.UNPAID)
        except Exception as exc:
            BOOKING_PAYMENT_SYNC_FAILURES_TOTAL.labels(stage="init").inc()
            self.logger.warning(
                "Failed to reset booking %s payment status after init: %s",
                booking_id,
                exc,
                extra={"booking_id": booking_id, "inv_id": inv_id},
            )

        ROBOKASSA_PAYMENTS_INITIATED_TOTAL.inc()
        self.logger.info(
            "Issued Robokassa invoice %s for booking %s",
            inv_id,
            booking_id,
            extra={"booking_id": booking_id, "inv_id": inv_id, "out_sum": out_sum},
        )
        return InitPaymentResult(
            inv_id=inv_id,
            payment_url=payment_url,
            signature=signature,
            status=RobokassaPaymentStatus.PENDING.value,
        )

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _load_payment(self, inv_id: int, channel: str) -> RobokassaPayment:
        payment = self.payments.get_by_inv_id(inv_id)
        if payment is None:
            ROBOKASSA_CALLBACK_TOTAL.labels(channel=channel, outcome="not_found").inc()
            self.logger.warning(
                "Robokassa %s callback for unknown invoice %s",
                channel,
                inv_id,
                extra={"inv_id": inv_id, "channel": channel},
            )
            raise InvoiceNotFoundException(inv_id)
        return payment

    def _reject_amount(
        self, payment: RobokassaPayment, out_sum: str, raw_body: str, channel: str
    ) -> None:
        reason = f"amount mismatch callback={out_sum} expected={payment.out_sum}"
        with self.transaction():
            self.payments.update_status(
                payment.inv_id,
                RobokassaPaymentStatus.FAILED,
                raw_body,
                reason,
                raw_body_field=_RAW_BODY_FIELD_BY_CHANNEL[channel],
            )
        ROBOKASSA_CALLBACK_TOTAL.labels(channel=channel, outcome="amount_mismatch").inc()
        self.logger.warning(
            "Robokassa %s callback amount mismatch for invoice %s",
            channel,
            payment.inv_id,
            extra={
                "inv_id": payment.inv_id,
                "channel": channel,
                "received": out_sum,
                "expected": payment.out_sum,
            },
        )
        raise AmountMismatchException(payment.inv_id, out_sum, payment.out_sum)

    def _settle(self, payment: RobokassaPayment, raw_body: str, channel: str) -> bool:
        """Run the paid compare-and-swap; sync the booking only when this call won."""
        with self.transaction():
            transitioned = self.payments.mark_paid_idempotent(
                payment.inv_id,
                raw_body,
                _now_utc(),
                raw_body_field=_RAW_BODY_FIELD_BY_CHANNEL[channel],
            )
        self.payments.refresh(payment)

        if not transitioned:
            self.logger.info(
                "Robokassa %s callback replay for already paid invoice %s",
                channel,
                payment.inv_id,
                extra={"inv_id": payment.inv_id, "channel": channel},
            )
            return False

        ROBOKASSA_PAYMENTS_SETTLED_TOTAL.labels(channel=channel).inc()
        self.logger.info(
            "Robokassa invoice %s settled via %s",
            payment.inv_id,
            channel,
            extra={"inv_id": payment.inv_id, "booking_id": payment.booking_id},
        )
        self._sync_booking_paid(payment, channel)
        return True

    def _sync_booking_paid(self, payment: RobokassaPayment, channel: str) -> None:
        # The payment row is already committed; a booking failure must not undo it.
        try:
            with self.transaction():
                self.booking_writer.update_payment_status_system(
                    payment.booking_id, BookingPaymentStatus.PAID
                )
        except Exception as exc:
            BOOKING_PAYMENT_SYNC_FAILURES_TOTAL.labels(stage=channel).inc()
            self.logger.error(
                "Failed to mark booking %s paid after invoice %s: %s",
                payment.booking_id,
                payment.inv_id,
                exc,
                extra={"inv_id": payment.inv_id, "booking_id": payment.booking_id},
            )

    @BaseService.measure_operation("robokassa.handle_result")
    def handle_result_callback(
        self,
        out_sum: str,
        inv_id: int,
        signature: Optional[str],
        shp_params: Optional[Mapping[str, str]],
        raw_body: str,
    ) -> ResultCallbackOutcome:
        """
        Process a ResultURL notification.

        Raises:
            InvoiceNotFoundException: unknown ``inv_id``; nothing is written
            SignatureInvalidException: Password2 signature mismatch; attempt marked failed
            AmountMismatchException: amount differs from the invoice; attempt marked failed
        """
        payment = self._load_payment(inv_id, CHANNEL_RESULT)

        if not self.verifier.verify_result(out_sum, inv_id, signature, shp_params):
            with self.transaction():
                self.payments.update_status(
                    inv_id,
                    RobokassaPaymentStatus.FAILED,
                    raw_body,
                    "invalid signature",
                )
            ROBOKASSA_CALLBACK_TOTAL.labels(channel=CHANNEL_RESULT, outcome="invalid_signature").inc()
            self.logger.warning(
                "Robokassa result signature mismatch for invoice %s",
                inv_id,
                extra={"inv_id": inv_id, "channel": CHANNEL_RESULT},
            )
            raise SignatureInvalidException(inv_id, CHANNEL_RESULT)

        if not amounts_equal(out_sum, payment.out_sum):
            self._reject_amount(payment, out_sum, raw_body, CHANNEL_RESULT)

        transitioned = self._settle(payment, raw_body, CHANNEL_RESULT)
        ROBOKASSA_CALLBACK_TOTAL.labels(
            channel=CHANNEL_RESULT, outcome="paid" if transitioned else "replay"
        ).inc()
        return ResultCallbackOutcome(ack=f"OK{inv_id}", transitioned=transitioned, payment=payment)

    @BaseService.measure_operation("robokassa.handle_success")
    def handle_success_callback(
        self,
        out_sum: str,
        inv_id: int,
        signature: Optional[str],
        shp_params: Optional[Mapping[str, str]],
        raw_body: str,
    ) -> SuccessCallbackOutcome:
        """
        Process the SuccessURL browser redirect.

        The raw payload is stored before any check so forged redirects leave
        a trace. A bad signature changes no status.

        Raises:
            InvoiceNotFoundException: unknown ``inv_id``
            SignatureInvalidException: Password1 signature mismatch
            AmountMismatchException: amount differs from the invoice; attempt marked failed
        """
        try:
            with self.transaction():
                self.payments.save_success_raw_body(inv_id, raw_body)
        except Exception as exc:
            self.logger.warning(
                "Failed to store Robokassa success payload for invoice %s: %s",
                inv_id,
                exc,
                extra={"inv_id": inv_id},
            )

        payment = self._load_payment(inv_id, CHANNEL_SUCCESS)

        if not self.verifier.verify_success(out_sum, inv_id, signature, shp_params):
            ROBOKASSA_CALLBACK_TOTAL.labels(
                channel=CHANNEL_SUCCESS, outcome="invalid_signature"
            ).inc()
            self.logger.warning(
                "Robokassa success signature mismatch for invoice %s",
                inv_id,
                extra={"inv_id": inv_id, "channel": CHANNEL_SUCCESS},
            )
            raise SignatureInvalidException(inv_id, CHANNEL_SUCCESS)

        if not amounts_equal(out_sum, payment.out_sum):
            self._reject_amount(payment, out_sum, raw_body, CHANNEL_SUCCESS)

        if self.trust_success_redirect:
            transitioned = self._settle(payment, raw_body, CHANNEL_SUCCESS)
            outcome = "paid" if transitioned else "replay"
        else:
            with self.transaction():
                self.payments.update_status_pending_if_not_paid(inv_id, raw_body)
            self.payments.refresh(payment)
            transitioned = False
            outcome = "awaiting_result"

        ROBOKASSA_CALLBACK_TOTAL.labels(channel=CHANNEL_SUCCESS, outcome=outcome).inc()
        return SuccessCallbackOutcome(
            inv_id=inv_id,
            validated=True,
            transitioned=transitioned,
            status=payment.status,
        )
