# backend/app/repositories/robokassa_payment_repository.py
"""
Repository for Robokassa payment attempts.

Every status-mutating write is a single conditional UPDATE guarded by
``status <> 'paid'``; the rows-affected count tells the caller whether its
write won. Concurrent callbacks for the same invoice therefore serialize in
the database and no in-process locking is needed. Nothing here commits -
the service owns the transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Optional, cast

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import InvoiceNotFoundException, RepositoryException
from ..models.robokassa_payment import RobokassaPayment, RobokassaPaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_PAID = RobokassaPaymentStatus.PAID.value

RESULT_RAW_BODY = "result_raw_body"
SUCCESS_RAW_BODY = "success_raw_body"
_RAW_BODY_FIELDS = frozenset({RESULT_RAW_BODY, SUCCESS_RAW_BODY})


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class RobokassaPaymentRepository(BaseRepository[RobokassaPayment]):
    """Data access for payment attempts keyed by invoice id."""

    def __init__(self, db: Session):
        super().__init__(db, RobokassaPayment)

    def get_by_inv_id(self, inv_id: int) -> Optional[RobokassaPayment]:
        try:
            result = self._build_query().filter(RobokassaPayment.inv_id == inv_id).first()
            return cast(Optional[RobokassaPayment], result)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load payment for inv_id %s: %s", inv_id, str(exc))
            raise RepositoryException("Failed to load payment") from exc

    def _guarded_update(self, inv_id: int, values: dict[str, Any]) -> int:
        """UPDATE ... WHERE inv_id = :inv_id AND status <> 'paid'; returns rows affected."""
        values = {**values, "updated_at": _now_utc()}
        stmt = (
            update(RobokassaPayment)
            .where(RobokassaPayment.inv_id == inv_id)
            .where(RobokassaPayment.status != _PAID)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as exc:
            self.logger.error("Guarded update failed for inv_id %s: %s", inv_id, str(exc))
            raise RepositoryException("Failed to update payment status") from exc
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    def _raw_body_value(raw_body_field: str, raw_body: str) -> dict[str, Any]:
        if raw_body_field not in _RAW_BODY_FIELDS:
            raise ValueError(f"unknown raw body column: {raw_body_field}")
        return {raw_body_field: raw_body}

    def _ensure_exists(self, inv_id: int) -> None:
        if not self.exists(inv_id=inv_id):
            raise InvoiceNotFoundException(inv_id)

    def update_status(
        self,
        inv_id: int,
        status: RobokassaPaymentStatus,
        raw_body: str,
        reason: str,
        paid_at: Optional[datetime] = None,
        *,
        raw_body_field: str = RESULT_RAW_BODY,
    ) -> bool:
        """
        Record a status together with the callback payload and a reason.

        The payload lands in ``raw_body_field`` (the column of the channel that
        delivered it). A PAID row is left untouched. Returns True when a row
        changed.
        """
        values: dict[str, Any] = {
            "status": RobokassaPaymentStatus(status).value,
            "failure_reason": reason,
            **self._raw_body_value(raw_body_field, raw_body),
        }
        if paid_at is not None:
            values["paid_at"] = paid_at
        return self._guarded_update(inv_id, values) == 1

    def update_status_pending_if_not_paid(self, inv_id: int, raw_body: str) -> bool:
        """
        Move a not-yet-paid attempt back to PENDING and keep the Success payload.

        Raises:
            InvoiceNotFoundException: no row for ``inv_id``
        """
        changed = self._guarded_update(
            inv_id,
            {"status": RobokassaPaymentStatus.PENDING.value, "success_raw_body": raw_body},
        )
        if changed == 0:
            self._ensure_exists(inv_id)
        return changed == 1

    def save_success_raw_body(self, inv_id: int, raw_body: str) -> None:
        """Audit-only write of the Success payload; status is never touched."""
        stmt = (
            update(RobokassaPayment)
            .where(RobokassaPayment.inv_id == inv_id)
            .values(success_raw_body=raw_body, updated_at=_now_utc())
            .execution_options(synchronize_session=False)
        )
        try:
            self.db.execute(stmt)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to save success body for inv_id %s: %s", inv_id, str(exc))
            raise RepositoryException("Failed to save success callback body") from exc

    def mark_paid_idempotent(
        self,
        inv_id: int,
        raw_body: str,
        paid_at: datetime,
        *,
        raw_body_field: str = RESULT_RAW_BODY,
    ) -> bool:
        """
        Compare-and-swap the attempt into PAID.

        Exactly one of any number of concurrent callers gets True; the rest get
        False with no state change. ``paid_at`` is only ever written by the
        winning call.

        Raises:
            InvoiceNotFoundException: no row for ``inv_id``
        """
        changed = self._guarded_update(
            inv_id,
            {
                "status": _PAID,
                "paid_at": paid_at,
                "failure_reason": None,
                **self._raw_body_value(raw_body_field, raw_body),
            },
        )
        if changed == 0:
            self._ensure_exists(inv_id)
            self.logger.info("Payment inv_id=%s already paid; transition skipped", inv_id)
        return changed == 1
