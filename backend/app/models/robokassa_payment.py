"""
Robokassa payment attempt model.

One row per invoice issued to Robokassa. ``inv_id`` correlates the row with
both provider callbacks and is never reused; rows are kept forever as the
financial audit trail.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import BigInteger, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class RobokassaPaymentStatus(str, Enum):
    """Lifecycle states for a payment attempt. PAID is terminal."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class RobokassaPayment(Base):
    """Persistence model for a Robokassa invoice."""

    __tablename__ = "robokassa_payments"

    __table_args__ = (
        sa.Index("ix_robokassa_payments_booking_id", "booking_id"),
        sa.Index("ix_robokassa_payments_status", "status"),
        sa.UniqueConstraint("inv_id", name="uq_robokassa_payments_inv_id"),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'failed')", name="ck_robokassa_payments_status"
        ),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True
    )
    booking_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    inv_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Exact text as sent to the provider; compared numerically, never rewritten
    out_sum: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RobokassaPaymentStatus.PENDING.value
    )
    signature: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    robokassa_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    shp_params: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result_raw_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    success_raw_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )

    @property
    def is_paid(self) -> bool:
        return self.status == RobokassaPaymentStatus.PAID.value

    def __repr__(self) -> str:
        return f"<RobokassaPayment(inv_id={self.inv_id}, out_sum={self.out_sum}, status={self.status})>"
