# backend/alembic/versions/001_robokassa_payments.py
"""Bookings payment slice and Robokassa payment attempts

Revision ID: 001_robokassa_payments
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the booking columns the payment flow depends on and the
robokassa_payments audit table. Payment rows are never deleted; inv_id is
unique so both provider callbacks resolve to exactly one attempt.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_robokassa_payments"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create bookings and robokassa_payments tables."""
    op.create_table(
        "bookings",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), nullable=False, autoincrement=True),
        sa.Column("room_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_bookings_user_id", "bookings", ["user_id"])
    op.create_index("idx_bookings_room_id", "bookings", ["room_id"])

    op.create_table(
        "robokassa_payments",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), nullable=False, autoincrement=True),
        sa.Column("booking_id", sa.BigInteger(), nullable=False),
        sa.Column("inv_id", sa.BigInteger(), nullable=False),
        sa.Column("out_sum", sa.String(32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("signature", sa.String(128), nullable=True),
        sa.Column("robokassa_url", sa.Text(), nullable=True),
        sa.Column("shp_params", sa.Text(), nullable=True),
        sa.Column("result_raw_body", sa.Text(), nullable=True),
        sa.Column("success_raw_body", sa.Text(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("inv_id", name="uq_robokassa_payments_inv_id"),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'failed')", name="ck_robokassa_payments_status"
        ),
        comment="One row per Robokassa invoice; kept as the payment audit trail",
    )
    op.create_index("ix_robokassa_payments_booking_id", "robokassa_payments", ["booking_id"])
    op.create_index("ix_robokassa_payments_status", "robokassa_payments", ["status"])


def downgrade() -> None:
    """Drop robokassa_payments and bookings tables."""
    op.drop_index("ix_robokassa_payments_status", table_name="robokassa_payments")
    op.drop_index("ix_robokassa_payments_booking_id", table_name="robokassa_payments")
    op.drop_table("robokassa_payments")

    op.drop_index("idx_bookings_room_id", table_name="bookings")
    op.drop_index("idx_bookings_user_id", table_name="bookings")
    op.drop_table("bookings")
