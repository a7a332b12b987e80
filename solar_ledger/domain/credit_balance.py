"""Credit Balance Domain Entity

Materialized per-month credit bucket of a customer. The transaction log is
the source of truth; buckets are rebuilt from it by ledger verification.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, Date, Numeric, String, UniqueConstraint
from solar_ledger.domain.base import BaseModel, IdType


class CreditBalance(BaseModel, table=True):
    """
    Credit Balance - Energy credits accumulated in one month

    Domain Rules:
    - One bucket per (customer_id, month)
    - balance_kwh = accumulated_kwh - consumed_kwh - expired_kwh >= 0
    - accumulated_kwh only decreases through reversal transactions
    - Buckets past expiration_date are not consumable and get swept
    """

    __tablename__ = "credit_balances"
    __table_args__ = (
        UniqueConstraint("customer_id", "month", name="uq_credit_balance_customer_month"),
        Index('ix_credit_balances_expiration_date', 'expiration_date'),
        CheckConstraint('balance_kwh >= 0', name='bucket_balance_non_negative'),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique bucket identifier (auto-increment)"
    )

    customer_id: str = Field(
        sa_column=Column(String(255), nullable=False, index=True),
        description="Customer identifier (email)"
    )

    month: str = Field(
        sa_column=Column(String(7), nullable=False),
        description="Month the credits were generated in (YYYY-MM)"
    )

    balance_kwh: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(18, 6), nullable=False, default=0),
        description="Usable credit in kWh"
    )

    accumulated_kwh: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(18, 6), nullable=False, default=0),
        description="Credit added to the bucket, net of reversals"
    )

    consumed_kwh: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(18, 6), nullable=False, default=0),
        description="Credit drawn from the bucket"
    )

    expired_kwh: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(18, 6), nullable=False, default=0),
        description="Credit retired by the expiration sweep"
    )

    expiration_date: Optional[date] = Field(
        default=None,
        sa_column=Column(Date, nullable=True),
        description="Last day the bucket can be consumed"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Bucket creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last update timestamp"
    )

    def is_expired(self, as_of: date) -> bool:
        return self.expiration_date is not None and self.expiration_date < as_of

    def is_consistent(self) -> bool:
        return (
            self.balance_kwh >= 0
            and self.balance_kwh == self.accumulated_kwh - self.consumed_kwh - self.expired_kwh
        )
