"""Credit Transaction Domain Entity

Immutable append-only audit trail of all energy credit mutations.
Replaying a customer's transactions in creation order rebuilds the
customer's buckets and ledger total exactly.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Boolean, ForeignKey, Numeric, String, Text
from solar_ledger.domain.base import BaseModel, IdType


class TransactionType(str, Enum):
    """Credit transaction types"""
    ALLOCATION = "allocation"        # Plant share credited by an allocation run
    CONSUMPTION = "consumption"      # Credits drawn against a bill
    ADJUSTMENT = "adjustment"        # Manual correction or true-up (signed)
    EXPIRATION = "expiration"        # Credits retired by the expiration sweep
    COMPENSATION = "compensation"    # Reversal of a superseded allocation


class CreditTransaction(BaseModel, table=True):
    """
    Credit Transaction - Immutable audit trail of credit mutations

    Domain Rules:
    - Transactions are immutable (append-only, never updated or deleted)
    - amount_kwh is signed: credits are positive, debits negative
    - balance_after = balance_before + amount_kwh (customer totals)
    - balance_before equals the previous transaction's balance_after
    - breakdown holds the signed delta applied to each monthly bucket
    - idempotency_key, when present, is unique
    """

    __tablename__ = "credit_transactions"
    __table_args__ = (
        Index('ix_credit_transactions_customer_created', 'customer_id', 'created_at'),
        Index('ix_credit_transactions_reference', 'reference_type', 'reference_id'),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique transaction identifier (auto-increment)"
    )

    customer_id: str = Field(
        sa_column=Column(String(255), nullable=False, index=True),
        description="Customer identifier (email)"
    )

    ledger_id: int = Field(
        sa_column=Column(IdType, ForeignKey("credit_ledgers.id", ondelete="CASCADE"), nullable=False),
        description="Foreign key to CreditLedger"
    )

    month: Optional[str] = Field(
        default=None,
        sa_column=Column(String(7), nullable=True),
        description="Primary bucket touched by the transaction (YYYY-MM)"
    )

    transaction_type: TransactionType = Field(
        description="Type of transaction (allocation, consumption, adjustment, expiration, compensation)"
    )

    amount_kwh: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Signed kWh amount"
    )

    balance_before: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Customer balance before transaction"
    )

    balance_after: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Customer balance after transaction"
    )

    breakdown_json: str = Field(
        default="{}",
        sa_column=Column(Text, nullable=False, default="{}"),
        description="JSON object mapping bucket month to signed kWh delta"
    )

    description: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Human-readable reason"
    )

    reference_type: Optional[str] = Field(
        default=None,
        sa_column=Column(String(50), nullable=True),
        description="Type of reference (e.g., 'allocation', 'invoice', 'true_up')"
    )

    reference_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="ID of referenced entity"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, unique=True, index=True),
        description="Unique key for idempotent operations"
    )

    requires_review: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
        description="Flagged for audit review (manual adjustments)"
    )

    adjusted_by: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Operator that requested a manual adjustment"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Transaction timestamp (immutable)"
    )

    @property
    def breakdown(self) -> Dict[str, Decimal]:
        return {month: Decimal(value) for month, value in json.loads(self.breakdown_json or "{}").items()}

    @staticmethod
    def encode_breakdown(breakdown: Dict[str, Decimal]) -> str:
        return json.dumps({month: str(value) for month, value in sorted(breakdown.items())})

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "customer_id": "maria@example.com",
                "ledger_id": 1,
                "month": "2024-01",
                "transaction_type": "consumption",
                "amount_kwh": "-700.000000",
                "balance_before": "6000.000000",
                "balance_after": "5300.000000",
                "breakdown_json": "{\"2024-01\": \"-700.000000\"}",
                "reference_type": "invoice",
                "reference_id": "INV-2024-000001",
                "idempotency_key": "invoice:INV-2024-000001:consumption",
                "created_at": "2024-02-01T00:00:00Z"
            }
        }
