"""Credit Ledger Domain Entity

Head row of a customer's energy credit ledger. Each customer has exactly one.
The row is locked to serialize every balance mutation of that customer.
"""

from datetime import datetime
from decimal import Decimal
from sqlmodel import Field, Column
from sqlalchemy import CheckConstraint, Numeric, String
from solar_ledger.domain.base import BaseModel, IdType


class CreditLedger(BaseModel, table=True):
    """
    Credit Ledger - Customer level credit total

    Domain Rules:
    - One ledger per customer (customer_id is unique)
    - balance_kwh equals the sum of the customer's CreditBalance buckets
    - balance_kwh must be non-negative
    - Balance updates only through CreditTransactions
    """

    __tablename__ = "credit_ledgers"
    __table_args__ = (
        CheckConstraint('balance_kwh >= 0', name='ledger_balance_non_negative'),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique ledger identifier (auto-increment)"
    )

    customer_id: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True, index=True),
        description="Customer identifier (unique - one ledger per customer)"
    )

    balance_kwh: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(18, 6), nullable=False, default=0),
        description="Current credit balance in kWh (must be >= 0)"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Ledger creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last balance update timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "customer_id": "maria@example.com",
                "balance_kwh": "6000.000000",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z"
            }
        }
