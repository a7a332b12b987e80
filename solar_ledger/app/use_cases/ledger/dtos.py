"""Data Transfer Objects for Ledger Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from solar_ledger.domain.credit_transaction import CreditTransaction

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class AccumulateCommandDTO(BaseModel):
    """
    Command DTO for crediting energy to a monthly bucket

    Used as input to AccumulateCredits use case.
    """

    customer_id: str = Field(
        ...,
        description="Customer identifier"
    )

    month: str = Field(
        ...,
        pattern=MONTH_PATTERN,
        description="Bucket month the credit belongs to (YYYY-MM)"
    )

    amount_kwh: Decimal = Field(
        ...,
        gt=0,
        description="Energy to credit in kWh (must be > 0)"
    )

    description: Optional[str] = Field(
        default=None,
        description="Reason for the credit"
    )

    reference_type: Optional[str] = Field(
        default=None,
        description="Type of reference (e.g., 'allocation')"
    )

    reference_id: Optional[str] = Field(
        default=None,
        description="ID of referenced entity"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        description="Unique key for idempotent operations"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "maria@example.com",
                "month": "2024-01",
                "amount_kwh": "500.000000",
                "description": "Manual import of January credits",
                "idempotency_key": "import:2024-01:maria"
            }
        }


class ConsumeCommandDTO(BaseModel):
    """
    Command DTO for consuming credits

    Used as input to ConsumeCredits use case.
    """

    customer_id: str = Field(
        ...,
        description="Customer identifier"
    )

    amount_kwh: Decimal = Field(
        ...,
        gt=0,
        description="Energy to consume in kWh (must be > 0)"
    )

    description: Optional[str] = Field(
        default=None,
        description="Reason for the consumption"
    )

    as_of_date: Optional[date] = Field(
        default=None,
        description="Date expiration is evaluated against (default today)"
    )

    reference_type: Optional[str] = Field(
        default=None,
        description="Type of reference (e.g., 'invoice')"
    )

    reference_id: Optional[str] = Field(
        default=None,
        description="ID of referenced entity"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        description="Unique key for idempotent operations"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "maria@example.com",
                "amount_kwh": "700.000000",
                "description": "February bill",
                "reference_type": "invoice",
                "reference_id": "INV-2024-000001",
                "idempotency_key": "invoice:INV-2024-000001:consumption"
            }
        }


class AdjustCommandDTO(BaseModel):
    """
    Command DTO for a manual signed correction

    Adjustments are always flagged for review.
    """

    customer_id: str = Field(
        ...,
        description="Customer identifier"
    )

    amount_kwh: Decimal = Field(
        ...,
        description="Signed correction in kWh (non-zero)"
    )

    reason: str = Field(
        ...,
        min_length=1,
        description="Why the correction is made"
    )

    adjusted_by: str = Field(
        ...,
        min_length=1,
        description="Operator requesting the correction"
    )

    month: Optional[str] = Field(
        default=None,
        pattern=MONTH_PATTERN,
        description="Bucket month (default current month)"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        description="Unique key for idempotent operations"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "maria@example.com",
                "amount_kwh": "-120.000000",
                "reason": "Meter reading corrected by distributor",
                "adjusted_by": "ops@example.com",
                "month": "2024-01"
            }
        }


class CreditTransactionResponseDTO(BaseModel):
    """
    Response DTO for credit transaction operations

    Returned by AccumulateCredits, ConsumeCredits, AdjustCredits.
    """

    transaction_id: int = Field(
        ...,
        description="Transaction ID"
    )

    customer_id: str = Field(
        ...,
        description="Customer identifier"
    )

    transaction_type: str = Field(
        ...,
        description="allocation, consumption, adjustment, expiration or compensation"
    )

    month: Optional[str] = Field(
        default=None,
        description="Primary bucket month"
    )

    amount_kwh: Decimal = Field(
        ...,
        description="Signed kWh amount"
    )

    balance_before: Decimal = Field(
        ...,
        description="Balance before transaction"
    )

    balance_after: Decimal = Field(
        ...,
        description="Balance after transaction"
    )

    breakdown: Dict[str, Decimal] = Field(
        default_factory=dict,
        description="Signed delta applied to each monthly bucket"
    )

    description: Optional[str] = Field(
        default=None,
        description="Reason"
    )

    reference_type: Optional[str] = Field(
        default=None,
        description="Type of reference"
    )

    reference_id: Optional[str] = Field(
        default=None,
        description="ID of referenced entity"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        description="Idempotency key"
    )

    requires_review: bool = Field(
        default=False,
        description="Flagged for audit review"
    )

    adjusted_by: Optional[str] = Field(
        default=None,
        description="Operator of a manual adjustment"
    )

    created_at: datetime = Field(
        ...,
        description="Transaction timestamp"
    )

    @classmethod
    def from_entity(cls, transaction: CreditTransaction) -> "CreditTransactionResponseDTO":
        """
        Build from a CreditTransaction

        Balance snapshots are stored in the transaction, so idempotent
        replays return exactly the original response.
        """
        return cls(
            transaction_id=transaction.id,
            customer_id=transaction.customer_id,
            transaction_type=transaction.transaction_type.value,
            month=transaction.month,
            amount_kwh=transaction.amount_kwh,
            balance_before=transaction.balance_before,
            balance_after=transaction.balance_after,
            breakdown=transaction.breakdown,
            description=transaction.description,
            reference_type=transaction.reference_type,
            reference_id=transaction.reference_id,
            idempotency_key=transaction.idempotency_key,
            requires_review=transaction.requires_review,
            adjusted_by=transaction.adjusted_by,
            created_at=transaction.created_at,
        )


class CreditBucketDTO(BaseModel):
    month: str = Field(..., description="Bucket month (YYYY-MM)")
    balance_kwh: Decimal = Field(..., description="Usable credit")
    accumulated_kwh: Decimal = Field(..., description="Credit added, net of reversals")
    consumed_kwh: Decimal = Field(..., description="Credit consumed")
    expired_kwh: Decimal = Field(..., description="Credit expired")
    expiration_date: Optional[date] = Field(default=None, description="Last usable day")
    expired: bool = Field(..., description="Past its expiration date")


class BalanceResponseDTO(BaseModel):
    """
    Response DTO for balance queries

    Returned by GetBalance use case.
    """

    customer_id: str = Field(
        ...,
        description="Customer identifier"
    )

    balance_kwh: Decimal = Field(
        ...,
        description="Total credit balance"
    )

    available_kwh: Decimal = Field(
        ...,
        description="Balance of buckets that are not expired"
    )

    buckets: List[CreditBucketDTO] = Field(
        default_factory=list,
        description="Per-month buckets, oldest first"
    )

    last_updated: datetime = Field(
        ...,
        description="Last balance update timestamp"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "maria@example.com",
                "balance_kwh": "6000.000000",
                "available_kwh": "6000.000000",
                "buckets": [
                    {
                        "month": "2024-01",
                        "balance_kwh": "6000.000000",
                        "accumulated_kwh": "6000.000000",
                        "consumed_kwh": "0.000000",
                        "expired_kwh": "0.000000",
                        "expiration_date": "2028-12-31",
                        "expired": False
                    }
                ],
                "last_updated": "2024-02-01T00:00:00Z"
            }
        }


class ListTransactionsResponseDTO(BaseModel):
    """Paginated transaction history, newest first"""

    transactions: List[CreditTransactionResponseDTO] = Field(
        default_factory=list,
        description="Transactions of the page"
    )

    total: int = Field(
        ...,
        description="Total matching transactions"
    )

    limit: int = Field(
        ...,
        description="Page size"
    )

    offset: int = Field(
        ...,
        description="Page offset"
    )


class LedgerDiscrepancyDTO(BaseModel):
    """One disagreement found while replaying a customer's ledger"""

    customer_id: str = Field(..., description="Customer identifier")
    kind: str = Field(..., description="chain_gap, arithmetic, breakdown, bucket or ledger_head")
    month: Optional[str] = Field(default=None, description="Bucket month, when bucket-specific")
    transaction_id: Optional[int] = Field(default=None, description="Offending transaction")
    expected: Decimal = Field(..., description="Value derived from the transaction log")
    actual: Decimal = Field(..., description="Value found in storage")
    detail: str = Field(..., description="Human-readable description")


class VerificationResultDTO(BaseModel):
    """
    Result of a ledger verification

    Verification is read-only; discrepancies are reported, never fixed.
    """

    total_ledgers_checked: int = Field(..., description="Ledgers replayed")
    discrepancies_found: int = Field(..., description="Number of discrepancies")
    discrepancies: List[LedgerDiscrepancyDTO] = Field(default_factory=list, description="Discrepancies")
    verified_at: datetime = Field(..., description="Verification timestamp")
    execution_time_ms: int = Field(..., description="Duration in milliseconds")
