"""Request schemas for Ledger API

Pydantic models for validating incoming HTTP requests.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class AccumulateRequestSchema(BaseModel):
    """
    Request schema for crediting energy

    Used for POST /ledger/accumulate endpoint.
    """

    customer_id: str = Field(
        ...,
        min_length=1,
        description="Customer identifier (required, non-empty)"
    )

    month: str = Field(
        ...,
        pattern=MONTH_PATTERN,
        description="Bucket month (YYYY-MM)"
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
        description="Type of reference"
    )

    reference_id: Optional[str] = Field(
        default=None,
        description="ID of referenced entity"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Unique key for idempotent operations"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "maria@example.com",
                "month": "2024-01",
                "amount_kwh": "500",
                "description": "Bonus credit",
                "idempotency_key": "bonus:2024-01:maria"
            }
        }


class ConsumeRequestSchema(BaseModel):
    """
    Request schema for consuming credits

    Used for POST /ledger/consume endpoint.
    """

    customer_id: str = Field(
        ...,
        min_length=1,
        description="Customer identifier (required, non-empty)"
    )

    amount_kwh: Decimal = Field(
        ...,
        gt=0,
        description="Energy to consume in kWh (must be > 0)"
    )

    as_of_date: Optional[date] = Field(
        default=None,
        description="Date expiration is evaluated against (default today)"
    )

    description: Optional[str] = Field(
        default=None,
        description="Reason for the consumption"
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
        min_length=1,
        description="Unique key for idempotent operations"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "maria@example.com",
                "amount_kwh": "700",
                "reference_type": "invoice",
                "reference_id": "INV-2024-000001",
                "idempotency_key": "invoice:INV-2024-000001:consumption"
            }
        }


class AdjustRequestSchema(BaseModel):
    """
    Request schema for a manual correction

    Used for POST /ledger/adjust endpoint.
    """

    customer_id: str = Field(
        ...,
        min_length=1,
        description="Customer identifier (required, non-empty)"
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
        description="Operator performing the correction"
    )

    month: Optional[str] = Field(
        default=None,
        pattern=MONTH_PATTERN,
        description="Bucket month (default current month)"
    )

    idempotency_key: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Unique key for idempotent operations"
    )

    @field_validator('amount_kwh')
    @classmethod
    def validate_amount(cls, v):
        """A correction must move the balance"""
        if v == 0:
            raise ValueError("Adjustment amount must not be zero")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "maria@example.com",
                "amount_kwh": "-120",
                "reason": "Meter reading corrected",
                "adjusted_by": "ops@example.com",
                "month": "2024-01"
            }
        }


class SweepRequestSchema(BaseModel):
    """Used for POST /ledger/expirations/sweep endpoint."""

    as_of_date: Optional[date] = Field(
        default=None,
        description="Buckets expiring before this date are swept (default today)"
    )
