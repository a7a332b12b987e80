"""Request schemas for Billing API

Pydantic models for validating incoming HTTP requests.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class GenerateInvoiceRequestSchema(BaseModel):
    """
    Request schema for generating one invoice

    Used for POST /billing/invoices/generate endpoint.
    """

    customer_id: str = Field(
        ...,
        min_length=1,
        description="Customer identifier (required, non-empty)"
    )

    month: str = Field(
        ...,
        pattern=MONTH_PATTERN,
        description="Billed month (YYYY-MM)"
    )

    regenerate: bool = Field(
        default=False,
        description="Recompute an existing pending invoice"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "maria@example.com",
                "month": "2024-01",
                "regenerate": False
            }
        }


class GenerateMonthInvoicesRequestSchema(BaseModel):
    """Used for POST /billing/invoices/generate-month endpoint."""

    month: str = Field(
        ...,
        pattern=MONTH_PATTERN,
        description="Billed month (YYYY-MM)"
    )

    regenerate: bool = Field(
        default=False,
        description="Recompute existing pending invoices"
    )


class ConfirmPaymentRequestSchema(BaseModel):
    """
    Request schema for confirming an invoice payment

    Used for POST /billing/invoices/{customer_id}/{month}/confirm-payment endpoint.
    """

    consumed_kwh: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Credits to consume (default the invoiced energy)"
    )

    as_of_date: Optional[date] = Field(
        default=None,
        description="Date expiration is evaluated against (default today)"
    )
