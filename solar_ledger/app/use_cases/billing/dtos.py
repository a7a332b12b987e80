"""Data Transfer Objects for Billing Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field
from solar_ledger.app.use_cases.batch import BatchFailureDTO, BatchStatus
from solar_ledger.domain.invoice import Invoice

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class GenerateInvoiceCommandDTO(BaseModel):
    """
    Command DTO for generating a customer's monthly invoice

    Used as input to GenerateInvoice use case.
    """

    customer_id: str = Field(
        ...,
        description="Customer identifier"
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


class InvoiceResponseDTO(BaseModel):
    """
    Response DTO for invoice operations

    Returned by GenerateInvoice, GetInvoice and ConfirmInvoicePayment.
    """

    id: int = Field(
        ...,
        description="Invoice ID"
    )

    invoice_number: str = Field(
        ...,
        description="Unique invoice number (INV-YYYY-NNNNNN)"
    )

    customer_id: str = Field(
        ...,
        description="Customer identifier"
    )

    month: str = Field(
        ...,
        description="Billed month (YYYY-MM)"
    )

    status: str = Field(
        ...,
        description="Invoice status (pending, paid, overdue, cancelled)"
    )

    energy_allocated_kwh: Decimal = Field(
        ...,
        description="Energy allocated in the month"
    )

    unit_price: Decimal = Field(
        ...,
        description="Price per kWh"
    )

    discount_percentage: Decimal = Field(
        ...,
        description="Discount percent"
    )

    original_amount: Decimal = Field(
        ...,
        description="Amount before discount"
    )

    discount_amount: Decimal = Field(
        ...,
        description="Discount granted"
    )

    final_amount: Decimal = Field(
        ...,
        description="Amount due"
    )

    due_date: date = Field(
        ...,
        description="Payment due date"
    )

    paid_at: Optional[datetime] = Field(
        default=None,
        description="Payment timestamp"
    )

    created_at: datetime = Field(
        ...,
        description="Creation timestamp"
    )

    @classmethod
    def from_entity(cls, invoice: Invoice) -> "InvoiceResponseDTO":
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_id=invoice.customer_id,
            month=invoice.month,
            status=invoice.status.value,
            energy_allocated_kwh=invoice.energy_allocated_kwh,
            unit_price=invoice.unit_price,
            discount_percentage=invoice.discount_percentage,
            original_amount=invoice.original_amount,
            discount_amount=invoice.discount_amount,
            final_amount=invoice.final_amount,
            due_date=invoice.due_date,
            paid_at=invoice.paid_at,
            created_at=invoice.created_at,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": 1,
                "invoice_number": "INV-2024-000001",
                "customer_id": "maria@example.com",
                "month": "2024-01",
                "status": "pending",
                "energy_allocated_kwh": "6000.000000",
                "unit_price": "0.950000",
                "discount_percentage": "15.00",
                "original_amount": "5700.00",
                "discount_amount": "855.00",
                "final_amount": "4845.00",
                "due_date": "2024-02-11",
                "paid_at": None,
                "created_at": "2024-02-01T00:00:00Z"
            }
        }


class InvoiceBatchResultDTO(BaseModel):
    """Summary of monthly invoice generation"""

    month: str = Field(..., description="Billed month (YYYY-MM)")
    invoices: List[InvoiceResponseDTO] = Field(default_factory=list, description="Invoices generated or found")
    total_customers: int = Field(..., description="Customers with allocations in the month")
    succeeded: int = Field(..., description="Customers invoiced")
    failed: int = Field(..., description="Customers that failed")
    failures: List[BatchFailureDTO] = Field(default_factory=list, description="Per-customer failures")
    status: BatchStatus = Field(..., description="completed, partial_failure or cancelled")
    error_code: Optional[str] = Field(default=None, description="PARTIAL_BATCH_FAILURE when any customer failed")
    summary: str = Field(..., description="'N of M succeeded'")
    cancelled: bool = Field(default=False, description="Batch stopped before all customers")


class ConfirmPaymentCommandDTO(BaseModel):
    """
    Command DTO for confirming an invoice payment

    Payment consumes the customer's credits for the billed energy.
    """

    customer_id: str = Field(..., description="Customer identifier")
    month: str = Field(..., pattern=MONTH_PATTERN, description="Billed month (YYYY-MM)")
    consumed_kwh: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Credits to consume (default the invoiced energy)"
    )
    as_of_date: Optional[date] = Field(
        default=None,
        description="Date expiration is evaluated against (default today)"
    )


class InvoicePaymentResponseDTO(BaseModel):
    invoice: InvoiceResponseDTO = Field(..., description="Paid invoice")
    consumed_kwh: Decimal = Field(..., description="Credits consumed")
    consumption_transaction_id: Optional[int] = Field(
        default=None,
        description="Consumption transaction, when credits were consumed"
    )


class OverdueResultDTO(BaseModel):
    as_of_date: date = Field(..., description="Reference date")
    marked_overdue: int = Field(..., description="Invoices moved to overdue")
    invoice_numbers: List[str] = Field(default_factory=list, description="Invoices moved to overdue")
