"""Invoice Domain Entity

Monthly bill of a subscriber derived from its energy allocation.
"""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, Numeric, String, UniqueConstraint
from solar_ledger.domain.base import BaseModel, IdType


class InvoiceStatus(str, Enum):
    """Invoice status types"""
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(BaseModel, table=True):
    """
    Invoice - Discounted bill for a customer month

    Domain Rules:
    - One invoice per (customer_id, month)
    - invoice_number must be unique
    - original_amount = energy_allocated_kwh * unit_price
    - discount_amount = original_amount * discount_percentage / 100
    - final_amount = original_amount - discount_amount
    - Status transitions: pending -> paid | overdue | cancelled, overdue -> paid
    - Immutable once paid
    """

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("customer_id", "month", name="uq_invoice_customer_month"),
        Index('ix_invoices_status', 'status'),
        Index('ix_invoices_invoice_number', 'invoice_number', unique=True),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique invoice identifier (auto-increment)"
    )

    customer_id: str = Field(
        sa_column=Column(String(255), nullable=False, index=True),
        description="Customer identifier (email)"
    )

    month: str = Field(
        sa_column=Column(String(7), nullable=False),
        description="Billed month (YYYY-MM)"
    )

    invoice_number: str = Field(
        sa_column=Column(String(50), nullable=False),
        description="Unique invoice number (e.g., INV-2024-000001)"
    )

    status: InvoiceStatus = Field(
        default=InvoiceStatus.PENDING,
        description="Invoice status (pending, paid, overdue, cancelled)"
    )

    energy_allocated_kwh: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Energy allocated to the customer for the month"
    )

    unit_price: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Price per kWh applied"
    )

    discount_percentage: Decimal = Field(
        sa_column=Column(Numeric(5, 2), nullable=False),
        description="Discount applied (percent)"
    )

    original_amount: Decimal = Field(
        sa_column=Column(Numeric(18, 2), nullable=False),
        description="Amount before discount"
    )

    discount_amount: Decimal = Field(
        sa_column=Column(Numeric(18, 2), nullable=False),
        description="Discount granted"
    )

    final_amount: Decimal = Field(
        sa_column=Column(Numeric(18, 2), nullable=False),
        description="Amount due"
    )

    due_date: date = Field(
        sa_column=Column(Date, nullable=False),
        description="Payment due date"
    )

    paid_at: Optional[datetime] = Field(
        default=None,
        description="Timestamp when invoice was paid"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Invoice creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last update timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "customer_id": "maria@example.com",
                "month": "2024-01",
                "invoice_number": "INV-2024-000001",
                "status": "pending",
                "energy_allocated_kwh": "6000.000000",
                "unit_price": "0.950000",
                "discount_percentage": "15.00",
                "original_amount": "5700.00",
                "discount_amount": "855.00",
                "final_amount": "4845.00",
                "due_date": "2024-02-11",
                "paid_at": None,
                "created_at": "2024-02-01T00:00:00Z",
                "updated_at": "2024-02-01T00:00:00Z"
            }
        }
