"""Subscription Domain Entity

Tracks a customer's share subscription and its allocation weight.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, Numeric, String
from solar_ledger.domain.base import BaseModel, IdType


class SubscriptionStatus(str, Enum):
    """Subscription status types"""
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class Subscription(BaseModel, table=True):
    """
    Subscription - Customer share of plant generation

    Domain Rules:
    - Only ACTIVE subscriptions take part in allocation
    - weight is the average bill value; zero or missing weight excludes the
      subscriber from allocation
    - discount_percentage is fixed at subscription creation (0-100)
    - plant_id is optional; an unbound subscription joins every plant's run
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index('ix_subscriptions_customer_id', 'customer_id'),
        Index('ix_subscriptions_status', 'status'),
        CheckConstraint(
            'discount_percentage >= 0 AND discount_percentage <= 100',
            name='discount_percentage_range',
        ),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique subscription identifier (auto-increment)"
    )

    customer_id: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Customer identifier (email)"
    )

    plant_id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, nullable=True),
        description="Plant the subscription is bound to (None = any plant)"
    )

    status: SubscriptionStatus = Field(
        description="Subscription status (active, pending, suspended, cancelled)"
    )

    weight: Optional[Decimal] = Field(
        default=None,
        sa_column=Column(Numeric(18, 6), nullable=True),
        description="Allocation weight (average bill value)"
    )

    discount_percentage: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(5, 2), nullable=False, default=0),
        description="Bill discount granted to the subscriber (percent)"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Subscription creation timestamp"
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
                "plant_id": 3,
                "status": "active",
                "weight": "600.000000",
                "discount_percentage": "15.00",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z"
            }
        }
