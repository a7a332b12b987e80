"""Energy Allocation Domain Entity

The kWh share of a plant's monthly generation assigned to one subscriber.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import ForeignKey, Numeric, String
from solar_ledger.domain.base import BaseModel, IdType


class AllocationStatus(str, Enum):
    """Allocation status types"""
    ALLOCATED = "allocated"                    # Credited to the customer ledger
    PENDING_ALLOCATION = "pending_allocation"  # Computed but the ledger write failed
    SUPERSEDED = "superseded"                  # Replaced by a later run


class Allocation(BaseModel, table=True):
    """
    Allocation - Subscriber share of one plant month

    Domain Rules:
    - At most one ALLOCATED row per (plant_id, customer_id, month), enforced
      by a partial unique index; a customer whose rerun failed also keeps a
      PENDING_ALLOCATION row until the next rerun
    - Rows are never deleted; a re-run marks them SUPERSEDED and the ledger
      receives a compensation transaction
    - generation_kwh is the frozen plant figure the share was computed from
    """

    __tablename__ = "energy_allocations"
    __table_args__ = (
        Index('ix_energy_allocations_plant_month', 'plant_id', 'month'),
        Index('ix_energy_allocations_customer_month', 'customer_id', 'month'),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique allocation identifier (auto-increment)"
    )

    run_id: str = Field(
        sa_column=Column(String(36), nullable=False, index=True),
        description="Allocation run that produced the row"
    )

    plant_id: int = Field(
        sa_column=Column(IdType, ForeignKey("plants.id", ondelete="CASCADE"), nullable=False),
        description="Foreign key to Plant"
    )

    subscription_id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, nullable=True),
        description="Subscription the share was computed for"
    )

    customer_id: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Customer identifier (email)"
    )

    month: str = Field(
        sa_column=Column(String(7), nullable=False),
        description="Reference month (YYYY-MM)"
    )

    allocated_kwh: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Allocated energy in kWh"
    )

    allocation_percentage: Decimal = Field(
        sa_column=Column(Numeric(9, 4), nullable=False),
        description="Share of the plant month in percent"
    )

    generation_kwh: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Plant generation figure used for the run"
    )

    status: AllocationStatus = Field(
        default=AllocationStatus.ALLOCATED,
        description="Allocation status (allocated, pending_allocation, superseded)"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Allocation timestamp"
    )

    superseded_at: Optional[datetime] = Field(
        default=None,
        description="When a later run replaced the row"
    )


# One credited row per customer and plant month; pending rows may sit beside
# it until a rerun supersedes them
_allocated_only = Allocation.__table__.c.status == AllocationStatus.ALLOCATED
Index(
    "uq_energy_allocations_allocated",
    Allocation.__table__.c.plant_id,
    Allocation.__table__.c.customer_id,
    Allocation.__table__.c.month,
    unique=True,
    sqlite_where=_allocated_only,
    postgresql_where=_allocated_only,
)
