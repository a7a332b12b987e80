"""Generation Reconciliation Domain Entity

Informational comparison of metered against committed plant generation.
It feeds reporting only; committed allocations are never rewritten from it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import ForeignKey, Numeric, String, UniqueConstraint
from solar_ledger.domain.base import BaseModel, IdType


class GenerationReconciliation(BaseModel, table=True):
    """
    Generation Reconciliation - Efficiency of one plant month

    Domain Rules:
    - One record per (plant_id, month), refreshed by each reconciliation
    - efficiency = actual_kwh / expected_kwh, performance_ratio = efficiency * 100
    - delta_kwh = actual_kwh - expected_kwh is settled through true-up
      adjustments in a later month, never in place
    """

    __tablename__ = "generation_reconciliations"
    __table_args__ = (
        UniqueConstraint("plant_id", "month", name="uq_generation_reconciliation_plant_month"),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique reconciliation identifier (auto-increment)"
    )

    plant_id: int = Field(
        sa_column=Column(IdType, ForeignKey("plants.id", ondelete="CASCADE"), nullable=False),
        description="Foreign key to Plant"
    )

    month: str = Field(
        sa_column=Column(String(7), nullable=False),
        description="Reconciled month (YYYY-MM)"
    )

    expected_kwh: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Generation figure used at allocation time"
    )

    actual_kwh: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Metered generation"
    )

    efficiency: Decimal = Field(
        sa_column=Column(Numeric(12, 6), nullable=False),
        description="actual / expected"
    )

    performance_ratio: Decimal = Field(
        sa_column=Column(Numeric(9, 2), nullable=False),
        description="efficiency as a percentage"
    )

    delta_kwh: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="actual - expected"
    )

    true_up_month: Optional[str] = Field(
        default=None,
        sa_column=Column(String(7), nullable=True),
        description="Month the delta was settled in, once applied"
    )

    reconciled_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last reconciliation timestamp"
    )
