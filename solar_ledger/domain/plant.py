"""Power Plant Domain Entities

A plant publishes one generation figure per month. That figure is the
capacity basis for allocation and is frozen once an allocation run has used it.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from solar_ledger.domain.base import BaseModel, IdType


class PlantStatus(str, Enum):
    """Plant operating status"""
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class Plant(BaseModel, table=True):
    """
    Plant - Solar plant whose generation is shared among subscribers

    Domain Rules:
    - monthly_generation_kwh is the default capacity basis when no
      MonthlyGeneration record exists for a month
    - Inactive plants cannot be allocated
    """

    __tablename__ = "plants"
    __table_args__ = (
        CheckConstraint(
            "monthly_generation_kwh IS NULL OR monthly_generation_kwh >= 0",
            name="plant_generation_non_negative",
        ),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique plant identifier (auto-increment)"
    )

    name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Plant display name"
    )

    monthly_generation_kwh: Optional[Decimal] = Field(
        default=None,
        sa_column=Column(Numeric(18, 6), nullable=True),
        description="Default monthly generation estimate in kWh"
    )

    status: PlantStatus = Field(
        default=PlantStatus.ACTIVE,
        description="Plant status (active, maintenance, inactive)"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Plant creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last update timestamp"
    )


class MonthlyGeneration(BaseModel, table=True):
    """
    Monthly Generation - Generation figures of one plant for one month

    Domain Rules:
    - One record per (plant_id, month)
    - generation_kwh is the figure allocation runs against
    - Once allocated_at is set the generation_kwh is frozen
    - allocation_run_id names the run that owns the month; runs claim it
      with a conditional update so only one writer allocates at a time
    - actual_generation_kwh comes from metering and never changes allocations
    """

    __tablename__ = "monthly_generations"
    __table_args__ = (
        UniqueConstraint("plant_id", "month", name="uq_monthly_generation_plant_month"),
    )

    id: int = Field(
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique record identifier (auto-increment)"
    )

    plant_id: int = Field(
        sa_column=Column(IdType, ForeignKey("plants.id", ondelete="CASCADE"), nullable=False, index=True),
        description="Foreign key to Plant"
    )

    month: str = Field(
        sa_column=Column(String(7), nullable=False),
        description="Reference month (YYYY-MM)"
    )

    generation_kwh: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Committed generation figure used for allocation"
    )

    expected_generation_kwh: Optional[Decimal] = Field(
        default=None,
        sa_column=Column(Numeric(18, 6), nullable=True),
        description="Forecasted generation for the month"
    )

    actual_generation_kwh: Optional[Decimal] = Field(
        default=None,
        sa_column=Column(Numeric(18, 6), nullable=True),
        description="Metered generation for the month"
    )

    allocated_at: Optional[datetime] = Field(
        default=None,
        description="Set when an allocation run froze generation_kwh"
    )

    allocation_run_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(36), nullable=True),
        description="Allocation run currently owning the month"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Record creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last update timestamp"
    )

    @property
    def is_frozen(self) -> bool:
        return self.allocated_at is not None
