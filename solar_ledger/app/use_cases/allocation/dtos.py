"""Data Transfer Objects for Allocation Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field
from solar_ledger.app.use_cases.batch import BatchFailureDTO, BatchStatus


class RunAllocationCommandDTO(BaseModel):
    """
    Command DTO for an allocation run

    Used as input to RunAllocation use case.
    """

    plant_id: int = Field(
        ...,
        description="Plant whose generation is distributed"
    )

    month: str = Field(
        ...,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="Reference month (YYYY-MM)"
    )

    rerun: bool = Field(
        default=False,
        description="Supersede and compensate existing allocations of the month"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "plant_id": 3,
                "month": "2024-01",
                "rerun": False
            }
        }


class AllocationDTO(BaseModel):
    """Allocation row as returned by the API"""

    id: Optional[int] = Field(default=None, description="Allocation ID")
    run_id: str = Field(..., description="Allocation run identifier")
    plant_id: int = Field(..., description="Plant ID")
    subscription_id: Optional[int] = Field(default=None, description="Subscription ID")
    customer_id: str = Field(..., description="Customer identifier")
    month: str = Field(..., description="Reference month (YYYY-MM)")
    allocated_kwh: Decimal = Field(..., description="Allocated energy in kWh")
    allocation_percentage: Decimal = Field(..., description="Share of the plant month in percent")
    status: str = Field(..., description="allocated, pending_allocation or superseded")
    created_at: Optional[datetime] = Field(default=None, description="Allocation timestamp")

    @classmethod
    def from_entity(cls, allocation) -> "AllocationDTO":
        return cls(
            id=allocation.id,
            run_id=allocation.run_id,
            plant_id=allocation.plant_id,
            subscription_id=allocation.subscription_id,
            customer_id=allocation.customer_id,
            month=allocation.month,
            allocated_kwh=allocation.allocated_kwh,
            allocation_percentage=allocation.allocation_percentage,
            status=allocation.status.value,
            created_at=allocation.created_at,
        )


class ExcludedSubscriberDTO(BaseModel):
    """Active subscriber left out of a run"""

    subscription_id: int = Field(..., description="Subscription ID")
    customer_id: str = Field(..., description="Customer identifier")
    reason: str = Field(..., description="Why the subscriber was excluded")


class AllocationRunResultDTO(BaseModel):
    """
    Summary of an allocation run

    A run with per-customer failures is still a successful result; the
    failures are listed and status is partial_failure.
    """

    run_id: str = Field(..., description="Allocation run identifier")
    plant_id: int = Field(..., description="Plant ID")
    month: str = Field(..., description="Reference month (YYYY-MM)")
    generation_kwh: Decimal = Field(..., description="Frozen generation figure distributed")
    total_allocated_kwh: Decimal = Field(..., description="Sum of computed shares")
    allocations: List[AllocationDTO] = Field(default_factory=list, description="Allocations created")
    excluded: List[ExcludedSubscriberDTO] = Field(default_factory=list, description="Excluded subscribers")
    warnings: List[str] = Field(default_factory=list, description="Non-fatal findings")
    superseded_count: int = Field(default=0, description="Prior allocations superseded by this run")
    total_customers: int = Field(..., description="Customers processed or scheduled")
    succeeded: int = Field(..., description="Customers allocated")
    failed: int = Field(..., description="Customers that failed")
    failures: List[BatchFailureDTO] = Field(default_factory=list, description="Per-customer failures")
    status: BatchStatus = Field(..., description="completed, partial_failure or cancelled")
    error_code: Optional[str] = Field(default=None, description="PARTIAL_BATCH_FAILURE when any customer failed")
    summary: str = Field(..., description="'N of M succeeded'")
    cancelled: bool = Field(default=False, description="Run stopped before all customers")
    execution_time_ms: int = Field(..., description="Run duration in milliseconds")

    class Config:
        json_schema_extra = {
            "example": {
                "run_id": "6f1c3f0e-1b0a-4a55-9c0b-2f7d1f0b8a11",
                "plant_id": 3,
                "month": "2024-01",
                "generation_kwh": "10000.000000",
                "total_allocated_kwh": "10000.000000",
                "allocations": [],
                "excluded": [],
                "warnings": [],
                "superseded_count": 0,
                "total_customers": 2,
                "succeeded": 2,
                "failed": 0,
                "failures": [],
                "status": "completed",
                "error_code": None,
                "summary": "2 of 2 succeeded",
                "cancelled": False,
                "execution_time_ms": 42
            }
        }


class SetMonthlyGenerationCommandDTO(BaseModel):
    """
    Command DTO for recording plant generation figures

    Any subset of the figures may be given. generation_kwh cannot change once
    an allocation run has frozen it; actual_generation_kwh always can.
    """

    plant_id: int = Field(..., description="Plant ID")
    month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="Reference month (YYYY-MM)")
    generation_kwh: Optional[Decimal] = Field(default=None, gt=0, description="Committed generation figure")
    expected_generation_kwh: Optional[Decimal] = Field(default=None, ge=0, description="Forecast")
    actual_generation_kwh: Optional[Decimal] = Field(default=None, ge=0, description="Metered generation")


class MonthlyGenerationResponseDTO(BaseModel):
    plant_id: int = Field(..., description="Plant ID")
    month: str = Field(..., description="Reference month (YYYY-MM)")
    generation_kwh: Decimal = Field(..., description="Committed generation figure")
    expected_generation_kwh: Optional[Decimal] = Field(default=None, description="Forecast")
    actual_generation_kwh: Optional[Decimal] = Field(default=None, description="Metered generation")
    frozen: bool = Field(..., description="True once an allocation run used generation_kwh")
    allocated_at: Optional[datetime] = Field(default=None, description="When the figure was frozen")


class ListAllocationsResponseDTO(BaseModel):
    allocations: List[AllocationDTO] = Field(default_factory=list, description="Allocations")
    total_kwh: Decimal = Field(..., description="Sum of allocated_kwh of non-superseded rows")


class MonthlyAllocationSummaryDTO(BaseModel):
    """Outcome of allocating every plant for one month"""

    month: str = Field(..., description="Allocated month (YYYY-MM)")
    total_plants: int = Field(..., description="Plants considered")
    allocated_plants: int = Field(..., description="Plants allocated by this pass")
    skipped_plants: int = Field(..., description="Plants already allocated for the month")
    failed_plants: int = Field(..., description="Plants rejected or failed")
    runs: List[AllocationRunResultDTO] = Field(default_factory=list, description="Run summaries")
    execution_time_ms: int = Field(..., description="Pass duration in milliseconds")
