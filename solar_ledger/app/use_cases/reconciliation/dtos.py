"""Data Transfer Objects for Generation Reconciliation Use Cases"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field
from solar_ledger.app.use_cases.batch import BatchFailureDTO, BatchStatus
from solar_ledger.domain.generation_reconciliation import GenerationReconciliation


class ReconciliationResponseDTO(BaseModel):
    """
    Response DTO for a plant month reconciliation

    Informational only; allocations are never rewritten from it.
    """

    plant_id: int = Field(
        ...,
        description="Plant ID"
    )

    month: str = Field(
        ...,
        description="Reconciled month (YYYY-MM)"
    )

    expected_kwh: Decimal = Field(
        ...,
        description="Generation figure allocations were computed from"
    )

    actual_kwh: Decimal = Field(
        ...,
        description="Metered generation"
    )

    efficiency: Decimal = Field(
        ...,
        description="actual / expected"
    )

    performance_ratio: Decimal = Field(
        ...,
        description="Efficiency as a percentage"
    )

    delta_kwh: Decimal = Field(
        ...,
        description="actual - expected"
    )

    true_up_month: Optional[str] = Field(
        default=None,
        description="Month the delta was settled in"
    )

    reconciled_at: datetime = Field(
        ...,
        description="Reconciliation timestamp"
    )

    @classmethod
    def from_entity(cls, reconciliation: GenerationReconciliation) -> "ReconciliationResponseDTO":
        return cls(
            plant_id=reconciliation.plant_id,
            month=reconciliation.month,
            expected_kwh=reconciliation.expected_kwh,
            actual_kwh=reconciliation.actual_kwh,
            efficiency=reconciliation.efficiency,
            performance_ratio=reconciliation.performance_ratio,
            delta_kwh=reconciliation.delta_kwh,
            true_up_month=reconciliation.true_up_month,
            reconciled_at=reconciliation.reconciled_at,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "plant_id": 1,
                "month": "2024-01",
                "expected_kwh": "10000.000000",
                "actual_kwh": "9500.000000",
                "efficiency": "0.9500",
                "performance_ratio": "95.00",
                "delta_kwh": "-500.000000",
                "true_up_month": None,
                "reconciled_at": "2024-02-03T00:00:00Z"
            }
        }


class TrueUpAdjustmentDTO(BaseModel):
    customer_id: str = Field(..., description="Customer identifier")
    amount_kwh: Decimal = Field(..., description="Signed adjustment")
    transaction_id: int = Field(..., description="Adjustment transaction")


class TrueUpResultDTO(BaseModel):
    """Summary of a true-up run"""

    plant_id: int = Field(..., description="Plant ID")
    month: str = Field(..., description="Reconciled month (YYYY-MM)")
    target_month: str = Field(..., description="Month the adjustments are booked in")
    delta_kwh: Decimal = Field(..., description="Reconciled delta distributed")
    adjustments: List[TrueUpAdjustmentDTO] = Field(default_factory=list, description="Applied adjustments")
    total_customers: int = Field(..., description="Customers with allocations in the month")
    succeeded: int = Field(..., description="Customers adjusted")
    failed: int = Field(..., description="Customers that failed")
    failures: List[BatchFailureDTO] = Field(default_factory=list, description="Per-customer failures")
    status: BatchStatus = Field(..., description="completed, partial_failure or cancelled")
    error_code: Optional[str] = Field(default=None, description="PARTIAL_BATCH_FAILURE when any customer failed")
    summary: str = Field(..., description="'N of M succeeded'")
    cancelled: bool = Field(default=False, description="Run stopped before all customers")
