"""Allocation use cases"""
from .run_allocation import RunAllocation
from .set_monthly_generation import SetMonthlyGeneration
from .list_allocations import ListAllocations
from .dtos import (
    RunAllocationCommandDTO,
    AllocationDTO,
    ExcludedSubscriberDTO,
    AllocationRunResultDTO,
    SetMonthlyGenerationCommandDTO,
    MonthlyGenerationResponseDTO,
    ListAllocationsResponseDTO,
    MonthlyAllocationSummaryDTO,
)

__all__ = [
    "RunAllocation",
    "SetMonthlyGeneration",
    "ListAllocations",
    "RunAllocationCommandDTO",
    "AllocationDTO",
    "ExcludedSubscriberDTO",
    "AllocationRunResultDTO",
    "SetMonthlyGenerationCommandDTO",
    "MonthlyGenerationResponseDTO",
    "ListAllocationsResponseDTO",
    "MonthlyAllocationSummaryDTO",
]
