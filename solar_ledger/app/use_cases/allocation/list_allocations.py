"""ListAllocations Use Case

Read-only view of the allocations of a plant month or a customer month.
"""

from decimal import Decimal
from typing import Optional
from libs.result import Result, Return, Error
from solar_ledger.app.repositories.allocation_repository import AllocationRepository
from solar_ledger.domain.allocation import AllocationStatus
from .dtos import AllocationDTO, ListAllocationsResponseDTO


class ListAllocations:
    def __init__(self, allocation_repo: AllocationRepository):
        self.allocation_repo = allocation_repo

    async def execute(
        self,
        month: str,
        plant_id: Optional[int] = None,
        customer_id: Optional[str] = None,
        include_superseded: bool = False,
    ) -> Result[ListAllocationsResponseDTO]:
        """
        List allocations of a month

        Args:
            month: Reference month (YYYY-MM)
            plant_id: Restrict to one plant
            customer_id: Restrict to one customer (across plants when plant_id is None)
            include_superseded: Include superseded rows (plant listing only)

        Returns:
            Result[ListAllocationsResponseDTO]
        """
        if plant_id is None and customer_id is None:
            return Return.err(
                Error(
                    code="VALIDATION_ERROR",
                    message="Either plant_id or customer_id is required",
                )
            )

        if plant_id is not None:
            allocations = await self.allocation_repo.list_by_plant_month(
                plant_id, month, include_superseded=include_superseded
            )
            if customer_id is not None:
                allocations = [a for a in allocations if a.customer_id == customer_id]
        else:
            allocations = await self.allocation_repo.list_by_customer_month(customer_id, month)

        total = sum(
            (a.allocated_kwh for a in allocations if a.status == AllocationStatus.ALLOCATED),
            Decimal("0"),
        )

        return Return.ok(
            ListAllocationsResponseDTO(
                allocations=[AllocationDTO.from_entity(a) for a in allocations],
                total_kwh=total,
            )
        )
