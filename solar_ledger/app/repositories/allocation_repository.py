"""Allocation Repository Interface

Defines the contract for energy allocation persistence.
"""

from abc import ABC, abstractmethod
from typing import List
from solar_ledger.domain.allocation import Allocation


class AllocationRepository(ABC):
    """
    Repository interface for Allocation persistence

    Rows are never deleted; superseding is an update of status.
    """

    @abstractmethod
    async def list_by_plant_month(
        self, plant_id: int, month: str, include_superseded: bool = False
    ) -> List[Allocation]:
        """
        Retrieve allocations of a plant month

        Args:
            plant_id: Plant ID
            month: Reference month (YYYY-MM)
            include_superseded: If False, only allocated and pending rows

        Returns:
            Allocations ordered by ID
        """
        pass

    @abstractmethod
    async def list_by_customer_month(self, customer_id: str, month: str) -> List[Allocation]:
        """
        Retrieve the non-superseded allocations of a customer month

        Args:
            customer_id: Customer identifier
            month: Reference month (YYYY-MM)

        Returns:
            Allocations across all plants
        """
        pass

    @abstractmethod
    async def list_customers_for_month(self, month: str) -> List[str]:
        """
        Retrieve the customers holding allocated energy in a month

        Args:
            month: Reference month (YYYY-MM)

        Returns:
            Distinct customer identifiers, sorted
        """
        pass

    @abstractmethod
    async def create(self, allocation: Allocation) -> Allocation:
        pass

    @abstractmethod
    async def update(self, allocation: Allocation) -> Allocation:
        pass
