"""Plant Repository Interface

Defines the contract for plant and monthly generation persistence.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from solar_ledger.domain.plant import Plant, MonthlyGeneration


class PlantRepository(ABC):
    """
    Repository interface for Plant and MonthlyGeneration persistence

    Allocation only reads plants; generation figures are written by the
    monthly generation import flow.
    """

    @abstractmethod
    async def get_by_id(self, plant_id: int) -> Optional[Plant]:
        """
        Retrieve plant by ID

        Args:
            plant_id: Plant ID

        Returns:
            Plant if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, plant: Plant) -> Plant:
        pass

    @abstractmethod
    async def list_allocatable(self) -> List[Plant]:
        """
        Retrieve plants that are not inactive

        Returns:
            Active and maintenance plants ordered by ID
        """
        pass

    @abstractmethod
    async def get_monthly_generation(
        self, plant_id: int, month: str, for_update: bool = False
    ) -> Optional[MonthlyGeneration]:
        """
        Retrieve the generation record of a plant month

        Args:
            plant_id: Plant ID
            month: Reference month (YYYY-MM)
            for_update: If True, lock the row with SELECT FOR UPDATE

        Returns:
            MonthlyGeneration if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_monthly_generation(self, generation: MonthlyGeneration) -> MonthlyGeneration:
        """
        Insert or update a generation record

        Args:
            generation: MonthlyGeneration to persist

        Returns:
            Persisted MonthlyGeneration
        """
        pass

    @abstractmethod
    async def claim_allocation_run(
        self, generation: MonthlyGeneration, run_id: str, claimed_at: datetime
    ) -> bool:
        """
        Hand the plant month to an allocation run

        Conditional update: succeeds only while the stored owner still equals
        ``generation.allocation_run_id``, so two runs that read the same owner
        cannot both claim the month, whatever process they run in. A claim
        also freezes the generation figure.

        Args:
            generation: MonthlyGeneration as read by the run; a new record is
                inserted already claimed
            run_id: Run taking ownership
            claimed_at: Timestamp stored as allocated_at when not yet frozen

        Returns:
            True if the run now owns the month, False if another run got there first
        """
        pass
