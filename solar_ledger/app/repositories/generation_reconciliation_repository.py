"""Generation Reconciliation Repository Interface"""

from abc import ABC, abstractmethod
from typing import Optional
from solar_ledger.domain.generation_reconciliation import GenerationReconciliation


class GenerationReconciliationRepository(ABC):
    @abstractmethod
    async def get_by_plant_month(self, plant_id: int, month: str) -> Optional[GenerationReconciliation]:
        pass

    @abstractmethod
    async def save(self, reconciliation: GenerationReconciliation) -> GenerationReconciliation:
        pass
