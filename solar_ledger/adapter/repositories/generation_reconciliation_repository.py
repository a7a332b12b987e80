"""SQLAlchemy implementation of GenerationReconciliationRepository"""

from typing import Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from solar_ledger.app.repositories.generation_reconciliation_repository import (
    GenerationReconciliationRepository,
)
from solar_ledger.domain.generation_reconciliation import GenerationReconciliation


class SqlAlchemyGenerationReconciliationRepository(GenerationReconciliationRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_plant_month(self, plant_id: int, month: str) -> Optional[GenerationReconciliation]:
        stmt = select(GenerationReconciliation).where(
            GenerationReconciliation.plant_id == plant_id,
            GenerationReconciliation.month == month,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, reconciliation: GenerationReconciliation) -> GenerationReconciliation:
        self.session.add(reconciliation)
        await self.session.flush()
        await self.session.refresh(reconciliation)
        return reconciliation
