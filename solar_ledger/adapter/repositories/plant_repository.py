"""SQLAlchemy implementation of PlantRepository"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from solar_ledger.app.repositories.plant_repository import PlantRepository
from solar_ledger.domain.plant import Plant, MonthlyGeneration, PlantStatus


class SqlAlchemyPlantRepository(PlantRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, plant_id: int) -> Optional[Plant]:
        stmt = select(Plant).where(Plant.id == plant_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, plant: Plant) -> Plant:
        self.session.add(plant)
        await self.session.flush()
        await self.session.refresh(plant)
        return plant

    async def list_allocatable(self) -> List[Plant]:
        stmt = select(Plant).where(Plant.status != PlantStatus.INACTIVE).order_by(Plant.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_monthly_generation(
        self, plant_id: int, month: str, for_update: bool = False
    ) -> Optional[MonthlyGeneration]:
        stmt = select(MonthlyGeneration).where(
            MonthlyGeneration.plant_id == plant_id,
            MonthlyGeneration.month == month,
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_monthly_generation(self, generation: MonthlyGeneration) -> MonthlyGeneration:
        generation.updated_at = datetime.utcnow()
        self.session.add(generation)
        await self.session.flush()
        await self.session.refresh(generation)
        return generation

    async def claim_allocation_run(
        self, generation: MonthlyGeneration, run_id: str, claimed_at: datetime
    ) -> bool:
        if generation.id is None:
            generation.allocated_at = claimed_at
            generation.allocation_run_id = run_id
            generation.updated_at = claimed_at
            self.session.add(generation)
            try:
                await self.session.flush()
            except IntegrityError:
                # Another run inserted the plant month first
                return False
            await self.session.refresh(generation)
            return True

        owner = MonthlyGeneration.allocation_run_id
        stmt = (
            update(MonthlyGeneration)
            .where(MonthlyGeneration.id == generation.id)
            .where(
                owner.is_(None)
                if generation.allocation_run_id is None
                else owner == generation.allocation_run_id
            )
            .values(
                allocation_run_id=run_id,
                allocated_at=func.coalesce(MonthlyGeneration.allocated_at, claimed_at),
                updated_at=claimed_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False

        await self.session.refresh(generation)
        return True
