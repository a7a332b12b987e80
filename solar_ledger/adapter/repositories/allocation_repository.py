"""SQLAlchemy implementation of AllocationRepository"""

from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from solar_ledger.app.repositories.allocation_repository import AllocationRepository
from solar_ledger.domain.allocation import Allocation, AllocationStatus


class SqlAlchemyAllocationRepository(AllocationRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_by_plant_month(
        self, plant_id: int, month: str, include_superseded: bool = False
    ) -> List[Allocation]:
        stmt = select(Allocation).where(
            Allocation.plant_id == plant_id,
            Allocation.month == month,
        )

        if not include_superseded:
            stmt = stmt.where(Allocation.status != AllocationStatus.SUPERSEDED)

        result = await self.session.execute(stmt.order_by(Allocation.id))
        return list(result.scalars().all())

    async def list_by_customer_month(self, customer_id: str, month: str) -> List[Allocation]:
        stmt = (
            select(Allocation)
            .where(Allocation.customer_id == customer_id)
            .where(Allocation.month == month)
            .where(Allocation.status != AllocationStatus.SUPERSEDED)
            .order_by(Allocation.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_customers_for_month(self, month: str) -> List[str]:
        stmt = (
            select(Allocation.customer_id)
            .where(Allocation.month == month)
            .where(Allocation.status == AllocationStatus.ALLOCATED)
            .distinct()
            .order_by(Allocation.customer_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, allocation: Allocation) -> Allocation:
        self.session.add(allocation)
        await self.session.flush()
        await self.session.refresh(allocation)
        return allocation

    async def update(self, allocation: Allocation) -> Allocation:
        self.session.add(allocation)
        await self.session.flush()
        return allocation
