"""SQLAlchemy implementation of LedgerEventRepository"""

from datetime import datetime
from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from solar_ledger.app.repositories.ledger_event_repository import LedgerEventRepository
from solar_ledger.domain.ledger_event import LedgerEvent


class SqlAlchemyLedgerEventRepository(LedgerEventRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, event: LedgerEvent) -> LedgerEvent:
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_pending(self, limit: int = 100, max_attempts: int = 10) -> List[LedgerEvent]:
        stmt = (
            select(LedgerEvent)
            .where(LedgerEvent.delivered_at.is_(None))
            .where(LedgerEvent.delivery_attempts < max_attempts)
            .order_by(LedgerEvent.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_delivered(self, event: LedgerEvent) -> None:
        event.delivered_at = datetime.utcnow()
        self.session.add(event)
        await self.session.flush()

    async def mark_failed(self, event: LedgerEvent) -> None:
        event.delivery_attempts += 1
        self.session.add(event)
        await self.session.flush()
