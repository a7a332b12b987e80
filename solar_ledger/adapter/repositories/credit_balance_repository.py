"""SQLAlchemy implementation of CreditBalanceRepository"""

from datetime import date, datetime
from typing import List, Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from solar_ledger.app.repositories.credit_balance_repository import CreditBalanceRepository
from solar_ledger.domain.credit_balance import CreditBalance


class SqlAlchemyCreditBalanceRepository(CreditBalanceRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_by_customer(self, customer_id: str) -> List[CreditBalance]:
        stmt = (
            select(CreditBalance)
            .where(CreditBalance.customer_id == customer_id)
            .order_by(CreditBalance.month)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_customer_month(self, customer_id: str, month: str) -> Optional[CreditBalance]:
        stmt = select(CreditBalance).where(
            CreditBalance.customer_id == customer_id,
            CreditBalance.month == month,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, balance: CreditBalance) -> CreditBalance:
        self.session.add(balance)
        await self.session.flush()
        await self.session.refresh(balance)
        return balance

    async def save(self, balance: CreditBalance) -> CreditBalance:
        balance.updated_at = datetime.utcnow()
        self.session.add(balance)
        await self.session.flush()
        return balance

    async def list_expired_with_balance(self, as_of: date) -> List[CreditBalance]:
        stmt = (
            select(CreditBalance)
            .where(CreditBalance.expiration_date.is_not(None))
            .where(CreditBalance.expiration_date < as_of)
            .where(CreditBalance.balance_kwh > 0)
            .order_by(CreditBalance.customer_id, CreditBalance.month)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_expiring_between(self, start: date, end: date) -> List[CreditBalance]:
        stmt = (
            select(CreditBalance)
            .where(CreditBalance.expiration_date >= start)
            .where(CreditBalance.expiration_date <= end)
            .where(CreditBalance.balance_kwh > 0)
            .order_by(CreditBalance.expiration_date, CreditBalance.customer_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
