"""SQLAlchemy implementation of CreditTransactionRepository

Provides persistence for CreditTransaction entities with idempotency enforcement
via unique constraint on idempotency_key.
"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from solar_ledger.app.repositories.credit_transaction_repository import CreditTransactionRepository
from solar_ledger.domain.credit_transaction import CreditTransaction, TransactionType


class SqlAlchemyCreditTransactionRepository(CreditTransactionRepository):
    """
    SQLAlchemy implementation of CreditTransactionRepository

    Features:
    - Idempotency enforcement via unique idempotency_key constraint
    - Immutable append-only transactions (no update or delete methods)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, transaction: CreditTransaction) -> CreditTransaction:
        self.session.add(transaction)
        await self.session.flush()
        await self.session.refresh(transaction)
        return transaction

    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[CreditTransaction]:
        stmt = select(CreditTransaction).where(
            CreditTransaction.idempotency_key == idempotency_key
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_customer_id(
        self,
        customer_id: str,
        transaction_type: Optional[TransactionType] = None,
        month: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[CreditTransaction], int]:
        conditions = [CreditTransaction.customer_id == customer_id]
        if transaction_type is not None:
            conditions.append(CreditTransaction.transaction_type == transaction_type)
        if month is not None:
            conditions.append(CreditTransaction.month == month)
        if created_from is not None:
            conditions.append(CreditTransaction.created_at >= created_from)
        if created_to is not None:
            conditions.append(CreditTransaction.created_at <= created_to)

        count_stmt = select(func.count()).select_from(CreditTransaction).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(CreditTransaction)
            .where(*conditions)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def list_for_replay(self, customer_id: str) -> List[CreditTransaction]:
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.customer_id == customer_id)
            .order_by(CreditTransaction.created_at, CreditTransaction.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
