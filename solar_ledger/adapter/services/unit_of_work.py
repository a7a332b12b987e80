from contextlib import asynccontextmanager
from typing import AsyncIterator
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.adapter.repositories import (
    SqlAlchemyPlantRepository,
    SqlAlchemySubscriptionRepository,
    SqlAlchemyAllocationRepository,
    SqlAlchemyCreditLedgerRepository,
    SqlAlchemyCreditBalanceRepository,
    SqlAlchemyCreditTransactionRepository,
    SqlAlchemyInvoiceRepository,
    SqlAlchemyGenerationReconciliationRepository,
    SqlAlchemyLedgerEventRepository,
)


class SqlAlchemyUnitOfWork(UnitOfWork):
    def __init__(self, session: AsyncSession):
        self.session = session
        self.plants = SqlAlchemyPlantRepository(session)
        self.subscriptions = SqlAlchemySubscriptionRepository(session)
        self.allocations = SqlAlchemyAllocationRepository(session)
        self.ledgers = SqlAlchemyCreditLedgerRepository(session)
        self.balances = SqlAlchemyCreditBalanceRepository(session)
        self.transactions = SqlAlchemyCreditTransactionRepository(session)
        self.invoices = SqlAlchemyInvoiceRepository(session)
        self.reconciliations = SqlAlchemyGenerationReconciliationRepository(session)
        self.events = SqlAlchemyLedgerEventRepository(session)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.rollback()

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()


class SqlAlchemyUnitOfWorkFactory:
    """Opens a new session and unit of work per call

    Uncommitted work is rolled back when the block exits. Entities loaded in
    the block are detached first, so callers can keep reading them after the
    session closes.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator[SqlAlchemyUnitOfWork]:
        async with self.session_factory() as session:
            uow = SqlAlchemyUnitOfWork(session)
            try:
                yield uow
            finally:
                session.expunge_all()
                await uow.rollback()
