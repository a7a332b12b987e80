"""Unit of Work Interface

Groups the repository writes of one use case into a single commit.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Callable
from solar_ledger.app.repositories import (
    PlantRepository,
    SubscriptionRepository,
    AllocationRepository,
    CreditLedgerRepository,
    CreditBalanceRepository,
    CreditTransactionRepository,
    InvoiceRepository,
    GenerationReconciliationRepository,
    LedgerEventRepository,
)


class UnitOfWork(ABC):
    """
    One database transaction and the repositories bound to it

    Batch use cases open one unit per customer through a UnitOfWorkFactory,
    so a failing customer rolls back alone.
    """

    plants: PlantRepository
    subscriptions: SubscriptionRepository
    allocations: AllocationRepository
    ledgers: CreditLedgerRepository
    balances: CreditBalanceRepository
    transactions: CreditTransactionRepository
    invoices: InvoiceRepository
    reconciliations: GenerationReconciliationRepository
    events: LedgerEventRepository

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.rollback()

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


# Calling the factory opens a fresh session; leaving the context rolls back
# whatever was not committed.
UnitOfWorkFactory = Callable[[], AsyncContextManager[UnitOfWork]]
