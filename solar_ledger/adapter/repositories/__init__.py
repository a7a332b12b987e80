from .plant_repository import SqlAlchemyPlantRepository
from .subscription_repository import SqlAlchemySubscriptionRepository
from .allocation_repository import SqlAlchemyAllocationRepository
from .credit_ledger_repository import SqlAlchemyCreditLedgerRepository
from .credit_balance_repository import SqlAlchemyCreditBalanceRepository
from .credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from .invoice_repository import SqlAlchemyInvoiceRepository
from .generation_reconciliation_repository import SqlAlchemyGenerationReconciliationRepository
from .ledger_event_repository import SqlAlchemyLedgerEventRepository

__all__ = [
    "SqlAlchemyPlantRepository",
    "SqlAlchemySubscriptionRepository",
    "SqlAlchemyAllocationRepository",
    "SqlAlchemyCreditLedgerRepository",
    "SqlAlchemyCreditBalanceRepository",
    "SqlAlchemyCreditTransactionRepository",
    "SqlAlchemyInvoiceRepository",
    "SqlAlchemyGenerationReconciliationRepository",
    "SqlAlchemyLedgerEventRepository",
]
