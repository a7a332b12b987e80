from .plant_repository import PlantRepository
from .subscription_repository import SubscriptionRepository
from .allocation_repository import AllocationRepository
from .credit_ledger_repository import CreditLedgerRepository
from .credit_balance_repository import CreditBalanceRepository
from .credit_transaction_repository import CreditTransactionRepository
from .invoice_repository import InvoiceRepository
from .generation_reconciliation_repository import GenerationReconciliationRepository
from .ledger_event_repository import LedgerEventRepository

__all__ = [
    "PlantRepository",
    "SubscriptionRepository",
    "AllocationRepository",
    "CreditLedgerRepository",
    "CreditBalanceRepository",
    "CreditTransactionRepository",
    "InvoiceRepository",
    "GenerationReconciliationRepository",
    "LedgerEventRepository",
]
