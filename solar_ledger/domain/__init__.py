from .base import BaseModel, generate_uuid
from .plant import Plant, PlantStatus, MonthlyGeneration
from .subscription import Subscription, SubscriptionStatus
from .allocation import Allocation, AllocationStatus
from .credit_ledger import CreditLedger
from .credit_balance import CreditBalance
from .credit_transaction import CreditTransaction, TransactionType
from .invoice import Invoice, InvoiceStatus
from .generation_reconciliation import GenerationReconciliation
from .ledger_event import LedgerEvent, LedgerEventType

__all__ = [
    "BaseModel",
    "generate_uuid",
    "Plant",
    "PlantStatus",
    "MonthlyGeneration",
    "Subscription",
    "SubscriptionStatus",
    "Allocation",
    "AllocationStatus",
    "CreditLedger",
    "CreditBalance",
    "CreditTransaction",
    "TransactionType",
    "Invoice",
    "InvoiceStatus",
    "GenerationReconciliation",
    "LedgerEvent",
    "LedgerEventType",
]
