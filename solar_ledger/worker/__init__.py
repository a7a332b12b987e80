"""Background workers for the solar ledger service"""
from .monthly_allocation import MonthlyAllocationWorker
from .expiration_sweeper import ExpirationSweeperWorker
from .invoice_generation import InvoiceGenerationWorker
from .event_dispatcher import EventDispatcherWorker
from .ledger_verifier import LedgerVerifierWorker

__all__ = [
    "MonthlyAllocationWorker",
    "ExpirationSweeperWorker",
    "InvoiceGenerationWorker",
    "EventDispatcherWorker",
    "LedgerVerifierWorker",
]
