"""Typed exceptions raised inside ledger and allocation code

Use cases catch these and turn them into ``libs.result.Error`` values; the
``code`` attribute is the machine-readable code that ends up in the Error.
"""

from decimal import Decimal
from typing import Optional
from libs.result import Error


class EnergyLedgerError(Exception):
    code = "ENERGY_LEDGER_ERROR"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_error(self) -> Error:
        return Error(code=self.code, message=self.message, reason=self.reason)


class InvalidPlantState(EnergyLedgerError):
    code = "INVALID_PLANT_STATE"


class DuplicateAllocation(EnergyLedgerError):
    code = "DUPLICATE_ALLOCATION"


class StaleInvoice(EnergyLedgerError):
    code = "STALE_INVOICE"


class InsufficientBalance(EnergyLedgerError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, customer_id: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient credits. Required: {required}, Available: {available}",
            reason=f"customer={customer_id}, balance={available}, required={required}",
        )
        self.customer_id = customer_id
        self.required = required
        self.available = available


class LedgerIntegrityError(EnergyLedgerError):
    """Materialized balances disagree with the transaction being written"""

    code = "LEDGER_INTEGRITY_VIOLATION"


class IdempotencyConflict(EnergyLedgerError):
    """An idempotency key was reused for a different customer"""

    code = "IDEMPOTENCY_CONFLICT"
