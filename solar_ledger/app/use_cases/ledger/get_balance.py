"""Get Balance Use Case

Retrieves a customer's current credit balance and its monthly buckets.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from libs.result import Result, Return, Error
from solar_ledger.app.repositories.credit_ledger_repository import CreditLedgerRepository
from solar_ledger.app.repositories.credit_balance_repository import CreditBalanceRepository
from .dtos import BalanceResponseDTO, CreditBucketDTO


class GetBalance:
    """
    Get Balance Use Case

    Read-only operation that retrieves the current credit balance
    for a given customer.
    """

    def __init__(self, ledger_repo: CreditLedgerRepository, balance_repo: CreditBalanceRepository):
        """
        Initialize GetBalance use case

        Args:
            ledger_repo: Repository for accessing credit ledgers
            balance_repo: Repository for accessing monthly buckets
        """
        self.ledger_repo = ledger_repo
        self.balance_repo = balance_repo

    async def execute(self, customer_id: str, as_of: Optional[date] = None) -> Result[BalanceResponseDTO]:
        """
        Execute get balance operation

        Args:
            customer_id: The customer identifier
            as_of: Date expiration is evaluated against (default today)

        Returns:
            Result[BalanceResponseDTO]: Success with balance data or error

        Errors:
            LEDGER_NOT_FOUND: Customer has no credit ledger
        """
        as_of = as_of or date.today()
        ledger = await self.ledger_repo.get_by_customer_id(customer_id)

        if not ledger:
            return Return.err(
                Error(
                    code="LEDGER_NOT_FOUND",
                    message=f"No credit ledger found for customer {customer_id}",
                )
            )

        buckets = await self.balance_repo.list_by_customer(customer_id)
        bucket_dtos = [
            CreditBucketDTO(
                month=bucket.month,
                balance_kwh=bucket.balance_kwh,
                accumulated_kwh=bucket.accumulated_kwh,
                consumed_kwh=bucket.consumed_kwh,
                expired_kwh=bucket.expired_kwh,
                expiration_date=bucket.expiration_date,
                expired=bucket.is_expired(as_of),
            )
            for bucket in buckets
        ]
        available = sum(
            (bucket.balance_kwh for bucket in buckets if not bucket.is_expired(as_of)),
            Decimal("0"),
        )

        return Return.ok(
            BalanceResponseDTO(
                customer_id=ledger.customer_id,
                balance_kwh=ledger.balance_kwh,
                available_kwh=available,
                buckets=bucket_dtos,
                last_updated=ledger.updated_at,
            )
        )
