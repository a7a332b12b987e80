"""ListExpiringWithin Use Case

Read-only list of credit that will expire soon, tiered by urgency.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Sequence
from libs.result import Result, Return, Error
from solar_ledger.app.repositories.credit_balance_repository import CreditBalanceRepository
from .dtos import ExpirationUrgency, ExpiringCreditDTO, ExpiringCreditsResponseDTO


DEFAULT_WARNING_DAYS = (15, 30, 60)


def urgency_for(days_to_expire: int, warning_days: Sequence[int] = DEFAULT_WARNING_DAYS) -> ExpirationUrgency:
    """Map days left to a tier; warning_days are the critical, high and medium limits"""
    critical, high, medium = sorted(warning_days)[:3]
    if days_to_expire <= critical:
        return ExpirationUrgency.CRITICAL
    if days_to_expire <= high:
        return ExpirationUrgency.HIGH
    if days_to_expire <= medium:
        return ExpirationUrgency.MEDIUM
    return ExpirationUrgency.LOW


class ListExpiringWithin:
    def __init__(
        self,
        balance_repo: CreditBalanceRepository,
        warning_days: Sequence[int] = DEFAULT_WARNING_DAYS,
    ):
        self.balance_repo = balance_repo
        self.warning_days = warning_days

    async def execute(
        self, days: int, as_of_date: Optional[date] = None
    ) -> Result[ExpiringCreditsResponseDTO]:
        """
        List buckets with credit expiring in [as_of_date, as_of_date + days]

        Args:
            days: Window length in days (>= 0)
            as_of_date: Reference date (default today)

        Returns:
            Result[ExpiringCreditsResponseDTO]
        """
        if days < 0:
            return Return.err(
                Error(
                    code="VALIDATION_ERROR",
                    message="days must not be negative",
                )
            )

        as_of = as_of_date or date.today()
        buckets = await self.balance_repo.list_expiring_between(as_of, as_of + timedelta(days=days))

        items = []
        for bucket in buckets:
            days_to_expire = (bucket.expiration_date - as_of).days
            items.append(
                ExpiringCreditDTO(
                    customer_id=bucket.customer_id,
                    month=bucket.month,
                    balance_kwh=bucket.balance_kwh,
                    expiration_date=bucket.expiration_date,
                    days_to_expire=days_to_expire,
                    urgency=urgency_for(days_to_expire, self.warning_days),
                )
            )

        return Return.ok(
            ExpiringCreditsResponseDTO(
                as_of_date=as_of,
                days=days,
                total_kwh=sum((item.balance_kwh for item in items), Decimal("0")),
                items=items,
            )
        )
