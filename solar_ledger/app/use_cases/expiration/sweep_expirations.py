"""SweepExpirations Use Case

Retires credit held in buckets past their expiration date.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from libs.result import Result, Return, Error
from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.services.locks import KeyedLockRegistry, customer_lock_key, ledger_locks
from solar_ledger.app.services.unit_of_work import UnitOfWorkFactory
from solar_ledger.app.use_cases.batch import BatchProgress
from solar_ledger.domain.exceptions import EnergyLedgerError
from .dtos import ExpiredBucketDTO, SweepResultDTO

logger = logging.getLogger(__name__)


class SweepExpirations:
    """
    Use Case: Expire credits past their validity

    Business Rules:
    1. A bucket expires when expiration_date < as_of_date and balance > 0
    2. Each expired bucket gets one expiration transaction of -balance and
       a credits.expired alert event; the bucket is zeroed
    3. Buckets already at zero produce nothing, so re-running is harmless
    4. One unit of work per customer; failures are isolated and reported
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        locks: KeyedLockRegistry = ledger_locks,
    ):
        self.uow_factory = uow_factory
        self.locks = locks

    async def execute(
        self,
        as_of_date: Optional[date] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Result[SweepResultDTO]:
        as_of = as_of_date or date.today()

        try:
            async with self.uow_factory() as uow:
                candidates = await uow.balances.list_expired_with_balance(as_of)
        except Exception as e:
            logger.error(f"Expiration sweep could not list buckets: {e}")
            return Return.err(
                Error(
                    code="EXPIRATION_SWEEP_FAILED",
                    message="Failed to list expired credit",
                    reason=str(e),
                )
            )

        months_by_customer: Dict[str, List[str]] = defaultdict(list)
        for bucket in candidates:
            months_by_customer[bucket.customer_id].append(bucket.month)

        progress = BatchProgress(total=len(months_by_customer), cancel_event=cancel_event)
        expired: List[ExpiredBucketDTO] = []

        logger.info(
            f"Expiration sweep as of {as_of.isoformat()}: {len(candidates)} buckets, "
            f"{len(months_by_customer)} customers"
        )

        for customer_id in sorted(months_by_customer):
            if progress.should_stop():
                logger.warning(f"Expiration sweep cancelled after {progress.succeeded} customers")
                break

            try:
                expired.extend(
                    await self._sweep_customer(customer_id, sorted(months_by_customer[customer_id]), as_of)
                )
                progress.record_success()
            except Exception as e:
                code = e.code if isinstance(e, EnergyLedgerError) else "EXPIRATION_FAILED"
                reason = e.message if isinstance(e, EnergyLedgerError) else str(e)
                logger.error(f"Expiration sweep: customer {customer_id} failed ({code}): {reason}")
                progress.record_failure(customer_id, code, reason)

        total_expired = sum((item.expired_kwh for item in expired), Decimal("0"))
        logger.info(
            f"Expiration sweep finished: {len(expired)} buckets, {total_expired} kWh expired, "
            f"{progress.summary}"
        )

        return Return.ok(
            SweepResultDTO(
                as_of_date=as_of,
                buckets_expired=len(expired),
                total_expired_kwh=total_expired,
                expired=expired,
                total_customers=progress.total,
                succeeded=progress.succeeded,
                failed=progress.failed,
                failures=progress.failures,
                status=progress.status,
                error_code=progress.error_code,
                summary=progress.summary,
                cancelled=progress.cancelled,
            )
        )

    async def _sweep_customer(self, customer_id: str, months: List[str], as_of: date) -> List[ExpiredBucketDTO]:
        async with self.locks.hold(customer_lock_key(customer_id)):
            async with self.uow_factory() as uow:
                posting = CreditPostingService.from_uow(uow)
                results = []
                for month in months:
                    transaction = await posting.expire(customer_id, month, as_of)
                    if transaction is None:
                        continue
                    bucket = await uow.balances.get_by_customer_month(customer_id, month)
                    results.append(
                        ExpiredBucketDTO(
                            customer_id=customer_id,
                            month=month,
                            expired_kwh=-transaction.amount_kwh,
                            expiration_date=bucket.expiration_date,
                            transaction_id=transaction.id,
                        )
                    )
                await uow.commit()
                return results
