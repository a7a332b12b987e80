"""ApplyTrueUp Use Case

Settles the reconciled generation delta of a plant month as credit
adjustments booked in a later month.
"""

import asyncio
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional
from libs.result import Result, Return, Error
from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.services.locks import KeyedLockRegistry, customer_lock_key, ledger_locks
from solar_ledger.app.services.unit_of_work import UnitOfWorkFactory
from solar_ledger.app.use_cases.batch import BatchProgress
from solar_ledger.domain.allocation import AllocationStatus
from solar_ledger.domain.calculations import add_months, compute_shares, parse_month
from solar_ledger.domain.exceptions import EnergyLedgerError
from .dtos import TrueUpAdjustmentDTO, TrueUpResultDTO

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class ApplyTrueUp:
    """
    Use Case: Apply the reconciled delta of a plant month

    Business Rules:
    1. Requires a reconciliation of the plant month
    2. |delta| is split across the month's allocations by their allocation
       percentage (same rounding as allocation runs), then signed
    3. Each customer gets one adjustment in target_month (default the
       month after), keyed per plant month customer so re-runs never repeat it
    4. A negative true-up is clamped to the credit the customer still holds
    5. Customers are processed in their own units; failures are reported
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        credit_validity_months: int = 60,
        locks: KeyedLockRegistry = ledger_locks,
    ):
        self.uow_factory = uow_factory
        self.credit_validity_months = credit_validity_months
        self.locks = locks

    async def execute(
        self,
        plant_id: int,
        month: str,
        target_month: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Result[TrueUpResultDTO]:
        try:
            parse_month(month)
            target_month = target_month or add_months(month, 1)
            parse_month(target_month)
        except ValueError as e:
            return Return.err(Error(code="INVALID_MONTH", message=str(e)))

        try:
            async with self.uow_factory() as uow:
                reconciliation = await uow.reconciliations.get_by_plant_month(plant_id, month)
                allocations = [
                    allocation
                    for allocation in await uow.allocations.list_by_plant_month(plant_id, month)
                    if allocation.status == AllocationStatus.ALLOCATED and allocation.allocation_percentage > 0
                ]
        except Exception as e:
            return Return.err(
                Error(
                    code="TRUE_UP_FAILED",
                    message=f"Failed to load plant {plant_id} {month}",
                    reason=str(e),
                )
            )

        if reconciliation is None:
            return Return.err(
                Error(
                    code="RECONCILIATION_DATA_MISSING",
                    message=f"Plant {plant_id} {month} has not been reconciled",
                )
            )

        delta = reconciliation.delta_kwh
        amounts: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        if delta != 0 and allocations:
            shares = compute_shares(
                abs(delta),
                [(allocation.id, allocation.allocation_percentage) for allocation in allocations],
            )
            customer_by_allocation = {allocation.id: allocation.customer_id for allocation in allocations}
            sign = 1 if delta > 0 else -1
            for share in shares:
                amounts[customer_by_allocation[share.key]] += share.allocated_kwh * sign

        customers = sorted(customer_id for customer_id, amount in amounts.items() if amount != 0)
        progress = BatchProgress(total=len(customers), cancel_event=cancel_event)
        adjustments: List[TrueUpAdjustmentDTO] = []

        logger.info(
            f"True-up of plant {plant_id} {month} into {target_month}: "
            f"delta={delta} kWh over {len(customers)} customers"
        )

        for customer_id in customers:
            if progress.should_stop():
                logger.warning(f"True-up of plant {plant_id} {month} cancelled after {progress.succeeded} customers")
                break

            try:
                adjustments.append(
                    await self._adjust_customer(plant_id, month, target_month, customer_id, amounts[customer_id])
                )
                progress.record_success()
            except Exception as e:
                code = e.code if isinstance(e, EnergyLedgerError) else "TRUE_UP_FAILED"
                reason = e.message if isinstance(e, EnergyLedgerError) else str(e)
                logger.error(f"True-up of plant {plant_id} {month}: customer {customer_id} failed ({code}): {reason}")
                progress.record_failure(customer_id, code, reason)

        if not progress.failures and not progress.cancelled:
            try:
                async with self.uow_factory() as uow:
                    record = await uow.reconciliations.get_by_plant_month(plant_id, month)
                    record.true_up_month = target_month
                    await uow.reconciliations.save(record)
                    await uow.commit()
            except Exception as e:
                logger.error(f"True-up of plant {plant_id} {month} could not be marked settled: {e}")

        return Return.ok(
            TrueUpResultDTO(
                plant_id=plant_id,
                month=month,
                target_month=target_month,
                delta_kwh=delta,
                adjustments=adjustments,
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

    async def _adjust_customer(
        self, plant_id: int, month: str, target_month: str, customer_id: str, amount: Decimal
    ) -> TrueUpAdjustmentDTO:
        async with self.locks.hold(customer_lock_key(customer_id)):
            async with self.uow_factory() as uow:
                posting = CreditPostingService.from_uow(uow, self.credit_validity_months)
                transaction = await posting.adjust(
                    customer_id,
                    amount,
                    description=f"Generation true-up of plant {plant_id} for {month}",
                    adjusted_by="system",
                    month=target_month,
                    requires_review=False,
                    reference_type="true_up",
                    reference_id=f"{plant_id}:{month}",
                    idempotency_key=f"true-up:{plant_id}:{month}:{customer_id}",
                )
                await uow.commit()
                return TrueUpAdjustmentDTO(
                    customer_id=customer_id,
                    amount_kwh=transaction.amount_kwh,
                    transaction_id=transaction.id,
                )
