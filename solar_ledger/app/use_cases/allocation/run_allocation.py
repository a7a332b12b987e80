"""RunAllocation Use Case

Distributes a plant's monthly generation among its active subscribers in
proportion to their weights and credits each share to the subscriber's
ledger.
"""

import asyncio
import json
import logging
import time
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Set
from libs.result import Result, Return, Error
from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.services.locks import (
    KeyedLockRegistry,
    customer_lock_key,
    ledger_locks,
    plant_month_lock_key,
)
from solar_ledger.app.services.unit_of_work import UnitOfWorkFactory
from solar_ledger.app.use_cases.batch import BatchProgress
from solar_ledger.domain.allocation import Allocation, AllocationStatus
from solar_ledger.domain.base import generate_uuid
from solar_ledger.domain.calculations import Share, combine_shares, compute_shares, parse_month
from solar_ledger.domain.credit_transaction import TransactionType
from solar_ledger.domain.exceptions import DuplicateAllocation, EnergyLedgerError, InvalidPlantState
from solar_ledger.domain.ledger_event import LedgerEvent, LedgerEventType
from solar_ledger.domain.plant import MonthlyGeneration, PlantStatus
from solar_ledger.domain.subscription import Subscription
from .dtos import (
    AllocationDTO,
    AllocationRunResultDTO,
    ExcludedSubscriberDTO,
    RunAllocationCommandDTO,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class RunAllocation:
    """
    Use Case: Allocate a plant month to its subscribers

    Business Rules:
    1. Capacity is the month's generation figure, else the plant default;
       it must be positive and the plant must not be inactive
    2. Existing allocations require an explicit rerun; a run owns the plant
       month through a conditional update, so concurrent runs in other
       processes are rejected as duplicates
    3. Shares are proportional to subscriber weight, rounded down, with the
       residual assigned to the largest weight; they sum to capacity exactly
    4. Subscribers with zero or missing weight are excluded and reported;
       a customer with several subscriptions gets one row with the summed share
    5. Each customer is one atomic unit: allocation rows, compensation of
       superseded rows and ledger credit are committed together
    6. A failing customer is rolled back, recorded as pending_allocation and
       the run continues

    Flow:
    1. Lock the plant month
    2. Validate plant state, claim the month and freeze the generation figure
    3. Compute shares
    4. For each customer: lock customer, supersede + compensate, allocate + credit, commit
    5. Return run summary
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
        command: RunAllocationCommandDTO,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Result[AllocationRunResultDTO]:
        """
        Execute allocation run

        Args:
            command: RunAllocationCommandDTO with plant_id, month, rerun
            cancel_event: Optional event; when set the run stops before the next customer

        Returns:
            Result[AllocationRunResultDTO]: Run summary, or an error when the
            run was rejected before any write
        """
        start_time = time.time()
        run_id = generate_uuid()

        try:
            parse_month(command.month)
        except ValueError as e:
            return Return.err(Error(code="INVALID_MONTH", message=str(e)))

        async with self.locks.hold(plant_month_lock_key(command.plant_id, command.month)):
            try:
                generation, subscriptions, previous = await self._prepare(command, run_id)
            except EnergyLedgerError as e:
                logger.warning(
                    f"Allocation of plant {command.plant_id} for {command.month} rejected: {e.message}"
                )
                return Return.err(e.to_error())
            except Exception as e:
                logger.error(f"Allocation of plant {command.plant_id} for {command.month} failed: {e}")
                return Return.err(
                    Error(
                        code="ALLOCATION_FAILED",
                        message="Failed to prepare allocation run",
                        reason=str(e),
                    )
                )

            if generation is None:
                return Return.err(
                    Error(
                        code="PLANT_NOT_FOUND",
                        message=f"Plant {command.plant_id} not found",
                    )
                )

            return Return.ok(
                await self._allocate(
                    run_id, command, generation, subscriptions, previous, cancel_event, start_time
                )
            )

    async def _prepare(self, command: RunAllocationCommandDTO, run_id: str):
        """Validate the plant month, claim it for this run and freeze its generation figure"""
        async with self.uow_factory() as uow:
            plant = await uow.plants.get_by_id(command.plant_id)
            if plant is None:
                return None, [], []

            generation = await uow.plants.get_monthly_generation(
                command.plant_id, command.month, for_update=True
            )
            capacity = generation.generation_kwh if generation else plant.monthly_generation_kwh

            if plant.status == PlantStatus.INACTIVE:
                raise InvalidPlantState(
                    f"Plant {plant.id} is inactive",
                    reason=f"status={plant.status.value}",
                )
            if capacity is None or capacity <= 0:
                raise InvalidPlantState(
                    f"Plant {plant.id} has no positive generation figure for {command.month}",
                    reason=f"generation_kwh={capacity}",
                )

            previous = await uow.allocations.list_by_plant_month(command.plant_id, command.month)
            if previous and not command.rerun:
                raise DuplicateAllocation(
                    f"Plant {plant.id} already has allocations for {command.month}",
                    reason=f"existing={len(previous)}; pass rerun to supersede them",
                )

            if generation is not None and generation.allocation_run_id and not command.rerun:
                raise DuplicateAllocation(
                    f"Plant {plant.id} for {command.month} is owned by run {generation.allocation_run_id}",
                    reason="pass rerun to supersede it",
                )

            # The plant month lock is in-process only; the claim below is what
            # keeps a second process from allocating the same month
            if generation is None:
                generation = MonthlyGeneration(
                    plant_id=plant.id,
                    month=command.month,
                    generation_kwh=capacity,
                )
            expected_owner = generation.allocation_run_id
            if not await uow.plants.claim_allocation_run(generation, run_id, datetime.utcnow()):
                raise DuplicateAllocation(
                    f"Plant {plant.id} for {command.month} was claimed by another allocation run",
                    reason=f"expected owner={expected_owner}",
                )

            subscriptions = await uow.subscriptions.get_active_for_plant(plant.id)

            await uow.commit()
            logger.info(f"Allocation run {run_id} claimed plant {plant.id} for {command.month}")

            return generation, subscriptions, previous

    async def _allocate(
        self,
        run_id: str,
        command: RunAllocationCommandDTO,
        generation: MonthlyGeneration,
        subscriptions: List[Subscription],
        previous: List[Allocation],
        cancel_event: Optional[asyncio.Event],
        start_time: float,
    ) -> AllocationRunResultDTO:
        capacity = generation.generation_kwh
        warnings: List[str] = []
        excluded: List[ExcludedSubscriberDTO] = []

        eligible: Dict[int, Subscription] = {}
        for subscription in subscriptions:
            if subscription.weight is None or subscription.weight <= 0:
                logger.warning(
                    f"Subscription {subscription.id} of customer {subscription.customer_id} "
                    f"excluded from plant {command.plant_id} {command.month}: weight={subscription.weight}"
                )
                excluded.append(
                    ExcludedSubscriberDTO(
                        subscription_id=subscription.id,
                        customer_id=subscription.customer_id,
                        reason="zero or missing weight",
                    )
                )
            else:
                eligible[subscription.id] = subscription

        shares: List[Share] = []
        if eligible:
            shares = compute_shares(capacity, [(sid, sub.weight) for sid, sub in eligible.items()])
        else:
            message = f"No active subscribers with weight for plant {command.plant_id} in {command.month}"
            logger.warning(message)
            warnings.append(message)

        grouped: Dict[str, List[Share]] = defaultdict(list)
        for share in shares:
            grouped[eligible[share.key].customer_id].append(share)
        # A customer holding several subscriptions on the plant gets one row
        shares_by_customer: Dict[str, Share] = {
            customer_id: combine_shares(customer_shares)
            for customer_id, customer_shares in grouped.items()
        }

        previous_by_customer: Dict[str, List[Allocation]] = defaultdict(list)
        for allocation in previous:
            previous_by_customer[allocation.customer_id].append(allocation)

        customers = sorted(set(shares_by_customer) | set(previous_by_customer))
        progress = BatchProgress(total=len(customers), cancel_event=cancel_event)
        created: List[AllocationDTO] = []
        superseded_count = 0

        logger.info(
            f"Allocation run {run_id}: plant {command.plant_id}, month {command.month}, "
            f"capacity {capacity} kWh, {len(customers)} customers"
        )

        for customer_id in customers:
            if progress.should_stop():
                logger.warning(f"Allocation run {run_id} cancelled after {progress.succeeded} customers")
                break

            customer_share = shares_by_customer.get(customer_id)
            try:
                allocations, superseded = await self._allocate_customer(
                    run_id, command, generation, customer_id, customer_share,
                    {a.id for a in previous_by_customer.get(customer_id, [])},
                )
                created.extend(AllocationDTO.from_entity(a) for a in allocations)
                superseded_count += superseded
                progress.record_success()
            except Exception as e:
                code = e.code if isinstance(e, EnergyLedgerError) else "ALLOCATION_FAILED"
                reason = e.message if isinstance(e, EnergyLedgerError) else str(e)
                logger.error(
                    f"Allocation run {run_id}: customer {customer_id} failed ({code}): {reason}"
                )
                progress.record_failure(customer_id, code, reason)
                await self._record_pending(run_id, command, generation, customer_id, customer_share)

        execution_time_ms = int((time.time() - start_time) * 1000)
        total_allocated = sum((share.allocated_kwh for share in shares), ZERO)

        logger.info(
            f"Allocation run {run_id} finished: {progress.summary}, status={progress.status.value}, "
            f"{execution_time_ms}ms"
        )

        return AllocationRunResultDTO(
            run_id=run_id,
            plant_id=command.plant_id,
            month=command.month,
            generation_kwh=capacity,
            total_allocated_kwh=total_allocated,
            allocations=created,
            excluded=excluded,
            warnings=warnings,
            superseded_count=superseded_count,
            total_customers=progress.total,
            succeeded=progress.succeeded,
            failed=progress.failed,
            failures=progress.failures,
            status=progress.status,
            error_code=progress.error_code,
            summary=progress.summary,
            cancelled=progress.cancelled,
            execution_time_ms=execution_time_ms,
        )

    async def _allocate_customer(
        self,
        run_id: str,
        command: RunAllocationCommandDTO,
        generation: MonthlyGeneration,
        customer_id: str,
        share: Optional[Share],
        previous_ids: Set[int],
    ):
        async with self.locks.hold(customer_lock_key(customer_id)):
            async with self.uow_factory() as uow:
                posting = CreditPostingService.from_uow(uow, self.credit_validity_months)
                now = datetime.utcnow()
                previous = [
                    allocation
                    for allocation in await uow.allocations.list_by_plant_month(command.plant_id, command.month)
                    if allocation.id in previous_ids
                ]

                for old in previous:
                    if old.status == AllocationStatus.ALLOCATED:
                        await posting.reverse(
                            customer_id,
                            old.month,
                            old.allocated_kwh,
                            description=f"Compensation of allocation {old.id} superseded by run {run_id}",
                            reference_type="allocation",
                            reference_id=str(old.id),
                            idempotency_key=f"allocation:{old.id}:compensation",
                        )
                    old.status = AllocationStatus.SUPERSEDED
                    old.superseded_at = now
                    await uow.allocations.update(old)
                    await uow.events.create(
                        LedgerEvent(
                            event_type=LedgerEventType.ALLOCATION_SUPERSEDED,
                            customer_id=customer_id,
                            payload_json=json.dumps(
                                {
                                    "allocation_id": old.id,
                                    "plant_id": old.plant_id,
                                    "month": old.month,
                                    "allocated_kwh": str(old.allocated_kwh),
                                    "superseded_by_run": run_id,
                                }
                            ),
                        )
                    )

                allocations = []
                if share is not None:
                    allocation = await uow.allocations.create(
                        self._new_allocation(
                            run_id, command, generation, customer_id, share, AllocationStatus.ALLOCATED
                        )
                    )
                    if share.allocated_kwh > 0:
                        await posting.accumulate(
                            customer_id,
                            command.month,
                            share.allocated_kwh,
                            transaction_type=TransactionType.ALLOCATION,
                            description=(
                                f"Plant {command.plant_id} allocation for {command.month} "
                                f"({share.percentage}%)"
                            ),
                            reference_type="allocation",
                            reference_id=str(allocation.id),
                            idempotency_key=f"allocation:{allocation.id}",
                        )
                    await uow.events.create(
                        LedgerEvent(
                            event_type=LedgerEventType.ALLOCATION_CREATED,
                            customer_id=customer_id,
                            payload_json=json.dumps(
                                {
                                    "allocation_id": allocation.id,
                                    "run_id": run_id,
                                    "plant_id": command.plant_id,
                                    "month": command.month,
                                    "allocated_kwh": str(share.allocated_kwh),
                                    "allocation_percentage": str(share.percentage),
                                }
                            ),
                        )
                    )
                    allocations.append(allocation)

                await uow.commit()
                return allocations, len(previous)

    @staticmethod
    def _new_allocation(
        run_id: str,
        command: RunAllocationCommandDTO,
        generation: MonthlyGeneration,
        customer_id: str,
        share: Share,
        status: AllocationStatus,
    ) -> Allocation:
        return Allocation(
            run_id=run_id,
            plant_id=command.plant_id,
            subscription_id=share.key,
            customer_id=customer_id,
            month=command.month,
            allocated_kwh=share.allocated_kwh,
            allocation_percentage=share.percentage,
            generation_kwh=generation.generation_kwh,
            status=status,
        )

    async def _record_pending(
        self,
        run_id: str,
        command: RunAllocationCommandDTO,
        generation: MonthlyGeneration,
        customer_id: str,
        share: Optional[Share],
    ) -> None:
        if share is None:
            return
        try:
            async with self.uow_factory() as uow:
                await uow.allocations.create(
                    self._new_allocation(
                        run_id, command, generation, customer_id, share, AllocationStatus.PENDING_ALLOCATION
                    )
                )
                await uow.commit()
        except Exception as e:
            logger.error(
                f"Allocation run {run_id}: could not record pending allocation for "
                f"customer {customer_id}: {e}"
            )
