"""Monthly Energy Allocation Background Worker

Allocates the previous month's generation of every plant to its
subscribers. Can be run as a standalone script or integrated with a
scheduler.
"""

import asyncio
import logging
import time
from datetime import date, datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from solar_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWorkFactory
from solar_ledger.app.use_cases.allocation import (
    RunAllocation,
    RunAllocationCommandDTO,
    MonthlyAllocationSummaryDTO,
)
from solar_ledger.domain.calculations import previous_month

logger = logging.getLogger(__name__)


class MonthlyAllocationWorker:
    """
    Background worker for monthly energy allocation

    Features:
    - Runs at the start of each month for the month that just closed
    - One allocation run per plant that is not inactive
    - Idempotent: plants already allocated for the month are skipped
    - Stops between customers when shut down

    Usage:
        # Run once for the previous month
        worker = MonthlyAllocationWorker()
        result = await worker.run_once()

        # Run once for a specific month
        result = await worker.run_once(month="2024-01")

        # Run continuously (checks daily if a new month started)
        await worker.run_forever()
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        credit_validity_months: Optional[int] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            credit_validity_months: Bucket validity (defaults to ApplicationConfig.CREDIT_VALIDITY_MONTHS)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.credit_validity_months = credit_validity_months or ApplicationConfig.CREDIT_VALIDITY_MONTHS

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.uow_factory = SqlAlchemyUnitOfWorkFactory(self.async_session_factory)
        self.cancel_event = asyncio.Event()

        logger.info("MonthlyAllocationWorker initialized")

    async def run_once(
        self,
        month: Optional[str] = None,
        plant_ids: Optional[List[int]] = None,
        rerun: bool = False,
    ) -> MonthlyAllocationSummaryDTO:
        """
        Allocate every plant for one month

        Args:
            month: Month to allocate (YYYY-MM, defaults to previous month)
            plant_ids: Restrict to these plants
            rerun: Supersede existing allocations instead of skipping them

        Returns:
            MonthlyAllocationSummaryDTO with one run summary per allocated plant
        """
        start_time = time.time()
        month = month or previous_month(date.today())

        if plant_ids is None:
            async with self.uow_factory() as uow:
                plant_ids = [plant.id for plant in await uow.plants.list_allocatable()]

        logger.info(f"Starting monthly allocation of {len(plant_ids)} plants for {month}")

        use_case = RunAllocation(self.uow_factory, credit_validity_months=self.credit_validity_months)
        runs = []
        skipped = 0
        failed = 0

        for plant_id in plant_ids:
            if self.cancel_event.is_set():
                logger.warning(f"Monthly allocation for {month} stopped before plant {plant_id}")
                break

            result = await use_case.execute(
                RunAllocationCommandDTO(plant_id=plant_id, month=month, rerun=rerun),
                cancel_event=self.cancel_event,
            )

            if result.is_err():
                if result.error.code == "DUPLICATE_ALLOCATION":
                    logger.info(f"Plant {plant_id} already allocated for {month}, skipping")
                    skipped += 1
                else:
                    logger.error(
                        f"Allocation of plant {plant_id} for {month} failed "
                        f"({result.error.code}): {result.error.message}"
                    )
                    failed += 1
                continue

            run = result.value
            runs.append(run)
            if run.failed:
                logger.warning(
                    f"Plant {plant_id} {month}: {run.summary}, failed customers: "
                    f"{', '.join(f.customer_id for f in run.failures)}"
                )

        execution_time_ms = int((time.time() - start_time) * 1000)

        summary = MonthlyAllocationSummaryDTO(
            month=month,
            total_plants=len(plant_ids),
            allocated_plants=len(runs),
            skipped_plants=skipped,
            failed_plants=failed,
            runs=runs,
            execution_time_ms=execution_time_ms,
        )

        logger.info(
            f"Monthly allocation for {month} complete: "
            f"{len(runs)}/{len(plant_ids)} allocated, {skipped} skipped, {failed} failed, "
            f"{execution_time_ms}ms"
        )

        return summary

    async def run_forever(self, check_interval_seconds: int = 86400):
        """
        Run allocation continuously, checking daily if a new month started

        Args:
            check_interval_seconds: Seconds between checks (default: 24 hours)
        """
        logger.info(
            f"Starting continuous monthly allocation with {check_interval_seconds}s interval"
        )

        last_processed_month = None

        while not self.cancel_event.is_set():
            try:
                today = datetime.utcnow()
                current_month = (today.year, today.month)

                # Previous month is allocated during the first days of the next one
                if today.day <= 3 and last_processed_month != current_month:
                    result = await self.run_once()
                    last_processed_month = current_month
                    logger.info(
                        f"Processed month allocation: "
                        f"{result.allocated_plants} plants allocated"
                    )
                else:
                    logger.debug("Skipping allocation check - not first 3 days or already processed")

            except Exception as e:
                logger.error(f"Allocation cycle failed: {e}")

            await asyncio.sleep(check_interval_seconds)

    async def shutdown(self):
        """Stop pending work and cleanup resources"""
        self.cancel_event.set()
        await self.engine.dispose()
        logger.info("MonthlyAllocationWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run for previous month
        python -m solar_ledger.worker.monthly_allocation

        # Run for specific month and plants
        python -m solar_ledger.worker.monthly_allocation --month 2024-01 --plant 1 --plant 2

        # Run continuously
        python -m solar_ledger.worker.monthly_allocation --continuous
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Monthly Energy Allocation Worker")
    parser.add_argument("--month", type=str, help="Month to allocate (YYYY-MM)")
    parser.add_argument("--plant", type=int, action="append", dest="plants", help="Plant ID (repeatable)")
    parser.add_argument("--rerun", action="store_true", help="Supersede existing allocations")
    parser.add_argument(
        "--continuous", action="store_true", help="Run continuously"
    )
    args = parser.parse_args()

    if not ApplicationConfig.MONTHLY_ALLOCATION_ENABLED:
        logger.info("Monthly allocation is disabled, exiting")
        return

    worker = MonthlyAllocationWorker()

    try:
        if args.continuous:
            await worker.run_forever()
        else:
            result = await worker.run_once(month=args.month, plant_ids=args.plants, rerun=args.rerun)
            print(f"Allocation complete for {result.month}:")
            print(f"  Total plants: {result.total_plants}")
            print(f"  Allocated: {result.allocated_plants}")
            print(f"  Skipped (already allocated): {result.skipped_plants}")
            print(f"  Failed: {result.failed_plants}")
            for run in result.runs:
                print(f"  Plant {run.plant_id}: {run.total_allocated_kwh} kWh, {run.summary}")
            print(f"  Execution time: {result.execution_time_ms}ms")
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
