"""Credit Expiration Background Worker

Periodically retires credit held in buckets past their expiration date
and warns about credit that expires soon.
"""

import asyncio
import logging
from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from solar_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWorkFactory
from solar_ledger.app.use_cases.expiration import (
    ExpirationUrgency,
    ListExpiringWithin,
    SweepExpirations,
    SweepResultDTO,
)

logger = logging.getLogger(__name__)


class ExpirationSweeperWorker:
    """
    Background worker for credit expiration

    Features:
    - Zeroes expired buckets with one expiration transaction each
    - Emits a credits.expired event per bucket through the outbox
    - Logs credit expiring within the shortest warning window
    - Safe to run repeatedly (already swept buckets hold nothing)

    Usage:
        worker = ExpirationSweeperWorker()
        result = await worker.run_once()

        await worker.run_forever(interval_seconds=21600)
    """

    def __init__(self, db_uri: Optional[str] = None):
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.uow_factory = SqlAlchemyUnitOfWorkFactory(self.async_session_factory)
        self.cancel_event = asyncio.Event()

        logger.info("ExpirationSweeperWorker initialized")

    async def run_once(self, as_of_date: Optional[date] = None) -> SweepResultDTO:
        """
        Sweep expired credit once

        Args:
            as_of_date: Reference date (defaults to today)

        Returns:
            SweepResultDTO with the expired buckets
        """
        use_case = SweepExpirations(self.uow_factory)
        result = await use_case.execute(as_of_date=as_of_date, cancel_event=self.cancel_event)

        if result.is_err():
            logger.error(f"Expiration sweep failed: {result.error.message}")
            raise RuntimeError(f"Expiration sweep failed: {result.error.message}")

        response = result.value
        for failure in response.failures:
            logger.error(f"  - Customer {failure.customer_id}: {failure.code} {failure.reason}")

        await self._warn_expiring(as_of_date)
        return response

    async def _warn_expiring(self, as_of_date: Optional[date]) -> None:
        warning_days = ApplicationConfig.EXPIRATION_WARNING_DAYS
        async with self.uow_factory() as uow:
            result = await ListExpiringWithin(uow.balances, warning_days=warning_days).execute(
                min(warning_days), as_of_date
            )
        if result.is_err():
            return
        for item in result.value.items:
            if item.urgency == ExpirationUrgency.CRITICAL:
                logger.warning(
                    f"Customer {item.customer_id}: {item.balance_kwh} kWh from {item.month} "
                    f"expire in {item.days_to_expire} days"
                )

    async def run_forever(self, interval_seconds: int = 21600):
        """
        Run the sweep continuously at specified interval

        Args:
            interval_seconds: Seconds between sweeps (default: 6 hours)
        """
        logger.info(f"Starting continuous expiration sweep with {interval_seconds}s interval")

        while not self.cancel_event.is_set():
            try:
                result = await self.run_once()
                logger.info(
                    f"Sweep cycle complete. Expired {result.buckets_expired} buckets "
                    f"({result.total_expired_kwh} kWh), {result.summary}"
                )
            except Exception as e:
                logger.error(f"Sweep cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Stop pending work and cleanup resources"""
        self.cancel_event.set()
        await self.engine.dispose()
        logger.info("ExpirationSweeperWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m solar_ledger.worker.expiration_sweeper --once

        # Run once as of a given date
        python -m solar_ledger.worker.expiration_sweeper --once --as-of 2029-02-01

        # Run continuously
        python -m solar_ledger.worker.expiration_sweeper --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Credit Expiration Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument("--as-of", type=date.fromisoformat, dest="as_of", help="Reference date (YYYY-MM-DD)")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.EXPIRATION_SWEEP_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    if not ApplicationConfig.EXPIRATION_SWEEP_ENABLED:
        logger.info("Expiration sweep is disabled, exiting")
        return

    worker = ExpirationSweeperWorker()

    try:
        if args.once:
            result = await worker.run_once(as_of_date=args.as_of)
            print(f"Expiration sweep complete as of {result.as_of_date}:")
            print(f"  Buckets expired: {result.buckets_expired}")
            print(f"  Credit expired: {result.total_expired_kwh} kWh")
            print(f"  Customers: {result.summary}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
