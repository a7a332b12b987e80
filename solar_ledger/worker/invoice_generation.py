"""Invoice Generation Background Worker

Generates the invoices of the month that just closed and moves unpaid
invoices past their due date to overdue.
"""

import asyncio
import logging
from datetime import date
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from solar_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWorkFactory
from solar_ledger.app.use_cases.billing import (
    GenerateInvoicesForMonth,
    InvoiceBatchResultDTO,
    MarkOverdueInvoices,
    OverdueResultDTO,
)
from solar_ledger.domain.calculations import previous_month

logger = logging.getLogger(__name__)


class InvoiceGenerationWorker:
    """
    Background worker for monthly invoicing

    Features:
    - Invoices every customer allocated in the month
    - Idempotent: existing invoices are returned unchanged
    - Marks pending invoices past due as overdue

    Usage:
        worker = InvoiceGenerationWorker()
        invoices, overdue = await worker.run_once()

        invoices, overdue = await worker.run_once(month="2024-01")
    """

    def __init__(self, db_uri: Optional[str] = None):
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.uow_factory = SqlAlchemyUnitOfWorkFactory(self.async_session_factory)
        self.cancel_event = asyncio.Event()

        logger.info("InvoiceGenerationWorker initialized")

    async def run_once(
        self, month: Optional[str] = None, as_of_date: Optional[date] = None
    ) -> Tuple[InvoiceBatchResultDTO, OverdueResultDTO]:
        """
        Generate a month's invoices and flag overdue ones

        Args:
            month: Billed month (YYYY-MM, defaults to previous month)
            as_of_date: Reference date for overdue detection (defaults to today)

        Returns:
            Tuple of (invoice batch summary, overdue summary)
        """
        month = month or previous_month(as_of_date or date.today())

        generate = GenerateInvoicesForMonth(
            self.uow_factory,
            unit_price=ApplicationConfig.UNIT_PRICE_PER_KWH,
            invoice_due_days=ApplicationConfig.INVOICE_DUE_DAYS,
        )
        batch_result = await generate.execute(month, cancel_event=self.cancel_event)
        if batch_result.is_err():
            logger.error(f"Invoice generation for {month} failed: {batch_result.error.message}")
            raise RuntimeError(f"Invoice generation failed: {batch_result.error.message}")

        async with self.uow_factory() as uow:
            overdue_result = await MarkOverdueInvoices(uow, uow.invoices).execute(as_of_date)
        if overdue_result.is_err():
            logger.error(f"Overdue detection failed: {overdue_result.error.message}")
            raise RuntimeError(f"Overdue detection failed: {overdue_result.error.message}")

        return batch_result.value, overdue_result.value

    async def run_forever(self, interval_seconds: int = 86400):
        logger.info(f"Starting continuous invoice generation with {interval_seconds}s interval")

        while not self.cancel_event.is_set():
            try:
                batch, overdue = await self.run_once()
                logger.info(
                    f"Invoice cycle complete for {batch.month}: {batch.summary}, "
                    f"{overdue.marked_overdue} overdue"
                )
            except Exception as e:
                logger.error(f"Invoice cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Stop pending work and cleanup resources"""
        self.cancel_event.set()
        await self.engine.dispose()
        logger.info("InvoiceGenerationWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Invoice the previous month
        python -m solar_ledger.worker.invoice_generation --once

        # Invoice a specific month
        python -m solar_ledger.worker.invoice_generation --once --month 2024-01

        # Run continuously (default: daily)
        python -m solar_ledger.worker.invoice_generation
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Invoice Generation Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument("--month", type=str, help="Billed month (YYYY-MM)")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.INVOICE_GENERATION_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    if not ApplicationConfig.INVOICE_GENERATION_ENABLED:
        logger.info("Invoice generation is disabled, exiting")
        return

    worker = InvoiceGenerationWorker()

    try:
        if args.once:
            batch, overdue = await worker.run_once(month=args.month)
            print(f"Invoice generation complete for {batch.month}:")
            print(f"  Customers: {batch.summary}")
            for failure in batch.failures:
                print(f"  - {failure.customer_id}: {failure.code} {failure.reason}")
            print(f"  Overdue invoices: {overdue.marked_overdue}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
