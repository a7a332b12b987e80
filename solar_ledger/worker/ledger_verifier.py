"""Ledger Verification Background Worker

Periodically replays every customer's transaction log and compares it
with the stored buckets and ledger balance.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from solar_ledger.adapter.repositories.credit_ledger_repository import SqlAlchemyCreditLedgerRepository
from solar_ledger.adapter.repositories.credit_balance_repository import SqlAlchemyCreditBalanceRepository
from solar_ledger.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from solar_ledger.app.use_cases.ledger import VerifyLedger, VerificationResultDTO

logger = logging.getLogger(__name__)


class LedgerVerifierWorker:
    """
    Background worker for ledger verification

    Features:
    - Replays transactions and checks chain, arithmetic and bucket totals
    - Logs discrepancies for investigation
    - Can run once or continuously
    - Configurable interval (default: daily)

    Usage:
        # Run once
        worker = LedgerVerifierWorker()
        result = await worker.run_once()

        # Run continuously
        await worker.run_forever(interval_seconds=86400)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("LedgerVerifierWorker initialized")

    async def run_once(self, customer_id: Optional[str] = None) -> VerificationResultDTO:
        """
        Run verification once

        Args:
            customer_id: Verify one customer only

        Returns:
            VerificationResultDTO with verification results
        """
        if not ApplicationConfig.LEDGER_VERIFICATION_ENABLED:
            logger.info("Ledger verification is disabled, skipping")
            return VerificationResultDTO(
                total_ledgers_checked=0,
                discrepancies_found=0,
                discrepancies=[],
                verified_at=datetime.utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = VerifyLedger(
                ledger_repo=SqlAlchemyCreditLedgerRepository(session),
                balance_repo=SqlAlchemyCreditBalanceRepository(session),
                transaction_repo=SqlAlchemyCreditTransactionRepository(session),
            )

            result = await use_case.execute(customer_id)

            if result.is_err():
                logger.error(f"Verification failed: {result.error.message}")
                raise RuntimeError(f"Verification failed: {result.error.message}")

            response = result.value

            if response.discrepancies_found > 0:
                logger.error(
                    f"ALERT: {response.discrepancies_found} ledger discrepancies found!"
                )
                for d in response.discrepancies:
                    logger.error(
                        f"  - Customer {d.customer_id} [{d.kind}]: "
                        f"expected={d.expected}, actual={d.actual} ({d.detail})"
                    )

            return response

    async def run_forever(self, interval_seconds: int = 86400):
        """
        Run verification continuously at specified interval

        Args:
            interval_seconds: Seconds between runs (default: 24 hours)
        """
        logger.info(
            f"Starting continuous ledger verification with {interval_seconds}s interval"
        )

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Verification cycle complete. "
                    f"Checked {result.total_ledgers_checked} ledgers, "
                    f"found {result.discrepancies_found} discrepancies "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Verification cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("LedgerVerifierWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m solar_ledger.worker.ledger_verifier --once

        # Run continuously with custom interval (in seconds)
        python -m solar_ledger.worker.ledger_verifier --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Ledger Verification Worker")
    parser.add_argument(
        "--once", action="store_true", help="Run once and exit"
    )
    parser.add_argument("--customer", type=str, help="Verify one customer only")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.LEDGER_VERIFICATION_INTERVAL_SECONDS,
        help="Interval between runs in seconds (default: 86400 = 24 hours)"
    )
    args = parser.parse_args()

    worker = LedgerVerifierWorker()

    try:
        if args.once:
            result = await worker.run_once(customer_id=args.customer)
            print(f"Verification complete:")
            print(f"  Total ledgers checked: {result.total_ledgers_checked}")
            print(f"  Discrepancies found: {result.discrepancies_found}")
            print(f"  Execution time: {result.execution_time_ms}ms")
            if result.discrepancies:
                print("\nDiscrepancies:")
                for d in result.discrepancies:
                    print(f"  - Customer {d.customer_id} [{d.kind}]: {d.detail}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
