"""Ledger Event Dispatcher Background Worker

Delivers events from the outbox to the notification collaborator, so no
ledger operation waits on the network.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from solar_ledger.adapter.services.notification_service import create_notification_service
from solar_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWorkFactory
from solar_ledger.app.services.notification_service import NotificationService
from solar_ledger.app.use_cases.events import DispatchEvents, DispatchResultDTO

logger = logging.getLogger(__name__)


class EventDispatcherWorker:
    """
    Background worker for outbox delivery

    Features:
    - Delivers pending events oldest first
    - Failed deliveries are retried on later passes up to
      EVENT_MAX_DELIVERY_ATTEMPTS
    - Logging channel always on, webhook when EVENT_WEBHOOK_URL is set

    Usage:
        worker = EventDispatcherWorker()
        result = await worker.run_once()

        await worker.run_forever(interval_seconds=30)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.notification_service = notification_service or create_notification_service(
            ApplicationConfig.EVENT_WEBHOOK_URL
        )

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )
        self.uow_factory = SqlAlchemyUnitOfWorkFactory(self.async_session_factory)
        self._stopped = False

        logger.info("EventDispatcherWorker initialized")

    async def run_once(self) -> DispatchResultDTO:
        """Deliver one batch of pending events"""
        async with self.uow_factory() as uow:
            use_case = DispatchEvents(
                uow=uow,
                event_repo=uow.events,
                notification_service=self.notification_service,
                batch_size=ApplicationConfig.EVENT_DISPATCH_BATCH_SIZE,
                max_attempts=ApplicationConfig.EVENT_MAX_DELIVERY_ATTEMPTS,
            )
            result = await use_case.execute()

        if result.is_err():
            logger.error(f"Event dispatch failed: {result.error.message}")
            raise RuntimeError(f"Event dispatch failed: {result.error.message}")

        return result.value

    async def run_forever(self, interval_seconds: int = 30):
        logger.info(f"Starting continuous event dispatch with {interval_seconds}s interval")

        while not self._stopped:
            try:
                result = await self.run_once()
                # Keep draining while full batches come back
                if result.pending >= ApplicationConfig.EVENT_DISPATCH_BATCH_SIZE and result.delivered:
                    continue
            except Exception as e:
                logger.error(f"Dispatch cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        self._stopped = True
        await self.engine.dispose()
        logger.info("EventDispatcherWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Deliver one batch
        python -m solar_ledger.worker.event_dispatcher --once

        # Run continuously
        python -m solar_ledger.worker.event_dispatcher --interval 10
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Ledger Event Dispatcher")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.EVENT_DISPATCH_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    worker = EventDispatcherWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print(f"Dispatch complete:")
            print(f"  Pending: {result.pending}")
            print(f"  Delivered: {result.delivered}")
            print(f"  Failed: {result.failed}")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
