"""DispatchEvents Use Case

Delivers pending ledger events from the outbox to the notification
collaborator.
"""

import logging
from datetime import datetime
from libs.result import Result, Return, Error
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.app.services.notification_service import NotificationService
from solar_ledger.app.repositories.ledger_event_repository import LedgerEventRepository
from .dtos import DispatchResultDTO

logger = logging.getLogger(__name__)


class DispatchEvents:
    """
    Use Case: Deliver outbox events

    Business Rules:
    1. Events are delivered oldest first, at most batch_size per pass
    2. A delivered event is never sent again
    3. A failed delivery increments delivery_attempts; events reaching
       max_attempts are no longer picked up
    4. Delivery outcome is committed once per pass
    """

    def __init__(
        self,
        uow: UnitOfWork,
        event_repo: LedgerEventRepository,
        notification_service: NotificationService,
        batch_size: int = 100,
        max_attempts: int = 10,
    ):
        self.uow = uow
        self.event_repo = event_repo
        self.notification_service = notification_service
        self.batch_size = batch_size
        self.max_attempts = max_attempts

    async def execute(self) -> Result[DispatchResultDTO]:
        try:
            events = await self.event_repo.list_pending(limit=self.batch_size, max_attempts=self.max_attempts)

            delivered = 0
            failed = 0
            for event in events:
                try:
                    sent = await self.notification_service.send_event(event)
                except Exception as e:
                    logger.error(f"Delivery of event {event.id} ({event.event_type.value}) raised: {e}")
                    sent = False

                if sent:
                    await self.event_repo.mark_delivered(event)
                    delivered += 1
                else:
                    await self.event_repo.mark_failed(event)
                    failed += 1
                    if event.delivery_attempts >= self.max_attempts:
                        logger.error(
                            f"Event {event.id} ({event.event_type.value}) abandoned after "
                            f"{event.delivery_attempts} attempts"
                        )

            await self.uow.commit()

            if events:
                logger.info(f"Dispatched {delivered} of {len(events)} events, {failed} failed")

            return Return.ok(
                DispatchResultDTO(
                    pending=len(events),
                    delivered=delivered,
                    failed=failed,
                    dispatched_at=datetime.utcnow(),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="EVENT_DISPATCH_FAILED",
                    message="Failed to dispatch ledger events",
                    reason=str(e),
                )
            )
