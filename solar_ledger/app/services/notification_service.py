"""Notification Service Interface

Defines the contract for delivering ledger events to the external
notification and audit collaborator.
"""

from abc import ABC, abstractmethod
from solar_ledger.domain.ledger_event import LedgerEvent


class NotificationService(ABC):
    """
    Abstract notification service for ledger events

    Implementations can deliver events via:
    - Logging
    - Webhook (HTTP POST)
    - Message broker
    """

    @abstractmethod
    async def send_event(self, event: LedgerEvent) -> bool:
        """
        Deliver a ledger event

        Args:
            event: LedgerEvent taken from the outbox

        Returns:
            True if the event was delivered, False otherwise
        """
        pass
