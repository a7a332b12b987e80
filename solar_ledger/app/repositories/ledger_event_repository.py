"""Ledger Event Repository Interface

Defines the contract for the event outbox.
"""

from abc import ABC, abstractmethod
from typing import List
from solar_ledger.domain.ledger_event import LedgerEvent


class LedgerEventRepository(ABC):
    """
    Repository interface for the LedgerEvent outbox

    Events are appended inside the mutating transaction and marked once delivered.
    """

    @abstractmethod
    async def create(self, event: LedgerEvent) -> LedgerEvent:
        pass

    @abstractmethod
    async def list_pending(self, limit: int = 100, max_attempts: int = 10) -> List[LedgerEvent]:
        """
        Retrieve undelivered events

        Args:
            limit: Maximum number of events
            max_attempts: Events that failed this many times are skipped

        Returns:
            Undelivered events, oldest first
        """
        pass

    @abstractmethod
    async def mark_delivered(self, event: LedgerEvent) -> None:
        pass

    @abstractmethod
    async def mark_failed(self, event: LedgerEvent) -> None:
        pass
