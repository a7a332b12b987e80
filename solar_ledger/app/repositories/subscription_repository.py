"""Subscription Repository Interface

Defines the contract for subscription persistence operations.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from solar_ledger.domain.subscription import Subscription


class SubscriptionRepository(ABC):
    """
    Repository interface for Subscription persistence

    Provides subscriber weights and discount policies for allocation and billing.
    """

    @abstractmethod
    async def get_active_for_plant(self, plant_id: int) -> List[Subscription]:
        """
        Retrieve active subscriptions taking part in a plant's allocation

        Includes subscriptions bound to the plant and unbound subscriptions.

        Args:
            plant_id: Plant ID

        Returns:
            Active subscriptions ordered by ID
        """
        pass

    @abstractmethod
    async def get_by_customer_id(self, customer_id: str) -> Optional[Subscription]:
        """
        Retrieve the most recent subscription of a customer

        Args:
            customer_id: Customer identifier

        Returns:
            Subscription if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def create(self, subscription: Subscription) -> Subscription:
        pass
