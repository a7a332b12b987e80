"""Credit Balance Repository Interface

Defines the contract for monthly credit bucket persistence.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional
from solar_ledger.domain.credit_balance import CreditBalance


class CreditBalanceRepository(ABC):
    """
    Repository interface for CreditBalance persistence

    Buckets are only written while the customer's ledger row is locked.
    """

    @abstractmethod
    async def list_by_customer(self, customer_id: str) -> List[CreditBalance]:
        """
        Retrieve all buckets of a customer

        Args:
            customer_id: Customer identifier

        Returns:
            Buckets ordered by month, oldest first
        """
        pass

    @abstractmethod
    async def create(self, balance: CreditBalance) -> CreditBalance:
        pass

    @abstractmethod
    async def save(self, balance: CreditBalance) -> CreditBalance:
        pass

    @abstractmethod
    async def list_expired_with_balance(self, as_of: date) -> List[CreditBalance]:
        """
        Retrieve buckets past their expiration date that still hold credit

        Args:
            as_of: Reference date; buckets with expiration_date < as_of qualify

        Returns:
            Buckets ordered by customer and month
        """
        pass

    @abstractmethod
    async def list_expiring_between(self, start: date, end: date) -> List[CreditBalance]:
        """
        Retrieve buckets with credit expiring in [start, end]

        Args:
            start: First day of the window (inclusive)
            end: Last day of the window (inclusive)

        Returns:
            Buckets ordered by expiration date
        """
        pass

    @abstractmethod
    async def get_by_customer_month(self, customer_id: str, month: str) -> Optional[CreditBalance]:
        pass
