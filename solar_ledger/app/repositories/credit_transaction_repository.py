"""Credit Transaction Repository Interface

Defines the contract for credit transaction persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple
from solar_ledger.domain.credit_transaction import CreditTransaction, TransactionType


class CreditTransactionRepository(ABC):
    """
    Repository interface for CreditTransaction persistence

    Transactions are immutable and append-only for audit trail.
    Idempotency is enforced via unique idempotency_key.
    """

    @abstractmethod
    async def create(self, transaction: CreditTransaction) -> CreditTransaction:
        """
        Create a new credit transaction

        Args:
            transaction: CreditTransaction entity to persist

        Returns:
            Created CreditTransaction with generated ID

        Raises:
            IntegrityError: If idempotency_key already exists (duplicate transaction)
        """
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[CreditTransaction]:
        """
        Retrieve transaction by idempotency key

        Used to check if transaction already exists (idempotency check).

        Args:
            idempotency_key: Unique idempotency key

        Returns:
            CreditTransaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_customer_id(
        self,
        customer_id: str,
        transaction_type: Optional[TransactionType] = None,
        month: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[CreditTransaction], int]:
        """
        Retrieve a filtered page of a customer's transactions

        Args:
            customer_id: Customer identifier
            transaction_type: Optional filter by type
            month: Optional filter by primary bucket month
            created_from: Optional lower bound on created_at (inclusive)
            created_to: Optional upper bound on created_at (inclusive)
            limit: Page size
            offset: Page offset

        Returns:
            Tuple of (transactions newest first, total matching count)
        """
        pass

    @abstractmethod
    async def list_for_replay(self, customer_id: str) -> List[CreditTransaction]:
        """
        Retrieve every transaction of a customer in creation order

        Args:
            customer_id: Customer identifier

        Returns:
            Transactions ordered by created_at, then id
        """
        pass
