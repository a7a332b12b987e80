"""
List Transactions Use Case

Retrieves credit transaction history for a customer with filters and pagination.
"""
from datetime import datetime
from typing import Optional
from libs.result import Result, Return
from solar_ledger.app.repositories.credit_transaction_repository import CreditTransactionRepository
from solar_ledger.domain.credit_transaction import TransactionType
from .dtos import CreditTransactionResponseDTO, ListTransactionsResponseDTO


class ListTransactions:
    """
    Use case: View Credit Transactions

    Retrieves paginated transaction history for a customer.
    Transactions are ordered by created_at DESC (most recent first).
    """

    def __init__(self, transaction_repo: CreditTransactionRepository):
        """
        Initialize with transaction repository.

        Args:
            transaction_repo: CreditTransactionRepository instance
        """
        self.transaction_repo = transaction_repo

    async def execute(
        self,
        customer_id: str,
        transaction_type: Optional[TransactionType] = None,
        month: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Result[ListTransactionsResponseDTO]:
        """
        List transactions for a customer.

        Args:
            customer_id: Customer identifier
            transaction_type: Only this type
            month: Only transactions whose primary bucket is this month
            created_from: Created at or after
            created_to: Created at or before
            limit: Maximum number of transactions to return (default 20)
            offset: Number of transactions to skip (default 0)

        Returns:
            Result[ListTransactionsResponseDTO]: Paginated transaction list
        """
        transactions, total = await self.transaction_repo.get_by_customer_id(
            customer_id=customer_id,
            transaction_type=transaction_type,
            month=month,
            created_from=created_from,
            created_to=created_to,
            limit=limit,
            offset=offset,
        )

        return Return.ok(
            ListTransactionsResponseDTO(
                transactions=[CreditTransactionResponseDTO.from_entity(txn) for txn in transactions],
                total=total,
                limit=limit,
                offset=offset,
            )
        )
