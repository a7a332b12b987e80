"""Invoice Repository Interface

Defines the contract for invoice persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional
from solar_ledger.domain.invoice import Invoice


class InvoiceRepository(ABC):
    """
    Repository interface for Invoice persistence

    One invoice per customer month.
    """

    @abstractmethod
    async def create(self, invoice: Invoice) -> Invoice:
        pass

    @abstractmethod
    async def get_by_customer_month(
        self, customer_id: str, month: str, for_update: bool = False
    ) -> Optional[Invoice]:
        """
        Retrieve the invoice of a customer month

        Args:
            customer_id: Customer identifier
            month: Billed month (YYYY-MM)
            for_update: If True, lock the row with SELECT FOR UPDATE

        Returns:
            Invoice if found, None otherwise
        """
        pass

    @abstractmethod
    async def update(self, invoice: Invoice) -> Invoice:
        pass

    @abstractmethod
    async def list_pending_due_before(self, as_of: date) -> List[Invoice]:
        """
        Retrieve pending invoices whose due date has passed

        Args:
            as_of: Reference date; due_date < as_of qualifies

        Returns:
            Pending invoices past due
        """
        pass

    @abstractmethod
    async def generate_invoice_number(self) -> str:
        """
        Generate a unique invoice number

        Returns:
            Invoice number (INV-YYYY-NNNNNN)
        """
        pass
