import logging
from datetime import date
from typing import Optional
from libs.result import Result, Return, Error
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.app.repositories.invoice_repository import InvoiceRepository
from solar_ledger.domain.invoice import InvoiceStatus
from .dtos import OverdueResultDTO

logger = logging.getLogger(__name__)


class MarkOverdueInvoices:
    """Move pending invoices whose due date has passed to overdue"""

    def __init__(self, uow: UnitOfWork, invoice_repo: InvoiceRepository):
        self.uow = uow
        self.invoice_repo = invoice_repo

    async def execute(self, as_of_date: Optional[date] = None) -> Result[OverdueResultDTO]:
        as_of = as_of_date or date.today()
        try:
            invoices = await self.invoice_repo.list_pending_due_before(as_of)
            for invoice in invoices:
                invoice.status = InvoiceStatus.OVERDUE
                await self.invoice_repo.update(invoice)
            await self.uow.commit()

            if invoices:
                logger.info(f"{len(invoices)} invoices overdue as of {as_of.isoformat()}")

            return Return.ok(
                OverdueResultDTO(
                    as_of_date=as_of,
                    marked_overdue=len(invoices),
                    invoice_numbers=[invoice.invoice_number for invoice in invoices],
                )
            )
        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="MARK_OVERDUE_FAILED",
                    message="Failed to mark overdue invoices",
                    reason=str(e),
                )
            )
