from libs.result import Result, Return, Error
from solar_ledger.app.repositories.invoice_repository import InvoiceRepository
from .dtos import InvoiceResponseDTO


class GetInvoice:
    def __init__(self, invoice_repo: InvoiceRepository):
        self.invoice_repo = invoice_repo

    async def execute(self, customer_id: str, month: str) -> Result[InvoiceResponseDTO]:
        invoice = await self.invoice_repo.get_by_customer_month(customer_id, month)
        if not invoice:
            return Return.err(
                Error(
                    code="INVOICE_NOT_FOUND",
                    message=f"No invoice for customer {customer_id} in {month}",
                )
            )
        return Return.ok(InvoiceResponseDTO.from_entity(invoice))
