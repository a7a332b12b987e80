"""ConfirmInvoicePayment Use Case

Marks an invoice paid and consumes the customer's credits for the
billed energy in the same transaction.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from libs.result import Result, Return, Error
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.services.locks import KeyedLockRegistry, customer_lock_key, ledger_locks
from solar_ledger.app.repositories.invoice_repository import InvoiceRepository
from solar_ledger.app.repositories.ledger_event_repository import LedgerEventRepository
from solar_ledger.domain.credit_transaction import CreditTransaction
from solar_ledger.domain.exceptions import EnergyLedgerError, StaleInvoice
from solar_ledger.domain.invoice import Invoice, InvoiceStatus
from solar_ledger.domain.ledger_event import LedgerEvent, LedgerEventType
from .dtos import ConfirmPaymentCommandDTO, InvoicePaymentResponseDTO, InvoiceResponseDTO

logger = logging.getLogger(__name__)


class ConfirmInvoicePayment:
    """
    Use Case: Confirm payment of an invoice

    Business Rules:
    1. Pending and overdue invoices can be paid
    2. Paying consumes credits (FIFO) for the invoiced energy, or the
       amount given in the command
    3. Paying twice returns the paid invoice; the consumption is keyed
       by invoice number and never repeated
    4. Cancelled invoices cannot be paid (STALE_INVOICE)
    5. Insufficient credits reject the payment (INSUFFICIENT_BALANCE)
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        event_repo: LedgerEventRepository,
        posting: CreditPostingService,
        locks: KeyedLockRegistry = ledger_locks,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.event_repo = event_repo
        self.posting = posting
        self.locks = locks

    async def execute(self, command: ConfirmPaymentCommandDTO) -> Result[InvoicePaymentResponseDTO]:
        async with self.locks.hold(customer_lock_key(command.customer_id)):
            try:
                invoice = await self.invoice_repo.get_by_customer_month(
                    command.customer_id, command.month, for_update=True
                )
                if not invoice:
                    return Return.err(
                        Error(
                            code="INVOICE_NOT_FOUND",
                            message=f"No invoice for customer {command.customer_id} in {command.month}",
                        )
                    )

                consumption_key = f"invoice:{invoice.invoice_number}:consumption"

                if invoice.status == InvoiceStatus.PAID:
                    logger.info(f"Invoice {invoice.invoice_number} already paid")
                    return Return.ok(await self._paid_response(invoice, consumption_key))

                if invoice.status == InvoiceStatus.CANCELLED:
                    raise StaleInvoice(
                        f"Invoice {invoice.invoice_number} is cancelled",
                        reason="status=cancelled",
                    )

                amount = (
                    command.consumed_kwh
                    if command.consumed_kwh is not None
                    else invoice.energy_allocated_kwh
                )

                transaction = None
                if amount > 0:
                    transaction = await self.posting.consume(
                        invoice.customer_id,
                        amount,
                        as_of=command.as_of_date,
                        description=f"Consumption billed by invoice {invoice.invoice_number}",
                        reference_type="invoice",
                        reference_id=invoice.invoice_number,
                        idempotency_key=consumption_key,
                    )

                invoice.status = InvoiceStatus.PAID
                invoice.paid_at = datetime.utcnow()
                invoice = await self.invoice_repo.update(invoice)

                await self.event_repo.create(
                    LedgerEvent(
                        event_type=LedgerEventType.INVOICE_PAID,
                        customer_id=invoice.customer_id,
                        payload_json=json.dumps(
                            {
                                "invoice_number": invoice.invoice_number,
                                "month": invoice.month,
                                "final_amount": str(invoice.final_amount),
                                "consumed_kwh": str(amount),
                            }
                        ),
                    )
                )

                await self.uow.commit()
                logger.info(
                    f"Invoice {invoice.invoice_number} paid, {amount} kWh consumed "
                    f"for customer {invoice.customer_id}"
                )
                return Return.ok(self._response(invoice, transaction, amount))

            except EnergyLedgerError as e:
                await self.uow.rollback()
                logger.info(f"Payment of {command.customer_id} {command.month} rejected: {e.message}")
                return Return.err(e.to_error())
            except Exception as e:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="INVOICE_PAYMENT_FAILED",
                        message="Failed to confirm invoice payment",
                        reason=str(e),
                    )
                )

    async def _paid_response(self, invoice: Invoice, consumption_key: str) -> InvoicePaymentResponseDTO:
        transaction = await self.posting.transaction_repo.get_by_idempotency_key(consumption_key)
        amount = -transaction.amount_kwh if transaction else Decimal("0")
        return self._response(invoice, transaction, amount)

    @staticmethod
    def _response(invoice: Invoice, transaction: CreditTransaction, amount: Decimal) -> InvoicePaymentResponseDTO:
        return InvoicePaymentResponseDTO(
            invoice=InvoiceResponseDTO.from_entity(invoice),
            consumed_kwh=amount,
            consumption_transaction_id=transaction.id if transaction else None,
        )
