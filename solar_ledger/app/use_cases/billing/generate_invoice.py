"""GenerateInvoice Use Case

Creates a customer's monthly invoice from the energy allocated to it.
Generation does not touch credits; consumption happens on payment.
"""

import json
import logging
from decimal import Decimal
from libs.result import Result, Return, Error
from solar_ledger.app.services.locks import KeyedLockRegistry, customer_lock_key, ledger_locks
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.app.repositories.allocation_repository import AllocationRepository
from solar_ledger.app.repositories.subscription_repository import SubscriptionRepository
from solar_ledger.app.repositories.invoice_repository import InvoiceRepository
from solar_ledger.app.repositories.ledger_event_repository import LedgerEventRepository
from solar_ledger.domain.allocation import AllocationStatus
from solar_ledger.domain.calculations import compute_invoice_amounts, invoice_due_date, quantize_kwh
from solar_ledger.domain.exceptions import StaleInvoice
from solar_ledger.domain.invoice import Invoice, InvoiceStatus
from solar_ledger.domain.ledger_event import LedgerEvent, LedgerEventType
from .dtos import GenerateInvoiceCommandDTO, InvoiceResponseDTO

logger = logging.getLogger(__name__)


class GenerateInvoice:
    """
    Use Case: Generate monthly invoice

    Business Rules:
    1. One invoice per customer month; an existing invoice is returned
       unchanged unless regenerate is requested
    2. energy = sum of the month's allocated (non-superseded) energy
    3. original = energy * unit_price, discount = original * pct / 100,
       final = original - discount, money rounded half-up to cents
    4. Regenerating recomputes a pending invoice; paid or cancelled
       invoices are immutable (STALE_INVOICE)
    5. Invoice number is auto-generated (INV-YYYY-NNNNNN)
    6. Due date is INVOICE_DUE_DAYS after the month closes

    Flow:
    1. Hold the customer lock shared with payment confirmation, load the
       existing invoice (row locked)
    2. Sum allocated energy and look up the subscriber discount
    3. Compute amounts
    4. Create or update invoice, queue invoice.generated event
    5. Commit transaction
    """

    def __init__(
        self,
        uow: UnitOfWork,
        allocation_repo: AllocationRepository,
        subscription_repo: SubscriptionRepository,
        invoice_repo: InvoiceRepository,
        event_repo: LedgerEventRepository,
        unit_price: Decimal,
        invoice_due_days: int = 10,
        locks: KeyedLockRegistry = ledger_locks,
    ):
        self.uow = uow
        self.allocation_repo = allocation_repo
        self.subscription_repo = subscription_repo
        self.invoice_repo = invoice_repo
        self.event_repo = event_repo
        self.unit_price = Decimal(str(unit_price))
        self.invoice_due_days = invoice_due_days
        self.locks = locks

    async def execute(self, command: GenerateInvoiceCommandDTO) -> Result[InvoiceResponseDTO]:
        """
        Execute invoice generation

        Args:
            command: GenerateInvoiceCommandDTO with customer_id, month, regenerate

        Returns:
            Result[InvoiceResponseDTO]: The created, recomputed or existing invoice
        """
        async with self.locks.hold(customer_lock_key(command.customer_id)):
            try:
                existing = await self.invoice_repo.get_by_customer_month(
                    command.customer_id, command.month, for_update=command.regenerate
                )

                if existing and not command.regenerate:
                    return Return.ok(InvoiceResponseDTO.from_entity(existing))

                if existing and existing.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
                    raise StaleInvoice(
                        f"Invoice {existing.invoice_number} is {existing.status.value} and cannot be regenerated",
                        reason=f"status={existing.status.value}",
                    )

                allocations = [
                    allocation
                    for allocation in await self.allocation_repo.list_by_customer_month(
                        command.customer_id, command.month
                    )
                    if allocation.status == AllocationStatus.ALLOCATED
                ]
                if not allocations:
                    return Return.err(
                        Error(
                            code="INVOICE_SOURCE_NOT_FOUND",
                            message=f"No allocation for customer {command.customer_id} in {command.month}",
                        )
                    )

                energy = quantize_kwh(sum((a.allocated_kwh for a in allocations), Decimal("0")))
                discount_percentage = await self._discount_for(command.customer_id, allocations[0].subscription_id)
                amounts = compute_invoice_amounts(energy, self.unit_price, discount_percentage)

                if existing:
                    existing.energy_allocated_kwh = energy
                    existing.unit_price = self.unit_price
                    existing.discount_percentage = discount_percentage
                    existing.original_amount = amounts.original_amount
                    existing.discount_amount = amounts.discount_amount
                    existing.final_amount = amounts.final_amount
                    existing.due_date = invoice_due_date(command.month, self.invoice_due_days)
                    invoice = await self.invoice_repo.update(existing)
                    logger.info(f"Invoice {invoice.invoice_number} regenerated: final={invoice.final_amount}")
                else:
                    invoice = await self.invoice_repo.create(
                        Invoice(
                            customer_id=command.customer_id,
                            month=command.month,
                            invoice_number=await self.invoice_repo.generate_invoice_number(),
                            status=InvoiceStatus.PENDING,
                            energy_allocated_kwh=energy,
                            unit_price=self.unit_price,
                            discount_percentage=discount_percentage,
                            original_amount=amounts.original_amount,
                            discount_amount=amounts.discount_amount,
                            final_amount=amounts.final_amount,
                            due_date=invoice_due_date(command.month, self.invoice_due_days),
                        )
                    )
                    logger.info(
                        f"Invoice {invoice.invoice_number} generated for customer {command.customer_id} "
                        f"{command.month}: energy={energy} kWh, final={invoice.final_amount}"
                    )

                await self.event_repo.create(
                    LedgerEvent(
                        event_type=LedgerEventType.INVOICE_GENERATED,
                        customer_id=command.customer_id,
                        payload_json=json.dumps(
                            {
                                "invoice_number": invoice.invoice_number,
                                "month": invoice.month,
                                "energy_allocated_kwh": str(invoice.energy_allocated_kwh),
                                "final_amount": str(invoice.final_amount),
                                "due_date": invoice.due_date.isoformat(),
                                "regenerated": existing is not None,
                            }
                        ),
                    )
                )

                await self.uow.commit()
                return Return.ok(InvoiceResponseDTO.from_entity(invoice))

            except StaleInvoice as e:
                await self.uow.rollback()
                return Return.err(e.to_error())
            except Exception as e:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="INVOICE_GENERATION_FAILED",
                        message="Failed to generate invoice",
                        reason=str(e),
                    )
                )

    async def _discount_for(self, customer_id: str, subscription_id) -> Decimal:
        subscription = None
        if subscription_id is not None:
            subscription = await self.subscription_repo.get_by_id(subscription_id)
        if subscription is None:
            subscription = await self.subscription_repo.get_by_customer_id(customer_id)
        if subscription is None:
            return Decimal("0")
        return Decimal(subscription.discount_percentage)
