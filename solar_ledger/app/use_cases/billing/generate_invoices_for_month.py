"""GenerateInvoicesForMonth Use Case

Invoices every customer that received an allocation in a month.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional
from libs.result import Result, Return, Error
from solar_ledger.app.services.locks import KeyedLockRegistry, ledger_locks
from solar_ledger.app.services.unit_of_work import UnitOfWorkFactory
from solar_ledger.app.use_cases.batch import BatchProgress
from .dtos import GenerateInvoiceCommandDTO, InvoiceBatchResultDTO
from .generate_invoice import GenerateInvoice

logger = logging.getLogger(__name__)


class GenerateInvoicesForMonth:
    """
    Use Case: Generate the invoices of a month

    Business Rules:
    1. One GenerateInvoice per customer with allocated energy in the month
    2. Each customer runs in its own unit of work; failures are reported
       and do not stop the batch
    3. Re-running returns the existing invoices unchanged
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        unit_price: Decimal,
        invoice_due_days: int = 10,
        locks: KeyedLockRegistry = ledger_locks,
    ):
        self.uow_factory = uow_factory
        self.unit_price = unit_price
        self.invoice_due_days = invoice_due_days
        self.locks = locks

    async def execute(
        self,
        month: str,
        regenerate: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Result[InvoiceBatchResultDTO]:
        try:
            async with self.uow_factory() as uow:
                customers = await uow.allocations.list_customers_for_month(month)
        except Exception as e:
            return Return.err(
                Error(
                    code="INVOICE_GENERATION_FAILED",
                    message=f"Failed to list customers for {month}",
                    reason=str(e),
                )
            )

        progress = BatchProgress(total=len(customers), cancel_event=cancel_event)
        invoices = []

        for customer_id in customers:
            if progress.should_stop():
                logger.warning(f"Invoice generation for {month} cancelled after {progress.succeeded} customers")
                break

            async with self.uow_factory() as uow:
                use_case = GenerateInvoice(
                    uow=uow,
                    allocation_repo=uow.allocations,
                    subscription_repo=uow.subscriptions,
                    invoice_repo=uow.invoices,
                    event_repo=uow.events,
                    unit_price=self.unit_price,
                    invoice_due_days=self.invoice_due_days,
                    locks=self.locks,
                )
                result = await use_case.execute(
                    GenerateInvoiceCommandDTO(customer_id=customer_id, month=month, regenerate=regenerate)
                )

            if result.is_ok():
                invoices.append(result.value)
                progress.record_success()
            else:
                logger.error(
                    f"Invoice generation for customer {customer_id} {month} failed "
                    f"({result.error.code}): {result.error.message}"
                )
                progress.record_failure(customer_id, result.error.code, result.error.reason or result.error.message)

        logger.info(f"Invoice generation for {month} finished: {progress.summary}")

        return Return.ok(
            InvoiceBatchResultDTO(
                month=month,
                invoices=invoices,
                total_customers=progress.total,
                succeeded=progress.succeeded,
                failed=progress.failed,
                failures=progress.failures,
                status=progress.status,
                error_code=progress.error_code,
                summary=progress.summary,
                cancelled=progress.cancelled,
            )
        )
