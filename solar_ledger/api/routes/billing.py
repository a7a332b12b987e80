"""Billing API Routes

FastAPI routes for monthly invoices and their payment.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from solar_ledger.api.schemas.billing_request import (
    MONTH_PATTERN,
    ConfirmPaymentRequestSchema,
    GenerateInvoiceRequestSchema,
    GenerateMonthInvoicesRequestSchema,
)
from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.use_cases.billing.dtos import (
    ConfirmPaymentCommandDTO,
    GenerateInvoiceCommandDTO,
    InvoiceBatchResultDTO,
    InvoicePaymentResponseDTO,
    InvoiceResponseDTO,
)
from solar_ledger.app.use_cases.billing.generate_invoice import GenerateInvoice
from solar_ledger.app.use_cases.billing.generate_invoices_for_month import GenerateInvoicesForMonth
from solar_ledger.app.use_cases.billing.get_invoice import GetInvoice
from solar_ledger.app.use_cases.billing.confirm_invoice_payment import ConfirmInvoicePayment
from solar_ledger.adapter.repositories.invoice_repository import SqlAlchemyInvoiceRepository
from solar_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWork, SqlAlchemyUnitOfWorkFactory
from solar_ledger.depends import get_session, get_uow_factory
from solar_ledger.api.error import ClientError

router = APIRouter(prefix="/billing/invoices", tags=["Billing"])


@router.post(
    "/generate",
    response_model=InvoiceResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "Nothing allocated to bill",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INVOICE_SOURCE_NOT_FOUND",
                            "message": "No allocation for customer maria@example.com in 2024-01"
                        }
                    }
                }
            }
        },
        409: {
            "description": "Invoice can no longer be regenerated",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "STALE_INVOICE",
                            "message": "Invoice INV-2024-000001 is paid and cannot be regenerated"
                        }
                    }
                }
            }
        }
    }
)
async def generate_invoice(
    request: GenerateInvoiceRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Generate a customer's invoice for a month.

    Generating again returns the existing invoice unchanged. With
    `regenerate` a pending invoice is recomputed from the current
    allocations.

    **Returns:**
    - 200: Invoice
    - 404: No allocated energy for the customer month
    - 409: Regenerating a paid or cancelled invoice
    """
    uow = SqlAlchemyUnitOfWork(session)

    command = GenerateInvoiceCommandDTO(
        customer_id=request.customer_id,
        month=request.month,
        regenerate=request.regenerate,
    )

    use_case = GenerateInvoice(
        uow=uow,
        allocation_repo=uow.allocations,
        subscription_repo=uow.subscriptions,
        invoice_repo=uow.invoices,
        event_repo=uow.events,
        unit_price=ApplicationConfig.UNIT_PRICE_PER_KWH,
        invoice_due_days=ApplicationConfig.INVOICE_DUE_DAYS,
    )
    result = await use_case.execute(command)

    if result.is_err():
        if result.error.code == "INVOICE_SOURCE_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        if result.error.code == "STALE_INVOICE":
            raise ClientError(result.error, status_code=status.HTTP_409_CONFLICT)
        raise ClientError(result.error)

    return result.value


@router.post(
    "/generate-month",
    response_model=InvoiceBatchResultDTO,
    status_code=status.HTTP_200_OK,
)
async def generate_month_invoices(
    request: GenerateMonthInvoicesRequestSchema,
    uow_factory: SqlAlchemyUnitOfWorkFactory = Depends(get_uow_factory)
):
    """Generate the invoices of every customer allocated in a month."""
    use_case = GenerateInvoicesForMonth(
        uow_factory,
        unit_price=ApplicationConfig.UNIT_PRICE_PER_KWH,
        invoice_due_days=ApplicationConfig.INVOICE_DUE_DAYS,
    )
    result = await use_case.execute(request.month, regenerate=request.regenerate)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get(
    "/{customer_id}/{month}",
    response_model=InvoiceResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def get_invoice(
    customer_id: str,
    month: str = Path(..., pattern=MONTH_PATTERN),
    session: AsyncSession = Depends(get_session)
):
    """
    Get a customer's invoice for a month.

    **Returns:**
    - 200: Invoice
    - 404: No invoice generated yet
    """
    use_case = GetInvoice(SqlAlchemyInvoiceRepository(session))
    result = await use_case.execute(customer_id, month)

    if result.is_err():
        if result.error.code == "INVOICE_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error)

    return result.value


@router.post(
    "/{customer_id}/{month}/confirm-payment",
    response_model=InvoicePaymentResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def confirm_invoice_payment(
    request: ConfirmPaymentRequestSchema,
    customer_id: str,
    month: str = Path(..., pattern=MONTH_PATTERN),
    session: AsyncSession = Depends(get_session)
):
    """
    Mark an invoice paid and consume the billed credits.

    **Returns:**
    - 200: Paid invoice; confirming again returns it unchanged
    - 402: Not enough credits to cover the invoiced energy
    - 404: No invoice for the customer month
    - 409: Invoice cancelled
    """
    uow = SqlAlchemyUnitOfWork(session)
    posting = CreditPostingService.from_uow(uow, ApplicationConfig.CREDIT_VALIDITY_MONTHS)

    command = ConfirmPaymentCommandDTO(
        customer_id=customer_id,
        month=month,
        consumed_kwh=request.consumed_kwh,
        as_of_date=request.as_of_date,
    )

    use_case = ConfirmInvoicePayment(uow, uow.invoices, uow.events, posting)
    result = await use_case.execute(command)

    if result.is_err():
        if result.error.code == "INVOICE_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        if result.error.code == "INSUFFICIENT_BALANCE":
            raise ClientError(result.error, status_code=status.HTTP_402_PAYMENT_REQUIRED)
        if result.error.code == "STALE_INVOICE":
            raise ClientError(result.error, status_code=status.HTTP_409_CONFLICT)
        raise ClientError(result.error)

    return result.value
