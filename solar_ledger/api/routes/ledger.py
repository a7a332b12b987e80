"""Ledger API Routes

FastAPI routes for energy credit balances, postings and expiration.
"""

from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from solar_ledger.api.schemas.ledger_request import (
    MONTH_PATTERN,
    AccumulateRequestSchema,
    AdjustRequestSchema,
    ConsumeRequestSchema,
    SweepRequestSchema,
)
from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.use_cases.ledger.dtos import (
    AccumulateCommandDTO,
    AdjustCommandDTO,
    BalanceResponseDTO,
    ConsumeCommandDTO,
    CreditTransactionResponseDTO,
    ListTransactionsResponseDTO,
    VerificationResultDTO,
)
from solar_ledger.app.use_cases.ledger.accumulate_credits import AccumulateCredits
from solar_ledger.app.use_cases.ledger.consume_credits import ConsumeCredits
from solar_ledger.app.use_cases.ledger.adjust_credits import AdjustCredits
from solar_ledger.app.use_cases.ledger.get_balance import GetBalance
from solar_ledger.app.use_cases.ledger.list_transactions import ListTransactions
from solar_ledger.app.use_cases.ledger.verify_ledger import VerifyLedger
from solar_ledger.app.use_cases.expiration.dtos import ExpiringCreditsResponseDTO, SweepResultDTO
from solar_ledger.app.use_cases.expiration.list_expiring import ListExpiringWithin
from solar_ledger.app.use_cases.expiration.sweep_expirations import SweepExpirations
from solar_ledger.adapter.repositories.credit_ledger_repository import SqlAlchemyCreditLedgerRepository
from solar_ledger.adapter.repositories.credit_balance_repository import SqlAlchemyCreditBalanceRepository
from solar_ledger.adapter.repositories.credit_transaction_repository import SqlAlchemyCreditTransactionRepository
from solar_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWork, SqlAlchemyUnitOfWorkFactory
from solar_ledger.domain.credit_transaction import TransactionType
from solar_ledger.depends import get_session, get_uow_factory
from solar_ledger.api.error import ClientError

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.post(
    "/accumulate",
    response_model=CreditTransactionResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def accumulate_credits(
    request: AccumulateRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Credit energy into a customer's monthly bucket.

    Repeated requests with the same idempotency_key return the original
    transaction; a key already used by another customer is a 409.
    """
    uow = SqlAlchemyUnitOfWork(session)
    posting = CreditPostingService.from_uow(uow, ApplicationConfig.CREDIT_VALIDITY_MONTHS)

    command = AccumulateCommandDTO(
        customer_id=request.customer_id,
        month=request.month,
        amount_kwh=request.amount_kwh,
        description=request.description,
        reference_type=request.reference_type,
        reference_id=request.reference_id,
        idempotency_key=request.idempotency_key,
    )

    use_case = AccumulateCredits(uow, posting)
    result = await use_case.execute(command)

    if result.is_err():
        if result.error.code == "IDEMPOTENCY_CONFLICT":
            raise ClientError(result.error, status_code=status.HTTP_409_CONFLICT)
        raise ClientError(result.error)

    return result.value


@router.post(
    "/consume",
    response_model=CreditTransactionResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        402: {
            "description": "Insufficient credits",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INSUFFICIENT_BALANCE",
                            "message": "Insufficient credits. Required: 700, Available: 500"
                        }
                    }
                }
            }
        }
    }
)
async def consume_credits(
    request: ConsumeRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Consume credits, oldest non-expired month first.

    **Returns:**
    - 200: Credits consumed; `breakdown` lists the buckets drawn
    - 402: Non-expired balance lower than the amount; nothing is written
    """
    uow = SqlAlchemyUnitOfWork(session)
    posting = CreditPostingService.from_uow(uow, ApplicationConfig.CREDIT_VALIDITY_MONTHS)

    command = ConsumeCommandDTO(
        customer_id=request.customer_id,
        amount_kwh=request.amount_kwh,
        as_of_date=request.as_of_date,
        description=request.description,
        reference_type=request.reference_type,
        reference_id=request.reference_id,
        idempotency_key=request.idempotency_key,
    )

    use_case = ConsumeCredits(uow, posting)
    result = await use_case.execute(command)

    if result.is_err():
        if result.error.code == "INSUFFICIENT_BALANCE":
            raise ClientError(result.error, status_code=status.HTTP_402_PAYMENT_REQUIRED)
        if result.error.code == "IDEMPOTENCY_CONFLICT":
            raise ClientError(result.error, status_code=status.HTTP_409_CONFLICT)
        raise ClientError(result.error)

    return result.value


@router.post(
    "/adjust",
    response_model=CreditTransactionResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def adjust_credits(
    request: AdjustRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Apply a signed manual correction.

    The transaction is flagged for review. A negative correction larger
    than the balance held is clamped to it.
    """
    uow = SqlAlchemyUnitOfWork(session)
    posting = CreditPostingService.from_uow(uow, ApplicationConfig.CREDIT_VALIDITY_MONTHS)

    command = AdjustCommandDTO(
        customer_id=request.customer_id,
        amount_kwh=request.amount_kwh,
        reason=request.reason,
        adjusted_by=request.adjusted_by,
        month=request.month,
        idempotency_key=request.idempotency_key,
    )

    use_case = AdjustCredits(uow, posting)
    result = await use_case.execute(command)

    if result.is_err():
        if result.error.code == "IDEMPOTENCY_CONFLICT":
            raise ClientError(result.error, status_code=status.HTTP_409_CONFLICT)
        raise ClientError(result.error)

    return result.value


@router.get(
    "/expiring",
    response_model=ExpiringCreditsResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_expiring_credits(
    days: int = Query(default=30, ge=0, description="Window length in days"),
    as_of_date: Optional[date] = Query(default=None, description="Reference date (default today)"),
    session: AsyncSession = Depends(get_session)
):
    """List credit that expires within the next `days`, tiered by urgency."""
    use_case = ListExpiringWithin(
        SqlAlchemyCreditBalanceRepository(session),
        warning_days=ApplicationConfig.EXPIRATION_WARNING_DAYS,
    )
    result = await use_case.execute(days, as_of_date)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.post(
    "/expirations/sweep",
    response_model=SweepResultDTO,
    status_code=status.HTTP_200_OK,
)
async def sweep_expirations(
    request: SweepRequestSchema,
    uow_factory: SqlAlchemyUnitOfWorkFactory = Depends(get_uow_factory)
):
    """
    Retire credit held in buckets past their expiration date.

    Safe to repeat: buckets already swept hold no balance.
    """
    use_case = SweepExpirations(uow_factory)
    result = await use_case.execute(as_of_date=request.as_of_date)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get(
    "/verify",
    response_model=VerificationResultDTO,
    status_code=status.HTTP_200_OK,
)
async def verify_ledger(
    customer_id: Optional[str] = Query(default=None, description="Verify one customer only"),
    session: AsyncSession = Depends(get_session)
):
    """Replay the transaction log and report any discrepancy with stored balances."""
    use_case = VerifyLedger(
        SqlAlchemyCreditLedgerRepository(session),
        SqlAlchemyCreditBalanceRepository(session),
        SqlAlchemyCreditTransactionRepository(session),
    )
    result = await use_case.execute(customer_id)

    if result.is_err():
        if result.error.code == "LEDGER_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error)

    return result.value


@router.get(
    "/{customer_id}/balance",
    response_model=BalanceResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "Customer ledger not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "LEDGER_NOT_FOUND",
                            "message": "No credit ledger found for customer maria@example.com"
                        }
                    }
                }
            }
        }
    }
)
async def get_balance(
    customer_id: str,
    as_of_date: Optional[date] = Query(default=None, description="Date availability is evaluated against"),
    session: AsyncSession = Depends(get_session)
):
    """
    Get a customer's credit balance with its monthly buckets.

    `balance_kwh` is the sum of all buckets; `available_kwh` excludes
    buckets already past their expiration date.
    """
    use_case = GetBalance(
        SqlAlchemyCreditLedgerRepository(session),
        SqlAlchemyCreditBalanceRepository(session),
    )
    result = await use_case.execute(customer_id, as_of_date)

    if result.is_err():
        if result.error.code == "LEDGER_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error)

    return result.value


@router.get(
    "/{customer_id}/transactions",
    response_model=ListTransactionsResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_transactions(
    customer_id: str,
    transaction_type: Optional[TransactionType] = Query(default=None, description="Only this type"),
    month: Optional[str] = Query(default=None, pattern=MONTH_PATTERN, description="Only this bucket month"),
    created_from: Optional[datetime] = Query(default=None, description="Created at or after"),
    created_to: Optional[datetime] = Query(default=None, description="Created at or before"),
    limit: int = Query(default=20, ge=1, le=100, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Rows to skip"),
    session: AsyncSession = Depends(get_session)
):
    """List a customer's transactions, newest first."""
    use_case = ListTransactions(SqlAlchemyCreditTransactionRepository(session))
    result = await use_case.execute(
        customer_id,
        transaction_type=transaction_type,
        month=month,
        created_from=created_from,
        created_to=created_to,
        limit=limit,
        offset=offset,
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value
