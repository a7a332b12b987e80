"""Plant API Routes

Generation figures, reconciliation and true-up of plant months.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from solar_ledger.api.schemas.plant_request import (
    MONTH_PATTERN,
    MonthlyGenerationRequestSchema,
    TrueUpRequestSchema,
)
from solar_ledger.app.use_cases.allocation.dtos import (
    MonthlyGenerationResponseDTO,
    SetMonthlyGenerationCommandDTO,
)
from solar_ledger.app.use_cases.allocation.set_monthly_generation import SetMonthlyGeneration
from solar_ledger.app.use_cases.reconciliation.dtos import ReconciliationResponseDTO, TrueUpResultDTO
from solar_ledger.app.use_cases.reconciliation.reconcile_generation import ReconcileGeneration
from solar_ledger.app.use_cases.reconciliation.apply_true_up import ApplyTrueUp
from solar_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWork, SqlAlchemyUnitOfWorkFactory
from solar_ledger.depends import get_session, get_uow_factory
from solar_ledger.api.error import ClientError

router = APIRouter(prefix="/plants", tags=["Plants"])


@router.post(
    "/{plant_id}/generation/{month}",
    response_model=MonthlyGenerationResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        409: {
            "description": "Generation figure already used by an allocation run",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "GENERATION_FROZEN",
                            "message": "Generation of plant 1 for 2024-01 is frozen"
                        }
                    }
                }
            }
        }
    }
)
async def set_monthly_generation(
    request: MonthlyGenerationRequestSchema,
    plant_id: int,
    month: str = Path(..., pattern=MONTH_PATTERN),
    session: AsyncSession = Depends(get_session)
):
    """
    Record the committed, forecast or metered generation of a plant month.

    The committed figure can no longer change once an allocation run used
    it; metered generation can always be recorded.
    """
    uow = SqlAlchemyUnitOfWork(session)

    command = SetMonthlyGenerationCommandDTO(
        plant_id=plant_id,
        month=month,
        generation_kwh=request.generation_kwh,
        expected_generation_kwh=request.expected_generation_kwh,
        actual_generation_kwh=request.actual_generation_kwh,
    )

    use_case = SetMonthlyGeneration(uow, uow.plants)
    result = await use_case.execute(command)

    if result.is_err():
        if result.error.code == "PLANT_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        if result.error.code == "GENERATION_FROZEN":
            raise ClientError(result.error, status_code=status.HTTP_409_CONFLICT)
        raise ClientError(result.error)

    return result.value


@router.post(
    "/{plant_id}/reconcile/{month}",
    response_model=ReconciliationResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def reconcile_generation(
    plant_id: int,
    month: str = Path(..., pattern=MONTH_PATTERN),
    session: AsyncSession = Depends(get_session)
):
    """
    Compare metered with committed generation of a plant month.

    Informational: allocations and credits are not changed.
    """
    uow = SqlAlchemyUnitOfWork(session)

    use_case = ReconcileGeneration(uow, uow.plants, uow.reconciliations)
    result = await use_case.execute(plant_id, month)

    if result.is_err():
        if result.error.code == "PLANT_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error)

    return result.value


@router.post(
    "/{plant_id}/true-up/{month}",
    response_model=TrueUpResultDTO,
    status_code=status.HTTP_200_OK,
)
async def apply_true_up(
    request: TrueUpRequestSchema,
    plant_id: int,
    month: str = Path(..., pattern=MONTH_PATTERN),
    uow_factory: SqlAlchemyUnitOfWorkFactory = Depends(get_uow_factory)
):
    """
    Settle the reconciled delta of a plant month as credit adjustments.

    Each subscriber receives its share of the delta in `target_month`
    (default the following month). Applying twice changes nothing.
    """
    use_case = ApplyTrueUp(uow_factory, credit_validity_months=ApplicationConfig.CREDIT_VALIDITY_MONTHS)
    result = await use_case.execute(plant_id, month, target_month=request.target_month)

    if result.is_err():
        raise ClientError(result.error)

    return result.value
