"""Allocation API Routes

FastAPI routes for distributing plant generation among subscribers.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from solar_ledger.api.schemas.allocation_request import MONTH_PATTERN, RunAllocationRequestSchema
from solar_ledger.app.use_cases.allocation.dtos import (
    AllocationRunResultDTO,
    ListAllocationsResponseDTO,
    RunAllocationCommandDTO,
)
from solar_ledger.app.use_cases.allocation.run_allocation import RunAllocation
from solar_ledger.app.use_cases.allocation.list_allocations import ListAllocations
from solar_ledger.adapter.repositories.allocation_repository import SqlAlchemyAllocationRepository
from solar_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWorkFactory
from solar_ledger.depends import get_session, get_uow_factory
from solar_ledger.api.error import ClientError

router = APIRouter(prefix="/energy/allocations", tags=["Allocations"])


@router.post(
    "/run",
    response_model=AllocationRunResultDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {
            "description": "Plant not found",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "PLANT_NOT_FOUND",
                            "message": "Plant 7 not found"
                        }
                    }
                }
            }
        },
        409: {
            "description": "Month already allocated",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "DUPLICATE_ALLOCATION",
                            "message": "Plant 1 already has allocations for 2024-01"
                        }
                    }
                }
            }
        },
        400: {
            "description": "Plant cannot be allocated",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INVALID_PLANT_STATE",
                            "message": "Plant 1 is inactive"
                        }
                    }
                }
            }
        }
    }
)
async def run_allocation(
    request: RunAllocationRequestSchema,
    uow_factory: SqlAlchemyUnitOfWorkFactory = Depends(get_uow_factory)
):
    """
    Allocate a plant month to its active subscribers.

    The month's generation figure is split proportionally to subscriber
    weights and each share is credited to the subscriber's ledger. The
    figure is frozen by the first run.

    **Request body:**
    - `plant_id` (required): Plant ID
    - `month` (required): Month to allocate (YYYY-MM)
    - `rerun` (optional): Supersede existing allocations; their credit is
      compensated before the new shares are credited

    **Returns:**
    - 200: Run summary; `status` is `partial_failure` when some customers
      could not be allocated (they are listed in `failures`)
    - 400: Invalid plant state or month
    - 404: Plant not found
    - 409: Month already allocated and `rerun` not set
    """
    command = RunAllocationCommandDTO(
        plant_id=request.plant_id,
        month=request.month,
        rerun=request.rerun,
    )

    use_case = RunAllocation(uow_factory, credit_validity_months=ApplicationConfig.CREDIT_VALIDITY_MONTHS)
    result = await use_case.execute(command)

    if result.is_err():
        if result.error.code == "PLANT_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        if result.error.code == "DUPLICATE_ALLOCATION":
            raise ClientError(result.error, status_code=status.HTTP_409_CONFLICT)
        raise ClientError(result.error)

    return result.value


@router.get(
    "",
    response_model=ListAllocationsResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_allocations(
    month: str = Query(..., pattern=MONTH_PATTERN, description="Reference month (YYYY-MM)"),
    plant_id: Optional[int] = Query(default=None, description="Restrict to one plant"),
    customer_id: Optional[str] = Query(default=None, description="Restrict to one customer"),
    include_superseded: bool = Query(default=False, description="Include superseded rows"),
    session: AsyncSession = Depends(get_session)
):
    """
    List the allocations of a month for a plant or a customer.

    **Returns:**
    - 200: Allocations and their allocated total
    - 400: Neither plant_id nor customer_id given
    """
    use_case = ListAllocations(SqlAlchemyAllocationRepository(session))
    result = await use_case.execute(
        month,
        plant_id=plant_id,
        customer_id=customer_id,
        include_superseded=include_superseded,
    )

    if result.is_err():
        raise ClientError(result.error)

    return result.value
