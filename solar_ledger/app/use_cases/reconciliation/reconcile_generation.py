"""ReconcileGeneration Use Case

Compares the metered generation of a plant month with the figure its
allocations were computed from.
"""

import logging
from datetime import datetime
from decimal import Decimal
from libs.result import Result, Return, Error
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.app.repositories.plant_repository import PlantRepository
from solar_ledger.app.repositories.generation_reconciliation_repository import (
    GenerationReconciliationRepository,
)
from solar_ledger.domain.calculations import compute_efficiency, quantize_kwh
from solar_ledger.domain.generation_reconciliation import GenerationReconciliation
from .dtos import ReconciliationResponseDTO

logger = logging.getLogger(__name__)


class ReconcileGeneration:
    """
    Use Case: Reconcile a plant month

    Business Rules:
    1. expected = committed generation_kwh, actual = metered actual_generation_kwh
    2. efficiency = actual / expected, performance_ratio = efficiency * 100
    3. delta = actual - expected
    4. The record is created or refreshed; allocations and credits are untouched
    5. A delta already settled by a true-up keeps its true_up_month
    """

    def __init__(
        self,
        uow: UnitOfWork,
        plant_repo: PlantRepository,
        reconciliation_repo: GenerationReconciliationRepository,
    ):
        self.uow = uow
        self.plant_repo = plant_repo
        self.reconciliation_repo = reconciliation_repo

    async def execute(self, plant_id: int, month: str) -> Result[ReconciliationResponseDTO]:
        try:
            plant = await self.plant_repo.get_by_id(plant_id)
            if not plant:
                return Return.err(
                    Error(
                        code="PLANT_NOT_FOUND",
                        message=f"Plant {plant_id} not found",
                    )
                )

            generation = await self.plant_repo.get_monthly_generation(plant_id, month)
            if (
                generation is None
                or generation.actual_generation_kwh is None
                or not generation.generation_kwh
                or generation.generation_kwh <= 0
            ):
                return Return.err(
                    Error(
                        code="RECONCILIATION_DATA_MISSING",
                        message=f"Plant {plant_id} has no expected and metered generation for {month}",
                        reason="Record generation_kwh and actual_generation_kwh first",
                    )
                )

            expected = quantize_kwh(generation.generation_kwh)
            actual = quantize_kwh(generation.actual_generation_kwh)
            efficiency = compute_efficiency(actual, expected)

            reconciliation = await self.reconciliation_repo.get_by_plant_month(plant_id, month)
            if reconciliation is None:
                reconciliation = GenerationReconciliation(plant_id=plant_id, month=month)

            if reconciliation.true_up_month and reconciliation.delta_kwh != actual - expected:
                logger.warning(
                    f"Plant {plant_id} {month} delta changed after true-up in "
                    f"{reconciliation.true_up_month}: {reconciliation.delta_kwh} -> {actual - expected}"
                )

            reconciliation.expected_kwh = expected
            reconciliation.actual_kwh = actual
            reconciliation.efficiency = efficiency
            reconciliation.performance_ratio = (efficiency * 100).quantize(Decimal("0.01"))
            reconciliation.delta_kwh = actual - expected
            reconciliation.reconciled_at = datetime.utcnow()
            reconciliation = await self.reconciliation_repo.save(reconciliation)

            await self.uow.commit()

            logger.info(
                f"Plant {plant_id} {month} reconciled: expected={expected}, actual={actual}, "
                f"performance={reconciliation.performance_ratio}%"
            )
            return Return.ok(ReconciliationResponseDTO.from_entity(reconciliation))

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="RECONCILIATION_FAILED",
                    message="Failed to reconcile generation",
                    reason=str(e),
                )
            )
