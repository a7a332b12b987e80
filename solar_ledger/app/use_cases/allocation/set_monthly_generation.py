"""SetMonthlyGeneration Use Case

Records the committed, forecast or metered generation of a plant month.
"""

import logging
from libs.result import Result, Return, Error
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.app.repositories.plant_repository import PlantRepository
from solar_ledger.domain.calculations import quantize_kwh
from solar_ledger.domain.plant import MonthlyGeneration
from .dtos import SetMonthlyGenerationCommandDTO, MonthlyGenerationResponseDTO

logger = logging.getLogger(__name__)


class SetMonthlyGeneration:
    """
    Use Case: Record generation figures of a plant month

    Business Rules:
    1. generation_kwh is the figure allocation runs use
    2. Once frozen by an allocation run, generation_kwh cannot change
    3. Metered actual_generation_kwh can be recorded at any time and never
       changes allocations
    4. A new record takes generation_kwh from the command, else the
       forecast, else the plant default
    """

    def __init__(self, uow: UnitOfWork, plant_repo: PlantRepository):
        self.uow = uow
        self.plant_repo = plant_repo

    async def execute(self, command: SetMonthlyGenerationCommandDTO) -> Result[MonthlyGenerationResponseDTO]:
        try:
            plant = await self.plant_repo.get_by_id(command.plant_id)
            if not plant:
                return Return.err(
                    Error(
                        code="PLANT_NOT_FOUND",
                        message=f"Plant {command.plant_id} not found",
                    )
                )

            generation = await self.plant_repo.get_monthly_generation(
                command.plant_id, command.month, for_update=True
            )

            if generation is None:
                figure = (
                    command.generation_kwh
                    or command.expected_generation_kwh
                    or plant.monthly_generation_kwh
                )
                if not figure:
                    return Return.err(
                        Error(
                            code="INVALID_PLANT_STATE",
                            message=f"No generation figure for plant {plant.id} in {command.month}",
                            reason="Provide generation_kwh or set the plant default",
                        )
                    )
                generation = MonthlyGeneration(
                    plant_id=plant.id,
                    month=command.month,
                    generation_kwh=quantize_kwh(figure),
                )
            elif command.generation_kwh is not None and generation.generation_kwh != command.generation_kwh:
                if generation.is_frozen:
                    return Return.err(
                        Error(
                            code="GENERATION_FROZEN",
                            message=f"Generation of plant {plant.id} for {command.month} is frozen",
                            reason=f"allocated_at={generation.allocated_at.isoformat()}",
                        )
                    )
                generation.generation_kwh = quantize_kwh(command.generation_kwh)

            if command.expected_generation_kwh is not None:
                generation.expected_generation_kwh = quantize_kwh(command.expected_generation_kwh)
            if command.actual_generation_kwh is not None:
                generation.actual_generation_kwh = quantize_kwh(command.actual_generation_kwh)

            saved = await self.plant_repo.save_monthly_generation(generation)
            await self.uow.commit()

            logger.info(
                f"Generation of plant {plant.id} for {command.month} recorded: "
                f"committed={saved.generation_kwh}, actual={saved.actual_generation_kwh}"
            )

            return Return.ok(
                MonthlyGenerationResponseDTO(
                    plant_id=saved.plant_id,
                    month=saved.month,
                    generation_kwh=saved.generation_kwh,
                    expected_generation_kwh=saved.expected_generation_kwh,
                    actual_generation_kwh=saved.actual_generation_kwh,
                    frozen=saved.is_frozen,
                    allocated_at=saved.allocated_at,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="SET_GENERATION_FAILED",
                    message="Failed to record plant generation",
                    reason=str(e),
                )
            )
