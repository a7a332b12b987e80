"""AdjustCredits Use Case

Manual signed correction of a customer's credits.
"""

from libs.result import Result, Return, Error
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.services.locks import KeyedLockRegistry, customer_lock_key, ledger_locks
from solar_ledger.domain.exceptions import EnergyLedgerError
from .dtos import AdjustCommandDTO, CreditTransactionResponseDTO


class AdjustCredits:
    """
    Use Case: Manual credit adjustment

    Business Rules:
    1. Never rejected for lack of balance; a negative amount larger than the
       balance is clamped and the shortfall recorded in the description
    2. Always flagged requires_review with the operator in adjusted_by
    3. Positive amounts go to the given month bucket (current month by default)
    """

    def __init__(
        self,
        uow: UnitOfWork,
        posting: CreditPostingService,
        locks: KeyedLockRegistry = ledger_locks,
    ):
        self.uow = uow
        self.posting = posting
        self.locks = locks

    async def execute(self, command: AdjustCommandDTO) -> Result[CreditTransactionResponseDTO]:
        if command.amount_kwh == 0:
            return Return.err(
                Error(
                    code="VALIDATION_ERROR",
                    message="Adjustment amount must not be zero",
                )
            )

        async with self.locks.hold(customer_lock_key(command.customer_id)):
            try:
                transaction = await self.posting.adjust(
                    command.customer_id,
                    command.amount_kwh,
                    description=command.reason,
                    adjusted_by=command.adjusted_by,
                    month=command.month,
                    requires_review=True,
                    reference_type="manual_adjustment",
                    idempotency_key=command.idempotency_key,
                )
                await self.uow.commit()
                return Return.ok(CreditTransactionResponseDTO.from_entity(transaction))

            except EnergyLedgerError as e:
                await self.uow.rollback()
                return Return.err(e.to_error())
            except Exception as e:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="ADJUST_CREDIT_FAILED",
                        message="Failed to adjust credit",
                        reason=str(e),
                    )
                )
