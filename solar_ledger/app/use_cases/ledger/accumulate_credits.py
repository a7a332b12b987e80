"""AccumulateCredits Use Case

Credits energy to a customer's monthly bucket.
"""

from libs.result import Result, Return, Error
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.services.locks import KeyedLockRegistry, customer_lock_key, ledger_locks
from solar_ledger.domain.credit_transaction import TransactionType
from solar_ledger.domain.exceptions import EnergyLedgerError
from .dtos import AccumulateCommandDTO, CreditTransactionResponseDTO


class AccumulateCredits:
    """
    Use Case: Credit energy to a monthly bucket

    Business Rules:
    1. Idempotency: Same idempotency_key returns same transaction
    2. The customer's ledger is created on first credit
    3. The bucket's expiration date is set when the bucket is created
    4. Atomic updates: bucket, ledger head, transaction and event in one commit
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

    async def execute(self, command: AccumulateCommandDTO) -> Result[CreditTransactionResponseDTO]:
        async with self.locks.hold(customer_lock_key(command.customer_id)):
            try:
                transaction = await self.posting.accumulate(
                    command.customer_id,
                    command.month,
                    command.amount_kwh,
                    transaction_type=TransactionType.ALLOCATION,
                    description=command.description,
                    reference_type=command.reference_type,
                    reference_id=command.reference_id,
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
                        code="ACCUMULATE_CREDIT_FAILED",
                        message="Failed to accumulate credit",
                        reason=str(e),
                    )
                )
