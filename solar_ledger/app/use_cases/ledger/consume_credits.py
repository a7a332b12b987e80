"""ConsumeCredits Use Case

Consumes credits from a customer's balance with idempotency guarantees
and pessimistic locking to prevent race conditions.
"""

import logging
from libs.result import Result, Return, Error
from solar_ledger.app.services.unit_of_work import UnitOfWork
from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.services.locks import KeyedLockRegistry, customer_lock_key, ledger_locks
from solar_ledger.domain.exceptions import EnergyLedgerError, InsufficientBalance
from .dtos import ConsumeCommandDTO, CreditTransactionResponseDTO

logger = logging.getLogger(__name__)


class ConsumeCredits:
    """
    Use Case: Consume credits from customer balance

    Business Rules:
    1. Idempotency: Same idempotency_key returns same transaction
    2. Sufficient balance: non-expired balance >= amount required
    3. FIFO: oldest month buckets are drawn first
    4. Atomic updates: buckets, ledger head and one transaction in a single commit
    5. Serialized per customer: keyed lock plus SELECT FOR UPDATE on the ledger

    Flow:
    1. Lock customer
    2. Check idempotency (return existing if found)
    3. Lock ledger row, load buckets, validate balance
    4. Create transaction, update buckets and ledger
    5. Commit transaction
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

    async def execute(self, command: ConsumeCommandDTO) -> Result[CreditTransactionResponseDTO]:
        """
        Execute credit consumption

        Args:
            command: ConsumeCommandDTO with customer_id, amount_kwh, idempotency_key

        Returns:
            Result[CreditTransactionResponseDTO]: Success with transaction details or error
        """
        async with self.locks.hold(customer_lock_key(command.customer_id)):
            try:
                transaction = await self.posting.consume(
                    command.customer_id,
                    command.amount_kwh,
                    as_of=command.as_of_date,
                    description=command.description,
                    reference_type=command.reference_type,
                    reference_id=command.reference_id,
                    idempotency_key=command.idempotency_key,
                )
                await self.uow.commit()
                return Return.ok(CreditTransactionResponseDTO.from_entity(transaction))

            except InsufficientBalance as e:
                await self.uow.rollback()
                logger.info(f"Consumption rejected for customer {command.customer_id}: {e.message}")
                return Return.err(e.to_error())
            except EnergyLedgerError as e:
                await self.uow.rollback()
                logger.error(f"Consumption failed for customer {command.customer_id}: {e.message}")
                return Return.err(e.to_error())
            except Exception as e:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="CONSUME_CREDIT_FAILED",
                        message="Failed to consume credit",
                        reason=str(e),
                    )
                )
