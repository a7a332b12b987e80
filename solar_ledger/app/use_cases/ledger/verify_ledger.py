"""VerifyLedger Use Case

Replays the transaction log of each customer and compares the result with
the materialized buckets and ledger head.
"""

import logging
import time
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from libs.result import Result, Return, Error
from solar_ledger.app.repositories.credit_ledger_repository import CreditLedgerRepository
from solar_ledger.app.repositories.credit_balance_repository import CreditBalanceRepository
from solar_ledger.app.repositories.credit_transaction_repository import CreditTransactionRepository
from solar_ledger.domain.credit_ledger import CreditLedger
from solar_ledger.domain.credit_transaction import TransactionType
from .dtos import LedgerDiscrepancyDTO, VerificationResultDTO

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
BUCKET_FIELDS = ("balance_kwh", "accumulated_kwh", "consumed_kwh", "expired_kwh")


class VerifyLedger:
    """
    Use Case: Verify credit ledgers against their transaction log

    Business Rules:
    1. Transactions are replayed in creation order
    2. Each transaction's balance_before equals the previous balance_after
    3. balance_after = balance_before + amount_kwh
    4. The per-bucket breakdown sums to amount_kwh
    5. Replayed buckets equal the stored CreditBalance rows
    6. The ledger head equals the replayed total
    7. Does NOT modify any data (read-only verification)
    """

    def __init__(
        self,
        ledger_repo: CreditLedgerRepository,
        balance_repo: CreditBalanceRepository,
        transaction_repo: CreditTransactionRepository,
    ):
        self.ledger_repo = ledger_repo
        self.balance_repo = balance_repo
        self.transaction_repo = transaction_repo

    async def execute(self, customer_id: Optional[str] = None) -> Result[VerificationResultDTO]:
        """
        Execute ledger verification

        Args:
            customer_id: Verify one customer; all ledgers when None

        Returns:
            Result[VerificationResultDTO]: Verification result with any discrepancies
        """
        start_time = time.time()
        verified_at = datetime.utcnow()

        try:
            if customer_id is not None:
                ledger = await self.ledger_repo.get_by_customer_id(customer_id)
                if not ledger:
                    return Return.err(
                        Error(
                            code="LEDGER_NOT_FOUND",
                            message=f"No credit ledger found for customer {customer_id}",
                        )
                    )
                ledgers = [ledger]
            else:
                ledgers = await self.ledger_repo.get_all()

            logger.info(f"Verifying {len(ledgers)} credit ledgers")

            discrepancies: List[LedgerDiscrepancyDTO] = []
            for ledger in ledgers:
                found = await self._verify(ledger)
                for discrepancy in found:
                    logger.warning(
                        f"Ledger discrepancy for customer {discrepancy.customer_id} "
                        f"({discrepancy.kind}): {discrepancy.detail}"
                    )
                discrepancies.extend(found)

            execution_time_ms = int((time.time() - start_time) * 1000)

            if discrepancies:
                logger.warning(
                    f"Verification complete. Found {len(discrepancies)} discrepancies "
                    f"across {len(ledgers)} ledgers in {execution_time_ms}ms"
                )
            else:
                logger.info(
                    f"Verification complete. All {len(ledgers)} ledgers consistent "
                    f"in {execution_time_ms}ms"
                )

            return Return.ok(
                VerificationResultDTO(
                    total_ledgers_checked=len(ledgers),
                    discrepancies_found=len(discrepancies),
                    discrepancies=discrepancies,
                    verified_at=verified_at,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            logger.error(f"Ledger verification failed: {e}")
            return Return.err(
                Error(
                    code="VERIFICATION_FAILED",
                    message="Failed to verify credit ledgers",
                    reason=str(e),
                )
            )

    async def _verify(self, ledger: CreditLedger) -> List[LedgerDiscrepancyDTO]:
        customer_id = ledger.customer_id
        discrepancies: List[LedgerDiscrepancyDTO] = []
        replayed: Dict[str, Dict[str, Decimal]] = defaultdict(
            lambda: {field: ZERO for field in BUCKET_FIELDS}
        )

        previous_after = ZERO
        total = ZERO
        for txn in await self.transaction_repo.list_for_replay(customer_id):
            if txn.balance_before != previous_after:
                discrepancies.append(
                    LedgerDiscrepancyDTO(
                        customer_id=customer_id,
                        kind="chain_gap",
                        transaction_id=txn.id,
                        expected=previous_after,
                        actual=txn.balance_before,
                        detail=f"Transaction {txn.id} does not continue the previous balance",
                    )
                )
            if txn.balance_after != txn.balance_before + txn.amount_kwh:
                discrepancies.append(
                    LedgerDiscrepancyDTO(
                        customer_id=customer_id,
                        kind="arithmetic",
                        transaction_id=txn.id,
                        expected=txn.balance_before + txn.amount_kwh,
                        actual=txn.balance_after,
                        detail=f"Transaction {txn.id} balance_after != balance_before + amount",
                    )
                )

            breakdown = txn.breakdown
            breakdown_total = sum(breakdown.values(), ZERO)
            if breakdown_total != txn.amount_kwh:
                discrepancies.append(
                    LedgerDiscrepancyDTO(
                        customer_id=customer_id,
                        kind="breakdown",
                        transaction_id=txn.id,
                        expected=txn.amount_kwh,
                        actual=breakdown_total,
                        detail=f"Transaction {txn.id} breakdown does not add up to its amount",
                    )
                )

            for month, delta in breakdown.items():
                bucket = replayed[month]
                if delta > 0:
                    bucket["accumulated_kwh"] += delta
                elif txn.transaction_type == TransactionType.CONSUMPTION:
                    bucket["consumed_kwh"] -= delta
                elif txn.transaction_type == TransactionType.EXPIRATION:
                    bucket["expired_kwh"] -= delta
                else:
                    bucket["accumulated_kwh"] += delta
                bucket["balance_kwh"] += delta

            total += txn.amount_kwh
            previous_after = txn.balance_after

        stored = {bucket.month: bucket for bucket in await self.balance_repo.list_by_customer(customer_id)}
        for month in sorted(set(stored) | set(replayed)):
            expected = replayed.get(month, {field: ZERO for field in BUCKET_FIELDS})
            bucket = stored.get(month)
            for field in BUCKET_FIELDS:
                actual = getattr(bucket, field) if bucket else ZERO
                if actual != expected[field]:
                    discrepancies.append(
                        LedgerDiscrepancyDTO(
                            customer_id=customer_id,
                            kind="bucket",
                            month=month,
                            expected=expected[field],
                            actual=actual,
                            detail=f"Bucket {month} {field} differs from replay",
                        )
                    )

        if ledger.balance_kwh != total:
            discrepancies.append(
                LedgerDiscrepancyDTO(
                    customer_id=customer_id,
                    kind="ledger_head",
                    expected=total,
                    actual=ledger.balance_kwh,
                    detail="Ledger balance differs from the replayed total",
                )
            )

        return discrepancies
