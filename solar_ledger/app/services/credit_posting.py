"""Credit Posting Service

Applies credit mutations to one customer's ledger. Every mutation follows the
same steps: lock the ledger head row, load the monthly buckets, verify that
they agree with the head, compute per-bucket deltas, append exactly one
CreditTransaction, update buckets and head, and queue a LedgerEvent in the
outbox.

A repeated idempotency key returns the original transaction; a key already
used by another customer is rejected with IDEMPOTENCY_CONFLICT.

The caller holds the customer's keyed lock and owns the commit.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from solar_ledger.app.repositories import (
    CreditLedgerRepository,
    CreditBalanceRepository,
    CreditTransactionRepository,
    LedgerEventRepository,
)
from solar_ledger.domain.calculations import credit_expiration_date, month_of, quantize_kwh
from solar_ledger.domain.credit_balance import CreditBalance
from solar_ledger.domain.credit_ledger import CreditLedger
from solar_ledger.domain.credit_transaction import CreditTransaction, TransactionType
from solar_ledger.domain.exceptions import IdempotencyConflict, InsufficientBalance, LedgerIntegrityError
from solar_ledger.domain.ledger_event import LedgerEvent, LedgerEventType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

EVENT_BY_TRANSACTION_TYPE = {
    TransactionType.ALLOCATION: LedgerEventType.CREDITS_ACCUMULATED,
    TransactionType.CONSUMPTION: LedgerEventType.CREDITS_CONSUMED,
    TransactionType.ADJUSTMENT: LedgerEventType.CREDITS_ADJUSTED,
    TransactionType.EXPIRATION: LedgerEventType.CREDITS_EXPIRED,
    TransactionType.COMPENSATION: LedgerEventType.CREDITS_ADJUSTED,
}


class CreditPostingService:
    """
    Ledger mutations for a single customer

    Delta rules per bucket:
    - positive delta adds to accumulated_kwh
    - negative CONSUMPTION adds to consumed_kwh
    - negative EXPIRATION adds to expired_kwh
    - negative COMPENSATION / ADJUSTMENT reduces accumulated_kwh
    """

    def __init__(
        self,
        ledger_repo: CreditLedgerRepository,
        balance_repo: CreditBalanceRepository,
        transaction_repo: CreditTransactionRepository,
        event_repo: LedgerEventRepository,
        credit_validity_months: int = 60,
    ):
        self.ledger_repo = ledger_repo
        self.balance_repo = balance_repo
        self.transaction_repo = transaction_repo
        self.event_repo = event_repo
        self.credit_validity_months = credit_validity_months

    @classmethod
    def from_uow(cls, uow, credit_validity_months: int = 60) -> "CreditPostingService":
        return cls(
            ledger_repo=uow.ledgers,
            balance_repo=uow.balances,
            transaction_repo=uow.transactions,
            event_repo=uow.events,
            credit_validity_months=credit_validity_months,
        )

    # Public mutations ---------------------------------------------------

    async def accumulate(
        self,
        customer_id: str,
        month: str,
        amount_kwh: Decimal,
        transaction_type: TransactionType = TransactionType.ALLOCATION,
        description: Optional[str] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> CreditTransaction:
        """Credit ``amount_kwh`` (> 0) into the ``month`` bucket"""
        amount = quantize_kwh(amount_kwh)
        if amount <= 0:
            raise ValueError("Accumulated amount must be positive")

        existing = await self._find_replay(idempotency_key, customer_id)
        if existing:
            return existing

        ledger = await self._lock_ledger(customer_id)
        buckets = await self._load_buckets(ledger)

        return await self._post(
            ledger,
            buckets,
            transaction_type=transaction_type,
            deltas={month: amount},
            month=month,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
        )

    async def consume(
        self,
        customer_id: str,
        amount_kwh: Decimal,
        as_of: Optional[date] = None,
        description: Optional[str] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> CreditTransaction:
        """
        Draw ``amount_kwh`` (> 0) from non-expired buckets, oldest month first

        Raises:
            InsufficientBalance: Non-expired balance is lower than the amount.
                Nothing is written.
        """
        amount = quantize_kwh(amount_kwh)
        if amount <= 0:
            raise ValueError("Consumed amount must be positive")
        as_of = as_of or date.today()

        existing = await self._find_replay(idempotency_key, customer_id)
        if existing:
            return existing

        ledger = await self._lock_ledger(customer_id)
        buckets = await self._load_buckets(ledger)

        usable = [
            bucket
            for bucket in sorted(buckets.values(), key=lambda b: b.month)
            if bucket.balance_kwh > 0 and not bucket.is_expired(as_of)
        ]
        available = sum((bucket.balance_kwh for bucket in usable), ZERO)
        if available < amount:
            raise InsufficientBalance(customer_id, amount, available)

        deltas = self._draw(usable, amount)

        return await self._post(
            ledger,
            buckets,
            transaction_type=TransactionType.CONSUMPTION,
            deltas=deltas,
            month=next(iter(deltas)),
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
        )

    async def reverse(
        self,
        customer_id: str,
        month: str,
        amount_kwh: Decimal,
        description: Optional[str] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> CreditTransaction:
        """
        Compensate a previously credited amount

        Draws from the ``month`` bucket first, then the remaining buckets
        oldest first.

        Raises:
            InsufficientBalance: The credit was already spent or expired.
        """
        amount = quantize_kwh(amount_kwh)
        if amount <= 0:
            raise ValueError("Reversed amount must be positive")

        existing = await self._find_replay(idempotency_key, customer_id)
        if existing:
            return existing

        ledger = await self._lock_ledger(customer_id)
        buckets = await self._load_buckets(ledger)

        candidates = self._month_first(buckets, month)
        available = sum((bucket.balance_kwh for bucket in candidates), ZERO)
        if available < amount:
            raise InsufficientBalance(customer_id, amount, available)

        return await self._post(
            ledger,
            buckets,
            transaction_type=TransactionType.COMPENSATION,
            deltas=self._draw(candidates, amount),
            month=month,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
        )

    async def adjust(
        self,
        customer_id: str,
        amount_kwh: Decimal,
        description: Optional[str] = None,
        adjusted_by: Optional[str] = None,
        month: Optional[str] = None,
        requires_review: bool = True,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> CreditTransaction:
        """
        Signed correction that never fails on balance checks

        A positive amount goes into the ``month`` bucket (current month by
        default). A negative amount reduces accumulated credit, ``month``
        first and then oldest first, and is clamped to the balance held.
        """
        amount = quantize_kwh(amount_kwh)
        if amount == 0:
            raise ValueError("Adjustment amount must not be zero")
        month = month or month_of(date.today())

        existing = await self._find_replay(idempotency_key, customer_id)
        if existing:
            return existing

        ledger = await self._lock_ledger(customer_id)
        buckets = await self._load_buckets(ledger)

        if amount > 0:
            deltas = {month: amount}
        else:
            requested = -amount
            candidates = self._month_first(buckets, month)
            available = sum((bucket.balance_kwh for bucket in candidates), ZERO)
            applied = min(requested, available)
            deltas = self._draw(candidates, applied) if applied > 0 else {}

            if applied < requested:
                shortfall = requested - applied
                logger.warning(
                    f"Adjustment for customer {customer_id} clamped to balance: "
                    f"requested=-{requested}, applied=-{applied}, shortfall={shortfall}"
                )
                note = f"clamped: requested -{requested}, applied -{applied}, shortfall {shortfall}"
                description = f"{description} ({note})" if description else note

        return await self._post(
            ledger,
            buckets,
            transaction_type=TransactionType.ADJUSTMENT,
            deltas=deltas,
            month=month,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
            requires_review=requires_review,
            adjusted_by=adjusted_by,
        )

    async def expire(
        self, customer_id: str, month: str, as_of: date
    ) -> Optional[CreditTransaction]:
        """
        Retire the remaining balance of an expired bucket

        Returns:
            The expiration transaction, or None when the bucket is not
            expired or already empty
        """
        ledger = await self._lock_ledger(customer_id)
        buckets = await self._load_buckets(ledger)

        bucket = buckets.get(month)
        if bucket is None or bucket.balance_kwh <= 0 or not bucket.is_expired(as_of):
            return None

        return await self._post(
            ledger,
            buckets,
            transaction_type=TransactionType.EXPIRATION,
            deltas={month: -bucket.balance_kwh},
            month=month,
            description=f"Credits from {month} expired on {bucket.expiration_date.isoformat()}",
            reference_type="credit_balance",
            reference_id=str(bucket.id),
        )

    # Internals ------------------------------------------------------------

    async def _find_replay(
        self, idempotency_key: Optional[str], customer_id: str
    ) -> Optional[CreditTransaction]:
        if not idempotency_key:
            return None
        existing = await self.transaction_repo.get_by_idempotency_key(idempotency_key)
        if existing and existing.customer_id != customer_id:
            raise IdempotencyConflict(
                f"Idempotency key {idempotency_key} belongs to another customer",
                reason=f"transaction={existing.id}, requested customer={customer_id}",
            )
        if existing:
            logger.info(f"Idempotent replay of transaction {existing.id} (key={idempotency_key})")
        return existing

    async def _lock_ledger(self, customer_id: str) -> CreditLedger:
        ledger = await self.ledger_repo.get_by_customer_id(customer_id, for_update=True)
        if ledger is None:
            ledger = await self.ledger_repo.create(
                CreditLedger(customer_id=customer_id, balance_kwh=ZERO)
            )
            logger.info(f"Opened credit ledger for customer {customer_id}")
        return ledger

    async def _load_buckets(self, ledger: CreditLedger) -> Dict[str, CreditBalance]:
        buckets = await self.balance_repo.list_by_customer(ledger.customer_id)

        for bucket in buckets:
            if not bucket.is_consistent():
                raise LedgerIntegrityError(
                    f"Credit bucket {bucket.month} of customer {ledger.customer_id} is inconsistent",
                    reason=(
                        f"balance={bucket.balance_kwh}, accumulated={bucket.accumulated_kwh}, "
                        f"consumed={bucket.consumed_kwh}, expired={bucket.expired_kwh}"
                    ),
                )

        total = sum((bucket.balance_kwh for bucket in buckets), ZERO)
        if total != ledger.balance_kwh:
            raise LedgerIntegrityError(
                f"Ledger balance of customer {ledger.customer_id} does not match its buckets",
                reason=f"ledger={ledger.balance_kwh}, buckets={total}",
            )

        return {bucket.month: bucket for bucket in buckets}

    @staticmethod
    def _month_first(buckets: Dict[str, CreditBalance], month: str) -> List[CreditBalance]:
        ordered = sorted(buckets.values(), key=lambda b: (b.month != month, b.month))
        return [bucket for bucket in ordered if bucket.balance_kwh > 0]

    @staticmethod
    def _draw(candidates: Iterable[CreditBalance], amount: Decimal) -> Dict[str, Decimal]:
        """Negative deltas taking ``amount`` from candidates in order"""
        deltas: Dict[str, Decimal] = {}
        remaining = amount
        for bucket in candidates:
            if remaining <= 0:
                break
            take = min(bucket.balance_kwh, remaining)
            deltas[bucket.month] = -take
            remaining -= take
        return deltas

    def _apply_delta(
        self, bucket: CreditBalance, delta: Decimal, transaction_type: TransactionType
    ) -> None:
        if delta > 0:
            bucket.accumulated_kwh += delta
        elif transaction_type == TransactionType.CONSUMPTION:
            bucket.consumed_kwh -= delta
        elif transaction_type == TransactionType.EXPIRATION:
            bucket.expired_kwh -= delta
        else:
            bucket.accumulated_kwh += delta
        bucket.balance_kwh += delta

        if not bucket.is_consistent():
            raise LedgerIntegrityError(
                f"Posting {delta} to bucket {bucket.month} of customer {bucket.customer_id} "
                f"breaks its balance",
                reason=f"balance={bucket.balance_kwh}, type={transaction_type.value}",
            )

    async def _post(
        self,
        ledger: CreditLedger,
        buckets: Dict[str, CreditBalance],
        transaction_type: TransactionType,
        deltas: Dict[str, Decimal],
        month: Optional[str],
        description: Optional[str] = None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        requires_review: bool = False,
        adjusted_by: Optional[str] = None,
    ) -> CreditTransaction:
        amount = sum(deltas.values(), ZERO)
        balance_before = ledger.balance_kwh
        balance_after = balance_before + amount

        created: List[CreditBalance] = []
        touched: List[CreditBalance] = []
        for bucket_month, delta in deltas.items():
            bucket = buckets.get(bucket_month)
            if bucket is None:
                bucket = CreditBalance(
                    customer_id=ledger.customer_id,
                    month=bucket_month,
                    balance_kwh=ZERO,
                    accumulated_kwh=ZERO,
                    consumed_kwh=ZERO,
                    expired_kwh=ZERO,
                    expiration_date=credit_expiration_date(bucket_month, self.credit_validity_months),
                )
                buckets[bucket_month] = bucket
                created.append(bucket)
            else:
                touched.append(bucket)
            self._apply_delta(bucket, delta, transaction_type)

        bucket_total = sum((bucket.balance_kwh for bucket in buckets.values()), ZERO)
        if balance_after < 0 or bucket_total != balance_after:
            raise LedgerIntegrityError(
                f"Transaction for customer {ledger.customer_id} would break the ledger",
                reason=f"balance_after={balance_after}, buckets={bucket_total}",
            )

        transaction = await self.transaction_repo.create(
            CreditTransaction(
                customer_id=ledger.customer_id,
                ledger_id=ledger.id,
                month=month,
                transaction_type=transaction_type,
                amount_kwh=amount,
                balance_before=balance_before,
                balance_after=balance_after,
                breakdown_json=CreditTransaction.encode_breakdown(deltas),
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
                idempotency_key=idempotency_key,
                requires_review=requires_review,
                adjusted_by=adjusted_by,
            )
        )

        for bucket in created:
            await self.balance_repo.create(bucket)
        for bucket in touched:
            await self.balance_repo.save(bucket)

        await self.ledger_repo.update_balance(ledger.id, balance_after)
        ledger.balance_kwh = balance_after

        await self.event_repo.create(
            LedgerEvent(
                event_type=EVENT_BY_TRANSACTION_TYPE[transaction_type],
                customer_id=ledger.customer_id,
                payload_json=_event_payload(transaction),
            )
        )

        logger.info(
            f"Posted {transaction_type.value} of {amount} kWh for customer {ledger.customer_id} "
            f"(transaction {transaction.id}, balance {balance_before} -> {balance_after})"
        )
        return transaction


def _event_payload(transaction: CreditTransaction) -> str:
    return json.dumps(
        {
            "transaction_id": transaction.id,
            "transaction_type": transaction.transaction_type.value,
            "month": transaction.month,
            "amount_kwh": str(transaction.amount_kwh),
            "balance_after": str(transaction.balance_after),
            "breakdown": {month: str(delta) for month, delta in transaction.breakdown.items()},
            "reference_type": transaction.reference_type,
            "reference_id": transaction.reference_id,
        }
    )
