"""Unit tests for CreditPostingService

Tests cover:
- Accumulation into a new monthly bucket
- FIFO consumption skipping expired buckets
- Insufficient balance rejection without writes
- Idempotent replay, and rejection of a key reused by another customer
- Negative adjustment clamped to the balance held
- Expiration of a bucket
- Ledger/bucket integrity checks
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.domain.credit_balance import CreditBalance
from solar_ledger.domain.credit_ledger import CreditLedger
from solar_ledger.domain.credit_transaction import CreditTransaction, TransactionType
from solar_ledger.domain.exceptions import IdempotencyConflict, InsufficientBalance, LedgerIntegrityError
from solar_ledger.domain.ledger_event import LedgerEventType

CUSTOMER = "maria@example.com"


def make_bucket(month: str, balance: str, expiration: date, bucket_id: int = 1) -> CreditBalance:
    return CreditBalance(
        id=bucket_id,
        customer_id=CUSTOMER,
        month=month,
        balance_kwh=Decimal(balance),
        accumulated_kwh=Decimal(balance),
        consumed_kwh=Decimal("0"),
        expired_kwh=Decimal("0"),
        expiration_date=expiration,
    )


@pytest.fixture
def mock_ledger_repo():
    repo = MagicMock()
    repo.get_by_customer_id = AsyncMock(return_value=None)
    repo.create = AsyncMock(side_effect=lambda ledger: ledger)
    repo.update_balance = AsyncMock()
    return repo


@pytest.fixture
def mock_balance_repo():
    repo = MagicMock()
    repo.list_by_customer = AsyncMock(return_value=[])
    repo.create = AsyncMock(side_effect=lambda bucket: bucket)
    repo.save = AsyncMock(side_effect=lambda bucket: bucket)
    return repo


@pytest.fixture
def mock_transaction_repo():
    repo = MagicMock()
    repo.get_by_idempotency_key = AsyncMock(return_value=None)
    repo.create = AsyncMock(side_effect=lambda transaction: transaction)
    return repo


@pytest.fixture
def mock_event_repo():
    repo = MagicMock()
    repo.create = AsyncMock()
    return repo


@pytest.fixture
def posting(mock_ledger_repo, mock_balance_repo, mock_transaction_repo, mock_event_repo):
    return CreditPostingService(
        ledger_repo=mock_ledger_repo,
        balance_repo=mock_balance_repo,
        transaction_repo=mock_transaction_repo,
        event_repo=mock_event_repo,
        credit_validity_months=60,
    )


def with_ledger(mock_ledger_repo, mock_balance_repo, buckets):
    ledger = CreditLedger(
        id=1,
        customer_id=CUSTOMER,
        balance_kwh=sum((b.balance_kwh for b in buckets), Decimal("0")),
    )
    mock_ledger_repo.get_by_customer_id.return_value = ledger
    mock_balance_repo.list_by_customer.return_value = buckets
    return ledger


@pytest.mark.asyncio
class TestAccumulate:
    """Test crediting energy"""

    async def test_opens_ledger_and_bucket(
        self, posting, mock_ledger_repo, mock_balance_repo, mock_event_repo
    ):
        """
        Given: A customer without a ledger
        When: 6,000 kWh are accumulated for 2024-01
        Then: Ledger and bucket are created and the bucket expires after 60 months
        """
        # Act
        transaction = await posting.accumulate(CUSTOMER, "2024-01", Decimal("6000"))

        # Assert
        assert transaction.amount_kwh == Decimal("6000.000000")
        assert transaction.balance_before == Decimal("0")
        assert transaction.balance_after == Decimal("6000.000000")
        assert transaction.transaction_type == TransactionType.ALLOCATION
        assert transaction.breakdown == {"2024-01": Decimal("6000.000000")}

        mock_ledger_repo.create.assert_called_once()
        bucket = mock_balance_repo.create.call_args[0][0]
        assert bucket.month == "2024-01"
        assert bucket.balance_kwh == Decimal("6000.000000")
        assert bucket.accumulated_kwh == Decimal("6000.000000")
        assert bucket.expiration_date == date(2028, 12, 31)

        event = mock_event_repo.create.call_args[0][0]
        assert event.event_type == LedgerEventType.CREDITS_ACCUMULATED

    async def test_rejects_non_positive_amount(self, posting, mock_transaction_repo):
        with pytest.raises(ValueError):
            await posting.accumulate(CUSTOMER, "2024-01", Decimal("0"))

        mock_transaction_repo.create.assert_not_called()


@pytest.mark.asyncio
class TestConsume:
    """Test FIFO consumption"""

    async def test_draws_oldest_bucket_first(
        self, posting, mock_ledger_repo, mock_balance_repo, mock_event_repo
    ):
        """
        Given: Buckets 2024-01 (300) and 2024-02 (500)
        When: 400 kWh are consumed
        Then: 300 come from 2024-01 and 100 from 2024-02
        """
        # Arrange
        january = make_bucket("2024-01", "300", date(2028, 12, 31), 1)
        february = make_bucket("2024-02", "500", date(2029, 1, 31), 2)
        with_ledger(mock_ledger_repo, mock_balance_repo, [february, january])

        # Act
        transaction = await posting.consume(CUSTOMER, Decimal("400"), as_of=date(2024, 6, 1))

        # Assert
        assert transaction.amount_kwh == Decimal("-400.000000")
        assert transaction.balance_before == Decimal("800")
        assert transaction.balance_after == Decimal("400.000000")
        assert transaction.breakdown == {
            "2024-01": Decimal("-300"),
            "2024-02": Decimal("-100.000000"),
        }
        assert january.balance_kwh == Decimal("0")
        assert january.consumed_kwh == Decimal("300")
        assert february.balance_kwh == Decimal("400.000000")
        mock_ledger_repo.update_balance.assert_called_once_with(1, Decimal("400.000000"))
        assert mock_event_repo.create.call_args[0][0].event_type == LedgerEventType.CREDITS_CONSUMED

    async def test_skips_expired_buckets(self, posting, mock_ledger_repo, mock_balance_repo):
        # Arrange
        expired = make_bucket("2019-01", "200", date(2023, 12, 31), 1)
        current = make_bucket("2024-01", "300", date(2028, 12, 31), 2)
        with_ledger(mock_ledger_repo, mock_balance_repo, [expired, current])

        # Act
        transaction = await posting.consume(CUSTOMER, Decimal("250"), as_of=date(2024, 6, 1))

        # Assert
        assert transaction.breakdown == {"2024-01": Decimal("-250.000000")}
        assert expired.balance_kwh == Decimal("200")

    async def test_insufficient_balance_writes_nothing(
        self, posting, mock_ledger_repo, mock_balance_repo, mock_transaction_repo, mock_event_repo
    ):
        """
        Given: 500 kWh of usable credit
        When: 700 kWh are consumed
        Then: InsufficientBalance is raised and nothing is written
        """
        # Arrange
        bucket = make_bucket("2024-01", "500", date(2028, 12, 31))
        with_ledger(mock_ledger_repo, mock_balance_repo, [bucket])

        # Act & Assert
        with pytest.raises(InsufficientBalance) as exc_info:
            await posting.consume(CUSTOMER, Decimal("700"), as_of=date(2024, 6, 1))

        assert exc_info.value.code == "INSUFFICIENT_BALANCE"
        assert exc_info.value.available == Decimal("500")
        assert bucket.balance_kwh == Decimal("500")
        mock_transaction_repo.create.assert_not_called()
        mock_ledger_repo.update_balance.assert_not_called()
        mock_event_repo.create.assert_not_called()

    async def test_idempotent_replay_returns_original(
        self, posting, mock_ledger_repo, mock_transaction_repo
    ):
        # Arrange
        original = CreditTransaction(
            id=42,
            customer_id=CUSTOMER,
            ledger_id=1,
            transaction_type=TransactionType.CONSUMPTION,
            amount_kwh=Decimal("-100"),
            balance_before=Decimal("500"),
            balance_after=Decimal("400"),
            breakdown_json='{"2024-01": "-100"}',
            idempotency_key="invoice:INV-2024-000001:consumption",
        )
        mock_transaction_repo.get_by_idempotency_key.return_value = original

        # Act
        transaction = await posting.consume(
            CUSTOMER, Decimal("100"), idempotency_key="invoice:INV-2024-000001:consumption"
        )

        # Assert
        assert transaction is original
        mock_ledger_repo.get_by_customer_id.assert_not_called()
        mock_transaction_repo.create.assert_not_called()

    async def test_key_of_another_customer_is_rejected(
        self, posting, mock_ledger_repo, mock_transaction_repo
    ):
        """
        Given: An idempotency key already used by another customer
        When: The key is sent again for a different customer
        Then: IdempotencyConflict is raised and nothing is written
        """
        # Arrange
        mock_transaction_repo.get_by_idempotency_key.return_value = CreditTransaction(
            id=42,
            customer_id="other@example.com",
            ledger_id=7,
            transaction_type=TransactionType.ALLOCATION,
            amount_kwh=Decimal("100"),
            balance_before=Decimal("0"),
            balance_after=Decimal("100"),
            breakdown_json='{"2024-01": "100"}',
            idempotency_key="import:batch-7:line-1",
        )

        # Act & Assert
        with pytest.raises(IdempotencyConflict) as exc_info:
            await posting.accumulate(
                CUSTOMER, "2024-01", Decimal("100"), idempotency_key="import:batch-7:line-1"
            )

        assert exc_info.value.code == "IDEMPOTENCY_CONFLICT"
        mock_ledger_repo.get_by_customer_id.assert_not_called()
        mock_transaction_repo.create.assert_not_called()


@pytest.mark.asyncio
class TestAdjust:
    """Test signed corrections"""

    async def test_negative_adjustment_is_clamped(self, posting, mock_ledger_repo, mock_balance_repo):
        """
        Given: 100 kWh held
        When: An adjustment of -250 kWh is posted
        Then: Only -100 kWh is applied and the description records the shortfall
        """
        # Arrange
        bucket = make_bucket("2024-01", "100", date(2028, 12, 31))
        with_ledger(mock_ledger_repo, mock_balance_repo, [bucket])

        # Act
        transaction = await posting.adjust(
            CUSTOMER, Decimal("-250"), description="Meter correction", adjusted_by="ops", month="2024-01"
        )

        # Assert
        assert transaction.amount_kwh == Decimal("-100")
        assert transaction.balance_after == Decimal("0")
        assert "shortfall 150" in transaction.description
        assert transaction.requires_review is True
        assert transaction.adjusted_by == "ops"
        assert bucket.accumulated_kwh == Decimal("0")

    async def test_positive_adjustment_credits_month(self, posting, mock_ledger_repo, mock_balance_repo):
        with_ledger(mock_ledger_repo, mock_balance_repo, [])

        transaction = await posting.adjust(CUSTOMER, Decimal("25"), month="2024-03")

        assert transaction.transaction_type == TransactionType.ADJUSTMENT
        assert transaction.breakdown == {"2024-03": Decimal("25.000000")}

    async def test_rejects_zero(self, posting):
        with pytest.raises(ValueError):
            await posting.adjust(CUSTOMER, Decimal("0"))


@pytest.mark.asyncio
class TestExpire:
    """Test expiration of a bucket"""

    async def test_expires_remaining_balance(
        self, posting, mock_ledger_repo, mock_balance_repo, mock_event_repo
    ):
        """
        Given: A 500 kWh bucket that expired on 2023-12-31
        When: It is expired on 2024-01-01
        Then: One -500 transaction is written and a credits.expired event is queued
        """
        # Arrange
        bucket = make_bucket("2019-01", "500", date(2023, 12, 31))
        with_ledger(mock_ledger_repo, mock_balance_repo, [bucket])

        # Act
        transaction = await posting.expire(CUSTOMER, "2019-01", date(2024, 1, 1))

        # Assert
        assert transaction.transaction_type == TransactionType.EXPIRATION
        assert transaction.amount_kwh == Decimal("-500")
        assert bucket.balance_kwh == Decimal("0")
        assert bucket.expired_kwh == Decimal("500")
        assert mock_event_repo.create.call_args[0][0].event_type == LedgerEventType.CREDITS_EXPIRED

    async def test_returns_none_for_live_bucket(
        self, posting, mock_ledger_repo, mock_balance_repo, mock_transaction_repo
    ):
        bucket = make_bucket("2024-01", "500", date(2028, 12, 31))
        with_ledger(mock_ledger_repo, mock_balance_repo, [bucket])

        assert await posting.expire(CUSTOMER, "2024-01", date(2024, 6, 1)) is None
        mock_transaction_repo.create.assert_not_called()


@pytest.mark.asyncio
class TestIntegrity:
    async def test_ledger_head_mismatch_is_rejected(
        self, posting, mock_ledger_repo, mock_balance_repo, mock_transaction_repo
    ):
        # Arrange
        bucket = make_bucket("2024-01", "500", date(2028, 12, 31))
        ledger = with_ledger(mock_ledger_repo, mock_balance_repo, [bucket])
        ledger.balance_kwh = Decimal("999")

        # Act & Assert
        with pytest.raises(LedgerIntegrityError):
            await posting.consume(CUSTOMER, Decimal("10"), as_of=date(2024, 6, 1))

        mock_transaction_repo.create.assert_not_called()
