"""Unit tests for event dispatch and expiration listing

Tests cover:
- DispatchEvents delivered/failed accounting
- Delivery exceptions counted as failures
- Urgency tiers of expiring credit
- ListExpiringWithin window and totals
"""

import json
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from solar_ledger.app.use_cases.events import DispatchEvents
from solar_ledger.app.use_cases.expiration import ExpirationUrgency, ListExpiringWithin, urgency_for
from solar_ledger.domain.credit_balance import CreditBalance
from solar_ledger.domain.ledger_event import LedgerEvent, LedgerEventType


@pytest.fixture
def mock_uow():
    """Mock UnitOfWork"""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


def make_event(event_id, event_type=LedgerEventType.CREDITS_CONSUMED, attempts=0):
    return LedgerEvent(
        id=event_id,
        event_type=event_type,
        customer_id="maria@example.com",
        payload_json=json.dumps({"amount_kwh": "-100"}),
        delivery_attempts=attempts,
    )


@pytest.fixture
def mock_event_repo():
    repo = MagicMock()
    repo.list_pending = AsyncMock(return_value=[])
    repo.mark_delivered = AsyncMock()
    repo.mark_failed = AsyncMock()
    return repo


@pytest.mark.asyncio
class TestDispatchEvents:
    """Test outbox delivery"""

    async def test_marks_delivered_and_failed(self, mock_uow, mock_event_repo):
        """
        Given: Three pending events, the second one rejected by the collaborator
        When: Events are dispatched
        Then: Two are marked delivered, one failed, and the pass is committed
        """
        # Arrange
        events = [make_event(1), make_event(2), make_event(3)]
        mock_event_repo.list_pending.return_value = events
        notification_service = MagicMock()
        notification_service.send_event = AsyncMock(side_effect=[True, False, True])

        # Act
        result = await DispatchEvents(
            mock_uow, mock_event_repo, notification_service, batch_size=50, max_attempts=5
        ).execute()

        # Assert
        assert result.is_ok()
        assert result.value.pending == 3
        assert result.value.delivered == 2
        assert result.value.failed == 1
        mock_event_repo.list_pending.assert_called_once_with(limit=50, max_attempts=5)
        mock_event_repo.mark_failed.assert_called_once_with(events[1])
        mock_uow.commit.assert_called_once()

    async def test_delivery_exception_counts_as_failure(self, mock_uow, mock_event_repo):
        # Arrange
        event = make_event(1, LedgerEventType.CREDITS_EXPIRED, attempts=9)
        mock_event_repo.list_pending.return_value = [event]
        notification_service = MagicMock()
        notification_service.send_event = AsyncMock(side_effect=RuntimeError("webhook down"))

        # Act
        result = await DispatchEvents(mock_uow, mock_event_repo, notification_service).execute()

        # Assert
        assert result.is_ok()
        assert result.value.failed == 1
        mock_event_repo.mark_delivered.assert_not_called()

    async def test_repository_failure_rolls_back(self, mock_uow, mock_event_repo):
        mock_event_repo.list_pending.side_effect = RuntimeError("database gone")

        result = await DispatchEvents(mock_uow, mock_event_repo, MagicMock()).execute()

        assert result.is_err()
        assert result.error.code == "EVENT_DISPATCH_FAILED"
        mock_uow.rollback.assert_called_once()


class TestUrgency:
    def test_default_tiers(self):
        assert urgency_for(0) == ExpirationUrgency.CRITICAL
        assert urgency_for(15) == ExpirationUrgency.CRITICAL
        assert urgency_for(16) == ExpirationUrgency.HIGH
        assert urgency_for(30) == ExpirationUrgency.HIGH
        assert urgency_for(60) == ExpirationUrgency.MEDIUM
        assert urgency_for(61) == ExpirationUrgency.LOW

    def test_custom_tiers(self):
        assert urgency_for(5, (7, 14, 21)) == ExpirationUrgency.CRITICAL
        assert urgency_for(20, (21, 7, 14)) == ExpirationUrgency.MEDIUM


@pytest.mark.asyncio
class TestListExpiringWithin:
    async def test_lists_buckets_in_window(self):
        # Arrange
        balance_repo = MagicMock()
        balance_repo.list_expiring_between = AsyncMock(
            return_value=[
                CreditBalance(
                    customer_id="maria@example.com", month="2019-07", balance_kwh=Decimal("120"),
                    accumulated_kwh=Decimal("120"), consumed_kwh=Decimal("0"),
                    expired_kwh=Decimal("0"), expiration_date=date(2024, 6, 30),
                ),
                CreditBalance(
                    customer_id="joao@example.com", month="2019-08", balance_kwh=Decimal("80"),
                    accumulated_kwh=Decimal("80"), consumed_kwh=Decimal("0"),
                    expired_kwh=Decimal("0"), expiration_date=date(2024, 7, 31),
                ),
            ]
        )

        # Act
        result = await ListExpiringWithin(balance_repo).execute(60, as_of_date=date(2024, 6, 20))

        # Assert
        assert result.is_ok()
        balance_repo.list_expiring_between.assert_called_once_with(date(2024, 6, 20), date(2024, 8, 19))
        assert result.value.total_kwh == Decimal("200")
        assert [item.days_to_expire for item in result.value.items] == [10, 41]
        assert [item.urgency for item in result.value.items] == [
            ExpirationUrgency.CRITICAL,
            ExpirationUrgency.MEDIUM,
        ]

    async def test_negative_window_is_rejected(self):
        result = await ListExpiringWithin(MagicMock()).execute(-1)

        assert result.is_err()
        assert result.error.code == "VALIDATION_ERROR"
