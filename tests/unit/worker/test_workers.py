"""Unit tests for background workers

Tests cover:
- LedgerVerifierWorker run_once, disabled verification and failures
- EventDispatcherWorker run_once and failure propagation
- MonthlyAllocationWorker plant loop with skipped and failed plants
"""

import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from libs.result import Error, Return
from solar_ledger.app.use_cases.events import DispatchResultDTO
from solar_ledger.app.use_cases.ledger import LedgerDiscrepancyDTO, VerificationResultDTO
from solar_ledger.worker.event_dispatcher import EventDispatcherWorker
from solar_ledger.worker.ledger_verifier import LedgerVerifierWorker
from solar_ledger.worker.monthly_allocation import MonthlyAllocationWorker


@pytest.fixture
def mock_session():
    """Mock async session"""
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session


@pytest.fixture
def mock_uow():
    """Mock unit of work"""
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def sample_discrepancy_result():
    return VerificationResultDTO(
        total_ledgers_checked=3,
        discrepancies_found=1,
        discrepancies=[
            LedgerDiscrepancyDTO(
                customer_id="maria@example.com",
                kind="ledger_head",
                expected=Decimal("600"),
                actual=Decimal("650"),
                detail="Ledger balance differs from the replayed total",
            )
        ],
        verified_at=datetime.utcnow(),
        execution_time_ms=12,
    )


@pytest.mark.asyncio
class TestLedgerVerifierWorker:
    """Test ledger verification worker"""

    @patch("solar_ledger.worker.ledger_verifier.ApplicationConfig")
    @patch("solar_ledger.worker.ledger_verifier.VerifyLedger")
    @patch("solar_ledger.worker.ledger_verifier.create_async_engine")
    @patch("solar_ledger.worker.ledger_verifier.sessionmaker")
    async def test_run_once_reports_discrepancies(
        self,
        mock_sessionmaker,
        mock_create_engine,
        mock_use_case_class,
        mock_app_config,
        mock_session,
        sample_discrepancy_result,
    ):
        """
        Given: Verification is enabled and one ledger is inconsistent
        When: run_once is called
        Then: The verification result is returned with the discrepancy
        """
        # Arrange
        mock_app_config.DB_URI = "sqlite+aiosqlite:///./test.db"
        mock_app_config.LEDGER_VERIFICATION_ENABLED = True
        mock_sessionmaker.return_value = MagicMock(return_value=mock_session)
        mock_use_case = MagicMock()
        mock_use_case.execute = AsyncMock(return_value=Return.ok(sample_discrepancy_result))
        mock_use_case_class.return_value = mock_use_case

        # Act
        worker = LedgerVerifierWorker()
        result = await worker.run_once(customer_id="maria@example.com")

        # Assert
        assert result.discrepancies_found == 1
        mock_use_case.execute.assert_called_once_with("maria@example.com")

    @patch("solar_ledger.worker.ledger_verifier.ApplicationConfig")
    @patch("solar_ledger.worker.ledger_verifier.VerifyLedger")
    @patch("solar_ledger.worker.ledger_verifier.create_async_engine")
    async def test_run_once_skips_when_disabled(
        self, mock_create_engine, mock_use_case_class, mock_app_config
    ):
        # Arrange
        mock_app_config.DB_URI = "sqlite+aiosqlite:///./test.db"
        mock_app_config.LEDGER_VERIFICATION_ENABLED = False

        # Act
        worker = LedgerVerifierWorker()
        result = await worker.run_once()

        # Assert
        assert result.total_ledgers_checked == 0
        mock_use_case_class.assert_not_called()

    @patch("solar_ledger.worker.ledger_verifier.ApplicationConfig")
    @patch("solar_ledger.worker.ledger_verifier.VerifyLedger")
    @patch("solar_ledger.worker.ledger_verifier.create_async_engine")
    @patch("solar_ledger.worker.ledger_verifier.sessionmaker")
    async def test_run_once_raises_on_error(
        self, mock_sessionmaker, mock_create_engine, mock_use_case_class, mock_app_config, mock_session
    ):
        # Arrange
        mock_app_config.DB_URI = "sqlite+aiosqlite:///./test.db"
        mock_app_config.LEDGER_VERIFICATION_ENABLED = True
        mock_sessionmaker.return_value = MagicMock(return_value=mock_session)
        mock_use_case = MagicMock()
        mock_use_case.execute = AsyncMock(
            return_value=Return.err(Error(code="VERIFICATION_FAILED", message="boom"))
        )
        mock_use_case_class.return_value = mock_use_case

        # Act & Assert
        worker = LedgerVerifierWorker()
        with pytest.raises(RuntimeError, match="Verification failed"):
            await worker.run_once()

    @patch("solar_ledger.worker.ledger_verifier.create_async_engine")
    async def test_shutdown_disposes_engine(self, mock_create_engine):
        # Arrange
        mock_engine = MagicMock()
        mock_engine.dispose = AsyncMock()
        mock_create_engine.return_value = mock_engine

        # Act
        worker = LedgerVerifierWorker(db_uri="sqlite+aiosqlite:///./custom.db")
        await worker.shutdown()

        # Assert
        assert worker.db_uri == "sqlite+aiosqlite:///./custom.db"
        mock_engine.dispose.assert_called_once()


@pytest.mark.asyncio
class TestEventDispatcherWorker:
    """Test outbox dispatch worker"""

    @patch("solar_ledger.worker.event_dispatcher.ApplicationConfig")
    @patch("solar_ledger.worker.event_dispatcher.DispatchEvents")
    @patch("solar_ledger.worker.event_dispatcher.SqlAlchemyUnitOfWorkFactory")
    @patch("solar_ledger.worker.event_dispatcher.create_async_engine")
    async def test_run_once_dispatches_with_configured_limits(
        self, mock_create_engine, mock_factory_class, mock_use_case_class, mock_app_config, mock_uow
    ):
        # Arrange
        mock_app_config.DB_URI = "sqlite+aiosqlite:///./test.db"
        mock_app_config.EVENT_DISPATCH_BATCH_SIZE = 25
        mock_app_config.EVENT_MAX_DELIVERY_ATTEMPTS = 4
        mock_factory_class.return_value = MagicMock(return_value=mock_uow)
        dispatched = DispatchResultDTO(pending=2, delivered=2, failed=0, dispatched_at=datetime.utcnow())
        mock_use_case = MagicMock()
        mock_use_case.execute = AsyncMock(return_value=Return.ok(dispatched))
        mock_use_case_class.return_value = mock_use_case
        notification_service = MagicMock()

        # Act
        worker = EventDispatcherWorker(notification_service=notification_service)
        result = await worker.run_once()

        # Assert
        assert result.delivered == 2
        kwargs = mock_use_case_class.call_args.kwargs
        assert kwargs["batch_size"] == 25
        assert kwargs["max_attempts"] == 4
        assert kwargs["notification_service"] is notification_service

    @patch("solar_ledger.worker.event_dispatcher.ApplicationConfig")
    @patch("solar_ledger.worker.event_dispatcher.DispatchEvents")
    @patch("solar_ledger.worker.event_dispatcher.SqlAlchemyUnitOfWorkFactory")
    @patch("solar_ledger.worker.event_dispatcher.create_async_engine")
    async def test_run_once_raises_on_error(
        self, mock_create_engine, mock_factory_class, mock_use_case_class, mock_app_config, mock_uow
    ):
        # Arrange
        mock_app_config.DB_URI = "sqlite+aiosqlite:///./test.db"
        mock_factory_class.return_value = MagicMock(return_value=mock_uow)
        mock_use_case = MagicMock()
        mock_use_case.execute = AsyncMock(
            return_value=Return.err(Error(code="EVENT_DISPATCH_FAILED", message="boom"))
        )
        mock_use_case_class.return_value = mock_use_case

        # Act & Assert
        worker = EventDispatcherWorker(notification_service=MagicMock())
        with pytest.raises(RuntimeError, match="Event dispatch failed"):
            await worker.run_once()


@pytest.mark.asyncio
class TestMonthlyAllocationWorker:
    """Test monthly allocation worker"""

    @patch("solar_ledger.worker.monthly_allocation.ApplicationConfig")
    @patch("solar_ledger.worker.monthly_allocation.RunAllocation")
    @patch("solar_ledger.worker.monthly_allocation.SqlAlchemyUnitOfWorkFactory")
    @patch("solar_ledger.worker.monthly_allocation.create_async_engine")
    async def test_run_once_counts_allocated_skipped_and_failed(
        self, mock_create_engine, mock_factory_class, mock_use_case_class, mock_app_config, mock_uow
    ):
        """
        Given: Three plants, one already allocated and one inactive
        When: run_once is called for 2024-01
        Then: One run is returned, one plant skipped and one failed
        """
        # Arrange
        mock_app_config.DB_URI = "sqlite+aiosqlite:///./test.db"
        mock_app_config.CREDIT_VALIDITY_MONTHS = 60
        mock_factory_class.return_value = MagicMock(return_value=mock_uow)

        run = MagicMock()
        run.failed = 0
        mock_use_case = MagicMock()
        mock_use_case.execute = AsyncMock(
            side_effect=[
                Return.ok(run),
                Return.err(Error(code="DUPLICATE_ALLOCATION", message="already allocated")),
                Return.err(Error(code="INVALID_PLANT_STATE", message="inactive")),
            ]
        )
        mock_use_case_class.return_value = mock_use_case

        # Act
        worker = MonthlyAllocationWorker()
        with patch("solar_ledger.worker.monthly_allocation.MonthlyAllocationSummaryDTO") as mock_summary:
            mock_summary.side_effect = lambda **kwargs: kwargs
            summary = await worker.run_once(month="2024-01", plant_ids=[1, 2, 3])

        # Assert
        assert summary["month"] == "2024-01"
        assert summary["total_plants"] == 3
        assert summary["allocated_plants"] == 1
        assert summary["skipped_plants"] == 1
        assert summary["failed_plants"] == 1
        assert mock_use_case.execute.call_count == 3
        command = mock_use_case.execute.call_args_list[0][0][0]
        assert command.plant_id == 1
        assert command.month == "2024-01"

    @patch("solar_ledger.worker.monthly_allocation.ApplicationConfig")
    @patch("solar_ledger.worker.monthly_allocation.RunAllocation")
    @patch("solar_ledger.worker.monthly_allocation.SqlAlchemyUnitOfWorkFactory")
    @patch("solar_ledger.worker.monthly_allocation.create_async_engine")
    async def test_cancelled_worker_runs_nothing(
        self, mock_create_engine, mock_factory_class, mock_use_case_class, mock_app_config, mock_uow
    ):
        # Arrange
        mock_app_config.DB_URI = "sqlite+aiosqlite:///./test.db"
        mock_app_config.CREDIT_VALIDITY_MONTHS = 60
        mock_factory_class.return_value = MagicMock(return_value=mock_uow)
        mock_use_case = MagicMock()
        mock_use_case.execute = AsyncMock()
        mock_use_case_class.return_value = mock_use_case

        # Act
        worker = MonthlyAllocationWorker()
        worker.cancel_event.set()
        summary = await worker.run_once(month="2024-01", plant_ids=[1, 2])

        # Assert
        assert summary.allocated_plants == 0
        mock_use_case.execute.assert_not_called()
