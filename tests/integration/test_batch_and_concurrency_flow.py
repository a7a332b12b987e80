"""Integration tests for batch control and concurrent ledger writes

Tests cover:
- Concurrent postings on one customer keep a gapless balance chain
- Allocation run cancelled between customers, finished by a rerun
- Expiration sweep cancelled between customers
- Expiration sweep isolating a customer with a corrupted bucket
- Invoice batch isolating a customer whose invoice is already paid
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

from solar_ledger.app.services.credit_posting import CreditPostingService
from solar_ledger.app.use_cases.allocation import RunAllocation, RunAllocationCommandDTO
from solar_ledger.app.use_cases.batch import BatchStatus
from solar_ledger.app.use_cases.billing import (
    ConfirmInvoicePayment,
    ConfirmPaymentCommandDTO,
    GenerateInvoicesForMonth,
)
from solar_ledger.app.use_cases.expiration import SweepExpirations
from solar_ledger.app.use_cases.ledger import (
    AccumulateCommandDTO,
    AccumulateCredits,
    ConsumeCommandDTO,
    ConsumeCredits,
    GetBalance,
    ListTransactions,
    VerifyLedger,
)
from tests.fixtures.seed import seed_plant, seed_subscribers

MONTH = "2024-01"
ALICE = "alice@example.com"
BRUNO = "bruno@example.com"
CARLA = "carla@example.com"
UNIT_PRICE = Decimal("0.95")


async def accumulate(uow_factory, locks, customer_id, month, amount):
    async with uow_factory() as uow:
        return await AccumulateCredits(
            uow, CreditPostingService.from_uow(uow, 60), locks=locks
        ).execute(AccumulateCommandDTO(customer_id=customer_id, month=month, amount_kwh=Decimal(amount)))


async def consume(uow_factory, locks, customer_id, amount):
    async with uow_factory() as uow:
        return await ConsumeCredits(uow, CreditPostingService.from_uow(uow), locks=locks).execute(
            ConsumeCommandDTO(customer_id=customer_id, amount_kwh=Decimal(amount), as_of_date=date(2024, 6, 1))
        )


async def bucket_balance(uow_factory, customer_id, month):
    async with uow_factory() as uow:
        bucket = await uow.balances.get_by_customer_month(customer_id, month)
    return bucket.balance_kwh


def cancel_after_first(use_case, method_name, cancel):
    """Wrap a per-customer step so the batch is cancelled once it has run"""
    step = getattr(use_case, method_name)

    async def step_then_cancel(*args):
        outcome = await step(*args)
        cancel.set()
        return outcome

    setattr(use_case, method_name, step_then_cancel)


@pytest.mark.asyncio
class TestConcurrentPostings:
    """Integration tests with real database"""

    async def test_concurrent_postings_keep_a_gapless_balance_chain(self, uow_factory, locks):
        """
        Test that interleaved consumptions and accumulations chain balance_before to balance_after
        """
        # Arrange
        assert (await accumulate(uow_factory, locks, CARLA, "2024-01", "1000")).is_ok()

        # Act
        results = await asyncio.gather(
            *[consume(uow_factory, locks, CARLA, "100") for _ in range(5)],
            *[accumulate(uow_factory, locks, CARLA, "2024-02", "50") for _ in range(5)],
        )

        # Assert
        assert all(result.is_ok() for result in results)

        async with uow_factory() as uow:
            history = await ListTransactions(uow.transactions).execute(CARLA, limit=100)
            state = await GetBalance(uow.ledgers, uow.balances).execute(CARLA, date(2024, 6, 1))
            verification = await VerifyLedger(uow.ledgers, uow.balances, uow.transactions).execute(CARLA)

        chain = sorted(history.value.transactions, key=lambda t: t.transaction_id)
        assert len(chain) == 11
        assert chain[0].balance_before == Decimal("0")
        for previous, current in zip(chain, chain[1:]):
            assert current.balance_before == previous.balance_after
            assert current.balance_after == current.balance_before + current.amount_kwh
        assert chain[-1].balance_after == Decimal("750")
        assert state.value.balance_kwh == Decimal("750")
        assert verification.value.discrepancies == []


@pytest.mark.asyncio
class TestBatchCancellation:
    """Integration tests with real database"""

    async def test_allocation_run_stops_between_customers(self, db_session, uow_factory, locks):
        """
        Test that cancelling a run keeps the customers already credited and a rerun completes the month
        """
        # Arrange
        plant = await seed_plant(db_session, "10000")
        await seed_subscribers(db_session, plant.id, [(ALICE, "500"), (BRUNO, "300"), (CARLA, "200")])
        cancel = asyncio.Event()
        use_case = RunAllocation(uow_factory, locks=locks)
        cancel_after_first(use_case, "_allocate_customer", cancel)

        # Act
        result = await use_case.execute(
            RunAllocationCommandDTO(plant_id=plant.id, month=MONTH), cancel_event=cancel
        )

        # Assert
        assert result.is_ok()
        run = result.value
        assert run.status == BatchStatus.CANCELLED
        assert run.cancelled is True
        assert run.summary == "1 of 3 succeeded"
        assert run.failed == 0
        assert [a.customer_id for a in run.allocations] == [ALICE]
        assert await bucket_balance(uow_factory, ALICE, MONTH) == Decimal("5000")

        async with uow_factory() as uow:
            untouched = await GetBalance(uow.ledgers, uow.balances).execute(BRUNO)
        assert untouched.is_err()
        assert untouched.error.code == "LEDGER_NOT_FOUND"

        # A rerun finishes the month without crediting ALICE twice
        rerun = await RunAllocation(uow_factory, locks=locks).execute(
            RunAllocationCommandDTO(plant_id=plant.id, month=MONTH, rerun=True)
        )
        assert rerun.value.status == BatchStatus.COMPLETED
        assert rerun.value.summary == "3 of 3 succeeded"
        assert rerun.value.superseded_count == 1
        assert await bucket_balance(uow_factory, ALICE, MONTH) == Decimal("5000")
        assert await bucket_balance(uow_factory, BRUNO, MONTH) == Decimal("3000")
        assert await bucket_balance(uow_factory, CARLA, MONTH) == Decimal("2000")

    async def test_expiration_sweep_stops_between_customers(self, uow_factory, locks):
        """
        Test that a cancelled sweep expires the first customer only and leaves the rest for later
        """
        # Arrange
        for customer_id in (ALICE, BRUNO, CARLA):
            assert (await accumulate(uow_factory, locks, customer_id, "2019-01", "500")).is_ok()
        cancel = asyncio.Event()
        use_case = SweepExpirations(uow_factory, locks=locks)
        cancel_after_first(use_case, "_sweep_customer", cancel)

        # Act
        result = await use_case.execute(as_of_date=date(2024, 1, 1), cancel_event=cancel)

        # Assert
        assert result.is_ok()
        sweep = result.value
        assert sweep.status == BatchStatus.CANCELLED
        assert sweep.cancelled is True
        assert sweep.summary == "1 of 3 succeeded"
        assert sweep.buckets_expired == 1
        assert sweep.expired[0].customer_id == ALICE
        assert await bucket_balance(uow_factory, ALICE, "2019-01") == Decimal("0")
        assert await bucket_balance(uow_factory, BRUNO, "2019-01") == Decimal("500")
        assert await bucket_balance(uow_factory, CARLA, "2019-01") == Decimal("500")


@pytest.mark.asyncio
class TestBatchFailureIsolation:
    """Integration tests with real database"""

    async def test_corrupted_bucket_fails_only_its_customer(self, uow_factory, locks):
        """
        Test that a sweep reports the inconsistent customer and still expires the others
        """
        # Arrange
        for customer_id in (ALICE, BRUNO):
            assert (await accumulate(uow_factory, locks, customer_id, "2019-01", "500")).is_ok()

        async with uow_factory() as uow:
            bucket = await uow.balances.get_by_customer_month(BRUNO, "2019-01")
            bucket.accumulated_kwh = Decimal("600")
            await uow.balances.save(bucket)
            await uow.commit()

        # Act
        result = await SweepExpirations(uow_factory, locks=locks).execute(as_of_date=date(2024, 1, 1))

        # Assert
        assert result.is_ok()
        sweep = result.value
        assert sweep.status == BatchStatus.PARTIAL_FAILURE
        assert sweep.error_code == "PARTIAL_BATCH_FAILURE"
        assert sweep.summary == "1 of 2 succeeded"
        assert [(f.customer_id, f.code) for f in sweep.failures] == [(BRUNO, "LEDGER_INTEGRITY_VIOLATION")]
        assert [item.customer_id for item in sweep.expired] == [ALICE]
        assert await bucket_balance(uow_factory, ALICE, "2019-01") == Decimal("0")
        assert await bucket_balance(uow_factory, BRUNO, "2019-01") == Decimal("500")

    async def test_paid_invoice_fails_only_its_customer_on_regeneration(self, db_session, uow_factory, locks):
        """
        Test that regenerating a month keeps a paid invoice, reports it, and recomputes the others
        """
        # Arrange
        plant = await seed_plant(db_session, "10000")
        await seed_subscribers(db_session, plant.id, [(ALICE, "600"), (BRUNO, "400")])
        allocation = await RunAllocation(uow_factory, locks=locks).execute(
            RunAllocationCommandDTO(plant_id=plant.id, month=MONTH)
        )
        assert allocation.is_ok()
        batch = GenerateInvoicesForMonth(uow_factory, unit_price=UNIT_PRICE, locks=locks)
        assert (await batch.execute(MONTH)).value.status == BatchStatus.COMPLETED

        async with uow_factory() as uow:
            paid = await ConfirmInvoicePayment(
                uow=uow,
                invoice_repo=uow.invoices,
                event_repo=uow.events,
                posting=CreditPostingService.from_uow(uow),
                locks=locks,
            ).execute(ConfirmPaymentCommandDTO(customer_id=ALICE, month=MONTH, as_of_date=date(2024, 2, 15)))
        assert paid.is_ok()

        # Act
        result = await batch.execute(MONTH, regenerate=True)

        # Assert
        assert result.is_ok()
        regenerated = result.value
        assert regenerated.status == BatchStatus.PARTIAL_FAILURE
        assert regenerated.error_code == "PARTIAL_BATCH_FAILURE"
        assert regenerated.summary == "1 of 2 succeeded"
        assert [(f.customer_id, f.code) for f in regenerated.failures] == [(ALICE, "STALE_INVOICE")]
        assert [(i.customer_id, i.final_amount) for i in regenerated.invoices] == [(BRUNO, Decimal("3230.00"))]
        assert await bucket_balance(uow_factory, ALICE, MONTH) == Decimal("0")
