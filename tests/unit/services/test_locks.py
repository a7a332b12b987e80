"""Unit tests for KeyedLockRegistry"""

import asyncio
import pytest

from solar_ledger.app.services.locks import KeyedLockRegistry, customer_lock_key, plant_month_lock_key


@pytest.mark.asyncio
class TestKeyedLockRegistry:
    async def test_serializes_same_key(self):
        """
        Given: Two tasks holding the same customer key
        When: Both run concurrently
        Then: Their critical sections do not interleave
        """
        # Arrange
        registry = KeyedLockRegistry()
        trace = []

        async def work(name):
            async with registry.hold(customer_lock_key("maria@example.com")):
                trace.append(f"{name}-start")
                await asyncio.sleep(0.01)
                trace.append(f"{name}-end")

        # Act
        await asyncio.gather(work("a"), work("b"))

        # Assert
        assert trace in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    async def test_different_keys_do_not_block(self):
        registry = KeyedLockRegistry()

        async with registry.hold("customer:a"):
            assert registry.is_locked("customer:a") is True
            assert registry.is_locked("customer:b") is False
            async with registry.hold("customer:b"):
                assert registry.is_locked("customer:b") is True

    async def test_idle_keys_are_forgotten(self):
        registry = KeyedLockRegistry()

        async with registry.hold("customer:a"):
            pass

        assert registry.is_locked("customer:a") is False
        assert registry._locks == {}


def test_lock_keys():
    assert customer_lock_key("maria@example.com") == "customer:maria@example.com"
    assert plant_month_lock_key(7, "2024-01") == "plant:7:2024-01"
