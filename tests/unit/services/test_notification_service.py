"""Unit tests for notification service implementations

Tests cover:
- Webhook delivery success and HTTP failure
- Composite service reporting failure of any channel
- Factory selection by webhook URL
"""

import json
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from solar_ledger.adapter.services.notification_service import (
    CompositeNotificationService,
    LoggingNotificationService,
    WebhookNotificationService,
    create_notification_service,
)
from solar_ledger.domain.ledger_event import LedgerEvent, LedgerEventType


@pytest.fixture
def sample_event():
    return LedgerEvent(
        id=1,
        event_type=LedgerEventType.CREDITS_CONSUMED,
        customer_id="maria@example.com",
        payload_json=json.dumps({"amount_kwh": "-400.000000"}),
    )


def mock_http_client(post):
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.post = post
    return client


@pytest.mark.asyncio
class TestWebhookNotificationService:
    async def test_posts_event_message(self, sample_event):
        """
        Given: A reachable webhook
        When: An event is sent
        Then: The event message is posted as JSON and delivery succeeds
        """
        # Arrange
        response = MagicMock(status_code=200)
        post = AsyncMock(return_value=response)
        service = WebhookNotificationService("https://hooks.example.com/ledger")

        # Act
        with patch(
            "solar_ledger.adapter.services.notification_service.httpx.AsyncClient",
            return_value=mock_http_client(post),
        ):
            sent = await service.send_event(sample_event)

        # Assert
        assert sent is True
        args, kwargs = post.call_args
        assert args[0] == "https://hooks.example.com/ledger"
        assert kwargs["json"]["type"] == "credits.consumed"
        assert kwargs["json"]["amount_kwh"] == "-400.000000"

    async def test_http_error_returns_false(self, sample_event):
        post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        service = WebhookNotificationService("https://hooks.example.com/ledger")

        with patch(
            "solar_ledger.adapter.services.notification_service.httpx.AsyncClient",
            return_value=mock_http_client(post),
        ):
            sent = await service.send_event(sample_event)

        assert sent is False


@pytest.mark.asyncio
class TestCompositeNotificationService:
    async def test_fails_when_any_channel_fails(self, sample_event):
        # Arrange
        failing = MagicMock()
        failing.send_event = AsyncMock(side_effect=RuntimeError("down"))
        service = CompositeNotificationService([LoggingNotificationService(), failing])

        # Act
        sent = await service.send_event(sample_event)

        # Assert
        assert sent is False

    async def test_succeeds_when_all_channels_succeed(self, sample_event):
        service = CompositeNotificationService([LoggingNotificationService(), LoggingNotificationService()])

        assert await service.send_event(sample_event) is True


class TestCreateNotificationService:
    def test_logging_only_without_webhook(self):
        assert isinstance(create_notification_service(None), LoggingNotificationService)

    def test_composite_with_webhook(self):
        service = create_notification_service("https://hooks.example.com/ledger")

        assert isinstance(service, CompositeNotificationService)
        assert isinstance(service.services[1], WebhookNotificationService)
