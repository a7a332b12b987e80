"""Notification Service Implementations

Provides concrete implementations for delivering ledger events.
"""

import logging
from typing import Optional
import httpx
from solar_ledger.app.services.notification_service import NotificationService
from solar_ledger.domain.ledger_event import LedgerEvent, LedgerEventType

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    """
    Notification service that logs events

    Useful for development and testing, or as a fallback.
    Expiration events are logged as warnings since they are alerts.
    """

    async def send_event(self, event: LedgerEvent) -> bool:
        """
        Log ledger event

        Args:
            event: LedgerEvent to log

        Returns:
            Always True (logging never fails)
        """
        level = logging.WARNING if event.event_type == LedgerEventType.CREDITS_EXPIRED else logging.INFO
        logger.log(
            level,
            f"[LEDGER EVENT] Type: {event.event_type.value}, "
            f"Customer: {event.customer_id}, "
            f"Payload: {event.payload_json}"
        )
        return True


class WebhookNotificationService(NotificationService):
    """
    Notification service that sends events via HTTP webhook

    Sends JSON payload to configured webhook URL.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        """
        Initialize webhook notification service

        Args:
            webhook_url: URL to POST events to
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def send_event(self, event: LedgerEvent) -> bool:
        """
        Send ledger event via webhook

        Args:
            event: LedgerEvent to deliver

        Returns:
            True if webhook call succeeded, False otherwise
        """
        payload = event.to_message()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                logger.info(
                    f"Webhook notification sent for event {event.id} "
                    f"({event.event_type.value}), status: {response.status_code}"
                )
                return True
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to send webhook notification for event {event.id}: {e}"
            )
            return False


class CompositeNotificationService(NotificationService):
    """
    Notification service that delegates to multiple services

    Useful for sending to multiple channels (e.g., log + webhook).
    """

    def __init__(self, services: list[NotificationService]):
        """
        Initialize composite notification service

        Args:
            services: List of notification services to delegate to
        """
        self.services = services

    async def send_event(self, event: LedgerEvent) -> bool:
        """
        Send ledger event to all configured services

        Args:
            event: LedgerEvent to deliver

        Returns:
            True only if every service succeeded, so the event is retried
            while any channel is failing
        """
        success = True
        for service in self.services:
            try:
                if not await service.send_event(event):
                    success = False
            except Exception as e:
                logger.error(f"Notification service {type(service).__name__} failed: {e}")
                success = False
        return success


def create_notification_service(webhook_url: Optional[str] = None) -> NotificationService:
    """
    Factory function to create appropriate notification service

    Args:
        webhook_url: Optional webhook URL. If provided, creates composite
                     service with logging + webhook. Otherwise, just logging.

    Returns:
        Configured NotificationService
    """
    services: list[NotificationService] = [LoggingNotificationService()]

    if webhook_url:
        services.append(WebhookNotificationService(webhook_url))

    if len(services) == 1:
        return services[0]

    return CompositeNotificationService(services)
