"""Notification sinks: best-effort delivery of ledger events.

A sink is invoked only after the ledger mutation has committed. Delivery
failures surface as ExternalServiceError and are logged and swallowed by
``notify_best_effort``; they never roll anything back.
"""

import logging
from typing import Protocol

import httpx

from config.settings import settings
from src.iv_common.errors import ExternalServiceError
from src.iv_notify.events import LedgerEvent

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def send(self, event: LedgerEvent) -> None: ...


class LoggingNotificationSink:
    """Default sink: records the event in the application log."""

    async def send(self, event: LedgerEvent) -> None:
        logger.info(
            "notify %s account=%s amount=%d ref=%s status=%s",
            event.event_type,
            event.account_id,
            event.amount,
            event.reference_id,
            event.status,
        )


class WebhookNotificationSink:
    """POSTs each event as JSON to an outbound webhook (mailer, chat bot, ...)."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._transport = transport

    async def send(self, event: LedgerEvent) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(self._url, json=event.to_payload())
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalServiceError("notification webhook", str(e)) from e


async def notify_best_effort(sink: NotificationSink | None, event: LedgerEvent) -> None:
    """Deliver ``event`` if a sink is configured; log and swallow any failure."""
    if sink is None:
        return
    try:
        await sink.send(event)
    except ExternalServiceError as e:
        logger.warning("Notification dropped (%s): %s", event.event_type, e.message)
    except Exception:
        logger.exception("Notification sink crashed on %s", event.event_type)


def build_sink() -> NotificationSink:
    """Sink selected by settings: webhook when NOTIFICATION_WEBHOOK_URL is set, else log."""
    if settings.NOTIFICATION_WEBHOOK_URL:
        return WebhookNotificationSink(
            settings.NOTIFICATION_WEBHOOK_URL,
            timeout_seconds=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )
    return LoggingNotificationSink()
