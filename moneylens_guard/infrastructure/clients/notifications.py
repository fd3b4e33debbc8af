"""Notification webhook client with exponential backoff retry logic"""

import asyncio
import logging
from collections import deque
from dataclasses import asdict
from typing import Any, Deque, Dict

import httpx

from moneylens_guard.config import settings
from moneylens_guard.domain.models import Notification
from moneylens_guard.infrastructure.observability.metrics import webhook_failure_counter, webhook_latency_histogram

logger = logging.getLogger(__name__)


def notification_payload(notification: Notification) -> Dict[str, Any]:
    payload = asdict(notification)
    payload["severity"] = notification.severity.value
    payload["timestamp"] = notification.timestamp.isoformat() if notification.timestamp else None
    return payload


class NotificationWebhookClient:
    """
    Outbox for notifications bound for an external webhook.

    Used as a notification sink: calling it only queues the event, so the
    synchronous core never blocks on the network. The queue is bounded and drops
    the oldest entry when full. flush() delivers the queue; the HTTP layer schedules
    it as a background task and the server lifespan runs it periodically.
    """

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout: float | None = None,
        queue_size: int | None = None,
    ):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.pending: Deque[Dict[str, Any]] = deque(maxlen=queue_size or settings.notification_queue_size)

    def __call__(self, notification: Notification) -> None:
        if not self.webhook_url:
            return
        if len(self.pending) == self.pending.maxlen:
            webhook_failure_counter.inc()
            logger.warning("Notification queue full, dropping oldest", extra={"title": self.pending[0]["title"]})
        self.pending.append(notification_payload(notification))

    async def flush(self) -> int:
        """Deliver queued notifications; returns how many were accepted"""
        delivered = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while self.pending:
                payload = self.pending.popleft()
                try:
                    await self._send(client, payload)
                    delivered += 1
                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    logger.error("Notification delivery failed", extra={"error": str(e), "title": payload["title"]})
        return delivered

    async def _send(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> None:
        """
        Post one notification.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on 5xx/4xx errors and network failures
        """
        attempt = 0
        while True:
            try:
                with webhook_latency_histogram.time():
                    response = await client.post(self.webhook_url, json=payload)
                    response.raise_for_status()
                    return

            except (httpx.HTTPStatusError, httpx.RequestError):
                attempt += 1
                webhook_failure_counter.inc()

                if attempt >= self.max_retries:
                    raise

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)
