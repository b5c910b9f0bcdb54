"""
Notification dispatcher posting lifecycle events to an HTTP webhook.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import aiohttp

from teleconsult.application.ports.services.notification_service import NotificationDispatcher
from teleconsult.core.exceptions import ExternalServiceError

logger = logging.getLogger("teleconsult.notifications")


class WebhookNotificationDispatcher(NotificationDispatcher):
    """POSTs ``{"event", "recipient", "payload", "sent_at"}`` to the configured URL.

    A shared ClientSession is opened lazily and closed by ``close()``.
    """

    def __init__(self, webhook_url: str, timeout_seconds: float = 5.0) -> None:
        self._webhook_url = webhook_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def dispatch(self, event_type: str, recipient: str, payload: Dict[str, Any]) -> None:
        body = {
            "event": event_type,
            "recipient": recipient,
            "payload": payload,
            "sent_at": datetime.utcnow().isoformat(),
        }
        try:
            async with self._get_session().post(self._webhook_url, json=body) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    raise ExternalServiceError(
                        "notification webhook",
                        f"HTTP {response.status}",
                        {"event": event_type, "response": error_text[:200]},
                    )
        except aiohttp.ClientError as e:
            raise ExternalServiceError("notification webhook", str(e), {"event": event_type}) from e

        logger.debug(f"Notification {event_type} delivered to webhook for {recipient}")

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
