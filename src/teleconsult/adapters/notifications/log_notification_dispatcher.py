"""Notification dispatcher that only records events in the application log."""

import logging
from typing import Any, Dict

from teleconsult.application.ports.services.notification_service import NotificationDispatcher

logger = logging.getLogger("teleconsult.notifications")


class LogNotificationDispatcher(NotificationDispatcher):
    """Writes each event to the log instead of delivering it."""

    async def dispatch(self, event_type: str, recipient: str, payload: Dict[str, Any]) -> None:
        logger.info(
            f"Notification {event_type} -> {recipient}",
            extra={"extra_data": {"event_type": event_type, "recipient": recipient, **payload}},
        )
