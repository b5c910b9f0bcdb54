"""
Notification dispatcher interface for consultation lifecycle events.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class NotificationDispatcher(ABC):
    """Abstract interface for delivering lifecycle events to participants."""

    @abstractmethod
    async def dispatch(self, event_type: str, recipient: str, payload: Dict[str, Any]) -> None:
        """
        Deliver a single event.

        Args:
            event_type: Event name such as "request_assigned" or "status_changed"
            recipient: Username the event is addressed to
            payload: JSON-serialisable event body

        Implementations may raise; callers treat delivery as best-effort.
        """
        pass
