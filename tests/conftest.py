"""
Shared fixtures: memory-backed service container with a controllable clock
and a notifier that records every event.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Tuple

import pytest

from teleconsult.application.ports.services.notification_service import NotificationDispatcher
from teleconsult.core.config import AvailabilitySettings, DatabaseSettings, IdentitySettings, Settings
from teleconsult.core.container import build_container

START_TIME = datetime(2024, 3, 4, 9, 30, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier(NotificationDispatcher):
    """Collects dispatched events instead of delivering them."""

    def __init__(self, fail: bool = False) -> None:
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []
        self.fail = fail

    async def dispatch(self, event_type: str, recipient: str, payload: Dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("notification backend down")
        self.events.append((event_type, recipient, payload))

    def recipients(self, event_type: str) -> List[str]:
        return [recipient for event, recipient, _ in self.events if event == event_type]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="testing",
        database=DatabaseSettings(backend="memory"),
        availability=AvailabilitySettings(cache_ttl_seconds=30, stale_minutes=10),
        identity=IdentitySettings(require_headers=True),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def container(settings, clock, notifier):
    return build_container(settings, clock=clock, notifier=notifier)


@pytest.fixture
def registry(container):
    return container.registry


@pytest.fixture
def engine(container):
    return container.matching_engine


@pytest.fixture
def lifecycle(container):
    return container.lifecycle


@pytest.fixture
def catalog(container):
    return container.catalog
