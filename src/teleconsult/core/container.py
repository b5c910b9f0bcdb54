"""
Dependency container for the Teleconsult application.

The container is built once per process (in the FastAPI lifespan or a worker
entry point) and passed around explicitly; there is no module-level instance.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from teleconsult.adapters.db.memory.availability_repository import InMemoryAvailabilityRepository
from teleconsult.adapters.db.memory.consultation_request_repository import InMemoryConsultationRequestRepository
from teleconsult.adapters.notifications.log_notification_dispatcher import LogNotificationDispatcher
from teleconsult.adapters.notifications.webhook_notification_dispatcher import WebhookNotificationDispatcher
from teleconsult.application.ports.repositories.availability_repo import AvailabilityRepository
from teleconsult.application.ports.repositories.consultation_request_repo import ConsultationRequestRepository
from teleconsult.application.ports.services.notification_service import NotificationDispatcher
from teleconsult.application.services.availability_registry import AvailabilityRegistry
from teleconsult.application.services.category_catalog import CategoryCatalog
from teleconsult.application.services.matching_engine import MatchingEngine
from teleconsult.application.services.request_lifecycle import RequestLifecycleManager

from .config import Settings
from .exceptions import ConfigurationError


@dataclass
class ServiceContainer:
    """Wired application services."""

    settings: Settings
    availability_repository: AvailabilityRepository
    request_repository: ConsultationRequestRepository
    notifier: NotificationDispatcher
    catalog: CategoryCatalog
    registry: AvailabilityRegistry
    matching_engine: MatchingEngine
    lifecycle: RequestLifecycleManager
    resources: Dict[str, Any] = field(default_factory=dict)

    async def close(self) -> None:
        """Flush pending notifications and release external resources."""
        await self.lifecycle.drain_notifications()
        if isinstance(self.notifier, WebhookNotificationDispatcher):
            await self.notifier.close()
        client = self.resources.pop("mongo_client", None)
        if client is not None:
            client.close()


def _build_repositories(settings: Settings):
    backend = settings.database.backend
    if backend == "memory":
        return InMemoryAvailabilityRepository(), InMemoryConsultationRequestRepository()
    if backend == "mongo":
        from teleconsult.adapters.db.mongo.repositories.availability_repository import MongoAvailabilityRepository
        from teleconsult.adapters.db.mongo.repositories.consultation_request_repository import (
            MongoConsultationRequestRepository,
        )

        return MongoAvailabilityRepository(), MongoConsultationRequestRepository()
    raise ConfigurationError(f"Unsupported database backend: {backend}")


def _build_notifier(settings: Settings) -> NotificationDispatcher:
    if settings.notifications.backend == "webhook":
        return WebhookNotificationDispatcher(
            settings.notifications.webhook_url, settings.notifications.timeout_seconds
        )
    return LogNotificationDispatcher()


def build_container(
    settings: Settings,
    clock: Callable[[], datetime] = datetime.utcnow,
    notifier: Optional[NotificationDispatcher] = None,
    availability_repository: Optional[AvailabilityRepository] = None,
    request_repository: Optional[ConsultationRequestRepository] = None,
) -> ServiceContainer:
    """Wire repositories and services for the configured backends.

    Any collaborator can be passed in explicitly (tests use this to inject a
    clock, a recording notifier or pre-filled repositories). The mongo
    backend additionally needs ``init_mongo`` to have run.
    """
    if availability_repository is None or request_repository is None:
        default_availability, default_requests = _build_repositories(settings)
        availability_repository = availability_repository or default_availability
        request_repository = request_repository or default_requests
    notifier = notifier or _build_notifier(settings)

    catalog = CategoryCatalog()
    registry = AvailabilityRegistry(availability_repository, settings.availability, clock=clock)
    matching_engine = MatchingEngine(registry, catalog, settings.matching, clock=clock)
    lifecycle = RequestLifecycleManager(
        request_repository,
        registry,
        matching_engine,
        catalog,
        notifier,
        settings.matching,
        clock=clock,
    )
    return ServiceContainer(
        settings=settings,
        availability_repository=availability_repository,
        request_repository=request_repository,
        notifier=notifier,
        catalog=catalog,
        registry=registry,
        matching_engine=matching_engine,
        lifecycle=lifecycle,
    )


async def start_container(settings: Settings) -> ServiceContainer:
    """Connect the configured backends and wire the services.

    Used by the API lifespan and the standalone sweeper; the caller owns the
    returned container and must ``close()`` it.
    """
    mongo_client = None
    if settings.database.backend == "mongo":
        from teleconsult.adapters.db.mongo.database import init_mongo

        mongo_client = await init_mongo(settings.database)

    container = build_container(settings)
    if mongo_client is not None:
        container.resources["mongo_client"] = mongo_client
    return container
