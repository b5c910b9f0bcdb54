"""FastAPI dependency providers.

Services come from the ServiceContainer stored on app.state by the lifespan;
the caller identity comes from IdentityMiddleware.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from teleconsult.application.services.availability_registry import AvailabilityRegistry
from teleconsult.application.services.category_catalog import CategoryCatalog
from teleconsult.application.services.matching_engine import MatchingEngine
from teleconsult.application.services.request_lifecycle import RequestLifecycleManager
from teleconsult.core.container import ServiceContainer
from teleconsult.domain.enums.consultation import UserRole

from .errors import ForbiddenError, ServiceUnavailableError, UnauthorizedError


@dataclass(frozen=True)
class CurrentUser:
    """Caller identity supplied by the upstream gateway."""

    username: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise ServiceUnavailableError("Service container is not initialised")
    return container


def get_registry(container: Annotated[ServiceContainer, Depends(get_container)]) -> AvailabilityRegistry:
    return container.registry


def get_matching_engine(container: Annotated[ServiceContainer, Depends(get_container)]) -> MatchingEngine:
    return container.matching_engine


def get_lifecycle(container: Annotated[ServiceContainer, Depends(get_container)]) -> RequestLifecycleManager:
    return container.lifecycle


def get_catalog(container: Annotated[ServiceContainer, Depends(get_container)]) -> CategoryCatalog:
    return container.catalog


def get_current_user(request: Request) -> CurrentUser:
    """Identity bound by IdentityMiddleware; 401 when absent."""
    user_id = getattr(request.state, "user_id", None)
    role = getattr(request.state, "user_role", None)
    if not user_id or role is None:
        raise UnauthorizedError("X-User-ID and X-User-Role headers are required")
    return CurrentUser(username=user_id, role=role)


def require_doctor(user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
    if user.role != UserRole.DOCTOR:
        raise ForbiddenError("Only doctors can perform this action", {"role": user.role.value})
    return user


def require_patient(user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
    if user.role != UserRole.PATIENT:
        raise ForbiddenError("Only patients can perform this action", {"role": user.role.value})
    return user


def require_admin(user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
    if user.role != UserRole.ADMIN:
        raise ForbiddenError("Only administrators can perform this action", {"role": user.role.value})
    return user


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]
RegistryDep = Annotated[AvailabilityRegistry, Depends(get_registry)]
MatchingEngineDep = Annotated[MatchingEngine, Depends(get_matching_engine)]
LifecycleDep = Annotated[RequestLifecycleManager, Depends(get_lifecycle)]
CatalogDep = Annotated[CategoryCatalog, Depends(get_catalog)]
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
DoctorDep = Annotated[CurrentUser, Depends(require_doctor)]
PatientDep = Annotated[CurrentUser, Depends(require_patient)]
AdminDep = Annotated[CurrentUser, Depends(require_admin)]
