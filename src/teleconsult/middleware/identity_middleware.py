"""Identity middleware binding X-User-ID / X-User-Role from the upstream gateway."""

import logging
import re
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from teleconsult.api.utils.responses import error_response
from teleconsult.domain.enums.consultation import UserRole

logger = logging.getLogger("teleconsult.identity")

_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.@-]{1,100}$")


class IdentityMiddleware(BaseHTTPMiddleware):
    """Attach user_id and user_role to request.state for non-public paths."""

    PUBLIC_PATHS = {
        "/",
        "/favicon.ico",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/health",
        "/health/live",
        "/health/ready",
        "/categories",
    }
    PUBLIC_PATH_PREFIXES = {
        "/docs",
        "/redoc",
        "/categories",
    }

    def __init__(self, app, require_headers: bool = True) -> None:
        super().__init__(app)
        self.require_headers = require_headers

    def is_public_endpoint(self, path: str) -> bool:
        normalized_path = path.rstrip("/") or "/"
        if normalized_path in self.PUBLIC_PATHS:
            return True
        for prefix in self.PUBLIC_PATH_PREFIXES:
            if path.startswith(prefix + "/"):
                return True
        return False

    def _reject(self, request: Request, message: str, details: Optional[dict] = None) -> JSONResponse:
        return error_response(
            request, 401, "UNAUTHORIZED", message, details or {"path": request.url.path, "method": request.method}
        )

    async def dispatch(self, request: Request, call_next):
        request.state.user_id = None
        request.state.user_role = None

        user_id = (request.headers.get("X-User-ID") or "").strip()
        raw_role = (request.headers.get("X-User-Role") or "").strip().lower()

        if self.is_public_endpoint(request.url.path) and not user_id:
            return await call_next(request)

        if not user_id or not raw_role:
            if self.require_headers and not self.is_public_endpoint(request.url.path):
                logger.warning(
                    "Missing identity headers for %s %s", request.method, request.url.path
                )
                return self._reject(request, "X-User-ID and X-User-Role headers are required")
            return await call_next(request)

        if not _USERNAME_PATTERN.match(user_id):
            logger.warning("Invalid X-User-ID format: %s", user_id[:80])
            return self._reject(request, "X-User-ID has an invalid format", {"user_id": user_id[:80]})

        try:
            role = UserRole(raw_role)
        except ValueError:
            logger.warning("Invalid X-User-Role: %s", raw_role[:40])
            return self._reject(
                request,
                "X-User-Role must be one of: " + ", ".join(r.value for r in UserRole),
                {"role": raw_role[:40]},
            )

        request.state.user_id = user_id
        request.state.user_role = role
        return await call_next(request)
