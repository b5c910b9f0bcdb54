"""API-level errors and the mapping of domain error codes to HTTP statuses."""

from typing import Dict


class APIError(Exception):
    def __init__(self, code: str, message: str, http_status: int = 400, details: dict = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details


class ValidationError(APIError):
    def __init__(self, message: str, details: dict = None):
        super().__init__("INVALID_INPUT", message, 422, details)


class NotFoundError(APIError):
    def __init__(self, message: str, details: dict = None):
        super().__init__("NOT_FOUND", message, 404, details)


class UnauthorizedError(APIError):
    def __init__(self, message: str = "Unauthorized", details: dict = None):
        super().__init__("UNAUTHORIZED", message, 401, details)


class ForbiddenError(APIError):
    def __init__(self, message: str = "Forbidden", details: dict = None):
        super().__init__("FORBIDDEN", message, 403, details)


class ServiceUnavailableError(APIError):
    def __init__(self, message: str, details: dict = None):
        super().__init__("SERVICE_UNAVAILABLE", message, 503, details)


# Domain error codes -> HTTP status
DOMAIN_ERROR_STATUS: Dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "INVALID_CATEGORY": 400,
    "REQUEST_NOT_FOUND": 404,
    "FORBIDDEN": 403,
    "INVALID_TRANSITION": 409,
    "CAPACITY_EXCEEDED": 409,
    "NO_DOCTORS_AVAILABLE": 404,
    "CONCURRENT_MODIFICATION": 409,
}

# Infrastructure error codes -> HTTP status
INFRASTRUCTURE_ERROR_STATUS: Dict[str, int] = {
    "DATABASE_ERROR": 503,
    "EXTERNAL_SERVICE_ERROR": 502,
    "CONFIG_ERROR": 500,
}


def status_for_domain_error(error_code: str) -> int:
    return DOMAIN_ERROR_STATUS.get(error_code or "", 400)


def status_for_infrastructure_error(error_code: str) -> int:
    return INFRASTRUCTURE_ERROR_STATUS.get(error_code or "", 500)
