"""Request ID middleware: accept or generate X-Request-ID and echo it back."""

import re
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request id to request.state and the response headers."""

    header_name = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(self.header_name)
        request_id = incoming if incoming and _REQUEST_ID_PATTERN.match(incoming) else str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response
