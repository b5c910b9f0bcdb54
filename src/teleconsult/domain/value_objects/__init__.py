"""
Value objects package for domain layer.
"""

from .request_id import RequestId

__all__ = [
    "RequestId",
]
