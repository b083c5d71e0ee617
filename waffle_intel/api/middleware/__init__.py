"""API middleware components."""

from waffle_intel.api.middleware.error_handler import APIError, error_handler_middleware
from waffle_intel.api.middleware.logging import LoggingMiddleware

__all__ = [
    "APIError",
    "LoggingMiddleware",
    "error_handler_middleware",
]
