"""API route handlers."""

from waffle_intel.api.openapi.routes import (
    captions,
    catchup,
    conversation,
    health,
    search,
    webhooks,
)

__all__ = [
    "captions",
    "catchup",
    "conversation",
    "health",
    "search",
    "webhooks",
]
