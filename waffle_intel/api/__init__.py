"""API layer - REST endpoints."""

from waffle_intel.api.main import app, create_app

__all__ = [
    "app",
    "create_app",
]
