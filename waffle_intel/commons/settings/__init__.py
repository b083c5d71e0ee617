"""Configuration models and loader."""

from waffle_intel.commons.settings.loader import (
    SettingsLoader,
    get_settings,
    reset_settings,
)
from waffle_intel.commons.settings.models import Settings

__all__ = ["Settings", "SettingsLoader", "get_settings", "reset_settings"]
