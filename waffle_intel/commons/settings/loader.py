"""Layered settings loader: JSON files overridden by environment variables."""

import json
import os
from pathlib import Path
from typing import Any

from waffle_intel.commons.settings.models import Settings

ENV_PREFIX = "WAFFLE_INTEL__"
CONFIG_DIR_VAR = "WAFFLE_INTEL_CONFIG_DIR"


class SettingsLoader:
    """Builds a Settings object from layered sources.

    Later layers win:
    1. ``appsettings.json``
    2. ``appsettings.{environment}.json``
    3. ``WAFFLE_INTEL__SECTION__KEY`` environment variables
    """

    def __init__(
        self,
        config_dir: Path | None = None,
        environment: str | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            config_dir: Directory holding the appsettings files. Defaults to
                ``$WAFFLE_INTEL_CONFIG_DIR`` or ``./config``.
            environment: Environment name (dev, staging, prod). Defaults to
                ``WAFFLE_INTEL__APP__ENVIRONMENT`` or ``dev``.
        """
        self.config_dir = config_dir or Path(os.getenv(CONFIG_DIR_VAR, "config"))
        self.environment = environment or os.getenv(
            f"{ENV_PREFIX}APP__ENVIRONMENT", "dev"
        )

    def load(self) -> Settings:
        """Merge every layer and validate the result."""
        merged = self._read_json("appsettings.json")
        for layer in (
            self._read_json(f"appsettings.{self.environment}.json"),
            self._env_overrides(),
        ):
            merged = _deep_merge(merged, layer)
        return Settings(**merged)

    def _env_overrides(self) -> dict[str, Any]:
        """Translate prefixed env vars into a nested dict.

        ``WAFFLE_INTEL__SEARCH__MAX_LIMIT=20`` becomes
        ``{"search": {"max_limit": 20}}``.
        """
        overrides: dict[str, Any] = {}
        for key, raw in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            *parents, leaf = key[len(ENV_PREFIX) :].lower().split("__")
            node = overrides
            for part in parents:
                node = node.setdefault(part, {})
            node[leaf] = _coerce(raw)
        return overrides

    def _read_json(self, filename: str) -> dict[str, Any]:
        path = self.config_dir / filename
        if not path.exists():
            return {}
        with path.open(encoding="utf-8") as f:
            return dict(json.load(f))


def _coerce(value: str) -> Any:
    """Best-effort conversion of an env string to bool/int/float/JSON."""
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    if value.startswith(("[", "{")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass
    return value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = _deep_merge(current, value)
        else:
            result[key] = value
    return result


class _SettingsHolder:
    instance: Settings | None = None


def get_settings(
    config_dir: Path | None = None,
    environment: str | None = None,
    *,
    reload: bool = False,
) -> Settings:
    """Get or create the process-wide settings.

    Args:
        config_dir: Optional config directory override.
        environment: Optional environment override.
        reload: Force a fresh load from files and environment.

    Returns:
        Settings instance.
    """
    if _SettingsHolder.instance is None or reload:
        loader = SettingsLoader(config_dir=config_dir, environment=environment)
        _SettingsHolder.instance = loader.load()
    return _SettingsHolder.instance


def reset_settings() -> None:
    """Drop the cached settings. Used by tests."""
    _SettingsHolder.instance = None
