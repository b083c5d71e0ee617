"""Unit tests for settings models and loader."""

import json
from pathlib import Path

import pytest

from waffle_intel.commons.settings.loader import (
    SettingsLoader,
    _coerce,
    _deep_merge,
    get_settings,
    reset_settings,
)
from waffle_intel.commons.settings.models import (
    AppSettings,
    CatchUpSettings,
    ConversationStarterSettings,
    DatabaseSettings,
    MediaSettings,
    SearchSettings,
    ServerSettings,
    Settings,
)


class TestAppSettings:
    """Tests for AppSettings model."""

    def test_default_values(self):
        settings = AppSettings()
        assert settings.name == "waffle-intel"
        assert settings.environment == "dev"
        assert settings.log_level == "INFO"

    def test_invalid_environment(self):
        with pytest.raises(ValueError):
            AppSettings(environment="invalid")  # type: ignore[arg-type]


class TestServerSettings:
    """Tests for ServerSettings model."""

    def test_default_port(self):
        assert ServerSettings().port == 3000

    def test_port_validation(self):
        with pytest.raises(ValueError):
            ServerSettings(port=0)
        with pytest.raises(ValueError):
            ServerSettings(port=70000)


class TestDatabaseSettings:
    """Tests for the Postgres pool settings."""

    def test_dsn_from_parts(self):
        db = DatabaseSettings(host="db", port=6543, username="svc", password="pw")
        assert db.build_dsn() == "postgresql://svc:pw@db:6543/postgres"

    def test_dsn_without_password(self):
        assert DatabaseSettings().build_dsn() == (
            "postgresql://postgres@localhost:5432/postgres"
        )

    def test_explicit_dsn_wins(self):
        db = DatabaseSettings(dsn="postgresql://x@y/z", host="ignored")
        assert db.build_dsn() == "postgresql://x@y/z"

    def test_pool_bounds(self):
        with pytest.raises(ValueError):
            DatabaseSettings(min_pool_size=5, max_pool_size=2)


class TestFeatureSettings:
    """Tests for defaults the services rely on."""

    def test_search_defaults(self):
        s = SearchSettings()
        assert s.default_similarity_threshold == 0.6
        assert (s.min_similarity_threshold, s.max_similarity_threshold) == (0.1, 1.0)
        assert s.min_query_length == 2

    def test_search_threshold_bounds(self):
        with pytest.raises(ValueError):
            SearchSettings(min_similarity_threshold=0.9, max_similarity_threshold=0.5)

    def test_media_defaults(self):
        m = MediaSettings()
        assert m.default_duration_seconds == 180
        assert m.thumbnail_offset_seconds == 1.0
        assert (m.audio_sample_rate, m.audio_channels) == (16000, 1)
        assert ".mp4" in m.video_extensions

    def test_catchup_defaults(self):
        c = CatchUpSettings()
        assert (c.min_days, c.default_days, c.max_days) == (1, 10, 30)
        assert c.max_waffles == 50

    def test_conversation_throttle_off_by_default(self):
        c = ConversationStarterSettings()
        assert c.throttle_enabled is False
        assert len(c.fallback_prompts) == c.prompt_count == 2


class TestSettingsLoader:
    """Tests for SettingsLoader."""

    def test_load_empty_config(self, tmp_path):
        settings = SettingsLoader(config_dir=tmp_path, environment="dev").load()
        assert isinstance(settings, Settings)
        assert settings.app.name == "waffle-intel"

    def test_environment_file_overrides_base(self, tmp_path):
        (tmp_path / "appsettings.json").write_text(
            json.dumps({"server": {"port": 8000, "workers": 1}})
        )
        (tmp_path / "appsettings.prod.json").write_text(
            json.dumps({"server": {"workers": 4}, "app": {"environment": "prod"}})
        )
        settings = SettingsLoader(config_dir=tmp_path, environment="prod").load()
        assert settings.server.port == 8000
        assert settings.server.workers == 4

    def test_env_vars_override_files(self, tmp_path, monkeypatch):
        (tmp_path / "appsettings.json").write_text(
            json.dumps({"search": {"max_limit": 30}})
        )
        monkeypatch.setenv("WAFFLE_INTEL__SEARCH__MAX_LIMIT", "20")
        monkeypatch.setenv("WAFFLE_INTEL__CONVERSATION__THROTTLE_ENABLED", "true")
        settings = SettingsLoader(config_dir=tmp_path, environment="dev").load()
        assert settings.search.max_limit == 20
        assert settings.conversation.throttle_enabled is True

    def test_repo_config_loads(self):
        config_dir = Path(__file__).resolve().parents[2] / "config"
        settings = SettingsLoader(config_dir=config_dir, environment="dev").load()
        assert settings.search.default_similarity_threshold == 0.6
        assert settings.catchup.cache_ttl_seconds == 21600


class TestLoaderHelpers:
    """Tests for merge and coercion helpers."""

    def test_deep_merge(self):
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        override = {"a": {"b": 10, "e": 4}, "f": 5}
        assert _deep_merge(base, override) == {
            "a": {"b": 10, "c": 2, "e": 4},
            "d": 3,
            "f": 5,
        }

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("true", True),
            ("False", False),
            ("42", 42),
            ("0.5", 0.5),
            ('["*"]', ["*"]),
            ("plain", "plain"),
        ],
    )
    def test_coerce(self, raw, expected):
        assert _coerce(raw) == expected


class TestGetSettings:
    """Tests for get_settings function."""

    def setup_method(self):
        reset_settings()

    def teardown_method(self):
        reset_settings()

    def test_cached(self, tmp_path):
        assert get_settings(config_dir=tmp_path) is get_settings(config_dir=tmp_path)

    def test_reload(self, tmp_path):
        first = get_settings(config_dir=tmp_path)
        assert get_settings(config_dir=tmp_path, reload=True) is not first
