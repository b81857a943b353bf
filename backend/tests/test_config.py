"""Tests for YAML settings loading."""
import pytest
from pydantic import ValidationError

from chatrelay import config as config_module
from chatrelay.config import (
    AppSettings,
    ChatSettings,
    LoggingSettings,
    get_config,
    load_settings,
    reset_config,
)


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


class TestDefaults:

    def test_defaults(self):
        settings = AppSettings()
        assert settings.server.port == 5000
        assert settings.server.allowed_origins == ["*"]
        assert settings.chat.default_room == "global"
        assert settings.chat.history_capacity == 1000
        assert settings.chat.history_page_size == 50
        assert settings.logging.level == "info"

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValidationError):
            ChatSettings(history_capacity=0)

    def test_log_level_normalised(self):
        assert LoggingSettings(level=" DEBUG ").level == "debug"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            LoggingSettings(level="chatty")


class TestLoading:

    def test_missing_file_yields_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "absent.yaml")
        assert settings == AppSettings()

    def test_empty_file_yields_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path) == AppSettings()

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "chatrelay.settings.yaml"
        path.write_text(
            "server:\n"
            "  port: 6001\n"
            "chat:\n"
            "  default_room: lobby\n"
            "  history_capacity: 200\n"
            "logging:\n"
            "  level: warning\n"
        )
        settings = load_settings(path)
        assert settings.server.port == 6001
        assert settings.server.host == "0.0.0.0"
        assert settings.chat.default_room == "lobby"
        assert settings.chat.history_capacity == 200
        assert settings.chat.history_page_size == 50
        assert settings.logging.level == "warning"

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("chat:\n  default_room: env-room\n")
        monkeypatch.setenv(config_module.SETTINGS_ENV_VAR, str(path))

        assert get_config().chat.default_room == "env-room"

    def test_get_config_is_cached(self, tmp_path, monkeypatch):
        monkeypatch.setenv(config_module.SETTINGS_ENV_VAR, str(tmp_path / "none.yaml"))
        assert get_config() is get_config()
