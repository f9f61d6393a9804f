"""
Tests for platform settings loading.
"""

import pytest
from pydantic import ValidationError

from host.config import DEFAULT_POLL_INTERVAL, PlatformSettings, load_settings


class TestPlatformSettings:
    """Test suite for PlatformSettings."""

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)

        settings = PlatformSettings()

        assert settings.poll_interval == DEFAULT_POLL_INTERVAL
        assert settings.depict_id_prefix == "id"
        assert settings.log_level == "INFO"
        assert settings.port == 8080

    def test_environment_override(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DEPICTION_POLL_INTERVAL", "1000")
        monkeypatch.setenv("DEPICTION_DEPICT_ID_PREFIX", "c")

        settings = PlatformSettings()

        assert settings.poll_interval == 1000
        assert settings.depict_id_prefix == "c"

    def test_negative_poll_interval_rejected(self):
        with pytest.raises(ValidationError):
            PlatformSettings(poll_interval=-1)

    def test_empty_prefix_rejected(self):
        with pytest.raises(ValidationError):
            PlatformSettings(depict_id_prefix="")


class TestLoadSettings:
    """Test suite for load_settings."""

    def test_reads_env_file(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        # set then unset so the value loaded from .env is removed afterwards
        monkeypatch.setenv("DEPICTION_PORT", "0")
        monkeypatch.delenv("DEPICTION_PORT")
        (tmp_path / ".env").write_text("DEPICTION_PORT=9090\n")

        settings = load_settings()

        assert settings.port == 9090

    def test_invalid_configuration_raises_value_error(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DEPICTION_POLL_INTERVAL", "-5")

        with pytest.raises(ValueError, match="Failed to load configuration"):
            load_settings()
