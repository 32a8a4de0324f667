"""Unit tests — Settings loading."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from sequencer_bridge.config import Settings, get_settings, override_settings


@pytest.mark.unit
class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.helper.poll_interval_ms == 50
        assert settings.helper.default_wait_timeout_ms == 30_000
        assert settings.bridge.request_timeout_ms == 10_000
        assert settings.bridge.wait_timeout_buffer_ms == 5_000
        assert settings.bridge.helper_command[:3] == [sys.executable, "-m", "sequencer_bridge"]
        assert settings.playback.wait_timeout_ms is None

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SEQUENCER_HELPER__POLL_INTERVAL_MS", "20")
        assert Settings().helper.poll_interval_ms == 20

    def test_yaml_file(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("helper:\n  default_wait_timeout_ms: 1000\nstorage:\n  db_path: ~/x.db\n")
        settings = Settings.load(config_file=config)
        assert settings.helper.default_wait_timeout_ms == 1000
        assert settings.storage.db_path == Path("~/x.db").expanduser()

    def test_invalid_poll_interval(self) -> None:
        with pytest.raises(ValueError):
            Settings(helper={"poll_interval_ms": 0})

    def test_override_singleton(self, test_settings: Settings) -> None:
        assert get_settings() is test_settings
        override_settings(Settings())
        assert get_settings() is not test_settings
