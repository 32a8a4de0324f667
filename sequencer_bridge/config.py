"""Sequencer Bridge — Configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. User config:   ~/.config/sequencer/config.yaml
    3. An explicit ``--config`` file
    4. Environment variables prefixed with SEQUENCER_

Both processes read the same settings object: the helper uses the ``helper``
block, the orchestrator everything else.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR = Path("~/.config/sequencer")


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class HelperConfig(BaseModel):
    """Automation helper (executor) settings."""

    poll_interval_ms: Annotated[int, Field(ge=1, le=10_000)] = Field(
        default=50,
        description="Sleep between two checks of a pixel wait.",
    )
    default_wait_timeout_ms: Annotated[int, Field(ge=0)] = Field(
        default=30_000,
        description="Budget of a pixel wait when the Request carries no timeoutMs.",
    )
    input_monitor: bool = Field(
        default=True,
        description="Start the global mouse/keyboard listener that feeds mouseClicked/keyPressed.",
    )
    overlay_surface: bool = Field(
        default=True,
        description="Draw the recorder toolbar, pixel picker and delay input with Tk.",
    )


class BridgeConfig(BaseModel):
    """Orchestrator-side connection to the helper."""

    helper_command: list[str] = Field(
        default_factory=lambda: [sys.executable, "-m", "sequencer_bridge", "helper"],
        description="argv used to spawn the helper process.",
    )
    request_timeout_ms: Annotated[int, Field(ge=100)] = 10_000
    wait_timeout_buffer_ms: Annotated[int, Field(ge=0)] = Field(
        default=5_000,
        description="Added to a pixel wait's own budget to form its IPC timeout.",
    )


class StorageConfig(BaseModel):
    db_path: Path = Field(
        default=CONFIG_DIR / "sequencer.db",
        description="SQLite database holding scenarios and user settings.",
    )


class PlaybackConfig(BaseModel):
    wait_timeout_ms: int | None = Field(
        default=None,
        description="timeoutMs sent with pixel waits during playback (None: helper.default_wait_timeout_ms).",
    )


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SEQUENCER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    helper: HelperConfig = Field(default_factory=HelperConfig)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("storage", mode="before")
    @classmethod
    def expand_storage_paths(cls, v: object) -> object:
        if isinstance(v, dict) and isinstance(v.get("db_path"), str):
            v["db_path"] = Path(v["db_path"]).expanduser()
        return v

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from file + environment variables."""
        data: dict[str, object] = {}

        candidates = [(CONFIG_DIR / "config.yaml").expanduser()]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data.update(loaded)

        return cls(**data)


# Module-level singleton; replaced by ``Settings.load()`` at process startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
