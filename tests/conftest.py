"""Shared pytest fixtures for the sequencer-bridge test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from sequencer_bridge.config import Settings, override_settings
from sequencer_bridge.helper.screen import Display, PixelRegion
from sequencer_bridge.scenarios.settings_store import SettingsStore
from sequencer_bridge.scenarios.store import ScenarioStore


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    settings = Settings(
        storage={"db_path": str(tmp_path / "sequencer.db")},
        helper={
            "poll_interval_ms": 5,
            "default_wait_timeout_ms": 200,
            "input_monitor": False,
            "overlay_surface": False,
        },
        logging={"level": "debug", "format": "console"},
    )
    override_settings(settings)
    return settings


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def scenario_store(tmp_path: Path) -> ScenarioStore:
    store = ScenarioStore(tmp_path / "scenarios.db")
    await store.init()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def settings_store(tmp_path: Path) -> SettingsStore:
    store = SettingsStore(tmp_path / "scenarios.db")
    await store.init()
    yield store
    await store.close()


# ---------------------------------------------------------------------------
# Screen
# ---------------------------------------------------------------------------


class FakeCapture:
    """In-memory screen: ``color_at(x, y)`` decides every pixel."""

    def __init__(
        self,
        color_at: Callable[[int, int], tuple[int, int, int]] = lambda x, y: (0, 0, 0),
        width: int = 1920,
        height: int = 1080,
    ) -> None:
        self.color_at = color_at
        self._displays = [Display(0, 0, width, height)]
        self.grabs: list[tuple[int, int, int, int]] = []

    def displays(self) -> list[Display]:
        return list(self._displays)

    def grab(self, left: int, top: int, width: int, height: int) -> PixelRegion:
        self.grabs.append((left, top, width, height))
        data = bytearray()
        for y in range(top, top + height):
            for x in range(left, left + width):
                data.extend(self.color_at(x, y))
        return PixelRegion(width=width, height=height, rgb=bytes(data))


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def make_capture() -> type[FakeCapture]:
    return FakeCapture


# ---------------------------------------------------------------------------
# Orchestrator-side client double
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_client() -> MagicMock:
    """A HelperClient double whose bridge records subscriptions."""
    client = MagicMock()
    for name in (
        "check_permissions",
        "show_recorder_overlay",
        "hide_recorder_overlay",
        "set_recorder_state",
        "show_magnifier",
        "hide_magnifier",
        "execute_click",
        "execute_keypress",
        "get_pixel_color",
        "wait_for_pixel_state",
        "wait_for_pixel_zone",
    ):
        setattr(client, name, AsyncMock(return_value=None))
    client.wait_for_pixel_state.return_value = True
    client.wait_for_pixel_zone.return_value = True

    listeners: dict[str, list[Any]] = {}

    def _on(event: str, listener: Any) -> Callable[[], None]:
        listeners.setdefault(event, []).append(listener)
        return lambda: listeners[event].remove(listener)

    client.bridge.on.side_effect = _on
    client.listeners = listeners
    return client
