"""Unit tests — Recording CLI command with a scripted helper client."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from sequencer_bridge.cli.main import app
from sequencer_bridge.protocol import constants as c
from sequencer_bridge.protocol.models import Event, RecorderState
from sequencer_bridge.scenarios.store import ScenarioStore

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(f"storage:\n  db_path: {tmp_path / 'cli.db'}\n")
    return path


def _script_helper(client: MagicMock, events: list[tuple[str, dict[str, Any]]]) -> list[asyncio.Task[None]]:
    """Fire *events* at the client's listeners once the overlay is shown."""
    tasks: list[asyncio.Task[None]] = []

    async def _play() -> None:
        for name, data in events:
            for listener in list(client.listeners.get(name, [])):
                await listener(Event(event=name, data=data))

    async def _show(position: Any = None) -> None:
        tasks.append(asyncio.get_running_loop().create_task(_play()))

    client.show_recorder_overlay.side_effect = _show
    client.bridge.running = True
    return tasks


def _patched_helper(client: MagicMock):
    @asynccontextmanager
    async def _open(settings: Any) -> AsyncIterator[MagicMock]:
        yield client

    return patch("sequencer_bridge.cli.commands.record.open_helper", _open)


def _scenarios(tmp_path: Path) -> list[tuple[str, list[str]]]:
    async def _load() -> list[tuple[str, list[str]]]:
        store = ScenarioStore(tmp_path / "cli.db")
        await store.init()
        try:
            return [(s.name, [step.type for step in s.steps]) for s in await store.list_all()]
        finally:
            await store.close()

    return asyncio.run(_load())


@pytest.mark.unit
class TestRecordCLI:
    def test_records_new_scenario_until_overlay_closed(
        self, config_file: Path, mock_client: MagicMock, tmp_path: Path
    ) -> None:
        _script_helper(
            mock_client,
            [
                (c.EVENT_OVERLAY_ICON_CLICKED, {"icon": "action"}),
                (c.EVENT_MOUSE_CLICKED, {"position": {"x": 100, "y": 400}, "button": "left"}),
                (c.EVENT_OVERLAY_ICON_CLICKED, {"icon": "time"}),
                (c.EVENT_TIME_INPUT_COMPLETED, {"ms": 250}),
                (c.EVENT_OVERLAY_CLOSED, {}),
            ],
        )
        with _patched_helper(mock_client):
            result = runner.invoke(app, ["record", "--name", "Login", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "left click at (100, 400)" in result.output
        assert _scenarios(tmp_path) == [("Login", ["click", "delay"])]
        mock_client.set_recorder_state.assert_any_await(RecorderState.IDLE)
        assert mock_client.listeners and all(not v for v in mock_client.listeners.values())

    def test_prompts_for_name(self, config_file: Path, mock_client: MagicMock, tmp_path: Path) -> None:
        _script_helper(mock_client, [(c.EVENT_OVERLAY_CLOSED, {})])
        with _patched_helper(mock_client):
            result = runner.invoke(app, ["record", "--config", str(config_file)], input="Checkout\n")
        assert result.exit_code == 0, result.output
        assert _scenarios(tmp_path) == [("Checkout", [])]

    def test_helper_exit_ends_recording(self, config_file: Path, mock_client: MagicMock, tmp_path: Path) -> None:
        _script_helper(mock_client, [])
        mock_client.bridge.running = False
        with _patched_helper(mock_client):
            result = runner.invoke(app, ["record", "--name", "Gone", "--config", str(config_file)])
        assert result.exit_code == 0, result.output
        mock_client.set_recorder_state.assert_not_awaited()

    def test_unknown_scenario(self, config_file: Path, mock_client: MagicMock) -> None:
        with _patched_helper(mock_client):
            result = runner.invoke(app, ["record", "missing", "--config", str(config_file)])
        assert result.exit_code == 1
        mock_client.show_recorder_overlay.assert_not_awaited()
