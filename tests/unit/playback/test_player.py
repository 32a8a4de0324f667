"""Unit tests — Scenario player."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, call

import pytest

from sequencer_bridge.exceptions import (
    CircularReferenceError,
    ConditionNotMetError,
    RequestFailedError,
    ScenarioNotFoundError,
)
from sequencer_bridge.logging import _inject_context_vars
from sequencer_bridge.playback.player import ExecutionProgress, PlaybackStatus, ScenarioPlayer
from sequencer_bridge.protocol.models import (
    RGB,
    ClickStep,
    DelayStep,
    KeypressStep,
    Modifier,
    MouseButton,
    PixelStateStep,
    PixelZoneStep,
    Point,
    Rect,
    ScenarioRefStep,
)
from sequencer_bridge.scenarios.store import ScenarioStore

GREEN = RGB(r=0, g=255, b=0)


async def _scenario(store: ScenarioStore, name: str, *steps) -> str:
    scenario = await store.create(name)
    for step in steps:
        await store.add_step(scenario.id, step)
    return scenario.id


@pytest.mark.unit
class TestPlay:
    async def test_steps_issued_in_order(self, mock_client: MagicMock, scenario_store: ScenarioStore) -> None:
        order: list[str] = []
        mock_client.execute_click.side_effect = lambda *a: order.append("click")
        mock_client.execute_keypress.side_effect = lambda *a: order.append("key")
        scenario_id = await _scenario(
            scenario_store,
            "s",
            ClickStep(position=Point(x=100, y=400)),
            KeypressStep(key="s", modifiers=[Modifier.CMD]),
            ClickStep(position=Point(x=5, y=5), button=MouseButton.RIGHT),
        )
        await ScenarioPlayer(mock_client, scenario_store).play(scenario_id)
        assert order == ["click", "key", "click"]
        assert mock_client.execute_click.await_args_list[0] == call(Point(x=100, y=400), MouseButton.LEFT)
        mock_client.execute_keypress.assert_awaited_once_with("s", [Modifier.CMD])

    async def test_delay_runs_locally(self, mock_client, scenario_store) -> None:
        scenario_id = await _scenario(scenario_store, "s", DelayStep(ms=0))
        await ScenarioPlayer(mock_client, scenario_store).play(scenario_id)
        mock_client.execute_click.assert_not_awaited()

    async def test_waits_pass_timeout(self, mock_client, scenario_store) -> None:
        scenario_id = await _scenario(
            scenario_store,
            "s",
            PixelStateStep(position=Point(x=1, y=1), color=GREEN, threshold=15),
            PixelZoneStep(rect=Rect(x=0, y=0, width=5, height=5), color=GREEN, threshold=15),
        )
        await ScenarioPlayer(mock_client, scenario_store, wait_timeout_ms=2000).play(scenario_id)
        mock_client.wait_for_pixel_state.assert_awaited_once_with(Point(x=1, y=1), GREEN, 15, 2000)
        mock_client.wait_for_pixel_zone.assert_awaited_once_with(Rect(x=0, y=0, width=5, height=5), GREEN, 15, 2000)

    async def test_wait_timeout_is_condition_not_met(self, mock_client, scenario_store) -> None:
        mock_client.wait_for_pixel_state.return_value = False
        scenario_id = await _scenario(
            scenario_store,
            "s",
            ClickStep(position=Point(x=1, y=1)),
            PixelStateStep(position=Point(x=1, y=1), color=GREEN, threshold=15),
            ClickStep(position=Point(x=2, y=2)),
        )
        progress: list[ExecutionProgress] = []
        with pytest.raises(ConditionNotMetError) as exc_info:
            await ScenarioPlayer(mock_client, scenario_store).play(scenario_id, on_progress=progress.append)
        assert exc_info.value.step_index == 1
        assert progress[-1].status is PlaybackStatus.CONDITION_NOT_MET
        assert mock_client.execute_click.await_count == 1

    async def test_helper_error_is_error_status(self, mock_client, scenario_store) -> None:
        mock_client.execute_click.side_effect = RequestFailedError("executeClick", "Handler error: boom")
        scenario_id = await _scenario(scenario_store, "s", ClickStep(position=Point(x=1, y=1)))
        progress: list[ExecutionProgress] = []
        with pytest.raises(RequestFailedError):
            await ScenarioPlayer(mock_client, scenario_store).play(scenario_id, on_progress=progress.append)
        assert progress[-1].status is PlaybackStatus.ERROR

    async def test_progress_reports(self, mock_client, scenario_store) -> None:
        scenario_id = await _scenario(
            scenario_store,
            "s",
            ClickStep(position=Point(x=1, y=1)),
            PixelStateStep(position=Point(x=1, y=1), color=GREEN, threshold=15),
        )
        progress: list[ExecutionProgress] = []

        async def on_progress(p: ExecutionProgress) -> None:
            progress.append(p)

        await ScenarioPlayer(mock_client, scenario_store).play(scenario_id, on_progress=on_progress)
        statuses = [p.status for p in progress]
        assert statuses == [
            PlaybackStatus.RUNNING,
            PlaybackStatus.RUNNING,
            PlaybackStatus.WAITING,
            PlaybackStatus.COMPLETED,
        ]
        assert progress[-1].current_step == progress[-1].total_steps == 2

    async def test_unknown_scenario(self, mock_client, scenario_store) -> None:
        with pytest.raises(ScenarioNotFoundError):
            await ScenarioPlayer(mock_client, scenario_store).play("missing")

    async def test_log_context_cleared_after_play(self, mock_client, scenario_store) -> None:
        scenario_id = await _scenario(scenario_store, "s", DelayStep(ms=0))
        await ScenarioPlayer(mock_client, scenario_store).play(scenario_id)
        assert _inject_context_vars(None, "info", {}) == {}
        with pytest.raises(ScenarioNotFoundError):
            await ScenarioPlayer(mock_client, scenario_store).play("missing")
        assert _inject_context_vars(None, "info", {}) == {}

    async def test_completion_touches_scenario(self, mock_client, scenario_store) -> None:
        scenario_id = await _scenario(scenario_store, "s")
        scenario = await scenario_store.require(scenario_id)
        scenario.last_used_at = 0
        await scenario_store.save(scenario)
        await ScenarioPlayer(mock_client, scenario_store).play(scenario_id)
        assert (await scenario_store.require(scenario_id)).last_used_at > 0

    async def test_abort_reports_aborted(self, mock_client, scenario_store) -> None:
        gate = asyncio.Event()

        async def blocked(*args) -> bool:
            await gate.wait()
            return True

        mock_client.wait_for_pixel_state.side_effect = blocked
        scenario_id = await _scenario(
            scenario_store, "s", PixelStateStep(position=Point(x=1, y=1), color=GREEN, threshold=15)
        )
        progress: list[ExecutionProgress] = []
        task = asyncio.create_task(
            ScenarioPlayer(mock_client, scenario_store).play(scenario_id, on_progress=progress.append)
        )
        while not progress or progress[-1].status is not PlaybackStatus.WAITING:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert progress[-1].status is PlaybackStatus.ABORTED


@pytest.mark.unit
class TestScenarioReferences:
    async def test_reference_runs_inline(self, mock_client, scenario_store) -> None:
        inner = await _scenario(scenario_store, "inner", KeypressStep(key="a"), KeypressStep(key="b"))
        outer = await _scenario(
            scenario_store,
            "outer",
            ClickStep(position=Point(x=1, y=1)),
            ScenarioRefStep(scenario_id=inner),
            ScenarioRefStep(scenario_id=inner),
        )
        player = ScenarioPlayer(mock_client, scenario_store)
        assert await player.count_total_steps(await scenario_store.require(outer)) == 5
        await player.play(outer)
        assert [c.args[0] for c in mock_client.execute_keypress.await_args_list] == ["a", "b", "a", "b"]

    async def test_cycle_rejected(self, mock_client, scenario_store) -> None:
        a = await scenario_store.create("a")
        b_id = await _scenario(scenario_store, "b", ScenarioRefStep(scenario_id=a.id))
        await scenario_store.add_step(a.id, ScenarioRefStep(scenario_id=b_id))
        with pytest.raises(CircularReferenceError):
            await ScenarioPlayer(mock_client, scenario_store).play(a.id)

    async def test_missing_reference(self, mock_client, scenario_store) -> None:
        scenario_id = await _scenario(scenario_store, "s", ScenarioRefStep(scenario_id="gone"))
        with pytest.raises(ScenarioNotFoundError):
            await ScenarioPlayer(mock_client, scenario_store).play(scenario_id)

    async def test_count_total_steps(self, mock_client, scenario_store) -> None:
        inner = await _scenario(scenario_store, "inner", DelayStep(ms=0), DelayStep(ms=0))
        outer = await _scenario(scenario_store, "outer", DelayStep(ms=0), ScenarioRefStep(scenario_id=inner))
        player = ScenarioPlayer(mock_client, scenario_store)
        assert await player.count_total_steps(await scenario_store.require(outer)) == 3
