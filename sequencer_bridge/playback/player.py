"""Playback — Scenario player.

Issues the helper Requests for each step in list order.  Scenario
references run the referenced scenario inline; a scenario that (directly or
indirectly) references itself is rejected when it is reached.

Outcomes are kept apart:
    - a pixel wait that times out    → ConditionNotMetError, status "condition_not_met"
    - a failed or lost helper call   → BridgeError,          status "error"
    - the playing task is cancelled  → CancelledError,       status "aborted"
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from sequencer_bridge.exceptions import (
    CircularReferenceError,
    ConditionNotMetError,
    PlaybackError,
    ScenarioNotFoundError,
    SequencerError,
)
from sequencer_bridge.ipc.client import HelperClient
from sequencer_bridge.logging import bind_request_context, clear_request_context, get_logger
from sequencer_bridge.protocol.models import (
    ClickStep,
    DelayStep,
    KeypressStep,
    PixelStateStep,
    PixelZoneStep,
    Scenario,
    ScenarioRefStep,
    Step,
)
from sequencer_bridge.scenarios.describe import describe_step
from sequencer_bridge.scenarios.store import ScenarioStore

log = get_logger(__name__)


class PlaybackStatus(str, Enum):
    RUNNING = "running"
    WAITING = "waiting"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERROR = "error"
    CONDITION_NOT_MET = "condition_not_met"


@dataclass(frozen=True)
class ExecutionProgress:
    current_step: int
    total_steps: int
    status: PlaybackStatus
    description: str | None = None
    error: str | None = None


ProgressCallback = Callable[[ExecutionProgress], Awaitable[None] | None]


class _Run:
    """Mutable bookkeeping of one play() call."""

    def __init__(self, total: int, names: dict[str, str]) -> None:
        self.total = total
        self.executed = 0
        self.names = names
        self.active: set[str] = set()


class ScenarioPlayer:
    """Plays scenarios through a :class:`HelperClient`.

    Usage::

        player = ScenarioPlayer(client, store)
        task = asyncio.create_task(player.play(scenario_id, on_progress=print))
        ...
        task.cancel()  # abort
    """

    def __init__(
        self,
        client: HelperClient,
        scenarios: ScenarioStore,
        wait_timeout_ms: int | None = None,
    ) -> None:
        self._client = client
        self._scenarios = scenarios
        self._wait_timeout_ms = wait_timeout_ms

    async def count_total_steps(self, scenario: Scenario, path: frozenset[str] = frozenset()) -> int:
        """Leaf steps of *scenario*, expanding every reference inline.

        A reference back into the current path counts as zero steps.
        """
        if scenario.id in path:
            return 0
        path = path | {scenario.id}
        count = 0
        for step in scenario.steps:
            if isinstance(step, ScenarioRefStep):
                sub = await self._scenarios.get(step.scenario_id)
                if sub is not None:
                    count += await self.count_total_steps(sub, path)
            else:
                count += 1
        return count

    async def play(self, scenario_id: str, on_progress: ProgressCallback | None = None) -> None:
        """Run the scenario to completion.

        Raises:
            ScenarioNotFoundError: unknown scenario (or referenced scenario).
            CircularReferenceError: a scenario references itself.
            ConditionNotMetError: a pixel wait timed out.
            BridgeError: the helper failed a Request or went away.
            asyncio.CancelledError: playback was aborted.
        """
        bind_request_context(scenario_id=scenario_id)
        try:
            await self._play(scenario_id, on_progress)
        finally:
            clear_request_context()

    async def _play(self, scenario_id: str, on_progress: ProgressCallback | None) -> None:
        scenario = await self._scenarios.require(scenario_id)
        names = {s.id: s.name for s in await self._scenarios.list_all()}
        run = _Run(await self.count_total_steps(scenario), names)
        log.info("playback_started", total_steps=run.total)

        try:
            await self._run_scenario(scenario, run, on_progress)
        except asyncio.CancelledError:
            log.info("playback_aborted", executed=run.executed)
            await _report(on_progress, ExecutionProgress(run.executed, run.total, PlaybackStatus.ABORTED))
            raise
        except ConditionNotMetError as exc:
            log.info("playback_condition_not_met", step=exc.step_index, description=exc.description)
            await _report(
                on_progress,
                ExecutionProgress(run.executed, run.total, PlaybackStatus.CONDITION_NOT_MET, exc.description, exc.message),
            )
            raise
        except SequencerError as exc:
            log.warning("playback_failed", error=exc.message, executed=run.executed)
            await _report(
                on_progress,
                ExecutionProgress(run.executed, run.total, PlaybackStatus.ERROR, error=exc.message),
            )
            raise

        await self._scenarios.touch(scenario.id)
        log.info("playback_completed", total_steps=run.total)
        await _report(on_progress, ExecutionProgress(run.total, run.total, PlaybackStatus.COMPLETED))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_scenario(self, scenario: Scenario, run: _Run, on_progress: ProgressCallback | None) -> None:
        if scenario.id in run.active:
            raise CircularReferenceError(scenario.id)
        run.active.add(scenario.id)
        for step in scenario.steps:
            description = describe_step(step, run.names)
            await _report(on_progress, ExecutionProgress(run.executed, run.total, PlaybackStatus.RUNNING, description))
            await self._run_step(step, run, on_progress, description)
        # Sequential reuse of a scenario is not a cycle.
        run.active.discard(scenario.id)

    async def _run_step(
        self, step: Step, run: _Run, on_progress: ProgressCallback | None, description: str
    ) -> None:
        if isinstance(step, ClickStep):
            await self._client.execute_click(step.position, step.button)
        elif isinstance(step, KeypressStep):
            await self._client.execute_keypress(step.key, step.modifiers)
        elif isinstance(step, DelayStep):
            await asyncio.sleep(step.ms / 1000)
        elif isinstance(step, PixelStateStep):
            await _report(on_progress, ExecutionProgress(run.executed, run.total, PlaybackStatus.WAITING, description))
            matched = await self._client.wait_for_pixel_state(
                step.position, step.color, step.threshold, self._wait_timeout_ms
            )
            if not matched:
                raise ConditionNotMetError(run.executed, description)
        elif isinstance(step, PixelZoneStep):
            await _report(on_progress, ExecutionProgress(run.executed, run.total, PlaybackStatus.WAITING, description))
            matched = await self._client.wait_for_pixel_zone(
                step.rect, step.color, step.threshold, self._wait_timeout_ms
            )
            if not matched:
                raise ConditionNotMetError(run.executed, description)
        elif isinstance(step, ScenarioRefStep):
            sub = await self._scenarios.get(step.scenario_id)
            if sub is None:
                raise ScenarioNotFoundError(step.scenario_id)
            await self._run_scenario(sub, run, on_progress)
            return
        else:
            raise PlaybackError(f"Unsupported step: {step!r}")
        run.executed += 1


async def _report(callback: ProgressCallback | None, progress: ExecutionProgress) -> None:
    if callback is None:
        return
    result = callback(progress)
    if hasattr(result, "__await__"):
        await result  # type: ignore[misc]
