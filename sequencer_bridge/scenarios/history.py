"""Scenarios — Undo history for step deletion.

Deleting through :class:`HistoryStore` remembers the removed step and its
index; :meth:`HistoryStore.undo` puts it back where it was.  The stack keeps
the 50 most recent deletions.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from sequencer_bridge.exceptions import ScenarioNotFoundError, StepIndexError
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.models import Step, now_ms
from sequencer_bridge.scenarios.describe import describe_step
from sequencer_bridge.scenarios.store import ScenarioStore

log = get_logger(__name__)

MAX_UNDO_STACK_SIZE = 50


@dataclass(frozen=True)
class HistoryEntry:
    scenario_id: str
    step_index: int
    step: Step
    timestamp: int = field(default_factory=now_ms)


class HistoryStore:
    def __init__(self, scenarios: ScenarioStore, max_size: int = MAX_UNDO_STACK_SIZE) -> None:
        self._scenarios = scenarios
        self._stack: deque[HistoryEntry] = deque(maxlen=max_size)

    def can_undo(self) -> bool:
        return bool(self._stack)

    def undo_description(self) -> str | None:
        if not self._stack:
            return None
        return f"Restore {describe_step(self._stack[-1].step)}"

    async def delete_step(self, scenario_id: str, step_index: int) -> Step:
        step = await self._scenarios.remove_step(scenario_id, step_index)
        self._stack.append(HistoryEntry(scenario_id, step_index, step))
        return step

    async def undo(self) -> bool:
        """Re-insert the most recently deleted step.  False if there is nothing to undo."""
        if not self._stack:
            return False
        entry = self._stack.pop()
        scenario = await self._scenarios.get(entry.scenario_id)
        if scenario is None:
            log.warning("undo_scenario_gone", scenario_id=entry.scenario_id)
            return False
        index = min(entry.step_index, len(scenario.steps))
        try:
            await self._scenarios.insert_step(entry.scenario_id, index, entry.step)
        except (ScenarioNotFoundError, StepIndexError) as exc:
            log.warning("undo_failed", error=exc.message)
            return False
        return True

    def clear(self) -> None:
        self._stack.clear()
