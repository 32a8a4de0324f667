"""Recorder — Recording session state machine.

    idle ──start_naming──▶ naming ──finish_naming / cancel_naming──▶ idle
    idle ──start_recording──▶ recording ──stop_recording──▶ idle

While recording, ``insert_after_index`` is where the next step goes
(``None`` appends) and moves forward with every step added.  Transitions
that do not apply to the current status are logged and ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from sequencer_bridge.logging import get_logger
from sequencer_bridge.scenarios.store import DEFAULT_SCENARIO_NAME

log = get_logger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    NAMING = "naming"
    RECORDING = "recording"


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus = SessionStatus.IDLE
    scenario_id: str | None = None
    insert_after_index: int | None = None
    name: str = ""


class RecorderSession:
    def __init__(self) -> None:
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state.status is SessionStatus.RECORDING

    @property
    def is_naming(self) -> bool:
        return self._state.status is SessionStatus.NAMING

    @property
    def scenario_id(self) -> str | None:
        return self._state.scenario_id

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def start_recording(self, scenario_id: str, insert_after_index: int | None = None) -> bool:
        if self._state.status is not SessionStatus.IDLE:
            log.warning("start_recording_ignored", status=self._state.status.value)
            return False
        self._state = SessionState(SessionStatus.RECORDING, scenario_id, insert_after_index)
        log.info("recording_started", scenario_id=scenario_id, insert_after_index=insert_after_index)
        return True

    def advance(self, index: int) -> None:
        """Record that a step now sits at *index*; the next one goes after it."""
        if self.is_recording:
            self._state = replace(self._state, insert_after_index=index)

    def stop_recording(self) -> bool:
        if not self.is_recording:
            log.warning("stop_recording_ignored", status=self._state.status.value)
            return False
        log.info("recording_stopped", scenario_id=self._state.scenario_id)
        self._state = SessionState()
        return True

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    def start_naming(self, scenario_id: str, initial_name: str = "") -> bool:
        if self._state.status is not SessionStatus.IDLE:
            log.warning("start_naming_ignored", status=self._state.status.value)
            return False
        self._state = SessionState(SessionStatus.NAMING, scenario_id, name=initial_name)
        return True

    def append_to_name(self, text: str) -> None:
        if self.is_naming:
            self._state = replace(self._state, name=self._state.name + text)

    def backspace_name(self) -> None:
        if self.is_naming:
            self._state = replace(self._state, name=self._state.name[:-1])

    def finish_naming(self) -> str | None:
        """Leave naming; returns the final name (blank → default) or None if not naming."""
        if not self.is_naming:
            return None
        name = self._state.name.strip() or DEFAULT_SCENARIO_NAME
        self._state = SessionState()
        return name

    def cancel_naming(self) -> None:
        if self.is_naming:
            self._state = SessionState()
