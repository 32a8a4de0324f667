"""Helper — Recorder Mode state machine.

``state`` × ``subState`` decides which live input is forwarded to the
orchestrator: clicks only in ``action×mouse``, key presses only in
``action×keyboard``.  Every other event originates from the overlay's own
UI and is always forwarded.

The mode is an immutable value held in a single cell.  Writers (the
``setRecorderState`` handler) replace it wholesale; readers (the input
listener thread) take one snapshot per captured input, so an input is
always judged against exactly one mode.
"""

from __future__ import annotations

from dataclasses import dataclass

from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.constants import EVENT_KEY_PRESSED, EVENT_MOUSE_CLICKED
from sequencer_bridge.protocol.models import RecorderState, RecorderSubState

log = get_logger(__name__)

_EXPECTED_SUB_STATES: dict[RecorderState, frozenset[RecorderSubState]] = {
    RecorderState.IDLE: frozenset(),
    RecorderState.ACTION: frozenset({RecorderSubState.MOUSE, RecorderSubState.KEYBOARD}),
    RecorderState.TRANSITION: frozenset({RecorderSubState.PIXEL, RecorderSubState.TIME}),
}


@dataclass(frozen=True)
class RecorderMode:
    state: RecorderState = RecorderState.IDLE
    sub_state: RecorderSubState | None = None

    @property
    def is_conventional(self) -> bool:
        """False for pairs such as ``transition×keyboard``; those are still stored."""
        if self.sub_state is None:
            return True
        return self.sub_state in _EXPECTED_SUB_STATES[self.state]

    @property
    def captures_clicks(self) -> bool:
        return self.state is RecorderState.ACTION and self.sub_state is RecorderSubState.MOUSE

    @property
    def captures_keys(self) -> bool:
        return self.state is RecorderState.ACTION and self.sub_state is RecorderSubState.KEYBOARD

    def forwards(self, event: str) -> bool:
        if event == EVENT_MOUSE_CLICKED:
            return self.captures_clicks
        if event == EVENT_KEY_PRESSED:
            return self.captures_keys
        return True


IDLE = RecorderMode()


class RecorderModeCell:
    """Last-writer-wins holder of the current :class:`RecorderMode`."""

    def __init__(self) -> None:
        self._mode = IDLE

    @property
    def current(self) -> RecorderMode:
        return self._mode

    def set(self, state: RecorderState, sub_state: RecorderSubState | None = None) -> RecorderMode:
        mode = RecorderMode(state, sub_state)
        if not mode.is_conventional:
            log.info("recorder_state_unconventional", state=state.value, sub_state=sub_state.value)
        self._mode = mode
        log.debug("recorder_state_set", state=state.value, sub_state=sub_state.value if sub_state else None)
        return mode

    def reset(self) -> None:
        self._mode = IDLE
