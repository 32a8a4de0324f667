"""Unit tests — Recorder Mode filtering."""

from __future__ import annotations

import pytest

from sequencer_bridge.helper.recorder_mode import IDLE, RecorderMode, RecorderModeCell
from sequencer_bridge.protocol.constants import (
    EVENT_KEY_PRESSED,
    EVENT_MOUSE_CLICKED,
    EVENT_OVERLAY_ICON_CLICKED,
    EVENT_PIXEL_SELECTED,
)
from sequencer_bridge.protocol.models import RecorderState, RecorderSubState

A, T, I = RecorderState.ACTION, RecorderState.TRANSITION, RecorderState.IDLE
MOUSE, KEYBOARD, PIXEL, TIME = (
    RecorderSubState.MOUSE,
    RecorderSubState.KEYBOARD,
    RecorderSubState.PIXEL,
    RecorderSubState.TIME,
)


@pytest.mark.unit
class TestRecorderMode:
    @pytest.mark.parametrize(
        "state,sub_state,clicks,keys",
        [
            (I, None, False, False),
            (A, MOUSE, True, False),
            (A, KEYBOARD, False, True),
            (A, None, False, False),
            (T, PIXEL, False, False),
            (T, TIME, False, False),
            (T, MOUSE, False, False),
            (T, KEYBOARD, False, False),
        ],
    )
    def test_live_input_gate(self, state, sub_state, clicks, keys) -> None:
        mode = RecorderMode(state, sub_state)
        assert mode.forwards(EVENT_MOUSE_CLICKED) is clicks
        assert mode.forwards(EVENT_KEY_PRESSED) is keys

    def test_ui_events_always_forwarded(self) -> None:
        for mode in (IDLE, RecorderMode(A, MOUSE), RecorderMode(T, TIME)):
            assert mode.forwards(EVENT_OVERLAY_ICON_CLICKED)
            assert mode.forwards(EVENT_PIXEL_SELECTED)

    def test_conventional_pairs(self) -> None:
        assert RecorderMode(A, KEYBOARD).is_conventional
        assert RecorderMode(T, PIXEL).is_conventional
        assert not RecorderMode(T, KEYBOARD).is_conventional
        assert not RecorderMode(I, MOUSE).is_conventional


@pytest.mark.unit
class TestRecorderModeCell:
    def test_starts_idle(self) -> None:
        assert RecorderModeCell().current == IDLE

    def test_last_writer_wins(self) -> None:
        cell = RecorderModeCell()
        cell.set(A, MOUSE)
        cell.set(A, KEYBOARD)
        assert cell.current == RecorderMode(A, KEYBOARD)

    def test_unconventional_pair_stored(self) -> None:
        cell = RecorderModeCell()
        cell.set(T, KEYBOARD)
        assert cell.current.state is T
        assert cell.current.sub_state is KEYBOARD
        assert not cell.current.captures_keys

    def test_reset(self) -> None:
        cell = RecorderModeCell()
        cell.set(A, MOUSE)
        cell.reset()
        assert cell.current == IDLE
