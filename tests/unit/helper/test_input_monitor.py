"""Unit tests — Global input listener gating."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from sequencer_bridge.helper.input_monitor import InputMonitor
from sequencer_bridge.helper.recorder_mode import RecorderModeCell
from sequencer_bridge.protocol.constants import EVENT_KEY_PRESSED, EVENT_MOUSE_CLICKED
from sequencer_bridge.protocol.models import Modifier, MouseButton, Point, RecorderState, RecorderSubState


@pytest.fixture
def mode() -> RecorderModeCell:
    return RecorderModeCell()


@pytest.fixture
def pump() -> MagicMock:
    return MagicMock()


@pytest.fixture
def monitor(mode: RecorderModeCell, pump: MagicMock) -> InputMonitor:
    return InputMonitor(mode, pump)


def _emitted(pump: MagicMock) -> list[tuple[str, dict]]:
    return [(c.args[0], c.args[1].to_wire()) for c in pump.emit_threadsafe.call_args_list]


@pytest.mark.unit
class TestGate:
    def test_click_dropped_while_idle(self, monitor: InputMonitor, pump: MagicMock) -> None:
        assert not monitor.handle_click(Point(x=1, y=1), MouseButton.LEFT)
        pump.emit_threadsafe.assert_not_called()

    def test_click_forwarded_in_action_mouse(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.MOUSE)
        assert monitor.handle_click(Point(x=100, y=400), MouseButton.LEFT)
        assert _emitted(pump) == [
            (EVENT_MOUSE_CLICKED, {"position": {"x": 100.0, "y": 400.0}, "button": "left"})
        ]

    def test_key_dropped_in_action_mouse(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.MOUSE)
        assert not monitor.handle_key("a", [])

    def test_key_forwarded_in_action_keyboard(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.KEYBOARD)
        assert monitor.handle_key("s", [Modifier.CMD])
        assert _emitted(pump) == [(EVENT_KEY_PRESSED, {"key": "s", "modifiers": ["cmd"]})]

    def test_click_dropped_in_action_keyboard(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.KEYBOARD)
        assert not monitor.handle_click(Point(x=1, y=1), MouseButton.LEFT)

    def test_nothing_forwarded_in_transition(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.TRANSITION, RecorderSubState.PIXEL)
        assert not monitor.handle_click(Point(x=1, y=1), MouseButton.LEFT)
        assert not monitor.handle_key("a", [])

    def test_mode_change_affects_later_input_only(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.MOUSE)
        monitor.handle_click(Point(x=1, y=1), MouseButton.LEFT)
        mode.set(RecorderState.IDLE)
        monitor.handle_click(Point(x=2, y=2), MouseButton.LEFT)
        assert len(_emitted(pump)) == 1

    def test_clicks_on_overlay_ignored(self, mode, pump) -> None:
        monitor = InputMonitor(mode, pump, ignore_point=lambda p: p.x < 50)
        mode.set(RecorderState.ACTION, RecorderSubState.MOUSE)
        assert not monitor.handle_click(Point(x=10, y=10), MouseButton.LEFT)
        assert monitor.handle_click(Point(x=60, y=10), MouseButton.LEFT)


@pytest.mark.unit
class TestListenerCallbacks:
    def test_release_ignored(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.MOUSE)
        monitor._on_click(5, 6, SimpleNamespace(name="left"), False)
        pump.emit_threadsafe.assert_not_called()

    def test_middle_button_ignored(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.MOUSE)
        monitor._on_click(5, 6, SimpleNamespace(name="middle"), True)
        pump.emit_threadsafe.assert_not_called()

    def test_right_press(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.MOUSE)
        monitor._on_click(5, 6, SimpleNamespace(name="right"), True)
        assert _emitted(pump)[0][1]["button"] == "right"

    def test_held_modifiers_attached(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.KEYBOARD)
        monitor._on_press(SimpleNamespace(name="shift"))
        monitor._on_press(SimpleNamespace(name="ctrl_l"))
        monitor._on_press(SimpleNamespace(name=None, char="\x13"))
        monitor._on_release(SimpleNamespace(name="ctrl_l"))
        monitor._on_press(SimpleNamespace(name=None, char="A"))
        assert _emitted(pump) == [
            (EVENT_KEY_PRESSED, {"key": "s", "modifiers": ["ctrl", "shift"]}),
            (EVENT_KEY_PRESSED, {"key": "a", "modifiers": ["shift"]}),
        ]

    def test_special_keys_named(self, monitor, mode, pump) -> None:
        mode.set(RecorderState.ACTION, RecorderSubState.KEYBOARD)
        monitor._on_press(SimpleNamespace(name="enter"))
        monitor._on_press(SimpleNamespace(name="esc"))
        monitor._on_press(SimpleNamespace(name="caps_lock"))
        assert [e[1]["key"] for e in _emitted(pump)] == ["return", "escape"]
