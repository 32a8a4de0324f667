"""Helper — Standing global input listener.

Feeds ``mouseClicked`` and ``keyPressed`` from OS-level hooks (``pynput``).
Each captured input is judged against one snapshot of the Recorder Mode,
taken inside the listener callback, and only then queued; a mode change
that lands after the input was captured can never re-label it.
"""

from __future__ import annotations

import threading
from typing import Any, Callable

from sequencer_bridge.helper.events import EventPump
from sequencer_bridge.helper.recorder_mode import RecorderModeCell
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.constants import EVENT_KEY_PRESSED, EVENT_MOUSE_CLICKED
from sequencer_bridge.protocol.models import Modifier, MouseButton, Point
from sequencer_bridge.protocol.params import KeyPressedData, MouseClickedData

log = get_logger(__name__)

# pynput ``Key`` names → recorder key names
_SPECIAL_KEYS: dict[str, str] = {
    "enter": "return",
    "tab": "tab",
    "space": "space",
    "backspace": "backspace",
    "esc": "escape",
    "delete": "forwarddelete",
    "left": "left",
    "right": "right",
    "up": "up",
    "down": "down",
    "home": "home",
    "end": "end",
    "page_up": "pageup",
    "page_down": "pagedown",
}
_SPECIAL_KEYS.update({f"f{n}": f"f{n}" for n in range(1, 13)})

_MODIFIER_KEYS: dict[str, Modifier] = {
    "ctrl": Modifier.CTRL,
    "ctrl_l": Modifier.CTRL,
    "ctrl_r": Modifier.CTRL,
    "alt": Modifier.ALT,
    "alt_l": Modifier.ALT,
    "alt_r": Modifier.ALT,
    "alt_gr": Modifier.ALT,
    "shift": Modifier.SHIFT,
    "shift_l": Modifier.SHIFT,
    "shift_r": Modifier.SHIFT,
    "cmd": Modifier.CMD,
    "cmd_l": Modifier.CMD,
    "cmd_r": Modifier.CMD,
}

_MODIFIER_ORDER = (Modifier.CTRL, Modifier.ALT, Modifier.SHIFT, Modifier.CMD)


class InputMonitor:
    """Global mouse/keyboard hook gated by the Recorder Mode.

    ``ignore_point`` lets the overlay exclude clicks on its own surface.
    """

    def __init__(
        self,
        mode: RecorderModeCell,
        pump: EventPump,
        ignore_point: Callable[[Point], bool] | None = None,
    ) -> None:
        self._mode = mode
        self._pump = pump
        self._ignore_point = ignore_point
        self._held: set[Modifier] = set()
        self._held_lock = threading.Lock()
        self._listeners: list[Any] = []

    @property
    def running(self) -> bool:
        return bool(self._listeners)

    def start(self) -> None:
        if self._listeners:
            return
        from pynput import keyboard, mouse

        self._listeners = [
            mouse.Listener(on_click=self._on_click),
            keyboard.Listener(on_press=self._on_press, on_release=self._on_release),
        ]
        for listener in self._listeners:
            listener.daemon = True
            listener.start()
        log.info("input_monitor_started")

    def stop(self) -> None:
        for listener in self._listeners:
            listener.stop()
        if self._listeners:
            log.info("input_monitor_stopped")
        self._listeners = []

    # ------------------------------------------------------------------
    # Gate (called on listener threads, or directly by tests)
    # ------------------------------------------------------------------

    def handle_click(self, position: Point, button: MouseButton) -> bool:
        """Forward a click if the current mode captures clicks.  Returns True if queued."""
        mode = self._mode.current
        if not mode.forwards(EVENT_MOUSE_CLICKED):
            return False
        if self._ignore_point is not None and self._ignore_point(position):
            return False
        self._pump.emit_threadsafe(EVENT_MOUSE_CLICKED, MouseClickedData(position=position, button=button))
        return True

    def handle_key(self, key: str, modifiers: list[Modifier]) -> bool:
        """Forward a key press if the current mode captures keys.  Returns True if queued."""
        mode = self._mode.current
        if not mode.forwards(EVENT_KEY_PRESSED):
            return False
        self._pump.emit_threadsafe(EVENT_KEY_PRESSED, KeyPressedData(key=key, modifiers=modifiers))
        return True

    # ------------------------------------------------------------------
    # pynput callbacks
    # ------------------------------------------------------------------

    def _on_click(self, x: float, y: float, button: Any, pressed: bool) -> None:
        if not pressed:
            return
        name = getattr(button, "name", "")
        if name not in ("left", "right"):
            return
        self.handle_click(Point(x=x, y=y), MouseButton(name))

    def _on_press(self, key: Any) -> None:
        name = getattr(key, "name", None)
        if name in _MODIFIER_KEYS:
            with self._held_lock:
                self._held.add(_MODIFIER_KEYS[name])
            return
        recorded = _key_name(key)
        if recorded is None:
            return
        with self._held_lock:
            modifiers = [m for m in _MODIFIER_ORDER if m in self._held]
        self.handle_key(recorded, modifiers)

    def _on_release(self, key: Any) -> None:
        name = getattr(key, "name", None)
        if name in _MODIFIER_KEYS:
            with self._held_lock:
                self._held.discard(_MODIFIER_KEYS[name])


def _key_name(key: Any) -> str | None:
    name = getattr(key, "name", None)
    if name is not None:
        return _SPECIAL_KEYS.get(name)
    char = getattr(key, "char", None)
    if not char or len(char) != 1:
        return None
    code = ord(char)
    if 1 <= code <= 26:
        # Control characters arrive when ctrl is held: ^A → a.
        return chr(code + 96)
    if code < 32:
        return None
    return char.lower()
