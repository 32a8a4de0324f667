"""Helper — Input action executors.

Click and key-press synthesis through ``pyautogui``.  Both operations are
blocking, bounded by OS call latency, and run via ``asyncio.to_thread()``.

Key names follow the recorder's vocabulary (``return``, ``esc``,
``arrowleft``, ``minus``, single characters ...) and are normalised to
PyAutoGUI names before posting.  An unknown name is an :class:`ActionError`.
"""

from __future__ import annotations

import asyncio
import string
import sys
from typing import Any

from sequencer_bridge.exceptions import ActionError
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.models import Modifier, MouseButton, Point

log = get_logger(__name__)

# Lazy import, set by load_pyautogui
_pyautogui: Any = None


def load_pyautogui() -> Any:
    global _pyautogui
    if _pyautogui is None:
        try:
            import pyautogui
        except Exception as exc:
            # pyautogui raises more than ImportError when no display is reachable.
            raise ActionError(f"Input synthesis unavailable: {exc}") from exc
        pyautogui.FAILSAFE = False
        pyautogui.PAUSE = 0
        _pyautogui = pyautogui
    return _pyautogui


# ---------------------------------------------------------------------------
# Key names
# ---------------------------------------------------------------------------

_NAMED_KEYS: dict[str, str] = {
    "return": "enter",
    "enter": "enter",
    "tab": "tab",
    "space": "space",
    # "delete" is the key labelled delete on a Mac keyboard, i.e. backspace.
    "delete": "backspace",
    "backspace": "backspace",
    "forwarddelete": "delete",
    "escape": "esc",
    "esc": "esc",
    "left": "left",
    "right": "right",
    "up": "up",
    "down": "down",
    "arrowleft": "left",
    "arrowright": "right",
    "arrowup": "up",
    "arrowdown": "down",
    "home": "home",
    "end": "end",
    "pageup": "pageup",
    "pagedown": "pagedown",
    "minus": "-",
    "equal": "=",
    "equals": "=",
    "plus": "=",
    "comma": ",",
    "period": ".",
    "slash": "/",
    "backslash": "\\",
    "semicolon": ";",
    "quote": "'",
    "backtick": "`",
    "grave": "`",
}
_NAMED_KEYS.update({f"f{n}": f"f{n}" for n in range(1, 13)})

_SINGLE_CHARS = frozenset(string.ascii_lowercase + string.digits + "-=[]\\;',./`")


def normalize_key(key: str) -> str:
    """Map a recorder key name to its PyAutoGUI name.

    Raises:
        ActionError: the name is not part of the supported key set.
    """
    lowered = key.lower()
    if lowered in _NAMED_KEYS:
        return _NAMED_KEYS[lowered]
    if len(lowered) == 1 and lowered in _SINGLE_CHARS:
        return lowered
    raise ActionError(f"Unknown key: {key}")


def modifier_key(modifier: Modifier) -> str:
    if modifier is Modifier.CMD:
        return "command" if sys.platform == "darwin" else "win"
    return modifier.value


# ---------------------------------------------------------------------------
# Controllers
# ---------------------------------------------------------------------------


class MouseController:
    """Posts mouse clicks at absolute screen coordinates."""

    async def click(self, position: Point, button: MouseButton = MouseButton.LEFT) -> None:
        gui = load_pyautogui()

        def _inner() -> None:
            try:
                gui.click(x=round(position.x), y=round(position.y), button=button.value)
            except Exception as exc:
                raise ActionError(f"Failed to post {button.value} click: {exc}") from exc

        await asyncio.to_thread(_inner)
        log.debug("click_posted", x=position.x, y=position.y, button=button.value)


class KeyboardController:
    """Posts a key press, holding the given modifiers around it."""

    async def press(self, key: str, modifiers: list[Modifier] | None = None) -> None:
        name = normalize_key(key)
        held = [modifier_key(m) for m in dict.fromkeys(modifiers or [])]
        gui = load_pyautogui()

        def _inner() -> None:
            try:
                if held:
                    gui.hotkey(*held, name)
                else:
                    gui.press(name)
            except Exception as exc:
                raise ActionError(f"Failed to post key press '{key}': {exc}") from exc

        await asyncio.to_thread(_inner)
        log.debug("keypress_posted", key=name, modifiers=held)
