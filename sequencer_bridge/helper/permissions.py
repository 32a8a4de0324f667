"""Helper — OS permission check.

Reports whether input synthesis (``accessibility``) and screen sampling
(``screenRecording``) are usable right now.  Never raises: a failed check is
a ``False`` flag.
"""

from __future__ import annotations

from sequencer_bridge.exceptions import ActionError, CaptureError
from sequencer_bridge.helper.actions import load_pyautogui
from sequencer_bridge.helper.screen import ScreenCapture
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.params import PermissionStatus

log = get_logger(__name__)


class PermissionChecker:
    def __init__(self, capture: ScreenCapture | None = None) -> None:
        self._capture = capture or ScreenCapture()

    def check(self) -> PermissionStatus:
        status = PermissionStatus(
            accessibility=self._accessibility(),
            screen_recording=self._screen_recording(),
        )
        log.info(
            "permissions_checked",
            accessibility=status.accessibility,
            screen_recording=status.screen_recording,
        )
        return status

    @staticmethod
    def _accessibility() -> bool:
        try:
            load_pyautogui()
        except ActionError as exc:
            log.debug("accessibility_unavailable", error=exc.message)
            return False
        return True

    def _screen_recording(self) -> bool:
        try:
            displays = self._capture.displays()
            if not displays:
                return False
            self._capture.grab(displays[0].left, displays[0].top, 1, 1)
        except CaptureError as exc:
            log.debug("screen_recording_unavailable", error=exc.message)
            return False
        return True
