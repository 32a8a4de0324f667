"""Automation helper — input synthesis, screen sampling and the recorder overlay."""

from sequencer_bridge.helper.recorder_mode import RecorderMode, RecorderModeCell
from sequencer_bridge.helper.screen import PixelEngine, ScreenCapture, color_distance
from sequencer_bridge.helper.service import HelperService, run_helper, serve_stdio
from sequencer_bridge.helper.surface import OverlaySurface, TkSurface

__all__ = [
    "RecorderMode",
    "RecorderModeCell",
    "PixelEngine",
    "ScreenCapture",
    "color_distance",
    "HelperService",
    "run_helper",
    "serve_stdio",
    "OverlaySurface",
    "TkSurface",
]
