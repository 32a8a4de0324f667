"""Helper — Recorder overlay controller.

The overlay is the one UI resource of the helper.  A single
:class:`OverlayController` is created by the service and handed to the
router; every overlay, magnifier and time-input request goes through it.

The controller keeps the visible state of the capture surface, mirrors it
onto an :class:`~sequencer_bridge.helper.surface.OverlaySurface` (the Tk
windows in a running helper) and turns interactions with that surface
(icon clicks, drags, a colour pick, a zone drag, a typed delay) into Events.
The surface schedules the ``on_*`` methods on the event loop.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from sequencer_bridge.helper.events import EventPump
from sequencer_bridge.helper.recorder_mode import RecorderMode
from sequencer_bridge.helper.screen import PixelEngine
from sequencer_bridge.helper.surface import OVERLAY_HEIGHT, OVERLAY_WIDTH, OverlaySurface
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol import constants as c
from sequencer_bridge.protocol.models import OverlayIcon, Point, RecorderSubState, Rect
from sequencer_bridge.protocol.params import (
    OverlayClosedData,
    OverlayIconClickedData,
    OverlayMovedData,
    PixelSelectedData,
    TimeInputCompletedData,
    ZoneSelectedData,
)

log = get_logger(__name__)

DEFAULT_POSITION = Point(x=100, y=100)


@dataclass
class OverlayState:
    visible: bool = False
    position: Point = field(default_factory=lambda: DEFAULT_POSITION)
    magnifier_visible: bool = False
    time_input_visible: bool = False


class OverlayController:
    def __init__(self, pump: EventPump, engine: PixelEngine, surface: OverlaySurface | None = None) -> None:
        self._pump = pump
        self._engine = engine
        self.surface = surface or OverlaySurface()
        self.surface.attach(self)
        self.state = OverlayState()

    def start(self) -> None:
        """Let the surface deliver interactions to the running loop."""
        self.surface.bind_loop(asyncio.get_running_loop())

    def close(self) -> None:
        self.surface.close()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def show(self, position: Point | None = None) -> None:
        if position is not None:
            self.state.position = position
        self.surface.show_toolbar(self.state.position)
        if not self.state.visible:
            self.state.visible = True
            log.info("overlay_shown", x=self.state.position.x, y=self.state.position.y)

    def hide(self) -> None:
        self.hide_magnifier()
        self.hide_time_input()
        self.surface.hide_toolbar()
        if self.state.visible:
            self.state.visible = False
            log.info("overlay_hidden")

    def apply_mode(self, mode: RecorderMode) -> None:
        """Show the input surface that belongs to the mode's subState."""
        self.surface.set_mode(mode)
        if mode.sub_state is RecorderSubState.PIXEL:
            self.show_magnifier()
        else:
            self.hide_magnifier()
        if mode.sub_state is RecorderSubState.TIME:
            self.show_time_input()
        else:
            self.hide_time_input()

    def show_magnifier(self) -> None:
        self.state.magnifier_visible = True
        self.surface.show_picker()

    def hide_magnifier(self) -> None:
        self.state.magnifier_visible = False
        self.surface.hide_picker()

    def show_time_input(self) -> None:
        self.state.time_input_visible = True
        self.surface.show_time_input()

    def hide_time_input(self) -> None:
        self.state.time_input_visible = False
        self.surface.hide_time_input()

    def contains(self, point: Point) -> bool:
        """True if *point* lies on the visible overlay panel."""
        if not self.state.visible:
            return False
        origin = self.state.position
        return (
            origin.x <= point.x < origin.x + OVERLAY_WIDTH
            and origin.y <= point.y < origin.y + OVERLAY_HEIGHT
        )

    # ------------------------------------------------------------------
    # Surface interactions → Events
    # ------------------------------------------------------------------

    def on_icon_clicked(self, icon: OverlayIcon) -> None:
        self._pump.emit(c.EVENT_OVERLAY_ICON_CLICKED, OverlayIconClickedData(icon=icon))

    def on_moved(self, position: Point) -> None:
        self.state.position = position
        self._pump.emit(c.EVENT_OVERLAY_MOVED, OverlayMovedData(position=position))

    def on_closed(self) -> None:
        self.hide()
        self._pump.emit(c.EVENT_OVERLAY_CLOSED, OverlayClosedData())

    async def on_pixel_picked(self, position: Point) -> None:
        """Sample the picked pixel and report it; the magnifier closes."""
        color = await self._engine.get_pixel_color(position)
        self.hide_magnifier()
        self._pump.emit(c.EVENT_PIXEL_SELECTED, PixelSelectedData(position=position, color=color))

    def on_zone_selected(self, rect: Rect) -> None:
        self.hide_magnifier()
        self._pump.emit(c.EVENT_ZONE_SELECTED, ZoneSelectedData(rect=rect))

    def on_time_entered(self, ms: int) -> None:
        self.hide_time_input()
        self._pump.emit(c.EVENT_TIME_INPUT_COMPLETED, TimeInputCompletedData(ms=ms))

    def on_time_cancelled(self) -> None:
        self.hide_time_input()
        log.debug("time_input_cancelled")
