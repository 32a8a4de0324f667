"""Recorder — Turns helper events into scenario steps.

The helper decides *which* input is captured (its Recorder Mode); this
controller decides whether a captured input becomes a step (only while the
session is recording) and is the only writer of scenarios during recording.

Overlay icons are routed as follows:

    action      → action×mouse
    transition  → transition×pixel
    mouse       → action×mouse under action,
                  transition×pixel + magnifier under transition,
                  nothing under idle
    keyboard    → action×keyboard
    time        → transition×time

Every route echoes the new mode to the helper with ``setRecorderState``.

A ``zoneSelected`` event parks its rectangle as the *pending zone* (a second
one replaces the first) and opens the magnifier; the next ``pixelSelected``
consumes it and produces a pixel-zone step instead of a pixel-state step.
Events are delivered one at a time in arrival order, so the zone is always
parked before the following pick is interpreted.
"""

from __future__ import annotations

from typing import Callable

from sequencer_bridge.helper.recorder_mode import IDLE, RecorderMode
from sequencer_bridge.ipc.client import HelperClient
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol import constants as c
from sequencer_bridge.protocol.models import (
    ClickStep,
    DelayStep,
    Event,
    KeypressStep,
    OverlayIcon,
    PixelStateStep,
    PixelZoneStep,
    RecorderState,
    RecorderSubState,
    Rect,
    Scenario,
    Step,
)
from sequencer_bridge.protocol.params import (
    KeyPressedData,
    MouseClickedData,
    OverlayIconClickedData,
    OverlayMovedData,
    PixelSelectedData,
    TimeInputCompletedData,
    ZoneSelectedData,
)
from sequencer_bridge.recorder.session import RecorderSession
from sequencer_bridge.scenarios.settings_store import SettingsStore
from sequencer_bridge.scenarios.store import ScenarioStore

log = get_logger(__name__)

NEW_SCENARIO_NAME = "New Scenario"


class RecordingController:
    def __init__(
        self,
        client: HelperClient,
        scenarios: ScenarioStore,
        settings: SettingsStore,
        session: RecorderSession | None = None,
    ) -> None:
        self._client = client
        self._scenarios = scenarios
        self._settings = settings
        self.session = session or RecorderSession()
        self.overlay_mode: RecorderMode = IDLE
        self.pending_zone: Rect | None = None
        self._unsubscribe: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Subscribe to the helper's events."""
        if self._unsubscribe:
            return
        routes = {
            c.EVENT_MOUSE_CLICKED: self._on_mouse_clicked,
            c.EVENT_KEY_PRESSED: self._on_key_pressed,
            c.EVENT_PIXEL_SELECTED: self._on_pixel_selected,
            c.EVENT_ZONE_SELECTED: self._on_zone_selected,
            c.EVENT_TIME_INPUT_COMPLETED: self._on_time_input_completed,
            c.EVENT_OVERLAY_CLOSED: self._on_overlay_closed,
            c.EVENT_OVERLAY_MOVED: self._on_overlay_moved,
            c.EVENT_OVERLAY_ICON_CLICKED: self._on_overlay_icon_clicked,
        }
        for name, listener in routes.items():
            self._unsubscribe.append(self._client.bridge.on(name, listener))

    def detach(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()

    # ------------------------------------------------------------------
    # User intent
    # ------------------------------------------------------------------

    async def toggle_recording(
        self,
        selected_scenario_id: str | None = None,
        selected_step_index: int | None = None,
    ) -> None:
        """Stop if recording; otherwise record into the selected scenario, or
        create a new one and start naming it."""
        if self.session.is_recording:
            await self.stop_recording()
        elif self.session.is_naming:
            log.debug("toggle_ignored_while_naming")
        elif selected_scenario_id is not None:
            await self.start_recording(selected_scenario_id, selected_step_index)
        else:
            await self.begin_new_scenario()

    async def begin_new_scenario(self, name: str = NEW_SCENARIO_NAME) -> Scenario:
        scenario = await self._scenarios.create(name)
        self.session.start_naming(scenario.id)
        return scenario

    async def finish_naming(self) -> None:
        scenario_id = self.session.scenario_id
        name = self.session.finish_naming()
        if name is None or scenario_id is None:
            return
        await self._scenarios.rename(scenario_id, name)
        await self.start_recording(scenario_id)

    async def record_new_scenario(self, name: str) -> str | None:
        """Create a scenario named *name* and start recording into it."""
        scenario = await self.begin_new_scenario()
        self.session.append_to_name(name)
        await self.finish_naming()
        return scenario.id if self.session.is_recording else None

    async def cancel_naming(self) -> None:
        scenario_id = self.session.scenario_id
        if not self.session.is_naming or scenario_id is None:
            return
        self.session.cancel_naming()
        await self._scenarios.delete(scenario_id)

    async def start_recording(self, scenario_id: str, insert_after_index: int | None = None) -> None:
        await self._scenarios.require(scenario_id)
        if not self.session.start_recording(scenario_id, insert_after_index):
            return
        self.overlay_mode = IDLE
        self.pending_zone = None
        await self._client.show_recorder_overlay(self._settings.last_overlay_position)

    async def stop_recording(self) -> None:
        if not self.session.stop_recording():
            return
        self._reset_capture()
        await self._client.set_recorder_state(RecorderState.IDLE)
        await self._client.hide_recorder_overlay()

    async def add_step(self, step: Step) -> int | None:
        """Store *step* at the session's insertion point and advance it."""
        state = self.session.state
        if not self.session.is_recording or state.scenario_id is None:
            return None
        index = await self._scenarios.add_step(state.scenario_id, step, state.insert_after_index)
        self.session.advance(index)
        log.info("step_recorded", scenario_id=state.scenario_id, index=index, step_type=step.type)
        return index

    # ------------------------------------------------------------------
    # Event listeners
    # ------------------------------------------------------------------

    async def _on_mouse_clicked(self, event: Event) -> None:
        if not (self.session.is_recording and self.overlay_mode.captures_clicks):
            return
        data = MouseClickedData.model_validate(event.data)
        await self.add_step(ClickStep(position=data.position, button=data.button))

    async def _on_key_pressed(self, event: Event) -> None:
        if not (self.session.is_recording and self.overlay_mode.captures_keys):
            return
        data = KeyPressedData.model_validate(event.data)
        await self.add_step(KeypressStep(key=data.key, modifiers=data.modifiers))

    async def _on_pixel_selected(self, event: Event) -> None:
        if not self.session.is_recording:
            return
        data = PixelSelectedData.model_validate(event.data)
        threshold = self._settings.default_threshold
        zone, self.pending_zone = self.pending_zone, None
        if zone is not None:
            step: Step = PixelZoneStep(rect=zone, color=data.color, threshold=threshold)
        else:
            step = PixelStateStep(position=data.position, color=data.color, threshold=threshold)
        await self.add_step(step)
        await self._client.hide_magnifier()

    async def _on_zone_selected(self, event: Event) -> None:
        if not self.session.is_recording:
            return
        data = ZoneSelectedData.model_validate(event.data)
        if self.pending_zone is not None:
            log.debug("pending_zone_replaced")
        self.pending_zone = data.rect
        await self._client.show_magnifier()

    async def _on_time_input_completed(self, event: Event) -> None:
        if not self.session.is_recording:
            return
        data = TimeInputCompletedData.model_validate(event.data)
        await self.add_step(DelayStep(ms=data.ms))

    async def _on_overlay_closed(self, event: Event) -> None:
        self.pending_zone = None
        if not self.session.stop_recording():
            return
        self._reset_capture()
        await self._client.set_recorder_state(RecorderState.IDLE)

    async def _on_overlay_moved(self, event: Event) -> None:
        data = OverlayMovedData.model_validate(event.data)
        await self._settings.set_last_overlay_position(data.position)

    async def _on_overlay_icon_clicked(self, event: Event) -> None:
        if not self.session.is_recording:
            return
        icon = OverlayIconClickedData.model_validate(event.data).icon
        await self.route_icon(icon)

    async def route_icon(self, icon: OverlayIcon) -> None:
        current = self.overlay_mode.state
        show_magnifier = False

        if icon is OverlayIcon.ACTION:
            mode = RecorderMode(RecorderState.ACTION, RecorderSubState.MOUSE)
        elif icon is OverlayIcon.TRANSITION:
            mode = RecorderMode(RecorderState.TRANSITION, RecorderSubState.PIXEL)
        elif icon is OverlayIcon.MOUSE:
            if current is RecorderState.ACTION:
                mode = RecorderMode(RecorderState.ACTION, RecorderSubState.MOUSE)
            elif current is RecorderState.TRANSITION:
                mode = RecorderMode(RecorderState.TRANSITION, RecorderSubState.PIXEL)
                show_magnifier = True
            else:
                log.debug("mouse_icon_ignored_while_idle")
                return
        elif icon is OverlayIcon.KEYBOARD:
            mode = RecorderMode(RecorderState.ACTION, RecorderSubState.KEYBOARD)
        else:
            mode = RecorderMode(RecorderState.TRANSITION, RecorderSubState.TIME)

        self.overlay_mode = mode
        await self._client.set_recorder_state(mode.state, mode.sub_state)
        if show_magnifier:
            await self._client.show_magnifier()

    def _reset_capture(self) -> None:
        self.overlay_mode = IDLE
        self.pending_zone = None
