"""Typed parameter, result and event payload models for every method.

``PARAMS_MAP`` maps a method name to its params model (``None`` for
zero-argument methods).  The helper's router validates inbound params
against it; the orchestrator's client builds outbound params from it.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import Field

from sequencer_bridge.protocol import constants as c
from sequencer_bridge.protocol.models import (
    RGB,
    Modifier,
    MouseButton,
    OverlayIcon,
    Point,
    RecorderState,
    RecorderSubState,
    Rect,
    WireModel,
)

_Threshold = Annotated[float, Field(ge=0)]
_TimeoutMs = Annotated[int, Field(ge=0)]


# ---------------------------------------------------------------------------
# Request params
# ---------------------------------------------------------------------------


class ShowRecorderOverlayParams(WireModel):
    position: Point | None = None


class SetRecorderStateParams(WireModel):
    state: RecorderState
    sub_state: RecorderSubState | None = Field(default=None, alias="subState")


class ExecuteClickParams(WireModel):
    position: Point
    button: MouseButton = MouseButton.LEFT


class ExecuteKeypressParams(WireModel):
    key: str = Field(min_length=1)
    modifiers: list[Modifier] = Field(default_factory=list)


class GetPixelColorParams(WireModel):
    position: Point


class WaitForPixelStateParams(WireModel):
    position: Point
    color: RGB
    threshold: _Threshold
    timeout_ms: _TimeoutMs | None = Field(default=None, alias="timeoutMs")


class WaitForPixelZoneParams(WireModel):
    rect: Rect
    color: RGB
    threshold: _Threshold
    timeout_ms: _TimeoutMs | None = Field(default=None, alias="timeoutMs")


PARAMS_MAP: dict[str, type[WireModel] | None] = {
    c.METHOD_CHECK_PERMISSIONS: None,
    c.METHOD_SHOW_RECORDER_OVERLAY: ShowRecorderOverlayParams,
    c.METHOD_HIDE_RECORDER_OVERLAY: None,
    c.METHOD_SET_RECORDER_STATE: SetRecorderStateParams,
    c.METHOD_SHOW_MAGNIFIER: None,
    c.METHOD_HIDE_MAGNIFIER: None,
    c.METHOD_EXECUTE_CLICK: ExecuteClickParams,
    c.METHOD_EXECUTE_KEYPRESS: ExecuteKeypressParams,
    c.METHOD_GET_PIXEL_COLOR: GetPixelColorParams,
    c.METHOD_WAIT_FOR_PIXEL_STATE: WaitForPixelStateParams,
    c.METHOD_WAIT_FOR_PIXEL_ZONE: WaitForPixelZoneParams,
}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class PermissionStatus(WireModel):
    accessibility: bool
    screen_recording: bool = Field(alias="screenRecording")


class WaitResult(WireModel):
    matched: bool


# ``getPixelColor`` answers with a bare RGB object.
PixelColorResult = RGB


# ---------------------------------------------------------------------------
# Event payloads
# ---------------------------------------------------------------------------


class OverlayIconClickedData(WireModel):
    icon: OverlayIcon


class MouseClickedData(WireModel):
    position: Point
    button: MouseButton


class KeyPressedData(WireModel):
    key: str
    modifiers: list[Modifier] = Field(default_factory=list)


class ZoneSelectedData(WireModel):
    rect: Rect


class PixelSelectedData(WireModel):
    position: Point
    color: RGB


class OverlayMovedData(WireModel):
    position: Point


class OverlayClosedData(WireModel):
    pass


class TimeInputCompletedData(WireModel):
    ms: Annotated[int, Field(ge=0)]


EVENT_DATA_MAP: dict[str, type[WireModel]] = {
    c.EVENT_OVERLAY_ICON_CLICKED: OverlayIconClickedData,
    c.EVENT_MOUSE_CLICKED: MouseClickedData,
    c.EVENT_KEY_PRESSED: KeyPressedData,
    c.EVENT_ZONE_SELECTED: ZoneSelectedData,
    c.EVENT_PIXEL_SELECTED: PixelSelectedData,
    c.EVENT_OVERLAY_MOVED: OverlayMovedData,
    c.EVENT_OVERLAY_CLOSED: OverlayClosedData,
    c.EVENT_TIME_INPUT_COMPLETED: TimeInputCompletedData,
}
