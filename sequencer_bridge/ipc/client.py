"""IPC — Typed client over :class:`HelperBridge`.

One coroutine per helper method, taking and returning protocol models.
Pixel waits always carry an explicit ``timeoutMs`` (the caller's or this
client's default) and get an IPC timeout of that budget plus a buffer, so
the helper's ``matched:false`` always arrives before the orchestrator gives
up, whatever default the helper process was started with.
"""

from __future__ import annotations

from sequencer_bridge.ipc.bridge import HelperBridge
from sequencer_bridge.protocol import constants as c
from sequencer_bridge.protocol.models import (
    RGB,
    Modifier,
    MouseButton,
    Point,
    RecorderState,
    RecorderSubState,
    Rect,
)
from sequencer_bridge.protocol.params import (
    ExecuteClickParams,
    ExecuteKeypressParams,
    GetPixelColorParams,
    PermissionStatus,
    SetRecorderStateParams,
    ShowRecorderOverlayParams,
    WaitForPixelStateParams,
    WaitForPixelZoneParams,
    WaitResult,
)


class HelperClient:
    def __init__(
        self,
        bridge: HelperBridge,
        default_wait_timeout_ms: int = c.DEFAULT_WAIT_TIMEOUT_MS,
        wait_timeout_buffer_ms: int = c.WAIT_TIMEOUT_BUFFER_MS,
    ) -> None:
        self.bridge = bridge
        self._default_wait_timeout_ms = default_wait_timeout_ms
        self._wait_timeout_buffer_ms = wait_timeout_buffer_ms

    async def check_permissions(self) -> PermissionStatus:
        result = await self.bridge.request(c.METHOD_CHECK_PERMISSIONS)
        return PermissionStatus.model_validate(result)

    async def show_recorder_overlay(self, position: Point | None = None) -> None:
        params = ShowRecorderOverlayParams(position=position) if position is not None else None
        await self.bridge.request(c.METHOD_SHOW_RECORDER_OVERLAY, params)

    async def hide_recorder_overlay(self) -> None:
        await self.bridge.request(c.METHOD_HIDE_RECORDER_OVERLAY)

    async def set_recorder_state(
        self, state: RecorderState, sub_state: RecorderSubState | None = None
    ) -> None:
        await self.bridge.request(
            c.METHOD_SET_RECORDER_STATE,
            SetRecorderStateParams(state=state, sub_state=sub_state),
        )

    async def show_magnifier(self) -> None:
        await self.bridge.request(c.METHOD_SHOW_MAGNIFIER)

    async def hide_magnifier(self) -> None:
        await self.bridge.request(c.METHOD_HIDE_MAGNIFIER)

    async def execute_click(self, position: Point, button: MouseButton = MouseButton.LEFT) -> None:
        await self.bridge.request(c.METHOD_EXECUTE_CLICK, ExecuteClickParams(position=position, button=button))

    async def execute_keypress(self, key: str, modifiers: list[Modifier] | None = None) -> None:
        await self.bridge.request(
            c.METHOD_EXECUTE_KEYPRESS,
            ExecuteKeypressParams(key=key, modifiers=modifiers or []),
        )

    async def get_pixel_color(self, position: Point) -> RGB:
        result = await self.bridge.request(c.METHOD_GET_PIXEL_COLOR, GetPixelColorParams(position=position))
        return RGB.model_validate(result)

    async def wait_for_pixel_state(
        self, position: Point, color: RGB, threshold: float, timeout_ms: int | None = None
    ) -> bool:
        budget = self._budget(timeout_ms)
        params = WaitForPixelStateParams(
            position=position, color=color, threshold=threshold, timeout_ms=budget
        )
        result = await self.bridge.request(
            c.METHOD_WAIT_FOR_PIXEL_STATE, params, timeout_ms=budget + self._wait_timeout_buffer_ms
        )
        return WaitResult.model_validate(result).matched

    async def wait_for_pixel_zone(
        self, rect: Rect, color: RGB, threshold: float, timeout_ms: int | None = None
    ) -> bool:
        budget = self._budget(timeout_ms)
        params = WaitForPixelZoneParams(rect=rect, color=color, threshold=threshold, timeout_ms=budget)
        result = await self.bridge.request(
            c.METHOD_WAIT_FOR_PIXEL_ZONE, params, timeout_ms=budget + self._wait_timeout_buffer_ms
        )
        return WaitResult.model_validate(result).matched

    def _budget(self, timeout_ms: int | None) -> int:
        # Always sent on the wire: the helper may run with a different default.
        return self._default_wait_timeout_ms if timeout_ms is None else timeout_ms
