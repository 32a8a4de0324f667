"""Helper — Service wiring.

Builds the helper's subsystems, registers one handler per method on the
request router, and runs the read loop until the orchestrator closes the
stream.  On EOF every in-flight handler (pixel waits included) is
cancelled, the input listener stops, queued events are flushed and the
process exits.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any

from sequencer_bridge.config import HelperConfig
from sequencer_bridge.helper.actions import KeyboardController, MouseController
from sequencer_bridge.helper.events import EventPump
from sequencer_bridge.helper.input_monitor import InputMonitor
from sequencer_bridge.helper.overlay import OverlayController
from sequencer_bridge.helper.permissions import PermissionChecker
from sequencer_bridge.helper.recorder_mode import RecorderModeCell
from sequencer_bridge.helper.screen import PixelEngine, ScreenCapture
from sequencer_bridge.helper.surface import OverlaySurface, TkSurface
from sequencer_bridge.ipc.router import RequestRouter
from sequencer_bridge.ipc.transport import ByteSink, ByteSource, LineReader, LineWriter, open_stdio_streams
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol import constants as c
from sequencer_bridge.protocol.models import RGB
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

log = get_logger(__name__)

UI_LANE = "ui"


class HelperService:
    """The automation helper bound to one pair of byte streams.

    Usage::

        reader, writer = await open_stdio_streams()
        await HelperService(reader, writer).serve()
    """

    def __init__(
        self,
        reader: ByteSource,
        writer: ByteSink,
        config: HelperConfig | None = None,
        *,
        mouse: MouseController | None = None,
        keyboard: KeyboardController | None = None,
        engine: PixelEngine | None = None,
        permissions: PermissionChecker | None = None,
        surface: OverlaySurface | None = None,
    ) -> None:
        self._config = config or HelperConfig()
        self._reader = LineReader(reader)
        self._writer = LineWriter(writer)

        capture = ScreenCapture()
        self.mode = RecorderModeCell()
        self.pump = EventPump(self._writer)
        self.engine = engine or PixelEngine(
            capture,
            poll_interval_ms=self._config.poll_interval_ms,
            default_timeout_ms=self._config.default_wait_timeout_ms,
        )
        self.overlay = OverlayController(self.pump, self.engine, surface)
        self.mouse = mouse or MouseController()
        self.keyboard = keyboard or KeyboardController()
        self.permissions = permissions or PermissionChecker(capture)
        self.monitor = InputMonitor(self.mode, self.pump, ignore_point=self.overlay.contains)

        self.router = RequestRouter(self._writer)
        self._register_handlers()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def serve(self) -> None:
        """Answer Requests until the input stream ends."""
        self.pump.start()
        self.overlay.start()
        if self._config.input_monitor:
            self._start_monitor()
        log.info("helper_started", methods=len(self.router.methods))

        try:
            async for line in self._reader:
                self.router.dispatch_line(line)
        finally:
            log.info("helper_input_closed", in_flight=self.router.in_flight)
            await self.router.shutdown()
            self.monitor.stop()
            self.overlay.close()
            await self.pump.close()
            self._writer.close()
            log.info("helper_stopped")

    def _start_monitor(self) -> None:
        try:
            self.monitor.start()
        except Exception as exc:
            # pynput fails in many platform-specific ways (no display, no hook permission).
            log.warning("input_monitor_unavailable", error=str(exc))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _register_handlers(self) -> None:
        register = self.router.register
        register(c.METHOD_CHECK_PERMISSIONS, self._check_permissions)
        register(c.METHOD_SHOW_RECORDER_OVERLAY, self._show_recorder_overlay, lane=UI_LANE)
        register(c.METHOD_HIDE_RECORDER_OVERLAY, self._hide_recorder_overlay, lane=UI_LANE)
        register(c.METHOD_SET_RECORDER_STATE, self._set_recorder_state, lane=UI_LANE)
        register(c.METHOD_SHOW_MAGNIFIER, self._show_magnifier, lane=UI_LANE)
        register(c.METHOD_HIDE_MAGNIFIER, self._hide_magnifier, lane=UI_LANE)
        register(c.METHOD_EXECUTE_CLICK, self._execute_click)
        register(c.METHOD_EXECUTE_KEYPRESS, self._execute_keypress)
        register(c.METHOD_GET_PIXEL_COLOR, self._get_pixel_color)
        register(c.METHOD_WAIT_FOR_PIXEL_STATE, self._wait_for_pixel_state)
        register(c.METHOD_WAIT_FOR_PIXEL_ZONE, self._wait_for_pixel_zone)

    async def _check_permissions(self, _: None) -> PermissionStatus:
        return await asyncio.to_thread(self.permissions.check)

    async def _show_recorder_overlay(self, params: ShowRecorderOverlayParams) -> None:
        self.overlay.show(params.position)

    async def _hide_recorder_overlay(self, _: None) -> None:
        self.overlay.hide()

    async def _set_recorder_state(self, params: SetRecorderStateParams) -> None:
        mode = self.mode.set(params.state, params.sub_state)
        self.overlay.apply_mode(mode)

    async def _show_magnifier(self, _: None) -> None:
        self.overlay.show_magnifier()

    async def _hide_magnifier(self, _: None) -> None:
        self.overlay.hide_magnifier()

    async def _execute_click(self, params: ExecuteClickParams) -> None:
        await self.mouse.click(params.position, params.button)

    async def _execute_keypress(self, params: ExecuteKeypressParams) -> None:
        await self.keyboard.press(params.key, params.modifiers)

    async def _get_pixel_color(self, params: GetPixelColorParams) -> RGB:
        return await self.engine.get_pixel_color(params.position)

    async def _wait_for_pixel_state(self, params: WaitForPixelStateParams) -> WaitResult:
        matched = await self.engine.wait_for_pixel_state(
            params.position, params.color, params.threshold, params.timeout_ms
        )
        return WaitResult(matched=matched)

    async def _wait_for_pixel_zone(self, params: WaitForPixelZoneParams) -> WaitResult:
        matched = await self.engine.wait_for_pixel_zone(
            params.rect, params.color, params.threshold, params.timeout_ms
        )
        return WaitResult(matched=matched)


async def serve_stdio(config: HelperConfig | None = None, **overrides: Any) -> None:
    """Serve the helper protocol over this process's stdin/stdout."""
    reader, writer = await open_stdio_streams()
    await HelperService(reader, writer, config, **overrides).serve()


def run_helper(config: HelperConfig | None = None, **overrides: Any) -> None:
    """Run the helper until stdin closes.

    With the overlay surface enabled, Tk keeps the main thread and the
    protocol runs on its own event loop in a worker thread.
    """
    config = config or HelperConfig()
    if not config.overlay_surface:
        asyncio.run(serve_stdio(config, **overrides))
        return

    surface = TkSurface()
    errors: list[BaseException] = []

    def _serve() -> None:
        try:
            asyncio.run(serve_stdio(config, surface=surface, **overrides))
        except BaseException as exc:
            errors.append(exc)
        finally:
            surface.close()

    worker = threading.Thread(target=_serve, name="helper-protocol", daemon=True)
    worker.start()
    surface.run()
    worker.join()
    if errors:
        raise errors[0]
