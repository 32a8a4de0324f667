"""Integration tests — HelperService and HelperBridge over a socket pair.

The helper runs in-process with a fake mouse and an in-memory screen; the
global input listener is disabled and live input is injected through the
monitor's gate.  Overlay interactions go through the Tk surface's handlers
without a running Tk loop.
"""

from __future__ import annotations

import asyncio
import socket
from typing import Any, Callable

import pytest
import pytest_asyncio

from sequencer_bridge.config import HelperConfig
from sequencer_bridge.exceptions import HelperExitedError, RequestFailedError
from sequencer_bridge.helper.screen import PixelEngine
from sequencer_bridge.helper.service import HelperService
from sequencer_bridge.helper.surface import TkSurface
from sequencer_bridge.ipc.bridge import HelperBridge
from sequencer_bridge.ipc.client import HelperClient
from sequencer_bridge.playback.player import ScenarioPlayer
from sequencer_bridge.protocol.models import (
    RGB,
    ClickStep,
    MouseButton,
    OverlayIcon,
    Point,
    RecorderState,
    RecorderSubState,
    Rect,
)
from sequencer_bridge.recorder.controller import RecordingController
from sequencer_bridge.scenarios.settings_store import SettingsStore
from sequencer_bridge.scenarios.store import ScenarioStore


class FakeMouse:
    def __init__(self) -> None:
        self.clicks: list[tuple[Point, MouseButton]] = []

    async def click(self, position: Point, button: MouseButton = MouseButton.LEFT) -> None:
        self.clicks.append((position, button))


async def _until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class Harness:
    def __init__(
        self,
        service: HelperService,
        bridge: HelperBridge,
        serve: asyncio.Task[Any],
        mouse: FakeMouse,
        surface: TkSurface,
    ) -> None:
        self.service = service
        self.surface = surface
        self.bridge = bridge
        self.serve = serve
        self.mouse = mouse
        self.client = HelperClient(bridge, default_wait_timeout_ms=100, wait_timeout_buffer_ms=2000)


async def _start_harness(capture: Any, helper_wait_timeout_ms: int = 100) -> Harness:
    left, right = socket.socketpair()
    h_reader, h_writer = await asyncio.open_connection(sock=right)
    b_reader, b_writer = await asyncio.open_connection(sock=left)

    config = HelperConfig(poll_interval_ms=5, default_wait_timeout_ms=helper_wait_timeout_ms, input_monitor=False)
    mouse = FakeMouse()
    # Tk never runs here; the surface handlers are driven directly.
    surface = TkSurface()
    service = HelperService(
        h_reader,
        h_writer,
        config,
        mouse=mouse,
        engine=PixelEngine(capture, poll_interval_ms=5, default_timeout_ms=helper_wait_timeout_ms),
        surface=surface,
    )
    serve = asyncio.create_task(service.serve())

    bridge = HelperBridge(request_timeout_ms=2000)
    bridge.attach(b_reader, b_writer)
    return Harness(service, bridge, serve, mouse, surface)


async def _stop_harness(harness: Harness) -> None:
    await harness.bridge.stop(timeout=2)
    await asyncio.wait_for(harness.serve, 2)


@pytest_asyncio.fixture
async def harness(make_capture) -> Harness:
    # Green square at (500..509, 500..509) on a black screen.
    capture = make_capture(lambda x, y: (0, 255, 0) if 500 <= x < 510 and 500 <= y < 510 else (0, 0, 0))
    harness = await _start_harness(capture)
    yield harness
    await _stop_harness(harness)


@pytest.mark.integration
class TestRequests:
    async def test_execute_click_void_success(self, harness: Harness) -> None:
        result = await harness.bridge.request(
            "executeClick", {"position": {"x": 100, "y": 400}, "button": "left"}
        )
        assert result is None
        assert harness.mouse.clicks == [(Point(x=100, y=400), MouseButton.LEFT)]

    async def test_unknown_method(self, harness: Harness) -> None:
        with pytest.raises(RequestFailedError) as exc_info:
            await harness.bridge.request("scrollWheel")
        assert exc_info.value.error == "Unknown method: scrollWheel"

    async def test_invalid_params(self, harness: Harness) -> None:
        with pytest.raises(RequestFailedError) as exc_info:
            await harness.bridge.request("executeClick", {"button": "left"})
        assert exc_info.value.error.startswith("Invalid request: ")

    async def test_unknown_key(self, harness: Harness) -> None:
        with pytest.raises(RequestFailedError) as exc_info:
            await harness.client.execute_keypress("hyper")
        assert exc_info.value.error == "Unknown key: hyper"

    async def test_pixel_colour(self, harness: Harness) -> None:
        assert await harness.client.get_pixel_color(Point(x=505, y=505)) == RGB(r=0, g=255, b=0)

    async def test_out_of_bounds(self, harness: Harness) -> None:
        with pytest.raises(RequestFailedError, match="out of screen bounds"):
            await harness.client.get_pixel_color(Point(x=99999, y=0))

    async def test_waits(self, harness: Harness) -> None:
        green = RGB(r=0, g=255, b=0)
        assert await harness.client.wait_for_pixel_state(Point(x=505, y=505), green, 0)
        assert not await harness.client.wait_for_pixel_state(Point(x=0, y=0), green, 15, timeout_ms=50)
        assert await harness.client.wait_for_pixel_zone(Rect(x=490, y=490, width=15, height=15), green, 15)
        assert not await harness.client.wait_for_pixel_zone(Rect(x=0, y=0, width=20, height=20), green, 15)

    async def test_slow_wait_does_not_block_click(self, harness: Harness) -> None:
        wait = asyncio.create_task(
            harness.client.wait_for_pixel_state(Point(x=0, y=0), RGB(r=9, g=9, b=9), 0, timeout_ms=500)
        )
        await harness.client.execute_click(Point(x=1, y=1))
        assert not wait.done()
        assert await wait is False

    async def test_set_recorder_state(self, harness: Harness) -> None:
        await harness.client.set_recorder_state(RecorderState.ACTION, RecorderSubState.KEYBOARD)
        assert harness.service.mode.current.captures_keys

    async def test_stream_close_cancels_waits(self, harness: Harness) -> None:
        wait = asyncio.create_task(
            harness.client.wait_for_pixel_state(Point(x=0, y=0), RGB(r=9, g=9, b=9), 0, timeout_ms=60_000)
        )
        await _until(lambda: harness.service.router.in_flight == 1)
        await harness.bridge.stop(timeout=2)
        await asyncio.wait_for(harness.serve, 2)
        assert harness.service.router.in_flight == 0
        with pytest.raises(HelperExitedError):
            await wait


@pytest.mark.integration
class TestWaitDefaults:
    async def test_client_default_wins_over_helper_default(self, make_capture) -> None:
        # Helper started with a 30 s default, orchestrator configured for 100 ms.
        harness = await _start_harness(make_capture(lambda x, y: (0, 0, 0)), helper_wait_timeout_ms=30_000)
        try:
            client = HelperClient(harness.bridge, default_wait_timeout_ms=100, wait_timeout_buffer_ms=500)
            started = asyncio.get_running_loop().time()
            assert await client.wait_for_pixel_state(Point(x=1, y=1), RGB(r=255, g=0, b=0), 0) is False
            assert await client.wait_for_pixel_zone(
                Rect(x=0, y=0, width=4, height=4), RGB(r=255, g=0, b=0), 0
            ) is False
            assert asyncio.get_running_loop().time() - started < 2
        finally:
            await _stop_harness(harness)


@pytest.mark.integration
class TestRecordAndReplay:
    async def test_record_click_then_replay(self, harness: Harness, tmp_path) -> None:
        scenarios = ScenarioStore(tmp_path / "s.db")
        settings = SettingsStore(tmp_path / "s.db")
        await scenarios.init()
        await settings.init()
        try:
            controller = RecordingController(harness.client, scenarios, settings)
            controller.attach()
            scenario = await scenarios.create("click")
            await controller.start_recording(scenario.id)
            assert harness.service.overlay.state.visible

            # Click recorded only after the action icon switched the helper to action×mouse.
            assert not harness.service.monitor.handle_click(Point(x=100, y=400), MouseButton.LEFT)
            assert harness.surface.icon_pressed(OverlayIcon.ACTION)
            await _until(lambda: harness.service.mode.current.captures_clicks)
            assert harness.service.monitor.handle_click(Point(x=100, y=400), MouseButton.LEFT)

            async def recorded() -> int:
                return len((await scenarios.require(scenario.id)).steps)

            for _ in range(200):
                if await recorded() == 1:
                    break
                await asyncio.sleep(0.01)
            await controller.stop_recording()
            assert not harness.service.overlay.state.visible
            assert harness.service.mode.current.state is RecorderState.IDLE

            stored = await scenarios.require(scenario.id)
            assert stored.steps == [ClickStep(position=Point(x=100, y=400), button=MouseButton.LEFT)]

            await ScenarioPlayer(harness.client, scenarios).play(scenario.id)
            assert harness.mouse.clicks == [(Point(x=100, y=400), MouseButton.LEFT)]
            controller.detach()
        finally:
            await settings.close()
            await scenarios.close()

    async def test_close_button_ends_recording(self, harness: Harness, tmp_path) -> None:
        scenarios = ScenarioStore(tmp_path / "s.db")
        settings = SettingsStore(tmp_path / "s.db")
        await scenarios.init()
        await settings.init()
        try:
            controller = RecordingController(harness.client, scenarios, settings)
            controller.attach()
            scenario = await scenarios.create("closed")
            await controller.start_recording(scenario.id)

            harness.surface.close_pressed()
            await _until(lambda: not controller.session.is_recording)
            assert not harness.service.overlay.state.visible
            controller.detach()
        finally:
            await settings.close()
            await scenarios.close()
