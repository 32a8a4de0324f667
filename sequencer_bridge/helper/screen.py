"""Helper — Screen sampling and the pixel condition engine.

Pixels are read with ``mss`` (cross-platform, fast).  Every read is
blocking and runs via ``asyncio.to_thread()``; waits poll with
``asyncio.sleep`` between checks, so a pending wait never blocks other
requests and is cancelled promptly when the stream closes.

Colour match: Euclidean RGB distance ``sqrt(dr² + dg² + db²)`` (0 to ~441.67)
compared with ``<=`` against the threshold.  A zone is scanned row-major and
the scan stops at the first matching pixel.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Sequence

from sequencer_bridge.exceptions import CaptureError, OutOfBoundsError
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.constants import DEFAULT_POLL_INTERVAL_MS, DEFAULT_WAIT_TIMEOUT_MS
from sequencer_bridge.protocol.models import RGB, Point, Rect

log = get_logger(__name__)

ColorLike = RGB | Sequence[int]


def _channels(color: ColorLike) -> tuple[int, int, int]:
    if isinstance(color, RGB):
        return color.as_tuple()
    r, g, b = color
    return (r, g, b)


def color_distance(a: ColorLike, b: ColorLike) -> float:
    ar, ag, ab = _channels(a)
    br, bg, bb = _channels(b)
    return math.sqrt((ar - br) ** 2 + (ag - bg) ** 2 + (ab - bb) ** 2)


def color_matches(sample: ColorLike, expected: ColorLike, threshold: float) -> bool:
    return color_distance(sample, expected) <= threshold


# ---------------------------------------------------------------------------
# Capture backend
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Display:
    left: int
    top: int
    width: int
    height: int

    def contains(self, x: int, y: int) -> bool:
        return self.left <= x < self.left + self.width and self.top <= y < self.top + self.height


@dataclass(frozen=True)
class PixelRegion:
    """Raw RGB bytes of a grabbed region, 3 bytes per pixel, row-major."""

    width: int
    height: int
    rgb: bytes

    def pixel(self, dx: int, dy: int) -> tuple[int, int, int]:
        offset = (dy * self.width + dx) * 3
        return (self.rgb[offset], self.rgb[offset + 1], self.rgb[offset + 2])

    def iter_pixels(self) -> Iterator[tuple[int, int, int]]:
        data = self.rgb
        return zip(data[0::3], data[1::3], data[2::3])


class ScreenCapture:
    """Grabs screen regions and lists displays through mss."""

    def displays(self) -> list[Display]:
        mss = self._import_mss()
        try:
            with mss.mss() as sct:
                # monitors[0] is the union of all screens; the rest are the screens.
                monitors = sct.monitors[1:] or sct.monitors[:1]
        except mss.exception.ScreenShotError as exc:
            raise CaptureError() from exc
        return [Display(m["left"], m["top"], m["width"], m["height"]) for m in monitors]

    def grab(self, left: int, top: int, width: int, height: int) -> PixelRegion:
        mss = self._import_mss()
        region = {"left": left, "top": top, "width": width, "height": height}
        try:
            with mss.mss() as sct:
                img = sct.grab(region)
        except mss.exception.ScreenShotError as exc:
            log.warning("screen_grab_failed", region=region, error=str(exc))
            raise CaptureError() from exc
        return PixelRegion(width=img.width, height=img.height, rgb=bytes(img.rgb))

    @staticmethod
    def _import_mss() -> Any:
        try:
            import mss
            import mss.exception
        except ImportError as exc:
            raise CaptureError("Screen capture unavailable. Install: pip install mss") from exc
        return mss


# ---------------------------------------------------------------------------
# Pixel condition engine
# ---------------------------------------------------------------------------


class PixelEngine:
    """Single-pixel and zone checks, and bounded polling waits over them.

    Usage::

        engine = PixelEngine(ScreenCapture())
        matched = await engine.wait_for_pixel_state(Point(x=10, y=10), RGB(r=0, g=0, b=0), 15)
    """

    def __init__(
        self,
        capture: ScreenCapture | None = None,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        default_timeout_ms: int = DEFAULT_WAIT_TIMEOUT_MS,
    ) -> None:
        self._capture = capture or ScreenCapture()
        self._poll_interval = poll_interval_ms / 1000
        self._default_timeout_ms = default_timeout_ms

    # ------------------------------------------------------------------
    # One-shot reads
    # ------------------------------------------------------------------

    async def get_pixel_color(self, position: Point) -> RGB:
        return await asyncio.to_thread(self._read_pixel, position)

    async def check_pixel_state(self, position: Point, color: RGB, threshold: float) -> bool:
        sample = await self.get_pixel_color(position)
        return color_matches(sample, color, threshold)

    async def check_pixel_zone(self, rect: Rect, color: RGB, threshold: float) -> bool:
        return await asyncio.to_thread(self._scan_zone, rect, color, threshold)

    # ------------------------------------------------------------------
    # Waits
    # ------------------------------------------------------------------

    async def wait_for_pixel_state(
        self, position: Point, color: RGB, threshold: float, timeout_ms: int | None = None
    ) -> bool:
        await asyncio.to_thread(self._require_point_on_screen, position)
        return await self._poll(
            lambda: self.check_pixel_state(position, color, threshold), timeout_ms
        )

    async def wait_for_pixel_zone(
        self, rect: Rect, color: RGB, threshold: float, timeout_ms: int | None = None
    ) -> bool:
        await asyncio.to_thread(self._require_rect_on_screen, rect)
        return await self._poll(lambda: self.check_pixel_zone(rect, color, threshold), timeout_ms)

    async def _poll(self, check: Callable[[], Awaitable[bool]], timeout_ms: int | None) -> bool:
        """Check, then give up once the budget is spent, else sleep and retry."""
        budget = (self._default_timeout_ms if timeout_ms is None else timeout_ms) / 1000
        loop = asyncio.get_running_loop()
        started = loop.time()
        attempts = 0
        while True:
            attempts += 1
            if await check():
                log.debug("pixel_wait_matched", attempts=attempts)
                return True
            if loop.time() - started >= budget:
                log.debug("pixel_wait_timed_out", attempts=attempts, budget_ms=budget * 1000)
                return False
            await asyncio.sleep(self._poll_interval)

    # ------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # ------------------------------------------------------------------

    def _read_pixel(self, position: Point) -> RGB:
        x, y = self._require_point_on_screen(position)
        region = self._capture.grab(x, y, 1, 1)
        r, g, b = region.pixel(0, 0)
        return RGB(r=r, g=g, b=b)

    def _scan_zone(self, rect: Rect, color: RGB, threshold: float) -> bool:
        left, top, width, height = self._require_rect_on_screen(rect)
        if width == 0 or height == 0:
            return False
        region = self._capture.grab(left, top, width, height)
        limit = threshold * threshold
        er, eg, eb = color.as_tuple()
        for r, g, b in region.iter_pixels():
            if (r - er) ** 2 + (g - eg) ** 2 + (b - eb) ** 2 <= limit:
                return True
        return False

    def _require_point_on_screen(self, position: Point) -> tuple[int, int]:
        x, y = math.floor(position.x), math.floor(position.y)
        if not self._on_screen(x, y):
            raise OutOfBoundsError(position.x, position.y)
        return x, y

    def _require_rect_on_screen(self, rect: Rect) -> tuple[int, int, int, int]:
        left, top = math.floor(rect.x), math.floor(rect.y)
        width, height = math.ceil(rect.width), math.ceil(rect.height)
        if not self._on_screen(left, top):
            raise OutOfBoundsError(rect.x, rect.y)
        right, bottom = left + max(width, 1) - 1, top + max(height, 1) - 1
        if not self._on_screen(right, bottom):
            raise OutOfBoundsError(right, bottom)
        return left, top, width, height

    def _on_screen(self, x: int, y: int) -> bool:
        return any(d.contains(x, y) for d in self._capture.displays())
