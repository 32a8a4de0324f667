"""Helper — Tk capture surface.

Draws what :class:`~sequencer_bridge.helper.overlay.OverlayController`
tracks: the recorder toolbar, the pixel picker (click a pixel or drag a
zone) and the delay input.

Tk runs on the thread that calls :meth:`TkSurface.run`, the process main
thread.  The asyncio side never touches a widget: it queues commands that
the Tk loop drains with ``after``.  Interactions travel the other way by
scheduling the controller's ``on_*`` callbacks on the event loop.

The interaction handlers (``icon_pressed``, ``toolbar_released``,
``picker_released``, ``time_submitted``, ...) take plain screen coordinates
or text, so they work the same whether a widget binding or a test calls
them.
"""

from __future__ import annotations

import asyncio
import inspect
import queue
from typing import TYPE_CHECKING, Any, Callable

from sequencer_bridge.helper.recorder_mode import IDLE, RecorderMode
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.models import OverlayIcon, Point, RecorderState, RecorderSubState, Rect

if TYPE_CHECKING:
    from sequencer_bridge.helper.overlay import OverlayController

log = get_logger(__name__)

OVERLAY_WIDTH = 360
OVERLAY_HEIGHT = 60
TOOLBAR_ALPHA = 0.85
PICKER_ALPHA = 0.2
COMMAND_POLL_MS = 30

CLICK_SLOP_PX = 5
MIN_ZONE_PX = 5
MAX_DELAY_MS = 3_600_000
DELAY_PRESETS_MS = (100, 250, 500, 1000, 2000, 5000)

ICON_LABELS: dict[OverlayIcon, str] = {
    OverlayIcon.ACTION: "Action",
    OverlayIcon.TRANSITION: "Trans",
    OverlayIcon.MOUSE: "Mouse",
    OverlayIcon.KEYBOARD: "Key",
    OverlayIcon.TIME: "Time",
}

_ICON_SUB_STATES: dict[OverlayIcon, RecorderSubState] = {
    OverlayIcon.MOUSE: RecorderSubState.MOUSE,
    OverlayIcon.KEYBOARD: RecorderSubState.KEYBOARD,
    OverlayIcon.TIME: RecorderSubState.TIME,
}


def icon_enabled(mode: RecorderMode, icon: OverlayIcon) -> bool:
    """Whether the toolbar accepts a click on *icon* in *mode*."""
    if icon is OverlayIcon.ACTION:
        return mode.state is not RecorderState.ACTION
    if icon is OverlayIcon.TRANSITION:
        return mode.state is not RecorderState.TRANSITION
    if icon is OverlayIcon.MOUSE:
        return mode.state is not RecorderState.IDLE
    if icon is OverlayIcon.KEYBOARD:
        return mode.state is RecorderState.ACTION
    return mode.state is RecorderState.TRANSITION


def icon_selected(mode: RecorderMode, icon: OverlayIcon) -> bool:
    if icon in (OverlayIcon.ACTION, OverlayIcon.TRANSITION):
        return mode.state.value == icon.value
    return mode.sub_state is _ICON_SUB_STATES[icon]


def parse_delay(text: str) -> int | None:
    """Milliseconds typed into the delay input; None unless 0 < ms <= 1 h."""
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if not 0 < value <= MAX_DELAY_MS:
        return None
    return round(value)


def _preset_label(ms: int) -> str:
    return f"{ms // 1000}s" if ms >= 1000 and ms % 1000 == 0 else f"{ms}ms"


class OverlaySurface:
    """Headless surface: draws nothing and never reports an interaction."""

    def attach(self, controller: OverlayController) -> None:
        pass

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        pass

    def close(self) -> None:
        pass

    def show_toolbar(self, position: Point) -> None:
        pass

    def hide_toolbar(self) -> None:
        pass

    def set_mode(self, mode: RecorderMode) -> None:
        pass

    def show_picker(self) -> None:
        pass

    def hide_picker(self) -> None:
        pass

    def show_time_input(self) -> None:
        pass

    def hide_time_input(self) -> None:
        pass


class TkSurface(OverlaySurface):
    """tkinter rendition of the capture surface.

    Usage::

        surface = TkSurface()
        # start the asyncio side on another thread with this surface, then:
        surface.run()  # returns after close()
    """

    def __init__(self) -> None:
        self._controller: OverlayController | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._commands: queue.SimpleQueue[tuple[Callable[..., None], tuple[Any, ...]] | None] = queue.SimpleQueue()
        self._mode: RecorderMode = IDLE
        self._position = Point(x=0, y=0)
        self._drag_from: tuple[float, float, Point] | None = None
        self._pick_from: tuple[float, float] | None = None
        self._headless = False

        self._tk: Any = None
        self._root: Any = None
        self._toolbar: Any = None
        self._buttons: dict[OverlayIcon, Any] = {}
        self._picker: Any = None
        self._picker_canvas: Any = None
        self._readout: Any = None
        self._zone_item: Any = None
        self._time_input: Any = None
        self._time_entry: Any = None

    # ------------------------------------------------------------------
    # Event-loop side
    # ------------------------------------------------------------------

    def attach(self, controller: OverlayController) -> None:
        self._controller = controller

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def close(self) -> None:
        self._commands.put(None)

    def show_toolbar(self, position: Point) -> None:
        self._position = position
        self._submit(self._draw_toolbar, position)

    def hide_toolbar(self) -> None:
        self._submit(self._withdraw, "_toolbar")

    def set_mode(self, mode: RecorderMode) -> None:
        self._mode = mode
        self._submit(self._refresh_toolbar)

    def show_picker(self) -> None:
        self._submit(self._draw_picker)

    def hide_picker(self) -> None:
        self._submit(self._withdraw, "_picker")

    def show_time_input(self) -> None:
        self._submit(self._draw_time_input)

    def hide_time_input(self) -> None:
        self._submit(self._withdraw, "_time_input")

    def _submit(self, command: Callable[..., None], *args: Any) -> None:
        if self._headless:
            return
        self._commands.put((command, args))

    # ------------------------------------------------------------------
    # Tk thread
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Run the Tk main loop on the calling thread until :meth:`close`."""
        try:
            import tkinter
        except ImportError as exc:
            log.warning("overlay_surface_unavailable", error=str(exc))
            self._headless = True
            return
        try:
            root = tkinter.Tk()
        except tkinter.TclError as exc:
            log.warning("overlay_surface_unavailable", error=str(exc))
            self._headless = True
            return

        root.withdraw()
        self._tk, self._root = tkinter, root
        root.after(COMMAND_POLL_MS, self._drain)
        log.info("overlay_surface_started")
        try:
            root.mainloop()
        finally:
            root.destroy()
            self._root = None
            log.info("overlay_surface_stopped")

    def _drain(self) -> None:
        while True:
            try:
                item = self._commands.get_nowait()
            except queue.Empty:
                break
            if item is None:
                self._root.quit()
                return
            command, args = item
            try:
                command(*args)
            except self._tk.TclError as exc:
                log.warning("overlay_command_failed", command=command.__name__, error=str(exc))
        self._root.after(COMMAND_POLL_MS, self._drain)

    def _report(self, callback: Callable[..., Any], *args: Any) -> None:
        """Schedule a controller callback on the event loop."""
        if self._loop is None or self._loop.is_closed():
            log.debug("overlay_interaction_dropped", callback=callback.__name__)
            return
        if inspect.iscoroutinefunction(callback):
            asyncio.run_coroutine_threadsafe(callback(*args), self._loop)
        else:
            self._loop.call_soon_threadsafe(callback, *args)

    def _withdraw(self, attr: str) -> None:
        window = getattr(self, attr)
        if window is not None:
            window.withdraw()

    # ------------------------------------------------------------------
    # Toolbar
    # ------------------------------------------------------------------

    def icon_pressed(self, icon: OverlayIcon) -> bool:
        """Report an icon click unless the icon is disabled in the current mode."""
        if self._controller is None or not icon_enabled(self._mode, icon):
            log.debug("overlay_icon_ignored", icon=icon.value, state=self._mode.state.value)
            return False
        self._report(self._controller.on_icon_clicked, icon)
        return True

    def close_pressed(self) -> None:
        if self._controller is not None:
            self._report(self._controller.on_closed)

    def toolbar_pressed(self, x_root: float, y_root: float) -> None:
        self._drag_from = (x_root, y_root, self._position)

    def toolbar_dragged(self, x_root: float, y_root: float) -> None:
        origin = self._drag_target(x_root, y_root)
        if origin is not None:
            self._place_toolbar(origin)

    def toolbar_released(self, x_root: float, y_root: float) -> Point | None:
        """Finish a drag; reports the new top-left corner if the toolbar moved."""
        origin = self._drag_target(x_root, y_root)
        start, self._drag_from = self._drag_from, None
        if origin is None or start is None or origin == start[2]:
            return None
        self._position = origin
        self._place_toolbar(origin)
        if self._controller is not None:
            self._report(self._controller.on_moved, origin)
        return origin

    def _drag_target(self, x_root: float, y_root: float) -> Point | None:
        if self._drag_from is None:
            return None
        start_x, start_y, origin = self._drag_from
        return Point(x=origin.x + x_root - start_x, y=origin.y + y_root - start_y)

    def _draw_toolbar(self, position: Point) -> None:
        if self._toolbar is None:
            self._build_toolbar()
        self._place_toolbar(position)
        self._toolbar.deiconify()
        self._toolbar.lift()
        self._refresh_toolbar()

    def _build_toolbar(self) -> None:
        tk = self._tk
        bar = tk.Toplevel(self._root)
        bar.overrideredirect(True)
        bar.attributes("-topmost", True)
        bar.attributes("-alpha", TOOLBAR_ALPHA)
        bar.configure(bg="black")

        grip = tk.Label(bar, text="::", bg="black", fg="white", cursor="fleur", padx=6)
        grip.pack(side=tk.LEFT, fill=tk.Y)
        for widget in (bar, grip):
            widget.bind("<ButtonPress-1>", lambda e: self.toolbar_pressed(e.x_root, e.y_root))
            widget.bind("<B1-Motion>", lambda e: self.toolbar_dragged(e.x_root, e.y_root))
            widget.bind("<ButtonRelease-1>", lambda e: self.toolbar_released(e.x_root, e.y_root))

        for icon, label in ICON_LABELS.items():
            button = tk.Button(bar, text=label, width=6, command=lambda icon=icon: self.icon_pressed(icon))
            button.pack(side=tk.LEFT, padx=2, pady=8)
            self._buttons[icon] = button
        tk.Button(bar, text="x", width=2, command=self.close_pressed).pack(side=tk.RIGHT, padx=6, pady=8)
        self._toolbar = bar

    def _place_toolbar(self, origin: Point) -> None:
        if self._toolbar is not None:
            self._toolbar.geometry(f"{OVERLAY_WIDTH}x{OVERLAY_HEIGHT}+{int(origin.x)}+{int(origin.y)}")

    def _refresh_toolbar(self) -> None:
        for icon, button in self._buttons.items():
            button.configure(
                state="normal" if icon_enabled(self._mode, icon) else "disabled",
                relief="sunken" if icon_selected(self._mode, icon) else "raised",
            )

    # ------------------------------------------------------------------
    # Pixel picker (magnifier + zone drag)
    # ------------------------------------------------------------------

    def picker_pressed(self, x_root: float, y_root: float) -> None:
        self._pick_from = (x_root, y_root)

    def picker_dragged(self, x_root: float, y_root: float) -> None:
        if self._pick_from is not None:
            self._draw_zone(self._pick_from, (x_root, y_root))

    def picker_released(self, x_root: float, y_root: float) -> Point | Rect | None:
        """A short press picks the pixel under the pointer; a drag selects a zone.

        A drag that is too thin to be a zone is discarded.
        """
        if self._pick_from is None or self._controller is None:
            return None
        (start_x, start_y), self._pick_from = self._pick_from, None
        self._clear_zone()

        if abs(x_root - start_x) < CLICK_SLOP_PX and abs(y_root - start_y) < CLICK_SLOP_PX:
            point = Point(x=x_root, y=y_root)
            # The translucent picker must be off screen before the pixel is sampled.
            self._hide_picker_now()
            self._report(self._controller.on_pixel_picked, point)
            return point

        rect = Rect(
            x=min(start_x, x_root),
            y=min(start_y, y_root),
            width=abs(x_root - start_x),
            height=abs(y_root - start_y),
        )
        if rect.width <= MIN_ZONE_PX or rect.height <= MIN_ZONE_PX:
            log.debug("zone_too_small", width=rect.width, height=rect.height)
            return None
        self._hide_picker_now()
        self._report(self._controller.on_zone_selected, rect)
        return rect

    def picker_cancelled(self) -> None:
        self._pick_from = None
        self._clear_zone()

    def _hide_picker_now(self) -> None:
        if self._picker is not None:
            self._picker.withdraw()
            self._root.update_idletasks()

    def _draw_picker(self) -> None:
        if self._picker is None:
            self._build_picker()
        self._picker.deiconify()
        self._picker.lift()
        self._picker.focus_force()

    def _build_picker(self) -> None:
        tk = self._tk
        window = tk.Toplevel(self._root)
        window.attributes("-fullscreen", True)
        window.attributes("-alpha", PICKER_ALPHA)
        window.attributes("-topmost", True)
        canvas = tk.Canvas(window, bg="gray", cursor="crosshair", highlightthickness=0)
        canvas.pack(fill="both", expand=True)
        readout = tk.Label(
            canvas, text="Click a pixel or drag a zone. Esc cancels a drag.", bg="lightyellow", fg="black"
        )
        readout.place(x=10, y=10)

        canvas.bind("<ButtonPress-1>", lambda e: self.picker_pressed(e.x_root, e.y_root))
        canvas.bind("<B1-Motion>", lambda e: self.picker_dragged(e.x_root, e.y_root))
        canvas.bind("<ButtonRelease-1>", lambda e: self.picker_released(e.x_root, e.y_root))
        canvas.bind("<Motion>", lambda e: readout.configure(text=f"{e.x_root}, {e.y_root}"))
        window.bind("<Escape>", lambda e: self.picker_cancelled())
        self._picker, self._picker_canvas, self._readout = window, canvas, readout

    def _draw_zone(self, start: tuple[float, float], end: tuple[float, float]) -> None:
        canvas = self._picker_canvas
        if canvas is None:
            return
        dx, dy = self._picker.winfo_rootx(), self._picker.winfo_rooty()
        coords = (start[0] - dx, start[1] - dy, end[0] - dx, end[1] - dy)
        if self._zone_item is None:
            self._zone_item = canvas.create_rectangle(*coords, outline="red", width=2)
        else:
            canvas.coords(self._zone_item, *coords)

    def _clear_zone(self) -> None:
        if self._picker_canvas is not None and self._zone_item is not None:
            self._picker_canvas.delete(self._zone_item)
        self._zone_item = None

    # ------------------------------------------------------------------
    # Delay input
    # ------------------------------------------------------------------

    def time_submitted(self, text: str) -> int | None:
        """Report a typed delay; invalid input leaves the dialog open."""
        ms = parse_delay(text)
        if ms is None or self._controller is None:
            log.debug("delay_rejected", text=text)
            return None
        self._withdraw("_time_input")
        self._report(self._controller.on_time_entered, ms)
        return ms

    def time_cancelled(self) -> None:
        self._withdraw("_time_input")
        if self._controller is not None:
            self._report(self._controller.on_time_cancelled)

    def _draw_time_input(self) -> None:
        if self._time_input is None:
            self._build_time_input()
        window, entry = self._time_input, self._time_entry
        entry.delete(0, self._tk.END)
        window.update_idletasks()
        x = (window.winfo_screenwidth() - window.winfo_reqwidth()) // 2
        y = (window.winfo_screenheight() - window.winfo_reqheight()) // 2
        window.geometry(f"+{x}+{y}")
        window.deiconify()
        window.lift()
        entry.focus_force()

    def _build_time_input(self) -> None:
        tk = self._tk
        window = tk.Toplevel(self._root)
        window.title("Enter Delay")
        window.attributes("-topmost", True)
        window.resizable(False, False)

        row = tk.Frame(window)
        row.pack(padx=12, pady=(12, 6))
        entry = tk.Entry(row, width=10, justify="right")
        entry.pack(side=tk.LEFT)
        tk.Label(row, text="ms").pack(side=tk.LEFT, padx=4)

        presets = tk.Frame(window)
        presets.pack(padx=12)
        for ms in DELAY_PRESETS_MS:
            tk.Button(presets, text=_preset_label(ms), width=5, command=lambda ms=ms: self._fill_delay(ms)).pack(
                side=tk.LEFT, padx=1
            )

        actions = tk.Frame(window)
        actions.pack(padx=12, pady=(6, 12), fill=tk.X)
        tk.Button(actions, text="Cancel", command=self.time_cancelled).pack(side=tk.LEFT)
        tk.Button(actions, text="Add", command=lambda: self.time_submitted(entry.get())).pack(side=tk.RIGHT)

        entry.bind("<Return>", lambda e: self.time_submitted(entry.get()))
        window.bind("<Escape>", lambda e: self.time_cancelled())
        window.protocol("WM_DELETE_WINDOW", self.time_cancelled)
        self._time_input, self._time_entry = window, entry

    def _fill_delay(self, ms: int) -> None:
        self._time_entry.delete(0, self._tk.END)
        self._time_entry.insert(0, str(ms))
