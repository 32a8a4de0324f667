"""IPC — Orchestrator-side bridge to the helper process.

Owns the helper subprocess (or any pair of streams) and correlates
Responses to Requests by id.  Responses may arrive in any order.

Events are put on a queue by the read loop and delivered by one dispatcher
task, strictly in arrival order, one listener call at a time.  Listeners
may themselves await Requests: the read loop keeps reading Responses while
a listener runs, so there is no deadlock.

When the helper's output ends, every in-flight Request fails with
:class:`HelperExitedError`.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from sequencer_bridge.exceptions import (
    BridgeNotRunningError,
    DecodeError,
    HelperExitedError,
    RequestFailedError,
    RequestTimeoutError,
    TransportClosedError,
)
from sequencer_bridge.ipc.transport import ByteSink, ByteSource, LineReader, LineWriter
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.codec import decode
from sequencer_bridge.protocol.constants import DEFAULT_REQUEST_TIMEOUT_MS
from sequencer_bridge.protocol.models import Event, Request, Response

log = get_logger(__name__)

EventListener = Callable[[Event], Awaitable[None] | None]

ALL_EVENTS = "*"

_STOP: Any = object()


class HelperBridge:
    """Request/response correlator and event fan-out.

    Usage::

        bridge = HelperBridge(["sequencer", "helper"])
        await bridge.start()
        bridge.on("mouseClicked", handle_click)
        await bridge.request("executeClick", {"position": {"x": 1, "y": 2}, "button": "left"})
        await bridge.stop()
    """

    def __init__(
        self,
        command: list[str] | None = None,
        request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
    ) -> None:
        self._command = command
        self._request_timeout_ms = request_timeout_ms
        self._process: asyncio.subprocess.Process | None = None
        self._writer: LineWriter | None = None
        self._pending: dict[str, tuple[str, asyncio.Future[Response]]] = {}
        self._listeners: list[tuple[str, EventListener]] = []
        self._events: asyncio.Queue[Any] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []
        self._closed = asyncio.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._writer is not None and not self._closed.is_set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def start(self) -> None:
        """Spawn the helper process and attach to its stdin/stdout."""
        if self._command is None:
            raise ValueError("HelperBridge.start() needs a helper command")
        self._process = await asyncio.create_subprocess_exec(
            *self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        assert self._process.stdin and self._process.stdout and self._process.stderr
        log.info("helper_spawned", pid=self._process.pid, command=self._command)
        self.attach(self._process.stdout, self._process.stdin)
        self._tasks.append(asyncio.create_task(self._relay_stderr(self._process.stderr)))

    def attach(self, reader: ByteSource, writer: ByteSink) -> None:
        """Talk to a helper over an existing pair of streams."""
        self._writer = LineWriter(writer)
        self._closed.clear()
        self._tasks.append(asyncio.create_task(self._read_loop(LineReader(reader)), name="bridge-read"))
        self._tasks.append(asyncio.create_task(self._dispatch_events(), name="bridge-events"))

    async def stop(self, timeout: float = 5.0) -> None:
        """Close the helper's input (its shutdown signal) and wait for it to exit."""
        if self._writer is not None:
            self._writer.close()
        if self._process is not None:
            try:
                await asyncio.wait_for(self._process.wait(), timeout)
            except asyncio.TimeoutError:
                log.warning("helper_kill", pid=self._process.pid)
                self._process.kill()
                await self._process.wait()
            log.info("helper_exited", code=self._process.returncode)
        try:
            await asyncio.wait_for(self._closed.wait(), timeout)
        except asyncio.TimeoutError:
            log.warning("bridge_read_loop_stuck")
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._fail_pending(HelperExitedError(self._exit_code()))
        self._writer = None

    async def wait_closed(self) -> None:
        await self._closed.wait()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, listener: EventListener) -> Callable[[], None]:
        """Subscribe *listener* to *event* (``"*"`` for all).  Returns an unsubscribe callable."""
        entry = (event, listener)
        self._listeners.append(entry)

        def _unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        params: BaseModel | dict[str, Any] | None = None,
        timeout_ms: int | None = None,
    ) -> Any:
        """Send a Request and return its ``result`` (``None`` for a void success).

        Raises:
            BridgeNotRunningError: no helper attached.
            RequestFailedError: the helper answered with an error Response.
            RequestTimeoutError: no Response within the timeout.
            HelperExitedError: the helper went away first.
        """
        if not self.running or self._writer is None:
            raise BridgeNotRunningError()

        request_id = uuid.uuid4().hex
        if isinstance(params, BaseModel):
            params = params.model_dump(mode="json", by_alias=True, exclude_none=True)
        future: asyncio.Future[Response] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = (method, future)

        timeout_ms = self._request_timeout_ms if timeout_ms is None else timeout_ms
        try:
            await self._writer.send(Request(id=request_id, method=method, params=params))
            log.debug("request_sent", request_id=request_id, method=method)
            response = await asyncio.wait_for(future, timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(method, timeout_ms) from exc
        except TransportClosedError as exc:
            raise HelperExitedError(self._exit_code()) from exc
        finally:
            self._pending.pop(request_id, None)

        if not response.success:
            raise RequestFailedError(method, response.error or "")
        return response.result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _read_loop(self, reader: LineReader) -> None:
        try:
            async for line in reader:
                try:
                    message = decode(line)
                except DecodeError as exc:
                    log.warning("helper_line_invalid", reason=exc.message, raw=exc.raw_line)
                    continue
                if isinstance(message, Response):
                    self._resolve(message)
                elif isinstance(message, Event):
                    self._events.put_nowait(message)
                else:
                    log.warning("helper_sent_request", method=message.method)
        finally:
            log.info("helper_output_closed", pending=len(self._pending))
            self._closed.set()
            self._fail_pending(HelperExitedError(self._exit_code()))
            self._events.put_nowait(_STOP)

    def _resolve(self, response: Response) -> None:
        entry = self._pending.get(response.id)
        if entry is None:
            log.warning("response_for_unknown_request", request_id=response.id)
            return
        _, future = entry
        if not future.done():
            future.set_result(response)

    def _fail_pending(self, error: Exception) -> None:
        for method, future in list(self._pending.values()):
            if not future.done():
                log.debug("request_abandoned", method=method)
                future.set_exception(error)
        self._pending.clear()

    async def _dispatch_events(self) -> None:
        while True:
            event = await self._events.get()
            if event is _STOP:
                return
            for pattern, listener in list(self._listeners):
                if pattern not in (ALL_EVENTS, event.event):
                    continue
                try:
                    result = listener(event)
                    if hasattr(result, "__await__"):
                        await result  # type: ignore[misc]
                except Exception as exc:
                    log.error("event_listener_error", event_name=event.event, error=str(exc))

    async def _relay_stderr(self, stream: ByteSource) -> None:
        async for line in LineReader(stream):
            log.debug("helper_stderr", line=line)

    def _exit_code(self) -> int | None:
        return self._process.returncode if self._process is not None else None
