"""Helper — Ordered event pump.

Events are queued and written by a single task, so they reach the
orchestrator in exactly the order they were emitted.  Emitters on other
threads (the global input listener) go through :meth:`EventPump.emit_threadsafe`,
which keeps their relative order as well.

``emit`` never raises: a slow or closed stream must not break the caller.
"""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import BaseModel

from sequencer_bridge.exceptions import TransportClosedError
from sequencer_bridge.ipc.transport import LineWriter
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.models import Event

log = get_logger(__name__)

_STOP: Any = object()


class EventPump:
    def __init__(self, writer: LineWriter) -> None:
        self._writer = writer
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._sent = 0

    @property
    def sent(self) -> int:
        return self._sent

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.create_task(self._run(), name="event-pump")

    def emit(self, name: str, data: BaseModel | dict[str, Any] | None = None) -> None:
        """Queue an event from the event-loop thread."""
        self._queue.put_nowait(_build(name, data))

    def emit_threadsafe(self, name: str, data: BaseModel | dict[str, Any] | None = None) -> None:
        """Queue an event from any thread."""
        if self._loop is None or self._loop.is_closed():
            log.debug("event_dropped_not_running", event_name=name)
            return
        event = _build(name, data)
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            log.debug("event_dropped_loop_closed", event_name=name)

    async def close(self) -> None:
        """Flush every queued event, then stop."""
        if self._task is None:
            return
        self._queue.put_nowait(_STOP)
        await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            if event is _STOP:
                return
            try:
                await self._writer.send(event)
            except TransportClosedError:
                log.warning("event_undeliverable", event_name=event.event)
                return
            self._sent += 1
            log.debug("event_sent", event_name=event.event)


def _build(name: str, data: BaseModel | dict[str, Any] | None) -> Event:
    if isinstance(data, BaseModel):
        payload = data.model_dump(mode="json", by_alias=True, exclude_none=True)
    else:
        payload = dict(data or {})
    return Event(event=name, data=payload)
