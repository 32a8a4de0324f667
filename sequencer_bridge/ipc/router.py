"""IPC — Request router (helper side).

Each inbound Request runs in its own task, so a slow handler (a pixel wait)
never delays a fast one (a click).  Every Request that carries a readable id
gets exactly one Response, unless the stream closes first and the handler
is cancelled by :meth:`RequestRouter.shutdown`.

Handlers may be registered on a *lane*: handlers sharing a lane run one at a
time in arrival order.  The overlay / recorder-mode / magnifier methods form
a single UI pipeline and share the ``ui`` lane.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from sequencer_bridge.exceptions import DecodeError, SequencerError, TransportClosedError, UnknownMethodError
from sequencer_bridge.ipc.transport import LineWriter
from sequencer_bridge.logging import bind_request_context, get_logger
from sequencer_bridge.protocol.codec import decode, describe_validation_error
from sequencer_bridge.protocol.constants import HANDLER_ERROR_PREFIX, INVALID_REQUEST_PREFIX
from sequencer_bridge.protocol.models import Request, Response
from sequencer_bridge.protocol.params import PARAMS_MAP

log = get_logger(__name__)

Handler = Callable[[Any], Awaitable[Any]]

_UNSET: Any = object()


@dataclass(frozen=True)
class Route:
    method: str
    handler: Handler
    params_model: type[BaseModel] | None
    lane: str | None = None


class RequestRouter:
    """Dispatches Requests to registered handlers and writes their Responses.

    Usage::

        router = RequestRouter(writer)
        router.register("executeClick", mouse_handler)
        async for line in reader:
            router.dispatch_line(line)
        await router.shutdown()
    """

    def __init__(self, writer: LineWriter) -> None:
        self._writer = writer
        self._routes: dict[str, Route] = {}
        self._lanes: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        method: str,
        handler: Handler,
        params_model: type[BaseModel] | None = _UNSET,
        lane: str | None = None,
    ) -> None:
        """Register *handler* for *method*.

        ``params_model`` defaults to the entry in ``PARAMS_MAP``; ``None``
        means the handler receives ``None`` and any params are ignored.
        """
        if params_model is _UNSET:
            params_model = PARAMS_MAP.get(method)
        self._routes[method] = Route(method, handler, params_model, lane)
        if lane is not None:
            self._lanes.setdefault(lane, asyncio.Lock())

    @property
    def methods(self) -> list[str]:
        return sorted(self._routes)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch_line(self, line: str) -> asyncio.Task[None] | None:
        """Decode *line* and dispatch it.  Never raises.

        Returns the task answering the line, or ``None`` when the line was
        dropped (no recoverable id, or not a Request).
        """
        try:
            message = decode(line)
        except DecodeError as exc:
            if exc.request_id is None:
                log.warning("line_dropped", reason=exc.message, raw=exc.raw_line)
                return None
            log.warning("request_invalid", request_id=exc.request_id, reason=exc.message)
            return self._spawn(self._reply(Response.fail(exc.request_id, INVALID_REQUEST_PREFIX + exc.message)))

        if not isinstance(message, Request):
            log.warning("unexpected_message_dropped", kind=type(message).__name__)
            return None
        return self.dispatch(message)

    def dispatch(self, request: Request) -> asyncio.Task[None]:
        return self._spawn(self._handle(request))

    async def shutdown(self) -> None:
        """Cancel every in-flight handler and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            log.info("handlers_cancelled", count=len(tasks))

    async def drain(self) -> None:
        """Wait for every in-flight handler to finish on its own."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task[None]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _handle(self, request: Request) -> None:
        bind_request_context(request_id=request.id, method=request.method)
        response = await self._execute(request)
        await self._reply(response)

    async def _execute(self, request: Request) -> Response:
        route = self._routes.get(request.method)
        if route is None:
            exc = UnknownMethodError(request.method)
            log.warning("unknown_method", method=request.method)
            return Response.fail(request.id, exc.message)

        try:
            params = self._parse_params(route, request.params)
        except ValidationError as exc:
            return Response.fail(request.id, INVALID_REQUEST_PREFIX + describe_validation_error(exc))

        try:
            if route.lane is not None:
                async with self._lanes[route.lane]:
                    result = await route.handler(params)
            else:
                result = await route.handler(params)
        except SequencerError as exc:
            log.warning("handler_failed", error=exc.message)
            return Response.fail(request.id, exc.message)
        except Exception as exc:
            log.exception("handler_crashed", error=str(exc))
            return Response.fail(request.id, f"{HANDLER_ERROR_PREFIX}{exc}")

        log.debug("request_completed")
        return Response.ok(request.id, _to_result(result))

    @staticmethod
    def _parse_params(route: Route, params: dict[str, Any] | None) -> Any:
        if route.params_model is None:
            return None
        return route.params_model.model_validate(params or {})

    async def _reply(self, response: Response) -> None:
        try:
            await self._writer.send(response)
        except TransportClosedError:
            log.warning("response_undeliverable", request_id=response.id)


def _to_result(result: Any) -> Any:
    if result is None:
        return None
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)
    return result
