"""IPC — Newline-delimited line transport.

Two unidirectional byte streams, one message per line.  The reader buffers
partial reads and only ever hands out complete lines; the writer serialises
concurrent senders so bytes of two messages never interleave.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Protocol

from sequencer_bridge.exceptions import TransportClosedError
from sequencer_bridge.logging import get_logger
from sequencer_bridge.protocol.codec import encode
from sequencer_bridge.protocol.models import Message

log = get_logger(__name__)

_CHUNK_SIZE = 64 * 1024


class ByteSource(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


class ByteSink(Protocol):
    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...

    def close(self) -> None: ...


class LineReader:
    """Yields complete UTF-8 lines from a byte stream.

    Usage::

        reader = LineReader(stream)
        while (line := await reader.readline()) is not None:
            handle(line)
    """

    def __init__(self, stream: ByteSource) -> None:
        self._stream = stream
        self._buffer = bytearray()
        self._eof = False

    @property
    def at_eof(self) -> bool:
        return self._eof and not self._buffer

    async def readline(self) -> str | None:
        """Return the next non-empty line, or ``None`` at end of input.

        Unterminated trailing bytes at EOF are discarded: a line IS a
        message, and a message without its newline is incomplete.
        """
        while True:
            newline = self._buffer.find(b"\n")
            if newline >= 0:
                raw = bytes(self._buffer[:newline])
                del self._buffer[: newline + 1]
                line = self._decode(raw)
                if line:
                    return line
                continue

            if self._eof:
                if self._buffer:
                    log.warning("partial_line_discarded", size=len(self._buffer))
                    self._buffer.clear()
                return None

            chunk = await self._stream.read(_CHUNK_SIZE)
            if not chunk:
                self._eof = True
            else:
                self._buffer.extend(chunk)

    def __aiter__(self) -> "LineReader":
        return self

    async def __anext__(self) -> str:
        line = await self.readline()
        if line is None:
            raise StopAsyncIteration
        return line

    @staticmethod
    def _decode(raw: bytes) -> str:
        try:
            return raw.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            log.warning("line_not_utf8", error=str(exc), size=len(raw))
            return ""


class LineWriter:
    """Writes one encoded message per line under a lock."""

    def __init__(self, stream: ByteSink) -> None:
        self._stream = stream
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: Message) -> None:
        await self.send_line(encode(message))

    async def send_line(self, line: str) -> None:
        if self._closed:
            raise TransportClosedError()
        data = line.encode("utf-8") + b"\n"
        async with self._lock:
            try:
                self._stream.write(data)
                await self._stream.drain()
            except (BrokenPipeError, ConnectionResetError) as exc:
                self._closed = True
                raise TransportClosedError(f"Peer closed the stream: {exc}") from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.close()
        except (BrokenPipeError, ConnectionResetError, RuntimeError) as exc:
            log.debug("stream_close_failed", error=str(exc))


async def open_stdio_streams() -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Wrap this process's stdin/stdout as asyncio streams."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=_CHUNK_SIZE)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    transport, write_protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, sys.stdout
    )
    writer = asyncio.StreamWriter(transport, write_protocol, reader, loop)
    return reader, writer
