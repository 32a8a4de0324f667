"""Unit tests — Line transport."""

from __future__ import annotations

import asyncio

import pytest

from sequencer_bridge.exceptions import TransportClosedError
from sequencer_bridge.ipc.transport import LineReader, LineWriter
from sequencer_bridge.protocol.models import Response


class ChunkSource:
    def __init__(self, *chunks: bytes) -> None:
        self._chunks = list(chunks)

    async def read(self, n: int = -1) -> bytes:
        return self._chunks.pop(0) if self._chunks else b""


class RecordingSink:
    def __init__(self, fail: bool = False) -> None:
        self.data = bytearray()
        self.closed = False
        self._fail = fail

    def write(self, data: bytes) -> None:
        if self._fail:
            raise BrokenPipeError("gone")
        self.data.extend(data)

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def close(self) -> None:
        self.closed = True


@pytest.mark.unit
class TestLineReader:
    async def test_reassembles_split_line(self) -> None:
        reader = LineReader(ChunkSource(b'{"a":', b"1}\n"))
        assert await reader.readline() == '{"a":1}'
        assert await reader.readline() is None

    async def test_several_lines_in_one_chunk(self) -> None:
        reader = LineReader(ChunkSource(b"one\ntwo\nthree\n"))
        assert [line async for line in reader] == ["one", "two", "three"]

    async def test_blank_lines_skipped(self) -> None:
        reader = LineReader(ChunkSource(b"\n\r\none\n\n"))
        assert [line async for line in reader] == ["one"]

    async def test_partial_line_at_eof_discarded(self) -> None:
        reader = LineReader(ChunkSource(b"complete\nincomple"))
        assert await reader.readline() == "complete"
        assert await reader.readline() is None
        assert reader.at_eof

    async def test_invalid_utf8_line_skipped(self) -> None:
        reader = LineReader(ChunkSource(b"\xff\xfe\nok\n"))
        assert [line async for line in reader] == ["ok"]


@pytest.mark.unit
class TestLineWriter:
    async def test_one_message_per_line(self) -> None:
        sink = RecordingSink()
        writer = LineWriter(sink)
        await writer.send(Response.ok("1"))
        await writer.send(Response.ok("2", {"matched": True}))
        lines = bytes(sink.data).split(b"\n")
        assert lines[-1] == b""
        assert len(lines) == 3

    async def test_concurrent_senders_do_not_interleave(self) -> None:
        sink = RecordingSink()
        writer = LineWriter(sink)
        await asyncio.gather(*(writer.send_line(f"line-{i}" * 50) for i in range(20)))
        lines = bytes(sink.data).decode().splitlines()
        assert sorted(lines) == sorted(f"line-{i}" * 50 for i in range(20))

    async def test_broken_pipe_raises_closed(self) -> None:
        writer = LineWriter(RecordingSink(fail=True))
        with pytest.raises(TransportClosedError):
            await writer.send_line("x")
        assert writer.closed

    async def test_send_after_close_raises(self) -> None:
        sink = RecordingSink()
        writer = LineWriter(sink)
        writer.close()
        assert sink.closed
        with pytest.raises(TransportClosedError):
            await writer.send_line("x")
