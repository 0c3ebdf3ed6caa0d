import io

import pytest

from svckit.io_utils import (
    PartialReadError,
    ReadError,
    WriteError,
    async_copy,
    async_copy_len,
    async_copy_len_with_progress,
    async_try_read_full,
    copy,
    copy_len,
    copy_len_with_progress,
    try_read_full,
)

DATA = bytes(range(200)) * 3


class _Trickle:
    """Returns at most ``step`` bytes per read, then fails if asked to."""

    def __init__(self, data, step, fail_after=None):
        self._data = data
        self._step = step
        self._fail_after = fail_after
        self._pos = 0

    def read(self, n):
        if self._fail_after is not None and self._pos >= self._fail_after:
            raise OSError("broken")
        chunk = self._data[self._pos : self._pos + min(n, self._step)]
        self._pos += len(chunk)
        return chunk


class _PartialWriter:
    def __init__(self, step):
        self.out = bytearray()
        self._step = step

    def write(self, data):
        part = bytes(data[: self._step])
        self.out += part
        return len(part)


class _BrokenWriter:
    def write(self, data):
        raise OSError("disk full")


class _AsyncReader:
    def __init__(self, data, step):
        self._inner = _Trickle(data, step)

    async def read(self, n):
        return self._inner.read(n)


class _AsyncWriter:
    def __init__(self):
        self.out = bytearray()

    async def write(self, data):
        self.out += data
        return len(data)


def test_try_read_full_fills_buffer():
    buffer = bytearray(100)
    assert try_read_full(_Trickle(DATA, 7), buffer) == len(buffer)
    assert bytes(buffer) == DATA[: len(buffer)]


def test_try_read_full_stops_at_eof():
    buffer = bytearray(len(DATA) + 50)
    assert try_read_full(io.BytesIO(DATA), buffer) == len(DATA)
    assert bytes(buffer[: len(DATA)]) == DATA


def test_try_read_full_reports_partial_size():
    with pytest.raises(PartialReadError) as info:
        try_read_full(_Trickle(DATA, 10, fail_after=30), bytearray(100))
    assert info.value.size == 30


def test_copy_whole_stream():
    out = io.BytesIO()
    assert copy(io.BytesIO(DATA), out, 64) == len(DATA)
    assert out.getvalue() == DATA


def test_copy_len_limits_length():
    out = io.BytesIO()
    assert copy_len(io.BytesIO(DATA), out, 64, 100) == 100
    assert out.getvalue() == DATA[:100]


def test_copy_handles_partial_writes():
    writer = _PartialWriter(5)
    assert copy(io.BytesIO(DATA), writer, 32) == len(DATA)
    assert bytes(writer.out) == DATA


def test_progress_reports_and_sums():
    calls = []
    copied = copy_len_with_progress(
        io.BytesIO(DATA), io.BytesIO(), 64, 150, lambda c, r: calls.append((c, r))
    )
    assert calls[0] == (0, 150)
    assert calls[-1] == (copied, 150 - copied)
    assert all(c + r == 150 for c, r in calls)


def test_copy_read_error():
    with pytest.raises(ReadError) as info:
        copy(_Trickle(DATA, 10, fail_after=0), io.BytesIO(), 16)
    assert isinstance(info.value.cause, OSError)


def test_copy_write_error():
    with pytest.raises(WriteError):
        copy(io.BytesIO(DATA), _BrokenWriter(), 16)


def test_copy_empty_source():
    out = io.BytesIO()
    assert copy(io.BytesIO(b""), out, 16) == 0
    assert out.getvalue() == b""


@pytest.mark.asyncio
async def test_async_try_read_full():
    buffer = bytearray(50)
    assert await async_try_read_full(_AsyncReader(DATA, 9), buffer) == len(buffer)
    assert bytes(buffer) == DATA[: len(buffer)]


@pytest.mark.asyncio
async def test_async_copy():
    writer = _AsyncWriter()
    assert await async_copy(_AsyncReader(DATA, 13), writer, 40) == len(DATA)
    assert bytes(writer.out) == DATA


@pytest.mark.asyncio
async def test_async_copy_len():
    writer = _AsyncWriter()
    assert await async_copy_len(_AsyncReader(DATA, 13), writer, 40, 77) == 77
    assert bytes(writer.out) == DATA[:77]


@pytest.mark.asyncio
async def test_async_copy_progress_and_sync_io():
    calls = []
    out = io.BytesIO()
    copied = await async_copy_len_with_progress(
        io.BytesIO(DATA), out, 64, 90, lambda c, r: calls.append((c, r))
    )
    assert out.getvalue() == DATA[:copied]
    assert calls[0] == (0, 90)
    assert all(c + r == 90 for c, r in calls)