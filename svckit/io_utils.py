"""Reading and copying helpers for byte streams, in blocking and async forms.

A reader has ``read(n)`` returning up to ``n`` bytes, with ``b""`` at end of
stream. A writer has ``write(data)`` returning the number of bytes written
(or None when it always writes everything). In the async helpers these
methods may also return awaitables.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Optional

_UNLIMITED = 2**64 - 1

Progress = Callable[[int, int], None]


class CopyError(Exception):
    """A copy failed; ``cause`` holds the underlying error."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(cause)
        self.cause = cause


class ReadError(CopyError):
    """Reading from the source failed."""


class WriteError(CopyError):
    """Writing to the destination failed."""


class PartialReadError(Exception):
    """A read failed after ``size`` bytes had been read."""

    def __init__(self, cause: BaseException, size: int) -> None:
        super().__init__(cause, size)
        self.cause = cause
        self.size = size

    def __str__(self) -> str:
        return f"read failed after {self.size} bytes: {self.cause}"


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


def _store(view: memoryview, offset: int, chunk: Optional[bytes]) -> int:
    if not chunk:
        return 0
    view[offset : offset + len(chunk)] = chunk
    return len(chunk)


def _advance(view: memoryview, written: Optional[int]) -> memoryview:
    if written is None:
        return view[len(view) :]
    if written == 0:
        raise OSError("failed to write whole buffer")
    return view[written:]


def _write_all(writer: Any, data: bytes) -> None:
    view = memoryview(data)
    while view:
        view = _advance(view, writer.write(view))


async def _async_write_all(writer: Any, data: bytes) -> None:
    view = memoryview(data)
    while view:
        view = _advance(view, await _resolve(writer.write(view)))


def try_read_full(reader: Any, buffer: bytearray) -> int:
    """Fill ``buffer`` from ``reader`` until it is full or the stream ends.

    Returns the number of bytes read. Raises PartialReadError on failure.
    """
    view = memoryview(buffer)
    size = 0
    while True:
        try:
            chunk = reader.read(len(view) - size)
        except OSError as exc:
            raise PartialReadError(exc, size) from exc
        read = _store(view, size, chunk)
        size += read
        if read == 0 or size == len(view):
            return size


def copy(reader: Any, writer: Any, buffer_size: int) -> int:
    """Copy the whole of ``reader`` to ``writer``; return the bytes copied."""
    return copy_len(reader, writer, buffer_size, _UNLIMITED)


def copy_len(reader: Any, writer: Any, buffer_size: int, length: int) -> int:
    """Copy at most ``length`` bytes; return the bytes copied."""
    return copy_len_with_progress(reader, writer, buffer_size, length, lambda _c, _r: None)


def copy_len_with_progress(
    reader: Any, writer: Any, buffer_size: int, length: int, progress: Progress
) -> int:
    """Copy at most ``length`` bytes in chunks of ``buffer_size``.

    ``progress(copied, remaining)`` is called before each read and once at
    the end. Raises ReadError or WriteError on failure.
    """
    copied = 0
    remaining = length
    while remaining > 0:
        progress(copied, remaining)
        try:
            chunk = reader.read(min(buffer_size, remaining))
        except OSError as exc:
            raise ReadError(exc) from exc
        if not chunk:
            break
        try:
            _write_all(writer, chunk)
        except OSError as exc:
            raise WriteError(exc) from exc
        copied += len(chunk)
        remaining -= len(chunk)
    progress(copied, remaining)
    return copied


async def async_try_read_full(reader: Any, buffer: bytearray) -> int:
    """Async form of :func:`try_read_full`."""
    view = memoryview(buffer)
    size = 0
    while True:
        try:
            chunk = await _resolve(reader.read(len(view) - size))
        except OSError as exc:
            raise PartialReadError(exc, size) from exc
        read = _store(view, size, chunk)
        size += read
        if read == 0 or size == len(view):
            return size


async def async_copy(reader: Any, writer: Any, buffer_size: int) -> int:
    """Async form of :func:`copy`."""
    return await async_copy_len(reader, writer, buffer_size, _UNLIMITED)


async def async_copy_len(reader: Any, writer: Any, buffer_size: int, length: int) -> int:
    """Async form of :func:`copy_len`."""
    return await async_copy_len_with_progress(
        reader, writer, buffer_size, length, lambda _c, _r: None
    )


async def async_copy_len_with_progress(
    reader: Any, writer: Any, buffer_size: int, length: int, progress: Progress
) -> int:
    """Async form of :func:`copy_len_with_progress`."""
    copied = 0
    remaining = length
    while remaining > 0:
        progress(copied, remaining)
        try:
            chunk = await _resolve(reader.read(min(buffer_size, remaining)))
        except OSError as exc:
            raise ReadError(exc) from exc
        if not chunk:
            break
        try:
            await _async_write_all(writer, chunk)
        except OSError as exc:
            raise WriteError(exc) from exc
        copied += len(chunk)
        remaining -= len(chunk)
    progress(copied, remaining)
    return copied