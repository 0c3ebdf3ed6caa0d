"""Awaitable WebSocket endpoints fed by a callback-driven WebSocket server.

A :class:`Processor` is driven from the server's callback thread: each call to
:meth:`Processor.process` handles one event of one connection. Coroutines on
an event loop take new connections from the processor's
:class:`AsyncAcceptor` and read their frames through :class:`AsyncReceiver`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Hashable, Optional, Union

from svckit.mutex import Condvar, Mutex
from svckit.ws import FrameType, Sender

_log = logging.getLogger(__name__)

# Marks a receiver or the acceptor as closed.
_CLOSED: Any = object()


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


@dataclass
class _Waiter:
    loop: asyncio.AbstractEventLoop
    future: asyncio.Future

    def wake(self) -> None:
        try:
            self.loop.call_soon_threadsafe(_resolve, self.future)
        except RuntimeError:
            # The waiting coroutine's event loop is already closed.
            pass


def _wake(slot: Any) -> None:
    waiter, slot.waiter = slot.waiter, None
    if waiter is not None:
        waiter.wake()


@dataclass
class _Frame:
    frame_type: FrameType
    length: int
    payload: Optional[bytes]


@dataclass
class _ReceiverSlot:
    data: Union[None, _Frame, object] = None
    waiter: Optional[_Waiter] = None


@dataclass
class _Pending:
    state: Mutex[_ReceiverSlot]
    sender: Sender
    session: Hashable


@dataclass
class _AcceptSlot:
    data: Union[None, _Pending, object] = None
    waiter: Optional[_Waiter] = None


@dataclass
class _ConnectionState:
    session: Hashable
    receiver_state: Mutex[_ReceiverSlot] = field(repr=False)


class AsyncSender:
    """Sends frames on one accepted connection."""

    def __init__(self, sender: Sender, session: Hashable) -> None:
        self._sender = sender
        self.session = session

    async def send(self, frame_type: FrameType, data: bytes) -> None:
        """Send one frame; errors from the underlying sender propagate."""
        _log.info(
            "Sending data (frame_type=%r, frame_len=%d) to WS connection %r",
            frame_type,
            len(data),
            self.session,
        )
        self._sender.send(frame_type, data)


class AsyncReceiver:
    """Receives the frames of one accepted connection."""

    def __init__(self, state: Mutex[_ReceiverSlot], changed: Condvar, session: Hashable) -> None:
        self._state = state
        self._changed = changed
        self.session = session

    async def recv(self, buffer: bytearray) -> tuple[FrameType, int]:
        """Wait for the next frame and return its type and length.

        The frame data is copied into ``buffer`` when it fits; otherwise the
        data is dropped. Once the connection is closed every call returns
        ``(FrameType.CLOSE, 0)``.
        """
        loop = asyncio.get_running_loop()
        while True:
            with self._state.lock() as guard:
                slot = guard.value
                data = slot.data
                if isinstance(data, _Frame):
                    if data.payload is not None and len(buffer) >= data.length:
                        buffer[: data.length] = data.payload
                    slot.data = None
                    self._changed.notify_all()
                    return data.frame_type, data.length
                if data is _CLOSED:
                    return FrameType.CLOSE, 0
                future = loop.create_future()
                slot.waiter = _Waiter(loop, future)
            try:
                await future
            finally:
                with self._state.lock() as guard:
                    if guard.value.waiter is not None and guard.value.waiter.future is future:
                        guard.value.waiter = None


class AsyncAcceptor:
    """Hands out the connections opened on a :class:`Processor`."""

    def __init__(self, accept: Mutex[_AcceptSlot], changed: Condvar) -> None:
        self._accept = accept
        self._changed = changed

    async def accept(self) -> tuple[AsyncSender, AsyncReceiver]:
        """Wait for a new connection and return its sender and receiver.

        After the processor is closed this waits forever.
        """
        loop = asyncio.get_running_loop()
        while True:
            with self._accept.lock() as guard:
                slot = guard.value
                data = slot.data
                if isinstance(data, _Pending):
                    slot.data = None
                    self._changed.notify_all()
                    return (
                        AsyncSender(data.sender, data.session),
                        AsyncReceiver(data.state, self._changed, data.session),
                    )
                future = loop.create_future()
                if data is not _CLOSED:
                    slot.waiter = _Waiter(loop, future)
            try:
                await future
            finally:
                with self._accept.lock() as guard:
                    if guard.value.waiter is not None and guard.value.waiter.future is future:
                        guard.value.waiter = None


class Processor:
    """Dispatches the events of a callback-driven WebSocket server.

    At most ``max_connections`` connections are tracked; further ones are
    answered with a close frame. Incoming frames are read through a buffer
    of ``frame_buffer_size`` bytes.
    """

    def __init__(self, max_connections: int, frame_buffer_size: int) -> None:
        if max_connections < 0:
            raise ValueError("max_connections must not be negative")
        if frame_buffer_size < 0:
            raise ValueError("frame_buffer_size must not be negative")
        self.max_connections = max_connections
        self._frame_buffer = bytearray(frame_buffer_size)
        self._connections: list[_ConnectionState] = []
        self._accept: Mutex[_AcceptSlot] = Mutex(_AcceptSlot())
        self._changed = Condvar()
        self.acceptor = AsyncAcceptor(self._accept, self._changed)

    def process(self, connection: Any) -> None:
        """Handle one event of ``connection``.

        ``connection`` is a Sender, Receiver, SessionProvider and
        SenderFactory. A new connection blocks until it has been accepted;
        a frame blocks until its receiver has taken it. Errors from
        receiving or sending propagate.
        """
        session = connection.session()
        if connection.is_new():
            _log.info("New WS connection %r", session)
            if not self._process_accept(session, connection):
                connection.send(FrameType.CLOSE, b"")
        elif connection.is_closed():
            index = next(
                (i for i, conn in enumerate(self._connections) if conn.session == session),
                None,
            )
            if index is not None:
                conn = self._connections.pop(index)
                self._process_receive_close(conn.receiver_state)
                _log.info("Closed WS connection %r", session)
        else:
            frame_type, length = connection.recv(self._frame_buffer)
            _log.info(
                "Incoming data (frame_type=%r, frame_len=%d) from WS connection %r",
                frame_type,
                length,
                session,
            )
            state = next(
                (conn.receiver_state for conn in self._connections if conn.session == session),
                None,
            )
            if state is not None:
                self._process_receive(state, frame_type, length)

    def _process_accept(self, session: Hashable, connection: Any) -> bool:
        if len(self._connections) >= self.max_connections:
            return False
        receiver_state: Mutex[_ReceiverSlot] = Mutex(_ReceiverSlot())
        self._connections.append(_ConnectionState(session, receiver_state))
        sender = connection.create()
        with self._accept.lock() as guard:
            guard.value.data = _Pending(receiver_state, sender, session)
            _wake(guard.value)
            while guard.value.data is not None:
                self._changed.wait(guard)
        return True

    def _process_receive(
        self, state: Mutex[_ReceiverSlot], frame_type: FrameType, length: int
    ) -> None:
        payload = bytes(self._frame_buffer[:length]) if length <= len(self._frame_buffer) else None
        with state.lock() as guard:
            guard.value.data = _Frame(frame_type, length, payload)
            _wake(guard.value)
            while isinstance(guard.value.data, _Frame):
                self._changed.wait(guard)

    @staticmethod
    def _process_receive_close(state: Mutex[_ReceiverSlot]) -> None:
        with state.lock() as guard:
            guard.value.data = _CLOSED
            _wake(guard.value)

    def close(self) -> None:
        """Stop handing out connections through the acceptor."""
        with self._accept.lock() as guard:
            guard.value.data = _CLOSED
            _wake(guard.value)

    def __enter__(self) -> "Processor":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()