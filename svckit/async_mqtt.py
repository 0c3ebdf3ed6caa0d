"""Awaitable front-ends for a blocking MQTT client and its event connection."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Any, AsyncIterator, Optional

from svckit.mqtt_connection import ConnStateGuard


class PublishPolicy(Enum):
    """How :meth:`AsyncClient.publish` hands a message to the blocking client."""

    ENQUEUEING = "enqueueing"
    PUBLISHING = "publishing"


class AsyncClient:
    """Exposes a blocking MQTT client through coroutines.

    With :attr:`PublishPolicy.PUBLISHING` messages go through the client's
    ``publish`` method; with :attr:`PublishPolicy.ENQUEUEING` through its
    ``enqueue`` method. Errors raised by the client propagate unchanged.
    """

    def __init__(self, client: Any, policy: PublishPolicy = PublishPolicy.PUBLISHING) -> None:
        self.client = client
        self.policy = policy

    async def publish(self, topic: str, qos: Any, retain: bool, payload: bytes) -> Any:
        """Publish ``payload`` on ``topic``; return the message id."""
        if self.policy is PublishPolicy.ENQUEUEING:
            return self.client.enqueue(topic, qos, retain, payload)
        return self.client.publish(topic, qos, retain, payload)

    async def subscribe(self, topic: str, qos: Any) -> Any:
        """Subscribe to ``topic``; return the message id."""
        return self.client.subscribe(topic, qos)

    async def unsubscribe(self, topic: str) -> Any:
        """Unsubscribe from ``topic``; return the message id."""
        return self.client.unsubscribe(topic)

    def into_enqueueing(self) -> "AsyncClient":
        """Return a client over the same blocking client that enqueues messages."""
        return AsyncClient(self.client, PublishPolicy.ENQUEUEING)

    def into_publishing(self) -> "AsyncClient":
        """Return a client over the same blocking client that publishes messages."""
        return AsyncClient(self.client, PublishPolicy.PUBLISHING)


# The slot holds nothing and nobody is waiting.
_EMPTY: Any = object()


@dataclass
class _Waiting:
    loop: asyncio.AbstractEventLoop
    future: asyncio.Future


@dataclass
class _Received:
    event: Any


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


def _wake(waiting: _Waiting) -> None:
    try:
        waiting.loop.call_soon_threadsafe(_resolve, waiting.future)
    except RuntimeError:
        # The consumer's event loop is already closed.
        pass


class AsyncPostbox:
    """Posts events, from any thread, to an :class:`AsyncConnection`."""

    def __init__(self, guard: ConnStateGuard) -> None:
        self._guard = guard

    def post(self, event: Any) -> None:
        """Hand ``event`` to the connection, blocking while the slot is full.

        An exception instance is raised at the consumer instead of returned.
        After the connection is closed the event is dropped.
        """
        with self._guard.state.lock() as state:
            while True:
                current = state.value
                if current is None:
                    return
                if not isinstance(current, _Received):
                    break
                self._guard.state_changed.wait(state)
            state.value = _Received(event)
        if isinstance(current, _Waiting):
            _wake(current)


class AsyncConnection:
    """Receives, in a coroutine, the events posted through an :class:`AsyncPostbox`.

    Closing it, directly or by leaving a ``with`` block, ends the stream.
    """

    def __init__(self, guard: ConnStateGuard) -> None:
        self._guard = guard

    async def _pull(self) -> tuple[bool, Any]:
        loop = asyncio.get_running_loop()
        while True:
            with self._guard.state.lock() as state:
                current = state.value
                if current is None:
                    return False, None
                if isinstance(current, _Received):
                    state.value = _EMPTY
                    self._guard.state_changed.notify_all()
                    return True, current.event
                future = loop.create_future()
                state.value = _Waiting(loop, future)
                self._guard.state_changed.notify_all()
            await future

    async def next(self) -> Any:
        """Wait for the next event; return None once the connection is closed.

        A posted exception is raised here.
        """
        _, event = await self._pull()
        if isinstance(event, BaseException):
            raise event
        return event

    def close(self) -> None:
        """Close the connection, dropping later posts and waking any waiter."""
        with self._guard.state.lock() as state:
            previous = state.value
            state.value = None
            self._guard.state_changed.notify_all()
        if isinstance(previous, _Waiting):
            _wake(previous)

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._events()

    async def _events(self) -> AsyncIterator[Any]:
        while True:
            received, event = await self._pull()
            if not received:
                return
            if isinstance(event, BaseException):
                raise event
            yield event

    def __enter__(self) -> "AsyncConnection":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()