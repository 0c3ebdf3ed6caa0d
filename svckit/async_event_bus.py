"""Awaitable subscriptions and postboxes over a callback-driven event bus.

The wrapped event bus has ``subscribe(callback)``, which returns a
subscription object and later calls ``callback(payload)`` for every event,
possibly from another thread, and ``postbox()``, which returns an object
with ``post(payload, timeout)``.
"""

from __future__ import annotations

import asyncio
import weakref
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from svckit.mutex import Condvar, Mutex

# The slot holds no undelivered value.
_EMPTY: Any = object()


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
            # The receiver's event loop is already closed.
            pass


@dataclass
class _Slot:
    value: Any = _EMPTY
    waiter: Optional[_Waiter] = None
    subscription: Any = None


class _Shared:
    """State shared between a subscription and the bus callback feeding it."""

    def __init__(self) -> None:
        self.slot: Mutex[_Slot] = Mutex(_Slot())
        self.changed = Condvar()

    def deliver(self, payload: Any) -> None:
        with self.slot.lock() as guard:
            while guard.value.value is not _EMPTY:
                self._wake(guard.value)
                self.changed.wait(guard)
            guard.value.value = payload
            self._wake(guard.value)

    @staticmethod
    def _wake(slot: _Slot) -> None:
        waiter, slot.waiter = slot.waiter, None
        if waiter is not None:
            waiter.wake()


class AsyncPostbox:
    """Posts events to a blocking postbox from a coroutine."""

    def __init__(self, blocking_postbox: Any) -> None:
        self._postbox = blocking_postbox

    async def send(self, value: Any) -> None:
        """Post ``value`` without a timeout; errors from the postbox propagate."""
        self._postbox.post(value, None)


class AsyncSubscription:
    """Receives the events of one event-bus subscription in a coroutine."""

    def __init__(self, shared: _Shared) -> None:
        self._shared = shared

    async def recv(self) -> Any:
        """Wait for the next event and return it."""
        shared = self._shared
        loop = asyncio.get_running_loop()
        while True:
            with shared.slot.lock() as guard:
                slot = guard.value
                if slot.value is not _EMPTY:
                    value, slot.value = slot.value, _EMPTY
                    shared.changed.notify_all()
                    return value
                waiter = _Waiter(loop, loop.create_future())
                slot.waiter = waiter
                shared.changed.notify_all()
            try:
                await waiter.future
            finally:
                with shared.slot.lock() as guard:
                    if guard.value.waiter is waiter:
                        guard.value.waiter = None

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._events()

    async def _events(self) -> AsyncIterator[Any]:
        while True:
            yield await self.recv()


class AsyncEventBus:
    """Wraps a callback-driven event bus to give awaitable subscriptions."""

    def __init__(self, event_bus: Any) -> None:
        self._event_bus = event_bus

    def subscribe(self) -> AsyncSubscription:
        """Subscribe to the bus; errors from the bus propagate."""
        shared = _Shared()
        shared_ref = weakref.ref(shared)

        def on_event(payload: Any) -> None:
            live = shared_ref()
            if live is not None:
                live.deliver(payload)

        subscription = self._event_bus.subscribe(on_event)
        with shared.slot.lock() as guard:
            guard.value.subscription = subscription
        return AsyncSubscription(shared)

    def postbox(self) -> AsyncPostbox:
        """Return an awaitable postbox over the bus's blocking one."""
        return AsyncPostbox(self._event_bus.postbox())