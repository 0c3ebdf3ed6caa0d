"""A single-slot hand-over of MQTT events from a producer thread to a consumer."""

from __future__ import annotations

from typing import Any, Iterator

from svckit.mutex import Condvar, Mutex

# The slot is empty: nothing posted, nothing waiting to be taken.
_VACANT: Any = object()


class ConnStateGuard:
    """Shared connection state: a mutex-protected value and a change signal.

    The value is None once the connection has been closed. By default it
    starts as the empty event slot used by :class:`Postbox` and
    :class:`Connection`.
    """

    def __init__(self, state: Any = _VACANT) -> None:
        self.state: Mutex[Any] = Mutex(state)
        self.state_changed = Condvar()

    def close(self) -> None:
        """Mark the connection closed and wake everyone waiting on it."""
        with self.state.lock() as guard:
            guard.value = None
            self.state_changed.notify_all()


class Postbox:
    """Posts events into a connection, one at a time."""

    def __init__(self, guard: ConnStateGuard) -> None:
        self._guard = guard

    def post(self, event: Any) -> None:
        """Hand ``event`` to the consumer, waiting while the slot is full.

        An exception instance is raised at the consumer instead of returned.
        After the connection is closed the event is dropped.
        """
        with self._guard.state.lock() as state:
            while True:
                current = state.value
                if current is None:
                    return
                if current is _VACANT:
                    break
                self._guard.state_changed.wait(state)
            state.value = (event,)
            self._guard.state_changed.notify_all()


class Connection:
    """Receives the events posted through a :class:`Postbox`."""

    def __init__(self, guard: ConnStateGuard) -> None:
        self._guard = guard

    def _pull(self) -> tuple[bool, Any]:
        with self._guard.state.lock() as state:
            while True:
                current = state.value
                if current is None:
                    return False, None
                if current is not _VACANT:
                    state.value = _VACANT
                    self._guard.state_changed.notify_all()
                    return True, current[0]
                self._guard.state_changed.wait(state)

    def next(self) -> Any:
        """Wait for the next event; return None once the connection is closed.

        A posted exception is raised here.
        """
        _, event = self._pull()
        if isinstance(event, BaseException):
            raise event
        return event

    def __iter__(self) -> Iterator[Any]:
        while True:
            received, event = self._pull()
            if not received:
                return
            if isinstance(event, BaseException):
                raise event
            yield event