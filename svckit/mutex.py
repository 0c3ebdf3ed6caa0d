"""A mutex whose value is reached through a guard, and a matching condition variable."""

from __future__ import annotations

import threading
from collections import deque
from datetime import timedelta
from types import TracebackType
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")

Timeout = Union[float, timedelta]


class Mutex(Generic[T]):
    """Protects a value; reach it through the guard returned by :meth:`lock`."""

    def __init__(self, data: T) -> None:
        self._lock = threading.Lock()
        self._data = data

    def lock(self) -> "MutexGuard[T]":
        """Block until the mutex is free and return a guard holding it."""
        self._lock.acquire()
        return MutexGuard(self)


class MutexGuard(Generic[T]):
    """Exclusive access to a :class:`Mutex` value; created by :meth:`Mutex.lock`.

    Release it with :meth:`release` or by leaving a ``with`` block.
    """

    def __init__(self, mutex: Mutex[T]) -> None:
        self._mutex = mutex
        self._held = True

    @property
    def held(self) -> bool:
        """Whether this guard still holds the mutex."""
        return self._held

    def _check(self) -> None:
        if not self._held:
            raise RuntimeError("mutex guard already released")

    @property
    def value(self) -> T:
        self._check()
        return self._mutex._data

    @value.setter
    def value(self, data: T) -> None:
        self._check()
        self._mutex._data = data

    def release(self) -> None:
        """Release the mutex; further calls do nothing."""
        if self._held:
            self._held = False
            self._mutex._lock.release()

    def __enter__(self) -> "MutexGuard[T]":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.release()


def _seconds(timeout: Timeout) -> float:
    if isinstance(timeout, timedelta):
        seconds = timeout.total_seconds()
    else:
        seconds = float(timeout)
    return max(0.0, seconds)


class Condvar:
    """A condition variable usable with the guard of any :class:`Mutex`."""

    def __init__(self) -> None:
        self._waiters: deque[threading.Lock] = deque()
        self._waiters_lock = threading.Lock()

    def _wait(self, guard: MutexGuard, seconds: Optional[float]) -> bool:
        guard._check()
        waiter = threading.Lock()
        waiter.acquire()
        with self._waiters_lock:
            self._waiters.append(waiter)
        raw = guard._mutex._lock
        raw.release()
        try:
            if seconds is None:
                notified = waiter.acquire()
            else:
                notified = waiter.acquire(timeout=seconds)
        finally:
            raw.acquire()
        if not notified:
            with self._waiters_lock:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    notified = True
        return notified

    def wait(self, guard: MutexGuard[T]) -> MutexGuard[T]:
        """Release the guard's mutex until notified, then hold it again."""
        self._wait(guard, None)
        return guard

    def wait_timeout(
        self, guard: MutexGuard[T], timeout: Timeout
    ) -> tuple[MutexGuard[T], bool]:
        """Like :meth:`wait` but give up after ``timeout``.

        Returns the guard and whether the wait timed out. ``timeout`` is a
        timedelta or a number of seconds.
        """
        notified = self._wait(guard, _seconds(timeout))
        return guard, not notified

    def notify_one(self) -> None:
        """Wake one waiting thread, if any."""
        with self._waiters_lock:
            if self._waiters:
                self._waiters.popleft().release()

    def notify_all(self) -> None:
        """Wake every waiting thread."""
        with self._waiters_lock:
            while self._waiters:
                self._waiters.popleft().release()