import threading
from datetime import timedelta

import pytest

from svckit.mutex import Condvar, Mutex


def test_guard_reads_and_writes_value():
    mutex = Mutex([1])
    with mutex.lock() as guard:
        guard.value.append(2)
        guard.value = guard.value + [3]
    with mutex.lock() as guard:
        assert guard.value == [1, 2, 3]


def test_released_guard_rejects_access():
    mutex = Mutex("data")
    guard = mutex.lock()
    guard.release()
    assert guard.held is False
    with pytest.raises(RuntimeError):
        _ = guard.value
    with pytest.raises(RuntimeError):
        guard.value = "other"


def test_lock_can_be_taken_again_after_release():
    mutex = Mutex(0)
    with mutex.lock() as guard:
        guard.value = 5
    second = mutex.lock()
    assert second.value == 5
    second.release()


def test_lock_is_exclusive_between_threads():
    mutex = Mutex(0)
    threads_count = 8
    rounds = 500

    def work():
        for _ in range(rounds):
            with mutex.lock() as guard:
                current = guard.value
                guard.value = current + 1

    threads = [threading.Thread(target=work) for _ in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    with mutex.lock() as guard:
        assert guard.value == threads_count * rounds


def test_wait_wakes_on_notify():
    mutex = Mutex(None)
    condvar = Condvar()

    def produce():
        with mutex.lock() as guard:
            guard.value = "ready"
            condvar.notify_all()

    with mutex.lock() as guard:
        producer = threading.Thread(target=produce)
        producer.start()
        while guard.value is None:
            returned = condvar.wait(guard)
            assert returned is guard
        assert guard.value == "ready"
    producer.join()


def test_wait_timeout_times_out():
    mutex = Mutex(1)
    condvar = Condvar()
    with mutex.lock() as guard:
        returned, timed_out = condvar.wait_timeout(guard, 0.01)
        assert timed_out is True
        assert returned is guard
        assert guard.value == 1


def test_wait_timeout_with_timedelta_notified():
    mutex = Mutex(False)
    condvar = Condvar()

    def produce():
        with mutex.lock() as guard:
            guard.value = True
            condvar.notify_one()

    with mutex.lock() as guard:
        producer = threading.Thread(target=produce)
        producer.start()
        timed_out = False
        while not guard.value:
            guard, timed_out = condvar.wait_timeout(guard, timedelta(seconds=5))
        assert guard.value is True
        assert timed_out is False
    producer.join()


def test_wait_requires_held_guard():
    mutex = Mutex(0)
    condvar = Condvar()
    guard = mutex.lock()
    guard.release()
    with pytest.raises(RuntimeError):
        condvar.wait(guard)