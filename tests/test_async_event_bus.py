import asyncio
import gc
import threading

import pytest

from svckit.async_event_bus import AsyncEventBus, AsyncPostbox


class FakePostbox:
    def __init__(self, bus):
        self.bus = bus

    def post(self, payload, timeout):
        self.bus.posts.append((payload, timeout))
        if self.bus.post_error is not None:
            raise self.bus.post_error
        for callback in list(self.bus.callbacks):
            callback(payload)
        return True


class FakeBus:
    def __init__(self, subscribe_error=None, postbox_error=None, post_error=None):
        self.callbacks = []
        self.posts = []
        self.subscribe_error = subscribe_error
        self.postbox_error = postbox_error
        self.post_error = post_error

    def subscribe(self, callback):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.callbacks.append(callback)
        return object()

    def postbox(self):
        if self.postbox_error is not None:
            raise self.postbox_error
        return FakePostbox(self)


@pytest.mark.asyncio
async def test_send_then_recv():
    bus = FakeBus()
    async_bus = AsyncEventBus(bus)
    subscription = async_bus.subscribe()
    postbox = async_bus.postbox()
    await postbox.send("hello")
    assert await subscription.recv() == "hello"
    assert bus.posts == [("hello", None)]


@pytest.mark.asyncio
async def test_recv_waits_for_send():
    bus = FakeBus()
    async_bus = AsyncEventBus(bus)
    subscription = async_bus.subscribe()
    task = asyncio.create_task(subscription.recv())
    await asyncio.sleep(0)
    assert not task.done()
    await async_bus.postbox().send(42)
    assert await asyncio.wait_for(task, 2) == 42


@pytest.mark.asyncio
async def test_values_from_thread_arrive_in_order():
    bus = FakeBus()
    async_bus = AsyncEventBus(bus)
    subscription = async_bus.subscribe()
    postbox = bus.postbox()
    values = list(range(5))
    producer = threading.Thread(target=lambda: [postbox.post(v, None) for v in values])
    producer.start()
    received = [await asyncio.wait_for(subscription.recv(), 2) for _ in values]
    producer.join(2)
    assert received == values
    assert not producer.is_alive()


@pytest.mark.asyncio
async def test_async_iteration():
    bus = FakeBus()
    async_bus = AsyncEventBus(bus)
    subscription = async_bus.subscribe()
    postbox = bus.postbox()
    producer = threading.Thread(target=lambda: [postbox.post(v, None) for v in "abc"])
    producer.start()
    received = []
    async for value in subscription:
        received.append(value)
        if len(received) == 3:
            break
    producer.join(2)
    assert received == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_two_subscriptions_each_get_value():
    bus = FakeBus()
    async_bus = AsyncEventBus(bus)
    first = async_bus.subscribe()
    second = async_bus.subscribe()
    await async_bus.postbox().send("event")
    assert await first.recv() == "event"
    assert await second.recv() == "event"


@pytest.mark.asyncio
async def test_cancelled_recv_does_not_lose_next_value():
    bus = FakeBus()
    async_bus = AsyncEventBus(bus)
    subscription = async_bus.subscribe()
    task = asyncio.create_task(subscription.recv())
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await async_bus.postbox().send("later")
    assert await asyncio.wait_for(subscription.recv(), 2) == "later"


def test_subscribe_error_propagates():
    async_bus = AsyncEventBus(FakeBus(subscribe_error=ValueError("no subscribe")))
    with pytest.raises(ValueError, match="no subscribe"):
        async_bus.subscribe()


def test_postbox_error_propagates():
    async_bus = AsyncEventBus(FakeBus(postbox_error=KeyError("no postbox")))
    with pytest.raises(KeyError):
        async_bus.postbox()


@pytest.mark.asyncio
async def test_send_error_propagates():
    bus = FakeBus(post_error=OSError("post failed"))
    postbox = AsyncPostbox(bus.postbox())
    with pytest.raises(OSError, match="post failed"):
        await postbox.send(1)
    assert bus.posts == [(1, None)]


def test_dropped_subscription_ignores_events():
    bus = FakeBus()
    async_bus = AsyncEventBus(bus)
    subscription = async_bus.subscribe()
    callback = bus.callbacks[0]
    callback("pending")
    del subscription
    gc.collect()
    worker = threading.Thread(target=callback, args=("ignored",))
    worker.start()
    worker.join(2)
    assert not worker.is_alive()