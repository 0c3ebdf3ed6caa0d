# svckit

Small service abstractions for applications written in an embedded style:
key/value storage, WebSocket frame types and interfaces, HTTP header, cookie
and session helpers, stream copying, a mutex with a guard and a condition
variable, and asyncio adapters over blocking MQTT clients, event buses and
callback-driven WebSocket servers.

## Installation

```
pip install svckit
```

The package has no runtime dependencies. To run the tests:

```
pip install "svckit[test]"
pytest
```

## Modules

- `svckit.storage`: the interfaces `StorageBase`, `Storage`, `DynStorage`,
  `RawStorage` and `SerDe`, and two implementations. `StorageImpl(raw_storage,
  serde, buffer_size)` stores values by serializing them into a `RawStorage`;
  failures are raised as `RawStorageError` or `SerdeError` (both
  `StorageError`). `DynStorageImpl(capacity)` is a fixed-capacity in-memory
  store that raises `NoSpaceError` when it is full.
- `svckit.ws`: `FrameKind`, `FrameType` (with `text()`, `binary()`,
  `continuation()`, `PING`, `PONG`, `CLOSE`, `SOCKET_CLOSE`, `is_fragmented()`
  and `is_final()`), and the `Sender`, `Receiver`, `Acceptor`,
  `SessionProvider` and `SenderFactory` interfaces.
- `svckit.http_utils`: `Headers`, a header list of fixed capacity with
  case-insensitive names and chainable setters (raises `HeadersFullError` when
  full); `Cookies` parsing with `set_cookie`, `remove_cookie` and
  `serialize_cookies`; `SessionImpl`, a fixed number of sessions with timeouts
  (raises `SessionError` when no slot is free); `get_cookie_session_id` and
  `set_cookie_session_id`.
- `svckit.io_utils`: `try_read_full`, `copy`, `copy_len`,
  `copy_len_with_progress`, and an `async_` version of each. Failures are
  raised as `PartialReadError`, `ReadError` or `WriteError`.
- `svckit.mutex`: `Mutex`, whose value is reached through the `MutexGuard`
  returned by `lock()`, and `Condvar` with `wait`, `wait_timeout`,
  `notify_one` and `notify_all`.
- `svckit.mqtt_connection`: a single-slot, thread-to-thread hand-off of MQTT
  events made of `ConnStateGuard`, `Postbox` and `Connection`.
- `svckit.async_mqtt`: `AsyncClient`, coroutines over a blocking MQTT client,
  with a `PublishPolicy` of publishing or enqueueing; `AsyncPostbox` and
  `AsyncConnection` hand events from any thread to a coroutine.
- `svckit.async_event_bus`: `AsyncEventBus` turns a callback-driven event bus
  into awaitable `AsyncSubscription`s and `AsyncPostbox`es.
- `svckit.async_ws`: `Processor` is driven from a WebSocket server's callback
  thread and hands connections to coroutines through its `acceptor`
  (`AsyncAcceptor`), which yields an `AsyncSender` and an `AsyncReceiver` for
  each one.

## Examples

```python
from svckit.storage import DynStorageImpl, NoSpaceError

store = DynStorageImpl(capacity=2)
store.set("a", 1)          # False: the entry is new
store.set("a", 2)          # True: an existing entry was replaced
store.set("b", 3)
try:
    store.set("c", 4)
except NoSpaceError:
    pass
assert store.get("a") == 2
```

```python
from svckit.http_utils import Cookies, Headers

headers = Headers(capacity=8)
headers.set_content_type("text/html").set_content_len(42)
assert headers.content_len() == 42
assert Cookies("SESSIONID=token").get("SESSIONID") == "token"
```

```python
from svckit.mutex import Mutex

counter = Mutex(0)
with counter.lock() as guard:
    guard.value += 1
```

## What it does not do

The package defines interfaces and adapters; it does not talk to any device,
network or file. There is no storage backend that persists data, no HTTP,
WebSocket or MQTT client or server, and no event bus of its own: those are
supplied by the caller through the interfaces described above. It also
provides no timer or clock abstractions.