"""HTTP helpers: a bounded header list, cookie parsing and server-side sessions."""

from __future__ import annotations

import re
import string
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Iterable, Iterator, Optional, Protocol, TypeVar

R = TypeVar("R")

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_U64_MAX = 2**64 - 1
_CONTENT_LEN_RE = re.compile(r"\+?[0-9]+")

SESSION_COOKIE = "SESSIONID"


def _same_name(a: str, b: str) -> bool:
    return a.translate(_ASCII_LOWER) == b.translate(_ASCII_LOWER)


class HeadersFullError(Exception):
    """A :class:`Headers` list has no room for another header."""

    def __init__(self, message: str = "No space left") -> None:
        super().__init__(message)


class _HeaderSource(Protocol):
    def header(self, name: str) -> Optional[str]: ...


class Headers:
    """An ordered list of HTTP headers holding at most ``capacity`` entries.

    Names are matched without regard to ASCII case. Setters return the
    instance so that calls can be chained.
    """

    def __init__(self, capacity: int = 64) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.capacity = capacity
        self._entries: list[tuple[str, str]] = []

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Headers({self._entries!r})"

    def get(self, name: str) -> Optional[str]:
        """Return the value of the first header called ``name``, or None."""
        return next((value for hname, value in self._entries if _same_name(name, hname)), None)

    def header(self, name: str) -> Optional[str]:
        """Same as :meth:`get`; lets a ``Headers`` serve as a header source."""
        return self.get(name)

    def content_len(self) -> Optional[int]:
        """Return Content-Length as an integer; raise ValueError if malformed."""
        raw = self.get("Content-Length")
        if raw is None:
            return None
        if not _CONTENT_LEN_RE.fullmatch(raw):
            raise ValueError(f"invalid Content-Length: {raw!r}")
        value = int(raw)
        if value > _U64_MAX:
            raise ValueError(f"Content-Length out of range: {raw!r}")
        return value

    def content_type(self) -> Optional[str]:
        return self.get("Content-Type")

    def content_encoding(self) -> Optional[str]:
        return self.get("Content-Encoding")

    def transfer_encoding(self) -> Optional[str]:
        return self.get("Transfer-Encoding")

    def host(self) -> Optional[str]:
        return self.get("Host")

    def connection(self) -> Optional[str]:
        return self.get("Connection")

    def cache_control(self) -> Optional[str]:
        return self.get("Cache-Control")

    def upgrade(self) -> Optional[str]:
        return self.get("Upgrade")

    def set(self, name: str, value: str) -> "Headers":
        """Replace the header ``name`` or append it; raise HeadersFullError if full."""
        if not name:
            raise ValueError("header name must not be empty")
        for index, (hname, _) in enumerate(self._entries):
            if _same_name(hname, name):
                self._entries[index] = (name, value)
                return self
        if len(self._entries) >= self.capacity:
            raise HeadersFullError()
        self._entries.append((name, value))
        return self

    def remove(self, name: str) -> "Headers":
        """Remove the first header called ``name``, keeping the others in order."""
        for index, (hname, _) in enumerate(self._entries):
            if _same_name(hname, name):
                del self._entries[index]
                break
        return self

    def set_content_len(self, content_len: int) -> "Headers":
        if content_len < 0 or content_len > _U64_MAX:
            raise ValueError("content length out of range")
        return self.set("Content-Length", str(content_len))

    def set_content_type(self, content_type: str) -> "Headers":
        return self.set("Content-Type", content_type)

    def set_content_encoding(self, content_encoding: str) -> "Headers":
        return self.set("Content-Encoding", content_encoding)

    def set_transfer_encoding(self, transfer_encoding: str) -> "Headers":
        return self.set("Transfer-Encoding", transfer_encoding)

    def set_transfer_encoding_chunked(self) -> "Headers":
        return self.set_transfer_encoding("Chunked")

    def set_host(self, host: str) -> "Headers":
        return self.set("Host", host)

    def set_connection(self, connection: str) -> "Headers":
        return self.set("Connection", connection)

    def set_connection_close(self) -> "Headers":
        return self.set_connection("Close")

    def set_connection_keep_alive(self) -> "Headers":
        return self.set_connection("Keep-Alive")

    def set_connection_upgrade(self) -> "Headers":
        return self.set_connection("Upgrade")

    def set_cache_control(self, cache: str) -> "Headers":
        return self.set("Cache-Control", cache)

    def set_cache_control_no_cache(self) -> "Headers":
        return self.set_cache_control("No-Cache")

    def set_upgrade(self, upgrade: str) -> "Headers":
        return self.set("Upgrade", upgrade)

    def set_upgrade_websocket(self) -> "Headers":
        return self.set_upgrade("websocket")

    def as_list(self) -> list[tuple[str, str]]:
        """Return the headers as a list of (name, value) pairs."""
        return list(self._entries)


class Cookies:
    """A view over a ``Cookie`` header value such as ``"a=1;b=2"``.

    Pairs are split on ``;`` and ``=`` without trimming whitespace. Iteration
    stops at the first pair that has no ``=``.
    """

    def __init__(self, cookies_str: str) -> None:
        self._raw = cookies_str

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for pair in self._raw.split(";"):
            parts = pair.split("=")
            if len(parts) < 2:
                return
            yield parts[0], parts[1]

    def get(self, name: str) -> Optional[str]:
        """Return the value of the first cookie called ``name``, or None."""
        return next((value for key, value in self if key == name), None)


def set_cookie(
    cookies: Iterable[tuple[str, str]], name: str, value: str
) -> Iterator[tuple[str, str]]:
    """Yield ``cookies`` without ``name``, followed by ``(name, value)``."""
    yield from remove_cookie(cookies, name)
    yield name, value


def remove_cookie(cookies: Iterable[tuple[str, str]], name: str) -> Iterator[tuple[str, str]]:
    """Yield ``cookies`` without any called ``name``."""
    return ((key, value) for key, value in cookies if key != name)


def serialize_cookies(cookies: Iterable[tuple[str, str]]) -> str:
    """Render cookie pairs as a ``Cookie`` header value."""
    return ";".join(f"{key}={value}" for key, value in cookies)


def get_cookie_session_id(headers: _HeaderSource) -> Optional[str]:
    """Return the session id carried in the ``Cookie`` header, or None."""
    cookies_str = headers.header("Cookie")
    if cookies_str is None:
        return None
    return Cookies(cookies_str).get(SESSION_COOKIE)


def set_cookie_session_id(headers: _HeaderSource, session_id: str) -> str:
    """Return the ``Cookie`` header value with the session id set."""
    cookies_str = headers.header("Cookie") or ""
    return serialize_cookies(set_cookie(Cookies(cookies_str), SESSION_COOKIE, session_id))


class SessionError(Exception):
    """No free session slot is left."""

    def __init__(self, message: str = "Max number of sessions reached") -> None:
        super().__init__(message)


@dataclass
class _SessionEntry:
    id: str = ""
    last_accessed: timedelta = timedelta(0)
    timeout: timedelta = timedelta(0)
    data: dict[str, Any] = field(default_factory=dict)


class SessionImpl:
    """A fixed number of server-side sessions, each holding a dict of data.

    Sessions not accessed for longer than their timeout are dropped on the
    next call. ``current_time`` returns the current time as a timedelta.
    """

    def __init__(
        self,
        current_time: Callable[[], timedelta],
        default_session_timeout: timedelta,
        max_sessions: int = 16,
    ) -> None:
        if max_sessions < 0:
            raise ValueError("max_sessions must not be negative")
        self._current_time = current_time
        self.default_session_timeout = default_session_timeout
        self._entries = [_SessionEntry() for _ in range(max_sessions)]
        self._lock = threading.Lock()

    def _cleanup(self, now: timedelta) -> None:
        for entry in self._entries:
            if entry.last_accessed + entry.timeout < now:
                entry.id = ""

    def _find(self, session_id: str) -> Optional[_SessionEntry]:
        return next((entry for entry in self._entries if entry.id == session_id), None)

    def is_existing(self, session_id: Optional[str]) -> bool:
        """Return whether the session exists, refreshing its access time."""
        now = self._current_time()
        with self._lock:
            self._cleanup(now)
            if session_id is None:
                return False
            entry = self._find(session_id)
            if entry is None:
                return False
            entry.last_accessed = now
            return True

    def with_existing(
        self, session_id: Optional[str], func: Callable[[dict[str, Any]], R]
    ) -> Optional[R]:
        """Call ``func`` on an existing session's data; return None if there is none."""
        now = self._current_time()
        with self._lock:
            self._cleanup(now)
            if session_id is None:
                return None
            entry = self._find(session_id)
            if entry is None:
                return None
            entry.last_accessed = now
            return func(entry.data)

    def with_session(self, session_id: str, func: Callable[[dict[str, Any]], R]) -> R:
        """Call ``func`` on the session's data, creating the session if needed.

        Raises SessionError when a new session is needed and none is free.
        """
        now = self._current_time()
        with self._lock:
            self._cleanup(now)
            entry = self._find(session_id)
            if entry is None:
                entry = self._find("")
                if entry is None:
                    raise SessionError()
                entry.id = session_id
                entry.data = {}
                entry.timeout = self.default_session_timeout
            entry.last_accessed = now
            return func(entry.data)

    def invalidate(self, session_id: Optional[str]) -> bool:
        """Drop the session; return whether it existed."""
        now = self._current_time()
        with self._lock:
            self._cleanup(now)
            if session_id is None:
                return False
            entry = self._find(session_id)
            if entry is None:
                return False
            entry.id = ""
            return True