"""WebSocket frame types and connection interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Hashable


class FrameKind(Enum):
    """The kind of a WebSocket frame."""

    TEXT = "text"
    BINARY = "binary"
    PING = "ping"
    PONG = "pong"
    CLOSE = "close"
    SOCKET_CLOSE = "socket_close"
    CONTINUE = "continue"


_FLAGGED = frozenset({FrameKind.TEXT, FrameKind.BINARY, FrameKind.CONTINUE})


@dataclass(frozen=True)
class FrameType:
    """A frame kind with its flag.

    For TEXT and BINARY the flag means "fragmented"; for CONTINUE it means
    "final". Other kinds carry no flag.
    """

    kind: FrameKind
    flag: bool = False

    PING: ClassVar["FrameType"]
    PONG: ClassVar["FrameType"]
    CLOSE: ClassVar["FrameType"]
    SOCKET_CLOSE: ClassVar["FrameType"]

    def __post_init__(self) -> None:
        if self.flag and self.kind not in _FLAGGED:
            raise ValueError(f"{self.kind.name} frames carry no flag")

    @classmethod
    def text(cls, fragmented: bool = False) -> "FrameType":
        return cls(FrameKind.TEXT, fragmented)

    @classmethod
    def binary(cls, fragmented: bool = False) -> "FrameType":
        return cls(FrameKind.BINARY, fragmented)

    @classmethod
    def continuation(cls, final: bool) -> "FrameType":
        return cls(FrameKind.CONTINUE, final)

    def is_fragmented(self) -> bool:
        """Return whether the frame is part of a fragmented message."""
        if self.kind in (FrameKind.TEXT, FrameKind.BINARY):
            return self.flag
        return self.kind is FrameKind.CONTINUE

    def is_final(self) -> bool:
        """Return whether the frame ends its message."""
        if self.kind in (FrameKind.TEXT, FrameKind.BINARY):
            return not self.flag
        if self.kind is FrameKind.CONTINUE:
            return self.flag
        return True


FrameType.PING = FrameType(FrameKind.PING)
FrameType.PONG = FrameType(FrameKind.PONG)
FrameType.CLOSE = FrameType(FrameKind.CLOSE)
FrameType.SOCKET_CLOSE = FrameType(FrameKind.SOCKET_CLOSE)


class Receiver(ABC):
    """Receives frames from a WebSocket connection."""

    @abstractmethod
    def recv(self, buffer: bytearray) -> tuple[FrameType, int]:
        """Read one frame into ``buffer``; return its type and full length.

        If the frame is longer than ``buffer`` its data is not copied.
        """


class Sender(ABC):
    """Sends frames over a WebSocket connection."""

    @abstractmethod
    def send(self, frame_type: FrameType, data: bytes) -> None:
        """Send one frame."""


class Acceptor(ABC):
    """Accepts incoming WebSocket connections."""

    @abstractmethod
    def accept(self) -> Any:
        """Wait for and return a connection that is both Sender and Receiver."""


class SessionProvider(ABC):
    """Identifies the session a callback-driven connection belongs to."""

    @abstractmethod
    def session(self) -> Hashable:
        """Return the session identifier."""

    @abstractmethod
    def is_new(self) -> bool:
        """Return whether the connection has just been opened."""

    @abstractmethod
    def is_closed(self) -> bool:
        """Return whether the connection has just been closed."""


class SenderFactory(ABC):
    """Creates detached senders for a connection."""

    @abstractmethod
    def create(self) -> Sender:
        """Return a new sender bound to the connection."""