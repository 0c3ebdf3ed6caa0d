"""Key-value storage interfaces and two ready-made implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, Optional


class StorageError(Exception):
    """Failure reported by a :class:`StorageImpl`, wrapping the underlying error."""

    _prefix = "Storage error"

    def __init__(self, cause: BaseException) -> None:
        super().__init__(cause)
        self.cause = cause

    def __str__(self) -> str:
        return f"{self._prefix}: {self.cause}"


class RawStorageError(StorageError):
    """The raw byte storage failed."""

    _prefix = "Storage error"


class SerdeError(StorageError):
    """Serializing or deserializing a value failed."""

    _prefix = "SerDe error"


class NoSpaceError(Exception):
    """A fixed-capacity storage has no free slot left."""

    def __init__(self, message: str = "no space left") -> None:
        super().__init__(message)


class StorageBase(ABC):
    """Operations shared by every storage."""

    @abstractmethod
    def contains(self, name: str) -> bool:
        """Return whether an entry called ``name`` exists."""

    @abstractmethod
    def remove(self, name: str) -> bool:
        """Remove the entry ``name``; return whether it existed."""


class Storage(StorageBase):
    """Storage of serializable values."""

    @abstractmethod
    def get(self, name: str) -> Optional[Any]:
        """Return the value stored under ``name``, or None."""

    @abstractmethod
    def set(self, name: str, value: Any) -> bool:
        """Store ``value`` under ``name``; return whether it replaced an entry."""


class DynStorage(StorageBase):
    """Storage of arbitrary in-memory objects."""

    @abstractmethod
    def get(self, name: str) -> Optional[Any]:
        """Return the object stored under ``name``, or None."""

    @abstractmethod
    def set(self, name: str, value: Any) -> bool:
        """Store ``value`` under ``name``; return whether it replaced an entry."""


class RawStorage(StorageBase):
    """Storage of raw byte strings."""

    @abstractmethod
    def len(self, name: str) -> Optional[int]:
        """Return the size in bytes of entry ``name``, or None if absent."""

    @abstractmethod
    def get_raw(self, name: str, max_size: int) -> Optional[bytes]:
        """Return the bytes of entry ``name`` (at most ``max_size``), or None."""

    @abstractmethod
    def set_raw(self, name: str, data: bytes) -> bool:
        """Store ``data`` under ``name``; return whether it replaced an entry."""


class SerDe(ABC):
    """Converts values to and from bytes."""

    @abstractmethod
    def serialize(self, value: Any, max_size: int) -> bytes:
        """Encode ``value`` into at most ``max_size`` bytes."""

    @abstractmethod
    def deserialize(self, data: bytes) -> Any:
        """Decode a value from ``data``."""


@contextmanager
def _wrapped(error_type: type[StorageError]) -> Iterator[None]:
    try:
        yield
    except Exception as exc:
        raise error_type(exc) from exc


class StorageImpl(Storage):
    """A :class:`Storage` built from a raw byte storage and a serializer."""

    def __init__(self, raw_storage: RawStorage, serde: SerDe, buffer_size: int) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self._raw = raw_storage
        self._serde = serde
        self.buffer_size = buffer_size

    def contains(self, name: str) -> bool:
        with _wrapped(RawStorageError):
            return self._raw.contains(name)

    def remove(self, name: str) -> bool:
        with _wrapped(RawStorageError):
            return self._raw.remove(name)

    def get(self, name: str) -> Optional[Any]:
        with _wrapped(RawStorageError):
            data = self._raw.get_raw(name, self.buffer_size)
        if data is None:
            return None
        if len(data) > self.buffer_size:
            raise RawStorageError(
                ValueError(f"entry {name!r} exceeds buffer of {self.buffer_size} bytes")
            )
        with _wrapped(SerdeError):
            return self._serde.deserialize(bytes(data))

    def set(self, name: str, value: Any) -> bool:
        with _wrapped(SerdeError):
            data = self._serde.serialize(value, self.buffer_size)
        if len(data) > self.buffer_size:
            raise SerdeError(
                ValueError(f"serialized value exceeds buffer of {self.buffer_size} bytes")
            )
        with _wrapped(RawStorageError):
            return self._raw.set_raw(name, bytes(data))


class DynStorageImpl(DynStorage):
    """A fixed-capacity in-memory :class:`DynStorage`."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._slots: list[Optional[tuple[str, Any]]] = [None] * capacity

    def _index_of(self, name: str) -> Optional[int]:
        return next(
            (i for i, slot in enumerate(self._slots) if slot is not None and slot[0] == name),
            None,
        )

    def contains(self, name: str) -> bool:
        return self._index_of(name) is not None

    def remove(self, name: str) -> bool:
        index = self._index_of(name)
        if index is None:
            return False
        self._slots[index] = None
        return True

    def get(self, name: str) -> Optional[Any]:
        index = self._index_of(name)
        if index is None:
            return None
        slot = self._slots[index]
        assert slot is not None
        return slot[1]

    def set(self, name: str, value: Any) -> bool:
        index = self._index_of(name)
        if index is not None:
            self._slots[index] = (name, value)
            return True
        free = next((i for i, slot in enumerate(self._slots) if slot is None), None)
        if free is None:
            raise NoSpaceError()
        self._slots[free] = (name, value)
        return False