"""Storage, WebSocket, HTTP and I/O helpers, a mutex and condvar, and asyncio adapters."""

__version__ = "0.1.0"