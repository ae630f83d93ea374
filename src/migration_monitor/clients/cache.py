"""Get-or-create caches for long-lived client handles."""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from migration_monitor.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ClientCache(Generic[T]):
    """Case-insensitive cache that bootstraps each handle exactly once.

    Lookups for a key that is already cached never wait. The first caller for a
    missing key runs the factory while holding that key's lock, so concurrent
    callers for the same key wait for and reuse its result, and callers for
    other keys are not blocked. Entries live for the lifetime of the process.
    """

    def __init__(self, name: str, factory: Callable[[str], Awaitable[T]] | None = None):
        """Initialize the cache.

        Args:
            name: Human readable cache name used in log messages.
            factory: Coroutine function creating the handle for a key. May be
                omitted when every caller passes its own factory.
        """
        self.name = name
        self._factory = factory
        self._entries: dict[str, T] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._entries

    async def get_or_create(self, key: str, factory: Callable[[], Awaitable[T]] | None = None) -> T:
        """Return the cached handle for ``key``, creating it on first use.

        Args:
            key: Cache key (account name or processor name).
            factory: Overrides the cache-wide factory for this call.

        Returns:
            T: The cached handle.
        """
        if not key or not key.strip():
            raise ValueError(f"{self.name}: cache key must not be empty")
        if factory is None and self._factory is None:
            raise ValueError(f"{self.name}: no factory to create '{key}'")

        normalized = key.casefold()
        entry = self._entries.get(normalized)
        if entry is not None:
            return entry

        lock = self._locks.setdefault(normalized, asyncio.Lock())
        async with lock:
            entry = self._entries.get(normalized)
            if entry is None:
                logger.info(f"Creating {self.name} client for '{key}'")
                entry = await factory() if factory is not None else await self._factory(key)  # type: ignore[misc]
                self._entries[normalized] = entry
            return entry

    async def close(self) -> None:
        """Close every cached handle that knows how to close itself."""
        for key, entry in list(self._entries.items()):
            close = getattr(entry, "close", None)
            if close is None:
                continue
            try:
                result = close()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Failed to close {self.name} client '{key}': {e}")
        self._entries.clear()
        self._locks.clear()
