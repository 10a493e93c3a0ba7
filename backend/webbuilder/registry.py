"""
Process-wide state behind a small keyed-store interface: crawl statuses
and pending pause/resume handles.

Both live in memory and assume a single server instance. Swapping
InMemoryStore for a shared store is the path to running several.
"""

import asyncio
import secrets
import time
from typing import Generic, Iterable, Optional, Protocol, TypeVar

from webbuilder.config import get_settings
from webbuilder.models import CrawlStatus


V = TypeVar("V")


class KeyedStore(Protocol[V]):
    def get(self, key: str, default: Optional[V] = None) -> Optional[V]: ...
    def set(self, key: str, value: V) -> None: ...
    def delete(self, key: str) -> bool: ...
    def __contains__(self, key: object) -> bool: ...
    def keys(self) -> Iterable[str]: ...


class InMemoryStore(Generic[V]):
    def __init__(self):
        self._data: dict[str, V] = {}

    def get(self, key: str, default: Optional[V] = None) -> Optional[V]:
        return self._data.get(key, default)

    def set(self, key: str, value: V) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def keys(self) -> Iterable[str]:
        return list(self._data.keys())

    def clear(self) -> None:
        self._data.clear()


class PauseRegistry:
    """
    Cooperative pause points for long batches.

    A driver calls ``wait(key)``; an HTTP request calls ``resume(key)``.
    If nobody resumes within the timeout the wait ends on its own, so a
    vanished client can never hang a batch.
    """

    def __init__(self, store: Optional[KeyedStore] = None, timeout: Optional[float] = None):
        self._store = store if store is not None else InMemoryStore()
        self._timeout = timeout

    @staticmethod
    def new_key() -> str:
        return f"scrape-{int(time.time() * 1000)}-{secrets.token_hex(5)}"

    def is_paused(self, key: str) -> bool:
        return key in self._store

    async def wait(self, key: str, timeout: Optional[float] = None) -> bool:
        """Block until resumed. True if resumed externally, False on auto-resume."""
        if timeout is None:
            timeout = self._timeout if self._timeout is not None else get_settings().pause_timeout
        event = asyncio.Event()
        self._store.set(key, event)
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            print(f"[pause] {key} auto-resuming after {timeout}s")
            return False
        finally:
            if self._store.get(key) is event:
                self._store.delete(key)

    def resume(self, key: str) -> bool:
        event = self._store.get(key)
        if event is None:
            return False
        self._store.delete(key)
        event.set()
        print(f"[pause] {key} resumed")
        return True


pause_registry = PauseRegistry()
crawl_statuses: InMemoryStore[CrawlStatus] = InMemoryStore()
