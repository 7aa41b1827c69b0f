# src/listview/cache.py
"""
Shared query cache and pending-mutation map.

A QueryCache is created once and handed to every view that shows a given kind
of resource (customers, records, an invoice's transactions ...). It is the only
state shared between sibling views:

  * entries: resource key -> immutable tuple of items, plus a version counter
  * generations: resource key -> id of the latest fetch, so a slow fetch that
    was overtaken by a newer one cannot overwrite the newer data
  * pending: entity-keyed claims that serialize mutations of one entity

Everything here runs on one event loop; "atomic" means no await between the
check and the update.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Hashable, List, Tuple

log = logging.getLogger(__name__)

Items = Tuple[Any, ...]
CacheListener = Callable[[Items], None]


class PendingMutations:
    """
    In-flight mutation claims keyed by entity.

    claim()/release() are the non-blocking primitives; acquire() waits for the
    current holder to release before claiming, which queues a second mutation
    of the same entity behind the first one.
    """

    def __init__(self) -> None:
        self._held: Dict[Hashable, asyncio.Future] = {}

    def is_pending(self, key: Hashable) -> bool:
        return key in self._held

    def claim(self, key: Hashable) -> bool:
        if key in self._held:
            return False
        self._held[key] = asyncio.get_running_loop().create_future()
        return True

    def release(self, key: Hashable) -> None:
        fut = self._held.pop(key, None)
        if fut is not None and not fut.done():
            fut.set_result(None)

    async def acquire(self, key: Hashable) -> None:
        while not self.claim(key):
            # shield: a cancelled waiter must not cancel the holder's future
            await asyncio.shield(self._held[key])

    @contextlib.asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        await self.acquire(key)
        try:
            yield
        finally:
            self.release(key)

    def __len__(self) -> int:
        return len(self._held)


@dataclass
class _Entry:
    items: Items = ()
    version: int = 0
    generation: int = 0
    loaded: bool = False
    listeners: List[CacheListener] = field(default_factory=list)


class QueryCache:
    """Injectable store of fetched collections keyed by resource."""

    def __init__(self) -> None:
        self._entries: Dict[Hashable, _Entry] = {}
        self.pending = PendingMutations()

    # ------------- read -------------

    def get(self, key: Hashable) -> Items:
        entry = self._entries.get(key)
        return entry.items if entry else ()

    def is_loaded(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.loaded)

    def version(self, key: Hashable) -> int:
        entry = self._entries.get(key)
        return entry.version if entry else 0

    # ------------- write -------------

    def set(self, key: Hashable, items) -> Items:
        entry = self._entry(key)
        entry.items = tuple(items)
        entry.version += 1
        entry.loaded = True
        self._emit(entry)
        return entry.items

    def update(self, key: Hashable, fn: Callable[[Items], Any]) -> Items:
        """Replace the entry with fn(current items) in one step."""
        return self.set(key, fn(self.get(key)))

    def invalidate(self, key: Hashable) -> None:
        """Mark stale and abandon any fetch in flight; data stays until refetched."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.loaded = False
            entry.generation += 1

    def abandon_fetches(self, key: Hashable) -> None:
        """Make any fetch in flight for `key` stale without touching its data."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.generation += 1

    def subscribe(self, key: Hashable, listener: CacheListener) -> Callable[[], None]:
        entry = self._entry(key)
        entry.listeners.append(listener)

        def unsubscribe() -> None:
            try:
                entry.listeners.remove(listener)
            except ValueError:
                pass
        return unsubscribe

    # ------------- fetch -------------

    async def fetch(self, key: Hashable, fetcher: Callable[[], Awaitable[Any]]) -> Items:
        """
        Run `fetcher` and store its result, unless a newer fetch for the same
        key started meanwhile; then the late result (or late error) is dropped
        and the current items are returned.
        """
        entry = self._entry(key)
        entry.generation += 1
        generation = entry.generation
        try:
            result = await fetcher()
        except Exception:
            if generation != entry.generation:
                log.debug("discarding stale fetch error for %r (gen %d < %d)",
                          key, generation, entry.generation)
                return entry.items
            raise
        if generation != entry.generation:
            log.debug("discarding stale fetch for %r (gen %d < %d)", key, generation, entry.generation)
            return entry.items
        items = self.set(key, result)
        log.info("fetched %r: %d items", key, len(items))
        return items

    # ------------- internals -------------

    def _entry(self, key: Hashable) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        return entry

    def _emit(self, entry: _Entry) -> None:
        for listener in list(entry.listeners):
            listener(entry.items)
