# src/listview/mutations.py
"""
Optimistic create/update/delete against a mutation sink.

Each mutation:
  1. claims the entity in the cache's PendingMutations (queues behind any
     mutation of the same entity already in flight),
  2. applies its change to the cached collection right away,
  3. awaits the sink,
  4. on success swaps in the server's entity (the server owns ids, codes,
     timestamps); on failure puts the entity back exactly where it was,
     notifies, and raises MutationFailed,
  5. releases the claim.

Rollback is targeted at the one entity, so a failed mutation never undoes a
concurrent, successful mutation of a different entity.
"""
from __future__ import annotations

import dataclasses
import itertools
import logging
from typing import Any, Callable, Hashable, Mapping, Optional, Tuple

from .cache import Items, QueryCache
from .DB.api import MutationSink

log = logging.getLogger(__name__)

Notify = Callable[[str, str], None]
KeyFn = Callable[[Any], Hashable]
MakeItem = Callable[[Hashable, Mapping[str, Any]], Any]

_temp_ids = itertools.count(1)


class MutationFailed(Exception):
    """A mutation was rejected by the sink and rolled back locally."""

    def __init__(self, action: str, entity_id: Hashable, cause: BaseException) -> None:
        super().__init__(f"{action} {entity_id!r} failed: {cause}")
        self.action = action
        self.entity_id = entity_id
        self.cause = cause


def default_key(item: Any) -> Hashable:
    if isinstance(item, Mapping):
        return item.get("id")
    return getattr(item, "id", None)


def apply_patch(item: Any, patch: Mapping[str, Any]) -> Any:
    """Return a patched copy: dataclass -> replace() on known fields, mapping -> merge."""
    if dataclasses.is_dataclass(item) and not isinstance(item, type):
        names = {f.name for f in dataclasses.fields(item)}
        return dataclasses.replace(item, **{k: v for k, v in patch.items() if k in names and k != "id"})
    if isinstance(item, Mapping):
        return {**item, **{k: v for k, v in patch.items() if k != "id"}}
    raise TypeError(f"cannot patch item of type {type(item).__name__}")


def make_mapping(temp_id: Hashable, fields: Mapping[str, Any]) -> dict:
    return {**fields, "id": temp_id}


def next_temp_id() -> str:
    return f"tmp-{next(_temp_ids)}"


class MutationCoordinator:
    """Optimistic mutation boundary for one cached resource."""

    def __init__(self,
                 cache: QueryCache,
                 resource: Hashable,
                 sink: MutationSink,
                 notify: Optional[Notify] = None,
                 *,
                 key_of: KeyFn = default_key,
                 make_item: MakeItem = make_mapping,
                 noun: str = "Item") -> None:
        self.cache = cache
        self.resource = resource
        self.sink = sink
        self.notify = notify
        self.key_of = key_of
        self.make_item = make_item
        self.noun = noun

    # ------------- public -------------

    async def create(self, fields: Mapping[str, Any]) -> Any:
        temp_id = next_temp_id()
        optimistic = self.make_item(temp_id, fields)
        async with self.cache.pending.hold(self._claim_key(temp_id)):
            self._apply(lambda items: items + (optimistic,))
            try:
                server = await self.sink.create(fields)
            except BaseException as exc:
                self._apply(lambda items: self._without(items, temp_id))
                self._raise_failed("create", temp_id, exc)
            self._apply(lambda items: self._swap(items, temp_id, server))
        self._notify("success", f"{self.noun} created")
        return server

    async def update(self, entity_id: Hashable, patch: Mapping[str, Any]) -> Any:
        async with self.cache.pending.hold(self._claim_key(entity_id)):
            index, previous = self._locate(entity_id)
            patched = apply_patch(previous, patch)
            self._apply(lambda items: self._swap(items, entity_id, patched))
            try:
                server = await self.sink.update(entity_id, patch)
            except BaseException as exc:
                self._apply(lambda items: self._restore(items, entity_id, previous, index))
                self._raise_failed("update", entity_id, exc)
            self._apply(lambda items: self._swap(items, entity_id, server))
        self._notify("success", f"{self.noun} updated")
        return server

    async def delete(self, entity_id: Hashable) -> Any:
        async with self.cache.pending.hold(self._claim_key(entity_id)):
            index, previous = self._locate(entity_id)
            self._apply(lambda items: self._without(items, entity_id))
            try:
                server = await self.sink.delete(entity_id)
            except BaseException as exc:
                self._apply(lambda items: self._restore(items, entity_id, previous, index))
                self._raise_failed("delete", entity_id, exc)
            # a refetch that landed while the sink was busy may have brought it back
            self._apply(lambda items: self._without(items, entity_id))
        self._notify("success", f"{self.noun} deleted")
        return server

    def is_pending(self, entity_id: Hashable) -> bool:
        return self.cache.pending.is_pending(self._claim_key(entity_id))

    # ------------- internals -------------

    def _claim_key(self, entity_id: Hashable) -> Tuple[Hashable, Hashable]:
        # scoped by resource so two resources with overlapping ids never collide
        return (self.resource, entity_id)

    def _apply(self, fn: Callable[[Items], Items]) -> None:
        # a fetch that started before this change would overwrite it on arrival
        self.cache.abandon_fetches(self.resource)
        self.cache.update(self.resource, fn)

    def _locate(self, entity_id: Hashable) -> Tuple[int, Any]:
        for i, item in enumerate(self.cache.get(self.resource)):
            if self.key_of(item) == entity_id:
                return i, item
        raise KeyError(entity_id)

    def _without(self, items: Items, entity_id: Hashable) -> Items:
        return tuple(it for it in items if self.key_of(it) != entity_id)

    def _swap(self, items: Items, old_id: Hashable, new: Any) -> Items:
        """Replace `old_id` with `new` in place; append if `old_id` is gone."""
        new_id = self.key_of(new)
        out = []
        placed = False
        for it in items:
            key = self.key_of(it)
            if key == old_id and not placed:
                out.append(new); placed = True
            elif key == new_id or key == old_id:
                continue
            else:
                out.append(it)
        if not placed:
            out.append(new)
        return tuple(out)

    def _restore(self, items: Items, entity_id: Hashable, previous: Any, index: int) -> Items:
        """Put `previous` back: in place if the id is present, else at its old index."""
        if any(self.key_of(it) == entity_id for it in items):
            return tuple(previous if self.key_of(it) == entity_id else it for it in items)
        out = list(items)
        out.insert(min(index, len(out)), previous)
        return tuple(out)

    def _raise_failed(self, action: str, entity_id: Hashable, exc: BaseException) -> None:
        if not isinstance(exc, Exception):
            # cancellation / interpreter exit: rolled back, not reported
            log.info("%s %r interrupted (%s), rolled back", action, entity_id, type(exc).__name__)
            raise exc
        log.warning("%s %r rejected, rolled back: %s", action, entity_id, exc)
        self._notify("error", f"Failed to {action}: {exc}")
        raise MutationFailed(action, entity_id, exc) from exc

    def _notify(self, kind: str, message: str) -> None:
        if self.notify is None:
            return
        try:
            self.notify(kind, message)
        except Exception:
            log.warning("notify(%r) failed", kind, exc_info=True)
