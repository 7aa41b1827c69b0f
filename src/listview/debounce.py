from __future__ import annotations
import asyncio
import logging
from typing import Any, AsyncIterator, Callable, List, Optional, Protocol

from . import config as CFG

log = logging.getLogger(__name__)

Listener = Callable[[str], None]

_CLOSED = object()   # end-of-stream marker for settled()


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with asyncio's call_later shape (asyncio loops qualify as-is)."""
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class Debouncer:
    """
    Coalesces rapid input into one settled value after a quiet period.

    Every observe() restarts the timer; only the value present when the timer
    expires uninterrupted is emitted. Each scheduled timer carries the
    generation it was armed for, so a callback that slips through after being
    superseded (or after close()) is ignored instead of emitting a stale value.

    delay_ms <= 0 settles synchronously inside observe().
    """

    def __init__(self,
                 delay_ms: float = CFG.DEBOUNCE_MS,
                 scheduler: Optional[Scheduler] = None,
                 on_settle: Optional[Listener] = None,
                 *,
                 initial: str = "") -> None:
        self.delay_ms = delay_ms
        self._scheduler = scheduler
        self._listeners: List[Listener] = [on_settle] if on_settle else []
        self._raw = initial
        self._value = initial
        self._generation = 0
        self._handle: Optional[TimerHandle] = None
        self._closed = False
        self._streams: List[asyncio.Queue] = []

    # ------------- state -------------

    @property
    def raw(self) -> str:
        """Most recently observed value."""
        return self._raw

    @property
    def value(self) -> str:
        """Most recently settled value."""
        return self._value

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------- input -------------

    def observe(self, value: str) -> None:
        if self._closed:
            raise RuntimeError("observe() on a closed Debouncer")
        self._raw = value
        self._generation += 1
        self._release()

        if self.delay_ms <= 0:
            self._settle(self._generation)
            return
        self._handle = self._get_scheduler().call_later(
            self.delay_ms / 1000.0, self._settle, self._generation
        )

    def flush(self) -> None:
        """Settle the pending value now (e.g. on Enter)."""
        if self._handle is not None:
            self._release()
            self._settle(self._generation)

    def cancel(self) -> None:
        """Drop the pending value; the last settled value stays current."""
        self._generation += 1
        self._release()

    def close(self) -> None:
        self.cancel()
        self._closed = True
        self._listeners.clear()
        for queue in self._streams:
            queue.put_nowait(_CLOSED)

    # ------------- output -------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return unsubscribe

    async def settled(self) -> AsyncIterator[str]:
        """
        Lazily yield settled values as they happen. Each iteration subscribes
        on first use and unsubscribes when the consumer stops; iterating again
        starts a fresh stream. The stream ends when the debouncer is closed.
        """
        if self._closed:
            return
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        self._streams.append(queue)
        try:
            while True:
                value = await queue.get()
                if value is _CLOSED:
                    return
                yield value
        finally:
            unsubscribe()
            self._streams.remove(queue)

    # ------------- internals -------------

    def _settle(self, generation: int) -> None:
        if self._closed or generation != self._generation:
            return
        self._handle = None
        self._value = self._raw
        for listener in list(self._listeners):
            listener(self._value)

    def _release(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        return self._scheduler
