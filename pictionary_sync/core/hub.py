from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from pictionary_sync.core.events import SyncEvent, SyncEventType

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """One subscriber's view of an EventHub.

    Iterate with `async for`; iteration ends when the subscription or the hub is closed.
    Only events published after subscribing are delivered. When `types` is
    non-empty, only events of those types are queued.
    """

    def __init__(self, hub: EventHub, types: frozenset[SyncEventType] = frozenset()) -> None:
        self._hub = hub
        self.types = types
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self.closed = False

    def _deliver(self, event: SyncEvent) -> None:
        if self.closed:
            return
        if self.types and event.type not in self.types:
            return
        self._queue.put_nowait(event)

    def _end(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_CLOSED)

    def pending(self) -> list[SyncEvent]:
        """Drain events already queued, without waiting."""

        out: list[SyncEvent] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                # keep the end marker for any `async for` still waiting
                self._queue.put_nowait(_CLOSED)
                break
            out.append(item)  # type: ignore[arg-type]
        return out

    async def get(self) -> SyncEvent | None:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    def close(self) -> None:
        self._hub.unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[SyncEvent]:
        return self._iter()

    async def _iter(self) -> AsyncIterator[SyncEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class EventHub:
    """In-process pub/sub for one session context.

    Contract:
      - any number of subscribers, each with its own queue (`subscribe(*types)`,
        optionally narrowed to some event types),
        or plain callbacks (`add_listener()`);
      - no replay: a subscriber only sees events published after it subscribed;
      - `close()` ends every subscription; publishing afterwards is a no-op.
    """

    def __init__(self) -> None:
        self._subs: set[Subscription] = set()
        self._listeners: list[Callable[[SyncEvent], None]] = []
        self.closed = False

    def subscribe(self, *types: SyncEventType) -> Subscription:
        sub = Subscription(self, frozenset(SyncEventType(t) for t in types))
        if self.closed:
            sub._end()
        else:
            self._subs.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subs.discard(sub)
        sub._end()

    def add_listener(self, fn: Callable[[SyncEvent], None]) -> None:
        self._listeners.append(fn)

    def publish(self, event: SyncEvent) -> None:
        if self.closed:
            return
        for sub in list(self._subs):
            sub._deliver(event)
        for fn in list(self._listeners):
            try:
                fn(event)
            except Exception:
                logger.exception("listener failed for %s", event.type)

    def emit(self, type: SyncEventType, session_id: str, **payload: Any) -> SyncEvent:
        event = SyncEvent(type=type, session_id=session_id, payload=payload)
        self.publish(event)
        return event

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for sub in list(self._subs):
            sub._end()
        self._subs.clear()
        self._listeners.clear()
