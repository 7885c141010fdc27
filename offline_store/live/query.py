"""
Live query engine.

Maintains live result sets over local store collections. Every
committed mutation is offered to each subscription on that kind; if the
mutated document was or is visible to the subscription's predicate, a
fresh snapshot is queued for that subscriber.

Snapshots are tuples of document copies, so subscribers never share
mutable state with the store or with each other. Each subscription has
its own queue, which keeps delivery in commit order per subscriber
while staying asynchronous relative to the mutation call.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
from collections.abc import Callable
from typing import Any

from ..local.store import ChangeEvent, Document, LocalStore
from ..logging_utils import get_store_logger

logger = get_store_logger("live")

Snapshot = tuple[Document, ...]
Predicate = Callable[[Document], bool]
SnapshotCallback = Callable[[Snapshot], Any]

_CLOSED = object()


def field_equals(field: str, value: Any) -> Predicate:
    """Predicate matching documents whose ``field`` equals ``value``.

    Example:
        >>> engine.subscribe("articles", field_equals("business_id", "b1"))
    """

    def predicate(document: Document) -> bool:
        return document.get(field) == value

    predicate.__name__ = f"{field}=={value!r}"
    return predicate


class Subscription:
    """Handle for a live query.

    ``initial`` holds the result set at subscription time. Later
    snapshots are consumed either by iterating the handle
    (``async for snapshot in sub``) or through the callback passed to
    ``LiveQueryEngine.subscribe``, which also receives ``initial`` first.

    ``cancel()`` stops further snapshots from being queued. Snapshots
    already queued may still be delivered.
    """

    def __init__(
        self,
        engine: LiveQueryEngine,
        subscription_id: int,
        kind: str,
        predicate: Predicate | None,
        initial: Snapshot,
    ) -> None:
        self.subscription_id = subscription_id
        self.kind = kind
        self.predicate = predicate
        self.initial = initial

        self._engine = engine
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._cancelled = False
        self._drained = False
        self._task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.subscription_id}, kind={self.kind}, "
            f"cancelled={self._cancelled})"
        )

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> int:
        """Number of snapshots queued but not yet delivered."""
        closing = 1 if self._cancelled and not self._drained else 0
        return self._queue.qsize() - closing

    def matches(self, document: Document | None) -> bool:
        if document is None:
            return False
        return self.predicate is None or bool(self.predicate(document))

    def cancel(self) -> None:
        """Stop further emissions. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        self._queue.put_nowait(_CLOSED)
        self._engine._discard(self)

    async def get(self) -> Snapshot:
        """Wait for the next snapshot.

        Raises:
            StopAsyncIteration: If the subscription is cancelled and drained
        """
        return await self.__anext__()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Snapshot:
        if self._drained:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            raise StopAsyncIteration
        return item

    def _offer(self, event: ChangeEvent) -> None:
        if self._cancelled:
            return
        if self.predicate is not None and not (
            self.matches(event.before) or self.matches(event.after)
        ):
            return
        snapshot = tuple(dict(d) for d in event.snapshot if self.matches(d))
        self._queue.put_nowait(snapshot)

    def _start_delivery(self, callback: SnapshotCallback) -> None:
        self._queue.put_nowait(self.initial)
        self._task = asyncio.create_task(self._deliver(callback))

    async def _deliver(self, callback: SnapshotCallback) -> None:
        async for snapshot in self:
            try:
                result = callback(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Subscriber callback failed for {self!r}")


class LiveQueryEngine:
    """Reactive views over a LocalStore.

    The engine only reads from the store. It registers itself as a
    store listener and fans committed changes out to subscriptions.

    Example:
        >>> engine = LiveQueryEngine(store)
        >>> sub = engine.subscribe("articles", field_equals("business_id", "b1"))
        >>> sub.initial
        ()
        >>> await store.insert("articles", {...})
        >>> await sub.get()
        ({'id': 'a1', ...},)
    """

    def __init__(self, store: LocalStore) -> None:
        self.store = store
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._ids = itertools.count(1)
        self.store.add_listener(self._on_change)

    def subscribe(
        self,
        kind: str,
        predicate: Predicate | None = None,
        callback: SnapshotCallback | None = None,
    ) -> Subscription:
        """Start a live query on a collection.

        Args:
            kind: Collection to watch
            predicate: Optional filter applied to each document
            callback: Optional sync or async callable receiving the initial
                snapshot and then every update. Requires a running event loop.

        Returns:
            Subscription handle with the initial snapshot
        """
        current = self.store.snapshot(kind)
        initial = tuple(d for d in current if predicate is None or predicate(d))

        subscription = Subscription(self, next(self._ids), kind, predicate, initial)
        self._subscriptions.setdefault(kind, []).append(subscription)
        if callback is not None:
            subscription._start_delivery(callback)

        logger.debug(f"Subscribed {subscription!r} with {len(initial)} initial documents")
        return subscription

    def subscription_count(self, kind: str | None = None) -> int:
        if kind is not None:
            return len(self._subscriptions.get(kind, []))
        return sum(len(subs) for subs in self._subscriptions.values())

    async def close(self) -> None:
        """Cancel every subscription and detach from the store."""
        self.store.remove_listener(self._on_change)
        tasks = []
        for subs in list(self._subscriptions.values()):
            for subscription in list(subs):
                subscription.cancel()
                if subscription._task is not None:
                    tasks.append(subscription._task)
        self._subscriptions.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _discard(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.kind)
        if subs and subscription in subs:
            subs.remove(subscription)

    def _on_change(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions.get(event.kind, [])):
            try:
                subscription._offer(event)
            except Exception:
                logger.exception(f"Predicate failed for {subscription!r}, snapshot skipped")
