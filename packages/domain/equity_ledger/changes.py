"""Change feed: "the ledger changed, re-read it" notifications.

A change token only says which company and which kind of entity changed. It
never carries the new value: consumers always re-run their own read.

Two consumption styles are supported:

    # Await tokens (asyncio)
    subscription = feed.subscribe(company_id=1)
    token = await subscription.next()
    snapshot = store.load_snapshot(token.company_id)

    # Callbacks, invoked synchronously on publish
    stop = feed.listen(1, EntityType.INVESTMENT_RECORDS, lambda token: refresh())
    stop()

LiveLedgerView combines both with a store: it holds the current snapshot and
discards it whenever a token for its company arrives.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    AsyncIterator,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
)

if TYPE_CHECKING:
    from .schemas import LedgerSnapshot
    from .store import LedgerStore

logger = logging.getLogger(__name__)


class EntityType(str, Enum):
    INVESTMENT_RECORDS = "investment_records"
    FOUNDERS = "founders"
    FUNDRAISING_ROUND = "fundraising_round"
    SHARE_CONFIGURATION = "share_configuration"
    ESOP_POOL = "esop_pool"
    COMPANY = "company"


@dataclass(frozen=True)
class ChangeToken:
    company_id: int
    entity_type: EntityType


ChangeCallback = Callable[[ChangeToken], None]


# =============================================================================
# Subscription
# =============================================================================

DEFAULT_QUEUE_SIZE = 256

_CLOSED = object()


class SubscriptionClosed(Exception):
    """Raised by Subscription.next() once the subscription is closed and drained."""


class Subscription:
    """Stream of change tokens for one company, optionally restricted to some entity types.

    The queue holds at most `maxsize` tokens. When it is full the oldest token
    is dropped: tokens only mean "re-read", so the newest one is enough.
    Closing wakes any waiting consumer.
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        company_id: int,
        entity_types: Optional[Iterable[EntityType]] = None,
        maxsize: int = DEFAULT_QUEUE_SIZE,
    ):
        self._feed = feed
        self.company_id = company_id
        self.entity_types: Optional[FrozenSet[EntityType]] = (
            frozenset(EntityType(e) for e in entity_types) if entity_types is not None else None
        )
        # one extra slot for the close marker
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize + 1)
        self.maxsize = maxsize
        self.dropped = 0
        self.closed = False

    def matches(self, token: ChangeToken) -> bool:
        if token.company_id != self.company_id:
            return False
        return self.entity_types is None or token.entity_type in self.entity_types

    def _deliver(self, token: ChangeToken) -> None:
        if self._queue.qsize() >= self.maxsize:
            self._queue.get_nowait()
            self.dropped += 1
            logger.debug("Subscription for company %s full, dropped oldest token", self.company_id)
        self._queue.put_nowait(token)

    @property
    def pending(self) -> int:
        return self._queue.qsize() - (1 if self.closed else 0)

    def _take(self, item):
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise SubscriptionClosed(f"subscription for company {self.company_id} is closed")
        return item

    async def next(self, timeout: Optional[float] = None) -> ChangeToken:
        """Wait for the next token.

        Raises:
            asyncio.TimeoutError: If `timeout` seconds pass without a token
            SubscriptionClosed: If the subscription was closed and no token is left
        """
        if timeout is None:
            return self._take(await self._queue.get())
        return self._take(await asyncio.wait_for(self._queue.get(), timeout))

    def next_nowait(self) -> Optional[ChangeToken]:
        """Next queued token, or None when nothing is queued."""
        try:
            return self._take(self._queue.get_nowait())
        except (asyncio.QueueEmpty, SubscriptionClosed):
            return None

    def close(self) -> None:
        if not self.closed:
            self._feed._unsubscribe(self)
            self.closed = True
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeToken:
        try:
            return await self.next()
        except SubscriptionClosed:
            raise StopAsyncIteration

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# =============================================================================
# Feed
# =============================================================================

class ChangeFeed:
    """Fan-out of change tokens to subscriptions and listeners."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscriptions: List[Subscription] = []
        self._listeners: Dict[int, List[tuple]] = {}

    def subscribe(self, company_id: int, entity_types: Optional[Iterable[EntityType]] = None) -> Subscription:
        subscription = Subscription(self, company_id, entity_types, maxsize=self.queue_size)
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def listen(self, company_id: int, entity_type: EntityType, callback: ChangeCallback) -> Callable[[], None]:
        """Invoke `callback` on every change of `entity_type` for `company_id`.

        Returns:
            A function that removes the listener
        """
        entry = (EntityType(entity_type), callback)
        self._listeners.setdefault(company_id, []).append(entry)

        def stop() -> None:
            entries = self._listeners.get(company_id, [])
            if entry in entries:
                entries.remove(entry)

        return stop

    def publish(self, company_id: int, entity_type: EntityType) -> ChangeToken:
        token = ChangeToken(company_id, EntityType(entity_type))
        logger.debug("Change %s for company %s", token.entity_type.value, company_id)

        for subscription in list(self._subscriptions):
            if subscription.matches(token):
                subscription._deliver(token)

        for listened_type, callback in list(self._listeners.get(company_id, [])):
            if listened_type != token.entity_type:
                continue
            try:
                callback(token)
            except Exception:
                logger.warning(
                    "Change listener failed for company %s (%s)",
                    company_id,
                    token.entity_type.value,
                    exc_info=True,
                )

        return token


# =============================================================================
# Live view
# =============================================================================

class LiveLedgerView:
    """Current snapshot of one company, re-read after every change.

    The view never patches its snapshot from a token: it drops it and reads
    again through the store.

    Example:
        view = LiveLedgerView(store, company_id=1, feed=feed)
        view.attach()
        view.snapshot.current_valuation
        # ... another session adds a record through a store sharing `feed` ...
        view.snapshot.current_valuation  # re-read on access
    """

    def __init__(self, store: "LedgerStore", company_id: int, feed: Optional[ChangeFeed] = None):
        self.store = store
        self.company_id = company_id
        self.feed = feed if feed is not None else store.changes
        self._snapshot: Optional["LedgerSnapshot"] = None
        self._detach: List[Callable[[], None]] = []
        self.refresh_count = 0

    @property
    def snapshot(self) -> "LedgerSnapshot":
        if self._snapshot is None:
            self.refresh()
        return self._snapshot

    @property
    def is_stale(self) -> bool:
        return self._snapshot is None

    def refresh(self) -> "LedgerSnapshot":
        self._snapshot = self.store.load_snapshot(self.company_id)
        self.refresh_count += 1
        return self._snapshot

    def invalidate(self, token: Optional[ChangeToken] = None) -> None:
        self._snapshot = None

    def attach(self) -> None:
        """Invalidate the snapshot on any change for this company."""
        if self.feed is None or self._detach:
            return
        for entity_type in EntityType:
            self._detach.append(self.feed.listen(self.company_id, entity_type, self.invalidate))

    def detach(self) -> None:
        for stop in self._detach:
            stop()
        self._detach = []

    async def follow(self, max_updates: Optional[int] = None) -> AsyncIterator["LedgerSnapshot"]:
        """Yield a freshly read snapshot after each change token.

        Args:
            max_updates: Stop after this many snapshots (None = run until cancelled)
        """
        if self.feed is None:
            raise RuntimeError("LiveLedgerView.follow() needs a change feed")

        delivered = 0
        with self.feed.subscribe(self.company_id) as subscription:
            while max_updates is None or delivered < max_updates:
                try:
                    await subscription.next()
                except SubscriptionClosed:
                    return
                yield self.refresh()
                delivered += 1
