"""
ChangeNotifier -- per-table change subscriptions with reconnect.

Responsibility:
    Delivers committed change events for the ledger and profit-share tables
    to subscribed handlers, one background thread per subscription.

Architecture position:
    Kernel > Services.  Events reach the bus from
    ``franchise_kernel.db.change_capture`` after commit.

Subscription states:

    DISCONNECTED --connect--> CONNECTING --ok--> SUBSCRIBED
         ^                        |                  |
         +------- failure --------+---- dropped -----+
    any state --close()--> CLOSED

    After a failure the subscription waits a flat ``retry_seconds`` (3 by
    default, not exponential) and connects again.

Delivery contract:
    At-least-once, unordered across tables.  An event is a hint to re-read
    the affected aggregate, not an authoritative delta.  Events published
    while a subscription is disconnected are not replayed.

Failure modes:
    - NotifierUnavailableError from the source triggers the retry loop.
    - A handler exception is logged and the subscription keeps running.
    - ForbiddenError at subscribe time when the scope may not read the table.
"""

import queue
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from uuid import UUID

from franchise_kernel.domain.changes import ChangeEvent, WatchedTable
from franchise_kernel.domain.roles import AccessScope, LedgerStream, Role
from franchise_kernel.exceptions import (
    ForbiddenError,
    InvalidArgumentError,
    NotifierUnavailableError,
)
from franchise_kernel.logging_config import get_logger

logger = get_logger("services.change_notifier")

DEFAULT_RETRY_SECONDS = 3.0

# How long a subscription blocks on its channel before checking for close()
_POLL_SECONDS = 0.05


class SubscriptionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


class ChangeChannel(ABC):
    """One open connection to a change source for one (table, franchise)."""

    @abstractmethod
    def receive(self, timeout: float) -> ChangeEvent | None:
        """
        Next event, or None if none arrived within ``timeout``.

        Raises:
            NotifierUnavailableError: the connection dropped.
        """

    @abstractmethod
    def close(self) -> None: ...


class ChangeSource(ABC):
    @abstractmethod
    def connect(self, table: WatchedTable, franchise_id: UUID | None) -> ChangeChannel:
        """
        Open a channel.

        Raises:
            NotifierUnavailableError: the source cannot be reached.
        """


class _BusChannel(ChangeChannel):
    def __init__(self, bus: "InProcessChangeBus", table: WatchedTable, franchise_id):
        self._bus = bus
        self.table = table
        self.franchise_id = franchise_id
        self._queue: queue.Queue = queue.Queue()
        self._broken = threading.Event()

    def offer(self, change: ChangeEvent) -> None:
        if change.matches(self.table, self.franchise_id):
            self._queue.put(change)

    def sever(self) -> None:
        self._broken.set()

    def receive(self, timeout: float) -> ChangeEvent | None:
        if self._broken.is_set():
            raise NotifierUnavailableError(self.table.value, "connection dropped")
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            if self._broken.is_set():
                raise NotifierUnavailableError(
                    self.table.value, "connection dropped"
                ) from None
            return None

    def close(self) -> None:
        self._bus._detach(self)


class InProcessChangeBus(ChangeSource):
    """
    Fan-out of committed change events to open channels in this process.

    ``set_available(False)`` severs every open channel and refuses new
    connections until it is set back, which is how an operator (or a test)
    takes the feed down.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._channels: list[_BusChannel] = []
        self._available = True

    def connect(self, table: WatchedTable, franchise_id: UUID | None) -> ChangeChannel:
        with self._lock:
            if not self._available:
                raise NotifierUnavailableError(table.value, "change bus unavailable")
            channel = _BusChannel(self, table, franchise_id)
            self._channels.append(channel)
            return channel

    def publish(self, change: ChangeEvent) -> None:
        with self._lock:
            channels = list(self._channels)
        for channel in channels:
            channel.offer(change)

    def set_available(self, available: bool) -> None:
        with self._lock:
            self._available = available
            if not available:
                for channel in self._channels:
                    channel.sever()
                self._channels.clear()
        logger.info("change_bus_availability_changed", extra={"available": available})

    @property
    def channel_count(self) -> int:
        with self._lock:
            return len(self._channels)

    def _detach(self, channel: _BusChannel) -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)


class ChangeSubscription(threading.Thread):
    """Background loop keeping one (table, franchise) subscription alive."""

    def __init__(
        self,
        source: ChangeSource,
        table: WatchedTable,
        handler: Callable[[ChangeEvent], None],
        franchise_id: UUID | None = None,
        retry_seconds: float = DEFAULT_RETRY_SECONDS,
        on_close: Callable[["ChangeSubscription"], None] | None = None,
    ):
        super().__init__(name=f"change-subscription-{table.value}", daemon=True)
        self.table = table
        self.franchise_id = franchise_id
        self.retry_seconds = retry_seconds
        self._source = source
        self._handler = handler
        self._on_close = on_close
        self._stop_event = threading.Event()
        self._state = SubscriptionState.DISCONNECTED
        self._state_changed = threading.Condition()
        self._channel: ChangeChannel | None = None
        self.connect_attempts = 0

    @property
    def state(self) -> SubscriptionState:
        with self._state_changed:
            return self._state

    def wait_for_state(self, state: SubscriptionState, timeout: float) -> bool:
        with self._state_changed:
            return self._state_changed.wait_for(lambda: self._state == state, timeout)

    def close(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)
        self._set_state(SubscriptionState.CLOSED)
        if self._on_close is not None:
            self._on_close(self)

    def run(self) -> None:
        while not self._stop_event.is_set():
            self._set_state(SubscriptionState.CONNECTING)
            self.connect_attempts += 1
            try:
                self._channel = self._source.connect(self.table, self.franchise_id)
            except NotifierUnavailableError as exc:
                self._disconnected(exc)
                continue

            self._set_state(SubscriptionState.SUBSCRIBED)
            try:
                self._pump(self._channel)
            except NotifierUnavailableError as exc:
                self._disconnected(exc)
            finally:
                self._channel.close()
                self._channel = None
        self._set_state(SubscriptionState.CLOSED)

    def _pump(self, channel: ChangeChannel) -> None:
        while not self._stop_event.is_set():
            change = channel.receive(_POLL_SECONDS)
            if change is None:
                continue
            try:
                self._handler(change)
            except Exception:
                logger.exception(
                    "change_handler_failed",
                    extra={
                        "table": change.table.value,
                        "record_id": str(change.record_id),
                    },
                )

    def _disconnected(self, exc: NotifierUnavailableError) -> None:
        self._set_state(SubscriptionState.DISCONNECTED)
        logger.warning(
            "change_subscription_disconnected",
            extra={
                "table": self.table.value,
                "franchise_id": str(self.franchise_id) if self.franchise_id else None,
                "retry_seconds": self.retry_seconds,
                "detail": exc.detail,
            },
        )
        self._stop_event.wait(self.retry_seconds)

    def _set_state(self, state: SubscriptionState) -> None:
        with self._state_changed:
            if self._state == SubscriptionState.CLOSED:
                return
            self._state = state
            self._state_changed.notify_all()


_TABLE_STREAMS = {
    WatchedTable.ADMIN_INCOME: LedgerStream.ADMIN_INCOME,
    WatchedTable.WORKER_INCOME: LedgerStream.WORKER_INCOME,
    WatchedTable.EXPENSES: LedgerStream.EXPENSES,
}


class ChangeNotifier:
    """Scope-checked factory and registry of subscriptions."""

    def __init__(self, source: ChangeSource, retry_seconds: float = DEFAULT_RETRY_SECONDS):
        self._source = source
        self._retry_seconds = retry_seconds
        self._lock = threading.Lock()
        self._subscriptions: list[ChangeSubscription] = []

    def subscribe(
        self,
        scope: AccessScope,
        table: WatchedTable | str,
        handler: Callable[[ChangeEvent], None],
        franchise_id: UUID | None = None,
    ) -> ChangeSubscription:
        try:
            table = WatchedTable(table)
        except ValueError:
            raise InvalidArgumentError(f"Unknown watched table: {table!r}") from None
        if table == WatchedTable.PROFIT_SHARE_RECORDS:
            if scope.role not in (Role.SUPER_ADMIN, Role.FRANCHISE):
                raise ForbiddenError(scope.role.value, f"subscribe to {table.value}")
        else:
            scope.require_stream(_TABLE_STREAMS[table], "subscribe to")
        target = scope.read_filter(franchise_id)

        subscription = ChangeSubscription(
            self._source,
            table,
            handler,
            franchise_id=target,
            retry_seconds=self._retry_seconds,
            on_close=self._forget,
        )
        with self._lock:
            self._subscriptions.append(subscription)
        subscription.start()
        logger.info(
            "change_subscription_started",
            extra={
                "table": table.value,
                "franchise_id": str(target) if target else None,
                "role": scope.role.value,
            },
        )
        return subscription

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _forget(self, subscription: ChangeSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def close_all(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.close()
