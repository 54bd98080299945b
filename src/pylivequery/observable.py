"""Live query handles.

An :class:`ObservableQuery` binds one document and its variables to a
stream of :class:`~pylivequery.models.result.ResultEnvelope` snapshots.
It reads synchronously from the shared store, fetches through the
manager's request table, polls on its own timer, and only notifies a
subscriber when that subscriber's next envelope differs from its last.

Loading state is derived, never stored: a query is loading while a
fetch for its *current* request key is outstanding, or, before anything
settled for that key, whenever the store alone cannot answer it (or the
policy forces the network).
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pylivequery._dedup import QueryRequestKey
from pylivequery._notifier import ResultNotifier
from pylivequery._redact import redact_variables
from pylivequery._scheduler import PollTimer, Scheduler
from pylivequery.exceptions import LiveQueryError
from pylivequery.models.document import QueryDocument
from pylivequery.models.options import WatchQueryOptions
from pylivequery.models.result import ErrorInfo, ResultEnvelope

if TYPE_CHECKING:
    from pylivequery.manager import QueryManager

_logger = logging.getLogger(__name__)


@runtime_checkable
class Observer(Protocol):
    def notify(self, envelope: ResultEnvelope) -> None: ...


class _CallbackObserver:
    __slots__ = ("_callback",)

    def __init__(self, callback: Callable[[ResultEnvelope], None]) -> None:
        self._callback = callback

    def notify(self, envelope: ResultEnvelope) -> None:
        self._callback(envelope)


class Subscription:
    """Handle returned by :meth:`ObservableQuery.subscribe`."""

    def __init__(self, query: ObservableQuery, subscriber_id: int) -> None:
        self._query = query
        self._subscriber_id = subscriber_id
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._query._unsubscribe(self._subscriber_id)


class ObservableQuery:
    """One consumer's live query.

    Created by :meth:`pylivequery.manager.QueryManager.watch_query`; the
    first :meth:`subscribe` starts it and the last unsubscribe stops it.
    """

    def __init__(
        self,
        manager: QueryManager,
        options: WatchQueryOptions,
        *,
        scheduler: Scheduler,
        query_id: int,
    ) -> None:
        self._manager = manager
        self._options = options
        self.query_id = query_id
        self._observers: dict[int, Observer] = {}
        self._subscriber_ids = itertools.count(1)
        self._notifier = ResultNotifier()
        self._poll = PollTimer(scheduler, self._poll_tick, label=self._label())
        self._started = False

        # Request key of the fetch this instance is waiting on, if any.
        self._fetch_key: QueryRequestKey | None = None
        self._fetch_future: asyncio.Future[ResultEnvelope] | None = None
        # Request key whose fetch (or cache hit) last settled, with its errors.
        self._settled_key: QueryRequestKey | None = None
        self._errors: tuple[ErrorInfo, ...] | None = None
        # Previous variables' data, shown while new variables are loading.
        self._holdover: dict[str, Any] | None = None
        self._last_delivered: ResultEnvelope | None = None
        # Envelopes computed while a fan-out is running wait here, in order.
        self._pending: deque[ResultEnvelope] = deque()
        self._delivering = False

    def _label(self) -> str:
        name = self._options.query.operation_name or "<anonymous>"
        return f"{name}#{self.query_id}"

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def options(self) -> WatchQueryOptions:
        return self._options

    @property
    def query(self) -> QueryDocument:
        return self._options.query

    @property
    def variables(self) -> dict[str, Any]:
        return dict(self._options.variables)

    @property
    def is_active(self) -> bool:
        return self._started

    @property
    def is_polling(self) -> bool:
        return self._poll.is_armed

    def request_key(self) -> QueryRequestKey:
        return QueryRequestKey.build(self._options.query, self._options.variables)

    def current_result(self) -> ResultEnvelope:
        """Synchronous snapshot of the store for the current options; never fetches."""
        options = self._options
        key = self.request_key()
        diff = self._manager.store.diff(options.query, options.variables, options.return_partial_data)

        if self._fetch_key == key:
            loading = True
        elif self._settled_key == key:
            loading = False
        else:
            loading = options.force_network or not diff.complete

        data = diff.data
        if loading and not diff.complete and self._holdover is not None:
            data = self._holdover
        errors = self._errors if self._settled_key == key and not loading else None
        return ResultEnvelope(data=data, loading=loading, errors=errors)

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer | Callable[[ResultEnvelope], None]) -> Subscription:
        if not isinstance(observer, Observer):
            observer = _CallbackObserver(observer)
        subscriber_id = next(self._subscriber_ids)
        self._observers[subscriber_id] = observer

        if not self._started:
            self._start()
        else:
            current = self.current_result()
            if not current.loading or self._options.return_partial_data:
                self._deliver(subscriber_id, observer, current)
        return Subscription(self, subscriber_id)

    def _start(self) -> None:
        self._started = True
        self._manager._register(self)
        options = self._options
        diff = self._manager.store.diff(options.query, options.variables, options.return_partial_data)
        if diff.complete and not options.force_network:
            self._settled_key = self.request_key()
            self._errors = None
            self._deliver_all(self.current_result())
            self._arm_polling()
            return
        future = self._fetch(interim=options.return_partial_data)
        future.add_done_callback(lambda _: self._arm_polling())

    def _unsubscribe(self, subscriber_id: int) -> None:
        self._observers.pop(subscriber_id, None)
        self._notifier.forget(subscriber_id)
        if not self._observers:
            self._teardown()

    def _teardown(self) -> None:
        if not self._started:
            return
        self._started = False
        self._poll.disarm()
        self._manager._unregister(self)
        _logger.debug("Stopped %s", self._label())

    def close(self) -> None:
        """Drop every subscriber and stop polling."""
        for subscriber_id in list(self._observers):
            self._notifier.forget(subscriber_id)
        self._observers.clear()
        self._teardown()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _deliver(self, subscriber_id: int, observer: Observer, envelope: ResultEnvelope) -> None:
        if not self._notifier.should_deliver(subscriber_id, envelope):
            return
        try:
            observer.notify(envelope)
        except Exception:
            _logger.debug("Observer of %s failed", self._label(), exc_info=True)

    def _deliver_all(self, envelope: ResultEnvelope) -> None:
        """Fan *envelope* out to every subscriber, after anything already queued.

        An observer that reconfigures the query from inside ``notify``
        only queues the resulting envelope; every subscriber sees the
        current one first.
        """
        self._last_delivered = envelope
        self._pending.append(envelope)
        if self._delivering:
            return
        self._delivering = True
        try:
            while self._pending:
                current = self._pending.popleft()
                for subscriber_id, observer in list(self._observers.items()):
                    if subscriber_id in self._observers:
                        self._deliver(subscriber_id, observer, current)
        finally:
            self._delivering = False

    def _on_store_changed(self, written_key: QueryRequestKey | None = None) -> None:
        """Re-read after a store write."""
        if not self._started:
            return
        if self._fetch_key is not None and (written_key == self._fetch_key or not self._options.return_partial_data):
            # The fetch's own settlement re-reads.
            return
        self._deliver_all(self.current_result())

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _fetch(self, *, interim: bool) -> asyncio.Future[ResultEnvelope]:
        key = self.request_key()
        if self._fetch_key == key and self._fetch_future is not None:
            return self._fetch_future
        self._fetch_key = key
        if interim:
            self._deliver_all(self.current_result())
        future = asyncio.get_running_loop().create_task(self._run_fetch(key))
        self._fetch_future = future
        return future

    async def _run_fetch(self, key: QueryRequestKey) -> ResultEnvelope:
        errors: tuple[ErrorInfo, ...] | None = None
        try:
            await self._manager._acquire(key)
        except LiveQueryError as exc:
            _logger.debug("Fetch for %s failed: %s", self._label(), exc)
            errors = ErrorInfo.from_exception(exc)

        if key != self.request_key():
            _logger.debug(
                "Discarding stale settlement for %s variables=%s",
                self._label(),
                redact_variables(key.document, key.variables),
            )
            return self.current_result()

        if self._fetch_key == key:
            self._fetch_key = None
            self._fetch_future = None
        self._settled_key = key
        self._errors = errors
        self._holdover = None
        envelope = self.current_result()
        self._deliver_all(envelope)
        return envelope

    async def _poll_tick(self) -> ResultEnvelope:
        return await self._fetch(interim=False)

    def _arm_polling(self) -> None:
        if self._started:
            self._poll.arm(self._options.poll_interval)

    # ------------------------------------------------------------------
    # Reconfiguration
    # ------------------------------------------------------------------

    def _transition(self, *, force: bool = False) -> asyncio.Future[ResultEnvelope] | None:
        """Move to a new request key after variables (or the document) changed."""
        previous_data = self._last_delivered.data if self._last_delivered is not None else None
        self._fetch_key = None
        self._fetch_future = None
        self._errors = None
        self._holdover = None
        if not self._started and not force:
            return None

        options = self._options
        diff = self._manager.store.diff(options.query, options.variables, options.return_partial_data)
        if diff.complete and not options.force_network and not force:
            self._settled_key = self.request_key()
            envelope = self.current_result()
            self._deliver_all(envelope)
            done: asyncio.Future[ResultEnvelope] = asyncio.get_running_loop().create_future()
            done.set_result(envelope)
            return done

        self._holdover = previous_data
        # Nothing shown yet: like a first load, stay quiet until settlement.
        return self._fetch(interim=self._started and previous_data is not None)

    def set_options(self, **partial: Any) -> asyncio.Future[ResultEnvelope] | None:
        """Merge *partial* into the options.

        Returns a future for the envelope of a fetch this change started,
        or ``None`` when no fetch was needed.
        """
        previous = self._options
        options = previous.merged(**partial)
        self._options = options

        if options.query != previous.query or options.variables != previous.variables:
            future = self._transition()
            if self._started:
                self._poll.arm(options.poll_interval)
            return future

        if not self._started:
            return None

        if options.poll_interval != previous.poll_interval:
            self._poll.arm(options.poll_interval)

        if options.force_network and not previous.force_network:
            return self._fetch(interim=False)

        if options.return_partial_data != previous.return_partial_data:
            self._deliver_all(self.current_result())
        return None

    def set_variables(self, variables: Mapping[str, Any] | None) -> asyncio.Future[ResultEnvelope] | None:
        """Switch to *variables*; a deep-equal mapping is a no-op returning ``None``."""
        new_variables = dict(variables or {})
        if new_variables == self._options.variables:
            return None
        self._options = self._options.merged(variables=new_variables)
        return self._transition()

    def refetch(self, variables: Mapping[str, Any] | None = None) -> asyncio.Future[ResultEnvelope]:
        """Go to the network regardless of policy, optionally with new variables."""
        if variables is not None and dict(variables) != self._options.variables:
            self._options = self._options.merged(variables=dict(variables))
            future = self._transition(force=True)
            assert future is not None  # noqa: S101
            return future
        return self._fetch(interim=False)

    def start_polling(self, interval_ms: int) -> None:
        self.set_options(poll_interval=interval_ms)

    def stop_polling(self) -> None:
        self.set_options(poll_interval=0)

    async def result(self) -> ResultEnvelope:
        """Wait for a settled (non-loading) envelope for the current options."""
        while True:
            current = self.current_result()
            if not current.loading:
                return current
            future = self._fetch_future if self._fetch_key == self.request_key() else None
            if future is None:
                future = self._fetch(interim=False)
            await asyncio.shield(future)
