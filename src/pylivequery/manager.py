"""Query manager: the per-client coordinator.

Owns the normalized store and the in-flight request table, creates
:class:`~pylivequery.observable.ObservableQuery` instances bound to them,
and re-notifies active queries after every store-changing write.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Mapping
from typing import Any

from pylivequery._dedup import QueryRequestKey, RequestDeduplicator
from pylivequery._scheduler import LoopScheduler, Scheduler
from pylivequery._transport import Transport
from pylivequery.cache.store import NormalizedStore
from pylivequery.config import LiveQueryConfig
from pylivequery.models.document import QueryDocument
from pylivequery.models.options import FetchPolicy, WatchQueryOptions, validate_options
from pylivequery.models.result import ExecutionResult, ResultEnvelope
from pylivequery.observable import ObservableQuery

_logger = logging.getLogger(__name__)


class QueryManager:
    """Routes every query of one client through a shared store and request table.

    Usage::

        manager = QueryManager(transport)
        observable = manager.watch_query(query=document, variables={"id": 1})
        subscription = observable.subscribe(print)
    """

    def __init__(
        self,
        transport: Transport,
        *,
        config: LiveQueryConfig | None = None,
        store: NormalizedStore | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._config = config or LiveQueryConfig()
        self._store = store or NormalizedStore(data_id_from_object=self._config.data_id_from_object)
        self._scheduler = scheduler or LoopScheduler()
        self._dedup = RequestDeduplicator(
            transport,
            self._write_result,
            enabled=self._config.query_deduplication,
        )
        self._query_ids = itertools.count(1)
        self._active: dict[int, ObservableQuery] = {}

    @property
    def store(self) -> NormalizedStore:
        return self._store

    @property
    def config(self) -> LiveQueryConfig:
        return self._config

    @property
    def active_queries(self) -> list[ObservableQuery]:
        return list(self._active.values())

    # ------------------------------------------------------------------
    # Public entrypoints
    # ------------------------------------------------------------------

    def watch_query(self, options: WatchQueryOptions | None = None, **fields: Any) -> ObservableQuery:
        """Create a live query; nothing is fetched until the first subscribe.

        Raises :class:`~pylivequery.exceptions.ConfigurationError` when a
        required variable is missing or an option is malformed.
        """
        if options is None:
            if "force_fetch" not in fields:
                fields.setdefault("fetch_policy", self._config.default_fetch_policy)
            fields.setdefault("return_partial_data", self._config.default_return_partial_data)
            options = validate_options(**fields)
        return ObservableQuery(
            self,
            options,
            scheduler=self._scheduler,
            query_id=next(self._query_ids),
        )

    async def query(
        self,
        document: QueryDocument,
        variables: Mapping[str, Any] | None = None,
        fetch_policy: FetchPolicy | None = None,
    ) -> ResultEnvelope:
        """One-shot read: cache check, then a deduplicated fetch when needed.

        Unlike watched queries, failures are raised rather than carried
        on the envelope.
        """
        options = validate_options(
            query=document,
            variables=dict(variables or {}),
            fetch_policy=fetch_policy or self._config.default_fetch_policy,
        )
        diff = self._store.diff(options.query, options.variables)
        if diff.complete and not options.force_network:
            return ResultEnvelope(data=diff.data, loading=False)

        await self._acquire(QueryRequestKey.build(options.query, options.variables))
        diff = self._store.diff(options.query, options.variables)
        return ResultEnvelope(data=diff.data, loading=False)

    async def reset_store(self) -> list[ResultEnvelope]:
        """Clear every record, then refetch all active queries."""
        self._store.reset()
        futures = [query.refetch() for query in self.active_queries]
        if not futures:
            return []
        return list(await asyncio.gather(*futures))

    def stop(self) -> None:
        """Detach every active query and cancel its polling."""
        for query in self.active_queries:
            query.close()

    def broadcast_queries(self, written_key: QueryRequestKey | None = None) -> None:
        """Let every active query re-read; *written_key* names the request whose result was written."""
        for query in self.active_queries:
            query._on_store_changed(written_key)

    # ------------------------------------------------------------------
    # Hooks used by ObservableQuery and the request table
    # ------------------------------------------------------------------

    def _register(self, query: ObservableQuery) -> None:
        self._active[query.query_id] = query

    def _unregister(self, query: ObservableQuery) -> None:
        self._active.pop(query.query_id, None)

    def _acquire(self, key: QueryRequestKey) -> asyncio.Future[ExecutionResult]:
        return self._dedup.acquire(key)

    def _write_result(self, key: QueryRequestKey, result: ExecutionResult) -> None:
        if result.data is None:
            return
        changed = self._store.write(key.document, key.variables, result.data)
        if changed:
            _logger.debug("%s changed %d record(s); re-reading active queries", key.operation, len(changed))
            self.broadcast_queries(key)
