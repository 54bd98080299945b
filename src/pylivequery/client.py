"""High-level async client."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from pylivequery._scheduler import Scheduler
from pylivequery._transport import HttpTransport, Transport
from pylivequery.cache.store import NormalizedStore
from pylivequery.config import LiveQueryConfig
from pylivequery.exceptions import LiveQueryError
from pylivequery.manager import QueryManager
from pylivequery.models.document import QueryDocument
from pylivequery.models.options import FetchPolicy, WatchQueryOptions
from pylivequery.models.result import ResultEnvelope
from pylivequery.observable import ObservableQuery

_logger = logging.getLogger(__name__)


class LiveQueryClient:
    """Async client owning one store, one request table and one HTTP session.

    Usage::

        async with LiveQueryClient(LiveQueryConfig.from_env()) as client:
            envelope = await client.query(document, {"id": 1})
            observable = client.watch_query(query=document, variables={"id": 1}, poll_interval=5000)
    """

    def __init__(
        self,
        config: LiveQueryConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._config = config or LiveQueryConfig()
        self._external_session = session is not None
        self._http_session = session
        self._custom_transport = transport
        self._scheduler = scheduler
        self._manager: QueryManager | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LiveQueryClient:
        transport = self._custom_transport
        if transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = HttpTransport(self._config, self._http_session)
        self._manager = QueryManager(transport, config=self._config, scheduler=self._scheduler)
        _logger.debug("Client ready for %s", self._config.endpoint)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._manager is not None:
            self._manager.stop()
            self._manager = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def _require_manager(self) -> QueryManager:
        if self._manager is None:
            raise LiveQueryError("Client not initialized. Use 'async with LiveQueryClient(...) as client:'")
        return self._manager

    @property
    def manager(self) -> QueryManager:
        return self._require_manager()

    @property
    def store(self) -> NormalizedStore:
        return self._require_manager().store

    async def query(
        self,
        document: QueryDocument,
        variables: Mapping[str, Any] | None = None,
        fetch_policy: FetchPolicy | None = None,
    ) -> ResultEnvelope:
        return await self._require_manager().query(document, variables, fetch_policy)

    def watch_query(self, options: WatchQueryOptions | None = None, **fields: Any) -> ObservableQuery:
        return self._require_manager().watch_query(options, **fields)

    async def reset_store(self) -> list[ResultEnvelope]:
        return await self._require_manager().reset_store()
