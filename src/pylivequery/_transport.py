"""HTTP transport for query documents."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pylivequery._redact import redact_variables
from pylivequery.config import LiveQueryConfig
from pylivequery.exceptions import TransportError
from pylivequery.models.document import QueryDocument, print_document

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface consumed by the query manager.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def execute(self, document: QueryDocument, variables: Mapping[str, Any]) -> dict[str, Any]:
        ...


class HttpTransport:
    """POSTs ``{"query", "variables", "operationName"}`` as JSON and decodes the reply."""

    def __init__(self, config: LiveQueryConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    def _timeout(self) -> aiohttp.ClientTimeout | None:
        if self._config.request_timeout <= 0:
            return None
        return aiohttp.ClientTimeout(total=self._config.request_timeout)

    async def execute(self, document: QueryDocument, variables: Mapping[str, Any]) -> dict[str, Any]:
        operation = document.operation_name or ""
        payload: dict[str, Any] = {
            "query": print_document(document),
            "variables": dict(variables),
        }
        if document.operation_name:
            payload["operationName"] = document.operation_name

        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            **self._config.headers,
        }
        url = self._config.endpoint

        if self._config.trace_enabled:
            _logger.debug("POST %s operation=%s variables=%s", url, operation, redact_variables(document, variables))
        else:
            _logger.debug("POST %s operation=%s", url, operation)

        try:
            async with self._http.post(
                url,
                data=json.dumps(payload, separators=(",", ":")),
                headers=headers,
                timeout=self._timeout(),
            ) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise TransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        operation=operation,
                    )
        except TransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TransportError(
                f"Request to {url} failed: {exc}",
                operation=operation,
            ) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON from {url}: {text[:200]}",
                operation=operation,
            ) from exc

        if not isinstance(body, dict) or ("data" not in body and "errors" not in body):
            raise TransportError(
                f"Response from {url} has neither 'data' nor 'errors'",
                operation=operation,
            )

        if self._config.trace_enabled:
            _logger.debug("Response %s keys=%s", operation, sorted(body))
        return body
