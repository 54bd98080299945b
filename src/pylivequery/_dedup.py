"""In-flight request table.

Owns:
- the canonical key identifying one network operation
- at most one outstanding transport call per key
- fan-out of that call's outcome to every caller that joined it
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from pylivequery._redact import redact_variables
from pylivequery._transport import Transport
from pylivequery.cache.keys import canonical_json
from pylivequery.exceptions import LiveQueryError, ProtocolError, TransportError
from pylivequery.models.document import QueryDocument
from pylivequery.models.result import ExecutionResult

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class QueryRequestKey:
    """Identity of one network operation.

    Compared by document content and variable values. Fetch policy is
    not part of the key: both policies send the same request, so a
    cache-first and a forced observer share one in-flight operation.
    """

    document_id: str
    variables_id: str
    document: QueryDocument = dataclasses.field(compare=False, repr=False)
    variables: Mapping[str, Any] = dataclasses.field(compare=False, repr=False)

    @classmethod
    def build(cls, document: QueryDocument, variables: Mapping[str, Any]) -> QueryRequestKey:
        return cls(
            document_id=document.document_id(),
            variables_id=canonical_json(dict(variables)),
            document=document,
            variables=dict(variables),
        )

    @property
    def operation(self) -> str:
        return self.document.operation_name or "<anonymous>"


class RequestDeduplicator:
    """Collapse equivalent concurrent requests into one transport call.

    ``on_result`` runs inside the shared call, before any joined caller
    resumes, so the store already holds the response when they re-read.
    """

    def __init__(
        self,
        transport: Transport,
        on_result: Callable[[QueryRequestKey, ExecutionResult], None],
        *,
        enabled: bool = True,
    ) -> None:
        self._transport = transport
        self._on_result = on_result
        self._enabled = enabled
        self._in_flight: dict[QueryRequestKey, asyncio.Task[ExecutionResult]] = {}

    def __len__(self) -> int:
        return len(self._in_flight)

    def is_in_flight(self, key: QueryRequestKey) -> bool:
        return key in self._in_flight

    def acquire(self, key: QueryRequestKey) -> asyncio.Future[ExecutionResult]:
        """Join the outstanding operation for *key*, starting one if there is none.

        The returned future is shielded: cancelling it detaches this
        caller without cancelling the operation other callers wait on.
        """
        task = self._in_flight.get(key) if self._enabled else None
        if task is None:
            task = asyncio.get_running_loop().create_task(self._run(key))
            if self._enabled:
                self._in_flight[key] = task
                task.add_done_callback(lambda done, k=key: self._release(k, done))
        else:
            _logger.debug("Joining in-flight %s", key.operation)
        return asyncio.shield(task)

    def _release(self, key: QueryRequestKey, task: asyncio.Task[ExecutionResult]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _run(self, key: QueryRequestKey) -> ExecutionResult:
        _logger.debug("Fetching %s variables=%s", key.operation, redact_variables(key.document, key.variables))
        try:
            raw = await self._transport.execute(key.document, key.variables)
        except LiveQueryError:
            raise
        except Exception as exc:
            raise TransportError(f"Transport failed for {key.operation}: {exc}", operation=key.operation) from exc

        try:
            result = ExecutionResult.model_validate(raw)
        except ValidationError as exc:
            raise TransportError(
                f"Malformed response for {key.operation}: {exc}",
                operation=key.operation,
            ) from exc

        self._on_result(key, result)

        if result.errors:
            messages = "; ".join(str(err.get("message", err)) for err in result.errors)
            raise ProtocolError(
                f"{key.operation} returned errors: {messages}",
                errors=result.errors,
                operation=key.operation,
            )
        _logger.debug("Settled %s", key.operation)
        return result
