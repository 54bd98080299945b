from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from pylivequery import ManualScheduler, QueryManager, Variable, build_document
from pylivequery import field as select
from pylivequery.cache.keys import canonical_json
from pylivequery.models.document import QueryDocument

QUERY = build_document(
    select("people_one", select("name"), args={"id": Variable("id")}),
    variables={"id": "ID!"},
    operation_name="PersonName",
)
SUPER_QUERY = build_document(
    select("people_one", select("name"), select("age"), args={"id": Variable("id")}),
    variables={"id": "ID!"},
    operation_name="PersonNameAge",
)
VARIABLES = {"id": 1}
DIFFERENT_VARIABLES = {"id": 2}
DATA_ONE = {"people_one": {"name": "Luke Skywalker"}}
SUPER_DATA_ONE = {"people_one": {"name": "Luke Skywalker", "age": 21}}
DATA_TWO = {"people_one": {"name": "Leia Skywalker"}}


@dataclass
class FakeTransport:
    """Replays queued responses per (document, variables); the last one repeats."""

    responses: dict[tuple[str, str], list[Any]] = field(default_factory=dict)
    calls: list[tuple[QueryDocument, dict[str, Any]]] = field(default_factory=list)
    gate: asyncio.Event | None = None
    # Document ids the gate applies to; empty means every call waits on it.
    held: set[str] = field(default_factory=set)

    def add(self, document: QueryDocument, variables: Mapping[str, Any], *responses: Any) -> None:
        key = (document.document_id(), canonical_json(dict(variables)))
        self.responses.setdefault(key, []).extend(responses)

    def calls_for(self, document: QueryDocument, variables: Mapping[str, Any]) -> int:
        return sum(1 for doc, vars_ in self.calls if doc == document and vars_ == dict(variables))

    def hold(self, document: QueryDocument) -> asyncio.Event:
        """Block calls for *document* until the returned event is set."""
        if self.gate is None:
            self.gate = asyncio.Event()
        self.held.add(document.document_id())
        return self.gate

    async def execute(self, document: QueryDocument, variables: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append((document, dict(variables)))
        if self.gate is not None and (not self.held or document.document_id() in self.held):
            await self.gate.wait()
        await asyncio.sleep(0)
        queue = self.responses[(document.document_id(), canonical_json(dict(variables)))]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def manager(transport: FakeTransport, scheduler: ManualScheduler) -> QueryManager:
    return QueryManager(transport, scheduler=scheduler)


@pytest.fixture
def settle() -> Callable[[], Awaitable[None]]:
    """Let every ready task (fetches, settlements, poll ticks) run to completion."""

    async def _settle() -> None:
        for _ in range(30):
            await asyncio.sleep(0)

    return _settle
