from __future__ import annotations

import asyncio

import pytest
from conftest import DATA_ONE, DATA_TWO, QUERY, VARIABLES, FakeTransport

from pylivequery import ProtocolError, TransportError
from pylivequery._dedup import QueryRequestKey, RequestDeduplicator
from pylivequery.models.result import ExecutionResult


def _recorder() -> tuple[list[tuple[QueryRequestKey, ExecutionResult]], object]:
    writes: list[tuple[QueryRequestKey, ExecutionResult]] = []

    def on_result(key: QueryRequestKey, result: ExecutionResult) -> None:
        writes.append((key, result))

    return writes, on_result


def test_keys_compare_by_content() -> None:
    first = QueryRequestKey.build(QUERY, {"id": 1, "extra": [1, 2]})
    second = QueryRequestKey.build(QUERY.model_copy(), {"extra": [1, 2], "id": 1})

    assert first == second
    assert hash(first) == hash(second)
    assert first != QueryRequestKey.build(QUERY, {"id": 2})


@pytest.mark.asyncio
async def test_concurrent_acquires_share_one_transport_call(transport: FakeTransport) -> None:
    transport.add(QUERY, VARIABLES, {"data": DATA_ONE})
    writes, on_result = _recorder()
    dedup = RequestDeduplicator(transport, on_result)  # type: ignore[arg-type]
    key = QueryRequestKey.build(QUERY, VARIABLES)

    results = await asyncio.gather(dedup.acquire(key), dedup.acquire(key), dedup.acquire(key))

    assert len(transport.calls) == 1
    assert all(result.data == DATA_ONE for result in results)
    assert len(writes) == 1
    assert len(dedup) == 0


@pytest.mark.asyncio
async def test_entry_removed_after_settlement_so_next_request_is_fresh(transport: FakeTransport) -> None:
    transport.add(QUERY, VARIABLES, {"data": DATA_ONE}, {"data": DATA_TWO})
    _, on_result = _recorder()
    dedup = RequestDeduplicator(transport, on_result)  # type: ignore[arg-type]
    key = QueryRequestKey.build(QUERY, VARIABLES)

    first = await dedup.acquire(key)
    assert not dedup.is_in_flight(key)
    second = await dedup.acquire(key)

    assert first.data == DATA_ONE
    assert second.data == DATA_TWO
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_failure_reaches_every_joiner_and_is_not_retried(transport: FakeTransport) -> None:
    transport.add(QUERY, VARIABLES, TransportError("down"), {"data": DATA_ONE})
    writes, on_result = _recorder()
    dedup = RequestDeduplicator(transport, on_result)  # type: ignore[arg-type]
    key = QueryRequestKey.build(QUERY, VARIABLES)

    outcomes = await asyncio.gather(dedup.acquire(key), dedup.acquire(key), return_exceptions=True)

    assert all(isinstance(outcome, TransportError) for outcome in outcomes)
    assert len(transport.calls) == 1
    assert writes == []
    assert not dedup.is_in_flight(key)

    retried = await dedup.acquire(key)
    assert retried.data == DATA_ONE
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_foreign_transport_exceptions_are_wrapped() -> None:
    class BrokenTransport:
        async def execute(self, document, variables):  # type: ignore[no-untyped-def]
            raise ConnectionResetError("peer reset")

    _, on_result = _recorder()
    dedup = RequestDeduplicator(BrokenTransport(), on_result)  # type: ignore[arg-type]

    with pytest.raises(TransportError) as excinfo:
        await dedup.acquire(QueryRequestKey.build(QUERY, VARIABLES))
    assert isinstance(excinfo.value.__cause__, ConnectionResetError)


@pytest.mark.asyncio
async def test_protocol_errors_still_write_partial_data(transport: FakeTransport) -> None:
    transport.add(
        QUERY,
        VARIABLES,
        {"data": DATA_ONE, "errors": [{"message": "age is restricted"}]},
    )
    writes, on_result = _recorder()
    dedup = RequestDeduplicator(transport, on_result)  # type: ignore[arg-type]

    with pytest.raises(ProtocolError) as excinfo:
        await dedup.acquire(QueryRequestKey.build(QUERY, VARIABLES))

    assert excinfo.value.errors == [{"message": "age is restricted"}]
    assert len(writes) == 1
    assert writes[0][1].data == DATA_ONE


@pytest.mark.asyncio
async def test_malformed_response_is_a_transport_error(transport: FakeTransport) -> None:
    transport.add(QUERY, VARIABLES, {"data": "not-an-object"})
    _, on_result = _recorder()
    dedup = RequestDeduplicator(transport, on_result)  # type: ignore[arg-type]

    with pytest.raises(TransportError):
        await dedup.acquire(QueryRequestKey.build(QUERY, VARIABLES))


@pytest.mark.asyncio
async def test_disabled_deduplication_issues_one_call_per_acquire(transport: FakeTransport) -> None:
    transport.add(QUERY, VARIABLES, {"data": DATA_ONE})
    _, on_result = _recorder()
    dedup = RequestDeduplicator(transport, on_result, enabled=False)  # type: ignore[arg-type]
    key = QueryRequestKey.build(QUERY, VARIABLES)

    await asyncio.gather(dedup.acquire(key), dedup.acquire(key))

    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_cancelling_one_joiner_does_not_cancel_the_shared_call(transport: FakeTransport) -> None:
    transport.add(QUERY, VARIABLES, {"data": DATA_ONE})
    transport.gate = asyncio.Event()
    _, on_result = _recorder()
    dedup = RequestDeduplicator(transport, on_result)  # type: ignore[arg-type]
    key = QueryRequestKey.build(QUERY, VARIABLES)

    abandoned = dedup.acquire(key)
    kept = dedup.acquire(key)
    await asyncio.sleep(0)
    abandoned.cancel()
    transport.gate.set()

    result = await kept
    assert result.data == DATA_ONE
    assert len(transport.calls) == 1
