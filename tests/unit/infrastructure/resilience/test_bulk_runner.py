import asyncio
import random

import httpx
import pytest

from basincli.domain.errors import ApiError, ValidationError
from basincli.domain.models.api import RequestSpec
from basincli.infrastructure.resilience.bulk_runner import chunk_array, parse_bulk_ids, run_bulk


# --- chunk_array ---

def test_chunk_array_last_chunk_may_be_shorter():
    assert chunk_array([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]


def test_chunk_array_edge_cases():
    assert chunk_array([], 3) == []
    assert chunk_array("abc", 5) == [["a", "b", "c"]]
    with pytest.raises(ValidationError):
        chunk_array([1], 0)


# --- parse_bulk_ids ---

def test_parse_bulk_ids_splits_trims_and_dedupes():
    assert parse_bulk_ids(" 3, 1 2,,3\t7 ") == ["3", "1", "2", "7"]
    assert parse_bulk_ids(["5,6", "6 8"]) == ["5", "6", "8"]


@pytest.mark.parametrize("value", [None, "", " , ", []])
def test_parse_bulk_ids_requires_an_identifier(value):
    with pytest.raises(ValidationError):
        parse_bulk_ids(value)


# --- run_bulk ---

@pytest.mark.asyncio
async def test_item_failure_is_isolated():
    """A failing item is captured in place and siblings still succeed."""
    async def op(item_id: str):
        if item_id == "2":
            raise Exception("Item not found")
        return {"id": item_id}

    results = await run_bulk(["1", "2", "3"], op)

    assert [r.id for r in results] == ["1", "2", "3"]
    assert results[0].success and results[2].success
    assert results[1].to_dict() == {"id": "2", "success": False, "error": {"message": "Item not found"}}


@pytest.mark.asyncio
async def test_order_is_preserved_under_shuffled_latencies():
    ids = [str(i) for i in range(30)]
    rng = random.Random(7)
    delays = {item_id: rng.random() / 100 for item_id in ids}
    completion_order = []

    async def op(item_id: str):
        await asyncio.sleep(delays[item_id])
        completion_order.append(item_id)
        return int(item_id)

    results = await run_bulk(ids, op, concurrency=7)

    assert len(results) == len(ids)
    assert [r.id for r in results] == ids
    assert [r.data for r in results] == list(range(30))
    assert completion_order != ids


@pytest.mark.asyncio
@pytest.mark.parametrize("concurrency", [1, 3, 5])
async def test_in_flight_never_exceeds_concurrency(concurrency):
    in_flight = 0
    peak = 0

    async def op(item_id: str):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001 * (int(item_id) % 3))
        in_flight -= 1

    await run_bulk([str(i) for i in range(20)], op, concurrency=concurrency)
    assert peak == concurrency


@pytest.mark.asyncio
async def test_sync_operations_are_supported():
    results = await run_bulk(["a", "b"], lambda item_id: item_id.upper())
    assert [r.data for r in results] == ["A", "B"]


@pytest.mark.asyncio
async def test_status_code_is_kept_from_api_errors():
    async def op(item_id: str):
        raise ApiError("Forbidden", 403, f"/api/connector/{item_id}")

    results = await run_bulk(["9"], op)
    assert results[0].error.status_code == 403


@pytest.mark.asyncio
async def test_fail_fast_stops_scheduling_but_keeps_started_work():
    started = []

    async def op(item_id: str):
        started.append(item_id)
        await asyncio.sleep(0.01 if item_id == "1" else 0.02)
        if item_id == "1":
            raise Exception("boom")
        return item_id

    ids = [str(i) for i in range(10)]
    results = await run_bulk(ids, op, concurrency=2, fail_fast=True)

    # Item 1 fails while 0 is still running; nothing else may start.
    assert started == ["0", "1"]
    assert [r.id for r in results] == ["0", "1"]
    assert results[0].success
    assert not results[1].success


@pytest.mark.asyncio
async def test_fail_fast_without_failures_runs_everything():
    results = await run_bulk(["1", "2", "3"], lambda item_id: item_id, concurrency=2, fail_fast=True)
    assert len(results) == 3


@pytest.mark.asyncio
async def test_fail_fast_output_is_a_prefix_of_input():
    async def op(item_id: str):
        await asyncio.sleep(0.001 * (int(item_id) % 4))
        if item_id == "5":
            raise Exception("bad")
        return item_id

    ids = [str(i) for i in range(20)]
    results = await run_bulk(ids, op, concurrency=3, fail_fast=True)

    assert [r.id for r in results] == ids[:len(results)]
    assert len(results) < len(ids)
    assert any(not r.success for r in results)


@pytest.mark.asyncio
async def test_progress_callback_counts_completions():
    progress = []
    await run_bulk(["1", "2", "3"], lambda item_id: item_id,
                   on_progress=lambda result, done, total: progress.append((done, total)))
    assert progress == [(1, 3), (2, 3), (3, 3)]


@pytest.mark.asyncio
async def test_invalid_concurrency_rejected():
    with pytest.raises(ValidationError):
        await run_bulk(["1"], lambda item_id: item_id, concurrency=0)


@pytest.mark.asyncio
async def test_empty_input_returns_empty_list():
    assert await run_bulk([], lambda item_id: item_id) == []


@pytest.mark.asyncio
async def test_slow_item_times_out_without_affecting_siblings(make_executor):
    """A per-request timeout fails only the slow item; the others still complete."""

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/x/2":
            await asyncio.sleep(1)
        return httpx.Response(200, json={"path": request.url.path})

    async with make_executor(handler) as executor:
        results = await run_bulk(
            ["1", "2", "3"],
            lambda item_id: executor.execute(RequestSpec("GET", f"/x/{item_id}", timeout=0.05)),
        )

    assert [r.success for r in results] == [True, False, True]
    assert results[1].error.message == "Request timeout after 0.05s"
    assert results[1].error.status_code is None
    assert results[2].data == {"path": "/x/3"}
