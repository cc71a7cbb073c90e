"""Tests for bounded-concurrency processing."""

import asyncio

import pytest

from src.pricer.concurrency import process_with_concurrency


async def collect(agen):
    return [item async for item in agen]


class TestProcessWithConcurrency:
    def test_processes_every_item(self):
        async def double(x):
            await asyncio.sleep(0)
            return x * 2

        results = asyncio.run(collect(process_with_concurrency(range(10), 3, double)))
        assert sorted(results) == [x * 2 for x in range(10)]

    def test_never_exceeds_limit(self):
        state = {"running": 0, "peak": 0}

        async def work(x):
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
            await asyncio.sleep(0.001 * (x % 3))
            state["running"] -= 1
            return x

        asyncio.run(collect(process_with_concurrency(range(20), 4, work)))
        assert state["peak"] == 4

    def test_yields_in_completion_order(self):
        async def delayed(x):
            await asyncio.sleep(x / 100)
            return x

        results = asyncio.run(collect(process_with_concurrency([3, 1, 2], 3, delayed)))
        assert results == [1, 2, 3]

    def test_no_barrier_between_groups(self):
        """A fast item starts as soon as any slot frees, not after the whole group."""
        started = []

        async def work(x):
            started.append(x)
            await asyncio.sleep(0.05 if x == 0 else 0.001)
            return x

        results = asyncio.run(collect(process_with_concurrency(range(4), 2, work)))
        assert results[-1] == 0
        assert started == [0, 1, 2, 3]

    def test_stop_prevents_new_items_but_finishes_in_flight(self):
        stop = {"flag": False}

        async def work(x):
            await asyncio.sleep(0.001)
            stop["flag"] = True
            return x

        results = asyncio.run(collect(process_with_concurrency(
            range(10), 2, work, should_continue=lambda: not stop["flag"]
        )))
        assert sorted(results) == [0, 1]

    def test_exceptions_propagate(self):
        async def fail(x):
            raise RuntimeError(f"item {x}")

        with pytest.raises(RuntimeError):
            asyncio.run(collect(process_with_concurrency([1], 1, fail)))

    def test_invalid_limit(self):
        async def noop(x):
            return x

        with pytest.raises(ValueError):
            asyncio.run(collect(process_with_concurrency([1], 0, noop)))

    def test_empty_input(self):
        async def noop(x):
            return x

        assert asyncio.run(collect(process_with_concurrency([], 5, noop))) == []
