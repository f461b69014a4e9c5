"""Tests for the query embedding cache."""

from unittest.mock import AsyncMock

import pytest

from docrank.retrieval import QueryEmbeddingCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = QueryEmbeddingCache(ttl_seconds=300, clock=clock)
    cache.set("abc invoices", [0.1, 0.2])

    clock.now += 299
    assert cache.get("abc invoices") == [0.1, 0.2]

    clock.now += 1
    assert cache.get("abc invoices") is None


def test_cache_is_keyed_by_exact_query():
    cache = QueryEmbeddingCache()
    cache.set("ABC invoices", [1.0])
    assert cache.get("abc invoices") is None


def test_expired_entries_swept_when_full():
    clock = FakeClock()
    cache = QueryEmbeddingCache(ttl_seconds=10, max_entries=3, clock=clock)
    cache.set("q1", [1.0])
    cache.set("q2", [2.0])

    clock.now += 20
    cache.set("q3", [3.0])
    assert len(cache) == 3

    cache.set("q4", [4.0])
    assert len(cache) == 2
    assert cache.get("q3") == [3.0]
    assert cache.get("q4") == [4.0]


def test_fresh_entries_survive_sweep():
    clock = FakeClock()
    cache = QueryEmbeddingCache(ttl_seconds=10, max_entries=2, clock=clock)
    for i in range(4):
        cache.set(f"q{i}", [float(i)])

    assert len(cache) == 4


@pytest.mark.asyncio
async def test_get_or_compute_calls_provider_once():
    clock = FakeClock()
    cache = QueryEmbeddingCache(ttl_seconds=300, clock=clock)
    compute = AsyncMock(return_value=[0.5, 0.5])

    first = await cache.get_or_compute("abc invoices", compute)
    second = await cache.get_or_compute("abc invoices", compute)

    assert first == second == [0.5, 0.5]
    compute.assert_awaited_once_with("abc invoices")

    clock.now += 301
    await cache.get_or_compute("abc invoices", compute)
    assert compute.await_count == 2


def test_clear():
    cache = QueryEmbeddingCache()
    cache.set("q", [1.0])
    cache.clear()
    assert len(cache) == 0
