"""Tests for the local document store and keyword search."""

import asyncio
import time
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from docrank.retrieval import (
    DateRange,
    Document,
    DocumentStoreConfig,
    KeywordSearch,
    KeywordSearchConfig,
    LocalDocumentStore,
    SearchFilters,
    tokenize,
)


async def _store_with(docs, config=None):
    store = LocalDocumentStore(config=config)
    for doc in docs:
        await store.save_document(doc)
    return store


def test_tokenize_strips_punctuation_and_short_terms():
    assert tokenize("ABC, company's invoices!") == ["abc", "company", "invoices"]
    assert tokenize("a an to") == []


@pytest.mark.asyncio
async def test_full_text_search_is_conjunctive(invoice_corpus):
    store = await _store_with(invoice_corpus)

    hits = await store.full_text_search("t1", ["abc", "company"], None, limit=10)
    assert {doc_id for doc_id, _ in hits} == {"d1", "d3"}

    hits = await store.full_text_search("t1", ["abc", "company", "invoices"], None, limit=10)
    assert [doc_id for doc_id, _ in hits] == ["d1"]


@pytest.mark.asyncio
async def test_full_text_search_is_tenant_scoped(invoice_corpus):
    store = await _store_with(invoice_corpus)

    hits = await store.full_text_search("t2", ["invoices"], None, limit=10)
    assert [doc_id for doc_id, _ in hits] == ["other"]
    assert await store.find_by_id("t2", "d1") is None


@pytest.mark.asyncio
async def test_soft_deleted_documents_are_not_searchable(invoice_corpus):
    store = await _store_with(invoice_corpus)

    assert await store.soft_delete("t1", "d1")
    hits = await store.full_text_search("t1", ["abc"], None, limit=10)
    assert [doc_id for doc_id, _ in hits] == ["d3"]


@pytest.mark.asyncio
async def test_soft_delete_rejects_other_tenant(invoice_corpus):
    store = await _store_with(invoice_corpus)
    assert not await store.soft_delete("t2", "d1")
    assert not await store.soft_delete("t1", "missing")


@pytest.mark.asyncio
async def test_filters_narrow_results(invoice_corpus):
    store = await _store_with(invoice_corpus)

    hits = await store.full_text_search("t1", ["abc"], SearchFilters(document_type="contract"), limit=10)
    assert [doc_id for doc_id, _ in hits] == ["d3"]


@pytest.mark.asyncio
async def test_date_range_filter():
    docs = [
        Document(id="old", tenant_id="t1", text="quarterly invoice", created_at=datetime(2023, 1, 5, tzinfo=timezone.utc)),
        Document(id="new", tenant_id="t1", text="quarterly invoice", created_at=datetime(2024, 6, 1, tzinfo=timezone.utc)),
    ]
    store = await _store_with(docs)
    filters = SearchFilters(date_range=DateRange(datetime(2024, 1, 1), datetime(2024, 12, 31)))

    hits = await store.full_text_search("t1", ["invoice"], filters, limit=10)
    assert [doc_id for doc_id, _ in hits] == ["new"]


@pytest.mark.asyncio
async def test_limit_and_non_negative_ranks(invoice_corpus):
    store = await _store_with(invoice_corpus)
    hits = await store.full_text_search("t1", ["company"], None, limit=1)
    assert len(hits) == 1
    assert hits[0][1] >= 0


@pytest.mark.asyncio
async def test_save_and_load(tmp_path, invoice_corpus):
    config = DocumentStoreConfig(persist_path=str(tmp_path / "docs.json"))
    store = await _store_with(invoice_corpus, config)
    await store.soft_delete("t1", "d4")
    store.save()

    loaded = LocalDocumentStore(config=config)
    assert loaded.load()
    assert loaded.count == len(invoice_corpus)
    doc = await loaded.find_by_id("t1", "d4")
    assert doc.is_deleted
    assert (await loaded.find_by_id("t1", "d1")).client_company_id == "abc"


@pytest.mark.asyncio
async def test_same_document_id_in_two_tenants():
    store = await _store_with([
        Document(id="inv-1", tenant_id="t1", text="ABC company invoices for March"),
        Document(id="inv-1", tenant_id="t2", text="Weather report"),
    ])

    assert store.count == 2
    assert (await store.find_by_id("t1", "inv-1")).text == "ABC company invoices for March"
    hits = await store.full_text_search("t1", ["invoices"], None, limit=10)
    assert [doc_id for doc_id, _ in hits] == ["inv-1"]

    assert await store.soft_delete("t2", "inv-1")
    assert not (await store.find_by_id("t1", "inv-1")).is_deleted


@pytest.mark.asyncio
async def test_write_during_index_build_is_not_lost(monkeypatch):
    store = await _store_with([Document(id="a", tenant_id="t1", text="quarterly invoice")])
    build = store._build_index

    def slow_build(tenant_id, documents):
        built = build(tenant_id, documents)
        time.sleep(0.3)
        return built

    monkeypatch.setattr(store, "_build_index", slow_build)
    search = asyncio.create_task(store.full_text_search("t1", ["invoice"], None, limit=10))
    await asyncio.sleep(0.1)
    await store.save_document(Document(id="b", tenant_id="t1", text="annual invoice"))

    await search
    hits = await store.full_text_search("t1", ["invoice"], None, limit=10)
    assert {doc_id for doc_id, _ in hits} == {"a", "b"}


def test_load_missing_file(tmp_path):
    store = LocalDocumentStore(config=DocumentStoreConfig(persist_path=str(tmp_path / "none.json")))
    assert store.load() is False


class TestKeywordSearch:

    @pytest.mark.asyncio
    async def test_ranks_normalized_to_best_match(self, invoice_corpus):
        store = await _store_with(invoice_corpus)
        result = await KeywordSearch(store).search("ABC company", "t1", limit=10)

        assert result.ok
        ranks = [hit.rank for hit in result.value]
        assert all(0.0 <= r <= 1.0 for r in ranks)
        if max(ranks) > 0:
            assert max(ranks) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_query_without_terms_is_skipped(self):
        store = AsyncMock()
        result = await KeywordSearch(store).search("a to of", "t1", limit=10)

        assert result.skipped
        assert result.value == []
        store.full_text_search.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_degrades_to_empty(self):
        store = AsyncMock()
        store.full_text_search.side_effect = RuntimeError("index corrupted")

        result = await KeywordSearch(store).search("ABC invoices", "t1", limit=10)

        assert result.degraded
        assert result.value == []
        assert isinstance(result.error, RuntimeError)

    @pytest.mark.asyncio
    async def test_zero_ranks_use_divisor_floor(self):
        store = AsyncMock()
        store.full_text_search.return_value = [("d1", 0.0), ("d2", 0.0)]

        result = await KeywordSearch(store).search("invoices", "t1", limit=10)

        assert [hit.rank for hit in result.value] == [0.0, 0.0]

    @pytest.mark.asyncio
    async def test_timeout_degrades_to_empty(self):
        async def slow_search(*args):
            await asyncio.sleep(1.0)
            return [("d1", 1.0)]

        store = AsyncMock()
        store.full_text_search.side_effect = slow_search
        keyword = KeywordSearch(store, config=KeywordSearchConfig(timeout=0.01))

        result = await keyword.search("ABC invoices", "t1", limit=10)

        assert result.degraded
        assert result.value == []
        assert isinstance(result.error, asyncio.TimeoutError)
