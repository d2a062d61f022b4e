"""VectorSearchService tests against the in-memory store and the sentinel embedder."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from ai_router.exceptions import ProviderError, VectorStoreError
from ai_router.providers.model_config.static_impl import StaticModelConfigProvider
from ai_router.providers.vector_store import SourceMetadata
from ai_router.services.vector_search import ChunkInput, VectorSearchService

USER = 1

DOCS = {
    "msg-1": ["Machine learning is a subset of artificial intelligence", "Neural networks learn weights"],
    "msg-2": ["The cafeteria opens at eight", "Lunch is served until two"],
    "msg-3": ["Gradient descent minimizes a loss function"],
}


@pytest.fixture
async def indexed(search: VectorSearchService) -> VectorSearchService:
    for source_id, texts in DOCS.items():
        group = "CAMPUS" if source_id == "msg-2" else "ML"
        await search.index_source(USER, source_id, [ChunkInput(text=t) for t in texts], group)
    return search


class TestSemanticSearch:
    async def test_exact_text_ranks_first_with_score_one(self, indexed):
        results = await indexed.semantic_search(DOCS["msg-2"][1], USER, min_score=0)

        assert results[0].chunk_id == "1_msg-2_1"
        assert results[0].score == pytest.approx(1.0)
        assert results[0].text == DOCS["msg-2"][1]

    async def test_results_sorted_and_scores_bounded(self, indexed):
        results = await indexed.semantic_search("anything", USER, min_score=0)

        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)
        assert len(results) == sum(len(t) for t in DOCS.values())

    async def test_higher_min_score_is_a_subset(self, indexed):
        query = DOCS["msg-1"][0]
        strict = await indexed.semantic_search(query, USER, min_score=0.9)
        loose = await indexed.semantic_search(query, USER, min_score=0.3)

        assert {r.chunk_id for r in strict} <= {r.chunk_id for r in loose}
        assert all(r.score >= 0.9 for r in strict)
        assert "1_msg-1_0" in {r.chunk_id for r in strict}

    async def test_limit_caps_results(self, indexed):
        assert len(await indexed.semantic_search("x", USER, limit=2, min_score=0)) == 2

    async def test_non_positive_limit_returns_nothing(self, indexed):
        assert await indexed.semantic_search("x", USER, limit=0, min_score=0) == []
        assert await indexed.semantic_search("x", USER, limit=-1, min_score=0) == []

    async def test_group_filter(self, indexed):
        results = await indexed.semantic_search("lunch", USER, group_key="CAMPUS", min_score=0)
        assert {r.source_id for r in results} == {"msg-2"}

    async def test_unknown_user_gets_empty_list(self, indexed):
        assert await indexed.semantic_search("machine learning", 999999, min_score=0) == []

    async def test_empty_corpus(self, search):
        assert await search.semantic_search("anything", USER, min_score=0) == []

    async def test_results_are_enriched(self, indexed, store):
        store.add_source(USER, SourceMetadata(source_id="msg-3", message_text="notes", file_name="ml.pdf"))

        results = await indexed.semantic_search(DOCS["msg-3"][0], USER, min_score=0)

        top = results[0]
        assert top.source_id == "msg-3"
        assert top.metadata["file_name"] == "ml.pdf"
        assert top.to_dict()["message_text"] == "notes"
        assert all(r.metadata == {} for r in results if r.source_id != "msg-3")

    async def test_no_embedding_model_configured(self, facade, store):
        config = StaticModelConfigProvider(default_providers={}, default_models={}, capabilities={})
        service = VectorSearchService(facade, config, store)
        assert await service.semantic_search("x", USER, min_score=0) == []

    async def test_embedding_failure_returns_empty(self, indexed):
        indexed.facade.embed = AsyncMock(side_effect=ProviderError("down"))
        assert await indexed.semantic_search("x", USER) == []

    async def test_empty_embedding_returns_empty(self, indexed):
        indexed.facade.embed = AsyncMock(return_value=[])
        assert await indexed.semantic_search("x", USER) == []

    async def test_store_failure_returns_empty(self, indexed, store):
        store.nearest = AsyncMock(side_effect=VectorStoreError("index missing"))
        assert await indexed.semantic_search("x", USER, min_score=0) == []

    async def test_query_embedded_with_configured_model(self, indexed):
        embed = AsyncMock(return_value=[0.1] * 32)
        indexed.facade.embed = embed

        await indexed.semantic_search("query", USER)

        embed.assert_awaited_once_with("query", USER, {"provider": "test", "model": "test-embedding"})


class TestFindSimilar:
    async def test_never_includes_source(self, indexed):
        results = await indexed.find_similar("msg-1", USER, limit=10)

        assert results
        assert all(r.source_id != "msg-1" for r in results)
        assert len(results) == len(DOCS["msg-2"]) + len(DOCS["msg-3"])

    async def test_unknown_source(self, indexed):
        assert await indexed.find_similar("missing", USER) == []

    async def test_other_users_source(self, indexed):
        assert await indexed.find_similar("msg-1", 2) == []

    async def test_store_failure_returns_empty(self, indexed, store):
        store.get_source_embedding = AsyncMock(side_effect=VectorStoreError("down"))
        assert await indexed.find_similar("msg-1", USER) == []


class TestIndexingAndStats:
    async def test_stats(self, indexed):
        stats = await indexed.get_stats(USER)

        texts = [t for chunks in DOCS.values() for t in chunks]
        assert stats == {
            "total_documents": 3,
            "total_chunks": 5,
            "total_groups": 2,
            "avg_chunk_size": int(sum(len(t) for t in texts) / len(texts)),
        }

    async def test_stats_for_unknown_user(self, indexed):
        assert (await indexed.get_stats(42))["total_chunks"] == 0

    async def test_stats_store_failure(self, indexed, store):
        store.get_user_stats = AsyncMock(side_effect=VectorStoreError("down"))
        assert await indexed.get_stats(USER) == {
            "total_documents": 0,
            "total_chunks": 0,
            "total_groups": 0,
            "avg_chunk_size": 0,
        }

    async def test_reindex_overwrites_deterministic_ids(self, indexed):
        await indexed.index_source(USER, "msg-3", [ChunkInput(text="replacement")], "ML")
        results = await indexed.semantic_search("replacement", USER, min_score=0.99)
        assert [r.chunk_id for r in results] == ["1_msg-3_0"]
        assert (await indexed.get_stats(USER))["total_chunks"] == 5

    async def test_same_source_id_for_two_users_stays_separate(self, search):
        await search.index_source(1, "doc", [ChunkInput(text="alpha user one")], "G")
        await search.index_source(2, "doc", [ChunkInput(text="beta user two")], "G")

        first = await search.semantic_search("alpha user one", 1, min_score=0)
        second = await search.semantic_search("beta user two", 2, min_score=0)

        assert [(r.chunk_id, r.text) for r in first] == [("1_doc_0", "alpha user one")]
        assert [(r.chunk_id, r.text) for r in second] == [("2_doc_0", "beta user two")]
        assert (await search.get_stats(1))["total_chunks"] == 1
        assert (await search.get_stats(2))["total_chunks"] == 1

    async def test_delete_source_leaves_other_users_alone(self, search):
        await search.index_source(1, "doc", [ChunkInput(text="alpha user one")], "G")
        await search.index_source(2, "doc", [ChunkInput(text="beta user two")], "G")

        assert await search.delete_source(1, "doc") == 1
        assert (await search.get_stats(1))["total_chunks"] == 0
        assert (await search.get_stats(2))["total_chunks"] == 1

    async def test_delete_source(self, indexed):
        assert await indexed.delete_source(USER, "msg-1") == 2
        results = await indexed.semantic_search("anything", USER, min_score=0)
        assert all(r.source_id != "msg-1" for r in results)

    async def test_index_empty_chunk_list(self, search):
        assert await search.index_source(USER, "empty", [], "ML") == 0
