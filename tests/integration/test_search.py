"""Integration tests for vector and text search over ingested chunks."""

from __future__ import annotations

import pytest

from docingest.models.document import Scope
from docingest.services.ingestion.document_processor import DocumentProcessor
from docingest.utils.errors import ProviderError
from tests.conftest import FakeEmbeddingProvider

ME = Scope(user_id="u1", team_id="t1", department="sales")
TEAMMATE = Scope(user_id="u2", team_id="t1")
OUTSIDER = Scope(user_id="u3", team_id="t2", department="ops")


class TestVectorSearch:
    @pytest.mark.asyncio
    async def test_best_match_first(self, processor: DocumentProcessor) -> None:
        fruit = await processor.process_document("Fruit", "apples bananas cherries", None, ME)
        engine = await processor.process_document("Engine", "engines pistons gearbox", None, ME)

        matches = await processor.search_similar_documents("pistons gearbox", ME, threshold=0.5)

        assert [m.chunk.document_id for m in matches] == [engine.id]
        assert fruit.id not in {m.chunk.document_id for m in matches}
        assert matches[0].method == "vector"
        assert matches[0].document_title == "Engine"
        assert 0.5 <= matches[0].score <= 1.0

    @pytest.mark.asyncio
    async def test_limit_and_order(self, processor: DocumentProcessor) -> None:
        for i in range(4):
            await processor.process_document(f"Doc {i}", "renewal pricing discount", None, ME)

        matches = await processor.search_similar_documents(
            "renewal pricing discount", ME, threshold=0.0, limit=2
        )
        assert len(matches) == 2
        assert matches[0].score >= matches[1].score

    @pytest.mark.asyncio
    async def test_threshold_excludes_everything(self, processor: DocumentProcessor) -> None:
        await processor.process_document("Fruit", "apples bananas cherries", None, ME)
        assert await processor.search_similar_documents("zebra", ME, threshold=0.99) == []

    @pytest.mark.asyncio
    async def test_visibility(self, processor: DocumentProcessor) -> None:
        text = "warehouse inventory forecast"
        mine = await processor.process_document("Mine", text, None, ME)
        shared = await processor.process_document("Shared", text, None, TEAMMATE)
        await processor.process_document("Secret", text, None, TEAMMATE, is_private=True)
        await processor.process_document("Other", text, None, OUTSIDER)

        matches = await processor.search_similar_documents(text, ME, threshold=0.0, limit=10)
        assert {m.chunk.document_id for m in matches} == {mine.id, shared.id}

    @pytest.mark.asyncio
    async def test_matches_record_access(self, processor: DocumentProcessor) -> None:
        document = await processor.process_document("Engine", "engines pistons gearbox", None, ME)

        first = await processor.search_similar_documents("pistons gearbox", ME, threshold=0.5)
        await processor.search_similar_documents("pistons gearbox", ME, threshold=0.5)

        assert first[0].chunk.metadata["times_accessed"] == 1
        chunks = await processor.get_chunks(document.id)
        assert chunks[0].metadata["times_accessed"] == 2
        assert chunks[0].metadata["last_accessed"] is not None


class TestTextSearch:
    @pytest.mark.asyncio
    async def test_score_is_fraction_of_terms(self, processor: DocumentProcessor) -> None:
        both = await processor.process_document("Both", "Invoice and Payment terms", None, ME)
        one = await processor.process_document("One", "payment reminder sent", None, ME)

        matches = await processor.search_text("invoice payment", ME)

        assert [(m.chunk.document_id, m.score) for m in matches] == [(both.id, 1.0), (one.id, 0.5)]
        assert all(m.method == "text" for m in matches)

    @pytest.mark.asyncio
    async def test_threshold_filters_partial_matches(self, processor: DocumentProcessor) -> None:
        await processor.process_document("One", "payment reminder sent", None, ME)
        assert await processor.search_text("invoice payment", ME, threshold=0.75) == []

    @pytest.mark.asyncio
    async def test_blank_query(self, processor: DocumentProcessor) -> None:
        await processor.process_document("One", "payment reminder sent", None, ME)
        assert await processor.search_text("   ", ME) == []

    @pytest.mark.asyncio
    async def test_wildcard_characters_match_literally(
        self, processor: DocumentProcessor
    ) -> None:
        await processor.process_document("Price", "the price rose 100 dollars", None, ME)
        await processor.process_document("Contact", "contact axb today", None, ME)

        assert await processor.search_text("100%", ME) == []
        assert await processor.search_text("a_b", ME) == []

        promo = await processor.process_document("Promo", "take 100% off the a_b plan", None, ME)
        matches = await processor.search_text("100% a_b", ME)
        assert [(m.chunk.document_id, m.score) for m in matches] == [(promo.id, 1.0)]

    @pytest.mark.asyncio
    async def test_private_chunks_hidden(self, processor: DocumentProcessor) -> None:
        await processor.process_document("Secret", "merger plans", None, TEAMMATE, is_private=True)
        assert await processor.search_text("merger", ME) == []
        assert len(await processor.search_text("merger", TEAMMATE)) == 1


class TestSearchDocuments:
    @pytest.mark.asyncio
    async def test_prefers_vector_results(self, processor: DocumentProcessor) -> None:
        await processor.process_document("Engine", "engines pistons gearbox", None, ME)
        matches = await processor.search_documents("pistons gearbox", ME, threshold=0.5)
        assert matches and matches[0].method == "vector"

    @pytest.mark.asyncio
    async def test_blank_query_matches_nothing(
        self, processor: DocumentProcessor, fake_provider: FakeEmbeddingProvider
    ) -> None:
        await processor.process_document("Engine", "engines pistons gearbox", None, ME)
        calls = len(fake_provider.calls)

        assert await processor.search_documents("   ", ME) == []
        assert await processor.search_similar_documents("\n", ME) == []
        assert len(fake_provider.calls) == calls

    @pytest.mark.asyncio
    async def test_falls_back_when_vector_finds_nothing(
        self, processor: DocumentProcessor
    ) -> None:
        await processor.process_document("Engine", "engines pistons gearbox", None, ME)
        matches = await processor.search_documents("gearbox", ME, threshold=1.01)
        assert [m.method for m in matches] == ["text"]

    @pytest.mark.asyncio
    async def test_falls_back_when_provider_fails(
        self, processor: DocumentProcessor, fake_provider: FakeEmbeddingProvider
    ) -> None:
        await processor.process_document("Engine", "engines pistons gearbox", None, ME)
        fake_provider.fail_on["pistons"] = ProviderError("provider down", provider_name="fake")

        matches = await processor.search_documents("pistons", ME)

        assert len(matches) == 1
        assert matches[0].method == "text"
        assert matches[0].document_title == "Engine"
