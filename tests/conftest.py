"""Shared pytest fixtures for the docingest test suite."""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path

import pytest

from docingest.interfaces.embedding_provider import IEmbeddingProvider
from docingest.models.document import Scope
from docingest.models.provider import ChatMessage, ChatResponse, EmbeddingResult, TokenUsage
from docingest.providers.store.local_file_store import LocalFileStore
from docingest.providers.store.sqlite_store import SQLiteStructuredStore
from docingest.services.ingestion.chunker import TextChunker
from docingest.services.ingestion.document_processor import DocumentProcessor

EMBEDDING_DIM = 64


def embed_words(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Deterministic bag-of-words vector: each word hashes to one slot."""
    vector = [0.0] * dim
    for word in text.lower().split():
        word = word.strip(".,;:!?\"'()")
        if not word:
            continue
        slot = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % dim
        vector[slot] += 1.0
    return vector


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock for the rate limiter (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)

    @property
    def total(self) -> float:
        return sum(self.delays)


class FakeEmbeddingProvider(IEmbeddingProvider):
    """In-memory provider returning hash-based embeddings.

    ``fail_on`` maps a substring to an exception raised when a text
    containing it is embedded.  ``peak_in_flight`` records the highest
    number of overlapping embedding calls.
    """

    def __init__(self, max_concurrent: int = 5, dim: int = EMBEDDING_DIM) -> None:
        self.dim = dim
        self.calls: list[str] = []
        self.fail_on: dict[str, Exception] = {}
        self.available = True
        self.in_flight = 0
        self.peak_in_flight = 0
        self._max_concurrent = max_concurrent

    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:
        return ChatResponse(content=f"echo: {messages[-1].content}", model="fake")

    async def chat_stream(self, messages: list[ChatMessage]):
        for word in messages[-1].content.split():
            yield word

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        if not text.strip():
            raise ValueError("Empty text")
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            self.calls.append(text)
            for marker, exc in self.fail_on.items():
                if marker in text:
                    raise exc
            return EmbeddingResult(
                embedding=embed_words(text, self.dim),
                model="fake-embed",
                usage=TokenUsage(prompt_tokens=len(text.split())),
            )
        finally:
            self.in_flight -= 1

    async def is_available(self) -> bool:
        return self.available

    def get_provider_name(self) -> str:
        return "fake"

    @property
    def max_concurrent_requests(self) -> int:
        return self._max_concurrent


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def sqlite_store(tmp_path: Path) -> SQLiteStructuredStore:
    """SQLite store in a temp dir; tables are created lazily on first use."""
    return SQLiteStructuredStore(tmp_path / "docingest.db")


@pytest.fixture
def file_store(tmp_path: Path) -> LocalFileStore:
    return LocalFileStore(tmp_path / "files")


@pytest.fixture
def owner_scope() -> Scope:
    return Scope(user_id="user-1", team_id="team-a", department="sales")


@pytest.fixture
def processor(
    sqlite_store: SQLiteStructuredStore,
    fake_provider: FakeEmbeddingProvider,
    file_store: LocalFileStore,
    recording_sleep: RecordingSleep,
) -> DocumentProcessor:
    """Processor wired to real stores, the fake provider and a no-wait sleep."""
    return DocumentProcessor(
        sqlite_store,
        fake_provider,
        file_store=file_store,
        chunker=TextChunker(200),
        embedding_batch_size=3,
        embedding_batch_delay_ms=50,
        batch_concurrency=2,
        batch_delay_ms=100,
        search_threshold=0.3,
        search_limit=5,
        sleep=recording_sleep,
    )


@pytest.fixture
def sample_text() -> str:
    """Multi-paragraph business text, long enough for several 200-char chunks."""
    return (
        "Acme Corporation signed a three year service agreement covering "
        "support, onboarding and quarterly business reviews. The renewal "
        "date is the first of March and pricing is fixed for the term.\n\n"
        "Quarterly revenue grew eleven percent, driven by the enterprise "
        "segment. Churn in the small business tier remained flat while "
        "expansion revenue offset two lost accounts.\n\n"
        "The customer success team will schedule onboarding workshops for "
        "new regional offices. Each workshop covers data import, pipeline "
        "configuration and reporting dashboards.\n\n"
        "Invoices are issued monthly and payable within thirty days. Late "
        "payments accrue interest at one percent per month."
    )
