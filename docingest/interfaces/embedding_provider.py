"""Abstract base class for AI providers that chat and embed text.

One interface covers both capabilities because every hosted provider the
CRM assistant talks to offers both behind one API key and one rate limit.
The document processor only uses :meth:`generate_embedding`; chat is kept
on the same contract so the assistant can share the provider instance (and
its rate-limit bucket).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from docingest.models.provider import ChatMessage, ChatResponse, EmbeddingResult


# Concrete implementations:
#   OpenAICompatibleProvider : OpenAI, Groq, DeepSeek (openai SDK)
#   GeminiProvider           : Google Generative Language REST API (httpx)
# Located in: docingest/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for chat + embedding services used by the ingestion pipeline."""

    @abstractmethod
    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:
        """Send a conversation and return the complete assistant reply.

        Raises
        ------
        ValueError
            If *messages* is empty or the last message has no content.
        docingest.utils.errors.ProviderError
            If the provider call fails after retries.
        """

    @abstractmethod
    def chat_stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """Stream the assistant reply as text fragments, in order."""

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate an embedding vector for *text*.

        Parameters
        ----------
        text:
            Non-empty input text.

        Returns
        -------
        EmbeddingResult
            The vector (fixed dimension for a given provider/model) and the
            token usage reported by the provider.

        Raises
        ------
        ValueError
            If *text* is empty or whitespace only.
        docingest.utils.errors.RateLimitError
            If the rate limit still refuses the call after retries.
        docingest.utils.errors.ConcurrencyLimitError
            If the provider already has ``max_concurrent_requests`` calls
            in flight.
        """

    @abstractmethod
    async def is_available(self) -> bool:
        """Probe the provider; return ``False`` instead of raising."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the provider key, e.g. ``"groq"``."""

    @property
    @abstractmethod
    def max_concurrent_requests(self) -> int:
        """Maximum calls this instance allows in flight at once."""
