"""OpenAI-compatible chat + embedding provider adapter.

Wraps the ``openai`` async client.  OpenAI, Groq and DeepSeek all expose
the same ``/chat/completions`` and ``/embeddings`` REST surface, so one
adapter pointed at a different ``base_url`` serves all three; a
:class:`ProviderPreset` records each one's endpoint and default models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator

import openai

from docingest.models.provider import (
    ChatMessage,
    ChatResponse,
    EmbeddingResult,
    TokenUsage,
)
from docingest.providers.embedding.base import (
    DEFAULT_MAX_CONCURRENT_REQUESTS,
    BaseAIProvider,
    error_for_status,
)
from docingest.utils.errors import ProviderError
from docingest.utils.rate_limiter import RateLimiter
from docingest.utils.retry import NETWORK_ERROR, TIMEOUT, RetryHandler


@dataclass(frozen=True)
class ProviderPreset:
    """Endpoint and default models of one OpenAI-compatible service."""

    name: str
    base_url: str | None
    chat_model: str
    embedding_model: str


PRESETS: dict[str, ProviderPreset] = {
    "openai": ProviderPreset(
        name="openai",
        base_url=None,
        chat_model="gpt-4o-mini",
        embedding_model="text-embedding-3-small",
    ),
    "groq": ProviderPreset(
        name="groq",
        base_url="https://api.groq.com/openai/v1",
        chat_model="mixtral-8x7b-32768",
        embedding_model="text-embedding-ada-002",
    ),
    "deepseek": ProviderPreset(
        name="deepseek",
        base_url="https://api.deepseek.com/v1",
        chat_model="deepseek-chat",
        embedding_model="deepseek-embed",
    ),
}


class OpenAICompatibleProvider(BaseAIProvider):
    """Provider backed by an OpenAI-compatible REST API.

    Parameters
    ----------
    api_key:
        API key for the service.
    preset:
        A :data:`PRESETS` key or a :class:`ProviderPreset`.
    base_url, chat_model, embedding_model:
        Overrides for the preset values.
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        preset: ProviderPreset | str = "openai",
        *,
        base_url: str | None = None,
        chat_model: str | None = None,
        embedding_model: str | None = None,
        timeout: float = 30.0,
        rate_limiter: RateLimiter | None = None,
        retry_handler: RetryHandler | None = None,
        max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
    ) -> None:
        if isinstance(preset, str):
            preset = PRESETS[preset]
        super().__init__(
            name=preset.name,
            api_key=api_key,
            rate_limiter=rate_limiter,
            retry_handler=retry_handler,
            max_concurrent_requests=max_concurrent_requests,
        )
        self._chat_model = chat_model or preset.chat_model
        self._embedding_model = embedding_model or preset.embedding_model

        # Retries are ours; the SDK's own retry loop would bypass the rate limiter.
        client_kwargs: dict = {
            "api_key": api_key or "unset",
            "timeout": openai.Timeout(timeout, connect=5.0),
            "max_retries": 0,
        }
        resolved_base_url = base_url or preset.base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # Wire-level hooks
    # ------------------------------------------------------------------

    async def _chat(self, messages: list[ChatMessage]) -> ChatResponse:
        try:
            response = await self._client.chat.completions.create(
                model=self._chat_model,
                messages=[m.model_dump() for m in messages],
            )
        except openai.APIError as exc:
            raise self._convert_error(exc) from exc

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise ProviderError(
                f"{self._name} returned empty response",
                provider_name=self._name,
            )
        usage = response.usage
        return ChatResponse(
            content=content,
            model=response.model or self._chat_model,
            usage=TokenUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
        )

    async def _stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        try:
            stream = await self._client.chat.completions.create(
                model=self._chat_model,
                messages=[m.model_dump() for m in messages],
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except openai.APIError as exc:
            raise self._convert_error(exc) from exc

    async def _embed(self, text: str) -> EmbeddingResult:
        try:
            response = await self._client.embeddings.create(
                input=text,
                model=self._embedding_model,
            )
        except openai.APIError as exc:
            raise self._convert_error(exc) from exc

        if not response.data:
            raise ProviderError(
                f"{self._name} returned no embedding",
                provider_name=self._name,
            )
        usage = response.usage
        return EmbeddingResult(
            embedding=list(response.data[0].embedding),
            model=self._embedding_model,
            usage=TokenUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
        )

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    def _convert_error(self, exc: openai.APIError) -> ProviderError:
        """Map an SDK exception onto the provider error hierarchy."""
        if isinstance(exc, openai.APITimeoutError):
            return ProviderError(
                f"{self._name} request timed out",
                provider_name=self._name,
                error_type=TIMEOUT,
                retryable=True,
            )
        if isinstance(exc, openai.APIConnectionError):
            return ProviderError(
                f"{self._name} network error: {exc}",
                provider_name=self._name,
                error_type=NETWORK_ERROR,
                retryable=True,
            )
        if isinstance(exc, openai.APIStatusError):
            return error_for_status(
                exc.status_code,
                f"{self._name} API error: {exc.message}",
                provider_name=self._name,
            )
        return ProviderError(f"{self._name} API error: {exc}", provider_name=self._name)
