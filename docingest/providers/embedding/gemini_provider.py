"""Google Gemini provider adapter (Generative Language REST API via httpx).

Endpoints, relative to ``base_url``:

    POST /models/{chat_model}:generateContent
    POST /models/{chat_model}:streamGenerateContent?alt=sse
    POST /models/{embedding_model}:embedContent

The API key travels as the ``key`` query parameter.  Gemini names the
assistant role ``model`` and takes system prompts as a separate
``systemInstruction`` block.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator

import httpx
import structlog

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

logger = structlog.get_logger(logger_name=__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(BaseAIProvider):
    """Provider backed by the Gemini REST API.

    Parameters
    ----------
    api_key:
        Google AI Studio API key.
    http_client:
        Optional pre-built :class:`httpx.AsyncClient`; tests inject one
        with a :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = GEMINI_BASE_URL,
        chat_model: str = "gemini-1.5-flash",
        embedding_model: str = "text-embedding-004",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
        retry_handler: RetryHandler | None = None,
        max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
    ) -> None:
        super().__init__(
            name="gemini",
            api_key=api_key,
            rate_limiter=rate_limiter,
            retry_handler=retry_handler,
            max_concurrent_requests=max_concurrent_requests,
        )
        self._base_url = base_url.rstrip("/")
        self._chat_model = chat_model
        self._embedding_model = embedding_model
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Wire-level hooks
    # ------------------------------------------------------------------

    async def _chat(self, messages: list[ChatMessage]) -> ChatResponse:
        data = await self._post(
            f"/models/{self._chat_model}:generateContent",
            self._format_messages(messages),
        )
        text = self._candidate_text(data)
        if text is None:
            raise ProviderError("gemini returned empty response", provider_name=self._name)
        usage = data.get("usageMetadata", {})
        return ChatResponse(
            content=text,
            model=self._chat_model,
            usage=TokenUsage(
                prompt_tokens=usage.get("promptTokenCount", 0),
                completion_tokens=usage.get("candidatesTokenCount", 0),
                total_tokens=usage.get("totalTokenCount", 0),
            ),
        )

    async def _stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        url = f"{self._base_url}/models/{self._chat_model}:streamGenerateContent"
        try:
            async with self._client.stream(
                "POST",
                url,
                params={"key": self._api_key, "alt": "sse"},
                json=self._format_messages(messages),
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise self._status_error(response)
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    try:
                        event = json.loads(line[len("data:"):].strip())
                    except json.JSONDecodeError:
                        logger.debug("gemini_stream_invalid_line", line=line[:200])
                        continue
                    text = self._candidate_text(event)
                    if text:
                        yield text
        except httpx.TimeoutException as exc:
            raise self._transport_error(exc, TIMEOUT) from exc
        except httpx.TransportError as exc:
            raise self._transport_error(exc, NETWORK_ERROR) from exc

    async def _embed(self, text: str) -> EmbeddingResult:
        data = await self._post(
            f"/models/{self._embedding_model}:embedContent",
            {
                "model": f"models/{self._embedding_model}",
                "content": {"parts": [{"text": text}]},
            },
        )
        values = data.get("embedding", {}).get("values")
        if not values:
            raise ProviderError("gemini returned no embedding", provider_name=self._name)
        token_count = data.get("usageMetadata", {}).get("tokenCount", 0)
        return EmbeddingResult(
            embedding=[float(v) for v in values],
            model=self._embedding_model,
            usage=TokenUsage(prompt_tokens=token_count, total_tokens=token_count),
        )

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(
                f"{self._base_url}{endpoint}",
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.TimeoutException as exc:
            raise self._transport_error(exc, TIMEOUT) from exc
        except httpx.TransportError as exc:
            raise self._transport_error(exc, NETWORK_ERROR) from exc

        if response.status_code >= 400:
            raise self._status_error(response)
        return response.json()

    def _status_error(self, response: httpx.Response) -> ProviderError:
        try:
            body = response.json()
            error = body.get("error")
            message = error.get("message") if isinstance(error, dict) else error
        except ValueError:
            message = None
        return error_for_status(
            response.status_code,
            f"gemini API error: {message or f'HTTP error {response.status_code}'}",
            provider_name=self._name,
        )

    def _transport_error(self, exc: httpx.HTTPError, error_type: str) -> ProviderError:
        return ProviderError(
            f"gemini {error_type.replace('_', ' ')}: {exc}",
            provider_name=self._name,
            error_type=error_type,
            retryable=True,
        )

    @staticmethod
    def _format_messages(messages: list[ChatMessage]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m.role == "assistant" else "user",
                    "parts": [{"text": m.content}],
                }
                for m in messages
                if m.role != "system"
            ]
        }
        system = [m.content for m in messages if m.role == "system"]
        if system:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system)}]}
        return payload

    @staticmethod
    def _candidate_text(data: dict[str, Any]) -> str | None:
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
