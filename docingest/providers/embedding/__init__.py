"""AI provider implementations (chat + embeddings).

    - OpenAICompatibleProvider : OpenAI, Groq and DeepSeek via the openai SDK
    - GeminiProvider           : Google Gemini REST API via httpx
    - ProviderFactory          : name -> provider registry with health probing

All of them share :class:`BaseAIProvider` for rate limiting, retries and the
in-flight concurrency guard.
"""

from docingest.providers.embedding.base import BaseAIProvider
from docingest.providers.embedding.factory import ProviderFactory
from docingest.providers.embedding.gemini_provider import GeminiProvider
from docingest.providers.embedding.openai_compatible_provider import (
    PRESETS,
    OpenAICompatibleProvider,
    ProviderPreset,
)

__all__ = [
    "PRESETS",
    "BaseAIProvider",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "ProviderFactory",
    "ProviderPreset",
]
