"""Name-keyed registry and factory for AI providers.

Each provider name maps to a builder: a callable taking an API key and
returning a ready :class:`IEmbeddingProvider`.  Built-in builders share the
factory's rate limiter and retry handler, so every provider instance the
factory hands out draws from the same per-provider token bucket.
Instances are cached per name; the in-flight counter of a provider is
therefore shared by all callers of :meth:`ProviderFactory.create`.
"""

from __future__ import annotations

from typing import Callable

import structlog

from docingest.config.settings import Settings
from docingest.interfaces.embedding_provider import IEmbeddingProvider
from docingest.providers.embedding.gemini_provider import GeminiProvider
from docingest.providers.embedding.openai_compatible_provider import (
    PRESETS,
    OpenAICompatibleProvider,
)
from docingest.utils.errors import ConfigurationError, ProviderUnavailableError
from docingest.utils.rate_limiter import RateLimiter, get_rate_limiter
from docingest.utils.retry import RetryHandler

logger = structlog.get_logger(logger_name=__name__)

ProviderBuilder = Callable[[str], IEmbeddingProvider]


class ProviderFactory:
    """Creates providers by name and picks the best healthy one.

    Parameters
    ----------
    settings:
        Source of API keys, provider priority and concurrency limits.
    rate_limiter:
        Limiter shared by the built-in providers.
    retry_handler:
        Backoff policy shared by the built-in providers.
    """

    def __init__(
        self,
        settings: Settings,
        rate_limiter: RateLimiter | None = None,
        retry_handler: RetryHandler | None = None,
    ) -> None:
        self._settings = settings
        self._rate_limiter = rate_limiter or get_rate_limiter()
        self._retry_handler = retry_handler or RetryHandler()
        self._builders: dict[str, ProviderBuilder] = {}
        self._api_keys: dict[str, str] = {}
        self._instances: dict[str, IEmbeddingProvider] = {}
        self._register_builtins()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(
        self,
        name: str,
        builder: ProviderBuilder,
        api_key: str | None = None,
    ) -> None:
        """Register (or replace) the builder for *name*.

        *api_key* overrides the settings lookup ``<name>_api_key``.
        """
        self._builders[name] = builder
        if api_key is not None:
            self._api_keys[name] = api_key
        self._instances.pop(name, None)
        logger.debug("provider_registered", provider=name)

    def available_names(self) -> list[str]:
        """Registered names with an API key, priority names first."""
        priority = self._settings.get_provider_priority()
        ordered = [n for n in priority if n in self._builders]
        ordered += sorted(n for n in self._builders if n not in priority)
        return [n for n in ordered if self._api_key_for(n)]

    def create(self, name: str) -> IEmbeddingProvider:
        """Return the provider registered under *name*.

        Raises
        ------
        ConfigurationError
            If *name* is not registered or has no API key.
        """
        if name in self._instances:
            return self._instances[name]
        builder = self._builders.get(name)
        if builder is None:
            raise ConfigurationError(f"Unknown provider: {name}", provider_name=name)
        api_key = self._api_key_for(name)
        if not api_key:
            raise ConfigurationError("No API key configured", provider_name=name)

        provider = builder(api_key)
        self._instances[name] = provider
        logger.info("provider_created", provider=name)
        return provider

    async def get_best_provider(self) -> IEmbeddingProvider:
        """Probe providers in priority order and return the first healthy one.

        Raises
        ------
        ProviderUnavailableError
            If no configured provider passes its health check.
        """
        tried: list[str] = []
        for name in self.available_names():
            provider = self.create(name)
            tried.append(name)
            if await provider.is_available():
                logger.info("provider_selected", provider=name)
                return provider
        logger.error("no_provider_available", tried=tried)
        raise ProviderUnavailableError(
            f"No AI provider is available (tried: {', '.join(tried) or 'none'})"
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _api_key_for(self, name: str) -> str:
        if name in self._api_keys:
            return self._api_keys[name]
        return self._settings.get_api_key(name)

    def _register_builtins(self) -> None:
        settings = self._settings
        common = {
            "timeout": settings.request_timeout_seconds,
            "rate_limiter": self._rate_limiter,
            "retry_handler": self._retry_handler,
            "max_concurrent_requests": settings.max_concurrent_requests,
        }

        for preset_name in PRESETS:
            overrides: dict = {}
            if preset_name == "openai":
                overrides = {
                    "base_url": settings.openai_base_url or None,
                    "embedding_model": settings.openai_embedding_model or None,
                }
            self._builders[preset_name] = _openai_builder(preset_name, overrides, common)

        self._builders["gemini"] = lambda api_key: GeminiProvider(api_key, **common)


def _openai_builder(preset_name: str, overrides: dict, common: dict) -> ProviderBuilder:
    def _build(api_key: str) -> IEmbeddingProvider:
        return OpenAICompatibleProvider(api_key, preset_name, **overrides, **common)

    return _build
