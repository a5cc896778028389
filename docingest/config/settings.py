"""Application settings loaded from environment variables via pydantic-settings.

Sources, highest priority first:

    1. Environment variables, e.g. ``GROQ_API_KEY=gsk_...``
    2. ``.env`` in the working directory (local development only)
    3. The defaults below

Field ``groq_api_key`` maps to env var ``GROQ_API_KEY``.  An empty API key
means "not configured": the provider factory skips that provider.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docingest settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === AI Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # Custom base URL for OpenAI-compatible gateways
    openai_embedding_model: str = ""  # Override preset embedding model
    groq_api_key: str = ""
    deepseek_api_key: str = ""
    gemini_api_key: str = ""
    # Probe order for ProviderFactory.get_best_provider(), comma separated.
    provider_priority: str = "groq,deepseek,gemini,openai"
    max_concurrent_requests: int = 5
    request_timeout_seconds: float = 30.0

    # === Ingestion ===
    chunk_size: int = 1000
    embedding_batch_size: int = 5
    embedding_batch_delay_ms: int = 1000
    batch_concurrency: int = 2
    batch_delay_ms: int = 2000
    max_stored_content_chars: int = 100_000
    max_upload_bytes: int = 10 * 1024 * 1024

    # === OCR (optional image path) ===
    ocr_enabled: bool = False
    ocr_min_confidence: float = 0.6
    ocr_language: str = "eng"

    # === Search ===
    search_threshold: float = 0.7
    search_limit: int = 5

    # === Storage ===
    database_path: str = "data/docingest.db"
    file_store_root: str = "data/files"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_provider_priority(self) -> list[str]:
        """Return provider names in probe order, dropping blanks."""
        return [name.strip() for name in self.provider_priority.split(",") if name.strip()]

    def get_api_key(self, provider: str) -> str:
        """Return the configured API key for *provider* ("" when unset)."""
        return getattr(self, f"{provider}_api_key", "")

    def get_available_providers(self) -> list[str]:
        """Return provider names, in priority order, that have an API key."""
        return [name for name in self.get_provider_priority() if self.get_api_key(name)]
