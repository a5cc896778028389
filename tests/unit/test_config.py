"""Unit tests for Settings helpers and the YAML config loader."""

from __future__ import annotations

from pathlib import Path

from docingest.config.loader import _deep_merge, load_config
from docingest.config.settings import Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:
    def test_defaults(self) -> None:
        settings = _settings()
        assert settings.chunk_size == 1000
        assert settings.embedding_batch_size == 5
        assert settings.search_threshold == 0.7

    def test_priority_parsing(self) -> None:
        settings = _settings(provider_priority=" gemini , ,groq ")
        assert settings.get_provider_priority() == ["gemini", "groq"]

    def test_available_providers_need_keys(self) -> None:
        settings = _settings(
            provider_priority="groq,gemini,openai",
            groq_api_key="",
            gemini_api_key="g",
            openai_api_key="o",
        )
        assert settings.get_available_providers() == ["gemini", "openai"]
        assert settings.get_api_key("unknown") == ""

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "250")
        assert Settings(_env_file=None).chunk_size == 250

    def test_batch_delay_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("BATCH_DELAY_MS", "500")
        assert Settings(_env_file=None).batch_delay_ms == 500


class TestLoadConfig:
    def test_yaml_merged_with_settings(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "app:\n  env: development\n  name: docingest\n"
            "retry:\n  max_retries: 4\n",
            encoding="utf-8",
        )
        settings = _settings(app_env="production", gemini_api_key="g")

        config = load_config(str(config_file), settings=settings)

        assert config["app"] == {"env": "production", "name": "docingest"}
        assert config["retry"]["max_retries"] == 4
        assert "gemini" in config["providers"]["available"]

    def test_missing_file(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=_settings(log_level="DEBUG"))
        assert config["logging"]["level"] == "DEBUG"

    def test_deep_merge_nested(self) -> None:
        base = {"a": {"b": 1, "c": 2}, "d": 1}
        _deep_merge(base, {"a": {"c": 3}, "e": 4})
        assert base == {"a": {"b": 1, "c": 3}, "d": 1, "e": 4}
