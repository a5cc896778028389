"""Request/response models for chat and embedding providers."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"] = "user"
    content: str


class TokenUsage(BaseModel):
    """Token accounting reported by the provider (zeros when not reported)."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class ChatResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    model: str = ""
    usage: TokenUsage = Field(default_factory=TokenUsage)


class EmbeddingResult(BaseModel):
    """One embedding vector plus the usage it cost."""

    model_config = ConfigDict(frozen=True)

    embedding: list[float] = Field(description="Embedding vector.")
    model: str = ""
    usage: TokenUsage = Field(default_factory=TokenUsage)

    @property
    def dimension(self) -> int:
        return len(self.embedding)
