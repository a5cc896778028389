"""Abstract base class for the blob store holding uploaded files."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FileReference(BaseModel):
    """Pointer to an uploaded file plus what the uploader told us about it."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Store-relative path of the file.")
    filename: str = Field(description="Original file name.")
    mime_type: str | None = None
    size: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


# Concrete implementations: LocalFileStore
# Located in: docingest/providers/store/
class IFileStore(ABC):
    """Contract for download/upload/remove by path."""

    @abstractmethod
    async def download(self, path: str) -> bytes:
        """Return the bytes stored at *path*.

        Raises
        ------
        docingest.utils.errors.StorageError
            If *path* does not exist or cannot be read.
        """

    @abstractmethod
    async def upload(
        self,
        path: str,
        data: bytes,
        metadata: dict[str, Any] | None = None,
    ) -> FileReference:
        """Store *data* at *path* (overwriting) and return its reference."""

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Delete the file at *path*; missing files are not an error."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"local"``."""
