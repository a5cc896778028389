"""Local-directory file store.

Keeps uploaded files under a root directory (default ``data/files``).
Each file ``<path>`` gets a sidecar ``<path>.meta.json`` holding the
original file name, MIME type, size and caller metadata, so a
:class:`FileReference` can be rebuilt from the path alone.

Filesystem calls are blocking and run in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import mimetypes
from pathlib import Path
from typing import Any

import structlog

from docingest.interfaces.file_store import FileReference, IFileStore
from docingest.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_SIDECAR_SUFFIX = ".meta.json"


class LocalFileStore(IFileStore):
    """Stores files beneath *root*; paths are relative to it."""

    def __init__(self, root: str | Path = "data/files") -> None:
        self._root = Path(root).resolve()

    def get_provider_name(self) -> str:
        return "local"

    # ------------------------------------------------------------------
    # IFileStore implementation
    # ------------------------------------------------------------------

    async def download(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as exc:
            raise StorageError(
                f"Cannot read file {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def upload(
        self,
        path: str,
        data: bytes,
        metadata: dict[str, Any] | None = None,
    ) -> FileReference:
        target = self._resolve(path)
        metadata = dict(metadata or {})
        filename = metadata.pop("filename", None) or target.name
        mime_type = metadata.pop("mime_type", None) or mimetypes.guess_type(filename)[0]
        reference = FileReference(
            path=path,
            filename=filename,
            mime_type=mime_type,
            size=len(data),
            metadata=metadata,
        )

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            _sidecar(target).write_text(reference.model_dump_json(), encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise StorageError(
                f"Cannot write file {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("file_uploaded", path=path, size=len(data), mime_type=mime_type)
        return reference

    async def remove(self, path: str) -> None:
        target = self._resolve(path)

        def _unlink() -> None:
            target.unlink(missing_ok=True)
            _sidecar(target).unlink(missing_ok=True)

        try:
            await asyncio.to_thread(_unlink)
        except OSError as exc:
            raise StorageError(
                f"Cannot remove file {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("file_removed", path=path)

    async def get_reference(self, path: str) -> FileReference:
        """Rebuild the :class:`FileReference` for a stored file from its sidecar."""
        target = self._resolve(path)
        sidecar = _sidecar(target)
        try:
            raw = await asyncio.to_thread(sidecar.read_text, encoding="utf-8")
        except OSError as exc:
            raise StorageError(
                f"No metadata for file {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return FileReference(**json.loads(raw))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if not target.is_relative_to(self._root):
            raise StorageError(
                f"Path escapes the store root: {path}",
                provider_name=self.get_provider_name(),
            )
        return target


def _sidecar(target: Path) -> Path:
    return target.with_name(target.name + _SIDECAR_SUFFIX)
