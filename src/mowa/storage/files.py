"""File I/O for the storage endpoints."""

from __future__ import annotations

from pathlib import Path

import structlog

from ..errors import FileMissingError, StorageIOError
from .paths import PathResolver, Resolution, ResolvedPath

log = structlog.get_logger(__name__)


class FileStorage:
    """Read and write files at paths produced by a :class:`PathResolver`.

    Paths are not re-validated here; callers must go through :meth:`resolve`.
    """

    def __init__(self, resolver: PathResolver) -> None:
        self._resolver = resolver

    @property
    def storage_root(self) -> Path:
        return self._resolver.storage_root

    def resolve(self, logical_path: str) -> Resolution:
        return self._resolver.resolve(logical_path)

    def read_bytes(self, target: ResolvedPath) -> bytes:
        path = target.path
        try:
            return path.read_bytes()
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise FileMissingError("file not found", operation="find file") from exc
        except OSError as exc:
            log.error("storage.read_failed", path=str(path), error=str(exc))
            raise StorageIOError("failed to read file", operation="read file") from exc

    def write_text(self, target: ResolvedPath, content: str) -> None:
        path = target.path
        directory = path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log.error("storage.mkdir_failed", path=str(directory), error=str(exc))
            raise StorageIOError("failed to save file", operation="create directory") from exc

        try:
            path.write_bytes(content.encode("utf-8"))
        except OSError as exc:
            log.error("storage.write_failed", path=str(path), error=str(exc))
            raise StorageIOError("failed to save file", operation="write file") from exc
