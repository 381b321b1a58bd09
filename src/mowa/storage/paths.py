"""Confinement of caller-supplied logical paths to the storage root.

Every storage handler obtains its filesystem path from :class:`PathResolver`
and nothing else. The file I/O layer trusts whatever it is given, so this
module is the single place where directory traversal is prevented.

Resolution never raises for a bad path. It returns either a
:class:`ResolvedPath` or a :class:`PathRejection` and the caller branches on
the type.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import structlog

log = structlog.get_logger(__name__)

TRAVERSAL_TOKEN = ".."


class RejectionReason(str, enum.Enum):
    INVALID_PATH = "invalid_path"
    OUTSIDE_ROOT = "outside_root"
    RESOLUTION_FAILURE = "resolution_failure"


REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.INVALID_PATH: "invalid path: contains forbidden characters or directory traversal",
    RejectionReason.OUTSIDE_ROOT: "path is outside of storage directory",
    RejectionReason.RESOLUTION_FAILURE: "internal server error",
}


@dataclass(frozen=True)
class ResolvedPath:
    """Canonical absolute path that lies inside the storage root."""

    path: Path
    is_root: bool = False

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class PathRejection:
    reason: RejectionReason
    message: str

    @classmethod
    def of(cls, reason: RejectionReason) -> "PathRejection":
        return cls(reason=reason, message=REJECTION_MESSAGES[reason])


Resolution = Union[ResolvedPath, PathRejection]


def is_valid_logical_path(logical_path: str) -> bool:
    """Syntactic checks that run before any filesystem access.

    Any occurrence of ``..`` is refused, including inside a file name such as
    ``my..file.txt``.
    """
    if TRAVERSAL_TOKEN in logical_path:
        return False
    if not logical_path.startswith("/"):
        return False
    if "\x00" in logical_path:
        return False
    return True


def is_within_root(candidate: Path, root: Path) -> bool:
    """Return True if ``candidate`` is ``root`` or lies below it.

    Both arguments must already be canonical. The prefix must be followed by a
    separator, so ``/data/store-evil`` is not inside ``/data/store``.
    """
    candidate_str = str(candidate)
    root_str = str(root)
    if candidate_str == root_str:
        return True
    prefix = root_str if root_str.endswith(os.sep) else root_str + os.sep
    return candidate_str.startswith(prefix)


def _canonicalize(path: Path) -> Path:
    # Follows symlinks; components that do not exist yet are kept as-is.
    return path.resolve()


class PathResolver:
    """Resolve logical paths against a fixed storage root."""

    def __init__(self, storage_root: Path | str) -> None:
        self._storage_root = Path(storage_root)

    @property
    def storage_root(self) -> Path:
        return self._storage_root

    def resolve(self, logical_path: str) -> Resolution:
        if not is_valid_logical_path(logical_path):
            return PathRejection.of(RejectionReason.INVALID_PATH)

        candidate = self._storage_root / logical_path.lstrip("/")

        try:
            root = _canonicalize(self._storage_root)
        except (OSError, RuntimeError) as exc:
            log.error(
                "storage.root_resolution_failed",
                storage_root=str(self._storage_root),
                error=str(exc),
            )
            return PathRejection.of(RejectionReason.RESOLUTION_FAILURE)

        try:
            resolved = _canonicalize(candidate)
        except (OSError, RuntimeError) as exc:
            log.error("storage.path_resolution_failed", path=str(candidate), error=str(exc))
            return PathRejection.of(RejectionReason.RESOLUTION_FAILURE)

        if not is_within_root(resolved, root):
            log.warning(
                "storage.path_outside_root",
                logical_path=logical_path,
                resolved=str(resolved),
            )
            return PathRejection.of(RejectionReason.OUTSIDE_ROOT)

        return ResolvedPath(resolved, is_root=resolved == root)


def resolve(logical_path: str, storage_root: Path | str) -> Resolution:
    """Resolve ``logical_path`` under ``storage_root`` without keeping a resolver."""
    return PathResolver(storage_root).resolve(logical_path)
