from __future__ import annotations

import os
from pathlib import Path

import pytest

from mowa.errors import FileMissingError, StorageIOError
from mowa.storage.files import FileStorage
from mowa.storage.paths import PathResolver, ResolvedPath


def _storage(root: Path) -> FileStorage:
    return FileStorage(PathResolver(root))


def _resolved(storage: FileStorage, logical_path: str) -> ResolvedPath:
    result = storage.resolve(logical_path)
    assert isinstance(result, ResolvedPath)
    return result


def test_file_storage_write_and_read(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    target = _resolved(storage, "/notes/sample.txt")

    storage.write_text(target, "content")

    assert (tmp_path / "notes" / "sample.txt").read_text(encoding="utf-8") == "content"
    assert storage.read_bytes(target) == b"content"


def test_write_creates_missing_directories(tmp_path: Path) -> None:
    storage = _storage(tmp_path / "storage")
    target = _resolved(storage, "/new/deep/dir/file.txt")

    storage.write_text(target, "hello")

    assert (tmp_path / "storage" / "new" / "deep" / "dir" / "file.txt").read_text(encoding="utf-8") == "hello"


def test_write_overwrites_existing_file(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    target = _resolved(storage, "/a.txt")

    storage.write_text(target, "first")
    storage.write_text(target, "second")

    assert storage.read_bytes(target) == b"second"


def test_write_keeps_unicode_and_newlines(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    target = _resolved(storage, "/u.txt")

    storage.write_text(target, "zażółć\r\ngęślą\n")

    assert (tmp_path / "u.txt").read_bytes() == "zażółć\r\ngęślą\n".encode("utf-8")


def test_read_missing_file_is_not_found(tmp_path: Path) -> None:
    storage = _storage(tmp_path)

    with pytest.raises(FileMissingError) as excinfo:
        storage.read_bytes(_resolved(storage, "/missing.txt"))

    assert excinfo.value.public_message == "file not found"
    assert excinfo.value.operation == "find file"


def test_read_below_a_file_is_not_found(tmp_path: Path) -> None:
    (tmp_path / "plain.txt").write_text("x", encoding="utf-8")
    storage = _storage(tmp_path)

    with pytest.raises(FileMissingError):
        storage.read_bytes(_resolved(storage, "/plain.txt/child"))


def test_read_directory_is_io_failure(tmp_path: Path) -> None:
    (tmp_path / "folder").mkdir()
    storage = _storage(tmp_path)

    with pytest.raises(StorageIOError) as excinfo:
        storage.read_bytes(_resolved(storage, "/folder"))

    assert excinfo.value.public_message == "failed to read file"
    assert excinfo.value.operation == "read file"


def test_mkdir_failure_is_io_failure(tmp_path: Path) -> None:
    (tmp_path / "blocker").write_text("not a directory", encoding="utf-8")
    storage = _storage(tmp_path)

    with pytest.raises(StorageIOError) as excinfo:
        storage.write_text(_resolved(storage, "/blocker/child/file.txt"), "x")

    assert excinfo.value.operation == "create directory"
    assert str(excinfo.value) == "failed to save file"
    assert isinstance(excinfo.value.__cause__, OSError)


def test_write_onto_directory_is_io_failure(tmp_path: Path) -> None:
    (tmp_path / "folder").mkdir()
    storage = _storage(tmp_path)

    with pytest.raises(StorageIOError) as excinfo:
        storage.write_text(_resolved(storage, "/folder"), "x")

    assert excinfo.value.operation == "write file"


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="permission bits are not enforced")
def test_unreadable_file_is_io_failure(tmp_path: Path) -> None:
    secret = tmp_path / "secret.txt"
    secret.write_text("x", encoding="utf-8")
    secret.chmod(0)
    storage = _storage(tmp_path)

    try:
        with pytest.raises(StorageIOError):
            storage.read_bytes(_resolved(storage, "/secret.txt"))
    finally:
        secret.chmod(0o644)
