import errno
import os
import stat
from pathlib import Path

import pytest

from kanuka.common.exceptions import FileAccessError
from kanuka.secrets.filesystem import LocalFileSystem, MemoryFileSystem


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def test_local_write_creates_parents_with_mode(tmp_path: Path) -> None:
    fs = LocalFileSystem()
    path = tmp_path / "a" / "b" / "secret.kanuka"
    fs.write_bytes(path, b"data", 0o600)
    assert fs.read_bytes(path) == b"data"
    assert _mode(path) == 0o600  # noqa: PLR2004


def test_local_write_resets_mode_of_existing_file(tmp_path: Path) -> None:
    fs = LocalFileSystem()
    path = tmp_path / ".env.kanuka"
    path.write_bytes(b"old")
    os.chmod(path, 0o666)  # noqa: S103
    fs.write_bytes(path, b"new", 0o600)
    assert path.read_bytes() == b"new"
    assert _mode(path) == 0o600  # noqa: PLR2004


def test_local_read_missing(tmp_path: Path) -> None:
    with pytest.raises(FileAccessError) as exc_info:
        LocalFileSystem().read_bytes(tmp_path / "missing")
    assert exc_info.value.os_error.errno == errno.ENOENT
    assert str(exc_info.value).startswith("io error: ")


def test_local_list_dir(tmp_path: Path) -> None:
    fs = LocalFileSystem()
    (tmp_path / "b.pub").write_bytes(b"")
    (tmp_path / "a.pub").write_bytes(b"")
    (tmp_path / "sub").mkdir()
    assert fs.list_dir(tmp_path) == ["a.pub", "b.pub"]
    assert fs.list_dir(tmp_path / "missing") == []


def test_local_walk_files_skips_dirs_and_symlinks(tmp_path: Path) -> None:
    (tmp_path / ".kanuka" / "secrets").mkdir(parents=True)
    (tmp_path / ".kanuka" / "secrets" / "alice.kanuka").write_bytes(b"")
    (tmp_path / "svc").mkdir()
    (tmp_path / "svc" / ".env").write_bytes(b"")
    (tmp_path / ".env").write_bytes(b"")
    (tmp_path / "link.env").symlink_to(tmp_path / ".env")

    found = list(LocalFileSystem().walk_files(tmp_path, frozenset({".kanuka"})))

    assert found == [tmp_path / ".env", tmp_path / "svc" / ".env"]


def test_local_remove(tmp_path: Path) -> None:
    fs = LocalFileSystem()
    path = tmp_path / "x"
    path.write_bytes(b"")
    fs.remove(path)
    assert not fs.exists(path)
    with pytest.raises(FileAccessError):
        fs.remove(path)


def test_memory_filesystem_basics() -> None:
    fs = MemoryFileSystem({Path("/p/a/.env"): b"A=1\n"})
    assert fs.is_dir(Path("/p/a"))
    assert fs.is_file(Path("/p/a/.env"))
    assert fs.list_dir(Path("/p/a")) == [".env"]
    fs.write_bytes(Path("/p/b/.env"), b"B=2\n", 0o600)
    assert fs.modes[Path("/p/b/.env")] == 0o600  # noqa: PLR2004
    assert [p.name for p in fs.walk_files(Path("/p"))] == [".env", ".env"]


def test_memory_filesystem_errors() -> None:
    fs = MemoryFileSystem()
    fs.mkdir(Path("/p/dir"))
    with pytest.raises(FileAccessError) as exc_info:
        fs.read_bytes(Path("/p/missing"))
    assert exc_info.value.os_error.errno == errno.ENOENT
    with pytest.raises(FileAccessError):
        fs.write_bytes(Path("/p/dir"), b"", 0o600)

    fs.deny_write(Path("/p/locked"))
    with pytest.raises(FileAccessError) as exc_info:
        fs.write_bytes(Path("/p/locked"), b"", 0o600)
    assert exc_info.value.os_error.errno == errno.EACCES


def test_local_write_applies_mode_before_data(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    fs = LocalFileSystem()
    path = tmp_path / "privkey"
    path.write_bytes(b"old key material")
    os.chmod(path, 0o644)  # noqa: S103
    sizes_at_chmod = []
    real_fchmod = os.fchmod

    def _fchmod(fd: int, mode: int) -> None:
        sizes_at_chmod.append(os.fstat(fd).st_size)
        real_fchmod(fd, mode)

    monkeypatch.setattr(os, "fchmod", _fchmod)
    fs.write_bytes(path, b"new key material", 0o600)

    assert sizes_at_chmod == [0]
    assert _mode(path) == 0o600  # noqa: PLR2004
    assert path.read_bytes() == b"new key material"


def test_local_mtime(tmp_path: Path) -> None:
    fs = LocalFileSystem()
    path = tmp_path / ".env"
    path.write_bytes(b"")
    os.utime(path, (1_000_000, 1_000_000))
    assert fs.mtime(path) == 1_000_000  # noqa: PLR2004
    with pytest.raises(FileAccessError):
        fs.mtime(tmp_path / "missing")


def test_memory_filesystem_denied_remove() -> None:
    fs = MemoryFileSystem({Path("/p/x"): b""})
    fs.deny_write(Path("/p/x"))
    with pytest.raises(FileAccessError):
        fs.remove(Path("/p/x"))
    assert fs.exists(Path("/p/x"))


def test_memory_filesystem_mtime_increases() -> None:
    fs = MemoryFileSystem()
    fs.write_bytes(Path("/p/a"), b"", 0o600)
    fs.write_bytes(Path("/p/b"), b"", 0o600)
    assert fs.mtime(Path("/p/b")) > fs.mtime(Path("/p/a"))
