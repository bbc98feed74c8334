"""
Filesystem implementations used by the engine.

``LocalFileSystem`` talks to the real disk. ``MemoryFileSystem`` keeps
everything in a dictionary so selection and planning can be exercised
without touching a real directory tree.
"""

from __future__ import annotations

import errno
import os
from pathlib import Path
from typing import Iterator

from kanuka.common.exceptions import FileAccessError


class LocalFileSystem:
    """Filesystem backed by the operating system."""

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def is_file(self, path: Path) -> bool:
        return path.is_file()

    def read_bytes(self, path: Path) -> bytes:
        try:
            with path.open("rb") as f:
                return f.read()
        except OSError as err:
            raise FileAccessError(path, err) from err

    def write_bytes(self, path: Path, data: bytes, mode: int) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
            with os.fdopen(fd, "wb") as f:
                # O_CREAT only applies the mode to new files
                os.fchmod(f.fileno(), mode)
                f.write(data)
        except OSError as err:
            raise FileAccessError(path, err) from err

    def mtime(self, path: Path) -> float:
        try:
            return path.stat().st_mtime
        except OSError as err:
            raise FileAccessError(path, err) from err

    def remove(self, path: Path) -> None:
        try:
            path.unlink()
        except OSError as err:
            raise FileAccessError(path, err) from err

    def list_dir(self, path: Path) -> list[str]:
        """Names of the regular files directly inside ``path``."""
        if not path.exists():
            return []
        try:
            return sorted(entry.name for entry in path.iterdir() if entry.is_file())
        except OSError as err:
            raise FileAccessError(path, err) from err

    def walk_files(
        self, root: Path, skip_dirs: frozenset[str] = frozenset()
    ) -> Iterator[Path]:
        def _raise(err: OSError) -> None:
            raise FileAccessError(Path(err.filename or root), err) from err

        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            dirnames[:] = sorted(d for d in dirnames if d not in skip_dirs)
            for name in sorted(filenames):
                candidate = Path(dirpath) / name
                # Skip symlinks, sockets, pipes and devices
                if candidate.is_symlink() or not candidate.is_file():
                    continue
                yield candidate


class MemoryFileSystem:
    """In-memory filesystem for tests and dry planning."""

    def __init__(self, files: dict[Path, bytes] | None = None) -> None:
        self.files: dict[Path, bytes] = {}
        self.modes: dict[Path, int] = {}
        self.dirs: set[Path] = set()
        self.denied: set[Path] = set()
        self.mtimes: dict[Path, float] = {}
        self._clock = 0.0
        for path, data in (files or {}).items():
            self.write_bytes(Path(path), data, 0o644)

    def _add_parents(self, path: Path) -> None:
        for parent in path.parents:
            self.dirs.add(parent)

    def mkdir(self, path: Path) -> None:
        self.dirs.add(path)
        self._add_parents(path)

    def deny_write(self, path: Path) -> None:
        """Make later writes and removals of ``path`` fail with EACCES."""
        self.denied.add(path)

    def snapshot(self) -> dict[Path, bytes]:
        return dict(self.files)

    def exists(self, path: Path) -> bool:
        return path in self.files or self.is_dir(path)

    def is_dir(self, path: Path) -> bool:
        return path in self.dirs

    def is_file(self, path: Path) -> bool:
        return path in self.files

    def read_bytes(self, path: Path) -> bytes:
        if path in self.dirs:
            raise FileAccessError(
                path, IsADirectoryError(errno.EISDIR, "Is a directory", str(path))
            )
        try:
            return self.files[path]
        except KeyError:
            err = FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
            raise FileAccessError(path, err) from None

    def write_bytes(self, path: Path, data: bytes, mode: int) -> None:
        if path in self.dirs:
            raise FileAccessError(
                path, IsADirectoryError(errno.EISDIR, "Is a directory", str(path))
            )
        if path in self.denied:
            raise FileAccessError(
                path, PermissionError(errno.EACCES, "Permission denied", str(path))
            )
        self.files[path] = bytes(data)
        self.modes[path] = mode
        # Every write is strictly later than the previous one
        self._clock += 1.0
        self.mtimes[path] = self._clock
        self._add_parents(path)

    def remove(self, path: Path) -> None:
        if path not in self.files:
            err = FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
            raise FileAccessError(path, err)
        if path in self.denied:
            raise FileAccessError(
                path, PermissionError(errno.EACCES, "Permission denied", str(path))
            )
        del self.files[path]
        self.modes.pop(path, None)
        self.mtimes.pop(path, None)

    def mtime(self, path: Path) -> float:
        if path not in self.files:
            err = FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
            raise FileAccessError(path, err)
        return self.mtimes[path]

    def list_dir(self, path: Path) -> list[str]:
        return sorted(p.name for p in self.files if p.parent == path)

    def walk_files(
        self, root: Path, skip_dirs: frozenset[str] = frozenset()
    ) -> Iterator[Path]:
        for path in sorted(self.files):
            try:
                relative = path.relative_to(root)
            except ValueError:
                continue
            if any(part in skip_dirs for part in relative.parts[:-1]):
                continue
            yield path
