"""
Interfaces and protocols for dependency injection.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Protocol


class FileSystem(Protocol):
    """Filesystem capability the engine reads, lists and writes through."""

    def exists(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...

    def is_file(self, path: Path) -> bool: ...

    def read_bytes(self, path: Path) -> bytes: ...

    def write_bytes(self, path: Path, data: bytes, mode: int) -> None: ...

    def remove(self, path: Path) -> None: ...

    def mtime(self, path: Path) -> float: ...

    def list_dir(self, path: Path) -> list[str]: ...

    def walk_files(
        self, root: Path, skip_dirs: frozenset[str] = frozenset()
    ) -> Iterator[Path]: ...
