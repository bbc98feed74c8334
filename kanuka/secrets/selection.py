"""
File selection for encrypt/decrypt targets.

Targets may be exact paths, directories (searched recursively), or glob
patterns where ``**`` spans any number of directories. Matching runs over
the injected filesystem listing, never the real disk directly.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

from kanuka.common.config import Config
from kanuka.common.exceptions import NotFoundError, ValidationError
from kanuka.common.interfaces import FileSystem  # noqa: TC001
from kanuka.common.models import Direction

logger = logging.getLogger(__name__)

GLOB_CHARS = "*?["


def has_glob(pattern: str) -> bool:
    return any(c in pattern for c in GLOB_CHARS)


def is_plaintext_file(name: str, config: Config) -> bool:
    return config.ENV_MARKER in name and not name.endswith(config.CONTENT_SUFFIX)


def is_content_file(name: str, config: Config) -> bool:
    return config.ENV_MARKER in name and name.endswith(config.CONTENT_SUFFIX)


def matches_direction(path: Path, direction: Direction, config: Config) -> bool:
    if direction == Direction.ENCRYPT:
        return is_plaintext_file(path.name, config)
    return is_content_file(path.name, config)


def _segment_to_regex(segment: str) -> str:
    out = []
    i = 0
    while i < len(segment):
        c = segment[i]
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = segment.find("]", i + 2)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = segment[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = end
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a slash-separated glob into a regex over relative posix paths.

    Raises:
        ValidationError: the pattern has a malformed character class.
    """
    segments = [s for s in pattern.split("/") if s not in ("", ".")]
    parts = []
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            parts.append(".*" if last else "(?:[^/]+/)*")
        else:
            parts.append(_segment_to_regex(segment) + ("" if last else "/"))
    try:
        return re.compile("".join(parts))
    except re.error as err:
        msg = f"invalid glob pattern: {pattern}"
        raise ValidationError(msg) from err


def _in_metadata_dir(path: Path, root: Path, config: Config) -> bool:
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        parts = path.parts
    return config.KANUKA_DIR_NAME in parts[:-1]


def _scan_directory(
    fs: FileSystem, directory: Path, direction: Direction, config: Config
) -> list[Path]:
    skip = frozenset({config.KANUKA_DIR_NAME})
    return [
        path
        for path in fs.walk_files(directory, skip)
        if matches_direction(path, direction, config)
    ]


def _expand_glob(
    fs: FileSystem, root: Path, pattern: str, direction: Direction, config: Config
) -> list[Path]:
    full = Path(pattern)
    if not full.is_absolute():
        full = root / full
    parts = full.parts
    split = next((i for i, part in enumerate(parts) if has_glob(part)), len(parts))
    base = Path(*parts[:split])
    regex = glob_to_regex("/".join(parts[split:]))
    if not fs.is_dir(base):
        return []

    skip = frozenset({config.KANUKA_DIR_NAME})
    matches = []
    for path in fs.walk_files(base, skip):
        if _in_metadata_dir(path, root, config):
            continue
        if regex.fullmatch(path.relative_to(base).as_posix()) and matches_direction(
            path, direction, config
        ):
            matches.append(path)
    return matches


def _resolve_one(
    fs: FileSystem, root: Path, pattern: str, direction: Direction, config: Config
) -> list[Path]:
    path = Path(pattern)
    if not path.is_absolute():
        path = root / path

    if fs.is_dir(path):
        return _scan_directory(fs, path, direction, config)
    if has_glob(pattern):
        return _expand_glob(fs, root, pattern, direction, config)
    if not fs.exists(path):
        msg = f"file not found: {pattern}"
        raise NotFoundError(msg)
    if not matches_direction(path, direction, config):
        kind = "plaintext .env" if direction == Direction.ENCRYPT else "encrypted .kanuka"
        msg = f"file is not a {kind} file: {pattern}"
        raise ValidationError(msg)
    return [path]


def resolve_targets(
    fs: FileSystem,
    root: Path,
    patterns: Iterable[str],
    direction: Direction,
    config: Config,
) -> list[Path]:
    """Resolve user targets to a de-duplicated, ordered list of files.

    With no patterns every matching file under ``root`` is selected. An
    empty directory or glob match is not an error; a missing or wrong-kind
    explicit path is.
    """
    patterns = list(patterns)
    if not patterns:
        found = _scan_directory(fs, root, direction, config)
        logger.debug("Default scan found %d file(s) under %s", len(found), root)
        return found

    seen: set[Path] = set()
    files: list[Path] = []
    for pattern in patterns:
        for path in _resolve_one(fs, root, pattern, direction, config):
            if path not in seen:
                seen.add(path)
                files.append(path)
    logger.debug("Resolved %d pattern(s) to %d file(s)", len(patterns), len(files))
    return files
