"""
Per-file encryption status of a project.

Every plaintext ``.env`` file and every ``.kanuka`` content file is paired
by name and compared by modification time. No secret is needed, so any
user of the project can check what still has to be encrypted.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from kanuka.common.models import Direction, FileState, FileStatusEntry, StatusResult
from kanuka.secrets.planner import destination_for
from kanuka.secrets.project import EngineContext, load_project
from kanuka.secrets.selection import resolve_targets

logger = logging.getLogger(__name__)


def _timestamp(ctx: EngineContext, path: Path) -> float | None:
    if not ctx.fs.is_file(path):
        return None
    return ctx.fs.mtime(path)


def _as_datetime(value: float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _classify(plaintext: float | None, encrypted: float | None) -> FileState:
    if plaintext is not None and encrypted is not None:
        # Equal times count as stale; only a strictly newer content file is current
        return FileState.CURRENT if encrypted > plaintext else FileState.STALE
    if encrypted is not None:
        return FileState.ENCRYPTED_ONLY
    return FileState.UNENCRYPTED


def file_status(ctx: EngineContext) -> StatusResult:
    """Report whether each secret file's encrypted copy is up to date.

    A file is ``current`` when its content file is newer than the
    plaintext, ``stale`` when the plaintext changed since, ``unencrypted``
    with no content file and ``encrypted_only`` with no plaintext.
    """
    project = load_project(ctx)
    config = ctx.config
    plaintexts = resolve_targets(ctx.fs, ctx.project_root, [], Direction.ENCRYPT, config)
    contents = resolve_targets(ctx.fs, ctx.project_root, [], Direction.DECRYPT, config)

    bases = set(plaintexts)
    bases.update(
        destination_for(path, Direction.DECRYPT, config.CONTENT_SUFFIX) for path in contents
    )

    result = StatusResult(project_name=project.name)
    for base in sorted(bases, key=lambda p: p.relative_to(ctx.project_root).as_posix()):
        encrypted_path = destination_for(base, Direction.ENCRYPT, config.CONTENT_SUFFIX)
        plaintext = _timestamp(ctx, base)
        encrypted = _timestamp(ctx, encrypted_path)
        result.files.append(
            FileStatusEntry(
                path=base.relative_to(ctx.project_root),
                state=_classify(plaintext, encrypted),
                plaintext_mtime=_as_datetime(plaintext),
                encrypted_mtime=_as_datetime(encrypted),
            )
        )

    logger.debug("Status of %d file(s) in project %s", len(result.files), project.name)
    return result
