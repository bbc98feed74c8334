"""
Append-only audit log of mutating operations.

Entries are JSON lines in ``.kanuka/audit.jsonl``. Writing the log never
fails the operation being logged; a failed append is only reported through
the logger.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import pydantic

from kanuka.common.exceptions import FileAccessError
from kanuka.common.models import AuditEntry

if TYPE_CHECKING:
    from kanuka.secrets.project import EngineContext

logger = logging.getLogger(__name__)


def record(ctx: EngineContext, op: str, **fields: Any) -> AuditEntry:
    """Append an entry for ``op`` performed by the caller."""
    entry = AuditEntry(user=ctx.user_id, op=op, **fields)
    line = entry.model_dump_json(exclude_none=True).encode() + b"\n"
    path = ctx.layout.audit_file
    try:
        existing = ctx.fs.read_bytes(path) if ctx.fs.is_file(path) else b""
        ctx.fs.write_bytes(path, existing + line, ctx.config.PUBLIC_FILE_MODE)
    except FileAccessError as err:
        logger.warning("Could not write audit entry for %s: %s", op, err)
    return entry


def read_entries(ctx: EngineContext) -> list[AuditEntry]:
    """All readable entries, oldest first. Malformed lines are skipped."""
    path = ctx.layout.audit_file
    if not ctx.fs.is_file(path):
        return []

    entries = []
    for number, line in enumerate(ctx.fs.read_bytes(path).splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entries.append(AuditEntry.model_validate(json.loads(line)))
        except (json.JSONDecodeError, UnicodeDecodeError, pydantic.ValidationError):
            logger.debug("Skipping malformed audit line %d", number)
    return entries
