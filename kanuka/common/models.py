"""
Pydantic models for project metadata and operation results.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from kanuka.common.exceptions import KanukaError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserEntry(BaseModel):
    name: str = ""
    email: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def display_name(self) -> str:
        return self.name or self.email


class ProjectConfig(BaseModel):
    """Project identity plus the registry of known users."""

    uuid: str
    name: str
    users: dict[str, UserEntry] = Field(default_factory=dict)


class AccessStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    ORPHANED = "orphaned"


class UserAccess(BaseModel):
    user_id: str
    status: AccessStatus
    display_name: str = ""


class AccessState(BaseModel):
    """Derived classification of every user seen on disk."""

    model_config = ConfigDict(frozen=True)

    active: frozenset[str] = frozenset()
    pending: frozenset[str] = frozenset()
    orphaned: frozenset[str] = frozenset()
    users: tuple[UserAccess, ...] = ()

    @property
    def counts(self) -> dict[AccessStatus, int]:
        return {
            AccessStatus.ACTIVE: len(self.active),
            AccessStatus.PENDING: len(self.pending),
            AccessStatus.ORPHANED: len(self.orphaned),
        }

    def status_of(self, user_id: str) -> AccessStatus | None:
        if user_id in self.active:
            return AccessStatus.ACTIVE
        if user_id in self.pending:
            return AccessStatus.PENDING
        if user_id in self.orphaned:
            return AccessStatus.ORPHANED
        return None


class Direction(str, Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


class Mode(str, Enum):
    EXECUTE = "execute"
    PREVIEW = "preview"


class EffectStatus(str, Enum):
    NEW = "new"
    WOULD_OVERWRITE = "would-overwrite"
    UNCHANGED = "unchanged"


class OperationState(str, Enum):
    VALIDATING = "validating"
    FAILED = "failed"
    PLANNED = "planned"
    APPLIED = "applied"
    PARTIALLY_FAILED = "partially-failed"


class PlannedEffect(BaseModel):
    source: Path
    destination: Path
    status: EffectStatus
    # Bytes to write in execute mode; never populated for previews.
    payload: bytes | None = Field(default=None, exclude=True, repr=False)
    file_mode: int = Field(default=0o600, exclude=True, repr=False)


class PlanResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    direction: Direction
    mode: Mode
    state: OperationState = OperationState.VALIDATING
    effects: list[PlannedEffect] = Field(default_factory=list)
    error: KanukaError | None = Field(default=None, exclude=True)

    @property
    def ok(self) -> bool:
        return self.error is None and self.state == OperationState.PLANNED

    @property
    def counts(self) -> dict[EffectStatus, int]:
        counts = dict.fromkeys(EffectStatus, 0)
        for effect in self.effects:
            counts[effect.status] += 1
        return counts

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class FileFailure(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: Path
    destination: Path
    error: KanukaError = Field(exclude=True)


class OutcomeResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: OperationState
    succeeded: list[PlannedEffect] = Field(default_factory=list)
    failed: list[FileFailure] = Field(default_factory=list)
    error: KanukaError | None = Field(default=None, exclude=True)

    @property
    def ok(self) -> bool:
        return self.state == OperationState.APPLIED

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class SyncResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    preview: bool
    granted: list[str] = Field(default_factory=list)
    failed: dict[str, KanukaError] = Field(default_factory=dict, exclude=True)

    @property
    def ok(self) -> bool:
        return not self.failed


class CleanupResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    preview: bool
    orphans: list[str] = Field(default_factory=list)
    removed: list[Path] = Field(default_factory=list)
    failed: dict[str, KanukaError] = Field(default_factory=dict, exclude=True)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def removed_count(self) -> int:
        return len(self.removed)


class RevokeResult(BaseModel):
    preview: bool
    user_id: str
    removed: list[Path] = Field(default_factory=list)


class AuditEntry(BaseModel):
    """One line of the project's audit log."""

    ts: datetime = Field(default_factory=_utcnow)
    user: str
    op: str
    files: list[str] | None = None
    target_user: str | None = None
    users_count: int | None = None
    removed_count: int | None = None
    project_name: str | None = None
    project_uuid: str | None = None


class FileState(str, Enum):
    CURRENT = "current"
    STALE = "stale"
    UNENCRYPTED = "unencrypted"
    ENCRYPTED_ONLY = "encrypted_only"


class FileStatusEntry(BaseModel):
    path: Path
    state: FileState
    plaintext_mtime: datetime | None = None
    encrypted_mtime: datetime | None = None


class StatusResult(BaseModel):
    project_name: str
    files: list[FileStatusEntry] = Field(default_factory=list)

    @property
    def counts(self) -> dict[FileState, int]:
        counts = dict.fromkeys(FileState, 0)
        for entry in self.files:
            counts[entry.state] += 1
        return counts
