"""
Access state resolution and the operations driven by it.

A user is *active* with both a public key and an envelope, *pending* with
only a public key, and *orphaned* with only an envelope.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from kanuka.common.exceptions import FileAccessError, FormatError, NotFoundError, ValidationError
from kanuka.common.models import (
    AccessState,
    AccessStatus,
    CleanupResult,
    Mode,
    ProjectConfig,
    RevokeResult,
    SyncResult,
    UserAccess,
    UserEntry,
)
from kanuka.secrets import audit
from kanuka.secrets.envelope import wrap_secret_for_user
from kanuka.secrets.keys import parse_public_key
from kanuka.secrets.project import EngineContext, load_project, save_project, unlock_secret

logger = logging.getLogger(__name__)

_STATUS_ORDER = {
    AccessStatus.ACTIVE: 0,
    AccessStatus.PENDING: 1,
    AccessStatus.ORPHANED: 2,
}


def resolve_access_state(
    registered_users: Mapping[str, UserEntry] | None,
    public_key_ids: Iterable[str],
    envelope_ids: Iterable[str],
) -> AccessState:
    """Classify every user id seen in either listing.

    Pure function of its inputs. Registered users with neither a public key
    nor an envelope do not appear in the result.
    """
    registered_users = registered_users or {}
    keys = set(public_key_ids)
    envelopes = set(envelope_ids)

    active = keys & envelopes
    pending = keys - envelopes
    orphaned = envelopes - keys

    users = []
    for status, ids in (
        (AccessStatus.ACTIVE, active),
        (AccessStatus.PENDING, pending),
        (AccessStatus.ORPHANED, orphaned),
    ):
        for user_id in ids:
            entry = registered_users.get(user_id)
            users.append(
                UserAccess(
                    user_id=user_id,
                    status=status,
                    display_name=entry.display_name if entry else "",
                )
            )
    users.sort(
        key=lambda u: (_STATUS_ORDER[u.status], (u.display_name or u.user_id).lower(), u.user_id)
    )

    return AccessState(
        active=frozenset(active),
        pending=frozenset(pending),
        orphaned=frozenset(orphaned),
        users=tuple(users),
    )


def _ids_with_suffix(names: Iterable[str], suffix: str) -> set[str]:
    return {name[: -len(suffix)] for name in names if name.endswith(suffix) and name != suffix}


def scan_access_state(
    ctx: EngineContext, project: ProjectConfig | None = None
) -> AccessState:
    """List the metadata directories and classify the users found there."""
    if project is None:
        project = load_project(ctx)
    layout = ctx.layout
    public_key_ids = _ids_with_suffix(
        ctx.fs.list_dir(layout.public_keys_dir), ctx.config.PUBLIC_KEY_SUFFIX
    )
    envelope_ids = _ids_with_suffix(
        ctx.fs.list_dir(layout.secrets_dir), ctx.config.ENVELOPE_SUFFIX
    )
    return resolve_access_state(project.users, public_key_ids, envelope_ids)


def sync_pending(ctx: EngineContext, mode: Mode = Mode.EXECUTE) -> SyncResult:
    """Wrap the project secret for every pending user.

    The caller must be active. A pending user whose public key cannot be
    used is reported in ``failed`` and the rest are still processed.
    """
    project = load_project(ctx)
    secret = unlock_secret(ctx, project)
    state = scan_access_state(ctx, project)
    result = SyncResult(preview=mode == Mode.PREVIEW)

    for user_id in sorted(state.pending):
        key_path = ctx.layout.public_key_path(user_id)
        try:
            public_key = parse_public_key(ctx.fs.read_bytes(key_path))
        except (FormatError, FileAccessError) as err:
            logger.warning("Skipping pending user %s: %s", user_id, err)
            result.failed[user_id] = err
            continue

        envelope = wrap_secret_for_user(secret, public_key)
        if mode == Mode.EXECUTE:
            try:
                ctx.fs.write_bytes(
                    ctx.layout.envelope_path(user_id),
                    envelope,
                    ctx.config.PRIVATE_FILE_MODE,
                )
            except FileAccessError as err:
                logger.warning("Could not write envelope for %s: %s", user_id, err)
                result.failed[user_id] = err
                continue
        result.granted.append(user_id)

    if result.granted and mode == Mode.EXECUTE:
        audit.record(ctx, "sync", users_count=len(result.granted))
    logger.info(
        "Sync %s: %d granted, %d failed",
        "previewed" if result.preview else "completed",
        len(result.granted),
        len(result.failed),
    )
    return result


def cleanup_orphans(ctx: EngineContext, mode: Mode = Mode.EXECUTE) -> CleanupResult:
    """Delete envelope files whose owner no longer has a public key.

    An envelope that cannot be removed is reported in ``failed`` and the
    remaining orphans are still processed.
    """
    project = load_project(ctx)
    state = scan_access_state(ctx, project)
    orphans = sorted(state.orphaned)
    result = CleanupResult(preview=mode == Mode.PREVIEW, orphans=orphans)
    if mode == Mode.PREVIEW:
        return result

    for user_id in orphans:
        path = ctx.layout.envelope_path(user_id)
        try:
            ctx.fs.remove(path)
        except FileAccessError as err:
            logger.warning("Could not remove orphaned envelope %s: %s", path, err)
            result.failed[user_id] = err
            continue
        result.removed.append(path)
        logger.debug("Removed orphaned envelope %s", path)

    if result.removed:
        audit.record(ctx, "clean", removed_count=result.removed_count)
    logger.info(
        "Removed %d orphaned envelope(s), %d failed",
        result.removed_count,
        len(result.failed),
    )
    return result


def revoke_user(
    ctx: EngineContext, user_id: str, mode: Mode = Mode.EXECUTE
) -> RevokeResult:
    """Remove a user's public key, envelope and registry entry.

    The project secret is not rotated, so anything the user decrypted
    before revocation stays readable to them.
    """
    if user_id == ctx.user_id:
        msg = "cannot revoke your own access"
        raise ValidationError(msg)

    project = load_project(ctx)
    paths = [
        path
        for path in (
            ctx.layout.public_key_path(user_id),
            ctx.layout.envelope_path(user_id),
        )
        if ctx.fs.is_file(path)
    ]
    if not paths and user_id not in project.users:
        msg = f"user {user_id} is not part of this project"
        raise NotFoundError(msg)

    result = RevokeResult(preview=mode == Mode.PREVIEW, user_id=user_id)
    if mode == Mode.PREVIEW:
        result.removed = paths
        return result

    for path in paths:
        ctx.fs.remove(path)
        result.removed.append(path)
    if project.users.pop(user_id, None) is not None:
        save_project(ctx, project)
    audit.record(ctx, "revoke", target_user=user_id)

    logger.info("Revoked user %s (%d file(s) removed)", user_id, len(result.removed))
    return result
