"""
Change planner: turns an encrypt/decrypt request into a list of file effects.

Planning runs every validation step, including unwrapping the caller's
secret and transforming each file in memory, but never writes. Execute-mode
plans carry the bytes to write; ``apply_plan`` writes them one file at a
time and keeps going past failures. Earlier writes are not rolled back.
"""

from __future__ import annotations

import errno
import logging
from pathlib import Path
from typing import Iterable

from kanuka.common.exceptions import DecryptionError, FileAccessError, KanukaError, ValidationError
from kanuka.common.models import (
    Direction,
    EffectStatus,
    FileFailure,
    Mode,
    OperationState,
    OutcomeResult,
    PlannedEffect,
    PlanResult,
)
from kanuka.secrets import audit, cipher
from kanuka.secrets.project import EngineContext, load_project, unlock_secret
from kanuka.secrets.selection import resolve_targets

logger = logging.getLogger(__name__)


def destination_for(source: Path, direction: Direction, suffix: str) -> Path:
    if direction == Direction.ENCRYPT:
        return source.with_name(source.name + suffix)
    return source.with_name(source.name[: -len(suffix)])


def _relative(ctx: EngineContext, path: Path) -> str:
    try:
        return path.relative_to(ctx.project_root).as_posix()
    except ValueError:
        return str(path)


def _is_equivalent(
    secret: bytes, direction: Direction, existing: bytes, plaintext: bytes
) -> bool:
    if direction == Direction.DECRYPT:
        return existing == plaintext
    try:
        return cipher.decrypt(secret, existing) == plaintext
    except DecryptionError:
        return False


def _plan_file(
    ctx: EngineContext,
    secret: bytes,
    direction: Direction,
    mode: Mode,
    source: Path,
    *,
    skip_unchanged: bool,
) -> PlannedEffect:
    config = ctx.config
    destination = destination_for(source, direction, config.CONTENT_SUFFIX)
    if ctx.fs.is_dir(destination):
        err = IsADirectoryError(errno.EISDIR, "Is a directory", str(destination))
        raise FileAccessError(destination, err)

    data = ctx.fs.read_bytes(source)
    if direction == Direction.ENCRYPT:
        plaintext = data
        file_mode = config.PRIVATE_FILE_MODE
    else:
        plaintext = cipher.decrypt(secret, data, source)
        file_mode = config.PLAINTEXT_FILE_MODE

    if not ctx.fs.exists(destination):
        status = EffectStatus.NEW
    elif skip_unchanged and _is_equivalent(
        secret, direction, ctx.fs.read_bytes(destination), plaintext
    ):
        status = EffectStatus.UNCHANGED
    else:
        status = EffectStatus.WOULD_OVERWRITE

    payload = None
    if mode == Mode.EXECUTE and status != EffectStatus.UNCHANGED:
        payload = cipher.encrypt(secret, plaintext) if direction == Direction.ENCRYPT else plaintext

    return PlannedEffect(
        source=source,
        destination=destination,
        status=status,
        payload=payload,
        file_mode=file_mode,
    )


def plan_operation(
    ctx: EngineContext,
    direction: Direction,
    targets: Iterable[str],
    mode: Mode = Mode.EXECUTE,
    *,
    skip_unchanged: bool = False,
) -> PlanResult:
    """Validate a request and compute its effects without writing anything.

    Validation order is project, caller access, targets, then each file;
    the first failure stops planning and is returned in ``error``. With
    ``skip_unchanged`` an existing destination that already holds the same
    content is tagged ``unchanged`` instead of ``would-overwrite``.
    """
    result = PlanResult(direction=direction, mode=mode)
    try:
        project = load_project(ctx)
        secret = unlock_secret(ctx, project)
        sources = resolve_targets(
            ctx.fs, ctx.project_root, targets, direction, ctx.config
        )
        effects = [
            _plan_file(ctx, secret, direction, mode, source, skip_unchanged=skip_unchanged)
            for source in sources
        ]
    except KanukaError as err:
        logger.info("Planning %s failed: %s", direction.value, err)
        result.state = OperationState.FAILED
        result.error = err
        return result

    result.effects = effects
    result.state = OperationState.PLANNED
    if not effects:
        logger.info("No files found to %s", direction.value)
    else:
        logger.debug("Planned %s of %d file(s)", direction.value, len(effects))
    return result


def apply_plan(ctx: EngineContext, plan: PlanResult) -> OutcomeResult:
    """Write the effects of an execute-mode plan.

    Each file is written independently. A failed write is recorded and the
    remaining files are still attempted.
    """
    if plan.error is not None:
        return OutcomeResult(state=OperationState.FAILED, error=plan.error)
    if plan.mode == Mode.PREVIEW or plan.state != OperationState.PLANNED:
        err = ValidationError("only a planned execute-mode operation can be applied")
        return OutcomeResult(state=OperationState.FAILED, error=err)

    outcome = OutcomeResult(state=OperationState.APPLIED)
    for effect in plan.effects:
        if effect.status == EffectStatus.UNCHANGED:
            outcome.succeeded.append(effect)
            continue
        if effect.payload is None:
            outcome.failed.append(
                FileFailure(
                    source=effect.source,
                    destination=effect.destination,
                    error=ValidationError(f"no content planned for {effect.destination}"),
                )
            )
            continue
        try:
            ctx.fs.write_bytes(effect.destination, effect.payload, effect.file_mode)
        except FileAccessError as err:
            logger.warning("Failed to write %s: %s", effect.destination, err)
            outcome.failed.append(
                FileFailure(source=effect.source, destination=effect.destination, error=err)
            )
            continue
        finally:
            effect.payload = None
        outcome.succeeded.append(effect)

    written = [
        _relative(ctx, effect.destination)
        for effect in outcome.succeeded
        if effect.status != EffectStatus.UNCHANGED
    ]
    if written:
        audit.record(ctx, plan.direction.value, files=written)

    if outcome.failed:
        outcome.state = OperationState.PARTIALLY_FAILED
        outcome.error = outcome.failed[0].error
    logger.info(
        "Applied %s: %d succeeded, %d failed",
        plan.direction.value,
        len(outcome.succeeded),
        len(outcome.failed),
    )
    return outcome


def run_operation(
    ctx: EngineContext,
    direction: Direction,
    targets: Iterable[str],
    mode: Mode = Mode.EXECUTE,
    *,
    skip_unchanged: bool = False,
) -> tuple[PlanResult, OutcomeResult | None]:
    """Plan an operation and, in execute mode, apply it.

    The outcome is ``None`` for previews and for plans that failed
    validation; in both cases nothing was written.
    """
    plan = plan_operation(ctx, direction, targets, mode, skip_unchanged=skip_unchanged)
    if mode == Mode.PREVIEW or not plan.ok:
        return plan, None
    return plan, apply_plan(ctx, plan)
