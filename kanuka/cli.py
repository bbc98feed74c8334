"""
Command-line interface for Kanuka.
"""

from __future__ import annotations

import getpass
import logging
import uuid
from functools import wraps
from pathlib import Path
from typing import Any, Callable

import click

from kanuka.common import Config, setup_logger
from kanuka.common.exceptions import KanukaError
from kanuka.common.models import Direction, Mode, PlanResult
from kanuka.secrets import audit
from kanuka.secrets.access import cleanup_orphans, revoke_user, scan_access_state, sync_pending
from kanuka.secrets.keygen import KeyGenerator
from kanuka.secrets.planner import run_operation
from kanuka.secrets.project import (
    EngineContext,
    create_project,
    ensure_not_initialized,
    load_project,
    register_user,
)
from kanuka.secrets.status import file_status


def _handle_errors(func: Callable) -> Callable:
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except KanukaError as err:
            raise click.ClickException(str(err)) from err

    return wrapper


def _mode(dry_run: bool) -> Mode:  # noqa: FBT001
    return Mode.PREVIEW if dry_run else Mode.EXECUTE


@click.group()
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project root containing the .kanuka directory",
)
@click.option(
    "--user",
    "user_id",
    envvar="KANUKA_USER_ID",
    default=None,
    help="User identifier (default: KANUKA_USER_ID or the login name)",
)
@click.option(
    "--private-key",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Private key file (default: the key stored for this project)",
)
@click.option(
    "--private-key-stdin",
    is_flag=True,
    help="Read the private key from standard input",
)
@click.option(
    "--passphrase",
    envvar="KANUKA_PASSPHRASE",
    default=None,
    help="Passphrase for an encrypted private key",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    project_dir: Path,
    user_id: str | None,
    private_key: Path | None,
    private_key_stdin: bool,  # noqa: FBT001
    passphrase: str | None,
    verbose: bool,  # noqa: FBT001
) -> None:
    """Share encrypted .env files with your team"""
    config = Config()
    setup_logger(logging.getLogger("kanuka"), logging.DEBUG if verbose else config.LOG_LEVEL)

    key_data = None
    if private_key_stdin:
        key_data = click.get_binary_stream("stdin").read()

    ctx.obj = EngineContext(
        project_root=project_dir.resolve(),
        user_id=user_id or getpass.getuser(),
        config=config,
        private_key_data=key_data,
        private_key_path=private_key,
        passphrase=passphrase.encode() if passphrase else None,
    )


@cli.command()
@click.option("--name", default=None, help="Project name (default: directory name)")
@click.option("--user-name", default="", help="Your display name")
@click.option("--email", default="", help="Your email address")
@click.pass_obj
@_handle_errors
def create(engine: EngineContext, name: str | None, user_name: str, email: str) -> None:
    """Create a project secret and grant yourself access"""
    ensure_not_initialized(engine)
    project_uuid = str(uuid.uuid4())
    key_pair = KeyGenerator(engine.config).generate_keys(project_uuid)
    project = create_project(
        engine,
        name or engine.project_root.name,
        key_pair,
        project_uuid=project_uuid,
        user_name=user_name,
        email=email,
    )
    click.echo(f"Created project {project.name} ({project.uuid})")
    click.echo(f"Private key: {engine.config.private_key_path(project.uuid)}")


@cli.command()
@click.pass_obj
@_handle_errors
def keygen(engine: EngineContext) -> None:
    """Generate your key pair for this project"""
    project = load_project(engine)
    KeyGenerator(engine.config).generate_keys(project.uuid)
    click.echo("Keys generated and saved")
    click.echo(f"Public key: {engine.config.public_key_path(project.uuid)}")


@cli.command()
@click.option(
    "--pubkey-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Public key to register (default: your generated key)",
)
@click.option("--user-id", "target_user", default=None, help="User to register (default: you)")
@click.option("--user-name", default="", help="Display name")
@click.option("--email", default="", help="Email address")
@click.option("--grant", is_flag=True, help="Wrap the project secret for the user now")
@click.option("--force", is_flag=True, help="Replace an existing public key")
@click.option("--dry-run", is_flag=True, help="Validate without writing")
@click.pass_obj
@_handle_errors
def register(
    engine: EngineContext,
    pubkey_file: Path | None,
    target_user: str | None,
    user_name: str,
    email: str,
    grant: bool,  # noqa: FBT001
    force: bool,  # noqa: FBT001
    dry_run: bool,  # noqa: FBT001
) -> None:
    """Add a user's public key to the project"""
    if pubkey_file is None:
        project = load_project(engine)
        pubkey_file = engine.config.public_key_path(project.uuid)
    status = register_user(
        engine,
        target_user or engine.user_id,
        engine.fs.read_bytes(pubkey_file),
        name=user_name,
        email=email,
        grant=grant,
        overwrite=force,
        mode=_mode(dry_run),
    )
    prefix = "[dry-run] would register" if dry_run else "Registered"
    click.echo(f"{prefix} {target_user or engine.user_id} ({status.value})")


def _echo_plan(plan: PlanResult) -> None:
    if not plan.effects:
        click.echo("No files found")
        return
    for effect in plan.effects:
        click.echo(f"  {effect.source} -> {effect.destination} [{effect.status.value}]")
    summary = ", ".join(f"{count} {status.value}" for status, count in plan.counts.items())
    click.echo(f"Summary: {summary}")


def _run(
    engine: EngineContext,
    direction: Direction,
    targets: tuple[str, ...],
    dry_run: bool,  # noqa: FBT001
    skip_unchanged: bool,  # noqa: FBT001
) -> None:
    plan, outcome = run_operation(
        engine, direction, targets, _mode(dry_run), skip_unchanged=skip_unchanged
    )
    plan.raise_for_error()
    if outcome is None:
        click.echo(f"[dry-run] would {direction.value}:")
        _echo_plan(plan)
        return

    _echo_plan(plan)
    for failure in outcome.failed:
        click.echo(f"  failed: {failure.destination}: {failure.error}", err=True)
    outcome.raise_for_error()


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("--dry-run", is_flag=True, help="Show what would be encrypted")
@click.option("--skip-unchanged", is_flag=True, help="Leave up-to-date files alone")
@click.pass_obj
@_handle_errors
def encrypt(
    engine: EngineContext,
    targets: tuple[str, ...],
    dry_run: bool,  # noqa: FBT001
    skip_unchanged: bool,  # noqa: FBT001
) -> None:
    """Encrypt .env files into .kanuka files"""
    _run(engine, Direction.ENCRYPT, targets, dry_run, skip_unchanged)


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("--dry-run", is_flag=True, help="Show what would be decrypted")
@click.option("--skip-unchanged", is_flag=True, help="Leave up-to-date files alone")
@click.pass_obj
@_handle_errors
def decrypt(
    engine: EngineContext,
    targets: tuple[str, ...],
    dry_run: bool,  # noqa: FBT001
    skip_unchanged: bool,  # noqa: FBT001
) -> None:
    """Decrypt .kanuka files back into .env files"""
    _run(engine, Direction.DECRYPT, targets, dry_run, skip_unchanged)


@cli.command()
@click.pass_obj
@_handle_errors
def access(engine: EngineContext) -> None:
    """List users and their access status"""
    project = load_project(engine)
    state = scan_access_state(engine, project)
    click.echo(f"Project: {project.name}")
    for user in state.users:
        label = f"{user.display_name} ({user.user_id})" if user.display_name else user.user_id
        click.echo(f"  {user.status.value:<8} {label}")
    counts = state.counts
    click.echo(
        f"Total: {sum(counts.values())} "
        + " ".join(f"{status.value}={count}" for status, count in counts.items())
    )


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show who would be granted access")
@click.pass_obj
@_handle_errors
def sync(engine: EngineContext, dry_run: bool) -> None:  # noqa: FBT001
    """Grant the project secret to every pending user"""
    result = sync_pending(engine, _mode(dry_run))
    verb = "Would grant" if dry_run else "Granted"
    click.echo(f"{verb} access to {len(result.granted)} user(s)")
    for user_id in result.granted:
        click.echo(f"  {user_id}")
    for user_id, err in result.failed.items():
        click.echo(f"  skipped {user_id}: {err}", err=True)
    if not result.ok:
        msg = f"{len(result.failed)} pending user(s) could not be granted access"
        raise click.ClickException(msg)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be removed")
@click.pass_obj
@_handle_errors
def clean(engine: EngineContext, dry_run: bool) -> None:  # noqa: FBT001
    """Remove envelopes that no longer have a public key"""
    result = cleanup_orphans(engine, _mode(dry_run))
    if not result.orphans:
        click.echo("No orphaned entries found")
        return
    for user_id in result.orphans:
        click.echo(f"  {user_id}")
    if dry_run:
        click.echo(f"[dry-run] would remove {len(result.orphans)} orphaned entr(ies)")
        return
    click.echo(f"Removed {result.removed_count} orphaned entr(ies)")
    for user_id, err in result.failed.items():
        click.echo(f"  could not remove {user_id}: {err}", err=True)
    if not result.ok:
        msg = f"{len(result.failed)} orphaned entr(ies) could not be removed"
        raise click.ClickException(msg)


@cli.command()
@click.argument("user_id")
@click.option("--dry-run", is_flag=True, help="Show what would be removed")
@click.pass_obj
@_handle_errors
def revoke(engine: EngineContext, user_id: str, dry_run: bool) -> None:  # noqa: FBT001
    """Remove a user's access files"""
    result = revoke_user(engine, user_id, _mode(dry_run))
    verb = "Would remove" if dry_run else "Removed"
    for path in result.removed:
        click.echo(f"  {verb}: {path}")
    click.echo(f"{'[dry-run] ' if dry_run else ''}Revoked {user_id}")


@cli.command()
@click.pass_obj
@_handle_errors
def status(engine: EngineContext) -> None:
    """Show which secret files need encrypting"""
    result = file_status(engine)
    click.echo(f"Project: {result.project_name}")
    if not result.files:
        click.echo("No secret files found")
        return
    for entry in result.files:
        click.echo(f"  {entry.state.value:<15} {entry.path}")
    click.echo(
        "Summary: " + ", ".join(f"{count} {state.value}" for state, count in result.counts.items())
    )


@cli.command()
@click.option("--limit", "-n", type=int, default=None, help="Show only the latest N entries")
@click.pass_obj
@_handle_errors
def log(engine: EngineContext, limit: int | None) -> None:
    """Show the audit log of changes to this project"""
    load_project(engine)
    entries = audit.read_entries(engine)
    if limit is not None:
        entries = entries[-limit:] if limit > 0 else []
    if not entries:
        click.echo("No audit entries found")
        return
    for entry in entries:
        detail = entry.target_user or ", ".join(entry.files or [])
        click.echo(f"{entry.ts.isoformat()}  {entry.user:<12} {entry.op:<8} {detail}".rstrip())


if __name__ == "__main__":
    cli()
