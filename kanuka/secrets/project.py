"""
Project layout, invocation context and project-level operations.
"""

from __future__ import annotations

import errno
import logging
import uuid
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path

from cryptography.hazmat.primitives.asymmetric import rsa

from kanuka.common.config import Config
from kanuka.common.exceptions import (
    AccessDeniedError,
    DecryptionError,
    FileAccessError,
    FormatError,
    NotFoundError,
    ProjectNotInitializedError,
    ValidationError,
)
from kanuka.common.interfaces import FileSystem
from kanuka.common.models import AccessStatus, Mode, ProjectConfig, UserEntry
from kanuka.secrets import audit
from kanuka.secrets.envelope import (
    generate_secret,
    unwrap_secret_for_caller,
    wrap_secret_for_user,
)
from kanuka.secrets.filesystem import LocalFileSystem
from kanuka.secrets.keys import KeyPair, parse_private_key, parse_public_key, public_key_pem
from kanuka.secrets.persistence import ProjectStore

logger = logging.getLogger(__name__)


class ProjectLayout:
    """Paths of the metadata directory inside a project root."""

    def __init__(self, root: Path, config: Config):
        self.root = root
        self.config = config
        self.kanuka_dir = root / config.KANUKA_DIR_NAME
        self.public_keys_dir = self.kanuka_dir / config.PUBLIC_KEYS_DIR
        self.secrets_dir = self.kanuka_dir / config.SECRETS_DIR
        self.project_file = self.kanuka_dir / config.PROJECT_FILE
        self.audit_file = self.kanuka_dir / config.AUDIT_FILE

    def public_key_path(self, user_id: str) -> Path:
        return self.public_keys_dir / f"{user_id}{self.config.PUBLIC_KEY_SUFFIX}"

    def envelope_path(self, user_id: str) -> Path:
        return self.secrets_dir / f"{user_id}{self.config.ENVELOPE_SUFFIX}"


@dataclass
class EngineContext:
    """Everything one invocation needs, built once and passed to every call."""

    project_root: Path
    user_id: str
    config: Config = field(default_factory=Config)
    fs: FileSystem = field(default_factory=LocalFileSystem)
    private_key_data: bytes | None = field(default=None, repr=False)
    private_key_path: Path | None = None
    passphrase: bytes | None = field(default=None, repr=False)

    @cached_property
    def layout(self) -> ProjectLayout:
        return ProjectLayout(self.project_root, self.config)

    def load_key_pair(self, project: ProjectConfig) -> KeyPair:
        """Load the caller's private key from the supplied bytes or from disk."""
        if self.private_key_data is not None:
            return parse_private_key(self.private_key_data, self.passphrase)

        path = self.private_key_path or self.config.private_key_path(project.uuid)
        try:
            data = self.fs.read_bytes(path)
        except FileAccessError as err:
            if err.os_error.errno == errno.ENOENT:
                msg = f"private key not found at {path}"
                raise NotFoundError(msg) from err
            raise
        return parse_private_key(data, self.passphrase)


def project_exists(ctx: EngineContext) -> bool:
    return ctx.fs.is_dir(ctx.layout.kanuka_dir) and ctx.fs.is_file(
        ctx.layout.project_file
    )


def load_project(ctx: EngineContext) -> ProjectConfig:
    if not project_exists(ctx):
        raise ProjectNotInitializedError(ctx.project_root)
    return ProjectStore.load_project(ctx.fs, ctx.layout.project_file)


def save_project(ctx: EngineContext, project: ProjectConfig) -> None:
    ProjectStore.save_project(
        ctx.fs, ctx.layout.project_file, project, ctx.config.PUBLIC_FILE_MODE
    )


def unlock_secret(ctx: EngineContext, project: ProjectConfig | None = None) -> bytes:
    """Unwrap the project secret with the caller's envelope and private key.

    Raises:
        ProjectNotInitializedError: no project at ``ctx.project_root``.
        AccessDeniedError: the caller has no envelope, or it does not open
            with the caller's key.
    """
    if project is None:
        project = load_project(ctx)

    envelope_path = ctx.layout.envelope_path(ctx.user_id)
    if not ctx.fs.is_file(envelope_path):
        raise AccessDeniedError(ctx.user_id, "no envelope file")
    envelope = ctx.fs.read_bytes(envelope_path)

    key_pair = ctx.load_key_pair(project)
    try:
        secret = unwrap_secret_for_caller(envelope, key_pair)
    except DecryptionError as err:
        logger.info("Envelope for user %s did not open with the supplied key", ctx.user_id)
        raise AccessDeniedError(ctx.user_id, err.message) from err
    logger.debug("Unwrapped project secret for user %s", ctx.user_id)
    return secret


def ensure_not_initialized(ctx: EngineContext) -> None:
    if project_exists(ctx):
        msg = f"project has already been initialized at {ctx.project_root}"
        raise ValidationError(msg)


def create_project(
    ctx: EngineContext,
    name: str,
    key_pair: KeyPair,
    *,
    project_uuid: str | None = None,
    user_name: str = "",
    email: str = "",
) -> ProjectConfig:
    """Create the project secret and grant it to the creating user."""
    ensure_not_initialized(ctx)

    project = ProjectConfig(
        uuid=project_uuid or str(uuid.uuid4()),
        name=name,
        users={ctx.user_id: UserEntry(name=user_name, email=email)},
    )
    secret = generate_secret()
    envelope = wrap_secret_for_user(secret, key_pair.public_key)

    layout = ctx.layout
    ctx.fs.write_bytes(
        layout.public_key_path(ctx.user_id),
        key_pair.public_pem(),
        ctx.config.PUBLIC_FILE_MODE,
    )
    ctx.fs.write_bytes(
        layout.envelope_path(ctx.user_id), envelope, ctx.config.PRIVATE_FILE_MODE
    )
    save_project(ctx, project)
    audit.record(ctx, "create", project_name=project.name, project_uuid=project.uuid)
    logger.info("Created project %s (%s)", project.name, project.uuid)
    return project


def _stored_key_matches(
    ctx: EngineContext, key_path: Path, public_key: rsa.RSAPublicKey
) -> bool:
    if not ctx.fs.is_file(key_path):
        return False
    try:
        stored = parse_public_key(ctx.fs.read_bytes(key_path))
    except (FormatError, FileAccessError):
        return False
    return stored.public_numbers() == public_key.public_numbers()


def register_user(
    ctx: EngineContext,
    user_id: str,
    public_key_data: bytes,
    *,
    name: str = "",
    email: str = "",
    grant: bool = False,
    overwrite: bool = False,
    mode: Mode = Mode.EXECUTE,
) -> AccessStatus:
    """Add a user's public key to the project.

    The user is left pending unless ``grant`` is set, in which case the
    caller unwraps the secret and wraps it for the new user straight away.
    An envelope left over from a different key no longer opens, so it is
    removed; re-registering the same key keeps a working envelope. Returns
    the status the user ends up with on disk.
    """
    project = load_project(ctx)
    public_key = parse_public_key(public_key_data)

    key_path = ctx.layout.public_key_path(user_id)
    envelope_path = ctx.layout.envelope_path(user_id)
    if ctx.fs.exists(key_path) and not overwrite:
        msg = f"public key already exists for user {user_id}"
        raise ValidationError(msg)

    envelope = None
    if grant:
        secret = unlock_secret(ctx, project)
        envelope = wrap_secret_for_user(secret, public_key)

    has_envelope = ctx.fs.is_file(envelope_path)
    keep_envelope = has_envelope and _stored_key_matches(ctx, key_path, public_key)
    if envelope is not None or keep_envelope:
        status = AccessStatus.ACTIVE
    else:
        status = AccessStatus.PENDING
    if mode == Mode.PREVIEW:
        return status

    ctx.fs.write_bytes(key_path, public_key_pem(public_key), ctx.config.PUBLIC_FILE_MODE)
    if envelope is not None:
        ctx.fs.write_bytes(envelope_path, envelope, ctx.config.PRIVATE_FILE_MODE)
    elif has_envelope and not keep_envelope:
        ctx.fs.remove(envelope_path)
        logger.info("Removed envelope of user %s wrapped for a previous key", user_id)
    project.users[user_id] = UserEntry(name=name, email=email)
    save_project(ctx, project)
    audit.record(ctx, "register", target_user=user_id)
    logger.info("Registered user %s as %s", user_id, status.value)
    return status
