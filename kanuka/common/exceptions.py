"""
Custom exceptions for the secrets engine.

Every error renders as ``"<prefix>: <message>"`` so callers can match on the
prefix without importing these classes.
"""

from __future__ import annotations

from pathlib import Path


class KanukaError(Exception):
    """Base class for all engine errors."""

    prefix = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.prefix}: {self.message}"


class FormatError(KanukaError):
    """Key bytes do not parse under any supported encoding."""

    prefix = "format error"


class EmptyKeyError(FormatError):
    """Key input was empty."""

    def __init__(self, what: str = "key") -> None:
        super().__init__(f"{what} is empty")


class PassphraseRequiredError(FormatError):
    """Private key is encrypted and no (or a wrong) passphrase was supplied."""

    def __init__(self, message: str = "private key is passphrase-protected") -> None:
        super().__init__(message)


class AccessDeniedError(KanukaError):
    """Caller has no usable envelope for the project."""

    prefix = "access denied"

    def __init__(self, user_id: str, reason: str) -> None:
        super().__init__(f"user {user_id} does not have access to this project ({reason})")
        self.user_id = user_id
        self.reason = reason


class DecryptionError(KanukaError):
    """Authentication failed on an envelope or a content file."""

    prefix = "decryption failed"

    ENVELOPE = "envelope"
    CONTENT = "content"

    def __init__(
        self, target: str, message: str, path: Path | None = None
    ) -> None:
        location = f" ({path})" if path is not None else ""
        what = "your access envelope" if target == self.ENVELOPE else "content file"
        super().__init__(f"{what}{location}: {message}")
        self.target = target
        self.path = path


class NotFoundError(KanukaError):
    """Requested file or pattern matched nothing."""

    prefix = "not found"


class ProjectNotInitializedError(NotFoundError):
    def __init__(self, root: Path) -> None:
        super().__init__(f"project has not been initialized at {root}")
        self.root = root


class ValidationError(KanukaError):
    """Target is not the expected kind for the requested operation."""

    prefix = "invalid target"


class FileAccessError(KanukaError):
    """Wraps an OSError raised while touching the filesystem."""

    prefix = "io error"

    def __init__(self, path: Path, os_error: OSError) -> None:
        reason = os_error.strerror or str(os_error)
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.os_error = os_error
        self.__cause__ = os_error
