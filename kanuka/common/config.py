"""
Configuration settings for the secrets engine.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path


def _log_level_from_env(default: int) -> int:
    name = os.getenv("KANUKA_LOG_LEVEL")
    if not name:
        return default
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


class Config:
    """Central configuration class for all engine settings."""

    def __init__(self) -> None:
        # Project metadata layout
        self.KANUKA_DIR_NAME: str = ".kanuka"
        self.PUBLIC_KEYS_DIR: str = "public_keys"
        self.SECRETS_DIR: str = "secrets"
        self.PROJECT_FILE: str = "project.json"
        self.AUDIT_FILE: str = "audit.jsonl"

        # Naming conventions
        self.PUBLIC_KEY_SUFFIX: str = ".pub"
        self.ENVELOPE_SUFFIX: str = ".kanuka"
        self.CONTENT_SUFFIX: str = ".kanuka"
        self.ENV_MARKER: str = ".env"

        # Cryptographic parameters
        self.SECRET_SIZE: int = 32  # XSalsa20-Poly1305 key
        self.NONCE_SIZE: int = 24
        self.RSA_KEY_SIZE: int = int(os.getenv("KANUKA_RSA_KEY_SIZE", "2048"))
        self.RSA_PUBLIC_EXPONENT: int = 65537

        # User-local key storage (private keys never enter the project)
        self.USER_KEYS_DIR: Path = Path(
            os.getenv(
                "KANUKA_KEYS_DIR",
                str(Path.home() / ".local" / "share" / "kanuka" / "keys"),
            )
        )
        self.PRIVATE_KEY_NAME: str = "privkey"
        self.PUBLIC_KEY_NAME: str = "pubkey.pub"

        # File permissions
        self.PRIVATE_FILE_MODE: int = 0o600
        self.PUBLIC_FILE_MODE: int = 0o644
        self.PLAINTEXT_FILE_MODE: int = 0o644

        # Logging
        self.LOG_LEVEL: int = _log_level_from_env(logging.WARNING)

    def user_key_dir(self, project_uuid: str) -> Path:
        """Directory holding the local key pair for one project."""
        return self.USER_KEYS_DIR / project_uuid

    def private_key_path(self, project_uuid: str) -> Path:
        return self.user_key_dir(project_uuid) / self.PRIVATE_KEY_NAME

    def public_key_path(self, project_uuid: str) -> Path:
        return self.user_key_dir(project_uuid) / self.PUBLIC_KEY_NAME
