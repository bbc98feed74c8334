"""
Key generator for a user's per-project RSA key pair.
"""

from __future__ import annotations

import logging

from kanuka.common.config import Config
from kanuka.common.interfaces import FileSystem  # noqa: TC001
from kanuka.secrets.filesystem import LocalFileSystem
from kanuka.secrets.keys import KeyPair, generate_key_pair

logger = logging.getLogger(__name__)


class KeyGenerator:
    """Creates and stores the local key pair used to access one project."""

    def __init__(self, config: Config | None = None, fs: FileSystem | None = None):
        self.config = config or Config()
        self.fs = fs or LocalFileSystem()

    def generate_keys(self, project_uuid: str) -> KeyPair:
        """Generate and save a key pair under the user's key directory."""
        logger.info("Generating RSA-%d key pair...", self.config.RSA_KEY_SIZE)
        key_pair = generate_key_pair(self.config)

        private_path = self.config.private_key_path(project_uuid)
        public_path = self.config.public_key_path(project_uuid)

        self.fs.write_bytes(
            private_path, key_pair.private_pem(), self.config.PRIVATE_FILE_MODE
        )
        self.fs.write_bytes(
            public_path, key_pair.public_pem(), self.config.PUBLIC_FILE_MODE
        )

        logger.info("Keys generated and saved:")
        logger.info("  Private: %s", private_path)
        logger.info("  Public: %s", public_path)
        return key_pair
