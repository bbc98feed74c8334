"""
Envelope codec: wraps the project secret for each user's RSA key.
"""

from __future__ import annotations

import logging

import nacl.utils
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from kanuka.common.config import Config
from kanuka.common.exceptions import DecryptionError, ValidationError
from kanuka.secrets.keys import KeyPair

logger = logging.getLogger(__name__)

SECRET_SIZE = Config().SECRET_SIZE

OAEP_PADDING = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)


def generate_secret() -> bytes:
    """Generate a new random project secret."""
    return nacl.utils.random(SECRET_SIZE)


def _check_secret(secret: bytes) -> None:
    if len(secret) != SECRET_SIZE:
        msg = f"project secret must be {SECRET_SIZE} bytes, got {len(secret)}"
        raise ValidationError(msg)


def wrap_secret_for_user(secret: bytes, user_public_key: rsa.RSAPublicKey) -> bytes:
    """Encrypt the project secret under a user's public key (RSA-OAEP/SHA-256)."""
    _check_secret(secret)
    envelope = user_public_key.encrypt(secret, OAEP_PADDING)
    logger.debug(
        "Wrapped project secret for rsa-%d key (%d bytes)",
        user_public_key.key_size,
        len(envelope),
    )
    return envelope


def unwrap_secret_for_caller(
    envelope: bytes, caller_key: KeyPair | rsa.RSAPrivateKey
) -> bytes:
    """Recover the project secret from the caller's envelope.

    Raises:
        DecryptionError: the envelope is empty, truncated, corrupt, or was
            wrapped for a different key.
    """
    private_key = caller_key.private_key if isinstance(caller_key, KeyPair) else caller_key
    if not envelope:
        raise DecryptionError(DecryptionError.ENVELOPE, "envelope is empty")
    try:
        secret = private_key.decrypt(envelope, OAEP_PADDING)
    except ValueError as err:
        raise DecryptionError(
            DecryptionError.ENVELOPE,
            "envelope is corrupt or was not wrapped for this key",
        ) from err
    if len(secret) != SECRET_SIZE:
        raise DecryptionError(
            DecryptionError.ENVELOPE,
            f"unwrapped secret has unexpected length {len(secret)}",
        )
    return secret
