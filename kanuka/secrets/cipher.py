"""
Authenticated encryption of file content under the project secret.

Content files are ``nonce || ciphertext_with_tag`` produced by NaCl's
secretbox (XSalsa20-Poly1305) with a fresh 24-byte random nonce per call.
"""

from __future__ import annotations

from pathlib import Path

import nacl.exceptions
from nacl.secret import SecretBox

from kanuka.common.exceptions import DecryptionError, ValidationError

NONCE_SIZE = SecretBox.NONCE_SIZE
MAC_SIZE = SecretBox.MACBYTES
KEY_SIZE = SecretBox.KEY_SIZE


def _box(secret: bytes) -> SecretBox:
    if len(secret) != KEY_SIZE:
        msg = f"project secret must be {KEY_SIZE} bytes, got {len(secret)}"
        raise ValidationError(msg)
    return SecretBox(secret)


def encrypt(secret: bytes, plaintext: bytes) -> bytes:
    """Encrypt ``plaintext``; returns ``nonce || ciphertext``."""
    # SecretBox draws a random nonce and prepends it
    return bytes(_box(secret).encrypt(plaintext))


def decrypt(secret: bytes, data: bytes, path: Path | None = None) -> bytes:
    """Verify and decrypt ``nonce || ciphertext``.

    No plaintext is returned unless the Poly1305 tag verifies.
    """
    box = _box(secret)
    if len(data) < NONCE_SIZE:
        raise DecryptionError(
            DecryptionError.CONTENT,
            f"data is shorter than the {NONCE_SIZE}-byte nonce",
            path,
        )
    if len(data) < NONCE_SIZE + MAC_SIZE:
        raise DecryptionError(
            DecryptionError.CONTENT, "data is missing its authentication tag", path
        )
    nonce, ciphertext = data[:NONCE_SIZE], data[NONCE_SIZE:]
    try:
        return box.decrypt(ciphertext, nonce)
    except nacl.exceptions.CryptoError as err:
        raise DecryptionError(
            DecryptionError.CONTENT,
            "authentication failed (corrupt, tampered or wrong key)",
            path,
        ) from err
