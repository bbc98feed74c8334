"""
Key material: parsing, generating and exporting RSA key pairs.

Private keys are accepted as PKCS#1 PEM, PKCS#8 PEM, OpenSSH or DER. Each
encoding has one decoder and the decoders are tried in a fixed order.
Nothing in this module logs key bytes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from kanuka.common.config import Config
from kanuka.common.exceptions import EmptyKeyError, FormatError, PassphraseRequiredError

logger = logging.getLogger(__name__)

PrivateKeyLoader = Callable[[bytes, "bytes | None"], object]
PublicKeyLoader = Callable[[bytes], object]


def _load_pem_private(data: bytes, passphrase: bytes | None) -> object:
    return serialization.load_pem_private_key(data, password=passphrase)


def _load_openssh_private(data: bytes, passphrase: bytes | None) -> object:
    return serialization.load_ssh_private_key(data, password=passphrase)


def _load_der_private(data: bytes, passphrase: bytes | None) -> object:
    return serialization.load_der_private_key(data, password=passphrase)


# Order matters: text encodings first, raw DER last. The flag says whether
# the decoder gets whitespace-stripped input; DER must see the exact bytes.
PRIVATE_KEY_DECODERS: tuple[tuple[str, PrivateKeyLoader, bool], ...] = (
    ("pem", _load_pem_private, True),
    ("openssh", _load_openssh_private, True),
    ("der", _load_der_private, False),
)

PUBLIC_KEY_DECODERS: tuple[tuple[str, PublicKeyLoader, bool], ...] = (
    ("pem", serialization.load_pem_public_key, True),
    ("openssh", serialization.load_ssh_public_key, True),
    ("der", serialization.load_der_public_key, False),
)


@dataclass(frozen=True, repr=False)
class KeyPair:
    """An RSA private key and its public half."""

    private_key: rsa.RSAPrivateKey

    def __repr__(self) -> str:
        return f"KeyPair(rsa-{self.private_key.key_size})"

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self.private_key.public_key()

    def private_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def public_pem(self) -> bytes:
        return public_key_pem(self.public_key)

    def matches(self, public_key: rsa.RSAPublicKey) -> bool:
        """Whether ``public_key`` is the public half of this pair."""
        return public_key.public_numbers() == self.public_key.public_numbers()


def public_key_pem(public_key: rsa.RSAPublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def generate_key_pair(config: Config | None = None) -> KeyPair:
    """Generate a fresh RSA key pair."""
    config = config or Config()
    private_key = rsa.generate_private_key(
        public_exponent=config.RSA_PUBLIC_EXPONENT, key_size=config.RSA_KEY_SIZE
    )
    return KeyPair(private_key)


def _try_private_decoder(
    loader: PrivateKeyLoader, data: bytes, passphrase: bytes | None
) -> object:
    try:
        return loader(data, passphrase)
    except TypeError as err:
        # cryptography signals password mismatches with TypeError
        if passphrase is None:
            raise PassphraseRequiredError from err
        return loader(data, None)


def parse_private_key(data: bytes, passphrase: bytes | None = None) -> KeyPair:
    """Parse a private key, trying each supported encoding in order.

    Raises:
        EmptyKeyError: ``data`` is empty or whitespace.
        PassphraseRequiredError: the key is encrypted and no passphrase was given.
        FormatError: no decoder accepted the bytes, or the key is not RSA.
    """
    text = data.strip() if data else b""
    if not text:
        raise EmptyKeyError("private key")

    failures: list[str] = []
    for name, loader, strip in PRIVATE_KEY_DECODERS:
        try:
            key = _try_private_decoder(loader, text if strip else data, passphrase)
        except (ValueError, UnsupportedAlgorithm) as err:
            if passphrase is not None and name == "pem" and b"ENCRYPTED" in text:
                raise PassphraseRequiredError("incorrect passphrase for private key") from err
            failures.append(name)
            continue
        if not isinstance(key, rsa.RSAPrivateKey):
            msg = f"unsupported key type {type(key).__name__}: only RSA keys are supported"
            raise FormatError(msg)
        logger.debug("Parsed private key using %s decoder", name)
        return KeyPair(key)

    msg = f"private key is not in a supported encoding (tried {', '.join(failures)})"
    raise FormatError(msg)


def parse_public_key(data: bytes) -> rsa.RSAPublicKey:
    """Parse an RSA public key from PEM, OpenSSH or DER bytes.

    Certificates, non-RSA keys and garbage all raise ``FormatError``; the
    caller decides whether that makes the key unusable or fatal.
    """
    text = data.strip() if data else b""
    if not text:
        raise EmptyKeyError("public key")

    for name, loader, strip in PUBLIC_KEY_DECODERS:
        try:
            key = loader(text if strip else data)
        except (ValueError, UnsupportedAlgorithm):
            continue
        if not isinstance(key, rsa.RSAPublicKey):
            msg = f"unsupported key type {type(key).__name__}: only RSA keys are supported"
            raise FormatError(msg)
        logger.debug("Parsed public key using %s decoder", name)
        return key

    msg = "public key is not in a supported encoding (tried pem, openssh, der)"
    raise FormatError(msg)
