"""
Signing key management.
Loads an RSA key pair from a PEM file, or generates and saves one.
"""

import logging
import os
from pathlib import Path
from typing import Union

from Crypto.PublicKey import RSA
from Crypto.PublicKey.RSA import RsaKey

logger = logging.getLogger(__name__)

DEFAULT_KEY_BITS = 2048


def generate_signing_key(bits: int = DEFAULT_KEY_BITS) -> RsaKey:
    return RSA.generate(bits)


def load_key(path: Union[str, Path]) -> RsaKey:
    """Load a private or public RSA key (PEM or DER)."""
    with open(path, "rb") as fh:
        return RSA.import_key(fh.read())


def save_key(key: RsaKey, path: Union[str, Path]):
    """Write the key as PEM. Private keys are created with mode 0600."""
    data = key.export_key(format="PEM")
    mode = 0o600 if key.has_private() else 0o644
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)


def load_or_create_signing_key(path: Union[str, Path],
                               bits: int = DEFAULT_KEY_BITS) -> RsaKey:
    """Generate-or-load: reuse the key at ``path`` if present."""
    path = Path(path)
    if path.exists():
        key = load_key(path)
        logger.info("Loaded existing signing key from %s (%d bits)", path, key.size_in_bits())
        return key

    key = generate_signing_key(bits)
    save_key(key, path)
    logger.info("Generated and saved new %d-bit signing key to %s", bits, path)
    return key


def export_public_key(key: RsaKey, path: Union[str, Path]):
    save_key(key.publickey(), path)
