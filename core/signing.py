"""
Card authenticity marks for NTAG215 tags.

Signing writes a 4-byte random challenge and the first 8 bytes of an
RSA-SHA256 PKCS#1 v1.5 signature over ``UID || challenge`` into fixed pages.
Verification reads them back and checks the stored bytes against the
signature the key produces for the same message.

Eight bytes of an RSA signature are not a signature: this is an anti-cloning
tamper-evidence heuristic sized to fit two tag pages. Treat a positive result
as "this tag was marked by the holder of the key", nothing stronger.
"""

import hmac
import logging
from typing import Callable, NamedTuple

from Crypto.Hash import SHA256
from Crypto.PublicKey.RSA import RsaKey
from Crypto.Random import get_random_bytes
from Crypto.Signature import pkcs1_15

from .apdu import bytes_to_hex
from .config import SigningLayout
from .errors import MalformedResponse, ShortRead, UnexpectedStatus
from .tag_memory import TagMemory

logger = logging.getLogger(__name__)


class SigningRecord(NamedTuple):
    """What a successful sign() left on the tag."""
    uid: bytes
    challenge: bytes
    truncated_signature: bytes


def signed_message(uid: bytes, challenge: bytes) -> bytes:
    return bytes(uid) + bytes(challenge)


def full_signature(key: RsaKey, message: bytes) -> bytes:
    return pkcs1_15.new(key).sign(SHA256.new(message))


def modulus_length(key: RsaKey) -> int:
    return (key.size_in_bits() + 7) // 8


def pad_signature(truncated: bytes, key: RsaKey) -> bytes:
    """Zero-pad a truncated signature to the key's modulus length."""
    return bytes(truncated).ljust(modulus_length(key), b"\x00")


def truncated_signature_matches(key: RsaKey, message: bytes, truncated: bytes,
                                length: int) -> bool:
    """
    Compare stored signature bytes with the signature over ``message``.
    A deterministic PKCS#1 v1.5 signature is recomputed when the private half
    is available; with only a public key the padded value must verify as a
    complete signature, which a truncated one never does.
    """
    padded = pad_signature(truncated[:length], key)
    if key.has_private():
        expected = pad_signature(full_signature(key, message)[:length], key)
        return hmac.compare_digest(padded, expected)

    try:
        pkcs1_15.new(key).verify(SHA256.new(message), padded)
    except (ValueError, TypeError):
        return False
    return True


class CardSigner:
    """Writes and checks authenticity marks on one tag session."""

    def __init__(self, memory: TagMemory, layout: SigningLayout = SigningLayout(),
                 random_bytes: Callable[[int], bytes] = get_random_bytes):
        self._memory = memory
        self._layout = layout
        self._random_bytes = random_bytes

    def sign(self, key: RsaKey) -> SigningRecord:
        """
        Mark the tag. Any failed write aborts with its error; there is no
        rollback, so the tag may hold a challenge without a valid signature.
        """
        layout = self._layout
        uid = self._memory.get_uid()
        logger.info("Signing tag %s", bytes_to_hex(uid))

        challenge = bytes(self._random_bytes(layout.challenge_length))
        self._memory.write_pages(layout.challenge_page, challenge)
        logger.info("Challenge written to page %d", layout.challenge_page)

        signature = full_signature(key, signed_message(uid, challenge))
        truncated = signature[:layout.truncated_signature_length]
        self._memory.write_pages(layout.signature_page, truncated)
        logger.info("Truncated signature written to pages %d..%d", layout.signature_page,
                    layout.signature_page + layout.truncated_signature_length // 4 - 1)

        return SigningRecord(uid, challenge, truncated)

    def read_record(self) -> SigningRecord:
        """Read UID, challenge slot and signature slot. Short reads raise."""
        layout = self._layout
        uid = self._memory.get_uid()
        challenge_slot = self._memory.read_pages(layout.challenge_page, layout.challenge_read_pages)
        signature_slot = self._memory.read_pages(layout.signature_page, layout.signature_read_pages)
        return SigningRecord(
            uid,
            challenge_slot[:layout.challenge_length],
            signature_slot[:layout.truncated_signature_length],
        )

    def verify(self, key: RsaKey) -> bool:
        """
        True when the tag carries a valid mark for its UID.
        A missing or partial record is a failed verification, not an error;
        only transport faults propagate.
        """
        try:
            record = self.read_record()
        except (ShortRead, UnexpectedStatus, MalformedResponse) as e:
            logger.warning("Verification failed, record unreadable: %s", e)
            return False

        message = signed_message(record.uid, record.challenge)
        valid = truncated_signature_matches(
            key, message, record.truncated_signature, self._layout.truncated_signature_length)
        if valid:
            logger.info("Tag %s verified", bytes_to_hex(record.uid))
        else:
            logger.warning("Tag %s failed verification", bytes_to_hex(record.uid))
        return valid
