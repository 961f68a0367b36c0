"""
DESFire legacy AES mutual authentication.

Drives the three-round handshake observed on DESFire EV3 cards behind PC/SC
readers that report 91 7E as "additional frame":

    IDLE -> AWAITING_CHALLENGE -> CHALLENGE_RECEIVED -> RESPONSE_SENT
         -> AWAITING_CARD_PROOF -> AUTHENTICATED | FAILED

The host encrypts the card's 16-byte challenge with AES-128-CBC, zero IV and
no padding. Any transport fault, malformed frame or unexpected status moves
the machine to FAILED and aborts; there is no automatic retry.

When the card's proof frame carries data, the handshake is accepted without
the final confirmation round; when it repeats 91 7E a zero-length finalize
must return 90 00. A proof frame with data must end in 91 00, 90 00 or
91 AF; any other status fails the handshake. The card proof itself is not
checked against an expected value.
``AuthConfig.require_final_confirmation`` makes both paths finalize.
"""

import logging
import time
from enum import Enum
from typing import Callable, NamedTuple, Optional

from Crypto.Cipher import AES

from .apdu import APDUCommand, bytes_to_hex, decode
from .channel import CardChannel
from .config import AuthConfig
from .desfire import DESFireCmd
from .errors import CardError, ShortChallenge, UnexpectedStatus

logger = logging.getLogger(__name__)

AES_BLOCK = 16
KEY_LENGTH = 16

SW_ADDITIONAL_FRAME = 0x917E
SW_ISO_SUCCESS = 0x9000
SW_DESFIRE_SUCCESS = 0x9100
SW_DESFIRE_MORE = 0x91AF

PROOF_DATA_STATUSES = frozenset({SW_DESFIRE_SUCCESS, SW_ISO_SUCCESS, SW_DESFIRE_MORE})

CHALLENGE_OFFSET = 2
CHALLENGE_FRAME_LENGTH = CHALLENGE_OFFSET + AES_BLOCK


class AuthState(Enum):
    IDLE = "idle"
    AWAITING_CHALLENGE = "awaiting challenge"
    CHALLENGE_RECEIVED = "challenge received"
    RESPONSE_SENT = "response sent"
    AWAITING_CARD_PROOF = "awaiting card proof"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthResult(NamedTuple):
    """Outcome of one handshake. ``error`` says why it failed."""
    state: AuthState
    error: Optional[CardError] = None
    finalized: bool = False

    @property
    def success(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    @property
    def message(self) -> str:
        if self.success:
            return "Authentication successful"
        return f"Authentication failed: {self.error}"


def encrypt_challenge(challenge: bytes, key: bytes) -> bytes:
    """One AES-128-CBC block, zero IV, no padding."""
    if len(challenge) != AES_BLOCK:
        raise ValueError("challenge must be exactly one AES block")
    cipher = AES.new(bytes(key), AES.MODE_CBC, iv=bytes(AES_BLOCK))
    return cipher.encrypt(bytes(challenge))


# ─── Handshake Commands ─────────────────────────────────────────────────────

def initiate_command(key_no: int) -> APDUCommand:
    return APDUCommand(0x90, DESFireCmd.AUTHENTICATE_LEGACY, 0x00, 0x00, data=bytes([key_no]))


def fetch_challenge_command() -> APDUCommand:
    return APDUCommand(0x90, DESFireCmd.ADDITIONAL_FRAME, 0x01, 0x00, le=AES_BLOCK)


def host_response_command(encrypted: bytes) -> APDUCommand:
    return APDUCommand(0x90, DESFireCmd.ADDITIONAL_FRAME, 0x00, 0x00, data=encrypted)


def fetch_proof_command() -> APDUCommand:
    return APDUCommand(0x90, DESFireCmd.ADDITIONAL_FRAME, 0x00, 0x00, le=AES_BLOCK)


def finalize_command() -> APDUCommand:
    return APDUCommand(0x90, DESFireCmd.ADDITIONAL_FRAME, 0x00, 0x00, le=0x00)


# ─── State Machine ──────────────────────────────────────────────────────────

class AuthenticationSession:
    """Ephemeral handshake state. Never persisted, cleared when finished."""

    def __init__(self, key: bytes):
        self.key: Optional[bytes] = bytes(key)
        self.challenge: Optional[bytes] = None
        self.response: Optional[bytes] = None
        self.state = AuthState.IDLE

    def move(self, state: AuthState):
        logger.info("Auth: %s -> %s", self.state.value, state.value)
        self.state = state

    def discard(self):
        self.key = None
        self.challenge = None
        self.response = None


class MutualAuthenticator:
    """Runs one legacy AES handshake per call against key slot ``config.key_no``."""

    def __init__(self, channel: CardChannel, config: AuthConfig = AuthConfig(),
                 sleep: Callable[[float], None] = time.sleep):
        self._channel = channel
        self._config = config
        self._sleep = sleep

    def _pause(self):
        self._sleep(self._config.round_trip_delay)

    @staticmethod
    def _expect(raw: bytes, expected: int, step: str):
        sw = decode(raw).sw
        if sw != expected:
            raise UnexpectedStatus(f"{step}: expected {expected:04X}", sw)

    def authenticate(self, key: bytes) -> AuthResult:
        if len(key) != KEY_LENGTH:
            raise ValueError("AES key must be 16 bytes")

        session = AuthenticationSession(key)
        try:
            return self._run(session)
        except CardError as e:
            session.move(AuthState.FAILED)
            logger.warning("Authentication aborted: %s", e)
            return AuthResult(AuthState.FAILED, e)
        finally:
            session.discard()

    def _run(self, session: AuthenticationSession) -> AuthResult:
        channel = self._channel

        # Round 1: ask the card to start, key slot from config
        raw = channel.exchange_raw("AUTH INITIATE", initiate_command(self._config.key_no))
        self._expect(raw, SW_ADDITIONAL_FRAME, "AUTH INITIATE")
        session.move(AuthState.AWAITING_CHALLENGE)

        # Challenge sits after the leading status bytes of the raw frame
        self._pause()
        raw = channel.exchange_raw("AUTH CHALLENGE", fetch_challenge_command())
        if len(raw) < CHALLENGE_FRAME_LENGTH:
            raise ShortChallenge("challenge frame", CHALLENGE_FRAME_LENGTH, len(raw))
        session.challenge = raw[CHALLENGE_OFFSET:CHALLENGE_FRAME_LENGTH]
        session.move(AuthState.CHALLENGE_RECEIVED)
        logger.debug("Challenge: %s", bytes_to_hex(session.challenge))

        # Round 2: host response
        session.response = encrypt_challenge(session.challenge, session.key)
        self._pause()
        raw = channel.exchange_raw("AUTH RESPONSE", host_response_command(session.response))
        session.move(AuthState.RESPONSE_SENT)
        self._expect(raw, SW_ADDITIONAL_FRAME, "AUTH RESPONSE")

        # Round 3: card proof
        session.move(AuthState.AWAITING_CARD_PROOF)
        self._pause()
        raw = channel.exchange_raw("AUTH CARD PROOF", fetch_proof_command())
        proof = decode(raw)
        carries_data = len(proof.data) > 0

        if not carries_data and proof.sw != SW_ADDITIONAL_FRAME:
            raise UnexpectedStatus("AUTH CARD PROOF", proof.sw)

        if carries_data and proof.sw not in PROOF_DATA_STATUSES:
            raise UnexpectedStatus("AUTH CARD PROOF", proof.sw)

        if carries_data and not self._config.require_final_confirmation:
            logger.info("Card proof carried %d byte(s); no final round", len(raw) - 2)
            session.move(AuthState.AUTHENTICATED)
            return AuthResult(AuthState.AUTHENTICATED)

        self._pause()
        raw = channel.exchange_raw("AUTH FINALIZE", finalize_command())
        self._expect(raw, SW_ISO_SUCCESS, "AUTH FINALIZE")
        session.move(AuthState.AUTHENTICATED)
        return AuthResult(AuthState.AUTHENTICATED, finalized=True)


# ─── Key Change ─────────────────────────────────────────────────────────────

class KeyChangeResult(NamedTuple):
    changed: bool
    auth: AuthResult
    status: Optional[int] = None

    @property
    def message(self) -> str:
        if self.changed:
            return "Key change successful"
        if not self.auth.success:
            return f"Cannot change key: {self.auth.message}"
        return f"Key change refused (SW={self.status:04X})"


def change_key_command(key_no: int, new_key: bytes) -> APDUCommand:
    return APDUCommand(0x90, DESFireCmd.CHANGE_KEY, key_no, 0x00, data=bytes(new_key))


def change_master_key(channel: CardChannel, current_key: bytes, new_key: bytes,
                      config: AuthConfig = AuthConfig(),
                      sleep: Callable[[float], None] = time.sleep) -> KeyChangeResult:
    """
    Authenticate with ``current_key`` and replace the key in slot
    ``config.key_no`` with ``new_key``. Both keys come from the caller.
    """
    if len(new_key) != KEY_LENGTH:
        raise ValueError("new AES key must be 16 bytes")

    auth = MutualAuthenticator(channel, config, sleep).authenticate(current_key)
    if not auth.success:
        logger.warning("Key change skipped: %s", auth.message)
        return KeyChangeResult(False, auth)

    response = channel.exchange("CHANGE KEY", change_key_command(config.key_no, new_key))
    if response.sw != SW_DESFIRE_SUCCESS:
        logger.warning("Key change refused: %s", response.status_text)
        return KeyChangeResult(False, auth, response.sw)

    logger.info("Key %d changed", config.key_no)
    return KeyChangeResult(True, auth, response.sw)
