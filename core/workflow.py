"""
Per-session card operations shared by the GUI and the headless listener.
Each method assumes exclusive use of the connected card for its whole run.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from Crypto.PublicKey.RSA import RsaKey

from .apdu import bytes_to_hex
from .auth import AuthResult, KeyChangeResult, MutualAuthenticator, change_master_key
from .channel import CardChannel, Transmit
from .config import AppConfig
from .desfire import DESFireProtocol
from .errors import UnexpectedStatus
from .signing import CardSigner, SigningRecord
from .tag_memory import PageDump, TagMemory
from .write_policy import DEFAULT_WRITE_STRATEGIES, WriteStrategy, select_write_strategy

logger = logging.getLogger(__name__)

ACTIONS = ("info", "dump", "sign", "verify", "scan", "authenticate", "change-key")


class CardWorkflow:
    """Binds one card session to the protocol components."""

    def __init__(self, transmit: Transmit, config: AppConfig = AppConfig(),
                 sleep: Callable[[float], None] = time.sleep):
        self._config = config
        self._sleep = sleep
        self.channel = CardChannel(transmit)
        self.desfire = DESFireProtocol(self.channel)

    def memory(self, strategy: Optional[WriteStrategy] = None) -> TagMemory:
        build = (strategy or DEFAULT_WRITE_STRATEGIES[0]).build
        return TagMemory(self.channel, write_command=build,
                         write_delay=self._config.timing.write_settle_delay,
                         sleep=self._sleep)

    # ─── Ultralight / NTAG ──────────────────────────────────────────

    def tag_info(self) -> Dict:
        """UID, version analysis and application directory of a memory tag."""
        memory = self.memory()
        info = {"UID": bytes_to_hex(memory.get_uid())}
        try:
            info.update(memory.get_version().to_dict())
        except UnexpectedStatus as e:
            info["Version"] = f"unavailable ({e})"
        try:
            info["Application Directory"] = bytes_to_hex(memory.get_app_directory()) or "(empty)"
        except UnexpectedStatus as e:
            info["Application Directory"] = f"unavailable ({e})"
        return info

    def dump(self, start: int = 0, end: Optional[int] = None) -> List[PageDump]:
        return self.memory().dump(start, end)

    def sign(self, key: RsaKey,
             strategies: Sequence[WriteStrategy] = DEFAULT_WRITE_STRATEGIES) -> SigningRecord:
        """Find a write command the reader accepts, then mark the tag."""
        strategy = select_write_strategy(self.memory(), strategies)
        signer = CardSigner(self.memory(strategy), self._config.layout)
        return signer.sign(key)

    def verify(self, key: RsaKey) -> bool:
        return CardSigner(self.memory(), self._config.layout).verify(key)

    # ─── DESFire ────────────────────────────────────────────────────

    def desfire_scan(self) -> Dict:
        return self.desfire.scan_card()

    def authenticate(self, key: Optional[bytes] = None) -> AuthResult:
        key = self._config.master_key_bytes if key is None else key
        return MutualAuthenticator(self.channel, self._config.auth, self._sleep).authenticate(key)

    def change_key(self, current_key: Optional[bytes] = None,
                   new_key: Optional[bytes] = None) -> KeyChangeResult:
        current_key = self._config.master_key_bytes if current_key is None else current_key
        if new_key is None:
            if not self._config.new_master_key:
                raise ValueError("no new master key configured")
            new_key = self._config.new_master_key_bytes
        return change_master_key(self.channel, current_key, new_key,
                                 self._config.auth, self._sleep)

    # ─── Dispatch ───────────────────────────────────────────────────

    def run(self, action: str, key: Optional[RsaKey] = None):
        """Run one named action; used by the headless listener."""
        if action not in ACTIONS:
            raise ValueError(f"unknown action: {action}")
        if action in ("sign", "verify") and key is None:
            raise ValueError(f"{action} needs a signing key")

        if action == "info":
            return self.tag_info()
        elif action == "dump":
            return self.dump()
        elif action == "sign":
            return self.sign(key)
        elif action == "verify":
            return self.verify(key)
        elif action == "scan":
            return self.desfire_scan()
        elif action == "authenticate":
            return self.authenticate()
        return self.change_key()
