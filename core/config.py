"""
Configuration values for the tag signer.
Defaults describe an NTAG215 tag behind an ACR122U-class reader; a JSON file
can override any of them. Nothing here is process-wide mutable state: each
component receives the values it needs at construction time.
"""

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Union

# ─── NTAG215 Page Map ───────────────────────────────────────────────────────

NTAG215_PAGE_COUNT = 135
NTAG215_USER_START_PAGE = 4
NTAG215_USER_END_PAGE = 129
PAGE_SIZE = 4


@dataclass(frozen=True)
class TimingConfig:
    """Hardware pacing. Tags need time to commit EEPROM writes."""
    write_settle_delay: float = 0.05


@dataclass(frozen=True)
class SigningLayout:
    """Where the challenge and the truncated signature live on the tag."""
    challenge_page: int = 120
    challenge_read_pages: int = 2
    signature_page: int = 124
    signature_read_pages: int = 4
    challenge_length: int = 4
    truncated_signature_length: int = 8


@dataclass(frozen=True)
class AuthConfig:
    """Legacy DESFire AES handshake settings."""
    key_no: int = 0
    round_trip_delay: float = 0.2
    require_final_confirmation: bool = False


@dataclass(frozen=True)
class AppConfig:
    """Top-level settings for both front-ends."""
    key_file: str = "signing_key.pem"
    key_bits: int = 2048
    master_key: str = "00" * 16
    new_master_key: str = ""
    listen_action: str = "verify"
    timing: TimingConfig = field(default_factory=TimingConfig)
    layout: SigningLayout = field(default_factory=SigningLayout)
    auth: AuthConfig = field(default_factory=AuthConfig)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "AppConfig":
        nested = {"timing": TimingConfig, "layout": SigningLayout, "auth": AuthConfig}
        config = cls()
        known = {f.name for f in fields(cls)}
        updates: Dict[str, Any] = {}
        for key, value in values.items():
            if key not in known:
                raise ValueError(f"unknown config key: {key}")
            if key in nested:
                sub = nested[key]
                sub_known = {f.name for f in fields(sub)}
                unknown = set(value) - sub_known
                if unknown:
                    raise ValueError(f"unknown {key} keys: {', '.join(sorted(unknown))}")
                updates[key] = replace(getattr(config, key), **value)
            else:
                updates[key] = value
        return replace(config, **updates)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "AppConfig":
        with open(path, "r", encoding="utf-8") as fh:
            return cls.from_dict(json.load(fh))

    @property
    def master_key_bytes(self) -> bytes:
        return bytes.fromhex(self.master_key)

    @property
    def new_master_key_bytes(self) -> bytes:
        return bytes.fromhex(self.new_master_key)
