"""
APDU (Application Protocol Data Unit) utilities.
Handles command construction, response parsing, and hex formatting
for ISO 7816-4, PC/SC pseudo-APDUs and DESFire wrapped APDUs.

The codec never interprets status words: the same two bytes mean different
things on the MIFARE/ISO path (90 00) and the DESFire native path (91 xx).
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import MalformedResponse


@dataclass(frozen=True)
class APDUCommand:
    """An ISO 7816-4 APDU command. Immutable once built."""

    cla: int
    ins: int
    p1: int
    p2: int
    data: bytes = b""
    le: Optional[int] = None

    def to_bytes(self) -> bytes:
        """Serialize for transmission."""
        return encode(self.cla, self.ins, self.p1, self.p2, self.data or None, self.le)

    def __repr__(self):
        return f"APDU({bytes_to_hex(self.to_bytes())})"


@dataclass(frozen=True)
class APDUResponse:
    """An APDU response: payload plus the two-byte status trailer."""

    data: bytes
    sw1: int
    sw2: int

    @property
    def sw(self) -> int:
        return (self.sw1 << 8) | self.sw2

    @property
    def status_text(self) -> str:
        """Human-readable status."""
        status_map = {
            0x9000: "Success",
            0x9100: "Success (DESFire)",
            0x91AF: "Additional frame expected",
            0x917E: "Additional frame expected (legacy auth)",
            0x911C: "Illegal command code",
            0x911E: "Integrity error",
            0x9140: "No such key",
            0x919D: "Permission denied",
            0x919E: "Parameter error",
            0x91A0: "Application not found",
            0x91AE: "Authentication error",
            0x91BE: "Boundary error",
            0x91CA: "Command aborted",
            0x91F0: "File not found",
            0x6300: "Operation failed",
            0x6700: "Wrong length",
            0x6981: "Command incompatible",
            0x6A81: "Function not supported",
            0x6A82: "Application/File not found",
            0x6A86: "Incorrect P1/P2",
            0x6D00: "Instruction not supported",
            0x6E00: "Class not supported",
        }
        return status_map.get(self.sw, f"Unknown (0x{self.sw:04X})")

    def __repr__(self):
        return f"Response(data={bytes_to_hex(self.data)}, SW={self.sw:04X})"


def encode(cla: int, ins: int, p1: int, p2: int,
           data: Optional[bytes] = None, le: Optional[int] = None) -> bytes:
    """Build command bytes. Lc is added only with data, Le only when given."""
    cmd = bytearray([cla, ins, p1, p2])
    if data:
        if len(data) > 255:
            raise ValueError("short APDU data is limited to 255 bytes")
        cmd.append(len(data))
        cmd.extend(data)
    if le is not None:
        cmd.append(le & 0xFF)
    return bytes(cmd)


def decode(raw: Iterable[int]) -> APDUResponse:
    """Split a raw reply into payload and status word."""
    raw = bytes(raw)
    if len(raw) < 2:
        raise MalformedResponse(f"response of {len(raw)} byte(s) has no status word")
    return APDUResponse(raw[:-2], raw[-2], raw[-1])


# ─── Command Builders ───────────────────────────────────────────────────────

def desfire_command(cmd_code: int, data: Optional[bytes] = None) -> APDUCommand:
    """Create a DESFire wrapped APDU command (CLA=0x90)."""
    return APDUCommand(
        cla=0x90,
        ins=cmd_code,
        p1=0x00,
        p2=0x00,
        data=bytes(data or b""),
        le=0x00
    )


def pcsc_get_uid() -> APDUCommand:
    """PC/SC pseudo-APDU FF CA 00 00: card UID."""
    return APDUCommand(cla=0xFF, ins=0xCA, p1=0x00, p2=0x00, le=0x00)


def pcsc_get_version() -> APDUCommand:
    """PC/SC GET DATA FF CA 00 03: Ultralight version block."""
    return APDUCommand(cla=0xFF, ins=0xCA, p1=0x00, p2=0x03, le=0x00)


def pcsc_get_app_directory() -> APDUCommand:
    """PC/SC GET DATA FF CA 01 00: application directory (if any)."""
    return APDUCommand(cla=0xFF, ins=0xCA, p1=0x01, p2=0x00, le=0x00)


def read_page_command(page: int) -> APDUCommand:
    """READ BINARY of one 4-byte page (FF B0 00 page 04)."""
    return APDUCommand(cla=0xFF, ins=0xB0, p1=0x00, p2=page & 0xFF, le=0x04)


def update_binary_command(page: int, data: bytes) -> APDUCommand:
    """UPDATE BINARY of one 4-byte page (FF D6 00 page 04 data)."""
    return APDUCommand(cla=0xFF, ins=0xD6, p1=0x00, p2=page & 0xFF, data=bytes(data))


def mifare_write_command(page: int, data: bytes) -> APDUCommand:
    """Alternate MIFARE WRITE understood by some reader firmware (FF F0)."""
    return APDUCommand(cla=0xFF, ins=0xF0, p1=0x00, p2=page & 0xFF, data=bytes(data))


# ─── Hex Utilities ──────────────────────────────────────────────────────────

def bytes_to_hex(data: Iterable[int], separator: str = " ") -> str:
    """Convert bytes to hex string."""
    return separator.join(f"{b:02X}" for b in data)


def hex_to_bytes(hex_string: str) -> bytes:
    """Convert hex string to bytes."""
    hex_string = hex_string.replace(" ", "").replace(":", "").replace("-", "")
    if len(hex_string) % 2 != 0:
        hex_string = "0" + hex_string
    return bytes.fromhex(hex_string)


def ascii_projection(data: Iterable[int]) -> str:
    """Printable ASCII view of data, '.' for anything else."""
    return "".join(chr(b) if 32 <= b < 127 else "." for b in data)
