"""
MIFARE DESFire EV3 protocol driver.
Stateless command sequencer for card interrogation: version, application
directory, application selection and file settings.

Status semantics belong here: a native command succeeds only with a 0x91
class status word. Anything else raises CommandFailed carrying the word, and
the caller decides whether to retry or abort.
"""

import logging
from enum import IntEnum
from typing import Dict, Iterator, Optional

from .apdu import APDUResponse, desfire_command
from .channel import CardChannel
from .errors import CommandFailed, InvalidVersionResponse, MalformedResponse

logger = logging.getLogger(__name__)

DESFIRE_STATUS = 0x91
DESFIRE_OK = 0x00
DESFIRE_ADDITIONAL_FRAME = 0xAF

AID_LENGTH = 3


# ─── DESFire Command Codes ──────────────────────────────────────────────────

class DESFireCmd(IntEnum):
    """DESFire native command codes."""
    AUTHENTICATE_LEGACY = 0x0A
    CHANGE_KEY = 0xC4
    GET_VERSION = 0x60
    GET_APPLICATION_IDS = 0x6A
    SELECT_APPLICATION = 0x5A
    GET_FILE_IDS = 0x6F
    GET_FILE_SETTINGS = 0xF5
    ADDITIONAL_FRAME = 0xAF


class DESFireFileType(IntEnum):
    """DESFire file types."""
    STANDARD_DATA = 0x00
    BACKUP_DATA = 0x01
    VALUE = 0x02
    LINEAR_RECORD = 0x03
    CYCLIC_RECORD = 0x04
    TRANSACTION_MAC = 0x05


class DESFireCommMode(IntEnum):
    """DESFire communication modes."""
    PLAIN = 0x00
    MACED = 0x01
    ENCRYPTED = 0x03


STORAGE_SIZES = {
    0x16: "2 KB",
    0x18: "4 KB",
    0x1A: "8 KB",
    0x1C: "16 KB",
    0x1E: "32 KB",
}


# ─── Parsed Responses ───────────────────────────────────────────────────────

class DESFireVersionInfo:
    """Hardware block of the GetVersion response (first 7 bytes)."""

    def __init__(self, vendor_id: int, hw_type: int, subtype: int,
                 version_major: int, version_minor: int,
                 storage_size: int, protocol: int):
        self.vendor_id = vendor_id
        self.type = hw_type
        self.subtype = subtype
        self.version_major = version_major
        self.version_minor = version_minor
        self.storage_size = storage_size
        self.protocol = protocol

    @classmethod
    def from_bytes(cls, data: bytes) -> "DESFireVersionInfo":
        if len(data) < 7:
            raise InvalidVersionResponse(
                f"GetVersion returned {len(data)} byte(s), need 7")
        return cls(*data[:7])

    @property
    def storage(self) -> str:
        return STORAGE_SIZES.get(self.storage_size, f"Unknown (0x{self.storage_size:02X})")

    def to_dict(self) -> Dict:
        return {
            "Vendor": f"0x{self.vendor_id:02X}" + (" (NXP)" if self.vendor_id == 0x04 else ""),
            "Type": f"0x{self.type:02X}",
            "Subtype": f"0x{self.subtype:02X}",
            "Version": f"{self.version_major}.{self.version_minor}",
            "Storage": self.storage,
            "Protocol": f"0x{self.protocol:02X}",
        }


class DESFireFileSettings:
    """File settings, positional: type, comm settings, 16-bit access rights."""

    def __init__(self, data: bytes):
        if len(data) < 4:
            raise MalformedResponse(f"file settings need 4 bytes, got {len(data)}")
        self.raw = bytes(data)
        self.file_type = data[0]
        self.comm_settings = data[1]
        # Transmitted LSB first
        self.access_rights = data[2] | (data[3] << 8)

        self.read_access = (self.access_rights >> 12) & 0x0F
        self.write_access = (self.access_rights >> 8) & 0x0F
        self.rw_access = (self.access_rights >> 4) & 0x0F
        self.change_access = self.access_rights & 0x0F

    @property
    def file_type_name(self) -> str:
        try:
            return DESFireFileType(self.file_type).name
        except ValueError:
            return f"UNKNOWN_0x{self.file_type:02X}"

    @property
    def comm_mode_name(self) -> str:
        try:
            return DESFireCommMode(self.comm_settings).name
        except ValueError:
            return f"0x{self.comm_settings:02X}"

    @staticmethod
    def _access_key_str(key_num: int) -> str:
        if key_num == 0x0E:
            return "Free"
        elif key_num == 0x0F:
            return "Denied"
        return f"Key {key_num}"

    def to_dict(self) -> Dict:
        return {
            "File Type": self.file_type_name,
            "Communication": self.comm_mode_name,
            "Read Access": self._access_key_str(self.read_access),
            "Write Access": self._access_key_str(self.write_access),
            "Read/Write Access": self._access_key_str(self.rw_access),
            "Change Access": self._access_key_str(self.change_access),
        }


def aid_to_hex(aid: int) -> str:
    return f"{aid:06X}"


# ─── DESFire Protocol Driver ────────────────────────────────────────────────

class DESFireProtocol:
    """
    DESFire EV3 interrogation commands.
    Holds no session state; every method is one request/response.
    """

    def __init__(self, channel: CardChannel):
        self._channel = channel

    def _send(self, cmd: DESFireCmd, data: Optional[bytes] = None) -> APDUResponse:
        """Send a native command and enforce the 0x91 status class."""
        response = self._channel.exchange(cmd.name, desfire_command(cmd, data))
        if response.sw1 != DESFIRE_STATUS or response.sw2 not in (DESFIRE_OK, DESFIRE_ADDITIONAL_FRAME):
            raise CommandFailed(cmd.name, response.sw)
        return response

    def get_version(self) -> DESFireVersionInfo:
        """Hardware vendor, type, version, storage size and protocol."""
        response = self._send(DESFireCmd.GET_VERSION)
        return DESFireVersionInfo.from_bytes(response.data)

    def get_application_ids(self) -> Iterator[int]:
        """
        Application IDs on the card, lazily parsed in 3-byte strides.
        The command is sent and the payload length validated before the
        iterator is returned, so a bad length never yields a partial list.
        """
        data = self._send(DESFireCmd.GET_APPLICATION_IDS).data
        if len(data) % AID_LENGTH:
            raise MalformedResponse(
                f"application id payload of {len(data)} bytes is not a multiple of {AID_LENGTH}")
        return self._iter_aids(data)

    @staticmethod
    def _iter_aids(data: bytes) -> Iterator[int]:
        for i in range(0, len(data), AID_LENGTH):
            yield int.from_bytes(data[i:i + AID_LENGTH], "little")

    def select_application(self, aid: int):
        """Select an application; sends the low 3 bytes of the AID."""
        self._send(DESFireCmd.SELECT_APPLICATION, aid.to_bytes(4, "little")[:AID_LENGTH])
        logger.info("Selected application %s", aid_to_hex(aid))

    def select_picc(self):
        """Select PICC level (AID 000000)."""
        self.select_application(0x000000)

    def get_file_ids(self) -> bytes:
        """File IDs of the selected application, one byte each."""
        return self._send(DESFireCmd.GET_FILE_IDS).data

    def get_file_settings(self, file_id: int) -> DESFireFileSettings:
        response = self._send(DESFireCmd.GET_FILE_SETTINGS, bytes([file_id]))
        return DESFireFileSettings(response.data)

    # ─── Utility ─────────────────────────────────────────────────────────

    def scan_card(self) -> Dict:
        """
        Perform a full card scan: version, applications, files.
        Per-application failures are recorded in the result with their status
        word; failures at PICC level propagate.
        """
        result = {"version": self.get_version().to_dict(), "applications": []}

        for aid in list(self.get_application_ids()):
            app_info = {"AID": aid_to_hex(aid)}
            try:
                self.select_application(aid)
                app_info["files"] = {
                    fid: self.get_file_settings(fid).to_dict()
                    for fid in self.get_file_ids()
                }
            except CommandFailed as e:
                logger.warning("Application %s: %s", aid_to_hex(aid), e)
                app_info["error"] = str(e)
            result["applications"].append(app_info)

        if result["applications"]:
            self.select_picc()

        logger.info("Scan found %d application(s)", len(result["applications"]))
        return result
