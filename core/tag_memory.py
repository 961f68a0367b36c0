"""
MIFARE Ultralight / NTAG215 memory model.
Page-addressed 4-byte reads and writes through PC/SC pseudo-APDUs, plus
version parsing and a hex/ASCII memory dump.
"""

import logging
import time
from enum import Enum
from typing import Callable, List, NamedTuple, Optional

from .apdu import (
    APDUCommand,
    APDUResponse,
    ascii_projection,
    bytes_to_hex,
    pcsc_get_app_directory,
    pcsc_get_uid,
    pcsc_get_version,
    read_page_command,
    update_binary_command,
)
from .channel import CardChannel
from .config import (
    NTAG215_PAGE_COUNT,
    NTAG215_USER_END_PAGE,
    NTAG215_USER_START_PAGE,
    PAGE_SIZE,
    TimingConfig,
)
from .errors import OutOfRange, ShortRead, ShortWrite, UnexpectedStatus

logger = logging.getLogger(__name__)

DEFAULT_WRITE_DELAY = TimingConfig().write_settle_delay

ISO_SUCCESS = 0x9000

WriteCommand = Callable[[int, bytes], APDUCommand]


# ─── Version Info ───────────────────────────────────────────────────────────

class TagHardware(Enum):
    """Hardware type discriminant from the first version byte."""
    ULTRALIGHT = 0x00
    ULTRALIGHT_C = 0x01
    ULTRALIGHT_EV1 = 0x02
    UNKNOWN = -1


HARDWARE_NAMES = {
    TagHardware.ULTRALIGHT: "MIFARE Ultralight",
    TagHardware.ULTRALIGHT_C: "MIFARE Ultralight C",
    TagHardware.ULTRALIGHT_EV1: "MIFARE Ultralight EV1",
}

HARDWARE_SECURITY = {
    TagHardware.ULTRALIGHT: "Basic (No Crypto)",
    TagHardware.ULTRALIGHT_C: "3DES Authentication",
}


class TagVersion(NamedTuple):
    """Parsed version block of an Ultralight-family tag."""
    hardware: TagHardware
    type_byte: int
    vendor_id: Optional[int]

    @property
    def card_type(self) -> str:
        if self.hardware is TagHardware.UNKNOWN:
            return f"Unknown Card Type: {self.type_byte:02X}"
        return HARDWARE_NAMES[self.hardware]

    @property
    def security(self) -> str:
        return HARDWARE_SECURITY.get(self.hardware, "")

    def to_dict(self) -> dict:
        result = {"Card Type": self.card_type}
        if self.security:
            result["Security Features"] = self.security
        if self.vendor_id is not None:
            result["Vendor ID"] = f"{self.vendor_id:02X}"
        return result


def parse_tag_version(data: bytes) -> TagVersion:
    """Interpret byte 0 as hardware type and byte 1 (if any) as vendor id."""
    if not data:
        raise ShortRead("version", 1, 0)
    try:
        hardware = TagHardware(data[0])
    except ValueError:
        hardware = TagHardware.UNKNOWN
    vendor_id = data[1] if len(data) >= 2 else None
    return TagVersion(hardware, data[0], vendor_id)


# ─── Memory Dump ────────────────────────────────────────────────────────────

class PageDump(NamedTuple):
    """One page of a memory dump; ``data`` is None when the read was refused."""
    index: int
    data: Optional[bytes]
    status: int

    def render(self) -> str:
        if self.data is None:
            return f"Page {self.index:02X}: -- (SW={self.status:04X})"
        return (f"Page {self.index:02X}: {bytes_to_hex(self.data, '-')}"
                f" | ASCII: {ascii_projection(self.data)}")


# ─── Tag Memory ─────────────────────────────────────────────────────────────

class TagMemory:
    """
    Page-level access to an NTAG215 user area (pages 4-129).
    The write primitive uses one command builder; choosing an alternate
    builder after a refusal is the caller's decision (see write_policy).
    """

    def __init__(self, channel: CardChannel,
                 write_command: WriteCommand = update_binary_command,
                 write_delay: float = DEFAULT_WRITE_DELAY,
                 sleep: Callable[[float], None] = time.sleep,
                 user_start: int = NTAG215_USER_START_PAGE,
                 user_end: int = NTAG215_USER_END_PAGE,
                 page_count: int = NTAG215_PAGE_COUNT):
        self._channel = channel
        self._write_command = write_command
        self._write_delay = write_delay
        self._sleep = sleep
        self.user_start = user_start
        self.user_end = user_end
        self.page_count = page_count

    def _check_user_page(self, page: int):
        if not self.user_start <= page <= self.user_end:
            raise OutOfRange(page, self.user_start, self.user_end)

    @staticmethod
    def _expect_success(response: APDUResponse, what: str):
        if response.sw != ISO_SUCCESS:
            raise UnexpectedStatus(f"{what} refused: {response.status_text}", response.sw)

    def _read(self, page: int) -> APDUResponse:
        return self._channel.exchange(f"READ PAGE {page}", read_page_command(page))

    # ─── Identification ──────────────────────────────────────────────

    def get_uid(self) -> bytes:
        """Read the card UID via the reader's GET DATA pseudo-APDU."""
        response = self._channel.exchange("GET UID", pcsc_get_uid())
        self._expect_success(response, "GET UID")
        if not response.data:
            raise ShortRead("UID", 4, 0)
        return response.data

    def get_version(self) -> TagVersion:
        response = self._channel.exchange("GET VERSION", pcsc_get_version())
        self._expect_success(response, "GET VERSION")
        return parse_tag_version(response.data)

    def get_app_directory(self) -> bytes:
        response = self._channel.exchange("GET APP DIRECTORY", pcsc_get_app_directory())
        self._expect_success(response, "GET APP DIRECTORY")
        return response.data

    # ─── Pages ───────────────────────────────────────────────────────

    def read_page(self, page: int) -> bytes:
        """Read one 4-byte user page."""
        self._check_user_page(page)
        response = self._read(page)
        self._expect_success(response, f"READ PAGE {page}")
        if len(response.data) < PAGE_SIZE:
            raise ShortRead(f"page {page}", PAGE_SIZE, len(response.data))
        return response.data[:PAGE_SIZE]

    def read_pages(self, start: int, count: int) -> bytes:
        """Read ``count`` consecutive pages; any short page fails the whole read."""
        return b"".join(self.read_page(start + i) for i in range(count))

    def write_page(self, page: int, data: bytes,
                   command: Optional[WriteCommand] = None):
        """Write one 4-byte user page, then wait for the tag to settle."""
        self._check_user_page(page)
        data = bytes(data)
        if len(data) != PAGE_SIZE:
            raise ShortWrite("page write", PAGE_SIZE, len(data), page)
        build = command or self._write_command
        response = self._channel.exchange(f"WRITE PAGE {page}", build(page, data))
        self._expect_success(response, f"WRITE PAGE {page}")
        self._sleep(self._write_delay)

    def write_pages(self, start: int, data: bytes):
        """Write whole pages starting at ``start``."""
        data = bytes(data)
        if len(data) % PAGE_SIZE:
            whole = PAGE_SIZE * (len(data) // PAGE_SIZE + 1)
            raise ShortWrite("multi-page write", whole, len(data), start)
        for i in range(0, len(data), PAGE_SIZE):
            self.write_page(start + i // PAGE_SIZE, data[i:i + PAGE_SIZE])

    def dump(self, start: int = 0, end: Optional[int] = None) -> List[PageDump]:
        """
        Read a contiguous page range for diagnostics.
        Reserved pages are allowed here; pages beyond the physical count are not.
        Pages the card refuses are reported with their status word.
        """
        if end is None:
            end = self.page_count - 1
        if not 0 <= start <= end < self.page_count:
            raise OutOfRange(end if start >= 0 else start, 0, self.page_count - 1)

        pages = []
        for page in range(start, end + 1):
            response = self._read(page)
            if response.sw == ISO_SUCCESS and len(response.data) >= PAGE_SIZE:
                pages.append(PageDump(page, response.data[:PAGE_SIZE], response.sw))
            else:
                pages.append(PageDump(page, None, response.sw))
        logger.info("Dumped pages %d..%d (%d unreadable)", start, end,
                    sum(1 for p in pages if p.data is None))
        return pages


def render_dump(pages: List[PageDump]) -> str:
    return "\n".join(page.render() for page in pages)
