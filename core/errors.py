"""
Error kinds raised by the protocol layer.
Every failure path maps to one of these, so callers can branch on the type
(and on the status word where the card answered) instead of on falsy returns.
"""

from typing import Optional


class CardError(Exception):
    """Base class for all card protocol errors."""


class TransportFault(CardError):
    """No response from the reader, or the card session was lost."""


class MalformedResponse(CardError):
    """Response too short or structurally invalid for the command."""


class InvalidVersionResponse(MalformedResponse):
    """DESFire GetVersion returned fewer bytes than the hardware block."""


class UnexpectedStatus(CardError):
    """The card answered, but not with the expected status word.
    ``status_word`` carries the 16-bit SW1SW2 so the caller can decide
    whether to retry, try an alternate command, or abort.
    """

    def __init__(self, msg: str, status_word: int):
        super().__init__(f"{msg} (SW={status_word:04X})")
        self.status_word = status_word

    @property
    def sw1(self) -> int:
        return (self.status_word >> 8) & 0xFF

    @property
    def sw2(self) -> int:
        return self.status_word & 0xFF


class CommandFailed(UnexpectedStatus):
    """A DESFire native command did not return a 0x91 class status."""

    def __init__(self, command: str, status_word: int):
        super().__init__(f"{command} failed", status_word)
        self.command = command


class OutOfRange(CardError, ValueError):
    """Page index outside the writable user area."""

    def __init__(self, page: int, low: int, high: int):
        super().__init__(f"page {page} outside {low}..{high}")
        self.page = page


class ShortRead(CardError):
    """Fewer bytes came back than the operation required."""

    def __init__(self, what: str, expected: int, got: int):
        super().__init__(f"{what}: expected {expected} bytes, got {got}")
        self.expected = expected
        self.got = got


class ShortChallenge(ShortRead):
    """The card's authentication challenge frame was truncated."""


class ShortWrite(CardError):
    """Payload does not fill whole pages; a partial page cannot be written."""

    def __init__(self, what: str, expected: int, got: int, page: Optional[int] = None):
        where = f" at page {page}" if page is not None else ""
        super().__init__(f"{what}{where}: expected {expected} bytes, got {got}")
        self.expected = expected
        self.got = got
        self.page = page
