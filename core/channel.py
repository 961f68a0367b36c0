"""
Card channel: the single point where commands meet the transmit primitive.
Every exchange emits one structured log record (operation, request, status,
outcome), so each protocol step is observable without the protocol code
printing anything itself.
"""

import logging
from typing import Callable, NamedTuple, Optional

from .apdu import APDUCommand, APDUResponse, bytes_to_hex, decode
from .errors import MalformedResponse

logger = logging.getLogger(__name__)

Transmit = Callable[[bytes], bytes]


class ExchangeRecord(NamedTuple):
    """Structured trace of one command/response exchange."""
    operation: str
    request: bytes
    status: Optional[int]
    outcome: str


class CardChannel:
    """Wraps a ``transmit(bytes) -> bytes`` callable with decoding and tracing."""

    def __init__(self, transmit: Transmit):
        self._transmit = transmit

    def exchange_raw(self, operation: str, command: APDUCommand) -> bytes:
        """Send a command and return the untouched reply frame."""
        request = command.to_bytes()
        raw = bytes(self._transmit(request))
        status = (raw[-2] << 8) | raw[-1] if len(raw) >= 2 else None
        self._trace(operation, request, status, bytes_to_hex(raw) or "(empty)")
        return raw

    def exchange(self, operation: str, command: APDUCommand) -> APDUResponse:
        """Send a command and decode payload + status word."""
        request = command.to_bytes()
        raw = bytes(self._transmit(request))
        try:
            response = decode(raw)
        except MalformedResponse:
            self._trace(operation, request, None, "malformed", logging.WARNING)
            raise
        self._trace(operation, request, response.sw, response.status_text)
        return response

    @staticmethod
    def _trace(operation: str, request: bytes, status: Optional[int],
               outcome: str, level: int = logging.DEBUG):
        record = ExchangeRecord(operation, request, status, outcome)
        sw = f"{status:04X}" if status is not None else "----"
        logger.log(
            level, "%s >> %s << %s %s",
            operation, bytes_to_hex(request), sw, outcome,
            extra={"exchange": record},
        )
