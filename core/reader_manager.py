"""
PC/SC Reader Manager.
Handles smart card reader enumeration, connection management,
card presence monitoring, and the raw transmit primitive.
"""

import logging
from typing import Callable, List, Optional, Tuple

from smartcard.CardMonitoring import CardMonitor, CardObserver
from smartcard.Exceptions import (
    CardConnectionException,
    NoCardException,
    NoReadersException,
)
from smartcard.System import readers as list_readers

from .apdu import bytes_to_hex
from .errors import TransportFault

logger = logging.getLogger(__name__)


class SmartCardReader:
    """Represents a smart card reader and its (optional) card connection."""

    def __init__(self, name: str, reader_obj=None):
        self.name = name
        self._reader = reader_obj
        self._connection = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def connect(self, protocol=None) -> Tuple[bool, str]:
        """Connect to a card in this reader."""
        try:
            connection = self._reader.createConnection()
            if protocol:
                connection.connect(protocol)
            else:
                connection.connect()
        except NoCardException:
            return False, "No card present"
        except CardConnectionException as e:
            return False, f"Connection failed: {e}"
        self._connection = connection
        return True, "Connected"

    def disconnect(self):
        """Disconnect from the card. A card already gone is not an error."""
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.disconnect()
        except CardConnectionException as e:
            logger.debug("Disconnect from %s: %s", self.name, e)

    def get_atr(self) -> Optional[bytes]:
        """Get the ATR of the connected card."""
        if self._connection is None:
            return None
        return bytes(self._connection.getATR())

    def transmit(self, request: bytes) -> bytes:
        """
        Send raw command bytes and return the reply with its status trailer.
        Raises TransportFault when there is no session or it was lost.
        """
        if self._connection is None:
            raise TransportFault(f"not connected to a card in {self.name}")

        try:
            data, sw1, sw2 = self._connection.transmit(list(request))
        except CardConnectionException as e:
            self._connection = None
            raise TransportFault(f"transmit failed on {self.name}: {e}") from e
        return bytes(data) + bytes([sw1, sw2])


class ReaderManager:
    """Manages smart card readers and card monitoring."""

    def __init__(self):
        self._readers: List[SmartCardReader] = []
        self._active_reader: Optional[SmartCardReader] = None
        self._card_monitor: Optional[CardMonitor] = None
        self._observer: Optional[_CardObserverCallback] = None

    @property
    def readers(self) -> List[SmartCardReader]:
        return self._readers

    @property
    def active_reader(self) -> Optional[SmartCardReader]:
        return self._active_reader

    def refresh_readers(self) -> List[SmartCardReader]:
        """Refresh the list of available readers."""
        try:
            raw_readers = list_readers()
        except NoReadersException:
            raw_readers = []
        self._readers = [SmartCardReader(str(r), r) for r in raw_readers]
        logger.info("Found %d reader(s)", len(self._readers))
        return self._readers

    def select_reader(self, index: int) -> Optional[SmartCardReader]:
        """Select a reader by index."""
        if 0 <= index < len(self._readers):
            if self._active_reader and self._active_reader.is_connected:
                self._active_reader.disconnect()
            self._active_reader = self._readers[index]
            return self._active_reader
        return None

    def select_reader_by_name(self, name: str) -> Optional[SmartCardReader]:
        """Select a reader by name."""
        for i, reader in enumerate(self._readers):
            if reader.name == name:
                return self.select_reader(i)
        return None

    def connect(self) -> Tuple[bool, str]:
        """Connect to a card on the active reader."""
        if not self._active_reader:
            return False, "No reader selected"
        return self._active_reader.connect()

    def disconnect(self):
        if self._active_reader:
            self._active_reader.disconnect()

    def get_atr(self) -> Optional[bytes]:
        if self._active_reader:
            return self._active_reader.get_atr()
        return None

    def transmit(self, request: bytes) -> bytes:
        """Transmit through the active reader."""
        if not self._active_reader:
            raise TransportFault("no reader selected")
        return self._active_reader.transmit(request)

    def start_monitoring(self,
                         on_card_inserted: Optional[Callable[[str], None]] = None,
                         on_card_removed: Optional[Callable[[str], None]] = None):
        """Report card insertion/removal with the reader name."""
        if self._card_monitor is not None:
            return
        self._observer = _CardObserverCallback(on_card_inserted, on_card_removed)
        self._card_monitor = CardMonitor()
        self._card_monitor.addObserver(self._observer)

    def stop_monitoring(self):
        if self._card_monitor is not None:
            self._card_monitor.deleteObserver(self._observer)
            self._card_monitor = None
            self._observer = None

    def cleanup(self):
        """Clean up all connections and monitors."""
        self.stop_monitoring()
        if self._active_reader:
            self._active_reader.disconnect()


# ─── Internal Observer Callback ─────────────────────────────────────────────

class _CardObserverCallback(CardObserver):
    """Card insertion/removal observer."""

    def __init__(self, on_inserted=None, on_removed=None):
        super().__init__()
        self._on_inserted = on_inserted
        self._on_removed = on_removed

    def update(self, observable, actions):
        added_cards, removed_cards = actions
        for card in added_cards:
            logger.info("Card inserted into %s (ATR %s)", card.reader, bytes_to_hex(card.atr))
            if self._on_inserted:
                self._on_inserted(str(card.reader))
        for card in removed_cards:
            logger.info("Card removed from %s", card.reader)
            if self._on_removed:
                self._on_removed(str(card.reader))
