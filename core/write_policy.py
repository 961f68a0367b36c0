"""
Caller-side write policy.
Reader firmware differs in which page-write command it accepts, so the
choice is an explicit ordered list of command builders probed by the caller.
TagMemory itself only ever uses the single builder it is given.
"""

import logging
from typing import NamedTuple, Sequence

from .apdu import mifare_write_command, update_binary_command
from .errors import UnexpectedStatus
from .tag_memory import TagMemory, WriteCommand

logger = logging.getLogger(__name__)

PROBE_PAGE = 0x04
PROBE_DATA = bytes([0xAA, 0xBB, 0xCC, 0xDD])


class WriteStrategy(NamedTuple):
    name: str
    build: WriteCommand


UPDATE_BINARY = WriteStrategy("UPDATE BINARY", update_binary_command)
MIFARE_WRITE = WriteStrategy("MIFARE WRITE", mifare_write_command)

DEFAULT_WRITE_STRATEGIES = (UPDATE_BINARY, MIFARE_WRITE)


def select_write_strategy(memory: TagMemory,
                          strategies: Sequence[WriteStrategy] = DEFAULT_WRITE_STRATEGIES,
                          page: int = PROBE_PAGE,
                          data: bytes = PROBE_DATA) -> WriteStrategy:
    """
    Probe each strategy with a test write and return the first accepted.
    Raises the last UnexpectedStatus when every strategy is refused.
    Transport faults are not retried.
    """
    if not strategies:
        raise ValueError("no write strategies given")

    last_error = None
    for strategy in strategies:
        try:
            memory.write_page(page, data, command=strategy.build)
        except UnexpectedStatus as e:
            logger.warning("Write strategy %s refused: %s", strategy.name, e)
            last_error = e
            continue
        logger.info("Write strategy %s accepted", strategy.name)
        return strategy

    raise last_error
