"""Shared fixtures: an in-memory NTAG215 behind a PC/SC reader, and a scripted transport."""

import pytest
from Crypto.PublicKey import RSA

from core.channel import CardChannel
from core.errors import TransportFault
from core.tag_memory import TagMemory

SW_OK = b"\x90\x00"
SW_NOT_SUPPORTED = b"\x6A\x81"
SW_NOT_FOUND = b"\x6A\x82"
SW_BAD_INS = b"\x6D\x00"
SW_BAD_CLA = b"\x6E\x00"
SW_WRITE_FAILED = b"\x63\x00"


def no_sleep(seconds):
    pass


class FakeNtag215:
    """
    Answers the PC/SC pseudo-APDUs an ACR122U-class reader forwards to an
    NTAG215. Failure injection: ``write_ins`` limits which write command the
    "firmware" accepts, ``refused_pages`` answer reads with 6A 82,
    ``refused_write_pages`` answer writes with 63 00 and leave the page
    untouched, and ``short_pages`` return only two data bytes.
    """

    PAGE_COUNT = 135

    def __init__(self, uid=bytes([0x04, 0x1A, 0x2B, 0x3C]), version=bytes([0x02, 0x04]),
                 write_ins=(0xD6, 0xF0)):
        self.uid = bytes(uid)
        self.version = bytes(version)
        self.write_ins = set(write_ins)
        self.pages = [bytes(4) for _ in range(self.PAGE_COUNT)]
        self.refused_pages = set()
        self.refused_write_pages = set()
        self.short_pages = set()
        self.requests = []
        self.writes = []

    def __call__(self, request: bytes) -> bytes:
        request = bytes(request)
        self.requests.append(request)
        cla, ins, p1, p2 = request[:4]
        if cla != 0xFF:
            return SW_BAD_CLA

        if ins == 0xCA:
            if (p1, p2) == (0x00, 0x00):
                return self.uid + SW_OK
            if (p1, p2) == (0x00, 0x03):
                return self.version + SW_OK
            return SW_NOT_SUPPORTED

        if ins == 0xB0:
            if p2 >= self.PAGE_COUNT or p2 in self.refused_pages:
                return SW_NOT_FOUND
            data = self.pages[p2]
            if p2 in self.short_pages:
                data = data[:2]
            return data + SW_OK

        if ins in (0xD6, 0xF0):
            if ins not in self.write_ins:
                return SW_NOT_SUPPORTED
            if p2 in self.refused_write_pages:
                return SW_WRITE_FAILED
            data = request[5:5 + request[4]]
            self.pages[p2] = data
            self.writes.append((ins, p2, data))
            return SW_OK

        return SW_BAD_INS

    def page_bytes(self, start: int, count: int) -> bytes:
        return b"".join(self.pages[start:start + count])


class ScriptedTransport:
    """Replays canned reply frames in order and records every request."""

    def __init__(self, *replies):
        self.replies = [bytes.fromhex(r) if isinstance(r, str) else r for r in replies]
        self.requests = []

    def __call__(self, request: bytes) -> bytes:
        self.requests.append(bytes(request))
        if not self.replies:
            raise TransportFault("script exhausted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def tag():
    return FakeNtag215()


@pytest.fixture
def memory(tag):
    return TagMemory(CardChannel(tag), sleep=no_sleep)


@pytest.fixture(scope="session")
def rsa_key():
    return RSA.generate(2048)
