import pytest

from core.apdu import (
    APDUCommand,
    ascii_projection,
    bytes_to_hex,
    decode,
    desfire_command,
    encode,
    hex_to_bytes,
    mifare_write_command,
    pcsc_get_uid,
    read_page_command,
    update_binary_command,
)
from core.errors import MalformedResponse


def test_encode_header_only():
    assert encode(0x90, 0x60, 0x00, 0x00) == bytes.fromhex("90600000")


def test_encode_with_le_only():
    assert encode(0xFF, 0xCA, 0x00, 0x00, le=0x00) == bytes.fromhex("FFCA000000")


def test_encode_with_data_adds_lc():
    assert encode(0x90, 0x0A, 0x00, 0x00, data=b"\x00") == bytes.fromhex("900A00000100")


def test_encode_with_data_and_le():
    assert encode(0x90, 0x5A, 0, 0, data=b"\x01\x02\x03", le=0) == bytes.fromhex("905A00000301020300")


def test_encode_empty_data_has_no_lc():
    assert encode(0x90, 0xAF, 0x00, 0x00, data=b"", le=0x10) == bytes.fromhex("90AF000010")


def test_encode_rejects_oversized_data():
    with pytest.raises(ValueError):
        encode(0x00, 0xD6, 0, 0, data=bytes(256))


def test_decode_splits_status():
    response = decode(bytes.fromhex("0102039100"))
    assert response.data == b"\x01\x02\x03"
    assert (response.sw1, response.sw2) == (0x91, 0x00)
    assert response.sw == 0x9100
    assert response.status_text == "Success (DESFire)"


def test_decode_status_only():
    response = decode(b"\x91\x7E")
    assert response.data == b""
    assert response.status_text == "Additional frame expected (legacy auth)"


@pytest.mark.parametrize("raw", [b"", b"\x90"])
def test_decode_too_short(raw):
    with pytest.raises(MalformedResponse):
        decode(raw)


def test_unknown_status_text():
    assert decode(b"\x12\x34").status_text == "Unknown (0x1234)"


def test_command_builders():
    assert pcsc_get_uid().to_bytes() == bytes.fromhex("FFCA000000")
    assert read_page_command(120).to_bytes() == bytes.fromhex("FFB0007804")
    assert update_binary_command(4, b"\xAA\xBB\xCC\xDD").to_bytes() == bytes.fromhex("FFD6000404AABBCCDD")
    assert mifare_write_command(4, b"\xAA\xBB\xCC\xDD").to_bytes() == bytes.fromhex("FFF0000404AABBCCDD")
    assert desfire_command(0x60).to_bytes() == bytes.fromhex("9060000000")


def test_commands_are_immutable():
    cmd = APDUCommand(0x90, 0x60, 0x00, 0x00)
    with pytest.raises(AttributeError):
        cmd.ins = 0x61


def test_hex_helpers():
    assert bytes_to_hex(b"\x04\x1a") == "04 1A"
    assert bytes_to_hex(b"\x04\x1a", "-") == "04-1A"
    assert hex_to_bytes("04 1a:2B-3c") == bytes([0x04, 0x1A, 0x2B, 0x3C])
    assert hex_to_bytes("abc") == b"\x0a\xbc"


def test_ascii_projection():
    assert ascii_projection(b"Hi\x00\x7f") == "Hi.."


def test_command_without_data_or_le_decodes_to_empty_payload():
    request = encode(0x90, 0x60, 0x00, 0x00)
    assert len(request) == 4
    assert decode(b"\x91\x00").data == b""
