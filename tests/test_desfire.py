import pytest

from core.channel import CardChannel
from core.desfire import DESFireFileSettings, DESFireProtocol, DESFireVersionInfo, aid_to_hex
from core.errors import CommandFailed, InvalidVersionResponse, MalformedResponse

from conftest import ScriptedTransport

EV3_VERSION = "04010133001A05"


def _desfire(*replies):
    transport = ScriptedTransport(*replies)
    return DESFireProtocol(CardChannel(transport)), transport


def test_get_version():
    desfire, transport = _desfire(EV3_VERSION + "91AF")
    version = desfire.get_version()
    assert transport.requests == [bytes.fromhex("9060000000")]
    assert version.vendor_id == 0x04
    assert version.type == 0x01
    assert version.storage == "8 KB"
    assert version.to_dict()["Vendor"] == "0x04 (NXP)"


def test_get_version_short():
    desfire, _ = _desfire("040101339100")
    with pytest.raises(InvalidVersionResponse):
        desfire.get_version()


def test_invalid_version_is_malformed():
    with pytest.raises(MalformedResponse):
        DESFireVersionInfo.from_bytes(b"\x04\x01")


def test_iso_success_is_not_desfire_success():
    desfire, _ = _desfire(EV3_VERSION + "9000")
    with pytest.raises(CommandFailed) as exc:
        desfire.get_version()
    assert exc.value.status_word == 0x9000
    assert exc.value.command == "GET_VERSION"


def test_desfire_error_status():
    desfire, _ = _desfire("91AE")
    with pytest.raises(CommandFailed) as exc:
        desfire.get_version()
    assert exc.value.sw2 == 0xAE


def test_application_ids_little_endian():
    desfire, transport = _desfire("563412" + "010000" + "9100")
    assert list(desfire.get_application_ids()) == [0x123456, 0x000001]
    assert transport.requests == [bytes.fromhex("906A000000")]


def test_application_ids_empty():
    desfire, _ = _desfire("9100")
    assert list(desfire.get_application_ids()) == []


def test_application_ids_bad_length_raises_before_iteration():
    desfire, _ = _desfire("56341201" + "9100")
    with pytest.raises(MalformedResponse):
        desfire.get_application_ids()


def test_select_application_sends_three_bytes():
    desfire, transport = _desfire("9100")
    desfire.select_application(0x123456)
    assert transport.requests == [bytes.fromhex("905A00000356341200")]


def test_select_application_not_found():
    desfire, _ = _desfire("91A0")
    with pytest.raises(CommandFailed) as exc:
        desfire.select_application(0xABCDEF)
    assert exc.value.status_word == 0x91A0


def test_select_picc():
    desfire, transport = _desfire("9100")
    desfire.select_picc()
    assert transport.requests == [bytes.fromhex("905A00000300000000")]


def test_file_ids():
    desfire, transport = _desfire("0001029100")
    assert list(desfire.get_file_ids()) == [0, 1, 2]
    assert transport.requests == [bytes.fromhex("906F000000")]


def test_file_settings():
    desfire, transport = _desfire("0003" + "E012" + "200000" + "9100")
    settings = desfire.get_file_settings(1)
    assert transport.requests == [bytes.fromhex("90F500000101" + "00")]
    assert settings.access_rights == 0x12E0
    assert settings.to_dict() == {
        "File Type": "STANDARD_DATA",
        "Communication": "ENCRYPTED",
        "Read Access": "Key 1",
        "Write Access": "Key 2",
        "Read/Write Access": "Free",
        "Change Access": "Key 0",
    }


def test_file_settings_unknown_values():
    settings = DESFireFileSettings(bytes([0x09, 0x02, 0xFF, 0xFF]))
    assert settings.file_type_name == "UNKNOWN_0x09"
    assert settings.comm_mode_name == "0x02"
    assert settings.to_dict()["Read Access"] == "Denied"


def test_file_settings_too_short():
    with pytest.raises(MalformedResponse):
        DESFireFileSettings(b"\x00\x00\x00")


def test_aid_to_hex():
    assert aid_to_hex(0x1) == "000001"


def test_scan_card_records_application_failures():
    desfire, transport = _desfire(
        EV3_VERSION + "91AF",
        "010000" + "020000" + "9100",
        # application 000001: one standard file
        "9100",
        "00" + "9100",
        "0000EEEE200000" + "9100",
        # application 000002: selection refused
        "919D",
        # back to PICC level
        "9100",
    )
    result = desfire.scan_card()
    assert result["version"]["Storage"] == "8 KB"
    first, second = result["applications"]
    assert first["AID"] == "000001"
    assert first["files"][0]["Read Access"] == "Free"
    assert second["AID"] == "000002"
    assert "919D" in second["error"]
    assert transport.requests[-1] == bytes.fromhex("905A00000300000000")
