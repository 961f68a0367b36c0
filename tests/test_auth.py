import pytest
from Crypto.Cipher import AES

from core.auth import (
    AuthState,
    MutualAuthenticator,
    change_master_key,
    encrypt_challenge,
)
from core.channel import CardChannel
from core.config import AuthConfig
from core.errors import MalformedResponse, ShortChallenge, TransportFault, UnexpectedStatus

from conftest import ScriptedTransport, no_sleep

KEY = bytes(16)
CHALLENGE = bytes(range(0x10, 0x20))
CHALLENGE_FRAME = "91AF" + CHALLENGE.hex()

INITIATE = bytes.fromhex("900A00000100")
FETCH_CHALLENGE = bytes.fromhex("90AF010010")
FETCH_PROOF = bytes.fromhex("90AF000010")
FINALIZE = bytes.fromhex("90AF000000")


def _host_response(key=KEY):
    return bytes.fromhex("90AF000010") + encrypt_challenge(CHALLENGE, key)


def _authenticate(*replies, config=AuthConfig(), key=KEY):
    transport = ScriptedTransport(*replies)
    authenticator = MutualAuthenticator(CardChannel(transport), config, no_sleep)
    return authenticator.authenticate(key), transport


def test_encrypt_challenge_is_cbc_zero_iv():
    key = bytes(range(16))
    expected = AES.new(key, AES.MODE_ECB).encrypt(CHALLENGE)
    assert encrypt_challenge(CHALLENGE, key) == expected


def test_encrypt_challenge_single_block_only():
    with pytest.raises(ValueError):
        encrypt_challenge(CHALLENGE + CHALLENGE, KEY)


def test_full_handshake_with_finalize():
    result, transport = _authenticate("917E", CHALLENGE_FRAME, "917E", "917E", "9000")
    assert result.state is AuthState.AUTHENTICATED
    assert result.success
    assert result.finalized
    assert transport.requests == [INITIATE, FETCH_CHALLENGE, _host_response(), FETCH_PROOF, FINALIZE]


def test_proof_with_data_skips_finalize():
    result, transport = _authenticate("917E", CHALLENGE_FRAME, "917E", "A1B2C3D4" * 4 + "9100")
    assert result.success
    assert not result.finalized
    assert len(transport.requests) == 4


@pytest.mark.parametrize("proof, status", [
    ("A1B2C3D4" * 4 + "91AE", 0x91AE),
    ("00" + "6A82", 0x6A82),
])
def test_proof_with_data_and_error_status_fails(proof, status):
    result, transport = _authenticate("917E", CHALLENGE_FRAME, "917E", proof)
    assert result.state is AuthState.FAILED
    assert not result.success
    assert isinstance(result.error, UnexpectedStatus)
    assert result.error.status_word == status
    assert len(transport.requests) == 4


def test_strict_mode_always_finalizes():
    config = AuthConfig(require_final_confirmation=True)
    result, transport = _authenticate(
        "917E", CHALLENGE_FRAME, "917E", "A1B2C3D4" * 4 + "9100", "9000", config=config)
    assert result.finalized
    assert transport.requests[-1] == FINALIZE


def test_key_slot_from_config():
    _, transport = _authenticate("91AE", config=AuthConfig(key_no=3))
    assert transport.requests == [bytes.fromhex("900A00000103")]


def test_initiate_refused_sends_nothing_else():
    result, transport = _authenticate("91AE")
    assert result.state is AuthState.FAILED
    assert isinstance(result.error, UnexpectedStatus)
    assert result.error.status_word == 0x91AE
    assert len(transport.requests) == 1


def test_short_challenge():
    result, transport = _authenticate("917E", "91AF" + "00" * 15)
    assert result.state is AuthState.FAILED
    assert isinstance(result.error, ShortChallenge)
    assert len(transport.requests) == 2


def test_host_response_rejected():
    result, _ = _authenticate("917E", CHALLENGE_FRAME, "91AE")
    assert not result.success
    assert result.error.status_word == 0x91AE
    assert "Authentication failed" in result.message


def test_proof_with_unexpected_status():
    result, transport = _authenticate("917E", CHALLENGE_FRAME, "917E", "91CA")
    assert result.state is AuthState.FAILED
    assert result.error.status_word == 0x91CA
    assert len(transport.requests) == 4


def test_finalize_must_return_9000():
    result, _ = _authenticate("917E", CHALLENGE_FRAME, "917E", "917E", "9100")
    assert result.state is AuthState.FAILED


def test_malformed_frame_fails():
    result, _ = _authenticate("91")
    assert isinstance(result.error, MalformedResponse)


def test_transport_fault_fails_handshake():
    result, _ = _authenticate("917E", TransportFault("card removed"))
    assert isinstance(result.error, TransportFault)


def test_wrong_key_length():
    with pytest.raises(ValueError):
        _authenticate(key=bytes(8))


def test_round_trip_delay_between_steps():
    delays = []
    transport = ScriptedTransport("917E", CHALLENGE_FRAME, "917E", "917E", "9000")
    authenticator = MutualAuthenticator(CardChannel(transport), AuthConfig(round_trip_delay=0.2),
                                        delays.append)
    assert authenticator.authenticate(KEY).success
    assert delays == [0.2, 0.2, 0.2, 0.2]


def test_change_master_key():
    new_key = bytes([0x11] * 16)
    transport = ScriptedTransport("917E", CHALLENGE_FRAME, "917E", "917E", "9000", "9100")
    result = change_master_key(CardChannel(transport), KEY, new_key, sleep=no_sleep)
    assert result.changed
    assert result.message == "Key change successful"
    assert transport.requests[-1] == bytes.fromhex("90C4000010") + new_key


def test_change_master_key_needs_authentication():
    transport = ScriptedTransport("91AE")
    result = change_master_key(CardChannel(transport), KEY, bytes(16), sleep=no_sleep)
    assert not result.changed
    assert not result.auth.success
    assert len(transport.requests) == 1


def test_change_master_key_refused():
    transport = ScriptedTransport("917E", CHALLENGE_FRAME, "917E", "917E", "9000", "919D")
    result = change_master_key(CardChannel(transport), KEY, bytes(16), sleep=no_sleep)
    assert not result.changed
    assert result.status == 0x919D
    assert result.message == "Key change refused (SW=919D)"


def test_change_master_key_rejects_bad_new_key():
    with pytest.raises(ValueError):
        change_master_key(CardChannel(ScriptedTransport()), KEY, bytes(15), sleep=no_sleep)
