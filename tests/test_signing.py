import pytest
from Crypto.Hash import SHA256
from Crypto.Signature import pkcs1_15

from core.channel import CardChannel
from core.config import SigningLayout
from core.errors import TransportFault, UnexpectedStatus
from core.signing import (
    CardSigner,
    pad_signature,
    signed_message,
    truncated_signature_matches,
)
from core.tag_memory import TagMemory

from conftest import FakeNtag215, no_sleep

UID = bytes([0x04, 0x1A, 0x2B, 0x3C])
CHALLENGE = bytes([0xAA, 0xBB, 0xCC, 0xDD])


def _signer(tag, challenge=CHALLENGE):
    memory = TagMemory(CardChannel(tag), sleep=no_sleep)
    return CardSigner(memory, random_bytes=lambda n: challenge[:n])


def _expected_truncated(key, uid=UID, challenge=CHALLENGE):
    return pkcs1_15.new(key).sign(SHA256.new(uid + challenge))[:8]


def test_sign_writes_challenge_and_truncated_signature(tag, rsa_key):
    record = _signer(tag).sign(rsa_key)
    assert record.uid == UID
    assert record.challenge == CHALLENGE
    assert record.truncated_signature == _expected_truncated(rsa_key)

    assert tag.pages[120] == CHALLENGE
    assert tag.page_bytes(124, 2) == record.truncated_signature
    assert [page for _, page, _ in tag.writes] == [120, 124, 125]


def test_sign_then_verify(tag, rsa_key):
    signer = _signer(tag)
    signer.sign(rsa_key)
    assert signer.verify(rsa_key)


def test_verify_with_random_challenge(tag, rsa_key):
    memory = TagMemory(CardChannel(tag), sleep=no_sleep)
    signer = CardSigner(memory)
    record = signer.sign(rsa_key)
    assert len(record.challenge) == 4
    assert signer.verify(rsa_key)


@pytest.mark.parametrize("page, offset", [(124, 0), (125, 3), (120, 1)])
def test_single_byte_corruption_fails(tag, rsa_key, page, offset):
    signer = _signer(tag)
    signer.sign(rsa_key)
    corrupted = bytearray(tag.pages[page])
    corrupted[offset] ^= 0x01
    tag.pages[page] = bytes(corrupted)
    assert not signer.verify(rsa_key)


def test_signature_bound_to_uid(rsa_key):
    original = FakeNtag215()
    _signer(original).sign(rsa_key)

    clone = FakeNtag215(uid=bytes([0x04, 0x99, 0x88, 0x77]))
    clone.pages = list(original.pages)
    assert not _signer(clone).verify(rsa_key)


def test_wrong_key_fails(tag, rsa_key):
    from Crypto.PublicKey import RSA

    _signer(tag).sign(rsa_key)
    other = RSA.generate(1024)
    assert not _signer(tag).verify(other)


def test_unsigned_tag_fails(tag, rsa_key):
    assert not _signer(tag).verify(rsa_key)


def test_short_challenge_read_is_failed_verification(tag, rsa_key):
    signer = _signer(tag)
    signer.sign(rsa_key)
    tag.short_pages.add(121)
    assert signer.verify(rsa_key) is False


def test_refused_signature_read_is_failed_verification(tag, rsa_key):
    signer = _signer(tag)
    signer.sign(rsa_key)
    tag.refused_pages.add(127)
    assert signer.verify(rsa_key) is False


def test_transport_fault_propagates(rsa_key):
    def unplugged(request):
        raise TransportFault("reader gone")

    signer = CardSigner(TagMemory(CardChannel(unplugged), sleep=no_sleep))
    with pytest.raises(TransportFault):
        signer.verify(rsa_key)


def test_interrupted_sign_leaves_unverifiable_tag(rsa_key):
    tag = FakeNtag215()
    signer = _signer(tag)
    signer.sign(rsa_key)
    # Remark with a new challenge, but the signature write never happens
    tag.pages[120] = bytes([0x01, 0x02, 0x03, 0x04])
    assert not signer.verify(rsa_key)


def test_refused_signature_write_aborts_sign(rsa_key):
    tag = FakeNtag215()
    tag.refused_write_pages.add(125)
    signer = _signer(tag)
    with pytest.raises(UnexpectedStatus) as exc:
        signer.sign(rsa_key)
    assert exc.value.status_word == 0x6300
    assert tag.pages[120] == CHALLENGE
    assert [page for _, page, _ in tag.writes] == [120, 124]
    assert signer.verify(rsa_key) is False


def test_read_record_uses_layout(tag, rsa_key):
    layout = SigningLayout(challenge_page=40, signature_page=44)
    memory = TagMemory(CardChannel(tag), sleep=no_sleep)
    signer = CardSigner(memory, layout, random_bytes=lambda n: CHALLENGE)
    written = signer.sign(rsa_key)
    assert tag.pages[40] == CHALLENGE
    assert signer.read_record() == written


def test_pad_signature(rsa_key):
    padded = pad_signature(b"\x01" * 8, rsa_key)
    assert len(padded) == 256
    assert padded[:8] == b"\x01" * 8
    assert padded[8:] == bytes(248)


def test_public_key_cannot_accept_truncated_signature(rsa_key):
    message = signed_message(UID, CHALLENGE)
    truncated = _expected_truncated(rsa_key)
    assert truncated_signature_matches(rsa_key, message, truncated, 8)
    assert not truncated_signature_matches(rsa_key.publickey(), message, truncated, 8)
