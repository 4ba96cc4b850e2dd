import pytest

from SSP.ssp_envelope import BLOCK_SIZE, unwrap, wrap
from SSP.ssp_errors import ChecksumMismatchError, FrameTooLargeError, MalformedResponseError


def xor_cipher(block):
    return bytes(b ^ 0x5A for b in block)


def test_wrap_layout():
    payload = wrap(b"\x07", count=3)
    assert payload[0] == 0x7E
    block = payload[1:]
    assert len(block) % BLOCK_SIZE == 0
    assert block[0] == 1                      # eLENGTH
    assert block[1:5] == b"\x03\x00\x00\x00"  # eCOUNT little-endian
    assert block[5] == 0x07


def test_unwrap_recovers_count_and_data():
    data = bytes(range(20))
    assert unwrap(wrap(data, count=0x01020304)) == (0x01020304, data)


def test_cipher_hooks_are_applied():
    payload = wrap(b"\xf0\x01", count=1, encrypt=xor_cipher)
    assert payload[2:6] != b"\x01\x00\x00\x00"
    assert unwrap(payload, decrypt=xor_cipher) == (1, b"\xf0\x01")


def test_block_is_padded_to_sixteen():
    for size in (0, 9, 10, 25):
        assert (len(wrap(bytes(size), count=0)) - 1) % BLOCK_SIZE == 0


def test_corrupt_block_is_checksum_mismatch():
    payload = bytearray(wrap(b"\x07", count=1))
    payload[6] ^= 0xFF
    with pytest.raises(ChecksumMismatchError):
        unwrap(bytes(payload))


def test_missing_stex_is_malformed():
    with pytest.raises(MalformedResponseError):
        unwrap(b"\xf0\x01")


def test_bad_block_length_is_malformed():
    with pytest.raises(MalformedResponseError):
        unwrap(wrap(b"\x07", count=1)[:-1])


def test_oversized_payload():
    with pytest.raises(FrameTooLargeError):
        wrap(bytes(256), count=0)
