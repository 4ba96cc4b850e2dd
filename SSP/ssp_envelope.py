# SSP/ssp_envelope.py
"""
eSSP encryption envelope.

The envelope lives in the DATA field of a normal frame:

    DATA           := STEX || Encrypted Data
    Encrypted Data := cipher( eLENGTH || eCOUNT || eDATA || ePACKING || eCRCL || eCRCH )

eLENGTH is the length of eDATA, eCOUNT a 4-byte little-endian packet counter,
ePACKING random filler that pads the encrypted block to a multiple of 16
bytes, and eCRC the usual SSP CRC over everything before it.

Key agreement is out of scope here: the cipher is whatever callable the
caller hands in (identity by default, e.g. for framing tests or a device with
encryption disabled).
"""
import secrets
import struct
from typing import Callable, Optional, Tuple

from .ssp_constants import STEX
from .ssp_errors import ChecksumMismatchError, FrameTooLargeError, MalformedResponseError
from .ssp_packet import calculate_crc

BLOCK_SIZE = 16
HEADER_LENGTH = 5  # eLENGTH + eCOUNT
CRC_LENGTH = 2

Cipher = Callable[[bytes], bytes]


def _identity(block: bytes) -> bytes:
    return block


def wrap(data: bytes, count: int, encrypt: Optional[Cipher] = None) -> bytes:
    """Build STEX + encrypted block for `data`, using packet counter `count`."""
    data = bytes(data)
    if len(data) > 0xFF:
        raise FrameTooLargeError(f"encrypted payload of {len(data)} bytes does not fit eLENGTH")

    plain = bytes([len(data)]) + struct.pack('<I', count & 0xFFFFFFFF) + data
    packing = -(len(plain) + CRC_LENGTH) % BLOCK_SIZE
    plain += secrets.token_bytes(packing)
    plain += calculate_crc(plain)

    return bytes([STEX]) + (encrypt or _identity)(plain)


def unwrap(payload: bytes, decrypt: Optional[Cipher] = None) -> Tuple[int, bytes]:
    """Inverse of wrap(): returns (count, data)."""
    if not payload or payload[0] != STEX:
        raise MalformedResponseError("payload is not an encrypted envelope (missing STEX)")

    plain = (decrypt or _identity)(bytes(payload[1:]))
    if len(plain) < HEADER_LENGTH + CRC_LENGTH or len(plain) % BLOCK_SIZE:
        raise MalformedResponseError(f"encrypted block has invalid length {len(plain)}")

    body, crc_rx = plain[:-CRC_LENGTH], plain[-CRC_LENGTH:]
    if calculate_crc(body) != crc_rx:
        raise ChecksumMismatchError("envelope CRC mismatch")

    length = body[0]
    if HEADER_LENGTH + length > len(body):
        raise MalformedResponseError(f"eLENGTH {length} exceeds decrypted block")

    count = struct.unpack_from('<I', body, 1)[0]
    return count, bytes(body[HEADER_LENGTH:HEADER_LENGTH + length])
