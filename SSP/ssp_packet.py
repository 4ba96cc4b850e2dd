# SSP/ssp_packet.py
"""
SSP frame codec and CRC.

Wire format
-----------
    [STX] <byte-stuffed: seq|addr, len, command, data..., CRCL, CRCH>

where:
    seq|addr := bit 7 sequence flag, bits 0-6 slave address
    len      := number of command + data bytes
    CRC16    := CRC-16 over (seq|addr, len, command, data) with poly 0x8005,
                seed 0xFFFF, transmitted low byte first.

Any literal 0x7F after the STX is doubled on the wire (0x7F 0x7F).
"""
import struct
from dataclasses import dataclass

from .ssp_constants import STX, MAX_FRAME_LENGTH
from .ssp_errors import ChecksumMismatchError, FrameTooLargeError, MalformedResponseError, TruncatedFrameError

CRC_SEED = 0xFFFF
CRC_POLY = 0x8005


@dataclass(frozen=True)
class Frame:
    seq_addr: int
    length: int
    command: int   # first payload byte: command code (host) or status code (reply)
    data: bytes
    checksum: int

    @property
    def sequence_bit(self) -> int:
        return (self.seq_addr >> 7) & 0x01

    @property
    def address(self) -> int:
        return self.seq_addr & 0x7F

    @property
    def payload(self) -> bytes:
        return bytes([self.command]) + self.data

    def __repr__(self) -> str:
        return (
            f"Frame(seq={self.sequence_bit}, addr=0x{self.address:02X}, "
            f"command=0x{self.command:02X}, data={self.data.hex(' ') if self.data else '(empty)'})"
        )


def calculate_crc(data: bytes) -> bytes:
    crc, poly = CRC_SEED, CRC_POLY
    for byte in data:
        crc ^= (byte << 8)
        for _ in range(8):
            crc = ((crc << 1) ^ poly) & 0xFFFF if (crc & 0x8000) else (crc << 1) & 0xFFFF
    return struct.pack('<H', crc)


def crc_value(data: bytes) -> int:
    """Same CRC as calculate_crc(), as an integer."""
    return struct.unpack('<H', calculate_crc(data))[0]


def stuff_bytes(data: bytes) -> bytes:
    out = bytearray()
    for b in data:
        if b == STX:
            out += bytes([STX, STX])
        else:
            out.append(b)
    return bytes(out)


def unstuff_bytes(data: bytes) -> bytes:
    out = bytearray()
    i = 0
    while i < len(data):
        if data[i] == STX and i + 1 < len(data) and data[i + 1] == STX:
            out.append(STX)
            i += 2
        else:
            out.append(data[i])
            i += 1
    return bytes(out)


def encode_frame(seq_addr: int, command: int, data: bytes = b'') -> bytes:
    """
    Build a complete wire frame.

    Parameters
    ----------
    seq_addr : int
        Sequence flag (bit 7) OR'ed with the slave address (bits 0-6).
    command : int
        Command code.
    data : bytes
        Command parameters, may be empty.

    Raises
    ------
    FrameTooLargeError
        If the length field cannot describe the payload or the stuffed frame
        is longer than MAX_FRAME_LENGTH.
    """
    data = bytes(data)
    length = len(data) + 1
    if length > 0xFF:
        raise FrameTooLargeError(f"payload of {length} bytes does not fit the length field")

    body = bytes([seq_addr & 0xFF, length, command & 0xFF]) + data
    frame = bytes([STX]) + stuff_bytes(body + calculate_crc(body))
    if len(frame) > MAX_FRAME_LENGTH:
        raise FrameTooLargeError(f"frame of {len(frame)} bytes exceeds {MAX_FRAME_LENGTH}")
    return frame


def decode_frame(raw: bytes) -> Frame:
    """
    Parse the first frame found in `raw`.

    Bytes before the first STX are treated as line noise. Only the slice
    declared by the length field is used; anything after the CRC is ignored.

    Raises
    ------
    TruncatedFrameError
        No STX, or fewer bytes than the length field requires.
    ChecksumMismatchError
        The trailing CRC does not match the frame contents.
    MalformedResponseError
        The length field is zero (no command/status byte).
    """
    start = bytes(raw).find(bytes([STX]))
    if start < 0:
        raise TruncatedFrameError("no start-of-frame marker")

    body = unstuff_bytes(raw[start + 1:])
    if len(body) < 2:
        raise TruncatedFrameError(f"header incomplete ({len(body)} of 2 bytes)")

    length = body[1]
    if length < 1:
        # len must at least include the command/status byte
        raise MalformedResponseError("frame length field is zero")

    end = 2 + length
    if len(body) < end + 2:
        raise TruncatedFrameError(f"frame declares {end + 2} bytes, only {len(body)} available")

    crc_rx = body[end:end + 2]
    crc_calc = calculate_crc(body[:end])
    if crc_rx != crc_calc:
        raise ChecksumMismatchError(f"CRC {crc_rx.hex()} != expected {crc_calc.hex()}")

    return Frame(
        seq_addr=body[0],
        length=length,
        command=body[2],
        data=bytes(body[3:end]),
        checksum=struct.unpack('<H', crc_rx)[0],
    )
