# SSP/ssp_decoder.py
"""
Field extraction for structured SSP replies.

Every function takes the reply payload *after* the generic status byte
(SSPResponse.raw_payload) and returns a frozen record, or raises
MalformedResponseError when the payload is shorter than the layout needs.

Layouts that changed with the protocol version are kept in tables of
(minimum_version, decoder) so a new version is one more row.
"""
import struct
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from .ssp_constants import REJECT_REASONS, UnitType
from .ssp_errors import MalformedResponseError

UNIT_DATA_LENGTH = 12
SETUP_HEADER_LENGTH = 12  # identity fields + channel count


@dataclass(frozen=True)
class UnitData:
    unit_type: UnitType
    firmware_version: str
    country_code: str
    value_multiplier: int
    protocol_version: int


@dataclass(frozen=True)
class ChannelInfo:
    channel: int
    value: int
    country_code: Optional[str] = None
    security: Optional[int] = None
    raw_value: Optional[int] = None  # per-channel value byte as sent (0 = see full value)


@dataclass(frozen=True)
class ChannelTable:
    highest_channel: int
    channels: Tuple[ChannelInfo, ...]
    protocol_version: int

    def value_map(self) -> Dict[int, int]:
        return {c.channel: c.value for c in self.channels}


@dataclass(frozen=True)
class SetupData:
    unit_type: UnitType
    firmware_version: str
    country_code: str
    value_multiplier: int
    channel_count: int
    channel_values: Tuple[int, ...]
    channel_security: Tuple[int, ...]
    real_value_multiplier: int
    protocol_version: int
    channel_countries: Tuple[str, ...] = ()
    channel_full_values: Tuple[int, ...] = ()

    def value_map(self) -> Dict[int, int]:
        """
        Channel -> note value in minor units.

        Uses the 4-byte full values when the device sent them (protocol >= 6),
        otherwise scales the per-channel value bytes by the real value
        multiplier (falling back to the plain value multiplier).
        """
        if self.channel_full_values:
            return {i + 1: v for i, v in enumerate(self.channel_full_values)}
        scale = self.real_value_multiplier or self.value_multiplier or 1
        return {i + 1: v * scale for i, v in enumerate(self.channel_values)}

    @property
    def channels(self) -> Tuple[ChannelInfo, ...]:
        values = self.value_map()
        out = []
        for i in range(self.channel_count):
            out.append(ChannelInfo(
                channel=i + 1,
                value=values[i + 1],
                country_code=self.channel_countries[i] if self.channel_countries else self.country_code,
                security=self.channel_security[i],
                raw_value=self.channel_values[i],
            ))
        return tuple(out)


@dataclass(frozen=True)
class Counters:
    values: Tuple[int, ...]

    def _get(self, idx: int) -> Optional[int]:
        return self.values[idx] if idx < len(self.values) else None

    @property
    def stacked(self): return self._get(0)

    @property
    def stored(self): return self._get(1)

    @property
    def dispensed(self): return self._get(2)

    @property
    def transferred(self): return self._get(3)

    @property
    def rejected(self): return self._get(4)


# ---------- helpers ----------
def _require(data: bytes, needed: int, what: str) -> None:
    if len(data) < needed:
        raise MalformedResponseError(f"{what}: need {needed} bytes, got {len(data)}")


def _char_field(raw: bytes) -> str:
    # Devices send ASCII, but some firmware reports digits as raw 0..9 values.
    return "".join(str(b) if b < 10 else chr(b) for b in raw)


def _unit_type(code: int) -> UnitType:
    try:
        return UnitType(code)
    except ValueError:
        return UnitType.UNKNOWN


def _digit_multiplier(raw: bytes) -> int:
    # Three decimal-digit bytes, least significant first: b0*1 + b1*10 + b2*100.
    # This is how the device encodes it; don't read it as a binary integer.
    return raw[2] * 100 + raw[1] * 10 + raw[0]


def _le_values(raw: bytes, count: int) -> Tuple[int, ...]:
    return tuple(struct.unpack_from('<I', raw, 4 * i)[0] for i in range(count))


def _countries(raw: bytes, count: int) -> Tuple[str, ...]:
    return tuple(_char_field(raw[3 * i:3 * i + 3]) for i in range(count))


# ---------- identity ----------
def decode_unit_data(data: bytes) -> UnitData:
    """
    UNIT_DATA reply.

    Offsets: 0 unit type, 1-4 firmware, 5-7 country, 8-10 value multiplier
    digits, 11 protocol version.
    """
    _require(data, UNIT_DATA_LENGTH, "unit data")
    return UnitData(
        unit_type=_unit_type(data[0]),
        firmware_version=_char_field(data[1:5]),
        country_code=_char_field(data[5:8]),
        value_multiplier=_digit_multiplier(data[8:11]),
        protocol_version=data[11],
    )


# ---------- channel values ----------
def _channel_values_legacy(data: bytes, protocol_version: int) -> ChannelTable:
    _require(data, 1, "channel values")
    n = data[0]
    _require(data, 1 + n, "channel values")
    channels = tuple(
        ChannelInfo(channel=i + 1, value=data[1 + i], raw_value=data[1 + i]) for i in range(n)
    )
    return ChannelTable(highest_channel=n, channels=channels, protocol_version=protocol_version)


def _channel_values_v6(data: bytes, protocol_version: int) -> ChannelTable:
    _require(data, 1, "channel values")
    n = data[0]
    _require(data, 1 + 8 * n, "channel values (v6)")
    raw_values = data[1:1 + n]
    countries = _countries(data[1 + n:1 + 4 * n], n)
    full_values = _le_values(data[1 + 4 * n:1 + 8 * n], n)
    channels = tuple(
        ChannelInfo(
            channel=i + 1,
            value=full_values[i] if raw_values[i] == 0 else raw_values[i],
            country_code=countries[i],
            raw_value=raw_values[i],
        )
        for i in range(n)
    )
    return ChannelTable(highest_channel=n, channels=channels, protocol_version=protocol_version)


ChannelDecoder = Callable[[bytes, int], ChannelTable]

# Highest minimum version first.
CHANNEL_VALUE_LAYOUTS: Sequence[Tuple[int, ChannelDecoder]] = (
    (6, _channel_values_v6),
    (0, _channel_values_legacy),
)


def _layout_for(protocol_version: int, table: Sequence[Tuple[int, ChannelDecoder]]) -> ChannelDecoder:
    for min_version, decoder in table:
        if protocol_version >= min_version:
            return decoder
    return table[-1][1]


def decode_channel_values(data: bytes, protocol_version: int) -> ChannelTable:
    """CHANNEL_VALUE_REQUEST reply, laid out according to the negotiated protocol version."""
    return _layout_for(protocol_version, CHANNEL_VALUE_LAYOUTS)(data, protocol_version)


# ---------- setup request ----------
def decode_setup_request(data: bytes) -> SetupData:
    """
    SETUP_REQUEST reply for a banknote validator.

    Offsets after the identity block are relative to the channel count n:
        11                 n
        12 .. 12+n         value per channel
        12+n .. 12+2n      security per channel
        12+2n .. 15+2n     real value multiplier (3 bytes, little-endian)
        15+2n              protocol version
    Protocol >= 6 then appends n*3 country bytes and n*4 full values.
    """
    _require(data, SETUP_HEADER_LENGTH, "setup request")
    n = data[11]
    base_len = 16 + 2 * n
    _require(data, base_len, "setup request")

    values = tuple(data[12:12 + n])
    security = tuple(data[12 + n:12 + 2 * n])
    rvm = data[12 + 2 * n:15 + 2 * n]
    real_value_multiplier = rvm[0] | (rvm[1] << 8) | (rvm[2] << 16)
    protocol_version = data[15 + 2 * n]

    countries: Tuple[str, ...] = ()
    full_values: Tuple[int, ...] = ()
    if protocol_version >= 6 and len(data) >= base_len + 7 * n:
        countries = _countries(data[base_len:base_len + 3 * n], n)
        full_values = _le_values(data[base_len + 3 * n:base_len + 7 * n], n)

    return SetupData(
        unit_type=_unit_type(data[0]),
        firmware_version=_char_field(data[1:5]),
        country_code=_char_field(data[5:8]),
        value_multiplier=_digit_multiplier(data[8:11]),
        channel_count=n,
        channel_values=values,
        channel_security=security,
        real_value_multiplier=real_value_multiplier,
        protocol_version=protocol_version,
        channel_countries=countries,
        channel_full_values=full_values,
    )


# ---------- small replies ----------
def decode_serial_number(data: bytes) -> int:
    """GET_SERIAL_NUMBER: 4-byte big-endian."""
    _require(data, 4, "serial number")
    return struct.unpack('>I', data[:4])[0]


def decode_counters(data: bytes) -> Counters:
    """GET_COUNTERS: count byte followed by 4-byte little-endian counters."""
    _require(data, 1, "counters")
    n = data[0]
    _require(data, 1 + 4 * n, "counters")
    return Counters(values=_le_values(data[1:1 + 4 * n], n))


def decode_last_reject_code(data: bytes) -> Tuple[int, str]:
    _require(data, 1, "last reject code")
    code = data[0]
    return code, REJECT_REASONS.get(code, f"0x{code:02X}")
