import struct

import pytest

from SSP.ssp_constants import UnitType
from SSP.ssp_decoder import (
    decode_channel_values,
    decode_counters,
    decode_last_reject_code,
    decode_serial_number,
    decode_setup_request,
    decode_unit_data,
)
from SSP.ssp_errors import MalformedResponseError

# UNIT_DATA payload after the OK byte: validator, firmware 7795, EUR,
# multiplier digits 1,0,0, protocol 6.
UNIT_DATA = bytes([0x00, 0x07, 0x07, 0x09, 0x05, 0x45, 0x55, 0x52, 0x01, 0x00, 0x00, 0x06])


def le32(*values):
    return b"".join(struct.pack("<I", v) for v in values)


def test_unit_data_example():
    unit = decode_unit_data(UNIT_DATA)
    assert unit.unit_type is UnitType.VALIDATOR
    assert unit.firmware_version == "7795"
    assert unit.country_code == "EUR"
    assert unit.value_multiplier == 1
    assert unit.protocol_version == 6


def test_unit_data_ascii_firmware():
    data = bytes([0x06]) + b"0450" + b"GBP" + bytes([0, 0, 0, 7])
    unit = decode_unit_data(data)
    assert unit.unit_type is UnitType.SMART_PAYOUT
    assert unit.firmware_version == "0450"
    assert unit.country_code == "GBP"


def test_unknown_unit_type():
    assert decode_unit_data(bytes([0x42]) + UNIT_DATA[1:]).unit_type is UnitType.UNKNOWN


def test_value_multiplier_is_digit_encoded():
    # Device quirk: bytes are decimal digits, least significant first.
    # 03 02 01 means 1*100 + 2*10 + 3 = 123, not 0x010203.
    data = UNIT_DATA[:8] + bytes([3, 2, 1]) + UNIT_DATA[11:]
    assert decode_unit_data(data).value_multiplier == 123


def test_short_unit_data_is_malformed():
    with pytest.raises(MalformedResponseError):
        decode_unit_data(UNIT_DATA[:-1])


def test_channel_values_legacy():
    table = decode_channel_values(bytes([3, 5, 10, 20]), protocol_version=4)
    assert table.highest_channel == 3
    assert table.value_map() == {1: 5, 2: 10, 3: 20}
    assert table.channels[0].country_code is None


def test_channel_values_v6():
    data = bytes([2, 5, 0]) + b"EURGBP" + le32(500, 5000)
    table = decode_channel_values(data, protocol_version=6)
    assert table.highest_channel == 2
    # non-zero value byte wins, zero means "use the full value"
    assert table.value_map() == {1: 5, 2: 5000}
    assert [ch.country_code for ch in table.channels] == ["EUR", "GBP"]


def test_newer_protocol_uses_v6_layout():
    data = bytes([1, 0]) + b"USD" + le32(100)
    assert decode_channel_values(data, protocol_version=7).value_map() == {1: 100}


def test_short_v6_channel_values_is_malformed():
    # a legacy-shaped reply read with the v6 layout
    with pytest.raises(MalformedResponseError):
        decode_channel_values(bytes([3, 5, 10, 20]), protocol_version=6)


def setup_payload(protocol, with_extension=False):
    data = bytes([0x00]) + b"0450" + b"EUR" + bytes([1, 0, 0])
    data += bytes([3, 5, 10, 20])      # channel count + values
    data += bytes([2, 2, 2])           # security
    data += bytes([0x64, 0x00, 0x00])  # real value multiplier 100, LE
    data += bytes([protocol])
    if with_extension:
        data += b"EUREUREUR" + le32(500, 1000, 2000)
    return data


def test_setup_request_legacy():
    setup = decode_setup_request(setup_payload(4))
    assert setup.unit_type is UnitType.VALIDATOR
    assert setup.channel_count == 3
    assert setup.channel_values == (5, 10, 20)
    assert setup.channel_security == (2, 2, 2)
    assert setup.real_value_multiplier == 100
    assert setup.protocol_version == 4
    assert setup.value_map() == {1: 500, 2: 1000, 3: 2000}


def test_setup_request_v6_extension():
    setup = decode_setup_request(setup_payload(6, with_extension=True))
    assert setup.channel_countries == ("EUR", "EUR", "EUR")
    assert setup.channel_full_values == (500, 1000, 2000)
    assert setup.value_map() == {1: 500, 2: 1000, 3: 2000}
    assert setup.channels[1].value == 1000
    assert setup.channels[1].raw_value == 10


def test_setup_request_v6_without_extension_falls_back_to_multiplier():
    setup = decode_setup_request(setup_payload(6))
    assert setup.channel_full_values == ()
    assert setup.value_map() == {1: 500, 2: 1000, 3: 2000}


def test_setup_request_real_multiplier_is_little_endian():
    data = bytearray(setup_payload(4))
    data[18:21] = bytes([0x10, 0x27, 0x00])  # 10000
    assert decode_setup_request(bytes(data)).real_value_multiplier == 10000


def test_short_setup_request_is_malformed():
    with pytest.raises(MalformedResponseError):
        decode_setup_request(setup_payload(4)[:-1])


def test_serial_number_big_endian():
    assert decode_serial_number(bytes.fromhex("00 1C 96 2C")) == 1873452


def test_counters():
    data = bytes([5]) + le32(300, 210, 180, 360, 25)
    counters = decode_counters(data)
    assert counters.values == (300, 210, 180, 360, 25)
    assert (counters.stacked, counters.stored, counters.dispensed, counters.transferred, counters.rejected) == (
        300, 210, 180, 360, 25)


def test_short_counters_is_malformed():
    with pytest.raises(MalformedResponseError):
        decode_counters(bytes([5]) + le32(300))


def test_last_reject_code():
    assert decode_last_reject_code(b"\x06") == (6, "Channel inhibited")
    assert decode_last_reject_code(b"\x99") == (0x99, "0x99")
    with pytest.raises(MalformedResponseError):
        decode_last_reject_code(b"")
