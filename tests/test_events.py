import struct

from SSP.ssp_errors import SSPTimeoutError
from SSP.ssp_events import POLL_ERROR, READING, UNKNOWN, PollEvent, decode_events, error_event

VALUES = {1: 500, 2: 1000, 3: 2000}


def names(events):
    return [ev.label() for ev in events]


def test_empty_stream_has_no_events():
    assert decode_events(b"") == []


def test_note_insert_sequence():
    stream = bytes([0xEF, 0x00, 0xEF, 0x02, 0xCC, 0xEB, 0xEE, 0x02])
    events = decode_events(stream, channel_values=VALUES, currency="EUR")
    assert names(events) == [READING, "NOTE_READ", "STACKING", "STACKED", "CREDIT"]
    assert events[1].channel == 2 and events[1].value == 1000
    credit = events[-1]
    assert credit.channel == 2
    assert credit.value == 1000
    assert credit.country == "EUR"


def test_rejection_events_carry_no_data():
    events = decode_events(bytes([0xED, 0xEC, 0xE8]))
    assert names(events) == ["REJECTING", "REJECTED", "DISABLED"]
    assert all(ev.data == b"" for ev in events)


def test_credit_on_unknown_channel_has_no_value():
    ev = decode_events(bytes([0xEE, 0x09]), channel_values=VALUES)[0]
    assert ev.channel == 9
    assert ev.value is None


def test_unknown_code_does_not_stop_parsing():
    events = decode_events(bytes([0x42, 0xEB]))
    assert names(events) == ["UNKNOWN(0x42)", "STACKED"]
    assert events[0].name == UNKNOWN


def test_dispensed_multi_currency():
    stream = bytes([0xD2, 0x02]) + struct.pack("<I", 500) + b"EUR" + struct.pack("<I", 1000) + b"EUR" + bytes([0xE8])
    events = decode_events(stream, protocol_version=6)
    assert names(events) == ["DISPENSED", "DISABLED"]
    assert events[0].values == ((500, "EUR"), (1000, "EUR"))
    assert events[0].value == 1500
    assert events[0].country == "EUR"


def test_dispensed_legacy_uses_dataset_currency():
    stream = bytes([0xD2]) + struct.pack("<I", 2000) + bytes([0xEB])
    events = decode_events(stream, protocol_version=4, currency="GBP")
    assert names(events) == ["DISPENSED", "STACKED"]
    assert events[0].values == ((2000, "GBP"),)


def test_incomplete_payout_multi_currency():
    stream = bytes([0xDC, 0x01]) + struct.pack("<II", 300, 500) + b"EUR"
    ev = decode_events(stream, protocol_version=6)[0]
    assert ev.name == "INCOMPLETE_PAYOUT"
    assert ev.values == ((300, "EUR"),)
    assert len(ev.data) == 12


def test_event_cut_short_keeps_partial_data():
    ev = decode_events(bytes([0xD2, 0x01, 0xF4, 0x01]), protocol_version=6)[0]
    assert ev.name == "DISPENSED"
    assert ev.values == ()
    assert ev.value is None


def test_slave_reset():
    assert names(decode_events(bytes([0xF1]))) == ["SLAVE_RESET"]


def test_error_event():
    exc = SSPTimeoutError("no reply within 0.500s")
    ev = error_event(exc)
    assert ev.is_error
    assert ev.name == POLL_ERROR
    assert ev.error is exc
    assert "SSPTimeoutError" in ev.reason


def test_label_for_named_event():
    assert PollEvent(0xEE, "CREDIT", channel=1).label() == "CREDIT"
