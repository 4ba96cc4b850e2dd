# SSP/ssp_events.py
import struct
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from . import ssp_constants as c

POLL_ERROR = "POLL_ERROR"
READING = "READING"
UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class PollEvent:
    code: Optional[int]
    name: str
    channel: Optional[int] = None
    value: Optional[int] = None
    country: Optional[str] = None
    reason: Optional[str] = None
    data: bytes = b""
    values: Tuple[Tuple[int, str], ...] = ()   # (value, country) pairs for payout events
    error: Optional[BaseException] = None

    @property
    def is_error(self) -> bool:
        return self.name == POLL_ERROR

    def label(self) -> str:
        if self.name == UNKNOWN and self.code is not None:
            return f"UNKNOWN(0x{self.code:02X})"
        return self.name


def error_event(exc: BaseException, reason: Optional[str] = None) -> PollEvent:
    """Poller-level failure (timeout, transport error, non-OK POLL reply)."""
    return PollEvent(code=None, name=POLL_ERROR, reason=reason or f"{type(exc).__name__}: {exc}", error=exc)


# One data byte: the channel number.
CHANNEL_EVENTS = frozenset({
    c.POLL_READ_NOTE,
    c.POLL_CREDIT_NOTE,
    c.POLL_NOTE_CLEARED_FROM_FRONT,
    c.POLL_NOTE_CLEARED_TO_CASHBOX,
    c.POLL_FRAUD_ATTEMPT,
})

# Value-reporting events: v6+ => count n, then n * (4-byte value + 3-byte country); legacy => 4-byte value.
VALUE_EVENTS = frozenset({
    c.POLL_JAM_RECOVERY,
    c.POLL_ERROR_DURING_PAYOUT,
    c.POLL_SMART_EMPTYING,
    c.POLL_SMART_EMPTIED,
    c.POLL_NOTE_TRANSFERED_TO_STACKER,
    c.POLL_NOTE_PAID_INTO_STACKER_AT_POWER_UP,
    c.POLL_NOTE_PAID_INTO_STORE_AT_POWER_UP,
    c.POLL_NOTE_DISPENSED_AT_POWER_UP,
    c.POLL_NOTE_HELD_IN_BEZEL,
    c.POLL_DISPENSED,
    c.POLL_JAMMED,
    c.POLL_HALTED,
    c.POLL_FLOATING,
    c.POLL_FLOATED,
    c.POLL_TIME_OUT,
    c.POLL_DISPENSING,
    c.POLL_CASHBOX_PAID,
    c.POLL_COIN_CREDIT,
})

# Incomplete operations: v6+ => n * (4-byte actual + 4-byte requested + 3-byte country); legacy => 8 bytes.
INCOMPLETE_EVENTS = frozenset({
    c.POLL_INCOMPLETE_PAYOUT,
    c.POLL_INCOMPLETE_FLOAT,
})

MULTI_CURRENCY_VERSION = 6


def _event_size(code: int, stream: bytes, idx: int, protocol_version: int) -> int:
    """Number of data bytes following the event code at stream[idx - 1]."""
    if code in CHANNEL_EVENTS:
        return 1
    if code in VALUE_EVENTS:
        if protocol_version >= MULTI_CURRENCY_VERSION:
            return 1 + 7 * stream[idx] if idx < len(stream) else 1
        return 4
    if code in INCOMPLETE_EVENTS:
        if protocol_version >= MULTI_CURRENCY_VERSION:
            return 1 + 11 * stream[idx] if idx < len(stream) else 1
        return 8
    return 0


def _country(raw: bytes) -> str:
    return raw.decode("ascii", "replace")


def _value_pairs(code: int, data: bytes, protocol_version: int, currency: Optional[str]) -> Tuple[Tuple[int, str], ...]:
    pairs = []
    if protocol_version >= MULTI_CURRENCY_VERSION:
        if not data:
            return ()
        step = 11 if code in INCOMPLETE_EVENTS else 7
        body = data[1:]
        for i in range(data[0]):
            chunk = body[i * step:(i + 1) * step]
            if len(chunk) < step:
                break
            pairs.append((struct.unpack_from('<I', chunk, 0)[0], _country(chunk[step - 3:])))
    elif len(data) >= 4:
        pairs.append((struct.unpack_from('<I', data, 0)[0], currency or ""))
    return tuple(pairs)


def decode_events(stream: bytes,
                  protocol_version: int = MULTI_CURRENCY_VERSION,
                  channel_values: Optional[Mapping[int, int]] = None,
                  currency: Optional[str] = None) -> List[PollEvent]:
    """
    Translate a POLL event stream (the reply payload after the OK byte).

    The stream is a concatenation of 1-byte event codes, each followed by the
    data bytes its code defines. Unknown codes become UNKNOWN events and
    parsing continues with the next byte. An event cut short by the end of
    the stream keeps whatever bytes were present.
    """
    channel_values = channel_values or {}
    events: List[PollEvent] = []
    idx = 0
    while idx < len(stream):
        code = stream[idx]
        idx += 1

        size = _event_size(code, stream, idx, protocol_version)
        data = bytes(stream[idx:idx + size])
        idx += size

        name = c.EVENT_NAMES.get(code, UNKNOWN)

        if code in CHANNEL_EVENTS:
            ch = data[0] if data else 0
            if code == c.POLL_READ_NOTE and ch == 0:
                events.append(PollEvent(code, READING, data=data))
            else:
                events.append(PollEvent(code, name, channel=ch, value=channel_values.get(ch),
                                        country=currency, data=data))

        elif code in VALUE_EVENTS or code in INCOMPLETE_EVENTS:
            pairs = _value_pairs(code, data, protocol_version, currency)
            total = sum(v for v, _ in pairs) if pairs else None
            country = pairs[0][1] if pairs else currency
            events.append(PollEvent(code, name, value=total, country=country, data=data, values=pairs))

        else:
            events.append(PollEvent(code, name, data=data))

    return events
