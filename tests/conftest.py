"""Shared fakes for the SSP tests."""

import threading
import time
from collections import deque

import pytest

from SSP.ssp_constants import CMD_POLL, GenericStatus
from SSP.ssp_packet import decode_frame, encode_frame
from SSP.ssp_transport import SSPTransport

OK = GenericStatus.OK


def reply_frame(seq_addr: int, status: int = OK, data: bytes = b"") -> bytes:
    return encode_frame(seq_addr, status, data)


class FakeTransport(SSPTransport):
    """In-memory link: every written frame queues whatever the responder returns."""

    def __init__(self, responder=None, is_open=True):
        self._open = is_open
        self.responder = responder or (lambda frame: reply_frame(frame.seq_addr))
        self.writes = []
        self.frames = []
        self._pending = deque()
        self.open_error = None
        self.write_error = None
        self.read_error = None
        self.short_write = False
        self.resets = 0

    @property
    def is_open(self):
        return self._open

    def open(self):
        if self.open_error:
            raise self.open_error
        self._open = True

    def close(self):
        self._open = False

    def reset_buffers(self):
        self.resets += 1
        self._pending.clear()

    def inject(self, raw):
        """Bytes that arrive without a preceding write (late replies)."""
        self._pending.append(raw)

    def write(self, data):
        if self.write_error:
            raise self.write_error
        self.writes.append(bytes(data))
        frame = decode_frame(data)
        self.frames.append(frame)
        reply = self.responder(frame)
        if isinstance(reply, (list, tuple)):
            self._pending.extend(reply)
        elif reply is not None:
            self._pending.append(reply)
        return len(data) - 1 if self.short_write else len(data)

    def read(self, timeout):
        if self.read_error:
            raise self.read_error
        if self._pending:
            return self._pending.popleft()
        time.sleep(min(timeout, 0.002))
        return b""

    @property
    def commands(self):
        return [f.command for f in self.frames]


class InstrumentedTransport(FakeTransport):
    """Records each write-then-read window and counts any overlap between them."""

    def __init__(self, responder=None):
        super().__init__(responder)
        self.overlaps = 0
        self.windows = []
        self._busy = False
        self._start = 0.0
        self._guard = threading.Lock()

    def write(self, data):
        with self._guard:
            if self._busy:
                self.overlaps += 1
            self._busy = True
            self._start = time.monotonic()
        time.sleep(0.002)  # widen the window so a missing lock would show
        return super().write(data)

    def read(self, timeout):
        chunk = super().read(timeout)
        if chunk:
            with self._guard:
                self._busy = False
                self.windows.append((self._start, time.monotonic()))
        return chunk


class DeviceSim:
    """Answers by command code; POLL replies come from `poll_queue` when it has any."""

    def __init__(self, table=None):
        self.table = dict(table or {})
        self.poll_queue = deque()

    def __call__(self, frame):
        if frame.command == CMD_POLL and self.poll_queue:
            status, data = OK, self.poll_queue.popleft()
        else:
            status, data = self.table.get(frame.command, (OK, b""))
        return reply_frame(frame.seq_addr, status, data)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sim():
    return DeviceSim()


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()
