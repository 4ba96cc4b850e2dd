# SSP/ssp_channel.py
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

from .ssp_constants import CMD_SYNC, STX, GenericStatus
from .ssp_errors import (
    NotConnectedError,
    ReadFailedError,
    SSPTimeoutError,
    TruncatedFrameError,
    WriteFailedError,
)
from .ssp_packet import Frame, decode_frame, encode_frame
from .ssp_sequence import SequenceController
from .ssp_transport import SSPTransport

logger = logging.getLogger(__name__)


@dataclass
class SSPResponse:
    status_code: int
    raw_payload: bytes   # payload after the status byte
    data_length: int     # frame length field (status + data)
    frame: Optional[Frame] = None
    decoded: Optional[Any] = None

    @classmethod
    def from_frame(cls, frame: Frame) -> "SSPResponse":
        return cls(status_code=frame.command, raw_payload=frame.data, data_length=frame.length, frame=frame)

    @property
    def status(self) -> Optional[GenericStatus]:
        try:
            return GenericStatus(self.status_code)
        except ValueError:
            return None

    @property
    def status_name(self) -> str:
        status = self.status
        return status.name if status is not None else f"UNKNOWN(0x{self.status_code:02X})"

    @property
    def ok(self) -> bool:
        return self.status_code == GenericStatus.OK


class CommandChannel:
    """
    One request/response exchange at a time over a shared transport.

    The lock is held from the write of a command until its reply has been
    read and validated, so the background poller and foreground callers never
    interleave on the wire. No retries: a failed exchange raises and the
    caller decides whether to resync.
    """

    def __init__(self, transport: SSPTransport, address: int = 0x00, read_timeout: float = 0.5):
        if transport is None:
            raise ValueError("transport is required")
        if read_timeout is None or read_timeout <= 0:
            raise ValueError("read_timeout must be a positive number of seconds")

        self.transport = transport
        # Clamp to valid 7-bit SSP address range.
        self.address = max(0, min(0x7D, int(address)))
        self.read_timeout = float(read_timeout)
        self.sequence = SequenceController()
        self._lock = threading.Lock()

    def send(self, command: int, data: bytes = b'') -> SSPResponse:
        with self._lock:
            return self._exchange(command, bytes(data))

    def _exchange(self, command: int, data: bytes) -> SSPResponse:
        if not self.transport.is_open:
            raise NotConnectedError("Serial port is not open.")

        if command == CMD_SYNC:
            # SYNC goes out with seq=0 and leaves the next command on seq=0 too.
            self.sequence.reset()
            bit = SequenceController.RESET_BIT
        else:
            bit = self.sequence.next_bit()

        seq_addr = SequenceController.seq_addr(self.address, bit)
        packet = encode_frame(seq_addr, command, data)
        # Whatever is still in the input buffer belongs to an earlier exchange.
        self.transport.reset_buffers()
        logger.debug("TX %s", packet.hex(" "))
        try:
            written = self.transport.write(packet)
        except OSError as exc:
            raise WriteFailedError(f"write of command 0x{command:02X} failed: {exc}") from exc
        if written != len(packet):
            raise WriteFailedError(f"short write for command 0x{command:02X} ({written} of {len(packet)} bytes)")

        return SSPResponse.from_frame(self._read_frame(seq_addr))

    def _read_frame(self, seq_addr: int) -> Frame:
        """
        Read until a frame carrying `seq_addr` decodes or the timeout expires.

        Frames with another sequence bit or address are late replies to an
        earlier command; they are logged and dropped so they are never paired
        with this one.
        """
        deadline = time.monotonic() + self.read_timeout
        buf = bytearray()

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                chunk = self.transport.read(remaining)
            except OSError as exc:
                raise ReadFailedError(f"read failed: {exc}") from exc

            if not chunk:
                # Nothing yet; yield briefly instead of busy-waiting.
                time.sleep(0.001)
                continue

            buf += chunk
            while buf:
                try:
                    frame = decode_frame(bytes(buf))
                except TruncatedFrameError:
                    break
                end = buf.find(STX) + len(encode_frame(frame.seq_addr, frame.command, frame.data))
                if len(buf) < end:
                    # Second half of a stuffed CRC byte not read yet.
                    break
                if frame.seq_addr != seq_addr:
                    logger.warning(
                        "dropping stale reply (seq %d, addr 0x%02X); expected seq %d, addr 0x%02X",
                        frame.sequence_bit, frame.address, seq_addr >> 7, seq_addr & 0x7F,
                    )
                    del buf[:end]
                    continue
                logger.debug("RX %s", bytes(buf[:end]).hex(" "))
                return frame

        if not buf:
            raise SSPTimeoutError(f"no reply within {self.read_timeout:.3f}s")
        raise TruncatedFrameError(f"incomplete reply after {self.read_timeout:.3f}s: {bytes(buf).hex(' ')}")
