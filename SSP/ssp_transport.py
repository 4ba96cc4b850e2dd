# SSP/ssp_transport.py
from __future__ import annotations

import threading
import time
from typing import Optional

import serial


class SSPTransport:
    """
    Byte-stream the command channel talks through.

    Implementations raise on I/O failure (OSError / serial.SerialException);
    `read()` returns b"" when nothing arrived within `timeout`.
    """

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    def open(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def write(self, data: bytes) -> int:
        raise NotImplementedError

    def read(self, timeout: float) -> bytes:
        raise NotImplementedError

    def reset_buffers(self) -> None:
        """Drop stale bytes; optional."""


class SerialTransport(SSPTransport):
    """
    pyserial-backed transport. Does NOT open automatically; call open().
    """

    WRITE_TIMEOUT_S = 0.5

    def __init__(self, port: str, baudrate: int = 9600, timeout: float = 0.5):
        self.port = port
        self.baudrate = int(baudrate)
        self.timeout = float(timeout)

        self._lock = threading.Lock()
        self._ser: Optional[serial.Serial] = None

    @property
    def is_open(self) -> bool:
        return bool(self._ser and self._ser.is_open)

    def open(self) -> None:
        with self._lock:
            if self._ser and self._ser.is_open:
                return

            port = self.port
            # Windows: COM10+ needs \\.\COM10
            if isinstance(port, str) and port.upper().startswith("COM"):
                try:
                    n = int(port[3:])
                    if n >= 10 and not port.startswith("\\\\.\\"):
                        port = "\\\\.\\" + port
                except ValueError:
                    pass

            # SSP devices default to 8N1.
            self._ser = serial.Serial(
                port,
                self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.timeout,
                write_timeout=self.WRITE_TIMEOUT_S,
            )
        # Discard bytes left over from a previous session before the first SYNC.
        self.reset_buffers()
        time.sleep(0.02)

    def close(self) -> None:
        with self._lock:
            if self._ser:
                try:
                    if self._ser.is_open:
                        self._ser.close()
                finally:
                    self._ser = None

    def reset_buffers(self) -> None:
        with self._lock:
            if not (self._ser and self._ser.is_open):
                return
            try:
                self._ser.reset_input_buffer()
                self._ser.reset_output_buffer()
            except (serial.SerialException, OSError):
                # Some drivers don't support buffer reset.
                pass

    def write(self, data: bytes) -> int:
        with self._lock:
            if not (self._ser and self._ser.is_open):
                raise serial.SerialException("Serial port is not open")
            written = self._ser.write(data)
            self._ser.flush()
            return written or 0

    def read(self, timeout: float) -> bytes:
        """Block up to `timeout` for the first byte, then drain what is waiting."""
        with self._lock:
            if not (self._ser and self._ser.is_open):
                raise serial.SerialException("Serial port is not open")
            self._ser.timeout = max(0.0, timeout)
            first = self._ser.read(1)
            if not first:
                return b""
            waiting = self._ser.in_waiting
            return first + (self._ser.read(waiting) if waiting else b"")
