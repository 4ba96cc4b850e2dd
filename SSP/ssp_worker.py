# SSP/ssp_worker.py
from typing import Optional

from PySide6.QtCore import QObject, Signal, Slot

from .ssp_constants import POLL_CREDIT_NOTE
from .ssp_device import SSPValidator
from .ssp_events import PollEvent


class SSPWorker(QObject):
    """
    Qt-friendly wrapper around an SSPValidator and its background poller.

    The poller runs on its own thread; signals emitted from it are queued to
    receivers living on the GUI thread by Qt.
    """

    # UI-friendly signals
    status = Signal(str)
    error = Signal(str)
    connected = Signal()
    disconnected = Signal()
    eventReceived = Signal(object)   # PollEvent
    credit = Signal(int, int)        # value (minor units), channel

    def __init__(self,
                 port: Optional[str] = None,
                 baud: int = 9600,
                 poll_ms: int = 250,
                 parent: Optional[QObject] = None,
                 validator: Optional[SSPValidator] = None):
        super().__init__(parent)
        self.poll_interval = max(0.01, poll_ms / 1000.0)  # floor to 10 ms
        self._running = False

        # Allow DI for tests; otherwise create a real validator
        self.validator = validator or SSPValidator(port, baud)

        # Wire core callbacks to Qt signals
        self.validator.on_status = self.status.emit
        self.validator.on_error = self.error.emit

    @property
    def is_running(self) -> bool:
        return self._running

    @Slot()
    def start(self):
        """
        Open the port, run the bring-up sequence, then start background polling.
        Safe to call once; subsequent calls while running are ignored.
        """
        if self._running:
            return

        if not self.validator.connect():
            self.error.emit("Connect failed")
            return
        self.connected.emit()

        if not self.validator.initialize_device():
            # Nothing useful to do without ENABLE.
            self.error.emit("Init failed")
            self.validator.disconnect()
            self.disconnected.emit()
            return

        self._running = True
        self.validator.start_polling(sink=self._on_event, interval=self.poll_interval)

    @Slot()
    def stop(self):
        """Stop polling, disable the device and close the port."""
        if not self._running:
            return
        self._running = False
        self.validator.disconnect()
        self.disconnected.emit()

    # --- Core event bridge ---
    def _on_event(self, ev: PollEvent):
        self.eventReceived.emit(ev)
        if ev.code == POLL_CREDIT_NOTE and ev.value is not None and ev.channel is not None:
            self.credit.emit(ev.value, ev.channel)
