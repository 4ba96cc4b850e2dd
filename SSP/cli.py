# SSP/cli.py
import argparse
import logging
import sys
import threading

from logger import get_logger, log_event, setup_logging
from ssp_config import SSPConfig
from SSP.ssp_device import SSPValidator
from SSP.ssp_events import PollEvent

logger = get_logger(__name__)


class EventPrinter:
    """Encapsulates event de-duping and pretty-printing logic."""

    # Money/outcome events: always printed, never de-duplicated.
    ALWAYS = ("CREDIT", "REJECTED", "POLL_ERROR")

    def __init__(self, out=None):
        self._out = out or sys.stdout
        self._last_label_key = None  # e.g. "READING", "NOTE_READ:ch=2", "UNKNOWN(0xED)"

    def _print(self, line: str):
        print(line, file=self._out)

    def _emit_on_change(self, label_key: str, line: str):
        """Print only when the state (label_key) changes."""
        if self._last_label_key == label_key:
            return
        self._last_label_key = label_key
        self._print(line)

    def print_event(self, ev: PollEvent):
        """
        Pretty-print a single PollEvent.
        - CREDIT, REJECTED and poller errors always print.
        - All other events only print when their label key changes.
        """
        name = ev.label()

        if name == "CREDIT":
            if ev.value is not None:
                cc = f" {ev.country}" if ev.country else ""
                self._print(f"[CREDIT] {ev.value}{cc} (ch {ev.channel})")
            else:
                self._print(f"[CREDIT] ch {ev.channel}")
            log_event(logger, ev)
            self._last_label_key = None
            return

        if name == "REJECTED":
            self._print(f"[REJECTED] {ev.reason or 'unknown'}")
            log_event(logger, ev, logging.WARNING)
            self._last_label_key = None
            return

        if name == "POLL_ERROR":
            self._print(f"[ERROR] {ev.reason}")
            self._last_label_key = None
            return

        if name == "NOTE_READ":
            key = f"NOTE_READ:ch={ev.channel}"
            if ev.value is not None:
                self._emit_on_change(key, f"[EVENT] NOTE_READ (ch {ev.channel}, {ev.value})")
            else:
                self._emit_on_change(key, f"[EVENT] NOTE_READ (ch {ev.channel})")
            return

        if ev.values:
            amounts = ", ".join(f"{v} {cc}" for v, cc in ev.values)
            self._emit_on_change(f"{name}:{amounts}", f"[EVENT] {name} ({amounts})")
            return

        self._emit_on_change(name, f"[EVENT] {name}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Monitor an SSP cash device and print its events.")
    parser.add_argument("--config", default="config.json", help="Path to the JSON config file")
    parser.add_argument("--log-file", default=None, help="Rotating log file (default: ssp.log)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING...")
    parser.add_argument("--trace", action="store_true", help="Log every TX/RX frame in hex")
    args = parser.parse_args(argv)

    setup_logging(args.log_file, args.log_level, trace_frames=args.trace)
    cfg = SSPConfig(args.config)

    v = SSPValidator(
        cfg.port_name,
        cfg.baud_rate,
        slave_id=cfg.slave_id,
        host_protocol_version=cfg.host_protocol_version,
        read_timeout=cfg.read_timeout,
    )
    v.on_status = lambda s: print("[STATUS]", s)
    v.on_error = lambda e: print("[ERROR]", e)

    if not v.connect():
        sys.exit(1)
    if not v.initialize_device():
        print("Init failed")
        v.disconnect()
        sys.exit(1)

    printer = EventPrinter()
    v.start_polling(sink=printer.print_event, interval=cfg.poll_ms / 1000.0)

    print("Press Ctrl+C to exit.")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        v.disconnect()


if __name__ == "__main__":
    main()
