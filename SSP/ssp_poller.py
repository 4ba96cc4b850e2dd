# SSP/ssp_poller.py
import dataclasses
import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Mapping, Optional

from .ssp_channel import CommandChannel
from .ssp_constants import CMD_LAST_REJECT_CODE, CMD_POLL, POLL_NOTE_REJECTED
from .ssp_decoder import decode_last_reject_code
from .ssp_errors import CommandFailedError, SSPError
from .ssp_events import PollEvent, decode_events, error_event

logger = logging.getLogger(__name__)

EventSink = Callable[[PollEvent], None]


class PollerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class EventPoller:
    """
    Background POLL loop for one device.

    Shares the CommandChannel (and therefore its lock) with foreground
    callers, so a long foreground command delays the next tick instead of
    racing it. A failed tick is published as a POLL_ERROR event and the loop
    carries on; only stop() ends it.
    """

    POLL_INTERVAL_S = 0.25

    def __init__(self,
                 channel: CommandChannel,
                 sink: EventSink,
                 interval: float = POLL_INTERVAL_S,
                 *,
                 protocol_version: int = 6,
                 channel_values: Optional[Mapping[int, int]] = None,
                 currency: Optional[str] = None,
                 resolve_reject_reason: bool = False):
        self.channel = channel
        self.sink = sink
        self.interval = max(0.01, float(interval))  # floor to 10 ms

        # Dataset info used to annotate events; may be updated while running.
        self.protocol_version = protocol_version
        self.channel_values: Mapping[int, int] = dict(channel_values or {})
        self.currency = currency
        self.resolve_reject_reason = resolve_reject_reason

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state = PollerState.STOPPED
        self._state_lock = threading.Lock()

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is PollerState.RUNNING

    def start(self) -> None:
        """
        Begin polling on a daemon thread. Calling start() while running is a no-op.

        After stop(), a loop still finishing its last tick is joined first so
        only one loop ever runs. stop() then start() from inside the sink
        keeps the current loop going.
        """
        with self._state_lock:
            old = self._thread
            if old is not None and old.is_alive():
                if not self._stop_event.is_set():
                    return
                if old is threading.current_thread():
                    self._stop_event.clear()
                    self._state = PollerState.RUNNING
                    return
        if old is not None:
            old.join()

        with self._state_lock:
            if self._thread is not old:
                # Another start() got there first.
                return
            self._stop_event.clear()
            self._state = PollerState.RUNNING
            self._thread = threading.Thread(target=self._run, name="ssp-poller", daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Ask the loop to exit and wait for it.

        An exchange already on the wire is allowed to finish; no new command
        is issued once this returns. Called from inside the sink, it only
        flags the loop (a thread cannot join itself). If `timeout` expires
        first the state stays RUNNING until the loop actually exits.
        """
        self._stop_event.set()
        with self._state_lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("poller still busy %.2fs after stop()", timeout)
                return
        with self._state_lock:
            if self._thread is thread:
                self._state = PollerState.STOPPED

    def poll_once(self) -> List[PollEvent]:
        """Run one POLL exchange and publish what it produced."""
        try:
            response = self.channel.send(CMD_POLL)
        except (SSPError, OSError) as exc:
            logger.warning("POLL failed: %s", exc)
            events = [error_event(exc)]
        else:
            if response.ok:
                events = decode_events(
                    response.raw_payload,
                    protocol_version=self.protocol_version,
                    channel_values=self.channel_values,
                    currency=self.currency,
                )
                if self.resolve_reject_reason:
                    events = [self._with_reject_reason(ev) for ev in events]
            else:
                logger.warning("POLL replied %s", response.status_name)
                events = [error_event(CommandFailedError(response))]

        for ev in events:
            self._publish(ev)
        return events

    # ---------- internals ----------
    def _run(self) -> None:
        try:
            while not self._stop_event.is_set():
                started = time.monotonic()
                self.poll_once()

                # Keep a steady cadence; wake immediately on stop().
                remaining = self.interval - (time.monotonic() - started)
                self._stop_event.wait(max(0.0, remaining))
        finally:
            with self._state_lock:
                # A newer loop may already own the state.
                if self._thread is threading.current_thread():
                    self._state = PollerState.STOPPED
            logger.debug("poller exited")

    def _publish(self, ev: PollEvent) -> None:
        try:
            self.sink(ev)
        except Exception:
            # A misbehaving sink must not end monitoring.
            logger.exception("event sink raised for %s", ev.label())

    def _with_reject_reason(self, ev: PollEvent) -> PollEvent:
        if ev.code != POLL_NOTE_REJECTED or self._stop_event.is_set():
            return ev
        try:
            response = self.channel.send(CMD_LAST_REJECT_CODE)
            if not response.ok:
                return ev
            _, reason = decode_last_reject_code(response.raw_payload)
        except (SSPError, OSError) as exc:
            logger.warning("LAST_REJECT_CODE failed: %s", exc)
            return ev
        return dataclasses.replace(ev, reason=reason)
