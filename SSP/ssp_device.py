# SSP/ssp_device.py
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from . import ssp_constants as c
from .ssp_channel import CommandChannel, SSPResponse
from .ssp_decoder import (
    ChannelTable,
    Counters,
    SetupData,
    UnitData,
    decode_channel_values,
    decode_counters,
    decode_last_reject_code,
    decode_serial_number,
    decode_setup_request,
    decode_unit_data,
)
from .ssp_envelope import Cipher, unwrap, wrap
from .ssp_errors import CommandFailedError, MalformedResponseError, SSPError
from .ssp_events import PollEvent, decode_events
from .ssp_poller import EventPoller
from .ssp_transport import SerialTransport, SSPTransport

logger = logging.getLogger(__name__)


class SSPValidator:
    """
    SSP client for ITL validators and payout units, with simple callbacks.

    Design notes:
    - Every exchange goes through one CommandChannel, so foreground commands
      and the background EventPoller are serialised on the wire.
    - Command methods return SSPResponse; a device FAIL/NOT_KNOWN is data,
      transport and framing problems raise SSPError subclasses.
    - `on_status`, `on_error`, `on_event` let UI/CLI code hook in without Qt deps.
    """

    READ_TIMEOUT_S = 0.5
    DEFAULT_PROTOCOL_VERSION = 6

    def __init__(self, port: Optional[str] = None, baud: int = 9600, *,
                 slave_id: int = c.DEFAULT_ADDRESS,
                 host_protocol_version: int | None = None,
                 read_timeout: float = READ_TIMEOUT_S,
                 transport: Optional[SSPTransport] = None):
        """
        Parameters
        ----------
        port : str
            OS serial device name (e.g. 'COM5', '/dev/ttyUSB0'). Not needed
            when `transport` is given.
        baud : int, default 9600
            SSP line speed.
        slave_id : int, default 0x00
            SSP bus address (0..0x7D).
        host_protocol_version : int | None
            If set, requested from the device right after SETUP (affects
            event formats and the channel value layout).
        read_timeout : float
            Per-exchange reply window in seconds, poller ticks included.
        transport : SSPTransport | None
            Pre-built transport (tests, non-serial links).
        """
        if transport is None and not port:
            raise ValueError("either port or transport is required")

        self.port = port
        self.baud = baud
        self.transport = transport or SerialTransport(port, baud, timeout=read_timeout)
        self.channel = CommandChannel(self.transport, address=slave_id, read_timeout=read_timeout)
        self.requested_protocol_version = host_protocol_version

        # --- Dataset / currency info (populated by SETUP) ---
        self.protocol_version: int = host_protocol_version or self.DEFAULT_PROTOCOL_VERSION
        self.num_channels: int = 0
        self.channel_value_map: Dict[int, int] = {}
        self.value_multiplier: int = 1
        self.currency: Optional[str] = None
        self.setup: Optional[SetupData] = None

        # --- UI / application callbacks (optional) ---
        self.on_event: Optional[Callable[[PollEvent], None]] = None
        self.on_status: Optional[Callable[[str], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

        self._poller: Optional[EventPoller] = None

        # When POLL reports DISABLED we re-enable, at most once per backoff
        # window, so a genuine fault (cashbox out, path open) isn't hammered.
        self._last_enable_attempt = 0.0
        self._enable_backoff_s = 1.0
        self._host_disabled = False

        # eSSP packet counter (eCOUNT), restarted whenever a new key is agreed.
        self._encryption_count = 0

    @property
    def slave_id(self) -> int:
        return self.channel.address

    # ---------- Lifecycle ----------
    def connect(self) -> bool:
        """Open the transport. Returns False (and reports) if it can't be opened."""
        try:
            self.transport.open()
        except (OSError, ValueError) as exc:
            self._error(f"Error connecting to {self.port}: {exc}")
            return False
        self._status(f"Connected to {self.port} @ {self.baud} bps")
        return True

    def disconnect(self) -> None:
        """Stop polling, disable and close the transport. Errors are reported, not raised."""
        self.stop_polling()
        if not self.transport.is_open:
            return
        try:
            try:
                self.disable()
            finally:
                self.transport.close()
            self._status("Disconnected.")
        except (SSPError, OSError) as exc:
            self._error(f"Disconnect error: {exc}")

    def initialize_device(self) -> bool:
        """
        Standard SSP bring-up.

        1) SYNC                   align sequence bits (fatal on failure)
        2) SETUP_REQUEST          dataset/channel info (non-fatal)
        3) HOST_PROTOCOL_VERSION  only if requested (non-fatal)
        4) SET_INHIBITS           enable all known channels
        5) ENABLE                 start accepting
        """
        if not self.transport.is_open:
            self._error("initialize_device() called without an open transport. Call connect() first.")
            return False

        try:
            if not self.sync().ok:
                self._error("SYNC failed")
                return False
        except SSPError as exc:
            self._error(f"SYNC failed: {exc}")
            return False

        try:
            if not self.setup_request().ok:
                self._status("SETUP_REQUEST failed; continuing without channel values.")
        except SSPError as exc:
            self._status(f"SETUP_REQUEST failed ({exc}); continuing without channel values.")

        if self.requested_protocol_version is not None:
            try:
                if not self.host_protocol_version(self.requested_protocol_version).ok:
                    self._status("Host Protocol Version not set; continuing with device default.")
            except SSPError as exc:
                self._status(f"Host Protocol Version not set ({exc}); continuing with device default.")

        try:
            if not self.set_inhibits().ok:
                self._error("SET_INHIBITS rejected")
                return False
            if not self.enable().ok:
                self._error("ENABLE rejected")
                return False
        except SSPError as exc:
            self._error(f"Init failed: {exc}")
            return False

        return True

    # ---------- Raw access ----------
    def send(self, command: int, data: bytes = b'') -> SSPResponse:
        return self.channel.send(command, data)

    @staticmethod
    def require_ok(response: SSPResponse) -> SSPResponse:
        if not response.ok:
            raise CommandFailedError(response)
        return response

    def send_encrypted(self, command: int, data: bytes = b'', *,
                       encrypt: Cipher, decrypt: Cipher) -> SSPResponse:
        """
        Send `command` inside an eSSP envelope and unwrap the reply.

        `encrypt`/`decrypt` are the block cipher for the key already agreed
        with the device. A reply that comes back in clear (e.g. KEY_NOT_SET)
        is returned as is. The packet counter only advances on a good reply.
        """
        packet = wrap(bytes([command & 0xFF]) + bytes(data), self._encryption_count, encrypt)
        response = self.send(packet[0], packet[1:])
        if response.status_code != c.STEX:
            return response

        count, inner = unwrap(response.frame.payload, decrypt)
        if not inner:
            raise MalformedResponseError("encrypted reply carries no status byte")
        if count != self._encryption_count:
            logger.warning("eCOUNT %d in reply != %d sent", count, self._encryption_count)
        self._encryption_count += 1
        return SSPResponse(status_code=inner[0], raw_payload=inner[1:], data_length=len(inner), frame=response.frame)

    def reset_encryption_count(self) -> None:
        self._encryption_count = 0

    # ---------- Thin commands ----------
    def sync(self) -> SSPResponse:
        return self.send(c.CMD_SYNC)

    def reset(self) -> SSPResponse:
        return self.send(c.CMD_RESET)

    def enable(self) -> SSPResponse:
        self._host_disabled = False
        return self.send(c.CMD_ENABLE)

    def disable(self) -> SSPResponse:
        """Stop acceptance; DISABLED events won't trigger a re-enable until enable() is called."""
        self._host_disabled = True
        return self.send(c.CMD_DISABLE)

    def display_on(self) -> SSPResponse:
        return self.send(c.CMD_DISPLAY_ON)

    def display_off(self) -> SSPResponse:
        return self.send(c.CMD_DISPLAY_OFF)

    def reject_banknote(self) -> SSPResponse:
        return self.send(c.CMD_REJECT_BANKNOTE)

    def hold(self) -> SSPResponse:
        """Keep the escrowed note for another escrow period."""
        return self.send(c.CMD_HOLD)

    def poll(self) -> SSPResponse:
        return self.send(c.CMD_POLL)

    def reset_counters(self) -> SSPResponse:
        return self.send(c.CMD_RESET_COUNTERS)

    def enable_payout_device(self) -> SSPResponse:
        return self.send(c.CMD_ENABLE_PAYOUT_DEVICE)

    def disable_payout_device(self) -> SSPResponse:
        return self.send(c.CMD_DISABLE_PAYOUT_DEVICE)

    def configure_bezel(self, red: int, green: int, blue: int, non_volatile: bool = False) -> SSPResponse:
        data = bytes([red & 0xFF, green & 0xFF, blue & 0xFF, 0x01 if non_volatile else 0x00])
        return self.send(c.CMD_CONFIGURE_BEZEL, data)

    def set_inhibits(self, inhibits: Optional[bytes] = None) -> SSPResponse:
        """
        Enable/disable channels.

        inhibits: bitmask bytes, LSB = channel 1, 1 = enabled. If None, enables
        every known channel (16 when SETUP hasn't told us the count).
        """
        if inhibits is None:
            total_channels = self.num_channels or 16
            num_bytes = max(2, (total_channels + 7) // 8)  # devices expect at least 2 bytes
            inhibits = ((1 << total_channels) - 1).to_bytes(num_bytes, "little")
        return self.send(c.CMD_SET_CHANNEL_INHIBITS, inhibits)

    def host_protocol_version(self, version: int) -> SSPResponse:
        ver = max(1, min(0xFF, int(version)))
        response = self.send(c.CMD_HOST_PROTOCOL_VERSION, bytes([ver]))
        if response.ok:
            self.protocol_version = ver
            if self._poller:
                self._poller.protocol_version = ver
            self._status(f"Host Protocol Version set to {ver}.")
        return response

    # ---------- Decoded replies ----------
    def setup_request(self) -> SSPResponse:
        response = self.send(c.CMD_SETUP_REQUEST)
        if response.ok:
            setup = decode_setup_request(response.raw_payload)
            response.decoded = setup
            self._apply_setup(setup)
        return response

    def unit_data(self) -> SSPResponse:
        response = self.send(c.CMD_UNIT_DATA)
        if response.ok:
            unit: UnitData = decode_unit_data(response.raw_payload)
            response.decoded = unit
            self.value_multiplier = unit.value_multiplier
            self.currency = unit.country_code
        return response

    def channel_value_request(self) -> SSPResponse:
        response = self.send(c.CMD_CHANNEL_VALUE_REQUEST)
        if response.ok:
            table: ChannelTable = decode_channel_values(response.raw_payload, self.protocol_version)
            response.decoded = table
        return response

    def get_serial_number(self) -> Optional[int]:
        response = self.send(c.CMD_GET_SERIAL_NUMBER)
        return decode_serial_number(response.raw_payload) if response.ok else None

    def get_counters(self) -> Optional[Counters]:
        response = self.send(c.CMD_GET_COUNTERS)
        return decode_counters(response.raw_payload) if response.ok else None

    def last_reject_code(self) -> Optional[Tuple[int, str]]:
        response = self.send(c.CMD_LAST_REJECT_CODE)
        return decode_last_reject_code(response.raw_payload) if response.ok else None

    def get_last_reject_reason(self) -> Optional[str]:
        """Human-readable reason for the most recent rejection, or None."""
        try:
            result = self.last_reject_code()
        except SSPError as exc:
            self._error(f"LAST_REJECT_CODE failed: {exc}")
            return None
        return result[1] if result else None

    # ---------- Polling ----------
    def poll_once(self) -> List[PollEvent]:
        """
        Send a single POLL and translate the reply into PollEvents.

        Each event goes to `on_event`. SLAVE_RESET triggers an inline
        re-initialisation and ends processing of this poll; DISABLED triggers
        a rate-limited re-enable.
        """
        response = self.poll()
        if not response.ok:
            self._error(f"POLL replied {response.status_name}")
            return []
        events = decode_events(response.raw_payload, self.protocol_version, self.channel_value_map, self.currency)
        handled: List[PollEvent] = []
        for ev in events:
            handled.append(ev)
            if not self._handle_event(ev):
                break
        return handled

    def start_polling(self, sink: Optional[Callable[[PollEvent], None]] = None,
                      interval: float = EventPoller.POLL_INTERVAL_S,
                      resolve_reject_reason: bool = True) -> EventPoller:
        """Run POLL on a background thread; each event goes to `on_event` and `sink`."""
        if self._poller and self._poller.is_running:
            return self._poller

        def _dispatch(ev: PollEvent) -> None:
            # Poll errors are already logged by the poller; they only go to the sink.
            if not ev.is_error:
                self._handle_event(ev)
            if sink:
                sink(ev)

        self._poller = EventPoller(
            self.channel,
            _dispatch,
            interval,
            protocol_version=self.protocol_version,
            channel_values=self.channel_value_map,
            currency=self.currency,
            resolve_reject_reason=resolve_reject_reason,
        )
        self._poller.start()
        return self._poller

    def stop_polling(self) -> None:
        if self._poller:
            self._poller.stop()

    # ---------- internals ----------
    def _apply_setup(self, setup: SetupData) -> None:
        self.setup = setup
        self.num_channels = setup.channel_count
        self.channel_value_map = setup.value_map()
        self.value_multiplier = setup.value_multiplier
        self.currency = setup.country_code
        self.protocol_version = setup.protocol_version
        if self._poller:
            self._poller.channel_values = dict(self.channel_value_map)
            self._poller.currency = self.currency
            self._poller.protocol_version = self.protocol_version
        logger.info("dataset %s: %d channels %s", setup.country_code, setup.channel_count, self.channel_value_map)

    def _handle_event(self, ev: PollEvent) -> bool:
        """Surface one event; returns False when the rest of the poll should be dropped."""
        if self.on_event:
            self.on_event(ev)

        if ev.code == c.POLL_SLAVE_RESET:
            self._status("Device reset; reinitializing...")
            if self.initialize_device():
                self._status("Reinitialized after reset.")
            else:
                self._error("Reinit failed after reset.")
            return False

        if ev.code == c.POLL_DISABLED and not self._host_disabled:
            now = time.monotonic()
            if now - self._last_enable_attempt >= self._enable_backoff_s:
                self._last_enable_attempt = now
                try:
                    self.enable()
                except SSPError as exc:
                    self._error(f"Re-enable failed: {exc}")
        return True

    def _status(self, msg: str):
        logger.info(msg)
        if self.on_status:
            self.on_status(msg)

    def _error(self, msg: str):
        logger.error(msg)
        if self.on_error:
            self.on_error(msg)
