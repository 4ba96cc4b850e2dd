# SSP/ssp_errors.py
"""
Exceptions raised by the SSP core.

Transport and framing problems are raised; statuses reported by the device
itself (FAIL, COMMAND_NOT_KNOWN, ...) are returned as data on SSPResponse so
callers can tell "the device said no" from "the line is broken".
"""


class SSPError(Exception):
    """Base class for all SSP driver errors."""


class NotConnectedError(SSPError):
    """No open transport."""


class WriteFailedError(SSPError):
    """The transport refused or failed to write the whole frame."""


class ReadFailedError(SSPError):
    """The transport raised while reading a reply."""


class SSPTimeoutError(SSPError, TimeoutError):
    """No reply bytes arrived within the configured read timeout."""


class TruncatedFrameError(SSPError):
    """Fewer bytes than the frame's length field declares."""


class ChecksumMismatchError(SSPError):
    """CRC carried by the frame does not match the recomputed CRC."""


class MalformedResponseError(SSPError):
    """A reply payload is too short for the shape being decoded."""


class FrameTooLargeError(SSPError):
    """Encoded frame would exceed the maximum frame length."""


class CommandFailedError(SSPError):
    """Raised on request by SSPValidator.require_ok() for a non-OK reply."""

    def __init__(self, response):
        self.response = response
        super().__init__(f"Device replied {response.status_name}")
