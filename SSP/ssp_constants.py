# SSP/ssp_constants.py
from enum import IntEnum
from typing import Dict

# === SSP transport ===
STX = 0x7F               # Start-of-frame marker; literal 0x7F after STX is stuffed as 0x7F 0x7F.
STEX = 0x7E              # First data byte of an encrypted payload.
MAX_FRAME_LENGTH = 1024  # Largest wire frame (stuffing included) we build or accept.
DEFAULT_ADDRESS = 0x00   # Single-drop validators answer on address 0.

# === Commands (host -> device) ===
# Generic / session control
CMD_RESET                      = 0x01  # Hard reset of the slave.
CMD_SET_CHANNEL_INHIBITS       = 0x02  # Enable/disable channels; bitmask LSB = channel 1.
CMD_DISPLAY_ON                 = 0x03  # Re-enable bezel illumination.
CMD_DISPLAY_OFF                = 0x04  # Keep bezel dark even when enabled.
CMD_SETUP_REQUEST              = 0x05  # Dataset info: unit type, channels, multipliers, protocol.
CMD_HOST_PROTOCOL_VERSION      = 0x06  # Tell the device which protocol level to use for events.
CMD_POLL                       = 0x07  # Fetch all events since last poll.
CMD_REJECT_BANKNOTE            = 0x08  # Return the note in escrow to the user.
CMD_DISABLE                    = 0x09  # Stop accepting notes.
CMD_ENABLE                     = 0x0A  # Start accepting notes.
CMD_GET_SERIAL_NUMBER          = 0x0C  # 4-byte big-endian factory serial.
CMD_UNIT_DATA                  = 0x0D  # Unit type, firmware, country, multiplier, protocol.
CMD_CHANNEL_VALUE_REQUEST      = 0x0E  # Highest channel + per-channel values.
CMD_CHANNEL_SECURITY_DATA      = 0x0F
CMD_CHANNEL_RE_TEACH_DATA      = 0x10
CMD_SYNC                       = 0x11  # Resets the slave's sequence logic; next command uses seq=0.
CMD_LAST_REJECT_CODE           = 0x17  # One-byte reason for the most recent rejection.
CMD_HOLD                       = 0x18  # Keep a note in escrow.
CMD_GET_FIRMWARE_VERSION       = 0x20
CMD_GET_DATASET_VERSION        = 0x21
CMD_GET_ALL_LEVELS             = 0x22
CMD_SET_REFILL_MODE            = 0x30
CMD_PAYOUT_AMOUNT              = 0x33
CMD_SET_DENOMINATION_LEVEL     = 0x34
CMD_GET_DENOMINATION_LEVEL     = 0x35
CMD_HALT_PAYOUT                = 0x38
CMD_FLOAT_AMOUNT               = 0x3D
CMD_GET_MINIMUM_PAYOUT         = 0x3E
CMD_EMPTY_ALL                  = 0x3F
CMD_PAYOUT_BY_DENOMINATION     = 0x46
CMD_SET_GENERATOR              = 0x4A
CMD_SET_MODULUS                = 0x4B
CMD_REQUEST_KEY_EXCHANGE       = 0x4C
CMD_SET_BAUD_RATE              = 0x4D
CMD_GET_BUILD_REVISION         = 0x4F
CMD_SMART_EMPTY                = 0x52
CMD_CASHBOX_PAYOUT_OPERATION_DATA = 0x53
CMD_CONFIGURE_BEZEL            = 0x54  # RGB + volatile flag, NV200 bezels only.
CMD_POLL_WITH_ACK              = 0x56
CMD_EVENT_ACK                  = 0x57
CMD_GET_COUNTERS               = 0x58  # Persistent note activity counters.
CMD_RESET_COUNTERS             = 0x59
CMD_DISABLE_PAYOUT_DEVICE      = 0x5B
CMD_ENABLE_PAYOUT_DEVICE       = 0x5C
CMD_SET_FIXED_ENCRYPTION_KEY   = 0x60
CMD_RESET_FIXED_ENCRYPTION_KEY = 0x61


class GenericStatus(IntEnum):
    """First payload byte of every reply."""
    OK                          = 0xF0
    COMMAND_NOT_KNOWN           = 0xF2
    WRONG_NO_PARAMETERS         = 0xF3
    PARAMETER_OUT_OF_RANGE      = 0xF4
    COMMAND_CANNOT_BE_PROCESSED = 0xF5
    SOFTWARE_ERROR              = 0xF6
    FAIL                        = 0xF8
    KEY_NOT_SET                 = 0xFA


class UnitType(IntEnum):
    VALIDATOR    = 0x00
    SMART_HOPPER = 0x03
    SMART_PAYOUT = 0x06
    NV11         = 0x07
    UNKNOWN      = 0xFF  # Anything the device reports that we don't recognise.


# === Event headers returned inside POLL (device -> host) ===
POLL_TEBS_CASHBOX_OUT_OF_SERVICE        = 0x90
POLL_TEBS_CASHBOX_TAMPER                = 0x91
POLL_TEBS_CASHBOX_IN_SERVICE            = 0x92
POLL_TEBS_CASHBOX_UNLOCK_ENABLED        = 0x93
POLL_JAM_RECOVERY                       = 0xB0
POLL_ERROR_DURING_PAYOUT                = 0xB1
POLL_SMART_EMPTYING                     = 0xB3
POLL_SMART_EMPTIED                      = 0xB4
POLL_CHANNEL_DISABLE                    = 0xB5
POLL_INITIALISING                       = 0xB6
POLL_COIN_MECH_ERROR                    = 0xB7
POLL_EMPTYING                           = 0xC2
POLL_EMPTIED                            = 0xC3
POLL_COIN_MECH_JAMMED                   = 0xC4
POLL_COIN_MECH_RETURN_PRESSED           = 0xC5
POLL_PAYOUT_OUT_OF_SERVICE              = 0xC6
POLL_NOTE_FLOAT_REMOVED                 = 0xC7
POLL_NOTE_FLOAT_ATTACHED                = 0xC8
POLL_NOTE_TRANSFERED_TO_STACKER         = 0xC9
POLL_NOTE_PAID_INTO_STACKER_AT_POWER_UP = 0xCA
POLL_NOTE_PAID_INTO_STORE_AT_POWER_UP   = 0xCB
POLL_NOTE_STACKING                      = 0xCC  # Moving from escrow to stacker (no data).
POLL_NOTE_DISPENSED_AT_POWER_UP         = 0xCD
POLL_NOTE_HELD_IN_BEZEL                 = 0xCE
POLL_BAR_CODE_TICKET_ACKNOWLEDGE        = 0xD1
POLL_DISPENSED                          = 0xD2
POLL_JAMMED                             = 0xD5
POLL_HALTED                             = 0xD6
POLL_FLOATING                           = 0xD7
POLL_FLOATED                            = 0xD8
POLL_TIME_OUT                           = 0xD9
POLL_DISPENSING                         = 0xDA
POLL_NOTE_STORED_IN_PAYOUT              = 0xDB
POLL_INCOMPLETE_PAYOUT                  = 0xDC
POLL_INCOMPLETE_FLOAT                   = 0xDD
POLL_CASHBOX_PAID                       = 0xDE
POLL_COIN_CREDIT                        = 0xDF
POLL_NOTE_PATH_OPEN                     = 0xE0
POLL_NOTE_CLEARED_FROM_FRONT            = 0xE1
POLL_NOTE_CLEARED_TO_CASHBOX            = 0xE2
POLL_CASHBOX_REMOVED                    = 0xE3
POLL_CASHBOX_REPLACED                   = 0xE4
POLL_BAR_CODE_TICKET_VALIDATED          = 0xE5
POLL_FRAUD_ATTEMPT                      = 0xE6
POLL_STACKER_FULL                       = 0xE7
POLL_DISABLED                           = 0xE8
POLL_UNSAFE_NOTE_JAM                    = 0xE9
POLL_SAFE_NOTE_JAM                      = 0xEA
POLL_NOTE_STACKED                       = 0xEB  # Fully stacked (no data).
POLL_NOTE_REJECTED                      = 0xEC  # Rejected to user; query LAST_REJECT_CODE for reason.
POLL_NOTE_REJECTING                     = 0xED  # Returning note to user (pre-REJECTED).
POLL_CREDIT_NOTE                        = 0xEE  # Data = channel credited.
POLL_READ_NOTE                          = 0xEF  # Data = 0 scanning; >0 escrowed on that channel.
POLL_SLAVE_RESET                        = 0xF1  # Device has (re)started.

EVENT_NAMES: Dict[int, str] = {
    POLL_TEBS_CASHBOX_OUT_OF_SERVICE: "TEBS_CASHBOX_OUT_OF_SERVICE",
    POLL_TEBS_CASHBOX_TAMPER: "TEBS_CASHBOX_TAMPER",
    POLL_TEBS_CASHBOX_IN_SERVICE: "TEBS_CASHBOX_IN_SERVICE",
    POLL_TEBS_CASHBOX_UNLOCK_ENABLED: "TEBS_CASHBOX_UNLOCK_ENABLED",
    POLL_JAM_RECOVERY: "JAM_RECOVERY",
    POLL_ERROR_DURING_PAYOUT: "ERROR_DURING_PAYOUT",
    POLL_SMART_EMPTYING: "SMART_EMPTYING",
    POLL_SMART_EMPTIED: "SMART_EMPTIED",
    POLL_CHANNEL_DISABLE: "CHANNEL_DISABLE",
    POLL_INITIALISING: "INITIALISING",
    POLL_COIN_MECH_ERROR: "COIN_MECH_ERROR",
    POLL_EMPTYING: "EMPTYING",
    POLL_EMPTIED: "EMPTIED",
    POLL_COIN_MECH_JAMMED: "COIN_MECH_JAMMED",
    POLL_COIN_MECH_RETURN_PRESSED: "COIN_MECH_RETURN_PRESSED",
    POLL_PAYOUT_OUT_OF_SERVICE: "PAYOUT_OUT_OF_SERVICE",
    POLL_NOTE_FLOAT_REMOVED: "NOTE_FLOAT_REMOVED",
    POLL_NOTE_FLOAT_ATTACHED: "NOTE_FLOAT_ATTACHED",
    POLL_NOTE_TRANSFERED_TO_STACKER: "NOTE_TRANSFERED_TO_STACKER",
    POLL_NOTE_PAID_INTO_STACKER_AT_POWER_UP: "NOTE_PAID_INTO_STACKER_AT_POWER_UP",
    POLL_NOTE_PAID_INTO_STORE_AT_POWER_UP: "NOTE_PAID_INTO_STORE_AT_POWER_UP",
    POLL_NOTE_STACKING: "STACKING",
    POLL_NOTE_DISPENSED_AT_POWER_UP: "NOTE_DISPENSED_AT_POWER_UP",
    POLL_NOTE_HELD_IN_BEZEL: "NOTE_HELD_IN_BEZEL",
    POLL_BAR_CODE_TICKET_ACKNOWLEDGE: "BAR_CODE_TICKET_ACKNOWLEDGE",
    POLL_DISPENSED: "DISPENSED",
    POLL_JAMMED: "JAMMED",
    POLL_HALTED: "HALTED",
    POLL_FLOATING: "FLOATING",
    POLL_FLOATED: "FLOATED",
    POLL_TIME_OUT: "TIME_OUT",
    POLL_DISPENSING: "DISPENSING",
    POLL_NOTE_STORED_IN_PAYOUT: "NOTE_STORED_IN_PAYOUT",
    POLL_INCOMPLETE_PAYOUT: "INCOMPLETE_PAYOUT",
    POLL_INCOMPLETE_FLOAT: "INCOMPLETE_FLOAT",
    POLL_CASHBOX_PAID: "CASHBOX_PAID",
    POLL_COIN_CREDIT: "COIN_CREDIT",
    POLL_NOTE_PATH_OPEN: "NOTE_PATH_OPEN",
    POLL_NOTE_CLEARED_FROM_FRONT: "NOTE_CLEARED_FROM_FRONT",
    POLL_NOTE_CLEARED_TO_CASHBOX: "NOTE_CLEARED_TO_CASHBOX",
    POLL_CASHBOX_REMOVED: "CASHBOX_REMOVED",
    POLL_CASHBOX_REPLACED: "CASHBOX_REPLACED",
    POLL_BAR_CODE_TICKET_VALIDATED: "BAR_CODE_TICKET_VALIDATED",
    POLL_FRAUD_ATTEMPT: "FRAUD_ATTEMPT",
    POLL_STACKER_FULL: "STACKER_FULL",
    POLL_DISABLED: "DISABLED",
    POLL_UNSAFE_NOTE_JAM: "UNSAFE_NOTE_JAM",
    POLL_SAFE_NOTE_JAM: "SAFE_NOTE_JAM",
    POLL_NOTE_STACKED: "STACKED",
    POLL_NOTE_REJECTED: "REJECTED",
    POLL_NOTE_REJECTING: "REJECTING",
    POLL_CREDIT_NOTE: "CREDIT",
    POLL_READ_NOTE: "NOTE_READ",
    POLL_SLAVE_RESET: "SLAVE_RESET",
}

# === Reject reasons (LAST_REJECT_CODE) ===
REJECT_REASONS: Dict[int, str] = {
    0x00: "Note accepted",
    0x01: "Note length incorrect",
    0x02: "Invalid note",
    0x03: "Invalid note",
    0x04: "Invalid note",
    0x05: "Invalid note",
    0x06: "Channel inhibited",
    0x07: "Second note inserted",
    0x08: "Host rejected note",
    0x09: "Note recognised in more than one channel",
    0x0A: "Reject reason 10",
    0x0B: "Note too long",
    0x0C: "Reject reason 12",
    0x0D: "Mechanism slow / stalled",
    0x0E: "Striming attempt",
    0x0F: "Fraud channel reject",
    0x10: "No notes inserted",
    0x11: "Peak detect fail",
    0x12: "Twisted note detected",
    0x13: "Escrow time-out",
    0x14: "Bar code scan fail",
    0x15: "Rear sensor 2 fail",
    0x16: "Slot fail 1",
    0x17: "Slot fail 2",
    0x18: "Lens over sample",
    0x19: "Width detect fail",
    0x1A: "Short note detected",
}
