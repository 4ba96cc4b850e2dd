# SSP/ssp_sequence.py
from enum import Enum


class SequenceState(Enum):
    EXPECT_0 = 0
    EXPECT_1 = 1


class SequenceController:
    """
    Owns the 1-bit SSP sequence flag for one connection.

    The flag must differ between consecutive commands so the slave can spot a
    retransmission. SYNC pins it back: the SYNC itself and the command after
    it are both sent with seq=0.
    """

    RESET_BIT = 0

    def __init__(self):
        self.state = SequenceState.EXPECT_0

    def next_bit(self) -> int:
        """Return the bit for the command about to be sent, then flip."""
        bit = self.state.value
        self.state = SequenceState.EXPECT_1 if bit == 0 else SequenceState.EXPECT_0
        return bit

    def peek(self) -> int:
        return self.state.value

    def reset(self) -> None:
        self.state = SequenceState.EXPECT_0

    @staticmethod
    def seq_addr(address: int, bit: int) -> int:
        """First byte of a frame: low 7 bits = slave address, high bit = sequence."""
        return (address & 0x7F) | (0x80 if bit else 0x00)
