"""
x86 Bus Simulator — Physical Address Calculation

Real-mode 8086 address formation:

    physical = segment * 16 + offset

The result is NOT masked here. ``FFFF:FFFF`` gives 10FFEFH, one bit past
the 20-bit bus. Memory keys are formatted with ``format_address`` which
keeps the low 20 bits, so such an address lands at 0FFEFH (the same
wraparound a real 8086 shows with A20 low). History entries keep the
unmasked value so the learner can see the carry out of bit 19.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

ADDRESS_BITS = 20
ADDRESS_MASK = (1 << ADDRESS_BITS) - 1   # 0xFFFFF
ADDRESS_DIGITS = 5


def physical_address(segment: int, offset: int) -> int:
    """segment * 16 + offset, unmasked."""
    return (segment << 4) + offset


def format_address(address: int) -> str:
    """5-hex-digit memory key; bits above 19 are dropped."""
    return f"{address & ADDRESS_MASK:0{ADDRESS_DIGITS}X}"


def parse_address_key(key: str) -> int:
    return int(key, 16)


class AddressKind(Enum):
    FETCH = 'fetch'
    DATA = 'data-reference'


# Which register pair formed the address, for display only
_PAIR_NAMES = {
    AddressKind.FETCH: ("CS", "IP"),
}


@dataclass(frozen=True)
class AddressCalculation:
    """One AddressCalcHistory entry."""
    kind: AddressKind
    segment: int
    offset: int
    physical: int
    segment_name: str = "DS"
    offset_name: str = "EA"

    @classmethod
    def compute(cls, kind: AddressKind, segment: int, offset: int,
                segment_name: str = "DS", offset_name: str = "EA") -> 'AddressCalculation':
        if kind in _PAIR_NAMES:
            segment_name, offset_name = _PAIR_NAMES[kind]
        return cls(kind, segment, offset, physical_address(segment, offset),
                   segment_name, offset_name)

    @property
    def key(self) -> str:
        return format_address(self.physical)

    @property
    def overflowed(self) -> bool:
        """True when the sum carried past the 20-bit address space."""
        return self.physical > ADDRESS_MASK

    def describe(self) -> str:
        """e.g. ``fetch: CS:IP 1000:0100 -> 1000H x 10H + 0100H = 10100H``"""
        text = (f"{self.kind.value}: {self.segment_name}:{self.offset_name} "
                f"{self.segment:04X}:{self.offset:04X} -> "
                f"{self.segment:04X}H x 10H + {self.offset:04X}H = {self.physical:05X}H")
        if self.overflowed:
            text += f" (wraps to {self.key}H)"
        return text
