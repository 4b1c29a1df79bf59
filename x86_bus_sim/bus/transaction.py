"""
x86 Bus Simulator — Bus Transactions + Step Counter

A bus transaction is one address phase followed by one data phase. The
bus-step counter numbers the phases: the address phase gets step ``n``,
the data phase ``n + 1``, and the counter moves on by exactly 2 no matter
how many bytes the data phase carried.

Word transfers on a 16-bit bus are shown high byte first, the way the
value sits on D15..D0:

    [003] ADDR  10100H  fetch
    [004] DATA  34B8H   memory -> CPU  (Opcode, Immediate low)

The same bytes on an 8-bit bus take two transactions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple

from ..cpu.address import format_address

log = logging.getLogger(__name__)

FIRST_BUS_STEP = 1
STEPS_PER_TRANSACTION = 2


class TransactionKind(Enum):
    FETCH = 'fetch'
    READ = 'read'
    WRITE = 'write'

    @property
    def direction(self) -> str:
        return 'CPU -> memory' if self is TransactionKind.WRITE else 'memory -> CPU'


@dataclass(frozen=True)
class BusTransaction:
    """One address phase + one data phase."""
    kind: TransactionKind
    address: int                 # physical address asserted in the address phase
    data: int                    # byte, or (high << 8) | low for a word transfer
    width: int                   # bytes carried by the data phase (1 or 2)
    step: int                    # bus step of the address phase
    tags: Tuple[str, ...] = ()

    @property
    def data_step(self) -> int:
        return self.step + 1

    @property
    def data_text(self) -> str:
        return f"{self.data:0{self.width * 2}X}H"

    def lines(self) -> List[str]:
        tags = f"  ({', '.join(self.tags)})" if self.tags else ""
        return [
            f"[{self.step:03d}] ADDR  {format_address(self.address)}H  {self.kind.value}",
            f"[{self.data_step:03d}] DATA  {self.data_text:<6} {self.kind.direction}{tags}",
        ]


class BusLog:
    """Owns the bus-step counter and the transaction/text log of the current step."""

    def __init__(self):
        self.bus_step = FIRST_BUS_STEP
        self.transactions: List[BusTransaction] = []
        self.lines: List[str] = []

    def begin_step(self):
        """Start a fresh per-step log. The counter keeps running."""
        self.transactions = []
        self.lines = []

    def note(self, text: str):
        """Free-text line in the step log (address math, register moves...)."""
        self.lines.append(text)

    def transfer(self, kind: TransactionKind, address: int, data: int, width: int,
                 tags: Sequence[str] = ()) -> BusTransaction:
        """Record one transaction and advance the counter by 2."""
        txn = BusTransaction(kind, address, data, width, self.bus_step, tuple(tags))
        self.bus_step += STEPS_PER_TRANSACTION
        self.transactions.append(txn)
        self.lines.extend(txn.lines())
        log.debug("bus %s %sH <- %s (step %d)", kind.value,
                  format_address(address), txn.data_text, txn.step)
        return txn

    def transfer_word(self, kind: TransactionKind, address: int, value: int, bus_width: int,
                      low_tag: str, high_tag: str) -> List[BusTransaction]:
        """Move a little-endian word: one transaction on a 16-bit bus, two (low, high) on 8-bit."""
        value &= 0xFFFF
        if bus_width == 16:
            return [self.transfer(kind, address, value, 2, (low_tag, high_tag))]
        return [
            self.transfer(kind, address, value & 0xFF, 1, (low_tag,)),
            self.transfer(kind, address + 1, (value >> 8) & 0xFF, 1, (high_tag,)),
        ]

    def text(self) -> str:
        return '\n'.join(self.lines)
