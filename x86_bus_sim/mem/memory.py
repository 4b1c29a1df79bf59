"""
x86 Bus Simulator — Sparse 1 MB Memory with Per-Byte Annotation

Only bytes that have been written exist. Each cell carries the byte and a
short description of what put it there ("Opcode", "Immediate low",
"Data high", "Stack low", ...), which is what the memory table shows the
learner.

Keys are 5-hex-digit physical addresses (see ``cpu.address.format_address``),
so 20-bit wraparound happens at the key, not in the arithmetic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

from ..cpu.address import format_address, parse_address_key

DEFAULT_TAG = "Byte"


@dataclass(frozen=True)
class MemoryCell:
    value: int
    tag: str = DEFAULT_TAG


class Memory:
    """Address-keyed byte store. Last write wins; absent keys read as 0."""

    def __init__(self):
        self._cells: Dict[str, MemoryCell] = {}

    # --- Core read/write ---

    def read8(self, address: int) -> int:
        cell = self._cells.get(format_address(address))
        return cell.value if cell is not None else 0

    def write8(self, address: int, value: int, tag: str = DEFAULT_TAG):
        self._cells[format_address(address)] = MemoryCell(value & 0xFF, tag)

    def read16(self, address: int) -> int:
        """Little-endian word: low byte at address, high byte at address+1."""
        return self.read8(address) | (self.read8(address + 1) << 8)

    def write16(self, address: int, value: int,
                low_tag: str = DEFAULT_TAG, high_tag: str = DEFAULT_TAG):
        self.write8(address, value & 0xFF, low_tag)
        self.write8(address + 1, (value >> 8) & 0xFF, high_tag)

    def tag_at(self, address: int) -> str:
        cell = self._cells.get(format_address(address))
        return cell.tag if cell is not None else DEFAULT_TAG

    # --- Inspection ---

    def __contains__(self, address: int) -> bool:
        return format_address(address) in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[Tuple[str, MemoryCell]]:
        """Cells in ascending address order."""
        for key in sorted(self._cells, key=parse_address_key):
            yield key, self._cells[key]

    def entries(self) -> List[Tuple[str, int, str]]:
        """(address key, byte, tag) rows, sorted by address."""
        return [(key, cell.value, cell.tag) for key, cell in self]

    def hexdump(self) -> str:
        """Produce a three-column listing: address, byte, description."""
        lines = [f"{'ADDR':<7} {'VAL':<4} DESCRIPTION"]
        for key, cell in self:
            lines.append(f"{key}H  {cell.value:02X}H  {cell.tag}")
        return '\n'.join(lines)
