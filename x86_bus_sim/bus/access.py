"""
x86 Bus Simulator — Operand Reads and Writes

Word-sized data references made by the execute cycle (``MOV [SI], AX``,
``MOV AX, [1234H]``) and by the stack unit. Each one:

  1. forms the physical address from a segment:offset pair and records
     it in the address history as a data reference
  2. moves the word across the bus (one transaction on 16-bit, low then
     high byte on 8-bit)
  3. updates / reads memory, little-endian
"""

from __future__ import annotations

from .transaction import TransactionKind
from ..cpu.address import AddressCalculation, AddressKind

TAG_DATA_LO = "Data low"
TAG_DATA_HI = "Data high"


def _data_address(state, seg_name: str, off_name: str, offset: int) -> AddressCalculation:
    calc = AddressCalculation.compute(AddressKind.DATA, state.regs[seg_name], offset & 0xFFFF,
                                      seg_name, off_name)
    state.history.append(calc)
    state.bus.note(calc.describe())
    return calc


def write_word(state, seg_name: str, off_name: str, offset: int, value: int,
               low_tag: str = TAG_DATA_LO, high_tag: str = TAG_DATA_HI) -> AddressCalculation:
    """Write a 16-bit value at seg:offset through the bus."""
    calc = _data_address(state, seg_name, off_name, offset)
    state.memory.write16(calc.physical, value, low_tag, high_tag)
    state.bus.transfer_word(TransactionKind.WRITE, calc.physical, value, state.bus_width,
                            low_tag, high_tag)
    return calc


def read_word(state, seg_name: str, off_name: str, offset: int) -> int:
    """Read a 16-bit value at seg:offset through the bus. Absent bytes read as 0."""
    calc = _data_address(state, seg_name, off_name, offset)
    value = state.memory.read16(calc.physical)
    state.bus.transfer_word(TransactionKind.READ, calc.physical, value, state.bus_width,
                            state.memory.tag_at(calc.physical),
                            state.memory.tag_at(calc.physical + 1))
    return value
