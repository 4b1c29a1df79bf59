"""
x86 Bus Simulator — Read-Only Snapshots

What a presenter (web page, terminal, test) gets after every load, step
and reset. Snapshots are frozen and hold only tuples and read-only
mappings, so a presenter can keep one around while the machine moves on.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple

from .bus.transaction import BusTransaction
from .cpu.address import AddressCalculation
from .state import ControllerState, FlowEntry, MachineState


@dataclass(frozen=True)
class MemoryRow:
    address: str      # 5 hex digits, e.g. "10100"
    value: int
    tag: str


@dataclass(frozen=True)
class MachineSnapshot:
    state: ControllerState
    pc: int
    program: Tuple[str, ...]
    bus_width: int
    bus_step: int
    registers: Mapping[str, int]
    memory: Tuple[MemoryRow, ...]
    history: Tuple[AddressCalculation, ...]
    transactions: Tuple[BusTransaction, ...]
    step_log: str
    flow_log: Tuple[FlowEntry, ...]

    @classmethod
    def capture(cls, controller_state: ControllerState, machine: MachineState) -> 'MachineSnapshot':
        return cls(
            state=controller_state,
            pc=machine.pc,
            program=machine.program,
            bus_width=machine.bus_width,
            bus_step=machine.bus.bus_step,
            registers=MappingProxyType(machine.regs.as_dict()),
            memory=tuple(MemoryRow(addr, value, tag)
                         for addr, value, tag in machine.memory.entries()),
            history=tuple(machine.history),
            transactions=tuple(machine.bus.transactions),
            step_log=machine.bus.text(),
            flow_log=tuple(machine.flow_log),
        )

    @property
    def flags(self) -> int:
        return self.registers['FLAGS']

    def memory_at(self, address: str) -> MemoryRow:
        """Row for a 5-digit key. Raises KeyError if the byte was never written."""
        for row in self.memory:
            if row.address == address:
                return row
        raise KeyError(address)

    def flow_text(self) -> str:
        return '\n\n'.join(entry.render() for entry in self.flow_log)

    def history_text(self) -> str:
        return '\n'.join(calc.describe() for calc in self.history)
