"""
x86 Bus Simulator — Machine State

The one mutable aggregate. An ``ExecutionController`` owns exactly one
of these and replaces it wholesale on load/reset; nothing else keeps a
reference across steps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Tuple

from .bus.transaction import BusLog
from .cpu.address import AddressCalculation
from .cpu.regs import Registers
from .mem.memory import Memory


class ControllerState(Enum):
    IDLE = 'idle'          # no program
    LOADED = 'loaded'      # program set, pc = 0
    RUNNING = 'running'    # at least one step done, more to go
    HALTED = 'halted'      # pc == len(program)


@dataclass(frozen=True)
class FlowEntry:
    """One executed step: which program line ran and what the bus did."""
    index: int
    instruction: str
    log: str
    bus_step_start: int
    bus_step_end: int

    def render(self) -> str:
        return f"[{self.index:02X}] {self.instruction}\n{self.log}"


@dataclass
class MachineState:
    regs: Registers
    bus_width: int
    memory: Memory = field(default_factory=Memory)
    bus: BusLog = field(default_factory=BusLog)
    history: List[AddressCalculation] = field(default_factory=list)
    program: Tuple[str, ...] = ()
    pc: int = 0
    flow_log: List[FlowEntry] = field(default_factory=list)

    @classmethod
    def fresh(cls, preset: Mapping[str, int], bus_width: int,
              program: Tuple[str, ...] = ()) -> 'MachineState':
        """Brand new state from a register preset: empty memory, history and log, bus step 1."""
        return cls(regs=Registers(preset), bus_width=bus_width, program=tuple(program))

    @property
    def halted(self) -> bool:
        return bool(self.program) and self.pc >= len(self.program)
