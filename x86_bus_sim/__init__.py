"""
x86 Bus Simulator
=================
A classroom simulator of the 8086 fetch/execute cycle that shows every
bus transaction: how CS:IP becomes a physical address, how opcode bytes
cross an 8-bit or 16-bit data bus, and how registers and flags change.

Architecture:
    ┌───────────┐    ┌───────────┐    ┌───────────┐    ┌───────────┐
    │ Program   │───>│  Parser   │───>│ Assembler │───>│  Fetch    │──┐
    │ text      │    │ (operands)│    │ (bytes +  │    │ (bus log, │  │
    └───────────┘    └───────────┘    │  tags)    │    │  memory)  │  │
                                      └───────────┘    └───────────┘  │
          ┌───────────────────────────────────────────────────────────┘
          v
    ┌───────────┐    ┌───────────┐
    │ Execute   │───>│ Snapshot  │───> presenter (CLI, web page, tests)
    │ (ALU,     │    │ (frozen)  │
    │  stack)   │    └───────────┘
    └───────────┘
    All of it driven by ExecutionController (load / step / reset / run).

    - asm/parser.py:     line grammar → Instruction with typed operands
    - asm/shapes.py:     closed InstructionKind set (what the machine knows)
    - asm/assembler.py:  one encoder per kind → 8086 bytes with tags
    - bus/fetch.py:      fetch cycle, 8/16-bit pairing
    - bus/access.py:     data reads/writes through the bus
    - cpu/:              registers, ALU, address formula, stack
    - execute.py:        one handler per kind
    - controller.py:     state machine, continuous run
"""

__version__ = "0.2.0"

from .config import SimulatorConfig, ConfigError, REGISTER_PRESETS, load_config
from .asm.parser import ProgramParseError, Instruction, parse_instruction, clean_program
from .asm.shapes import InstructionKind, classify
from .asm.assembler import AssembledInstruction, EncodedByte, assemble, assemble_line
from .cpu.address import physical_address, format_address, AddressCalculation, AddressKind
from .state import ControllerState, MachineState
from .snapshot import MachineSnapshot, MemoryRow
from .controller import (
    ExecutionController, EmptyProgramError, StepOutcome, StepResult,
)

__all__ = [
    'SimulatorConfig', 'ConfigError', 'REGISTER_PRESETS', 'load_config',
    'ProgramParseError', 'Instruction', 'parse_instruction', 'clean_program',
    'InstructionKind', 'classify',
    'AssembledInstruction', 'EncodedByte', 'assemble', 'assemble_line',
    'physical_address', 'format_address', 'AddressCalculation', 'AddressKind',
    'ControllerState', 'MachineState', 'MachineSnapshot', 'MemoryRow',
    'ExecutionController', 'EmptyProgramError', 'StepOutcome', 'StepResult',
]
