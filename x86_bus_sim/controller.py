"""
x86 Bus Simulator — Execution Controller

Top-level state machine. Owns the MachineState and is the only thing
that mutates it.

    IDLE ──load──> LOADED ──step──> RUNNING ──step──> ... ──> HALTED
      ^                                                        │
      └──────────────────────────── reset ─────────────────────┘
    (load is accepted from any state and always lands in LOADED)

One ``step()``:
  1. parse program[pc]          (a bad line stops here, nothing changes)
  2. assemble it at CS:IP
  3. fetch cycle                (bytes to memory, fetch transactions, IP += n)
  4. execute cycle              (registers, flags, data/stack transactions)
  5. append the flow-log entry, pc += 1

Usage:
    ctl = ExecutionController(SimulatorConfig(bus_width=8))
    ctl.load("MOV AX, 1234H\\nMOV [SI], AX")
    while ctl.state is not ControllerState.HALTED:
        result = ctl.step()
        print(result.log)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .asm.assembler import assemble
from .asm.parser import ProgramParseError, clean_program, parse_instruction
from .bus.fetch import fetch
from .config import SimulatorConfig, check_bus_width
from .execute import execute
from .snapshot import MachineSnapshot
from .state import ControllerState, FlowEntry, MachineState

log = logging.getLogger(__name__)


class EmptyProgramError(ValueError):
    """Raised by load() when the text has no instruction lines."""


class StepOutcome(Enum):
    EXECUTED = 'EXECUTED'
    HALTED = 'HALTED'            # nothing left to run; no state change
    PARSE_ERROR = 'PARSE_ERROR'  # program[pc] is not valid; pc not advanced
    NO_PROGRAM = 'NO_PROGRAM'    # step() while IDLE


@dataclass(frozen=True)
class StepResult:
    outcome: StepOutcome
    snapshot: MachineSnapshot
    index: Optional[int] = None
    instruction: str = ""
    log: str = ""
    error: Optional[ProgramParseError] = None

    @property
    def ok(self) -> bool:
        return self.outcome is StepOutcome.EXECUTED


class ExecutionController:
    """Drives fetch + execute over a loaded program, one line per step."""

    def __init__(self, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        self._bus_width = self.config.bus_width
        self._machine = MachineState.fresh(self.config.registers, self._bus_width)
        self._state = ControllerState.IDLE

    # ══════════════════════════════════════════════
    # Properties
    # ══════════════════════════════════════════════

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def bus_width(self) -> int:
        return self._bus_width

    @bus_width.setter
    def bus_width(self, width: int):
        """Takes effect at the start of the next step."""
        self._bus_width = check_bus_width(width)

    @property
    def machine(self) -> MachineState:
        """The live state. Presenters should prefer ``snapshot()``."""
        return self._machine

    def snapshot(self) -> MachineSnapshot:
        return MachineSnapshot.capture(self._state, self._machine)

    # ══════════════════════════════════════════════
    # Transitions
    # ══════════════════════════════════════════════

    def load(self, program_text: str, bus_width: Optional[int] = None) -> MachineSnapshot:
        """Replace the machine with a fresh one running ``program_text``.

        Raises EmptyProgramError (and changes nothing) if no instruction
        lines remain after removing comments and blanks.
        """
        width = self._bus_width if bus_width is None else check_bus_width(bus_width)
        program = clean_program(program_text)
        if not program:
            log.warning("load rejected: no instruction lines")
            raise EmptyProgramError("No valid code found: program has no instruction lines")

        self._bus_width = width
        self._machine = MachineState.fresh(self.config.registers, width, program)
        self._state = ControllerState.LOADED
        log.info("loaded %d instructions (bus width %d)", len(program), width)
        return self.snapshot()

    def reset(self) -> MachineSnapshot:
        """Back to IDLE with preset registers and empty memory/history/log."""
        self._machine = MachineState.fresh(self.config.registers, self._bus_width)
        self._state = ControllerState.IDLE
        log.info("reset (preset %s, bus width %d)", self.config.preset, self._bus_width)
        return self.snapshot()

    def step(self) -> StepResult:
        """Fetch and execute program[pc]."""
        if self._state is ControllerState.IDLE:
            return StepResult(StepOutcome.NO_PROGRAM, self.snapshot())
        if self._state is ControllerState.HALTED:
            return StepResult(StepOutcome.HALTED, self.snapshot())

        m = self._machine
        index = m.pc
        line = m.program[index]
        try:
            insn = parse_instruction(line, index + 1)
        except ProgramParseError as e:
            log.warning("step %d: %s", index, e)
            return StepResult(StepOutcome.PARSE_ERROR, self.snapshot(), index, line,
                              error=e)

        m.bus_width = self._bus_width
        m.bus.begin_step()
        start = m.bus.bus_step

        assembled = assemble(insn, m.regs.IP)
        fetch(assembled, m.regs, m.memory, m.bus, m.history, m.bus_width)
        execute(m, assembled)

        text = m.bus.text()
        m.flow_log.append(FlowEntry(index, line, text, start, m.bus.bus_step))
        m.pc += 1
        self._state = ControllerState.HALTED if m.halted else ControllerState.RUNNING
        log.debug("step %d '%s' done, bus step %d -> %d", index, line, start, m.bus.bus_step)
        return StepResult(StepOutcome.EXECUTED, self.snapshot(), index, line, text)

    def run(self, delay: Optional[float] = None,
            stop_event: Optional[threading.Event] = None,
            on_step: Optional[Callable[[StepResult], None]] = None,
            max_steps: Optional[int] = None) -> List[StepResult]:
        """Step repeatedly until HALTED, a parse error, ``stop_event`` or ``max_steps``.

        ``delay`` seconds pass between steps (default from config). The
        stop request is checked before every step and wakes the wait
        early, but a step in progress always completes.
        """
        if delay is None:
            delay = self.config.run_delay
        results: List[StepResult] = []

        while True:
            if stop_event is not None and stop_event.is_set():
                log.info("run cancelled after %d steps", len(results))
                break
            if max_steps is not None and len(results) >= max_steps:
                break

            result = self.step()
            results.append(result)
            if on_step is not None:
                on_step(result)
            if not result.ok or self._state is ControllerState.HALTED:
                break

            if delay > 0:
                if stop_event is not None:
                    stop_event.wait(delay)
                else:
                    time.sleep(delay)

        return results
