"""
x86 Bus Simulator — Stack Unit

8086 stack discipline: SS:SP points at the last word pushed and the stack
grows downward.

  PUSH: SP -= 2, then write the word at SS:SP (low byte at SP)
  POP:  read the word at SS:SP, then SP += 2

Both go through the bus so the learner sees the transactions, and both
record an SS:SP data reference in the address history.
"""

from __future__ import annotations

from ..bus.access import read_word, write_word

TAG_STACK_LO = "Stack low"
TAG_STACK_HI = "Stack high"


def push16(state, value: int):
    regs = state.regs
    regs.SP = regs.SP - 2
    write_word(state, 'SS', 'SP', regs.SP, value, TAG_STACK_LO, TAG_STACK_HI)
    state.bus.note(f"PUSH {value & 0xFFFF:04X}H, SP -> {regs.SP:04X}H")


def pop16(state) -> int:
    regs = state.regs
    value = read_word(state, 'SS', 'SP', regs.SP)
    regs.SP = regs.SP + 2
    state.bus.note(f"POP {value:04X}H, SP -> {regs.SP:04X}H")
    return value
