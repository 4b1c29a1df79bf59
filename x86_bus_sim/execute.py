"""
x86 Bus Simulator — Execute Cycle

Runs after the fetch cycle, so IP already points past the instruction.
Dispatch is on the instruction's shape (``InstructionKind``), one handler
per kind; a test checks the table covers every kind.

Register-to-register moves and ALU work are internal to the CPU and put
nothing on the bus. Memory operands and the stack do.

Program flow is linear: a taken branch changes IP (so the next
instruction is fetched to the new address) but the controller still moves
on to the next program line.

Flags: only ZF and SF are computed, from the 16-bit result. MOV, LOOP and
the control transfers leave FLAGS alone.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Tuple

from .asm.assembler import AssembledInstruction
from .asm.parser import Instruction, MemoryRef
from .asm.shapes import InstructionKind
from .bus.access import read_word, write_word
from .cpu import alu
from .cpu.stack import pop16, push16
from .state import MachineState

log = logging.getLogger(__name__)

Handler = Callable[[MachineState, Instruction], None]


# ══════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════

def _effective_offset(state: MachineState, mem: MemoryRef) -> Tuple[str, int]:
    """(offset register name for display, offset) of a [SI]/[DI]/[literal] operand."""
    if mem.base is not None:
        return mem.base, state.regs[mem.base]
    return 'disp', mem.displacement


def _set_reg(state: MachineState, name: str, value: int):
    state.regs[name] = value
    state.bus.note(f"{name} <- {state.regs[name]:04X}H (internal, no bus cycle)")


def _jump(state: MachineState, target: int):
    old = state.regs.IP
    state.regs.IP = target
    delta = alu.twos_complement_16((state.regs.IP - old) & 0xFFFF)
    state.bus.note(f"IP {old:04X}H -> {state.regs.IP:04X}H (branch taken, {delta:+d})")


# ══════════════════════════════════════════════
# Handlers
# ══════════════════════════════════════════════

def _op_mov_reg_imm(state, insn):
    _set_reg(state, insn.dest.name, insn.src.value)


def _op_mov_reg_reg(state, insn):
    _set_reg(state, insn.dest.name, state.regs[insn.src.name])


def _op_mov_mem_reg(state, insn):
    off_name, offset = _effective_offset(state, insn.dest)
    write_word(state, 'DS', off_name, offset, state.regs[insn.src.name])


def _op_mov_reg_mem(state, insn):
    off_name, offset = _effective_offset(state, insn.src)
    _set_reg(state, insn.dest.name, read_word(state, 'DS', off_name, offset))


def _apply_binary(state, insn, src_value: int):
    dst = insn.dest.name
    result, flags = alu.BINARY_OPS[insn.mnemonic](state.regs[dst], src_value)
    state.regs.set_ZS(flags)
    if insn.mnemonic in alu.COMPARE_ONLY:
        state.bus.note(f"{insn.mnemonic}: {state.regs[dst]:04X}H vs {src_value:04X}H "
                       f"-> {result:04X}H discarded, FLAGS {state.regs.FLAGS:04X}H")
    else:
        state.regs[dst] = result
        state.bus.note(f"{dst} <- {result:04X}H, FLAGS {state.regs.FLAGS:04X}H")


def _op_alu_reg_reg(state, insn):
    _apply_binary(state, insn, state.regs[insn.src.name])


def _op_alu_reg_imm(state, insn):
    _apply_binary(state, insn, insn.src.value)


def _op_unary(state, insn):
    dst = insn.dest.name
    result, flags = alu.UNARY_OPS[insn.mnemonic](state.regs[dst])
    state.regs[dst] = result
    state.regs.set_ZS(flags)
    state.bus.note(f"{dst} <- {result:04X}H, FLAGS {state.regs.FLAGS:04X}H")


def _op_jmp(state, insn):
    _jump(state, insn.dest.value)


def _op_call(state, insn):
    # Return address = IP after the fetch advance
    push16(state, state.regs.IP)
    _jump(state, insn.dest.value)


def _op_ret(state, insn):
    _jump(state, pop16(state))


JCC_CONDITIONS: Dict[str, Callable] = {
    'JE':  lambda r: r.zero,
    'JZ':  lambda r: r.zero,
    'JNE': lambda r: not r.zero,
    'JNZ': lambda r: not r.zero,
    'JS':  lambda r: r.sign,
    'JNS': lambda r: not r.sign,
    'JL':  lambda r: r.sign,
    'JGE': lambda r: not r.sign,
    'JLE': lambda r: r.zero or r.sign,
    'JG':  lambda r: not r.zero and not r.sign,
}


def _op_jcc(state, insn):
    if JCC_CONDITIONS[insn.mnemonic](state.regs):
        _jump(state, insn.dest.value)
    else:
        state.bus.note(f"{insn.mnemonic} not taken, IP stays {state.regs.IP:04X}H")


def _op_loop(state, insn):
    state.regs.CX = state.regs.CX - 1
    state.bus.note(f"CX <- {state.regs.CX:04X}H")
    if state.regs.CX != 0:
        _jump(state, insn.dest.value)
    else:
        state.bus.note(f"LOOP done, IP stays {state.regs.IP:04X}H")


def _op_push(state, insn):
    push16(state, state.regs[insn.dest.name])


def _op_pop(state, insn):
    _set_reg(state, insn.dest.name, pop16(state))


def _op_pushf(state, insn):
    push16(state, state.regs.FLAGS)


def _op_popf(state, insn):
    # reserved bit is forced back on by the register file
    _set_reg(state, 'FLAGS', pop16(state))


def _op_noop(state, insn):
    state.bus.note(f"{insn.mnemonic}: no operation")


def _op_unrecognized(state, insn):
    state.bus.note(f"'{insn}' is not a recognized shape: placeholder bytes, no operation")


K = InstructionKind

DISPATCH: Dict[InstructionKind, Handler] = {
    K.MOV_REG_IMM: _op_mov_reg_imm,
    K.MOV_REG_REG: _op_mov_reg_reg,
    K.MOV_SREG_REG: _op_mov_reg_reg,
    K.MOV_REG_SREG: _op_mov_reg_reg,
    K.MOV_MEM_REG: _op_mov_mem_reg,
    K.MOV_REG_MEM: _op_mov_reg_mem,
    K.ALU_REG_REG: _op_alu_reg_reg,
    K.ALU_REG_IMM: _op_alu_reg_imm,
    K.INC_DEC_REG: _op_unary,
    K.NOT_NEG_REG: _op_unary,
    K.JMP_NEAR: _op_jmp,
    K.CALL_NEAR: _op_call,
    K.RET_NEAR: _op_ret,
    K.JCC_SHORT: _op_jcc,
    K.LOOP: _op_loop,
    K.PUSH_REG: _op_push,
    K.POP_REG: _op_pop,
    K.PUSHF: _op_pushf,
    K.POPF: _op_popf,
    K.NOP: _op_noop,
    K.HLT: _op_noop,
    K.IO_STUB: _op_noop,
    K.UNRECOGNIZED: _op_unrecognized,
}


def execute(state: MachineState, assembled: AssembledInstruction):
    """Run the execute half of a step for an already-fetched instruction."""
    DISPATCH[assembled.kind](state, assembled.instruction)
    log.debug("executed %s (%s): %s", assembled.instruction, assembled.kind.value,
              state.regs.display())
