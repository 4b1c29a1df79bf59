"""
x86 Bus Simulator — Instruction Shapes

The simulator recognizes a fixed, closed set of mnemonic/operand shapes.
Each shape is one ``InstructionKind``; the assembler has one encoder per
kind and the execute cycle one handler per kind. Everything outside the
set classifies as UNRECOGNIZED, which encodes to a placeholder and
executes as a no-op.

Keep this table small on purpose. A learner is expected to see that
``MOV [BX], AX`` or ``ADD AL, 1`` fall outside what the machine "knows".

  Kind            Syntax                                    8086 form
  ─────────────   ───────────────────────────────────────   ────────────
  MOV_REG_IMM     MOV r16, imm                              B8+r iw
  MOV_REG_REG     MOV r16, r16                              89 /r
  MOV_SREG_REG    MOV DS|ES|SS, r16                         8E /r
  MOV_REG_SREG    MOV r16, CS|DS|ES|SS                      8C /r
  MOV_MEM_REG     MOV [SI]|[DI]|[imm], r16                  89 /r, A3
  MOV_REG_MEM     MOV r16, [SI]|[DI]|[imm]                  8B /r, A1
  ALU_REG_REG     ADD|OR|AND|SUB|XOR|CMP r16, r16           01.. /r
  ALU_REG_IMM     ADD|OR|AND|SUB|XOR|CMP r16, imm           81 /n iw, 05..
  INC_DEC_REG     INC|DEC r16                               40+r, 48+r
  NOT_NEG_REG     NOT|NEG r16                               F7 /2, F7 /3
  JMP_NEAR        JMP target                                E9 cw
  CALL_NEAR       CALL target                               E8 cw
  RET_NEAR        RET                                       C3
  JCC_SHORT       JE|JZ|JNE|JNZ|JS|JNS|JL|JGE|JLE|JG target 7x cb
  LOOP            LOOP target                               E2 cb
  PUSH_REG        PUSH r16                                  50+r
  POP_REG         POP r16                                   58+r
  PUSHF / POPF    PUSHF, POPF                               9C, 9D
  NOP / HLT       NOP, HLT                                  90, F4
  IO_STUB         IN AX, DX / OUT DX, AX                    ED, EF
"""

from __future__ import annotations

from enum import Enum
from typing import Dict

from .parser import Immediate, Instruction, MemoryRef, Register
from ..cpu.regs import GENERAL_REGS


class InstructionKind(Enum):
    MOV_REG_IMM = 'MOV_REG_IMM'
    MOV_REG_REG = 'MOV_REG_REG'
    MOV_SREG_REG = 'MOV_SREG_REG'
    MOV_REG_SREG = 'MOV_REG_SREG'
    MOV_MEM_REG = 'MOV_MEM_REG'
    MOV_REG_MEM = 'MOV_REG_MEM'
    ALU_REG_REG = 'ALU_REG_REG'
    ALU_REG_IMM = 'ALU_REG_IMM'
    INC_DEC_REG = 'INC_DEC_REG'
    NOT_NEG_REG = 'NOT_NEG_REG'
    JMP_NEAR = 'JMP_NEAR'
    CALL_NEAR = 'CALL_NEAR'
    RET_NEAR = 'RET_NEAR'
    JCC_SHORT = 'JCC_SHORT'
    LOOP = 'LOOP'
    PUSH_REG = 'PUSH_REG'
    POP_REG = 'POP_REG'
    PUSHF = 'PUSHF'
    POPF = 'POPF'
    NOP = 'NOP'
    HLT = 'HLT'
    IO_STUB = 'IO_STUB'
    UNRECOGNIZED = 'UNRECOGNIZED'


# ──────────────────────────────────────────────
# Encoding tables
# ──────────────────────────────────────────────

# ModRM reg / rm field and the +r of one-byte forms
REG_CODES: Dict[str, int] = {
    'AX': 0, 'CX': 1, 'DX': 2, 'BX': 3, 'SP': 4, 'BP': 5, 'SI': 6, 'DI': 7,
}

SREG_CODES: Dict[str, int] = {'ES': 0, 'CS': 1, 'SS': 2, 'DS': 3}

# Segment registers MOV may load (8086 has no MOV CS, r16)
WRITABLE_SREGS = frozenset({'DS', 'ES', 'SS'})

# mod=00 rm values for the indirect forms
MEM_RM: Dict[str, int] = {'SI': 0b100, 'DI': 0b101}
RM_DIRECT = 0b110   # mod=00 rm=110 is [disp16]

# op r/m16, r16
ALU_RR_OPCODES: Dict[str, int] = {
    'ADD': 0x01, 'OR': 0x09, 'AND': 0x21, 'SUB': 0x29, 'XOR': 0x31, 'CMP': 0x39,
}
# 81 /digit iw
ALU_IMM_DIGITS: Dict[str, int] = {
    'ADD': 0, 'OR': 1, 'AND': 4, 'SUB': 5, 'XOR': 6, 'CMP': 7,
}
# op AX, iw
ALU_AX_IMM_OPCODES: Dict[str, int] = {
    'ADD': 0x05, 'OR': 0x0D, 'AND': 0x25, 'SUB': 0x2D, 'XOR': 0x35, 'CMP': 0x3D,
}

INC_DEC_BASE: Dict[str, int] = {'INC': 0x40, 'DEC': 0x48}
NOT_NEG_DIGITS: Dict[str, int] = {'NOT': 2, 'NEG': 3}

JCC_OPCODES: Dict[str, int] = {
    'JE': 0x74, 'JZ': 0x74, 'JNE': 0x75, 'JNZ': 0x75,
    'JS': 0x78, 'JNS': 0x79,
    'JL': 0x7C, 'JGE': 0x7D, 'JLE': 0x7E, 'JG': 0x7F,
}

SINGLE_BYTE_OPCODES: Dict[str, int] = {
    'RET': 0xC3, 'PUSHF': 0x9C, 'POPF': 0x9D, 'NOP': 0x90, 'HLT': 0xF4,
}

_NO_OPERAND_KINDS: Dict[str, InstructionKind] = {
    'RET': InstructionKind.RET_NEAR,
    'PUSHF': InstructionKind.PUSHF,
    'POPF': InstructionKind.POPF,
    'NOP': InstructionKind.NOP,
    'HLT': InstructionKind.HLT,
}


# ──────────────────────────────────────────────
# Classifier
# ──────────────────────────────────────────────

def _is_gpr(op) -> bool:
    return isinstance(op, Register) and op.name in GENERAL_REGS


def _is_sreg(op) -> bool:
    return isinstance(op, Register) and op.name in SREG_CODES


def _is_mem(op) -> bool:
    """[SI], [DI] or [literal]; [BX], [BP], [AL] ... are not modeled."""
    return isinstance(op, MemoryRef) and (op.base is None or op.base in MEM_RM)


def _is_imm(op) -> bool:
    return isinstance(op, Immediate)


def _classify_mov(dst, src) -> InstructionKind:
    if _is_gpr(dst) and _is_imm(src):
        return InstructionKind.MOV_REG_IMM
    if _is_gpr(dst) and _is_gpr(src):
        return InstructionKind.MOV_REG_REG
    if isinstance(dst, Register) and dst.name in WRITABLE_SREGS and _is_gpr(src):
        return InstructionKind.MOV_SREG_REG
    if _is_gpr(dst) and _is_sreg(src):
        return InstructionKind.MOV_REG_SREG
    if _is_mem(dst) and _is_gpr(src):
        return InstructionKind.MOV_MEM_REG
    if _is_gpr(dst) and _is_mem(src):
        return InstructionKind.MOV_REG_MEM
    return InstructionKind.UNRECOGNIZED


def classify(insn: Instruction) -> InstructionKind:
    """Map a parsed instruction to exactly one InstructionKind."""
    mnem = insn.mnemonic
    ops = insn.operands
    n = len(ops)

    if n == 0:
        return _NO_OPERAND_KINDS.get(mnem, InstructionKind.UNRECOGNIZED)

    if n == 1:
        op = ops[0]
        if _is_gpr(op):
            if mnem in INC_DEC_BASE:
                return InstructionKind.INC_DEC_REG
            if mnem in NOT_NEG_DIGITS:
                return InstructionKind.NOT_NEG_REG
            if mnem == 'PUSH':
                return InstructionKind.PUSH_REG
            if mnem == 'POP':
                return InstructionKind.POP_REG
        elif _is_imm(op):
            if mnem == 'JMP':
                return InstructionKind.JMP_NEAR
            if mnem == 'CALL':
                return InstructionKind.CALL_NEAR
            if mnem in JCC_OPCODES:
                return InstructionKind.JCC_SHORT
            if mnem == 'LOOP':
                return InstructionKind.LOOP
        return InstructionKind.UNRECOGNIZED

    dst, src = ops
    if mnem == 'MOV':
        return _classify_mov(dst, src)
    if mnem in ALU_RR_OPCODES and _is_gpr(dst):
        if _is_gpr(src):
            return InstructionKind.ALU_REG_REG
        if _is_imm(src):
            return InstructionKind.ALU_REG_IMM
    if mnem == 'IN' and ops == (Register('AX'), Register('DX')):
        return InstructionKind.IO_STUB
    if mnem == 'OUT' and ops == (Register('DX'), Register('AX')):
        return InstructionKind.IO_STUB
    return InstructionKind.UNRECOGNIZED
