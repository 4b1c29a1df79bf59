"""
x86 Bus Simulator — Mini-Assembler

Turns one parsed instruction into the literal 8086 byte sequence for its
shape, with a descriptive tag on every byte. The tags are what the memory
table shows next to each byte after the fetch cycle writes it.

  Tag                   Meaning
  ───────────────────   ─────────────────────────────────────────
  Opcode                operation byte
  ModRM                 mod/reg/rm addressing byte
  Displacement low/high address or branch displacement
  Immediate low/high    16-bit immediate operand
  Byte                  anything else (placeholder encodings)

Relative branches are encoded against the address of the NEXT
instruction:

    offset = (target - (current_ip + length)) mod 65536

stored little-endian. The short forms (Jcc, LOOP) keep only the low byte
of that offset; a target out of short range wraps silently, exactly like
the displacement arithmetic on the real chip would.

Shapes outside the recognized set get a placeholder: 90H for a line with
no operands, 90H 90H otherwise. This is not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from .parser import Instruction, parse_instruction
from .shapes import (
    InstructionKind, classify,
    REG_CODES, SREG_CODES, MEM_RM, RM_DIRECT,
    ALU_RR_OPCODES, ALU_IMM_DIGITS, ALU_AX_IMM_OPCODES,
    INC_DEC_BASE, NOT_NEG_DIGITS, JCC_OPCODES, SINGLE_BYTE_OPCODES,
)

__all__ = ['EncodedByte', 'AssembledInstruction', 'assemble', 'assemble_line',
           'PLACEHOLDER_BYTE']

TAG_OPCODE = "Opcode"
TAG_MODRM = "ModRM"
TAG_DISP_LO = "Displacement low"
TAG_DISP_HI = "Displacement high"
TAG_IMM_LO = "Immediate low"
TAG_IMM_HI = "Immediate high"
TAG_BYTE = "Byte"

PLACEHOLDER_BYTE = 0x90


@dataclass(frozen=True)
class EncodedByte:
    value: int
    tag: str = TAG_BYTE

    def __str__(self) -> str:
        return f"{self.value:02X}"


@dataclass(frozen=True)
class AssembledInstruction:
    """An instruction together with its shape and machine code."""
    instruction: Instruction
    kind: InstructionKind
    encoded: Tuple[EncodedByte, ...]

    @property
    def raw(self) -> bytes:
        return bytes(b.value for b in self.encoded)

    @property
    def recognized(self) -> bool:
        return self.kind is not InstructionKind.UNRECOGNIZED

    def __len__(self) -> int:
        return len(self.encoded)

    def hex(self) -> str:
        return ' '.join(str(b) for b in self.encoded)


# ──────────────────────────────────────────────
# Byte helpers
# ──────────────────────────────────────────────

def _modrm(mod: int, reg: int, rm: int) -> int:
    return ((mod & 0b11) << 6) | ((reg & 0b111) << 3) | (rm & 0b111)


def _word(value: int, lo_tag: str, hi_tag: str) -> List[EncodedByte]:
    value &= 0xFFFF
    return [EncodedByte(value & 0xFF, lo_tag), EncodedByte((value >> 8) & 0xFF, hi_tag)]


def _rel(target: int, current_ip: int, length: int) -> int:
    return (target - (current_ip + length)) & 0xFFFF


def _mem_modrm(reg_code: int, mem) -> List[EncodedByte]:
    """ModRM (+disp16) for [SI], [DI] or [literal]."""
    if mem.base is not None:
        return [EncodedByte(_modrm(0b00, reg_code, MEM_RM[mem.base]), TAG_MODRM)]
    return ([EncodedByte(_modrm(0b00, reg_code, RM_DIRECT), TAG_MODRM)]
            + _word(mem.displacement, TAG_DISP_LO, TAG_DISP_HI))


# ──────────────────────────────────────────────
# Encoders, one per InstructionKind
# ──────────────────────────────────────────────
# Signature: encoder(insn, current_ip) -> list of EncodedByte

def _enc_mov_reg_imm(insn: Instruction, ip: int) -> List[EncodedByte]:
    opcode = 0xB8 + REG_CODES[insn.dest.name]
    return [EncodedByte(opcode, TAG_OPCODE)] + _word(insn.src.value, TAG_IMM_LO, TAG_IMM_HI)


def _enc_mov_reg_reg(insn: Instruction, ip: int) -> List[EncodedByte]:
    # 89 /r: reg field = source, rm = destination
    modrm = _modrm(0b11, REG_CODES[insn.src.name], REG_CODES[insn.dest.name])
    return [EncodedByte(0x89, TAG_OPCODE), EncodedByte(modrm, TAG_MODRM)]


def _enc_mov_sreg_reg(insn: Instruction, ip: int) -> List[EncodedByte]:
    modrm = _modrm(0b11, SREG_CODES[insn.dest.name], REG_CODES[insn.src.name])
    return [EncodedByte(0x8E, TAG_OPCODE), EncodedByte(modrm, TAG_MODRM)]


def _enc_mov_reg_sreg(insn: Instruction, ip: int) -> List[EncodedByte]:
    modrm = _modrm(0b11, SREG_CODES[insn.src.name], REG_CODES[insn.dest.name])
    return [EncodedByte(0x8C, TAG_OPCODE), EncodedByte(modrm, TAG_MODRM)]


def _enc_mov_mem_reg(insn: Instruction, ip: int) -> List[EncodedByte]:
    mem, reg = insn.dest, insn.src.name
    if mem.base is None and reg == 'AX':
        # MOV moffs16, AX short form
        return [EncodedByte(0xA3, TAG_OPCODE)] + _word(mem.displacement, TAG_DISP_LO, TAG_DISP_HI)
    return [EncodedByte(0x89, TAG_OPCODE)] + _mem_modrm(REG_CODES[reg], mem)


def _enc_mov_reg_mem(insn: Instruction, ip: int) -> List[EncodedByte]:
    reg, mem = insn.dest.name, insn.src
    if mem.base is None and reg == 'AX':
        return [EncodedByte(0xA1, TAG_OPCODE)] + _word(mem.displacement, TAG_DISP_LO, TAG_DISP_HI)
    return [EncodedByte(0x8B, TAG_OPCODE)] + _mem_modrm(REG_CODES[reg], mem)


def _enc_alu_reg_reg(insn: Instruction, ip: int) -> List[EncodedByte]:
    # ADD BX, AX -> 01 C3 (reg=AX source, rm=BX destination)
    opcode = ALU_RR_OPCODES[insn.mnemonic]
    modrm = _modrm(0b11, REG_CODES[insn.src.name], REG_CODES[insn.dest.name])
    return [EncodedByte(opcode, TAG_OPCODE), EncodedByte(modrm, TAG_MODRM)]


def _enc_alu_reg_imm(insn: Instruction, ip: int) -> List[EncodedByte]:
    imm = _word(insn.src.value, TAG_IMM_LO, TAG_IMM_HI)
    if insn.dest.name == 'AX':
        return [EncodedByte(ALU_AX_IMM_OPCODES[insn.mnemonic], TAG_OPCODE)] + imm
    modrm = _modrm(0b11, ALU_IMM_DIGITS[insn.mnemonic], REG_CODES[insn.dest.name])
    return [EncodedByte(0x81, TAG_OPCODE), EncodedByte(modrm, TAG_MODRM)] + imm


def _enc_inc_dec(insn: Instruction, ip: int) -> List[EncodedByte]:
    return [EncodedByte(INC_DEC_BASE[insn.mnemonic] + REG_CODES[insn.dest.name], TAG_OPCODE)]


def _enc_not_neg(insn: Instruction, ip: int) -> List[EncodedByte]:
    modrm = _modrm(0b11, NOT_NEG_DIGITS[insn.mnemonic], REG_CODES[insn.dest.name])
    return [EncodedByte(0xF7, TAG_OPCODE), EncodedByte(modrm, TAG_MODRM)]


def _enc_near(opcode: int) -> Callable[[Instruction, int], List[EncodedByte]]:
    def encode(insn: Instruction, ip: int) -> List[EncodedByte]:
        offset = _rel(insn.dest.value, ip, 3)
        return [EncodedByte(opcode, TAG_OPCODE)] + _word(offset, TAG_DISP_LO, TAG_DISP_HI)
    return encode


def _enc_short(insn: Instruction, opcode: int, ip: int) -> List[EncodedByte]:
    offset = _rel(insn.dest.value, ip, 2)
    return [EncodedByte(opcode, TAG_OPCODE), EncodedByte(offset & 0xFF, TAG_DISP_LO)]


def _enc_jcc(insn: Instruction, ip: int) -> List[EncodedByte]:
    return _enc_short(insn, JCC_OPCODES[insn.mnemonic], ip)


def _enc_loop(insn: Instruction, ip: int) -> List[EncodedByte]:
    return _enc_short(insn, 0xE2, ip)


def _enc_push(insn: Instruction, ip: int) -> List[EncodedByte]:
    return [EncodedByte(0x50 + REG_CODES[insn.dest.name], TAG_OPCODE)]


def _enc_pop(insn: Instruction, ip: int) -> List[EncodedByte]:
    return [EncodedByte(0x58 + REG_CODES[insn.dest.name], TAG_OPCODE)]


def _enc_single(insn: Instruction, ip: int) -> List[EncodedByte]:
    return [EncodedByte(SINGLE_BYTE_OPCODES[insn.mnemonic], TAG_OPCODE)]


def _enc_io(insn: Instruction, ip: int) -> List[EncodedByte]:
    # IN AX, DX = ED; OUT DX, AX = EF
    return [EncodedByte(0xED if insn.mnemonic == 'IN' else 0xEF, TAG_OPCODE)]


def _enc_placeholder(insn: Instruction, ip: int) -> List[EncodedByte]:
    count = 2 if insn.operands else 1
    return [EncodedByte(PLACEHOLDER_BYTE, TAG_BYTE)] * count


K = InstructionKind

ENCODERS: Dict[InstructionKind, Callable[[Instruction, int], List[EncodedByte]]] = {
    K.MOV_REG_IMM: _enc_mov_reg_imm,
    K.MOV_REG_REG: _enc_mov_reg_reg,
    K.MOV_SREG_REG: _enc_mov_sreg_reg,
    K.MOV_REG_SREG: _enc_mov_reg_sreg,
    K.MOV_MEM_REG: _enc_mov_mem_reg,
    K.MOV_REG_MEM: _enc_mov_reg_mem,
    K.ALU_REG_REG: _enc_alu_reg_reg,
    K.ALU_REG_IMM: _enc_alu_reg_imm,
    K.INC_DEC_REG: _enc_inc_dec,
    K.NOT_NEG_REG: _enc_not_neg,
    K.JMP_NEAR: _enc_near(0xE9),
    K.CALL_NEAR: _enc_near(0xE8),
    K.RET_NEAR: _enc_single,
    K.JCC_SHORT: _enc_jcc,
    K.LOOP: _enc_loop,
    K.PUSH_REG: _enc_push,
    K.POP_REG: _enc_pop,
    K.PUSHF: _enc_single,
    K.POPF: _enc_single,
    K.NOP: _enc_single,
    K.HLT: _enc_single,
    K.IO_STUB: _enc_io,
    K.UNRECOGNIZED: _enc_placeholder,
}


# ──────────────────────────────────────────────
# Entry points
# ──────────────────────────────────────────────

def assemble(insn: Instruction, current_ip: int) -> AssembledInstruction:
    """Classify and encode one instruction located at ``current_ip``."""
    kind = classify(insn)
    encoded = ENCODERS[kind](insn, current_ip & 0xFFFF)
    return AssembledInstruction(insn, kind, tuple(encoded))


def assemble_line(line: str, current_ip: int = 0, line_num: int = 0) -> AssembledInstruction:
    """Parse + assemble a single source line. Raises ProgramParseError."""
    return assemble(parse_instruction(line, line_num), current_ip)
