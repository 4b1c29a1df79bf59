"""
x86 Bus Simulator — Program Text Parser

Input:  the text a learner typed, one instruction per line
Output: a cleaned Program (tuple of uppercase lines) and, per line, an
        ``Instruction`` with typed operands

Line grammar (after comment stripping and uppercasing):

    MNEMONIC [operand1[, operand2]]

    operand  := register | number | '[' register ']' | '[' number ']'
    register := AX BX CX DX SI DI BP SP CS DS ES SS IP
                AL AH BL BH CL CH DL DH   (known, but no shape uses them)
    number   := [-] digits               decimal
              | [-] hexdigits 'H'        e.g. 1234H, 0FFH, FFH
              | [-] '0X' hexdigits       e.g. 0X1234

Register names win over numbers, so ``AH`` is the register, not 0AH.
A line that does not fit the grammar raises ``ProgramParseError``. Lines
that fit it but name an unknown instruction are NOT errors here; the
shape classifier decides what is recognized.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

__all__ = [
    'ProgramParseError', 'Register', 'Immediate', 'MemoryRef', 'Operand',
    'Instruction', 'clean_program', 'parse_instruction', 'parse_number',
]


class ProgramParseError(Exception):
    """Raised when a program line does not match the instruction grammar."""
    def __init__(self, message: str, line_num: int = 0, line_text: str = ""):
        self.message = message
        self.line_num = line_num
        self.line_text = line_text
        super().__init__(f"Line {line_num}: {message}" if line_num else message)


REGS16 = frozenset({'AX', 'BX', 'CX', 'DX', 'SI', 'DI', 'BP', 'SP',
                    'CS', 'DS', 'ES', 'SS', 'IP'})
REGS8 = frozenset({'AL', 'AH', 'BL', 'BH', 'CL', 'CH', 'DL', 'DH'})

IMM_MIN = -0x8000
IMM_MAX = 0xFFFF

_LINE_RE = re.compile(r'^([A-Z][A-Z0-9]*)(?:\s+(.*))?$')
_HEX_SUFFIX_RE = re.compile(r'^[0-9A-F]+H$')
_HEX_PREFIX_RE = re.compile(r'^0X[0-9A-F]+$')
_DEC_RE = re.compile(r'^[0-9]+$')


# ──────────────────────────────────────────────
# Operand types
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Register:
    name: str

    @property
    def width(self) -> int:
        return 8 if self.name in REGS8 else 16

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Immediate:
    value: int   # already reduced to 0..FFFF
    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class MemoryRef:
    """``[SI]``, ``[DI]``, ``[1234H]`` ... exactly one of base/displacement is set."""
    base: Optional[str] = None
    displacement: Optional[int] = None

    def __str__(self) -> str:
        if self.base is not None:
            return f"[{self.base}]"
        return f"[{self.displacement:04X}H]"


Operand = Union[Register, Immediate, MemoryRef]


@dataclass(frozen=True)
class Instruction:
    """One parsed program line."""
    mnemonic: str
    operands: Tuple[Operand, ...] = ()
    text: str = ""
    line_num: int = 0

    @property
    def dest(self) -> Optional[Operand]:
        return self.operands[0] if self.operands else None

    @property
    def src(self) -> Optional[Operand]:
        return self.operands[1] if len(self.operands) > 1 else None

    def __str__(self) -> str:
        return self.text or " ".join(
            [self.mnemonic, ", ".join(str(op) for op in self.operands)]).strip()


# ──────────────────────────────────────────────
# Program cleanup
# ──────────────────────────────────────────────

def clean_program(source: str) -> Tuple[str, ...]:
    """Strip ``;`` comments, drop blank lines, uppercase the rest."""
    lines = []
    for raw in source.splitlines():
        text = raw.split(';', 1)[0].strip()
        if text:
            lines.append(' '.join(text.upper().split()))
    return tuple(lines)


# ──────────────────────────────────────────────
# Line parser
# ──────────────────────────────────────────────

def parse_number(text: str, line_num: int = 0, line_text: str = "") -> int:
    """Parse a numeric literal, returning it as an unsigned 16-bit value."""
    digits = text
    negative = digits.startswith('-')
    if negative:
        digits = digits[1:].strip()

    if _HEX_PREFIX_RE.match(digits):
        value = int(digits[2:], 16)
    elif _HEX_SUFFIX_RE.match(digits):
        value = int(digits[:-1], 16)
    elif _DEC_RE.match(digits):
        value = int(digits, 10)
    else:
        raise ProgramParseError(f"Bad operand: '{text}'", line_num, line_text)

    if negative:
        value = -value
    if not IMM_MIN <= value <= IMM_MAX:
        raise ProgramParseError(f"Value out of 16-bit range: '{text}'", line_num, line_text)
    return value & 0xFFFF


def _parse_operand(text: str, line_num: int, line_text: str) -> Operand:
    if not text:
        raise ProgramParseError("Empty operand", line_num, line_text)

    if text.startswith('['):
        if not text.endswith(']'):
            raise ProgramParseError(f"Unclosed memory operand: '{text}'", line_num, line_text)
        inner = text[1:-1].strip()
        if not inner:
            raise ProgramParseError("Empty memory operand '[]'", line_num, line_text)
        if inner in REGS16 or inner in REGS8:
            return MemoryRef(base=inner)
        return MemoryRef(displacement=parse_number(inner, line_num, line_text))

    if text in REGS16 or text in REGS8:
        return Register(text)

    return Immediate(parse_number(text, line_num, line_text), text)


def parse_instruction(line: str, line_num: int = 0) -> Instruction:
    """Parse one cleaned program line into an Instruction."""
    text = line.strip().upper()
    m = _LINE_RE.match(text)
    if m is None:
        raise ProgramParseError(f"Cannot parse '{line}'", line_num, line)

    mnemonic, rest = m.group(1), m.group(2)
    operands: Tuple[Operand, ...] = ()
    if rest is not None and rest.strip():
        parts = [p.strip() for p in rest.split(',')]
        if len(parts) > 2:
            raise ProgramParseError(
                f"Too many operands ({len(parts)}), at most 2 allowed", line_num, line)
        operands = tuple(_parse_operand(p, line_num, line) for p in parts)

    return Instruction(mnemonic, operands, text, line_num)
