"""
x86 Bus Simulator — ALU Operations

Each function returns ``(result, flags)``: the 16-bit truncated result
and a FLAGS word holding only ZF/SF. The caller applies the flags with
``Registers.set_ZS`` and decides whether to store the result (CMP does
not).

ZF and SF are taken from the truncated result: 0xFFFF + 1 sets ZF, the
same as the hardware. SF is bit 15 either way.
"""

from __future__ import annotations

from typing import Callable, Dict, Tuple

from .regs import FL_SF, FL_ZF

AluResult = Tuple[int, int]


def flags16(result: int) -> int:
    """ZF/SF for a 16-bit value."""
    result &= 0xFFFF
    flags = 0
    if result == 0:
        flags |= FL_ZF
    if result & 0x8000:
        flags |= FL_SF
    return flags


# ══════════════════════════════════════════════
# Binary operations
# ══════════════════════════════════════════════

def add16(a: int, b: int) -> AluResult:
    result = (a + b) & 0xFFFF
    return (result, flags16(result))


def sub16(a: int, b: int) -> AluResult:
    result = (a - b) & 0xFFFF
    return (result, flags16(result))


def and16(a: int, b: int) -> AluResult:
    result = a & b & 0xFFFF
    return (result, flags16(result))


def or16(a: int, b: int) -> AluResult:
    result = (a | b) & 0xFFFF
    return (result, flags16(result))


def xor16(a: int, b: int) -> AluResult:
    result = (a ^ b) & 0xFFFF
    return (result, flags16(result))


# CMP computes the same thing as SUB; the caller discards the result
cmp16 = sub16


BINARY_OPS: Dict[str, Callable[[int, int], AluResult]] = {
    'ADD': add16,
    'SUB': sub16,
    'AND': and16,
    'OR':  or16,
    'XOR': xor16,
    'CMP': cmp16,
}

# Ops whose result is thrown away
COMPARE_ONLY = frozenset({'CMP'})


# ══════════════════════════════════════════════
# Unary operations
# ══════════════════════════════════════════════

def inc16(val: int) -> AluResult:
    return add16(val, 1)


def dec16(val: int) -> AluResult:
    return sub16(val, 1)


def not16(val: int) -> AluResult:
    """One's complement."""
    result = (~val) & 0xFFFF
    return (result, flags16(result))


def neg16(val: int) -> AluResult:
    """Two's complement negate. NEG 8000H stays 8000H."""
    result = (-val) & 0xFFFF
    return (result, flags16(result))


UNARY_OPS: Dict[str, Callable[[int], AluResult]] = {
    'INC': inc16,
    'DEC': dec16,
    'NOT': not16,
    'NEG': neg16,
}


def twos_complement_16(val: int) -> int:
    """Unsigned 16-bit to signed Python int (for display of displacements)."""
    if val & 0x8000:
        return val - 0x10000
    return val
