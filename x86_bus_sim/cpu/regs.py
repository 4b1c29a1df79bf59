"""
x86 Bus Simulator — CPU Register Set + FLAGS Management

Register model (all 16-bit):
  AX BX CX DX   — general purpose
  SI DI BP SP   — index / pointer
  CS DS ES SS   — segment
  IP            — instruction pointer (offset within CS)
  FLAGS         — only three bits matter to this simulator:
        bit 7: SF (Sign — bit 15 of the last ALU result)
        bit 6: ZF (Zero — last ALU result was zero)
        bit 1: reserved, always reads 1
"""

from __future__ import annotations

from typing import Dict, Mapping

# FLAGS bit masks
FL_RESERVED = 0x0002
FL_ZF = 0x0040
FL_SF = 0x0080

GENERAL_REGS = ('AX', 'BX', 'CX', 'DX', 'SI', 'DI', 'BP', 'SP')
REGISTER_NAMES = ('AX', 'BX', 'CX', 'DX', 'SI', 'DI', 'BP', 'SP',
                  'CS', 'SS', 'DS', 'ES', 'IP', 'FLAGS')


class Registers:
    """8086 register file.

    Every assignment is masked to 16 bits, so no code path can store an
    out-of-range value. FLAGS additionally keeps the reserved bit set.
    """

    __slots__ = REGISTER_NAMES

    def __init__(self, preset: Mapping[str, int]):
        self.load(preset)

    def __setattr__(self, name: str, value: int):
        value = int(value) & 0xFFFF
        if name == 'FLAGS':
            value |= FL_RESERVED
        object.__setattr__(self, name, value)

    # --- Named access (operands carry register names) ---

    def __getitem__(self, name: str) -> int:
        if name not in REGISTER_NAMES:
            raise KeyError(f"Unknown register: {name}")
        return getattr(self, name)

    def __setitem__(self, name: str, value: int):
        if name not in REGISTER_NAMES:
            raise KeyError(f"Unknown register: {name}")
        setattr(self, name, value)

    # --- FLAGS access ---

    def set_ZS(self, flags: int):
        """Set ZF and SF from an ALU flag word. Preserves every other bit."""
        self.FLAGS = (self.FLAGS & ~(FL_ZF | FL_SF)) | (flags & (FL_ZF | FL_SF))

    @property
    def zero(self) -> bool:
        return bool(self.FLAGS & FL_ZF)

    @property
    def sign(self) -> bool:
        return bool(self.FLAGS & FL_SF)

    # --- Bulk ---

    def load(self, preset: Mapping[str, int]):
        """Overwrite every register from a preset. Missing names raise KeyError."""
        for name in REGISTER_NAMES:
            setattr(self, name, preset[name])

    def as_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in REGISTER_NAMES}

    def display(self) -> str:
        """One-line register dump for traces."""
        flag_str = ('S' if self.sign else '.') + ('Z' if self.zero else '.')
        return (f"AX={self.AX:04X} BX={self.BX:04X} CX={self.CX:04X} DX={self.DX:04X} "
                f"SI={self.SI:04X} DI={self.DI:04X} BP={self.BP:04X} SP={self.SP:04X} "
                f"CS={self.CS:04X} DS={self.DS:04X} ES={self.ES:04X} SS={self.SS:04X} "
                f"IP={self.IP:04X} FLAGS={self.FLAGS:04X} [{flag_str}]")

    def __repr__(self) -> str:
        return f"Registers({self.display()})"
