"""
Register file and ALU: 16-bit truncation and ZF/SF.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from x86_bus_sim.config import REGISTER_PRESETS
from x86_bus_sim.cpu import alu
from x86_bus_sim.cpu.regs import FL_SF, FL_ZF, REGISTER_NAMES, Registers


def _regs() -> Registers:
    return Registers(REGISTER_PRESETS["classic-v1"])


class TestRegisters:

    def test_preset_loaded(self):
        r = _regs()
        assert (r.CS, r.SS, r.DS, r.ES) == (0x1000, 0x2000, 0x3000, 0x4000)
        assert (r.IP, r.SP, r.SI) == (0x0100, 0xFFFE, 0x0010)
        assert r.FLAGS == 0x0002

    def test_values_masked_to_16_bits(self):
        r = _regs()
        r.AX = 0x12345
        assert r.AX == 0x2345
        r.SP = -2
        assert r.SP == 0xFFFE

    def test_reserved_flag_bit_always_set(self):
        r = _regs()
        r.FLAGS = 0
        assert r.FLAGS == 0x0002

    def test_set_zs_preserves_other_bits(self):
        r = _regs()
        r.FLAGS = 0x0802
        r.set_ZS(FL_ZF)
        assert r.FLAGS == 0x0842
        assert r.zero and not r.sign
        r.set_ZS(FL_SF)
        assert r.FLAGS == 0x0882
        assert r.sign and not r.zero

    def test_named_access(self):
        r = _regs()
        r['BX'] = 0xBEEF
        assert r['BX'] == 0xBEEF == r.BX

    def test_unknown_register(self):
        r = _regs()
        with pytest.raises(KeyError):
            r['XX']
        with pytest.raises(KeyError):
            r['AL'] = 1

    def test_as_dict_order(self):
        assert tuple(_regs().as_dict()) == REGISTER_NAMES

    def test_display(self):
        assert "CS=1000" in _regs().display()


class TestALU:

    def test_add(self):
        """1234H + 0 → 1234H, ZF=0 SF=0"""
        assert alu.add16(0x1234, 0) == (0x1234, 0)

    def test_add_wraps_to_zero(self):
        """FFFFH + 1 → 0000H, ZF=1"""
        assert alu.add16(0xFFFF, 1) == (0x0000, FL_ZF)

    def test_sub_negative(self):
        """0 - 1 → FFFFH, SF=1"""
        assert alu.sub16(0, 1) == (0xFFFF, FL_SF)

    def test_cmp_same_as_sub(self):
        assert alu.cmp16(5, 5) == (0, FL_ZF)
        assert 'CMP' in alu.COMPARE_ONLY

    def test_logic(self):
        assert alu.and16(0xF0F0, 0x0FF0) == (0x00F0, 0)
        assert alu.or16(0x8000, 0x0001) == (0x8001, FL_SF)
        assert alu.xor16(0xAAAA, 0xAAAA) == (0, FL_ZF)

    def test_unary(self):
        assert alu.inc16(0x7FFF) == (0x8000, FL_SF)
        assert alu.dec16(1) == (0, FL_ZF)
        assert alu.not16(0) == (0xFFFF, FL_SF)
        assert alu.neg16(1) == (0xFFFF, FL_SF)
        assert alu.neg16(0) == (0, FL_ZF)

    def test_neg_most_negative(self):
        """NEG 8000H stays 8000H"""
        assert alu.neg16(0x8000) == (0x8000, FL_SF)

    def test_tables_cover_mnemonics(self):
        assert set(alu.BINARY_OPS) == {'ADD', 'SUB', 'AND', 'OR', 'XOR', 'CMP'}
        assert set(alu.UNARY_OPS) == {'INC', 'DEC', 'NOT', 'NEG'}

    def test_twos_complement(self):
        assert alu.twos_complement_16(0xFFFE) == -2
        assert alu.twos_complement_16(0x0010) == 16
