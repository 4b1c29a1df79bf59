"""
Execute cycle, driven through the controller one line at a time.

Machine starts from the classic-v1 preset:
    CS=1000 SS=2000 DS=3000 ES=4000 IP=0100 SP=FFFE SI=0010 FLAGS=0002
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from x86_bus_sim.bus.transaction import TransactionKind
from x86_bus_sim.config import REGISTER_PRESETS, SimulatorConfig
from x86_bus_sim.controller import ExecutionController, StepOutcome
from x86_bus_sim.cpu.address import AddressKind

PRESET = REGISTER_PRESETS["classic-v1"]


def _run(source: str, bus_width: int = 16) -> ExecutionController:
    ctl = ExecutionController(SimulatorConfig(bus_width=bus_width, run_delay=0))
    ctl.load(source)
    for result in ctl.run():
        assert result.outcome is StepOutcome.EXECUTED
    return ctl


def _regs(ctl):
    return ctl.snapshot().registers


class TestMov:

    def test_mov_immediate(self):
        """MOV AX, 1234H → AX=1234H, IP+3, ZF clear"""
        r = _regs(_run("MOV AX, 1234H"))
        assert r['AX'] == 0x1234
        assert r['IP'] == 0x0103
        assert not r['FLAGS'] & 0x0040

    def test_mov_does_not_touch_flags(self):
        r = _regs(_run("MOV AX, 0"))
        assert r['FLAGS'] == 0x0002

    def test_mov_reg_reg_is_internal(self):
        ctl = _run("MOV AX, 1234H\nMOV BX, AX")
        assert _regs(ctl)['BX'] == 0x1234
        snap = ctl.snapshot()
        assert all(t.kind is TransactionKind.FETCH for t in snap.transactions)

    @pytest.mark.parametrize("width, writes", [(8, 2), (16, 1)])
    def test_mov_to_memory(self, width, writes):
        """MOV [SI], AX with DS=3000 SI=0010 AX=00FF → 30010=FF, 30011=00"""
        ctl = _run("MOV AX, 00FFH\nMOV [SI], AX", width)
        snap = ctl.snapshot()
        assert snap.memory_at("30010").value == 0xFF
        assert snap.memory_at("30010").tag == "Data low"
        assert snap.memory_at("30011").value == 0x00
        assert snap.memory_at("30011").tag == "Data high"
        data = [t for t in snap.transactions if t.kind is TransactionKind.WRITE]
        assert len(data) == writes

    def test_mov_to_memory_8bit_order(self):
        snap = _run("MOV AX, 00FFH\nMOV [SI], AX", 8).snapshot()
        data = [t for t in snap.transactions if t.kind is TransactionKind.WRITE]
        assert [(t.address, t.data) for t in data] == [(0x30010, 0xFF), (0x30011, 0x00)]

    def test_data_reference_in_history(self):
        snap = _run("MOV AX, 00FFH\nMOV [SI], AX").snapshot()
        kinds = [c.kind for c in snap.history]
        assert kinds == [AddressKind.FETCH, AddressKind.FETCH, AddressKind.DATA]
        assert snap.history[-1].segment_name == "DS"
        assert snap.history[-1].key == "30010"

    def test_store_then_load_direct(self):
        r = _regs(_run("MOV AX, 1234H\nMOV [0020H], AX\nMOV BX, [0020H]"))
        assert r['BX'] == 0x1234

    def test_load_absent_memory_reads_zero(self):
        ctl = _run("MOV AX, 1\nMOV AX, [0500H]")
        assert _regs(ctl)['AX'] == 0
        reads = [t for t in ctl.snapshot().transactions if t.kind is TransactionKind.READ]
        assert len(reads) == 1 and reads[0].data == 0

    def test_segment_register_load(self):
        """MOV DS, AX moves data references"""
        snap = _run("MOV AX, 5000H\nMOV DS, AX\nMOV [SI], AX").snapshot()
        assert snap.registers['DS'] == 0x5000
        assert snap.memory_at("50010").value == 0x00
        assert snap.memory_at("50011").value == 0x50

    def test_read_segment_register(self):
        assert _regs(_run("MOV BX, ES"))['BX'] == 0x4000


class TestArithmetic:

    def test_add_reg_reg(self):
        """AX=1234H BX=0, ADD BX, AX → BX=1234H, ZF=0 SF=0"""
        r = _regs(_run("MOV AX, 1234H\nADD BX, AX"))
        assert r['BX'] == 0x1234
        assert not r['FLAGS'] & 0x0040
        assert not r['FLAGS'] & 0x0080

    def test_add_carry_out_sets_zero(self):
        """AX=FFFFH, ADD AX, 1 → AX=0000H, ZF=1 from the truncated result"""
        r = _regs(_run("MOV AX, 0FFFFH\nADD AX, 1"))
        assert r['AX'] == 0
        assert r['FLAGS'] == 0x0042

    def test_sub_sets_sign(self):
        r = _regs(_run("SUB AX, 1"))
        assert r['AX'] == 0xFFFF
        assert r['FLAGS'] & 0x0080

    def test_xor_self_sets_zero(self):
        r = _regs(_run("MOV AX, 1234H\nXOR AX, AX"))
        assert r['AX'] == 0
        assert r['FLAGS'] == 0x0042

    def test_cmp_discards_result(self):
        r = _regs(_run("MOV AX, 5\nCMP AX, 5"))
        assert r['AX'] == 5
        assert r['FLAGS'] & 0x0040

    def test_inc_dec(self):
        r = _regs(_run("MOV CX, 0FFFFH\nINC CX"))
        assert r['CX'] == 0
        assert r['FLAGS'] & 0x0040
        r = _regs(_run("DEC DX"))
        assert r['DX'] == 0xFFFF
        assert r['FLAGS'] & 0x0080

    def test_not_neg(self):
        assert _regs(_run("NOT AX"))['AX'] == 0xFFFF
        assert _regs(_run("MOV BX, 2\nNEG BX"))['BX'] == 0xFFFE

    def test_alu_is_internal(self):
        snap = _run("ADD AX, 1").snapshot()
        assert all(t.kind is TransactionKind.FETCH for t in snap.transactions)


class TestStack:

    def test_push_pop_round_trip(self):
        """AX=00AAH, PUSH AX, POP BX → BX=00AAH, SP unchanged"""
        snap = _run("MOV AX, 00AAH\nPUSH AX\nPOP BX").snapshot()
        assert snap.registers['BX'] == 0x00AA
        assert snap.registers['SP'] == 0xFFFE

    def test_push_writes_at_ss_sp(self):
        """SS=2000 SP=FFFE → word at 2FFFCH"""
        snap = _run("MOV AX, 1234H\nPUSH AX").snapshot()
        assert snap.registers['SP'] == 0xFFFC
        assert snap.memory_at("2FFFC").value == 0x34
        assert snap.memory_at("2FFFC").tag == "Stack low"
        assert snap.memory_at("2FFFD").value == 0x12
        assert snap.memory_at("2FFFD").tag == "Stack high"
        assert snap.history[-1].segment_name == "SS"

    def test_pushf_popf(self):
        r = _regs(_run("MOV AX, 00C0H\nPUSH AX\nPOPF"))
        assert r['FLAGS'] == 0x00C2
        snap = _run("XOR AX, AX\nPUSHF").snapshot()
        assert snap.memory_at("2FFFC").value == 0x42

    def test_popf_forces_reserved_bit(self):
        assert _regs(_run("MOV AX, 0\nPUSH AX\nPOPF"))['FLAGS'] == 0x0002

    def test_8bit_push_is_two_writes(self):
        snap = _run("PUSH AX", 8).snapshot()
        writes = [t for t in snap.transactions if t.kind is TransactionKind.WRITE]
        assert [t.address for t in writes] == [0x2FFFC, 0x2FFFD]


class TestControlTransfer:

    def test_jmp_sets_ip(self):
        assert _regs(_run("JMP 0300H"))['IP'] == 0x0300

    def test_branch_note_shows_signed_distance(self):
        log = _run("JMP 0300H").snapshot().step_log
        assert "IP 0103H -> 0300H (branch taken, +509)" in log
        log = _run("MOV CX, 2\nLOOP 0100H").snapshot().step_log
        assert "IP 0105H -> 0100H (branch taken, -5)" in log

    def test_next_line_fetched_at_new_ip(self):
        snap = _run("JMP 0300H\nNOP").snapshot()
        assert snap.history[-1].offset == 0x0300
        assert snap.memory_at("10300").value == 0x90
        assert snap.registers['IP'] == 0x0301

    def test_call_ret(self):
        """CALL 0200H pushes 0103H; RET pops it back into IP"""
        ctl = ExecutionController(SimulatorConfig(run_delay=0))
        ctl.load("CALL 0200H\nRET")
        ctl.step()
        snap = ctl.snapshot()
        assert snap.registers['IP'] == 0x0200
        assert snap.registers['SP'] == 0xFFFC
        assert snap.memory_at("2FFFC").value == 0x03
        assert snap.memory_at("2FFFD").value == 0x01
        ctl.step()
        r = ctl.snapshot().registers
        assert r['IP'] == 0x0103
        assert r['SP'] == 0xFFFE

    def test_je_taken(self):
        assert _regs(_run("XOR AX, AX\nJE 0300H"))['IP'] == 0x0300

    def test_jne_not_taken(self):
        assert _regs(_run("XOR AX, AX\nJNE 0300H"))['IP'] == 0x0104

    @pytest.mark.parametrize("setup, jump, taken", [
        ("MOV AX, 1\nSUB AX, 2", "JS", True),
        ("MOV AX, 1\nSUB AX, 2", "JNS", False),
        ("MOV AX, 1\nSUB AX, 2", "JL", True),
        ("MOV AX, 3\nSUB AX, 2", "JGE", True),
        ("MOV AX, 3\nSUB AX, 2", "JG", True),
        ("MOV AX, 2\nSUB AX, 2", "JG", False),
        ("MOV AX, 2\nSUB AX, 2", "JLE", True),
        ("MOV AX, 2\nSUB AX, 2", "JZ", True),
        ("MOV AX, 3\nSUB AX, 2", "JNZ", True),
    ])
    def test_conditions(self, setup, jump, taken):
        r = _regs(_run(f"{setup}\n{jump} 0300H"))
        assert (r['IP'] == 0x0300) is taken

    def test_loop_taken(self):
        """CX=2, LOOP → CX=1, branch"""
        r = _regs(_run("MOV CX, 2\nLOOP 0100H"))
        assert r['CX'] == 1
        assert r['IP'] == 0x0100

    def test_loop_falls_through(self):
        r = _regs(_run("MOV CX, 1\nLOOP 0100H"))
        assert r['CX'] == 0
        assert r['IP'] == 0x0105

    def test_loop_leaves_flags(self):
        assert _regs(_run("MOV CX, 1\nLOOP 0100H"))['FLAGS'] == 0x0002

    def test_branch_does_not_rewind_program(self):
        """Program flow is linear: every line runs once"""
        ctl = _run("MOV CX, 3\nLOOP 0100H\nINC AX")
        assert ctl.machine.pc == 3
        assert _regs(ctl)['AX'] == 1


class TestNoOps:

    @pytest.mark.parametrize("line, length", [
        ("NOP", 1), ("HLT", 1), ("IN AX, DX", 1), ("OUT DX, AX", 1),
        ("MOV [BX], AX", 2), ("CLI", 1),
    ])
    def test_only_ip_changes(self, line, length):
        r = dict(_regs(_run(line)))
        expected = dict(PRESET)
        expected['IP'] = 0x0100 + length
        assert r == expected

    def test_hlt_does_not_stop_the_program(self):
        ctl = _run("HLT\nMOV AX, 1")
        assert _regs(ctl)['AX'] == 1

    def test_placeholder_bytes_in_memory(self):
        snap = _run("MOV [BX], AX").snapshot()
        assert [(row.address, row.value, row.tag) for row in snap.memory] == [
            ("10100", 0x90, "Byte"), ("10101", 0x90, "Byte")]
        assert "not a recognized shape" in snap.step_log
