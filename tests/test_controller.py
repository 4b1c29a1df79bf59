"""
Execution controller: state machine, load/reset, continuous run, and
the read-only snapshots it hands to presenters.
"""
import sys
import os
import threading
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from x86_bus_sim.config import REGISTER_PRESETS, ConfigError, SimulatorConfig
from x86_bus_sim.controller import (
    EmptyProgramError, ExecutionController, StepOutcome,
)
from x86_bus_sim.state import ControllerState

PROGRAM = """
; demo
MOV AX, 1234H     ; load
ADD BX, AX
MOV [SI], AX
"""


def _controller(bus_width: int = 16) -> ExecutionController:
    return ExecutionController(SimulatorConfig(bus_width=bus_width, run_delay=0))


class TestStateMachine:

    def test_starts_idle(self):
        ctl = _controller()
        assert ctl.state is ControllerState.IDLE
        assert ctl.step().outcome is StepOutcome.NO_PROGRAM

    def test_load(self):
        ctl = _controller()
        snap = ctl.load(PROGRAM)
        assert ctl.state is ControllerState.LOADED
        assert snap.program == ("MOV AX, 1234H", "ADD BX, AX", "MOV [SI], AX")
        assert snap.pc == 0
        assert snap.bus_step == 1

    def test_step_to_halt(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        outcomes = [ctl.step().outcome for _ in range(3)]
        assert outcomes == [StepOutcome.EXECUTED] * 3
        assert ctl.state is ControllerState.HALTED
        assert ctl.machine.pc == 3

    def test_running_between(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        result = ctl.step()
        assert result.ok
        assert result.index == 0
        assert result.instruction == "MOV AX, 1234H"
        assert ctl.state is ControllerState.RUNNING

    def test_step_after_halt_changes_nothing(self):
        ctl = _controller()
        ctl.load("NOP")
        ctl.step()
        before = ctl.snapshot()
        result = ctl.step()
        assert result.outcome is StepOutcome.HALTED
        assert result.snapshot == before

    def test_load_from_halted(self):
        ctl = _controller()
        ctl.load("NOP")
        ctl.step()
        ctl.load("MOV AX, 1")
        assert ctl.state is ControllerState.LOADED
        assert ctl.snapshot().memory == ()


class TestLoadErrors:

    @pytest.mark.parametrize("text", ["", "   \n\n", "; only a comment\n;another"])
    def test_empty_program_rejected(self, text):
        ctl = _controller()
        with pytest.raises(EmptyProgramError):
            ctl.load(text)
        assert ctl.state is ControllerState.IDLE

    def test_failed_load_keeps_previous_program(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        ctl.step()
        before = ctl.snapshot()
        with pytest.raises(ValueError):
            ctl.load(";")
        assert ctl.snapshot() == before


class TestParseError:

    def test_bad_line_stops_without_changes(self):
        ctl = _controller()
        ctl.load("MOV AX, 1\nMOV AX, BX, CX\nNOP")
        ctl.step()
        before = ctl.snapshot()
        result = ctl.step()
        assert result.outcome is StepOutcome.PARSE_ERROR
        assert not result.ok
        assert result.index == 1
        assert result.error.line_num == 2
        assert result.snapshot == before
        assert ctl.machine.pc == 1

    def test_run_stops_on_parse_error(self):
        ctl = _controller()
        ctl.load("MOV AX, 1\nMOV [SI, AX\nNOP")
        results = ctl.run()
        assert [r.outcome for r in results] == [StepOutcome.EXECUTED, StepOutcome.PARSE_ERROR]
        assert ctl.state is ControllerState.RUNNING


class TestReset:

    def test_reset_restores_preset(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        ctl.run()
        snap = ctl.reset()
        assert ctl.state is ControllerState.IDLE
        assert dict(snap.registers) == dict(REGISTER_PRESETS["classic-v1"])
        assert snap.memory == ()
        assert snap.history == ()
        assert snap.flow_log == ()
        assert snap.bus_step == 1
        assert snap.program == ()

    def test_reset_is_idempotent(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        ctl.step()
        first = ctl.reset()
        second = ctl.reset()
        assert first == second

    def test_reset_keeps_bus_width(self):
        ctl = _controller()
        ctl.bus_width = 8
        assert ctl.reset().bus_width == 8


class TestBusWidth:

    def test_invalid_width(self):
        ctl = _controller()
        with pytest.raises(ValueError):
            ctl.bus_width = 12
        with pytest.raises(ConfigError):
            ctl.load("NOP", bus_width=32)

    def test_load_with_width(self):
        ctl = _controller()
        assert ctl.load("NOP", bus_width=8).bus_width == 8

    def test_change_applies_on_next_step(self):
        """MOV AX, 1234H: 2 fetch transactions on 16-bit, 3 on 8-bit"""
        ctl = _controller(16)
        ctl.load("MOV AX, 1234H\nMOV AX, 1234H")
        assert len(ctl.step().snapshot.transactions) == 2
        ctl.bus_width = 8
        result = ctl.step()
        assert result.snapshot.bus_width == 8
        assert len(result.snapshot.transactions) == 3


class TestBusStepCounter:

    def test_counts_two_per_transaction(self):
        ctl = _controller(8)
        ctl.load(PROGRAM)
        ctl.run()
        entries = ctl.snapshot().flow_log
        total = 0
        for entry in entries:
            steps = entry.bus_step_end - entry.bus_step_start
            assert steps % 2 == 0
            total += steps
        assert ctl.snapshot().bus_step == 1 + total

    def test_monotonic(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        seen = [ctl.snapshot().bus_step]
        for _ in range(3):
            seen.append(ctl.step().snapshot.bus_step)
        assert seen == sorted(seen)
        assert len(set(seen)) == len(seen)


class TestRun:

    def test_run_to_completion(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        results = ctl.run()
        assert len(results) == 3
        assert all(r.ok for r in results)
        assert ctl.state is ControllerState.HALTED

    def test_max_steps(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        assert len(ctl.run(max_steps=2)) == 2
        assert ctl.state is ControllerState.RUNNING

    def test_stop_event_before_start(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        stop = threading.Event()
        stop.set()
        assert ctl.run(stop_event=stop) == []
        assert ctl.state is ControllerState.LOADED

    def test_stop_wakes_the_wait(self):
        """A stop set during the delay ends the run after the current step"""
        ctl = _controller()
        ctl.load(PROGRAM)
        stop = threading.Event()
        results = ctl.run(delay=30, stop_event=stop, on_step=lambda r: stop.set())
        assert len(results) == 1
        assert ctl.machine.pc == 1

    def test_on_step_sees_every_result(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        seen = []
        ctl.run(on_step=seen.append)
        assert [r.index for r in seen] == [0, 1, 2]

    def test_run_when_idle(self):
        results = _controller().run()
        assert [r.outcome for r in results] == [StepOutcome.NO_PROGRAM]


class TestSnapshot:

    def test_is_read_only(self):
        ctl = _controller()
        snap = ctl.load(PROGRAM)
        with pytest.raises(TypeError):
            snap.registers['AX'] = 1

    def test_unaffected_by_later_steps(self):
        ctl = _controller()
        snap = ctl.load(PROGRAM)
        ctl.run()
        assert snap.registers['AX'] == 0
        assert snap.memory == ()

    def test_memory_at(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        ctl.step()
        snap = ctl.snapshot()
        assert snap.memory_at("10100").tag == "Opcode"
        with pytest.raises(KeyError):
            snap.memory_at("30010")

    def test_flow_and_history_text(self):
        ctl = _controller()
        ctl.load(PROGRAM)
        ctl.run()
        snap = ctl.snapshot()
        assert snap.flow_text().startswith("[00] MOV AX, 1234H\n")
        assert "[02] MOV [SI], AX" in snap.flow_text()
        assert "fetch: CS:IP 1000:0100" in snap.history_text()
        assert "data-reference: DS:SI 3000:0010" in snap.history_text()
        assert snap.flags == 0x0002
