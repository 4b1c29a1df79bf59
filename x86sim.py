#!/usr/bin/env python3
"""
x86sim — 8086 bus-cycle simulator CLI

Usage:
    python x86sim.py <program.asm> [--bus-width 8|16] [--preset classic-v1|zeroed-v1]
                                   [--config sim.json] [--delay 0.5]
                                   [--regs] [--memory] [--log-dir logs] [-v]

Runs the program one line at a time and prints what each step put on the
bus: the address calculation, every address/data phase and the register
changes. ``--regs`` and ``--memory`` add the final register file and the
annotated memory table.

Examples:
    python x86sim.py demo.asm --bus-width 8 --memory
    python x86sim.py demo.asm --preset zeroed-v1 --regs
    python x86sim.py demo.asm --delay 0.9          # classroom pacing
"""

import argparse
import logging
import os
import signal
import sys
import threading

# Allow running from project root or as module
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from x86_bus_sim import __version__
from x86_bus_sim.config import (
    BUS_WIDTHS, REGISTER_PRESETS, ConfigError, SimulatorConfig, load_config,
)
from x86_bus_sim.controller import EmptyProgramError, ExecutionController, StepOutcome
from x86_bus_sim.cpu.regs import REGISTER_NAMES
from x86_bus_sim.log_setup import setup_logging

console = Console()


def register_table(snapshot) -> Table:
    table = Table(title="Registers")
    table.add_column("Reg", style="cyan")
    table.add_column("Value", justify="right")
    for name in REGISTER_NAMES:
        table.add_row(name, f"{snapshot.registers[name]:04X}H")
    return table


def memory_table(snapshot) -> Table:
    table = Table(title="Memory")
    table.add_column("Address", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Description")
    for row in snapshot.memory:
        table.add_row(f"{row.address}H", f"{row.value:02X}H", row.tag)
    return table


def build_config(args) -> SimulatorConfig:
    """Config file first, then command-line overrides."""
    config = load_config(args.config) if args.config else SimulatorConfig()
    return SimulatorConfig(
        bus_width=args.bus_width if args.bus_width is not None else config.bus_width,
        preset=args.preset or config.preset,
        run_delay=args.delay if args.delay is not None else (config.run_delay if args.config else 0.0),
    )


def print_step(result):
    if result.outcome is StepOutcome.EXECUTED:
        console.print(f"[bold]{escape(f'[{result.index:02X}] {result.instruction}')}[/bold]")
        console.print(result.log, markup=False, highlight=False)
        console.print()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="x86sim",
        description="8086 fetch/execute bus-cycle simulator",
        epilog="Presets: " + ", ".join(REGISTER_PRESETS.keys()),
    )
    parser.add_argument("program", help="Program text file (one instruction per line)")
    parser.add_argument("--bus-width", type=int, choices=BUS_WIDTHS, default=None,
                        help="Data bus width in bits (default: 16, or from --config)")
    parser.add_argument("--preset", default=None, choices=list(REGISTER_PRESETS.keys()),
                        help="Initial register preset (default: classic-v1)")
    parser.add_argument("--config", default=None, help="JSON config file")
    parser.add_argument("--delay", type=float, default=None,
                        help="Seconds between steps (default: 0, or from --config)")
    parser.add_argument("--regs", action="store_true", help="Print final registers")
    parser.add_argument("--memory", action="store_true", help="Print final memory table")
    parser.add_argument("--log-dir", default=None, help="Write a DEBUG log file here")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show INFO/DEBUG log messages on the console")
    parser.add_argument("--version", action="version", version=f"x86sim {__version__}")

    args = parser.parse_args(argv)

    setup_logging(console_level=logging.DEBUG if args.verbose else logging.WARNING,
                  log_dir=args.log_dir)

    try:
        with open(args.program, "r", encoding="utf-8") as f:
            source = f.read()
    except FileNotFoundError:
        print(f"Error: File not found: {args.program}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error reading {args.program}: {e}", file=sys.stderr)
        return 1

    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    controller = ExecutionController(config)
    try:
        controller.load(source)
    except EmptyProgramError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # Ctrl-C stops between steps instead of mid-step
    stop = threading.Event()
    if threading.current_thread() is threading.main_thread():
        previous = signal.signal(signal.SIGINT, lambda signum, frame: stop.set())
        try:
            results = controller.run(stop_event=stop, on_step=print_step)
        finally:
            signal.signal(signal.SIGINT, previous)
    else:
        # signal handlers can only be installed from the main thread
        results = controller.run(stop_event=stop, on_step=print_step)

    snapshot = controller.snapshot()
    if args.regs:
        console.print(register_table(snapshot))
    if args.memory:
        console.print(memory_table(snapshot))

    last = results[-1] if results else None
    if last is not None and last.outcome is StepOutcome.PARSE_ERROR:
        print(f"Parse error: {last.error}", file=sys.stderr)
        return 1
    if stop.is_set():
        print(f"Stopped after {len(results)} steps", file=sys.stderr)
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
