"""
x86 Bus Simulator — Fetch Cycle

Places an assembled instruction at CS:IP and walks its bytes across the
bus:

  8-bit bus:  one transaction per byte
  16-bit bus: bytes taken in pairs from the start of the instruction;
              a pair is one word transaction at the pair's first address,
              a leftover last byte is a single-byte transaction

Every byte is also written to memory on its own, with its tag, so the
memory table shows e.g. ``10100H B8H Opcode``. IP moves past the
instruction once the cycle is done.
"""

from __future__ import annotations

import logging
from typing import List

from .transaction import BusLog, TransactionKind
from ..asm.assembler import AssembledInstruction
from ..cpu.address import AddressCalculation, AddressKind, physical_address
from ..cpu.regs import Registers
from ..mem.memory import Memory

log = logging.getLogger(__name__)


def fetch(assembled: AssembledInstruction, regs: Registers, memory: Memory,
          bus: BusLog, history: List[AddressCalculation], bus_width: int) -> AddressCalculation:
    """Run one fetch cycle. Returns the history entry it recorded."""
    cs, ip = regs.CS, regs.IP
    calc = AddressCalculation.compute(AddressKind.FETCH, cs, ip)
    history.append(calc)
    bus.note(calc.describe())

    encoded = assembled.encoded
    # IP wraps inside the code segment
    addrs = [physical_address(cs, (ip + i) & 0xFFFF) for i in range(len(encoded))]

    for addr, byte in zip(addrs, encoded):
        memory.write8(addr, byte.value, byte.tag)

    step = 1 if bus_width == 8 else 2
    for i in range(0, len(encoded), step):
        chunk = encoded[i:i + step]
        if len(chunk) == 2:
            lo, hi = chunk
            bus.transfer(TransactionKind.FETCH, addrs[i], (hi.value << 8) | lo.value, 2,
                         (lo.tag, hi.tag))
        else:
            bus.transfer(TransactionKind.FETCH, addrs[i], chunk[0].value, 1, (chunk[0].tag,))

    regs.IP = ip + len(encoded)
    bus.note(f"IP {ip:04X}H -> {regs.IP:04X}H (+{len(encoded)})")
    log.debug("fetched %s at %04X:%04X [%s]", assembled.instruction, cs, ip, assembled.hex())
    return calc
