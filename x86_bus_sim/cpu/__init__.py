"""CPU model: registers, ALU, address formation, stack."""
