"""
x86 Bus Simulator — Machine Configuration
==========================================

Register presets, bus width and run pacing. Everything the simulator
treats as "initial state" lives here as a named, versioned table so that
nothing downstream embeds magic register literals.

Presets:
  classic-v1   — the layout the classroom front end starts from:
                 CS=1000 SS=2000 DS=3000 ES=4000, IP=0100, SP=FFFE,
                 SI=0010 so that ``MOV [SI], AX`` lands at 30010H.
  zeroed-v1    — all segments at 0000, IP=0100 (COM-file style), useful
                 when teaching the physical address formula from scratch.

A config file is plain JSON:

    {
        "bus_width": 8,
        "preset": "classic-v1",
        "run_delay": 0.5
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Union

__all__ = [
    'BUS_WIDTHS', 'DEFAULT_BUS_WIDTH', 'DEFAULT_PRESET', 'DEFAULT_RUN_DELAY',
    'REGISTER_PRESETS', 'ConfigError', 'SimulatorConfig', 'check_bus_width', 'get_preset',
    'load_config',
]


class ConfigError(ValueError):
    """Raised on an invalid configuration value or file."""


# =============================================================================
#  BUS
# =============================================================================
BUS_WIDTHS = (8, 16)
DEFAULT_BUS_WIDTH = 16

# Seconds between steps in continuous run (the classroom UI used 900 ms)
DEFAULT_RUN_DELAY = 0.9


# =============================================================================
#  REGISTER PRESETS
#  Keys are "<name>-v<version>". Never edit a published version in place,
#  add a new one instead so saved sessions stay reproducible.
# =============================================================================
_PRESETS: Dict[str, Dict[str, int]] = {
    "classic-v1": {
        "AX": 0x0000, "BX": 0x0000, "CX": 0x0000, "DX": 0x0000,
        "SI": 0x0010, "DI": 0x0000, "BP": 0x0000, "SP": 0xFFFE,
        "CS": 0x1000, "SS": 0x2000, "DS": 0x3000, "ES": 0x4000,
        "IP": 0x0100, "FLAGS": 0x0002,
    },
    "zeroed-v1": {
        "AX": 0x0000, "BX": 0x0000, "CX": 0x0000, "DX": 0x0000,
        "SI": 0x0000, "DI": 0x0000, "BP": 0x0000, "SP": 0xFFFE,
        "CS": 0x0000, "SS": 0x0000, "DS": 0x0000, "ES": 0x0000,
        "IP": 0x0100, "FLAGS": 0x0002,
    },
}

REGISTER_PRESETS: Mapping[str, Mapping[str, int]] = MappingProxyType(
    {name: MappingProxyType(values) for name, values in _PRESETS.items()}
)

DEFAULT_PRESET = "classic-v1"


def get_preset(name: str) -> Mapping[str, int]:
    """Look up a register preset by name."""
    try:
        return REGISTER_PRESETS[name]
    except (KeyError, TypeError):
        known = ", ".join(sorted(REGISTER_PRESETS))
        raise ConfigError(f"Unknown register preset '{name}' (known: {known})") from None


def check_bus_width(width: int) -> int:
    """Validate a bus width, returning it as int."""
    if isinstance(width, bool) or width not in BUS_WIDTHS:
        raise ConfigError(f"Bus width must be 8 or 16, got {width!r}")
    return int(width)


@dataclass(frozen=True)
class SimulatorConfig:
    """Settings the controller reads at construction and reset."""
    bus_width: int = DEFAULT_BUS_WIDTH
    preset: str = DEFAULT_PRESET
    run_delay: float = DEFAULT_RUN_DELAY

    def __post_init__(self):
        check_bus_width(self.bus_width)
        get_preset(self.preset)
        if isinstance(self.run_delay, bool) or not isinstance(self.run_delay, (int, float)):
            raise ConfigError(f"run_delay must be a number of seconds, got {self.run_delay!r}")
        if self.run_delay < 0:
            raise ConfigError(f"run_delay must be >= 0, got {self.run_delay}")

    @property
    def registers(self) -> Mapping[str, int]:
        return get_preset(self.preset)


def load_config(path: Union[str, Path]) -> SimulatorConfig:
    """Read a JSON config file. Missing keys fall back to defaults."""
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding='utf-8'))
    except OSError as e:
        raise ConfigError(f"Cannot read config {p}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Malformed config {p}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config {p} must be a JSON object")

    unknown = set(raw) - {"bus_width", "preset", "run_delay"}
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    delay = raw.get("run_delay", DEFAULT_RUN_DELAY)
    if isinstance(delay, bool):
        raise ConfigError(f"run_delay must be a number of seconds, got {delay!r}")
    try:
        delay = float(delay)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"run_delay must be a number of seconds, got {delay!r}") from e

    return SimulatorConfig(
        bus_width=raw.get("bus_width", DEFAULT_BUS_WIDTH),
        preset=raw.get("preset", DEFAULT_PRESET),
        run_delay=delay,
    )
