"""
Configuration & Constants
=========================
This module serves as the central registry for the engine's global constants.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic numbers (particle size, tick cadence, colors)
   from being scattered throughout the model and controller layers.
2. Injection: ``EngineSettings`` bundles the constants into one object that
   hosts and tests can override without touching module globals.

Exports:
    PARTICLE_SIZE (float): Diameter of one grid slot in layout units.
    TICK_INTERVAL_MS (int): Reconciliation cadence of the scheduler.
    MAX_UPDATES_PER_TICK (int): Slot mutations allowed per tick.
    WATER_COLOR (str): Render color of an empty (water) slot.
"""
from __future__ import annotations

from dataclasses import dataclass

# Grid geometry
PARTICLE_SIZE: float = 14.3  # 272 / 19 cols = ~14.31
PARTICLE_RADIUS: float = 6.0

# Scheduler
TICK_INTERVAL_MS: int = 100
MAX_UPDATES_PER_TICK: int = 2

# Palette
WATER_COLOR: str = "#E0F2FE"
DEFAULT_SUBSTANCE_COLOR: str = "#5C8660"  # HCl
DEFAULT_PRIMARY_COLOR: str = "#F89880"  # H+
DEFAULT_SECONDARY_COLOR: str = "#614066"  # Cl-


@dataclass(frozen=True)
class EngineSettings:
    """Tunable engine parameters. Defaults mirror the module constants."""
    particle_size: float = PARTICLE_SIZE
    tick_interval_ms: int = TICK_INTERVAL_MS
    max_updates_per_tick: int = MAX_UPDATES_PER_TICK
    water_color: str = WATER_COLOR

    def __post_init__(self) -> None:
        if not self.particle_size > 0:
            raise ValueError(f"particle_size must be positive, got {self.particle_size}.")
        if self.tick_interval_ms < 0:
            raise ValueError(f"tick_interval_ms must be non-negative, got {self.tick_interval_ms}.")
        if self.max_updates_per_tick < 1:
            raise ValueError(f"max_updates_per_tick must be at least 1, got {self.max_updates_per_tick}.")
