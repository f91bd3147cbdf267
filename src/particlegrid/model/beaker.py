"""
Beaker level helpers.

Maps a host water level onto a number of particle rows, so a pour/drain
slider can be translated into grid rows.
"""
from __future__ import annotations

import math

GRID_ROWS_MIN: int = 7
GRID_ROWS_MAX: int = 17
# Fraction of a row that must be filled before the row counts as available
ROW_ROUNDING_THRESHOLD: float = 0.4


def model_level_for_water_level(water_level: float, level_min: float, level_max: float) -> float:
    """Fraction of the usable range the water level sits at, clamped to [0, 1]."""
    if level_max <= level_min:
        return 0.0
    return max(0.0, min(1.0, (water_level - level_min) / (level_max - level_min)))


def available_rows(rows_float: float) -> int:
    """Round a fractional row count up only once the last row is more than 40% full."""
    base_rows = math.floor(rows_float)
    fractional_part = rows_float - base_rows
    return math.ceil(rows_float) if fractional_part > ROW_ROUNDING_THRESHOLD else base_rows


def grid_rows_for_water_level(
        water_level: float,
        level_min: float,
        level_max: float,
        rows_min: int = GRID_ROWS_MIN,
        rows_max: int = GRID_ROWS_MAX,
) -> int:
    """Number of particle rows visible for a water level between ``level_min`` and ``level_max``."""
    normalized = model_level_for_water_level(water_level, level_min, level_max)
    rows_float = rows_min + (rows_max - rows_min) * normalized
    return max(rows_min, min(rows_max, available_rows(rows_float)))
