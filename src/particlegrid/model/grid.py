"""
Grid Builder, Visibility Mask and Reporter.

All functions here are pure with respect to geometry: the same inputs always
produce the same grid. A geometry change is applied by building a new grid,
never by resizing an existing one.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math

import numpy as np

from particlegrid.config import PARTICLE_SIZE, WATER_COLOR
from particlegrid.model.particles import Slot, Species, SpeciesCounts

logger = logging.getLogger(__name__)


def _as_float(name: str, value) -> float:
    """Coerce host input to a finite float; anything else becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric {name} ({value!r}) treated as 0.")
        return 0.0
    if not math.isfinite(number):
        logger.warning(f"Non-finite {name} ({value!r}) treated as 0.")
        return 0.0
    return number


def _non_negative(name: str, value) -> float:
    number = _as_float(name, value)
    if number < 0:
        logger.warning(f"Negative {name} ({value!r}) treated as 0.")
        return 0.0
    return number


@dataclass(frozen=True)
class GridGeometry:
    """Static container dimensions the grid is laid out for."""
    width: float
    max_height: float
    particle_size: float = PARTICLE_SIZE

    @classmethod
    def normalized(cls, width: float, max_height: float, particle_size: float = PARTICLE_SIZE) -> GridGeometry:
        return cls(
            width=_non_negative("width", width),
            max_height=_non_negative("max_height", max_height),
            particle_size=particle_size,
        )

    @property
    def cols(self) -> int:
        return math.floor(self.width / self.particle_size)

    @property
    def rows(self) -> int:
        return math.ceil(self.max_height / self.particle_size)

    @property
    def offset_x(self) -> float:
        """Horizontal margin that centers the columns inside the container."""
        return (self.width - self.cols * self.particle_size) / 2

    @property
    def slot_count(self) -> int:
        return self.cols * self.rows

    def clamp_liquid_height(self, liquid_height: float) -> float:
        """Clamp a liquid height to [0, max_height]; non-numeric or non-finite values become 0."""
        liquid_height = _as_float("liquid height", liquid_height)
        clamped = min(max(liquid_height, 0.0), self.max_height)
        if clamped != liquid_height:
            logger.debug(f"Liquid height {liquid_height} clamped to {clamped}.")
        return clamped


def build_grid(geometry: GridGeometry, water_color: str = WATER_COLOR) -> list[Slot]:
    """
    Lay out ``cols * rows`` water slots in row-major order.

    Slot centers sit half a particle in from the cell corner; columns are
    centered horizontally with ``offset_x``.
    """
    size = geometry.particle_size
    cols = geometry.cols
    if geometry.slot_count == 0:
        logger.info(f"Grid for {geometry.width}x{geometry.max_height} is empty.")
        return []

    indices = np.arange(geometry.slot_count)
    rows, columns = np.divmod(indices, cols)
    xs = geometry.offset_x + columns * size + size / 2
    ys = rows * size + size / 2

    grid = [
        Slot(index=int(i), x=float(x), y=float(y), type=Species.WATER, color=water_color)
        for i, x, y in zip(indices, xs, ys)
    ]
    logger.info(f"Built grid {cols}x{geometry.rows} ({len(grid)} slots).")
    return grid


def active_count_for_height(geometry: GridGeometry, liquid_height: float) -> int:
    """Number of leading slots inside the liquid: every row the liquid touches."""
    # rounding drops float noise so a height of exactly n rows stays n rows
    visible_rows = math.ceil(round(liquid_height / geometry.particle_size, 9))
    return min(visible_rows * geometry.cols, geometry.slot_count)


def apply_visibility_mask(grid: list[Slot], active_count: int, water_color: str = WATER_COLOR) -> list[int]:
    """
    Force every slot outside the active window back to water.

    Runs synchronously and is idempotent. Returns the indices that were reset.
    """
    reset: list[int] = []
    for slot in grid[active_count:]:
        if slot.type is not Species.WATER:
            slot.type = Species.WATER
            slot.color = water_color
            reset.append(slot.index)
    if reset:
        logger.debug(f"Visibility mask reset {len(reset)} slots above index {active_count}.")
    return reset


def count_species(grid: list[Slot], active_count: int) -> SpeciesCounts:
    """Tally non-water species over the active window."""
    substance = primary = secondary = 0
    for slot in grid[:active_count]:
        if slot.type is Species.SUBSTANCE:
            substance += 1
        elif slot.type is Species.PRIMARY_ION:
            primary += 1
        elif slot.type is Species.SECONDARY_ION:
            secondary += 1
    return SpeciesCounts(substance=substance, primary=primary, secondary=secondary)
