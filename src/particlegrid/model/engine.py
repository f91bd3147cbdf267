"""
Particle Engine (State Object)
==============================
This module defines the owned state of one particle grid.

Why is this file needed?
------------------------
1. State Management: It holds the grid, the desired counts, the liquid level
   and the colors in one place, so several grids can coexist.
2. Decoupling: ``advance()`` performs one bounded reconciliation step and can
   be driven by any scheduler (Qt timer, worker thread, or a test loop).
3. Ordering: Every setter applies the visibility mask synchronously before
   any later ``advance()`` can observe the grid.

Classes:
    ParticleEngine: The grid state machine.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Union

import numpy as np

from particlegrid.config import EngineSettings
from particlegrid.model.grid import (
    GridGeometry, build_grid, active_count_for_height, apply_visibility_mask, count_species
)
from particlegrid.model.beaker import grid_rows_for_water_level, GRID_ROWS_MIN, GRID_ROWS_MAX
from particlegrid.model.particles import Slot, Species, SpeciesCounts, SpeciesColors
from particlegrid.model.reconciler import (
    TickResult, compute_diff, is_converged, reconcile_step, should_drain, drain
)

logger = logging.getLogger(__name__)

CountsInput = Union[SpeciesCounts, Mapping[str, Any], None]
RandomSource = Union[np.random.Generator, int, None]


class ParticleEngine:
    """
    Single-grid reconciliation engine.

    The host feeds geometry, liquid height, desired counts and colors; the
    engine keeps the grid consistent and reports observed counts through
    ``on_counts_change`` whenever they change.
    """

    def __init__(
            self,
            width: float,
            max_height: float,
            liquid_height: Optional[float] = None,
            desired: CountsInput = None,
            colors: Optional[SpeciesColors] = None,
            rng: RandomSource = None,
            settings: Optional[EngineSettings] = None,
            on_counts_change: Optional[Callable[[SpeciesCounts], None]] = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.colors = colors or SpeciesColors()
        self.rng = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)
        self.on_counts_change = on_counts_change

        self.desired = SpeciesCounts.normalized(desired)
        self.previous_desired = self.desired
        self._last_reported: Optional[SpeciesCounts] = None
        self._built = False

        self.geometry: GridGeometry
        self.grid: list[Slot] = []
        self.liquid_height: float = 0.0
        self.active_count: int = 0
        self.set_geometry(width, max_height, liquid_height)

    # ------------------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------------------

    def set_geometry(self, width: float, max_height: float, liquid_height: Optional[float] = None) -> None:
        """
        Replace the grid wholesale for new container dimensions.

        ``liquid_height`` defaults to the current level (or the full container
        on first build), clamped to the new ``max_height``.
        """
        self.geometry = GridGeometry.normalized(width, max_height, self.settings.particle_size)
        self.grid = build_grid(self.geometry, self.settings.water_color)
        if liquid_height is None:
            liquid_height = self.liquid_height if self._built else self.geometry.max_height
        self._apply_liquid_height(liquid_height)
        self._built = True
        self._report()

    def set_liquid_height(self, liquid_height: float) -> list[int]:
        """Move the liquid surface. Returns indices of slots reset to water."""
        reset = self._apply_liquid_height(liquid_height)
        self._report()
        return reset

    def set_water_level(
            self,
            water_level: float,
            level_min: float,
            level_max: float,
            rows_min: int = GRID_ROWS_MIN,
            rows_max: int = GRID_ROWS_MAX,
    ) -> list[int]:
        """
        Move the liquid surface from a host water level (e.g. a pour slider).

        The level is mapped onto whole particle rows and the surface is placed
        on the top of the last row, clamped to the container.
        """
        rows = grid_rows_for_water_level(water_level, level_min, level_max, rows_min, rows_max)
        logger.debug(f"Water level {water_level} -> {rows} rows.")
        return self.set_liquid_height(rows * self.settings.particle_size)

    def set_desired(self, desired: CountsInput) -> bool:
        """
        Set new target counts.

        Returns True when the change was a drain to empty, which is applied
        immediately as one bulk reset.
        """
        self.previous_desired = self.desired
        self.desired = SpeciesCounts.normalized(desired)
        if should_drain(self.desired, self.previous_desired):
            drain(self.grid, self.active_count, self.settings.water_color)
            self._report()
            return True
        return False

    def set_colors(self, colors: SpeciesColors) -> None:
        """Swap species colors and repaint the existing particles in place."""
        self.colors = colors
        for slot in self.grid:
            if slot.type is not Species.WATER:
                slot.color = colors.color_for(slot.type, self.settings.water_color)

    # ------------------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------------------

    def diff(self) -> dict[Species, int]:
        return compute_diff(self.desired, self.observed())

    def is_converged(self) -> bool:
        return is_converged(self.diff())

    def advance(self) -> TickResult:
        """Perform one tick (up to ``max_updates_per_tick`` mutations)."""
        result = reconcile_step(
            self.grid,
            self.active_count,
            self.desired,
            self.colors,
            self.rng,
            max_updates=self.settings.max_updates_per_tick,
            water_color=self.settings.water_color,
        )
        if result.applied:
            self._report()
        return result

    def settle(self, max_ticks: Optional[int] = None) -> list[TickResult]:
        """
        Call ``advance()`` until convergence or stall, synchronously.

        ``max_ticks`` bounds the loop for hosts that want a hard limit.
        """
        results: list[TickResult] = []
        while not self.is_converged():
            if max_ticks is not None and len(results) >= max_ticks:
                break
            result = self.advance()
            results.append(result)
            if not result.needs_more_ticks:
                break
        return results

    # ------------------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------------------

    def observed(self) -> SpeciesCounts:
        return count_species(self.grid, self.active_count)

    def is_active(self, slot: Slot) -> bool:
        return slot.index < self.active_count

    def active_slots(self) -> list[Slot]:
        return self.grid[:self.active_count]

    # ------------------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------------------

    def _apply_liquid_height(self, liquid_height: float) -> list[int]:
        self.liquid_height = self.geometry.clamp_liquid_height(liquid_height)
        self.active_count = active_count_for_height(self.geometry, self.liquid_height)
        return apply_visibility_mask(self.grid, self.active_count, self.settings.water_color)

    def _report(self) -> SpeciesCounts:
        counts = self.observed()
        if counts != self._last_reported:
            self._last_reported = counts
            if self.on_counts_change is not None:
                self.on_counts_change(counts)
        return counts
