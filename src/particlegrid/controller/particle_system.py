"""
Tick Scheduler (Qt)
===================
This module binds a ``ParticleEngine`` to the Qt event loop.

Why is this file needed?
------------------------
1. Pacing: Reconciliation is spread over ticks of a single repeating QTimer,
   so particles change a few at a time instead of repainting at once.
2. Cancellation: Every input change stops the timer before re-evaluating,
   so at most one timer is armed and no tick ever sees a stale grid.
3. Signals: Renderers and counters subscribe to Qt signals instead of
   polling the engine.

Classes:
    ParticleSystemController: QObject owning the engine and its timer.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Signal

from particlegrid.config import EngineSettings
from particlegrid.model.engine import ParticleEngine, CountsInput, RandomSource
from particlegrid.model.particles import Slot, SpeciesCounts, SpeciesColors

logger = logging.getLogger(__name__)


class ParticleSystemController(QObject):
    """Drives a particle engine from a 100 ms (configurable) repeating timer."""
    # Signal: observed counts, emitted only when they change
    counts_changed = Signal(object)
    # Signal: slot types/colors or the active window changed (liquid move, tick, drain, rebuild)
    slots_changed = Signal()
    # Signal: a tick cycle ended (True = converged, False = stalled)
    settled = Signal(bool)

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
            parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._on_counts_change = on_counts_change
        self.tick_count = 0

        self.engine = ParticleEngine(
            width=width,
            max_height=max_height,
            liquid_height=liquid_height,
            desired=desired,
            colors=colors,
            rng=rng,
            settings=settings,
            on_counts_change=self._emit_counts,
        )

        # Reconciliation timer
        self._timer = QTimer(self)
        self._timer.setSingleShot(False)
        self._timer.setInterval(self.engine.settings.tick_interval_ms)
        self._timer.timeout.connect(self._on_tick)

        self._evaluate()

    # ------------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------------

    @property
    def slots(self) -> list[Slot]:
        return self.engine.grid

    @property
    def observed(self) -> SpeciesCounts:
        return self.engine.observed()

    @property
    def is_ticking(self) -> bool:
        return self._timer.isActive()

    def set_desired(self, desired: CountsInput) -> None:
        self._timer.stop()
        if self.engine.set_desired(desired):
            self.slots_changed.emit()
        self._evaluate()

    def set_liquid_height(self, liquid_height: float) -> None:
        self._move_surface(lambda: self.engine.set_liquid_height(liquid_height))

    def set_water_level(self, water_level: float, level_min: float, level_max: float) -> None:
        """Move the surface from a host water level; see ``ParticleEngine.set_water_level``."""
        self._move_surface(lambda: self.engine.set_water_level(water_level, level_min, level_max))

    def set_geometry(self, width: float, max_height: float, liquid_height: Optional[float] = None) -> None:
        """Cancel any pending tick, then rebuild the grid for the new container."""
        self._timer.stop()
        self.engine.set_geometry(width, max_height, liquid_height)
        self.slots_changed.emit()
        self._evaluate()

    def set_colors(self, colors: SpeciesColors) -> None:
        self.engine.set_colors(colors)
        self.slots_changed.emit()

    def stop(self) -> None:
        """Disarm the timer; already applied mutations are kept."""
        self._timer.stop()

    # ------------------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------------------

    def _move_surface(self, apply: Callable[[], list[int]]) -> None:
        """Cancel the pending tick and apply a liquid change; the wet/dry split counts as a slot change."""
        self._timer.stop()
        previous_active = self.engine.active_count
        reset = apply()
        if reset or self.engine.active_count != previous_active:
            self.slots_changed.emit()
        self._evaluate()

    def _evaluate(self) -> None:
        """Arm the timer if the grid has not reached the desired counts yet."""
        if self.engine.is_converged():
            self._timer.stop()
            return
        # start() restarts an active timer, so only one tick is ever pending
        self._timer.start()

    def _on_tick(self) -> None:
        self.tick_count += 1
        result = self.engine.advance()
        if result.applied:
            self.slots_changed.emit()
        if not result.needs_more_ticks:
            self._timer.stop()
            logger.debug(
                f"Tick cycle ended after tick {self.tick_count}: "
                f"{'converged' if result.converged else 'stalled'}."
            )
            self.settled.emit(result.converged)

    def _emit_counts(self, counts: SpeciesCounts) -> None:
        self.counts_changed.emit(counts)
        if self._on_counts_change is not None:
            self._on_counts_change(counts)
