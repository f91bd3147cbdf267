"""
Count Reconciler
================
Drives the observed species counts of the active window toward the desired
counts, one slot at a time.

Transition rules:
    - Adding an ion consumes a substance slot (ionization). When no substance
      slot is left, the ion is created directly from a water slot.
    - Adding substance always takes a water slot.
    - Removing any species turns one of its slots back into water.

Candidates are chosen uniformly at random from an injected
``numpy.random.Generator``. Diffs are recomputed against the live grid before
every single mutation, so consecutive mutations never overshoot.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Optional

import numpy as np

from particlegrid.config import MAX_UPDATES_PER_TICK, WATER_COLOR
from particlegrid.model.grid import count_species
from particlegrid.model.particles import Slot, Species, SpeciesCounts, SpeciesColors

logger = logging.getLogger(__name__)

# Attempt order within a micro-step; the first species that can move wins.
MUTATION_ORDER: tuple[Species, ...] = (Species.PRIMARY_ION, Species.SECONDARY_ION, Species.SUBSTANCE)
ION_SPECIES: frozenset[Species] = frozenset({Species.PRIMARY_ION, Species.SECONDARY_ION})


@dataclass(frozen=True)
class Mutation:
    """A single slot retype."""
    index: int
    before: Species
    after: Species


@dataclass
class TickResult:
    """Outcome of one bounded reconciliation step."""
    mutations: list[Mutation] = field(default_factory=list)
    converged: bool = False
    stalled: bool = False

    @property
    def applied(self) -> int:
        return len(self.mutations)

    @property
    def needs_more_ticks(self) -> bool:
        return not (self.converged or self.stalled)


def compute_diff(desired: SpeciesCounts, observed: SpeciesCounts) -> dict[Species, int]:
    """Desired minus observed, per non-water species."""
    return {species: desired.get(species) - observed.get(species) for species in MUTATION_ORDER}


def is_converged(diff: dict[Species, int]) -> bool:
    return all(value == 0 for value in diff.values())


def _indices_of(grid: list[Slot], active_count: int, species: Species) -> list[int]:
    return [slot.index for slot in grid[:active_count] if slot.type is species]


def find_candidates(grid: list[Slot], active_count: int, species: Species, diff: int) -> list[int]:
    """Active slot indices that may be retyped to move ``species`` by one toward its target."""
    if diff > 0:
        if species in ION_SPECIES:
            candidates = _indices_of(grid, active_count, Species.SUBSTANCE)
            if not candidates:
                # No precursor to ionize; create the ion straight from water.
                candidates = _indices_of(grid, active_count, Species.WATER)
            return candidates
        return _indices_of(grid, active_count, Species.WATER)
    if diff < 0:
        return _indices_of(grid, active_count, species)
    return []


def next_mutation(
        grid: list[Slot],
        active_count: int,
        desired: SpeciesCounts,
        colors: SpeciesColors,
        rng: np.random.Generator,
        water_color: str = WATER_COLOR,
) -> Optional[Mutation]:
    """
    Apply one mutation to ``grid`` in place.

    Returns None when every species is either on target or has no eligible
    candidate slot.
    """
    diff = compute_diff(desired, count_species(grid, active_count))
    for species in MUTATION_ORDER:
        delta = diff[species]
        if delta == 0:
            continue
        candidates = find_candidates(grid, active_count, species, delta)
        if not candidates:
            continue

        index = candidates[int(rng.integers(len(candidates)))]
        slot = grid[index]
        target = species if delta > 0 else Species.WATER
        mutation = Mutation(index=index, before=slot.type, after=target)
        slot.type = target
        slot.color = colors.color_for(target, water_color)
        logger.debug(f"Slot {index}: {mutation.before.value} -> {target.value}")
        return mutation
    return None


def reconcile_step(
        grid: list[Slot],
        active_count: int,
        desired: SpeciesCounts,
        colors: SpeciesColors,
        rng: np.random.Generator,
        max_updates: int = MAX_UPDATES_PER_TICK,
        water_color: str = WATER_COLOR,
) -> TickResult:
    """Run one tick: up to ``max_updates`` mutations, stopping early on convergence or stall."""
    result = TickResult()
    while result.applied < max_updates:
        if is_converged(compute_diff(desired, count_species(grid, active_count))):
            break
        mutation = next_mutation(grid, active_count, desired, colors, rng, water_color)
        if mutation is None:
            result.stalled = True
            logger.debug(f"Reconciliation stalled after {result.applied} mutations.")
            break
        result.mutations.append(mutation)

    result.converged = is_converged(compute_diff(desired, count_species(grid, active_count)))
    return result


def should_drain(desired: SpeciesCounts, previous: SpeciesCounts) -> bool:
    """True when the target has just dropped to empty."""
    return desired.total == 0 and previous.total > 0


def drain(grid: list[Slot], active_count: int, water_color: str = WATER_COLOR) -> int:
    """Reset every active slot to water in one step. Returns the number of slots that changed."""
    changed = 0
    for slot in grid[:active_count]:
        if slot.type is not Species.WATER:
            changed += 1
        slot.type = Species.WATER
        slot.color = water_color
    logger.info(f"Drained {changed} particles from the active window.")
    return changed
