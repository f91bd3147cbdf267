"""
Particle Data Types
===================
Value types shared by the grid builder, the reconciler and the controller.

Classes:
    Species: Tag held by every slot.
    Slot: One addressable grid cell.
    SpeciesCounts: Requested or observed amount of each non-water species.
    SpeciesColors: Render colors supplied by the host.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
import logging
import math
from typing import Any, Mapping, Union

from particlegrid.config import (
    WATER_COLOR, DEFAULT_SUBSTANCE_COLOR, DEFAULT_PRIMARY_COLOR, DEFAULT_SECONDARY_COLOR
)

logger = logging.getLogger(__name__)


class Species(str, Enum):
    """The type tag of a slot. Exactly one per slot."""
    WATER = "water"
    SUBSTANCE = "substance"
    PRIMARY_ION = "primaryIon"
    SECONDARY_ION = "secondaryIon"


@dataclass
class Slot:
    """
    A single grid cell.

    ``index`` is the fixed row-major position and never changes after the grid
    is built. Only ``type`` and ``color`` are mutated.
    """
    index: int
    x: float
    y: float
    type: Species = Species.WATER
    color: str = WATER_COLOR

    @property
    def is_water(self) -> bool:
        return self.type is Species.WATER


def _to_count(name: str, value: Any) -> int:
    """Coerce a requested amount into a non-negative integer."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric count for '{name}' ({value!r}) treated as 0.")
        return 0
    if not math.isfinite(number) or number < 0:
        logger.warning(f"Invalid count for '{name}' ({value!r}) treated as 0.")
        return 0
    return int(number)


@dataclass(frozen=True)
class SpeciesCounts:
    """Counts of the three non-water species, always taken over the active window."""
    substance: int = 0
    primary: int = 0
    secondary: int = 0

    @classmethod
    def normalized(cls, counts: Union[SpeciesCounts, Mapping[str, Any], None]) -> SpeciesCounts:
        """
        Build counts from host input, replacing negative, non-finite or
        non-numeric values by zero.
        """
        if counts is None:
            return cls()
        if isinstance(counts, SpeciesCounts):
            counts = asdict(counts)
        return cls(
            substance=_to_count("substance", counts.get("substance", 0)),
            primary=_to_count("primary", counts.get("primary", 0)),
            secondary=_to_count("secondary", counts.get("secondary", 0)),
        )

    @property
    def total(self) -> int:
        return self.substance + self.primary + self.secondary

    def get(self, species: Species) -> int:
        """Count for a species; water is not tracked and always returns 0."""
        if species is Species.SUBSTANCE:
            return self.substance
        if species is Species.PRIMARY_ION:
            return self.primary
        if species is Species.SECONDARY_ION:
            return self.secondary
        return 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class SpeciesColors:
    """Colors for the non-water species; water uses the engine's water color."""
    substance: str = DEFAULT_SUBSTANCE_COLOR
    primary: str = DEFAULT_PRIMARY_COLOR
    secondary: str = DEFAULT_SECONDARY_COLOR

    def color_for(self, species: Species, water_color: str = WATER_COLOR) -> str:
        if species is Species.SUBSTANCE:
            return self.substance
        if species is Species.PRIMARY_ION:
            return self.primary
        if species is Species.SECONDARY_ION:
            return self.secondary
        return water_color
