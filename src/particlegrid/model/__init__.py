"""
The MODEL layer contains pure data structures and the reconciliation logic.
It has NO knowledge of the event loop (Qt) or of rendering.
It deals with slots, species counts and the grid state machine.
"""
from particlegrid.model.particles import Species, Slot, SpeciesCounts, SpeciesColors
from particlegrid.model.beaker import grid_rows_for_water_level, model_level_for_water_level
from particlegrid.model.engine import ParticleEngine
