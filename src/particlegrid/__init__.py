"""Particle-grid state reconciliation for beaker visualizations."""
from particlegrid.config import EngineSettings
from particlegrid.model import ParticleEngine, Species, Slot, SpeciesCounts, SpeciesColors
from particlegrid.controller import ParticleSystemController

__version__ = "0.1.0"
