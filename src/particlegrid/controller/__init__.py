"""
The CONTROLLER layer binds the pure model to the Qt event loop.
"""
from particlegrid.controller.particle_system import ParticleSystemController
