# -- thermoFluid Package -- #

'''
Thermally-coupled fluid simulation using Smoothed Particle
Hydrodynamics (SPH) with a van der Waals equation of state, RK4 time
integration and Marching Cubes isosurface extraction.
'''

__version__ = '0.1.0'

from thermoFluid.sph.protocols import SimulationConfig, SimulationBounds, PhysicsTerms, SimulationState
from thermoFluid.scenarios.spawner import SpawnConfig, createSpawnData
from thermoFluid.simulation import ThermoFluidSimulation
from thermoFluid.runner import ThermoFluidRunner
