# -- SPH Engine Package -- #

'''
Core thermal Smoothed Particle Hydrodynamics (SPH) engine.

Provides smoothing kernels, the spatial hash and its sort, the particle
system, the van der Waals equation of state, the field evaluator and
the RK4 integrator.
'''

from thermoFluid.sph.protocols import (
    PhysicsTerms,
    SimulationBounds,
    SimulationConfig,
    SimulationState,
)
from thermoFluid.sph.kernels import createKernel
from thermoFluid.sph.particles import ParticleSystem
from thermoFluid.sph.neighborSearch import SpatialHashIndex
from thermoFluid.sph.equationOfState import VanDerWaalsEquationOfState
from thermoFluid.sph.fieldEvaluator import FieldEvaluator, FieldPass
from thermoFluid.sph.rk4Integrator import Rk4Integrator, Rk4Stage, PositionUpdate
