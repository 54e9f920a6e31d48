# -- SPH Field Evaluator -- #

'''
Per-particle field evaluation for the thermally-coupled SPH fluid.

Given a freshly built spatial index over the state being evaluated,
computes density, pressure, the resulting acceleration and the rate
of temperature change of every particle. Work is split into passes
that run in a fixed order; each pass finishes for all particles
before the next begins (every density is written before any
pressure is read, and so on):

    1. DENSITY            density and near-density (self included)
    2. STATE_VARIABLES    pressure (EOS) and near-pressure
    3. EXTERNAL_FORCES    gravity
    4. PRESSURE_FORCES    symmetric pressure + near-pressure force
    5. VISCOSITY          pairwise velocity smoothing
    6. THERMAL_DIFFUSION  SPH Laplacian of temperature
    7. THERMOSTAT         coupling to an external heat source/sink

Passes 3-7 are gated by PhysicsTerms capability flags and dispatched
through a table keyed by FieldPass.

Every pass is vectorized over the list of neighbor pairs and
scatter-added into per-particle accumulators with np.add.at, so a
particle only ever receives into its own slot.

References:
-----------
Mueller et al. (2003) -- Particle-based fluid simulation for
    interactive applications
Clavet et al. (2005) -- Particle-based viscoelastic fluid simulation
Cleary & Monaghan (1999) -- Conduction modelling using SPH
'''

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np

from thermoFluid import constants as const
from thermoFluid.sph.protocols import SimulationConfig
from thermoFluid.sph.particles import ParticleSystem
from thermoFluid.sph.kernels import (
    SpikyPow2Kernel,
    SpikyPow3Kernel,
    Poly6Kernel,
    ViscosityLaplacianKernel,
)
from thermoFluid.sph.neighborSearch import SpatialHashIndex
from thermoFluid.sph.equationOfState import VanDerWaalsEquationOfState, nearPressure


######################################################################
# -- Pass Types -- #
######################################################################

class FieldPass(Enum):
    '''Field-evaluation passes, in execution order.'''

    DENSITY = 'density'
    STATE_VARIABLES = 'stateVariables'
    EXTERNAL_FORCES = 'externalForces'
    PRESSURE_FORCES = 'pressureForces'
    VISCOSITY = 'viscosity'
    THERMAL_DIFFUSION = 'thermalDiffusion'
    THERMOSTAT = 'thermostat'


PASS_ORDER: tuple[FieldPass, ...] = tuple(FieldPass)


def enabledPasses(config: SimulationConfig) -> tuple[FieldPass, ...]:
    '''
    Passes that run under the configuration's capability flags.

    Density and state variables always run; every other pass maps to
    one physical term.

    Parameters:
    -----------
    config : SimulationConfig
        Simulation configuration

    Returns:
    --------
    tuple[FieldPass, ...] : Enabled passes in execution order
    '''
    terms = config.terms
    gates = {
        FieldPass.DENSITY: True,
        FieldPass.STATE_VARIABLES: True,
        FieldPass.EXTERNAL_FORCES: terms.gravity,
        FieldPass.PRESSURE_FORCES: terms.pressure or terms.nearPressure,
        FieldPass.VISCOSITY: terms.viscosity,
        FieldPass.THERMAL_DIFFUSION: terms.thermalDiffusion,
        FieldPass.THERMOSTAT: terms.thermostat,
    }
    return tuple(p for p in PASS_ORDER if gates[p])


######################################################################
# -- Evaluation Records -- #
######################################################################

@dataclass
class FieldSample:
    '''
    Time derivatives produced by one evaluation.

    Parameters:
    -----------
    accelerations : np.ndarray
        dv/dt per particle [m/s^2], shape (N, 3)
    heatRates : np.ndarray
        dT/dt per particle [K/s], shape (N,)
    '''

    accelerations: np.ndarray
    heatRates: np.ndarray


@dataclass
class _PairGeometry:
    '''Neighbor pairs and their geometry, shared by every pass.'''

    iIdx: np.ndarray
    jIdx: np.ndarray
    distances: np.ndarray
    directions: np.ndarray
    distinct: np.ndarray


@dataclass
class _EvaluationContext:
    '''Inputs and accumulators of one evaluation.'''

    config: SimulationConfig
    positions: np.ndarray
    velocities: np.ndarray
    temperatures: np.ndarray
    pairs: _PairGeometry
    accelerations: np.ndarray
    heatRates: np.ndarray


######################################################################
# -- Field Evaluator -- #
######################################################################

class FieldEvaluator:
    '''
    Evaluates SPH fields and time derivatives for a particle state.

    The material constants come from `particles`; the state being
    evaluated (current or predicted) is passed to each call, and the
    derived fields (densities, pressures) are written back into
    `particles`.

    Parameters:
    -----------
    particles : ParticleSystem
        Particle system holding material constants and receiving
        the derived fields
    equationOfState : VanDerWaalsEquationOfState | None
        Pressure law (defaults to van der Waals with R = 8.3)
    '''

    def __init__(
        self,
        particles: ParticleSystem,
        equationOfState: VanDerWaalsEquationOfState | None = None,
    ) -> None:
        self._particles = particles
        self._eos = equationOfState or VanDerWaalsEquationOfState()

        self._densityKernel = SpikyPow2Kernel()
        self._nearDensityKernel = SpikyPow3Kernel()
        self._viscosityKernel = Poly6Kernel()
        self._laplacianKernel = ViscosityLaplacianKernel()

        self._dispatch: dict[FieldPass, Callable[[_EvaluationContext], None]] = {
            FieldPass.DENSITY: self._densityPass,
            FieldPass.STATE_VARIABLES: self._stateVariablesPass,
            FieldPass.EXTERNAL_FORCES: self._externalForcesPass,
            FieldPass.PRESSURE_FORCES: self._pressureForcesPass,
            FieldPass.VISCOSITY: self._viscosityPass,
            FieldPass.THERMAL_DIFFUSION: self._thermalDiffusionPass,
            FieldPass.THERMOSTAT: self._thermostatPass,
        }

    @property
    def particles(self) -> ParticleSystem:
        '''Particle system receiving the derived fields.'''
        return self._particles

    @property
    def equationOfState(self) -> VanDerWaalsEquationOfState:
        '''Pressure law in use.'''
        return self._eos

    def selfDensity(self, config: SimulationConfig) -> float:
        '''Density of an isolated particle, W(0, h) [1/m^3].'''
        return self._densityKernel.evaluate(0.0, config.smoothingRadius)

    ######################################################################
    # -- Public Entry Points -- #
    ######################################################################

    def evaluate(
        self,
        config: SimulationConfig,
        index: SpatialHashIndex,
        positions: np.ndarray,
        velocities: np.ndarray,
        temperatures: np.ndarray,
    ) -> FieldSample:
        '''
        Run every enabled pass and return the time derivatives.

        Parameters:
        -----------
        config : SimulationConfig
            Configuration of the current frame
        index : SpatialHashIndex
            Spatial index built over `positions`
        positions : np.ndarray
            Positions being evaluated [m], shape (N, 3)
        velocities : np.ndarray
            Velocities being evaluated [m/s], shape (N, 3)
        temperatures : np.ndarray
            Temperatures being evaluated [K], shape (N,)

        Returns:
        --------
        FieldSample : Accelerations and heat rates
        '''
        ctx = self._createContext(config, index, positions, velocities, temperatures)
        for fieldPass in enabledPasses(config):
            self._dispatch[fieldPass](ctx)
        return FieldSample(accelerations=ctx.accelerations, heatRates=ctx.heatRates)

    def evaluateDensities(
        self,
        config: SimulationConfig,
        index: SpatialHashIndex,
        positions: np.ndarray,
        temperatures: np.ndarray,
    ) -> None:
        '''
        Refresh densities and pressures only (passes 1-2).

        Used after the final combine so the exported densities match
        the final positions.
        '''
        velocities = np.zeros_like(positions)
        ctx = self._createContext(config, index, positions, velocities, temperatures)
        self._densityPass(ctx)
        self._stateVariablesPass(ctx)

    ######################################################################
    # -- Context -- #
    ######################################################################

    def _createContext(
        self,
        config: SimulationConfig,
        index: SpatialHashIndex,
        positions: np.ndarray,
        velocities: np.ndarray,
        temperatures: np.ndarray,
    ) -> _EvaluationContext:
        '''Gather neighbor pairs and allocate the accumulators.'''
        nParticles = len(positions)
        iIdx, jIdx = index.queryPairs(config.smoothingRadius)

        offsets = positions[jIdx] - positions[iIdx]
        distances = np.linalg.norm(offsets, axis=1)
        distinct = (iIdx != jIdx) & (distances > const.distanceEpsilon)

        safe = np.where(distinct, distances, 1.0)
        directions = np.where(distinct[:, np.newaxis], offsets / safe[:, np.newaxis], 0.0)

        return _EvaluationContext(
            config=config,
            positions=positions,
            velocities=velocities,
            temperatures=temperatures,
            pairs=_PairGeometry(
                iIdx=iIdx,
                jIdx=jIdx,
                distances=distances,
                directions=directions,
                distinct=distinct,
            ),
            accelerations=np.zeros((nParticles, 3)),
            heatRates=np.zeros(nParticles),
        )

    ######################################################################
    # -- Passes -- #
    ######################################################################

    def _densityPass(self, ctx: _EvaluationContext) -> None:
        '''
        rho_i = sum_j W2(|r_ij|),  rho_near_i = sum_j W3(|r_ij|)

        The sum includes j = i, so an isolated particle keeps its
        self-contribution W2(0) and no density is ever zero.
        '''
        p = self._particles
        h = ctx.config.smoothingRadius
        pairs = ctx.pairs

        densities = np.zeros(len(ctx.positions))
        nearDensities = np.zeros(len(ctx.positions))
        np.add.at(densities, pairs.iIdx, self._densityKernel.evaluateBatch(pairs.distances, h))
        np.add.at(nearDensities, pairs.iIdx, self._nearDensityKernel.evaluateBatch(pairs.distances, h))

        p.densities[:] = densities
        p.nearDensities[:] = nearDensities

    def _stateVariablesPass(self, ctx: _EvaluationContext) -> None:
        '''
        Pressure from the equation of state, near-pressure from the
        near-density.
        '''
        p = self._particles
        config = ctx.config
        terms = config.terms

        if terms.pressure:
            moles = p.molesPerParticle(config.particleVolume)
            if terms.vanDerWaals:
                cohesionA, covolumeB = p.cohesionA, p.covolumeB
            else:
                cohesionA = np.zeros_like(p.cohesionA)
                covolumeB = np.zeros_like(p.covolumeB)
            gauge = self._eos.gaugePressure(
                p.densities, ctx.temperatures, moles,
                cohesionA, covolumeB, config.targetDensity,
            )
            p.pressures[:] = config.pressureMultiplier * gauge + config.atmosphericPressure
        else:
            p.pressures[:] = 0.0

        if terms.nearPressure:
            p.nearPressures[:] = nearPressure(p.nearDensities, config.nearPressureMultiplier)
        else:
            p.nearPressures[:] = 0.0

    def _externalForcesPass(self, ctx: _EvaluationContext) -> None:
        '''Constant gravity along world y.'''
        ctx.accelerations += ctx.config.gravityVector

    def _pressureForcesPass(self, ctx: _EvaluationContext) -> None:
        '''
        Symmetric pressure and near-pressure acceleration.

        a_i += sum_j dir_ij * [ W2'(r) * (P_i + P_j)/2
                              + W3'(r) * (Pn_i + Pn_j)/2 ] / (rho_i * rho_j)

        dir_ij points from i to j and W' < 0, so positive pressure
        pushes i away from j. The pair term is antisymmetric in
        (i, j), which conserves momentum.
        '''
        p = self._particles
        h = ctx.config.smoothingRadius
        pairs = ctx.pairs
        i = pairs.iIdx[pairs.distinct]
        j = pairs.jIdx[pairs.distinct]
        if len(i) == 0:
            return
        dist = pairs.distances[pairs.distinct]
        dirs = pairs.directions[pairs.distinct]

        sharedPressure = 0.5 * (p.pressures[i] + p.pressures[j])
        sharedNearPressure = 0.5 * (p.nearPressures[i] + p.nearPressures[j])

        coeff = (
            self._densityKernel.derivativeBatch(dist, h) * sharedPressure
            + self._nearDensityKernel.derivativeBatch(dist, h) * sharedNearPressure
        ) / (p.densities[i] * p.densities[j])

        np.add.at(ctx.accelerations, i, coeff[:, np.newaxis] * dirs)

    def _viscosityPass(self, ctx: _EvaluationContext) -> None:
        '''
        a_i += s * sum_j mu_ij * (v_j - v_i) * Poly6(r)

        mu_ij is the mean of both particles' viscosity coefficients,
        keeping the pair term antisymmetric.
        '''
        p = self._particles
        h = ctx.config.smoothingRadius
        pairs = ctx.pairs
        i = pairs.iIdx[pairs.distinct]
        j = pairs.jIdx[pairs.distinct]
        if len(i) == 0:
            return
        dist = pairs.distances[pairs.distinct]

        mu = 0.5 * (p.viscosities[i] + p.viscosities[j])
        weight = ctx.config.viscosityStrength * mu * self._viscosityKernel.evaluateBatch(dist, h)
        dv = ctx.velocities[j] - ctx.velocities[i]

        np.add.at(ctx.accelerations, i, weight[:, np.newaxis] * dv)

    def _thermalDiffusionPass(self, ctx: _EvaluationContext) -> None:
        '''
        dT_i/dt += k_i / (rho_bulk_i * c_i) * sum_j (T_j - T_i) * lap_W(r) / rho_j
        '''
        p = self._particles
        h = ctx.config.smoothingRadius
        pairs = ctx.pairs
        i = pairs.iIdx[pairs.distinct]
        j = pairs.jIdx[pairs.distinct]
        if len(i) == 0:
            return
        dist = pairs.distances[pairs.distinct]

        laplacian = np.zeros(len(ctx.positions))
        dT = ctx.temperatures[j] - ctx.temperatures[i]
        np.add.at(laplacian, i, dT * self._laplacianKernel.evaluateBatch(dist, h) / p.densities[j])

        diffusivity = p.conductivities / (p.bulkDensities * p.capacities)
        ctx.heatRates += diffusivity * laplacian

    def _thermostatPass(self, ctx: _EvaluationContext) -> None:
        '''
        dT_i/dt += k_th * (T_th - T_i) / c_i   within the influence radius
        '''
        config = ctx.config
        p = self._particles

        offsets = ctx.positions - np.asarray(config.thermostatPosition, dtype=float)
        inside = np.sum(offsets * offsets, axis=1) < config.thermostatInfluenceRadius ** 2
        if not np.any(inside):
            return

        flux = config.thermostatConductivity * (
            config.thermostatTemperature - ctx.temperatures[inside]
        ) / p.capacities[inside]
        ctx.heatRates[inside] += flux
