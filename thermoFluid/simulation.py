# -- Thermal SPH Simulation -- #

'''
Orchestrates the thermally-coupled SPH fluid and its isosurface.

Per step:
    1. RK4 integration (four field evaluations, each on a freshly
       rebuilt spatial hash)
    2. Density/state refresh on the final positions
    3. Lattice sampling of density and temperature
    4. Marching Cubes extraction at the isovalue
    5. Step-completed notification

Per frame, `runFrame` derives the sub-step
frameTime / iterationsPerFrame * timeScale and runs that many steps.

The simulation owns the persistent particle state (positions,
velocities, temperatures) and keeps an untouched copy of the spawn
data for `reset`.
'''

from __future__ import annotations

import math
from dataclasses import replace
from typing import Callable

from thermoFluid import constants as const
from thermoFluid.sph.protocols import SimulationBounds, SimulationConfig, SimulationState
from thermoFluid.sph.particles import ParticleSystem
from thermoFluid.sph.neighborSearch import SpatialHashIndex
from thermoFluid.sph.equationOfState import VanDerWaalsEquationOfState
from thermoFluid.sph.fieldEvaluator import FieldEvaluator
from thermoFluid.sph.rk4Integrator import Rk4Integrator
from thermoFluid.surface.lattice import GridLattice
from thermoFluid.surface.scalarField import LatticeSample, ScalarFieldSampler
from thermoFluid.surface.marchingCubes import MarchingCubesExtractor, SurfaceMesh


StepListener = Callable[[SimulationState], None]


class ThermoFluidSimulation:
    '''
    Thermal SPH fluid with per-step isosurface reconstruction.

    Parameters:
    -----------
    config : SimulationConfig
        Simulation configuration
    spawnData : ParticleSystem
        Initial particle state; copied, never modified
    equationOfState : VanDerWaalsEquationOfState | None
        Pressure law (defaults to van der Waals with R = 8.3)

    Raises:
    -------
    ValueError : If the particle buffers are inconsistent, the particle
        count is zero or exceeds `config.maxParticles`, or the
        configured sub-step is outside the RK4 stability region of the
        thermostat relaxation
    '''

    def __init__(
        self,
        config: SimulationConfig,
        spawnData: ParticleSystem,
        equationOfState: VanDerWaalsEquationOfState | None = None,
    ) -> None:
        spawnData.validate()
        nParticles = spawnData.nParticles
        if nParticles == 0:
            raise ValueError('Simulation needs at least one particle')
        if nParticles > config.maxParticles:
            raise ValueError(
                f'{nParticles} particles exceed capacity {config.maxParticles}'
            )
        if config.hashTableSize is not None and config.hashTableSize < nParticles:
            raise ValueError(
                f'hashTableSize {config.hashTableSize} is smaller than the '
                f'particle count {nParticles}'
            )

        self._config = config
        self._spawnData = spawnData.copy()
        self._particles = spawnData.copy()
        self._checkStepSize(config.subStepSize)

        self._index = SpatialHashIndex(config.smoothingRadius, config.hashTableSize)
        self._evaluator = FieldEvaluator(self._particles, equationOfState)
        self._integrator = Rk4Integrator(self._particles, self._evaluator, self._index)

        self._lattice = GridLattice(config.latticeResolution, config.effectiveLatticeBounds)
        self._sampler = ScalarFieldSampler(
            self._lattice, config.smoothingRadius, config.ambientTemperature,
        )
        self._extractor = MarchingCubesExtractor(self._lattice)

        self._listeners: list[StepListener] = []
        self._inStep = False

        self._time: float = 0.0
        self._step: int = 0
        self._dt: float = 0.0
        self._nonFiniteCount: int = 0
        self._latticeSample: LatticeSample | None = None
        self._surface: SurfaceMesh | None = None

        self._refreshOutputs()

    ######################################################################
    # -- Control -- #
    ######################################################################

    def reset(self) -> None:
        '''
        Restore every buffer from the stored spawn data.

        Deterministic: two resets leave bit-identical particle,
        lattice and triangle buffers.

        Raises:
        -------
        RuntimeError : If called while a step is running
        '''
        if self._inStep:
            raise RuntimeError('Cannot reset the simulation during a step')

        self._particles.restoreFrom(self._spawnData)
        self._integrator.clearScratch()
        self._time = 0.0
        self._step = 0
        self._dt = 0.0
        self._nonFiniteCount = 0
        self._refreshOutputs()

    def setBounds(self, bounds: SimulationBounds) -> None:
        '''Replace the simulation box used for collisions from the next step.'''
        self._config = replace(self._config, bounds=bounds)

    def addStepListener(self, listener: StepListener) -> None:
        '''Register a callback invoked with the state after every step.'''
        self._listeners.append(listener)

    def removeStepListener(self, listener: StepListener) -> None:
        '''Unregister a previously added callback.'''
        self._listeners.remove(listener)

    ######################################################################
    # -- Time Stepping -- #
    ######################################################################

    def step(self, dt: float | None = None) -> SimulationState:
        '''
        Advance one RK4 step and rebuild the isosurface.

        Parameters:
        -----------
        dt : float | None
            Step size [s]; defaults to the configured sub-step

        Returns:
        --------
        SimulationState : Simulation state after the step

        Raises:
        -------
        ValueError : If the step size is negative, non-finite or unstable
            for the thermostat relaxation
        '''
        h = self._config.subStepSize if dt is None else float(dt)
        if not math.isfinite(h) or h < 0.0:
            raise ValueError(f'Step size must be finite and non-negative, got {h}')
        self._checkStepSize(h)
        if self._inStep:
            raise RuntimeError('A step is already running')

        self._inStep = True
        try:
            self._nonFiniteCount = self._integrator.step(self._config, h)
            self._refreshOutputs()
            self._time += h
            self._step += 1
            self._dt = h
        finally:
            self._inStep = False

        state = self.currentState
        for listener in list(self._listeners):
            listener(state)
        return state

    def runFrame(self, frameTime: float | None = None) -> SimulationState:
        '''
        Advance one frame of `iterationsPerFrame` sub-steps.

        Parameters:
        -----------
        frameTime : float | None
            Frame duration [s]; defaults to `config.frameTime`

        Returns:
        --------
        SimulationState : Simulation state after the last sub-step
        '''
        frame = self._config.frameTime if frameTime is None else frameTime
        h = self._config.stepSizeFor(frame)
        self._checkStepSize(h)

        state = self.currentState
        for _ in range(self._config.iterationsPerFrame):
            state = self.step(h)
        return state

    def _checkStepSize(self, h: float) -> None:
        '''
        Reject step sizes for which RK4 amplifies the thermostat relaxation.

        The thermostat drives dT/dt = -(k / c)(T - T_th), so an explicit
        step is bounded only while (k / c_min) * h stays below the RK4
        real-axis limit.

        Raises:
        -------
        ValueError : If the stiffest particle would diverge
        '''
        config = self._config
        if not config.terms.thermostat or config.thermostatConductivity <= 0.0:
            return
        rate = config.thermostatConductivity / float(self._particles.capacities.min())
        if rate * h > const.rk4StabilityLimit:
            raise ValueError(
                f'Step size {h:.3e} s is unstable for the thermostat relaxation '
                f'(rate {rate:.3e} 1/s); use at most '
                f'{const.rk4StabilityLimit / rate:.3e} s per step'
            )

    def _refreshOutputs(self) -> None:
        '''Densities, lattice fields and isosurface for the current positions.'''
        p = self._particles
        config = self._config

        self._index.build(p.positions)
        self._evaluator.evaluateDensities(config, self._index, p.positions, p.temperatures)

        self._latticeSample = self._sampler.sample(self._index, p.positions, p.temperatures)
        self._surface = self._extractor.extract(
            self._latticeSample.densities,
            self._latticeSample.temperatures,
            config.isoDensity,
        )

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def currentState(self) -> SimulationState:
        '''Current simulation state snapshot.'''
        p = self._particles
        return SimulationState(
            time=self._time,
            step=self._step,
            dt=self._dt,
            kineticEnergy=p.kineticEnergy(),
            momentum=p.momentum(),
            meanTemperature=p.meanTemperature(),
            maxVelocity=p.maxSpeed(),
            minDensity=p.minDensity(),
            nTriangles=self._surface.nTriangles if self._surface is not None else 0,
            nonFiniteCount=self._nonFiniteCount,
        )

    @property
    def particles(self) -> ParticleSystem:
        '''Access the particle system.'''
        return self._particles

    @property
    def spawnData(self) -> ParticleSystem:
        '''Stored initial state (read-only by convention).'''
        return self._spawnData

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def lattice(self) -> GridLattice:
        return self._lattice

    @property
    def latticeSample(self) -> LatticeSample:
        '''Density and temperature on the lattice after the last step.'''
        return self._latticeSample

    @property
    def surface(self) -> SurfaceMesh:
        '''Isosurface after the last step.'''
        return self._surface

    @property
    def selfDensity(self) -> float:
        '''Density of an isolated particle [1/m^3].'''
        return self._evaluator.selfDensity(self._config)

    @property
    def time(self) -> float:
        '''Current simulation time [s].'''
        return self._time

    @property
    def stepCount(self) -> int:
        '''Number of completed steps.'''
        return self._step

    @property
    def isStepping(self) -> bool:
        '''True while a step is running.'''
        return self._inStep

