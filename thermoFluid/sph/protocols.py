# -- Thermal SPH Simulation Protocols -- #

'''
Configuration records, state snapshots and solver protocol for the
thermally-coupled SPH simulation.

SimulationConfig is immutable: it is built once (from code, presets or
JSON) and passed explicitly into every pass, so no pass reads mutable
global kernel parameters.
'''

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Protocol, TYPE_CHECKING

import numpy as np

from thermoFluid import constants as const

if TYPE_CHECKING:
    from thermoFluid.sph.particles import ParticleSystem


######################################################################
# -- Physics Term Flags -- #
######################################################################

@dataclass(frozen=True)
class PhysicsTerms:
    '''
    Capability flags selecting which physical terms are evaluated.

    Every term is an independent field-evaluation pass; disabling one
    skips its pass entirely.

    Parameters:
    -----------
    gravity : bool
        Constant downward acceleration
    pressure : bool
        Equation-of-state pressure force
    vanDerWaals : bool
        Real-gas correction; when False the EOS reduces to an ideal gas
    nearPressure : bool
        Short-range anti-clumping pressure
    viscosity : bool
        Pairwise velocity smoothing
    thermalDiffusion : bool
        Heat conduction between particles
    thermostat : bool
        External heat source/sink coupling
    boundaryCollisions : bool
        Reflect particles at the faces of the simulation box
    '''

    gravity: bool = True
    pressure: bool = True
    vanDerWaals: bool = True
    nearPressure: bool = True
    viscosity: bool = True
    thermalDiffusion: bool = True
    thermostat: bool = True
    boundaryCollisions: bool = True

    @classmethod
    def fromDict(cls, data: dict) -> PhysicsTerms:
        '''Build flags from a mapping, ignoring unknown names.'''
        known = {k: bool(v) for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


######################################################################
# -- Simulation Bounds -- #
######################################################################

@dataclass(frozen=True)
class SimulationBounds:
    '''
    Axis-aligned simulation box given by its centre and size.

    Supplied per frame by the scene; maps world coordinates to the
    box's local frame, where the box is the unit cube [-0.5, 0.5]^3.

    Parameters:
    -----------
    centre : tuple[float, float, float]
        Box centre in world space [m]
    size : tuple[float, float, float]
        Box edge lengths in world space [m]
    '''

    centre: tuple[float, float, float] = (0.0, 0.0, 0.0)
    size: tuple[float, float, float] = (4.0, 4.0, 4.0)

    def __post_init__(self) -> None:
        if len(self.centre) != 3 or len(self.size) != 3:
            raise ValueError('Bounds centre and size must have 3 components')
        if min(self.size) <= 0.0:
            raise ValueError(f'Bounds size must be positive, got {self.size}')

    @property
    def centreArray(self) -> np.ndarray:
        '''Centre as an array, shape (3,).'''
        return np.asarray(self.centre, dtype=float)

    @property
    def sizeArray(self) -> np.ndarray:
        '''Size as an array, shape (3,).'''
        return np.asarray(self.size, dtype=float)

    @property
    def minCorner(self) -> np.ndarray:
        '''Lower corner [m].'''
        return self.centreArray - 0.5 * self.sizeArray

    @property
    def maxCorner(self) -> np.ndarray:
        '''Upper corner [m].'''
        return self.centreArray + 0.5 * self.sizeArray

    def worldToLocal(self, points: np.ndarray) -> np.ndarray:
        '''Map world points into the unit-cube frame.'''
        return (points - self.centreArray) / self.sizeArray

    def localToWorld(self, points: np.ndarray) -> np.ndarray:
        '''Map unit-cube points back to world space.'''
        return points * self.sizeArray + self.centreArray

    def resolveCollisions(
        self,
        positions: np.ndarray,
        velocities: np.ndarray,
        collisionDamping: float,
    ) -> None:
        '''
        Keep particles inside the box, in place.

        A particle past a face is moved back onto it and the velocity
        component normal to that face is reflected and scaled by
        `collisionDamping`.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions [m], shape (N, 3), modified in place
        velocities : np.ndarray
            Particle velocities [m/s], shape (N, 3), modified in place
        collisionDamping : float
            Fraction of normal speed kept after reflection (0-1)
        '''
        local = self.worldToLocal(positions)
        localVel = velocities / self.sizeArray

        outside = np.abs(local) >= 0.5
        if not np.any(outside):
            return

        local = np.where(outside, 0.5 * np.sign(local), local)
        localVel = np.where(outside, -collisionDamping * localVel, localVel)

        positions[:] = self.localToWorld(local)
        velocities[:] = localVel * self.sizeArray

    @classmethod
    def fromDict(cls, data: dict) -> SimulationBounds:
        '''Build bounds from a {'centre': [...], 'size': [...]} mapping.'''
        return cls(
            centre=tuple(data.get('centre', (0.0, 0.0, 0.0))),
            size=tuple(data.get('size', (4.0, 4.0, 4.0))),
        )


######################################################################
# -- Simulation Configuration -- #
######################################################################

_POSITION_UPDATES = ('semiImplicit', 'rk4')


@dataclass(frozen=True)
class SimulationConfig:
    '''
    Configuration for a thermal SPH simulation.

    Immutable; validated at construction so misconfiguration fails
    before any step runs.

    Parameters:
    -----------
    smoothingRadius : float
        Kernel support radius and hash cell size [m]
    gravity : float
        Acceleration along world y [m/s^2]
    collisionDamping : float
        Normal speed fraction kept on a boundary hit (0-1)
    targetDensity : float
        Rest density at which the gauge pressure vanishes [1/m^3]
    pressureMultiplier : float
        Scale applied to the equation-of-state gauge pressure
    nearPressureMultiplier : float
        Linear stiffness of the near-pressure term
    viscosityStrength : float
        Scale applied to the pairwise viscosity term
    particleRadius : float
        Radius of the fluid sphere one particle represents [m]
    atmosphericPressure : float
        Reference pressure added to every particle after scaling [Pa]
    thermostatPosition : tuple[float, float, float]
        Heat source/sink location [m]
    thermostatTemperature : float
        Heat source/sink temperature [K]
    thermostatInfluenceRadius : float
        Distance within which particles couple to the thermostat [m]
    thermostatConductivity : float
        Coupling strength of the thermostat
    ambientTemperature : float
        Temperature reported where no particle covers a lattice vertex [K]
    isoDensity : float
        Isovalue of the extracted surface [1/m^3]
    latticeResolution : tuple[int, int, int]
        Lattice vertex counts (Nx, Ny, Nz)
    latticeBounds : SimulationBounds | None
        Box covered by the lattice; defaults to `bounds`
    bounds : SimulationBounds
        Initial simulation box (may be replaced per frame)
    frameTime : float
        Frame duration used by fixed-step frames [s]
    iterationsPerFrame : int
        RK4 steps per frame
    timeScale : float
        Multiplier applied to the frame time
    positionUpdate : str
        'semiImplicit' (x += h * v_new) or 'rk4' (weighted stage velocities)
    hashTableSize : int | None
        Hash table size; defaults to the particle count
    terms : PhysicsTerms
        Which physical terms are active
    maxParticles : int
        Capacity limit on the particle count
    maxLatticeVertices : int
        Capacity limit on Nx*Ny*Nz
    '''

    smoothingRadius: float = const.defaultSmoothingRadius
    gravity: float = const.defaultGravity
    collisionDamping: float = const.defaultCollisionDamping
    targetDensity: float = 630.0
    pressureMultiplier: float = 50.0
    nearPressureMultiplier: float = 2.0
    viscosityStrength: float = 0.01
    particleRadius: float = const.defaultParticleRadius
    atmosphericPressure: float = 0.0
    thermostatPosition: tuple[float, float, float] = (0.0, -2.0, 0.0)
    thermostatTemperature: float = 1274.0
    thermostatInfluenceRadius: float = 0.5
    thermostatConductivity: float = 1000.0
    ambientTemperature: float = const.ambientTemperature
    isoDensity: float = 300.0
    latticeResolution: tuple[int, int, int] = (16, 16, 16)
    latticeBounds: SimulationBounds | None = None
    bounds: SimulationBounds = field(default_factory=SimulationBounds)
    frameTime: float = 1.0 / 60.0
    iterationsPerFrame: int = 3
    timeScale: float = 1.0
    positionUpdate: str = 'semiImplicit'
    hashTableSize: int | None = None
    terms: PhysicsTerms = field(default_factory=PhysicsTerms)
    maxParticles: int = const.maxParticles
    maxLatticeVertices: int = const.maxLatticeVertices

    def __post_init__(self) -> None:
        if not self.smoothingRadius > 0.0:
            raise ValueError(
                f'smoothingRadius must be positive, got {self.smoothingRadius}'
            )
        if len(self.latticeResolution) != 3 or min(self.latticeResolution) < 2:
            raise ValueError(
                'latticeResolution needs at least 2 vertices per axis, '
                f'got {self.latticeResolution}'
            )
        if self.nLatticeVertices > self.maxLatticeVertices:
            raise ValueError(
                f'Lattice of {self.nLatticeVertices} vertices exceeds '
                f'capacity {self.maxLatticeVertices}'
            )
        if self.iterationsPerFrame < 1:
            raise ValueError(
                f'iterationsPerFrame must be at least 1, got {self.iterationsPerFrame}'
            )
        if self.timeScale < 0.0 or self.frameTime < 0.0:
            raise ValueError('frameTime and timeScale must be non-negative')
        if not 0.0 <= self.collisionDamping <= 1.0:
            raise ValueError(
                f'collisionDamping must lie in [0, 1], got {self.collisionDamping}'
            )
        if not self.targetDensity > 0.0:
            raise ValueError(
                f'targetDensity must be positive, got {self.targetDensity}'
            )
        if not self.particleRadius > 0.0:
            raise ValueError(
                f'particleRadius must be positive, got {self.particleRadius}'
            )
        if not np.isfinite(self.atmosphericPressure):
            raise ValueError(
                f'atmosphericPressure must be finite, got {self.atmosphericPressure}'
            )
        if self.thermostatInfluenceRadius < 0.0:
            raise ValueError('thermostatInfluenceRadius must be non-negative')
        if self.positionUpdate not in _POSITION_UPDATES:
            raise ValueError(
                f'Unknown positionUpdate \'{self.positionUpdate}\'. '
                f'Available: {list(_POSITION_UPDATES)}'
            )
        if self.hashTableSize is not None and self.hashTableSize < 1:
            raise ValueError(f'hashTableSize must be at least 1, got {self.hashTableSize}')

    @property
    def nLatticeVertices(self) -> int:
        '''Total lattice vertex count Nx*Ny*Nz.'''
        nx, ny, nz = self.latticeResolution
        return nx * ny * nz

    @property
    def nLatticeCubes(self) -> int:
        '''Total cube count (Nx-1)(Ny-1)(Nz-1).'''
        nx, ny, nz = self.latticeResolution
        return (nx - 1) * (ny - 1) * (nz - 1)

    @property
    def particleVolume(self) -> float:
        '''Volume of the fluid sphere one particle represents [m^3].'''
        return 4.0 / 3.0 * np.pi * self.particleRadius ** 3

    @property
    def gravityVector(self) -> np.ndarray:
        '''Gravity as a world-space vector [m/s^2].'''
        return np.array([0.0, self.gravity, 0.0])

    @property
    def subStepSize(self) -> float:
        '''RK4 step size derived from the fixed frame time [s].'''
        return self.stepSizeFor(self.frameTime)

    def stepSizeFor(self, frameTime: float) -> float:
        '''Step size for a frame of the given duration [s].'''
        return frameTime / self.iterationsPerFrame * self.timeScale

    @property
    def effectiveLatticeBounds(self) -> SimulationBounds:
        '''Box covered by the surfacing lattice.'''
        return self.latticeBounds if self.latticeBounds is not None else self.bounds

    @classmethod
    def fromJson(cls, configPath: str) -> SimulationConfig:
        '''
        Load configuration from a JSON file.

        Reads the 'simulation', 'sph', 'thermal', 'thermostat',
        'surface' and 'terms' sections; absent keys keep their
        defaults.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        SimulationConfig : Loaded configuration
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)
        return cls.fromDict(data)

    @classmethod
    def fromDict(cls, data: dict) -> SimulationConfig:
        '''Build a configuration from parsed JSON sections.'''
        simSection = data.get('simulation', {})
        sphSection = data.get('sph', {})
        thermalSection = data.get('thermal', {})
        thermostatSection = data.get('thermostat', {})
        surfaceSection = data.get('surface', {})

        kwargs: dict = {}

        def take(section: dict, key: str, name: str | None = None, cast=None) -> None:
            if key in section:
                value = section[key]
                kwargs[name or key] = cast(value) if cast else value

        take(simSection, 'frameTime')
        take(simSection, 'iterationsPerFrame', cast=int)
        take(simSection, 'timeScale')
        take(simSection, 'positionUpdate')
        take(simSection, 'gravity')
        take(simSection, 'collisionDamping')
        if 'bounds' in simSection:
            kwargs['bounds'] = SimulationBounds.fromDict(simSection['bounds'])

        take(sphSection, 'smoothingRadius')
        take(sphSection, 'targetDensity')
        take(sphSection, 'pressureMultiplier')
        take(sphSection, 'nearPressureMultiplier')
        take(sphSection, 'viscosityStrength')
        take(sphSection, 'particleRadius')
        take(sphSection, 'atmosphericPressure')
        take(sphSection, 'hashTableSize', cast=int)

        take(thermalSection, 'ambientTemperature')

        take(thermostatSection, 'position', 'thermostatPosition', cast=tuple)
        take(thermostatSection, 'temperature', 'thermostatTemperature')
        take(thermostatSection, 'influenceRadius', 'thermostatInfluenceRadius')
        take(thermostatSection, 'conductivity', 'thermostatConductivity')

        take(surfaceSection, 'isoDensity')
        take(surfaceSection, 'resolution', 'latticeResolution', cast=tuple)
        if 'bounds' in surfaceSection:
            kwargs['latticeBounds'] = SimulationBounds.fromDict(surfaceSection['bounds'])

        if 'terms' in data:
            kwargs['terms'] = PhysicsTerms.fromDict(data['terms'])

        return cls(**kwargs)

    @classmethod
    def small(cls) -> SimulationConfig:
        '''
        Small scene for quick runs.

        Coarse lattice, three RK4 steps per frame so the thermostat
        relaxation stays inside the RK4 stability region.
        '''
        return cls(
            latticeResolution=(12, 12, 12),
            iterationsPerFrame=3,
        )

    @classmethod
    def standard(cls) -> SimulationConfig:
        '''Standard scene with a finer lattice and three steps per frame.'''
        return cls(
            latticeResolution=(32, 32, 32),
            iterationsPerFrame=3,
        )


######################################################################
# -- Simulation State -- #
######################################################################

@dataclass
class SimulationState:
    '''
    Snapshot of the simulation after a completed step.

    Parameters:
    -----------
    time : float
        Simulation time [s]
    step : int
        Number of completed steps
    dt : float
        Size of the last step [s]
    kineticEnergy : float
        Total kinetic energy (unit particle mass)
    momentum : np.ndarray
        Total momentum vector (unit particle mass), shape (3,)
    meanTemperature : float
        Mean particle temperature [K]
    maxVelocity : float
        Largest particle speed [m/s]
    minDensity : float
        Smallest particle density [1/m^3]
    nTriangles : int
        Triangles in the current isosurface
    nonFiniteCount : int
        Particles with a non-finite sample or predicted value repaired
        during the last step
    '''

    time: float
    step: int
    dt: float
    kineticEnergy: float
    momentum: np.ndarray
    meanTemperature: float
    maxVelocity: float
    minDensity: float
    nTriangles: int = 0
    nonFiniteCount: int = 0


######################################################################
# -- Solver Protocol -- #
######################################################################

class ThermalSolver(Protocol):
    '''Protocol for thermal SPH simulations.'''

    def reset(self) -> None:
        '''Restore every buffer from the stored spawn data.'''
        ...

    def step(self, dt: float) -> SimulationState:
        '''Advance one RK4 step and return the new state.'''
        ...

    @property
    def currentState(self) -> SimulationState:
        '''Current simulation state snapshot.'''
        ...

    @property
    def particles(self) -> ParticleSystem:
        '''Access the particle system.'''
        ...
