# -- Particle Block Spawner -- #

'''
Procedural initial layout for the thermal SPH fluid.

Fills an axis-aligned block with a regular grid of particles, optionally
jittered, and assigns the spawn profiles used by the hot-block scene:

    temperature  T   = 1273 * ty
    viscosity    mu  = tz^2
    conductivity k   = 1 + 4 * tx^2

where (tx, ty, tz) in [0, 1]^3 is the particle's normalized grid
coordinate. The block therefore starts cold at the bottom and hot at
the top, runny at one face and viscous at the other.

The material constants (molar mass, van der Waals a and b, bulk
density, heat capacity) are uniform and default to water.
'''

from __future__ import annotations

import json
from dataclasses import dataclass

import numpy as np

from thermoFluid import constants as const
from thermoFluid.sph.particles import ParticleSystem


######################################################################
# -- Spawn Configuration -- #
######################################################################

@dataclass
class SpawnConfig:
    '''
    Configuration for the spawned particle block.

    Parameters:
    -----------
    particlesPerAxis : tuple[int, int, int]
        Grid counts (Nx, Ny, Nz)
    centre : tuple[float, float, float]
        Block centre [m]
    size : tuple[float, float, float]
        Block edge lengths [m]
    initialVelocity : tuple[float, float, float]
        Velocity given to every particle [m/s]
    jitterStrength : float
        Radius of the random offset sphere around each grid point [m]
    seed : int | None
        Seed for the jitter generator
    maxTemperature : float
        Temperature of the top layer [K]
    molarMass : float
        Molar mass [kg/mol]
    cohesionA : float
        Van der Waals cohesion term a [Pa*m^6/mol^2]
    covolumeB : float
        Van der Waals covolume b [m^3/mol]
    bulkDensity : float
        Physical mass density of the material [kg/m^3]
    thermalCapacity : float
        Heat capacity c
    '''

    particlesPerAxis: tuple[int, int, int] = (10, 10, 10)
    centre: tuple[float, float, float] = (0.0, 0.0, 0.0)
    size: tuple[float, float, float] = (1.0, 1.0, 1.0)
    initialVelocity: tuple[float, float, float] = (0.0, 0.0, 0.0)
    jitterStrength: float = 0.0
    seed: int | None = 0
    maxTemperature: float = const.spawnMaxTemperature
    molarMass: float = const.waterMolarMass
    cohesionA: float = const.waterCohesionA
    covolumeB: float = const.waterCovolumeB
    bulkDensity: float = const.waterBulkDensity
    thermalCapacity: float = const.waterThermalCapacity

    def __post_init__(self) -> None:
        if isinstance(self.particlesPerAxis, int):
            self.particlesPerAxis = (self.particlesPerAxis,) * 3
        if isinstance(self.size, (int, float)):
            self.size = (float(self.size),) * 3
        self.particlesPerAxis = tuple(int(n) for n in self.particlesPerAxis)
        self.size = tuple(float(s) for s in self.size)

        if len(self.particlesPerAxis) != 3 or min(self.particlesPerAxis) < 1:
            raise ValueError(
                f'particlesPerAxis needs 3 positive counts, got {self.particlesPerAxis}'
            )
        if len(self.size) != 3 or min(self.size) < 0.0:
            raise ValueError(f'size needs 3 non-negative lengths, got {self.size}')
        if self.jitterStrength < 0.0:
            raise ValueError(f'jitterStrength must be non-negative, got {self.jitterStrength}')
        if self.molarMass <= 0.0 or self.bulkDensity <= 0.0 or self.thermalCapacity <= 0.0:
            raise ValueError('molarMass, bulkDensity and thermalCapacity must be positive')

    @property
    def nParticles(self) -> int:
        '''Total spawned particle count Nx*Ny*Nz.'''
        nx, ny, nz = self.particlesPerAxis
        return nx * ny * nz

    @classmethod
    def small(cls) -> SpawnConfig:
        '''
        Small block for quick runs.

        512 particles.
        '''
        return cls(particlesPerAxis=(8, 8, 8), size=(1.2, 1.2, 1.2), jitterStrength=0.01)

    @classmethod
    def standard(cls) -> SpawnConfig:
        '''
        Standard block.

        ~3400 particles, good quality isosurface.
        '''
        return cls(particlesPerAxis=(15, 15, 15), size=(1.6, 1.6, 1.6), jitterStrength=0.01)

    @classmethod
    def fromJson(cls, configPath: str) -> SpawnConfig:
        '''
        Load the 'spawn' and 'material' sections of a JSON file.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        SpawnConfig : Loaded spawn configuration
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)
        return cls.fromDict(data)

    @classmethod
    def fromDict(cls, data: dict) -> SpawnConfig:
        '''Build a spawn configuration from parsed JSON sections.'''
        spawn = data.get('spawn', {})
        material = data.get('material', {})

        kwargs: dict = {}
        for key in ('particlesPerAxis', 'centre', 'size', 'initialVelocity'):
            if key in spawn:
                value = spawn[key]
                kwargs[key] = tuple(value) if isinstance(value, list) else value
        for key in ('jitterStrength', 'seed', 'maxTemperature'):
            if key in spawn:
                kwargs[key] = spawn[key]
        for key in ('molarMass', 'cohesionA', 'covolumeB', 'bulkDensity', 'thermalCapacity'):
            if key in material:
                kwargs[key] = material[key]

        return cls(**kwargs)


######################################################################
# -- Spawn Data Creation -- #
######################################################################

def _normalizedAxis(n: int) -> np.ndarray:
    '''t = i / (n - 1) for i in [0, n); a single sample sits at 0.5.'''
    if n == 1:
        return np.array([0.5])
    return np.arange(n) / (n - 1.0)


def _insideUnitSphere(rng: np.random.Generator, n: int) -> np.ndarray:
    '''
    Uniform samples inside the unit ball, shape (n, 3).

    Direction from a normalized Gaussian, radius from u^(1/3).
    '''
    directions = rng.standard_normal((n, 3))
    norms = np.linalg.norm(directions, axis=1, keepdims=True)
    directions /= np.where(norms > 0.0, norms, 1.0)
    radii = rng.random(n) ** (1.0 / 3.0)
    return directions * radii[:, np.newaxis]


def createSpawnData(spawnConfig: SpawnConfig) -> ParticleSystem:
    '''
    Create the initial particle system from a spawn configuration.

    Particles are ordered with z varying fastest, then y, then x.
    Densities and pressures start at zero and are filled by the first
    field evaluation.

    Parameters:
    -----------
    spawnConfig : SpawnConfig
        Block layout and material constants

    Returns:
    --------
    ParticleSystem : Initialized particle system
    '''
    nx, ny, nz = spawnConfig.particlesPerAxis
    n = spawnConfig.nParticles

    tx, ty, tz = np.meshgrid(
        _normalizedAxis(nx), _normalizedAxis(ny), _normalizedAxis(nz),
        indexing='ij',
    )
    gridT = np.column_stack([tx.ravel(), ty.ravel(), tz.ravel()])

    size = np.asarray(spawnConfig.size, dtype=float)
    centre = np.asarray(spawnConfig.centre, dtype=float)
    positions = (gridT - 0.5) * size + centre

    if spawnConfig.jitterStrength > 0.0:
        rng = np.random.default_rng(spawnConfig.seed)
        positions += _insideUnitSphere(rng, n) * spawnConfig.jitterStrength

    velocities = np.tile(np.asarray(spawnConfig.initialVelocity, dtype=float), (n, 1))

    particles = ParticleSystem.allocate(n)
    particles.positions[:] = positions
    particles.velocities[:] = velocities
    particles.temperatures[:] = spawnConfig.maxTemperature * gridT[:, 1]
    particles.viscosities[:] = gridT[:, 2] ** 2
    particles.conductivities[:] = 1.0 + 4.0 * gridT[:, 0] ** 2
    particles.capacities[:] = spawnConfig.thermalCapacity
    particles.bulkDensities[:] = spawnConfig.bulkDensity
    particles.molarMasses[:] = spawnConfig.molarMass
    particles.cohesionA[:] = spawnConfig.cohesionA
    particles.covolumeB[:] = spawnConfig.covolumeB

    particles.validate()
    return particles
