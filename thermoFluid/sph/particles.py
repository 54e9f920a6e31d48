# -- Thermal SPH Particle System -- #

'''
Dataclass representing the thermal SPH particle state.

Stores every per-particle quantity as a contiguous NumPy array for
vectorized passes. Three groups of fields with different lifetimes:

- Persistent state  : positions, velocities, temperatures
- Derived each pass : densities, nearDensities, pressures, nearPressures
- Material constants: viscosities, conductivities, capacities,
                      bulkDensities, molarMasses, cohesionA, covolumeB
'''

from __future__ import annotations

from dataclasses import dataclass, fields

import numpy as np


@dataclass
class ParticleSystem:
    '''
    Thermal SPH particle system state.

    Vector quantities have shape (N, 3), scalar quantities shape (N,).
    Every particle has unit SPH mass; physical amounts of substance
    enter only through the equation of state.

    Parameters:
    -----------
    positions : np.ndarray
        Particle positions [m], shape (N, 3)
    velocities : np.ndarray
        Particle velocities [m/s], shape (N, 3)
    temperatures : np.ndarray
        Particle temperatures [K], shape (N,)
    densities : np.ndarray
        SPH number densities [1/m^3], shape (N,)
    nearDensities : np.ndarray
        Near-kernel densities [1/m^3], shape (N,)
    pressures : np.ndarray
        Gauge pressures from the equation of state, shape (N,)
    nearPressures : np.ndarray
        Near-pressures, shape (N,)
    viscosities : np.ndarray
        Viscosity coefficients, shape (N,)
    conductivities : np.ndarray
        Thermal conductivities, shape (N,)
    capacities : np.ndarray
        Thermal capacities, shape (N,)
    bulkDensities : np.ndarray
        Physical mass densities of the material [kg/m^3], shape (N,)
    molarMasses : np.ndarray
        Molar masses [kg/mol], shape (N,)
    cohesionA : np.ndarray
        Van der Waals cohesion terms a [Pa*m^6/mol^2], shape (N,)
    covolumeB : np.ndarray
        Van der Waals covolumes b [m^3/mol], shape (N,)
    '''

    positions: np.ndarray
    velocities: np.ndarray
    temperatures: np.ndarray
    densities: np.ndarray
    nearDensities: np.ndarray
    pressures: np.ndarray
    nearPressures: np.ndarray
    viscosities: np.ndarray
    conductivities: np.ndarray
    capacities: np.ndarray
    bulkDensities: np.ndarray
    molarMasses: np.ndarray
    cohesionA: np.ndarray
    covolumeB: np.ndarray

    @property
    def nParticles(self) -> int:
        '''Total number of particles.'''
        return self.positions.shape[0]

    def validate(self) -> None:
        '''
        Check that every buffer matches the particle count.

        Raises:
        -------
        ValueError : If a buffer has the wrong shape or a material
            constant is out of its physical range
        '''
        n = self.nParticles
        if self.positions.ndim != 2 or self.positions.shape[1] != 3:
            raise ValueError(
                f'positions must have shape (N, 3), got {self.positions.shape}'
            )
        if self.velocities.shape != (n, 3):
            raise ValueError(
                f'velocities must have shape ({n}, 3), got {self.velocities.shape}'
            )
        for f in fields(self):
            if f.name in ('positions', 'velocities'):
                continue
            value = getattr(self, f.name)
            if value.shape != (n,):
                raise ValueError(
                    f'{f.name} must have shape ({n},), got {value.shape}'
                )
        if np.any(self.molarMasses <= 0.0):
            raise ValueError('molarMasses must be positive')
        if np.any(self.capacities <= 0.0):
            raise ValueError('capacities must be positive')
        if np.any(self.bulkDensities <= 0.0):
            raise ValueError('bulkDensities must be positive')
        if np.any(self.cohesionA < 0.0) or np.any(self.covolumeB < 0.0):
            raise ValueError('Van der Waals constants must be non-negative')

    def copy(self) -> ParticleSystem:
        '''Deep copy of every buffer.'''
        return ParticleSystem(**{f.name: getattr(self, f.name).copy() for f in fields(self)})

    def restoreFrom(self, other: ParticleSystem) -> None:
        '''Overwrite every buffer in place with the values of `other`.'''
        for f in fields(self):
            getattr(self, f.name)[...] = getattr(other, f.name)

    def molesPerParticle(self, particleVolume: float) -> np.ndarray:
        '''
        Amount of substance carried by each particle.

        n = rho_bulk * V_particle / M

        Parameters:
        -----------
        particleVolume : float
            Volume represented by one particle [m^3]

        Returns:
        --------
        np.ndarray : Moles per particle [mol], shape (N,)
        '''
        return self.bulkDensities * particleVolume / self.molarMasses

    ######################################################################
    # -- Diagnostics -- #
    ######################################################################

    def kineticEnergy(self) -> float:
        '''
        Total kinetic energy with unit particle mass.

        KE = (1/2) * sum_i |v_i|^2
        '''
        return 0.5 * float(np.sum(self.velocities * self.velocities))

    def momentum(self) -> np.ndarray:
        '''Total momentum vector with unit particle mass, shape (3,).'''
        return self.velocities.sum(axis=0)

    def meanTemperature(self) -> float:
        '''Mean particle temperature [K].'''
        if self.nParticles == 0:
            return 0.0
        return float(np.mean(self.temperatures))

    def maxSpeed(self) -> float:
        '''Maximum velocity magnitude [m/s].'''
        if self.nParticles == 0:
            return 0.0
        return float(np.max(np.linalg.norm(self.velocities, axis=1)))

    def minDensity(self) -> float:
        '''Smallest particle density [1/m^3].'''
        if self.nParticles == 0:
            return 0.0
        return float(np.min(self.densities))

    @classmethod
    def allocate(cls, nParticles: int) -> ParticleSystem:
        '''
        Zero-initialized particle system with unit material constants.

        Parameters:
        -----------
        nParticles : int
            Number of particles

        Returns:
        --------
        ParticleSystem : Allocated particle system
        '''
        return cls(
            positions=np.zeros((nParticles, 3)),
            velocities=np.zeros((nParticles, 3)),
            temperatures=np.zeros(nParticles),
            densities=np.zeros(nParticles),
            nearDensities=np.zeros(nParticles),
            pressures=np.zeros(nParticles),
            nearPressures=np.zeros(nParticles),
            viscosities=np.zeros(nParticles),
            conductivities=np.zeros(nParticles),
            capacities=np.ones(nParticles),
            bulkDensities=np.ones(nParticles),
            molarMasses=np.ones(nParticles),
            cohesionA=np.zeros(nParticles),
            covolumeB=np.zeros(nParticles),
        )
