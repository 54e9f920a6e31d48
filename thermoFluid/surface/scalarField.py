# -- Lattice Scalar Field Sampler -- #

'''
SPH interpolation of density and temperature onto the surface lattice.

For lattice vertex p:

    density(p)     = sum_j W2(|p - x_j|)
    temperature(p) = sum_j T_j W2(|p - x_j|) / sum_j W2(|p - x_j|)

The temperature is a Shepard (normalized) average, so it stays inside
the range of the contributing particle temperatures. A vertex that no
particle reaches reports the ambient temperature.
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from thermoFluid.sph.kernels import SpikyPow2Kernel
from thermoFluid.sph.neighborSearch import SpatialHashIndex
from thermoFluid.surface.lattice import GridLattice


@dataclass
class LatticeSample:
    '''
    Sampled fields at every lattice vertex.

    Parameters:
    -----------
    densities : np.ndarray
        SPH density per vertex [1/m^3], shape (nVertices,)
    temperatures : np.ndarray
        Interpolated temperature per vertex [K], shape (nVertices,)
    '''

    densities: np.ndarray
    temperatures: np.ndarray


class ScalarFieldSampler:
    '''
    Samples (density, temperature) on a fixed lattice.

    Parameters:
    -----------
    lattice : GridLattice
        Sample points
    smoothingRadius : float
        Kernel support radius [m]
    ambientTemperature : float
        Temperature of vertices outside every particle's support [K]
    '''

    def __init__(
        self,
        lattice: GridLattice,
        smoothingRadius: float,
        ambientTemperature: float,
    ) -> None:
        self._lattice = lattice
        self._smoothingRadius = smoothingRadius
        self._ambientTemperature = ambientTemperature
        self._kernel = SpikyPow2Kernel()

    @property
    def lattice(self) -> GridLattice:
        return self._lattice

    def sample(
        self,
        index: SpatialHashIndex,
        positions: np.ndarray,
        temperatures: np.ndarray,
    ) -> LatticeSample:
        '''
        Evaluate both fields at every lattice vertex.

        Parameters:
        -----------
        index : SpatialHashIndex
            Spatial index built over `positions`
        positions : np.ndarray
            Final particle positions [m], shape (N, 3)
        temperatures : np.ndarray
            Final particle temperatures [K], shape (N,)

        Returns:
        --------
        LatticeSample : Per-vertex density and temperature
        '''
        points = self._lattice.positions
        nVertices = len(points)
        h = self._smoothingRadius

        vertexIdx, particleIdx = index.queryPoints(points, h)
        distances = np.linalg.norm(positions[particleIdx] - points[vertexIdx], axis=1)
        weights = self._kernel.evaluateBatch(distances, h)

        densities = np.zeros(nVertices)
        weightedT = np.zeros(nVertices)
        np.add.at(densities, vertexIdx, weights)
        np.add.at(weightedT, vertexIdx, weights * temperatures[particleIdx])

        covered = densities > 0.0
        sampledT = np.full(nVertices, self._ambientTemperature, dtype=float)
        sampledT[covered] = weightedT[covered] / densities[covered]

        return LatticeSample(densities=densities, temperatures=sampledT)
