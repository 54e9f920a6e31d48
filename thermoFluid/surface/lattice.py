# -- Surface Sampling Lattice -- #

'''
Uniform lattice of sample points covering the simulation box.

Vertex (i, j, k) sits at flat index i + Nx*j + Nx*Ny*k, at

    centre + (t - 0.5) * size,   t = (i, j, k) / (N - 1)

so the lattice spans the box exactly, faces included. Cubes are
numbered the same way over (Nx-1, Ny-1, Nz-1).
'''

from __future__ import annotations

import numpy as np

from thermoFluid.sph.protocols import SimulationBounds
from thermoFluid.surface.tables import CORNER_OFFSETS


class GridLattice:
    '''
    Fixed Nx x Ny x Nz lattice over an axis-aligned box.

    Parameters:
    -----------
    resolution : tuple[int, int, int]
        Vertex counts (Nx, Ny, Nz), each at least 2
    bounds : SimulationBounds
        Box covered by the lattice
    '''

    def __init__(self, resolution: tuple[int, int, int], bounds: SimulationBounds) -> None:
        if len(resolution) != 3 or min(resolution) < 2:
            raise ValueError(
                f'Lattice needs at least 2 vertices per axis, got {tuple(resolution)}'
            )
        self._resolution = tuple(int(n) for n in resolution)
        self._bounds = bounds
        self._positions = self._buildPositions()
        self._cubeCorners = self._buildCubeCorners()

    @property
    def resolution(self) -> tuple[int, int, int]:
        '''Vertex counts (Nx, Ny, Nz).'''
        return self._resolution

    @property
    def bounds(self) -> SimulationBounds:
        '''Box covered by the lattice.'''
        return self._bounds

    @property
    def nVertices(self) -> int:
        nx, ny, nz = self._resolution
        return nx * ny * nz

    @property
    def nCubes(self) -> int:
        nx, ny, nz = self._resolution
        return (nx - 1) * (ny - 1) * (nz - 1)

    @property
    def positions(self) -> np.ndarray:
        '''Vertex positions [m], shape (nVertices, 3).'''
        return self._positions

    @property
    def cubeCorners(self) -> np.ndarray:
        '''Flat vertex index of each cube corner, shape (nCubes, 8).'''
        return self._cubeCorners

    @property
    def spacing(self) -> np.ndarray:
        '''Distance between neighboring vertices along each axis [m].'''
        return self._bounds.sizeArray / (np.asarray(self._resolution) - 1)

    def flatIndex(self, i: int, j: int, k: int) -> int:
        '''Flat index of vertex (i, j, k).'''
        nx, ny, _ = self._resolution
        return i + nx * j + nx * ny * k

    def _buildPositions(self) -> np.ndarray:
        nx, ny, nz = self._resolution
        tx = np.linspace(0.0, 1.0, nx)
        ty = np.linspace(0.0, 1.0, ny)
        tz = np.linspace(0.0, 1.0, nz)

        # indexing='ij' then Fortran ravel puts i fastest
        gx, gy, gz = np.meshgrid(tx, ty, tz, indexing='ij')
        t = np.column_stack([
            gx.ravel(order='F'), gy.ravel(order='F'), gz.ravel(order='F'),
        ])
        return self._bounds.centreArray + (t - 0.5) * self._bounds.sizeArray

    def _buildCubeCorners(self) -> np.ndarray:
        nx, ny, nz = self._resolution
        ci, cj, ck = np.meshgrid(
            np.arange(nx - 1), np.arange(ny - 1), np.arange(nz - 1), indexing='ij',
        )
        base = np.column_stack([
            ci.ravel(order='F'), cj.ravel(order='F'), ck.ravel(order='F'),
        ])

        corners = base[:, np.newaxis, :] + CORNER_OFFSETS[np.newaxis, :, :]
        return corners[..., 0] + nx * corners[..., 1] + nx * ny * corners[..., 2]
