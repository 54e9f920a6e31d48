# -- Spatial Hash Index for Neighbor Search -- #

'''
Hashed uniform-grid spatial index for O(N) neighbor search in SPH.

Divides space into cubic cells of size equal to the smoothing radius.
Each particle's integer cell coordinate is hashed into a bounded table
(sized at least the particle count), the particles are sorted by key
and a per-key offset table records where each key's run begins. A
neighbor query then only visits the 27 cells of the 3x3x3 block
around the query point.

Distinct cells can collide into the same key. Queries therefore visit
every distinct key of the 27-cell block exactly once and filter the
candidates by true distance, so collisions cost extra distance checks
but never drop or double-count a neighbor.

All candidate expansion is vectorized with NumPy (ragged ranges via
repeat/cumsum), no per-particle Python loops.

References:
-----------
Ihmsen et al. (2011) -- Parallel Neighbor-Search for SPH
Teschner et al. (2003) -- Optimized spatial hashing for collision
    detection of deformable objects
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from thermoFluid import constants as const
from thermoFluid.sph.sorting import SortedKeys, countingSort


#--------------------------------------------------------------------#
# -- Neighbor Search Protocol -- #
#--------------------------------------------------------------------#

class NeighborSearch(Protocol):
    '''Protocol for neighbor search structures.'''

    def build(self, positions: np.ndarray) -> None:
        '''Build spatial data structure from particle positions.'''
        ...

    def queryPairs(self, radius: float) -> tuple[np.ndarray, np.ndarray]:
        '''
        Find all ordered particle pairs within the given radius.

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (iIndices, jIndices); both (i, j) and (j, i) appear, and
            every particle appears paired with itself.
        '''
        ...

    def queryPoints(
        self, points: np.ndarray, radius: float
    ) -> tuple[np.ndarray, np.ndarray]:
        '''Find all (point, particle) pairs within the given radius.'''
        ...


#--------------------------------------------------------------------#
# -- 3x3x3 Cell Stencil -- #
#--------------------------------------------------------------------#

def _fullStencil() -> np.ndarray:
    '''All 27 integer offsets of the 3x3x3 block, shape (27, 3).'''
    offsets = []
    for dx in range(-1, 2):
        for dy in range(-1, 2):
            for dz in range(-1, 2):
                offsets.append((dx, dy, dz))
    return np.array(offsets, dtype=np.int64)


CELL_OFFSETS: np.ndarray = _fullStencil()


#--------------------------------------------------------------------#
# -- Spatial Hash Index -- #
#--------------------------------------------------------------------#

class SpatialHashIndex:
    '''
    Spatial hash over a uniform 3D grid with sorted offsets.

    Parameters:
    -----------
    cellSize : float
        Grid cell size [m], equal to the smoothing radius
    tableSize : int | None
        Number of hash keys. Defaults to the particle count at build
        time; never smaller than the particle count.

    Raises:
    -------
    ValueError : If cellSize is not strictly positive
    '''

    def __init__(self, cellSize: float, tableSize: int | None = None) -> None:
        if not cellSize > 0.0:
            raise ValueError(f'Cell size must be positive, got {cellSize}')
        if tableSize is not None and tableSize < 1:
            raise ValueError(f'Table size must be at least 1, got {tableSize}')

        self._cellSize = float(cellSize)
        self._requestedTableSize = tableSize
        self._positions: np.ndarray | None = None
        self._keys: np.ndarray | None = None
        self._sorted: SortedKeys | None = None

    @property
    def cellSize(self) -> float:
        '''Grid cell size [m].'''
        return self._cellSize

    @property
    def tableSize(self) -> int:
        '''Size of the hash table of the current build.'''
        if self._sorted is None:
            raise RuntimeError('Spatial index has not been built')
        return self._sorted.tableSize

    @property
    def sorted(self) -> SortedKeys:
        '''Sorted order and offset table of the current build.'''
        if self._sorted is None:
            raise RuntimeError('Spatial index has not been built')
        return self._sorted

    @property
    def keys(self) -> np.ndarray:
        '''Hash key per particle (unsorted), shape (N,).'''
        if self._keys is None:
            raise RuntimeError('Spatial index has not been built')
        return self._keys

    ######################################################################
    # -- Hashing -- #
    ######################################################################

    def cellCoordinates(self, positions: np.ndarray) -> np.ndarray:
        '''
        Integer cell coordinate floor(position / cellSize) per point.

        Parameters:
        -----------
        positions : np.ndarray
            Points [m], shape (N, 3)

        Returns:
        --------
        np.ndarray : Cell coordinates, shape (N, 3), int64
        '''
        return np.floor(positions / self._cellSize).astype(np.int64)

    @staticmethod
    def hashCells(cells: np.ndarray, tableSize: int) -> np.ndarray:
        '''
        Hash integer cell coordinates into [0, tableSize).

        hash = cx*15823 + cy*9737333 + cz*440817757 with each
        coordinate reinterpreted as unsigned 32-bit and the sum
        wrapped to 32 bits, then key = hash mod tableSize.

        Parameters:
        -----------
        cells : np.ndarray
            Integer cell coordinates, shape (..., 3)
        tableSize : int
            Number of hash keys

        Returns:
        --------
        np.ndarray : Keys, shape (...), int64
        '''
        wrapped = (cells.astype(np.int64) & 0xFFFFFFFF).astype(np.uint64)
        h = (
            wrapped[..., 0] * np.uint64(const.hashPrimeX)
            + wrapped[..., 1] * np.uint64(const.hashPrimeY)
            + wrapped[..., 2] * np.uint64(const.hashPrimeZ)
        ) & np.uint64(0xFFFFFFFF)
        return (h % np.uint64(tableSize)).astype(np.int64)

    ######################################################################
    # -- Build -- #
    ######################################################################

    def build(self, positions: np.ndarray) -> None:
        '''
        Hash all particles and sort them into cell-contiguous order.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions [m], shape (N, 3)
        '''
        nParticles = len(positions)
        tableSize = max(nParticles, self._requestedTableSize or 0, 1)

        cells = self.cellCoordinates(positions)
        self._positions = positions
        self._keys = self.hashCells(cells, tableSize)
        self._sorted = countingSort(self._keys, tableSize)

    ######################################################################
    # -- Queries -- #
    ######################################################################

    def neighborCandidates(self, points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        '''
        All (point, particle) candidates from the 27-cell block.

        Every distinct key of a point's block is visited once, so a
        particle appears at most once per query point even when
        several of the 27 cells collide into the same key.

        Parameters:
        -----------
        points : np.ndarray
            Query points [m], shape (M, 3)

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (pointIndices, particleIndices) of all candidates
        '''
        s = self.sorted
        nPoints = len(points)
        empty = np.array([], dtype=np.int64)
        if nPoints == 0 or len(s.order) == 0:
            return (empty, empty)

        # Keys of the 27 neighboring cells per point: (M, 27)
        centre = self.cellCoordinates(points)
        blockCells = centre[:, np.newaxis, :] + CELL_OFFSETS[np.newaxis, :, :]
        blockKeys = self.hashCells(blockCells, s.tableSize)

        # Visit each distinct key once per point
        blockKeys.sort(axis=1)
        repeated = np.zeros_like(blockKeys, dtype=bool)
        repeated[:, 1:] = blockKeys[:, 1:] == blockKeys[:, :-1]

        counts = s.counts[blockKeys]
        counts[repeated] = 0
        starts = s.offsets[blockKeys]

        flatCounts = counts.ravel()
        flatStarts = starts.ravel()
        visit = flatCounts > 0
        flatCounts = flatCounts[visit]
        flatStarts = flatStarts[visit]
        pointOfRange = np.repeat(np.arange(nPoints, dtype=np.int64), 27)[visit]

        total = int(flatCounts.sum())
        if total == 0:
            return (empty, empty)

        # Ragged arange: start_k, start_k + 1, ..., start_k + count_k - 1
        rangeBegin = np.cumsum(flatCounts) - flatCounts
        sortedSlots = (
            np.arange(total, dtype=np.int64)
            + np.repeat(flatStarts - rangeBegin, flatCounts)
        )

        pointIndices = np.repeat(pointOfRange, flatCounts)
        particleIndices = s.order[sortedSlots]

        return (pointIndices, particleIndices)

    def queryPoints(
        self, points: np.ndarray, radius: float
    ) -> tuple[np.ndarray, np.ndarray]:
        '''
        Find all (point, particle) pairs closer than `radius`.

        Parameters:
        -----------
        points : np.ndarray
            Query points [m], shape (M, 3)
        radius : float
            Search radius [m], at most the cell size

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (pointIndices, particleIndices) of all pairs in range
        '''
        if radius > self._cellSize:
            raise ValueError(
                f'Search radius {radius} exceeds cell size {self._cellSize}'
            )
        if self._positions is None:
            raise RuntimeError('Spatial index has not been built')

        pointIdx, particleIdx = self.neighborCandidates(points)
        if len(pointIdx) == 0:
            return (pointIdx, particleIdx)

        dr = self._positions[particleIdx] - points[pointIdx]
        distSq = np.sum(dr * dr, axis=1)
        within = distSq < radius * radius

        return (pointIdx[within], particleIdx[within])

    def queryPairs(self, radius: float) -> tuple[np.ndarray, np.ndarray]:
        '''
        Find all ordered particle pairs (i, j) closer than `radius`.

        Both orientations of each pair are returned and each particle
        is paired with itself, matching a per-particle gather over
        its neighborhood.

        Parameters:
        -----------
        radius : float
            Search radius [m], at most the cell size

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (iIndices, jIndices) arrays of neighbor pair indices
        '''
        if self._positions is None:
            raise RuntimeError('Spatial index has not been built')
        return self.queryPoints(self._positions, radius)
