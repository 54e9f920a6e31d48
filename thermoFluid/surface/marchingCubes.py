# -- Marching Cubes Isosurface Extraction -- #

'''
Triangulates the lattice density field at a fixed isovalue.

For every cube of the lattice:

    1. Build the 8-bit case index (bit c set when corner c's density
       is below the isovalue)
    2. Interpolate the crossing point on each of the 12 edges
           t = (iso - v0) / (v1 - v0),  clamped to [0, 1]
       with t = 0.5 when |v1 - v0| is below epsilon
    3. Emit up to five triangles from the case's triangle table row

Temperature is interpolated along the edge with the same t as the
position. Output buffers have a fixed layout of 5 triangles x 3
vertices per cube; a per-cube count and a per-slot mask say which
slots hold real triangles. All cubes are processed as one vectorized
pass.

References:
-----------
Lorensen & Cline (1987) -- Marching cubes: A high resolution 3D
    surface construction algorithm
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import trimesh

from thermoFluid import constants as const
from thermoFluid.surface.lattice import GridLattice
from thermoFluid.surface.tables import (
    EDGE_CORNERS,
    MAX_TRIANGLES_PER_CUBE,
    TRIANGLE_COUNTS,
    TRIANGLE_TABLE,
)


######################################################################
# -- Surface Mesh -- #
######################################################################

@dataclass
class SurfaceMesh:
    '''
    Fixed-layout triangle buffers produced by one extraction.

    Parameters:
    -----------
    vertices : np.ndarray
        Vertex positions [m], shape (15 * nCubes, 3); unused slots
        hold zeros
    temperatures : np.ndarray
        Vertex temperatures [K], shape (15 * nCubes,)
    triangleCounts : np.ndarray
        Triangles emitted per cube (0-5), shape (nCubes,)
    triangleMask : np.ndarray
        Validity of each triangle slot, shape (nCubes, 5)
    caseIndices : np.ndarray
        Marching cubes case of each cube (0-255), shape (nCubes,)
    '''

    vertices: np.ndarray
    temperatures: np.ndarray
    triangleCounts: np.ndarray
    triangleMask: np.ndarray
    caseIndices: np.ndarray

    @property
    def nCubes(self) -> int:
        return len(self.triangleCounts)

    @property
    def nTriangles(self) -> int:
        '''Total number of valid triangles.'''
        return int(self.triangleCounts.sum())

    def compact(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        '''
        Valid triangles only, as an unshared triangle soup.

        Returns:
        --------
        tuple[np.ndarray, np.ndarray, np.ndarray] :
            (vertices (3T, 3), faces (T, 3), temperatures (3T,))
        '''
        vertexMask = np.repeat(self.triangleMask.ravel(), 3)
        vertices = self.vertices[vertexMask]
        temperatures = self.temperatures[vertexMask]
        faces = np.arange(len(vertices), dtype=np.int64).reshape(-1, 3)
        return (vertices, faces, temperatures)

    def toTrimesh(self, mergeVertices: bool = False) -> trimesh.Trimesh:
        '''
        Convert the valid triangles to a trimesh.Trimesh.

        Vertex temperatures are attached as the 'temperature' vertex
        attribute.

        Parameters:
        -----------
        mergeVertices : bool
            Weld coincident vertices shared by neighboring triangles

        Returns:
        --------
        trimesh.Trimesh : Isosurface mesh
        '''
        vertices, faces, temperatures = self.compact()
        mesh = trimesh.Trimesh(
            vertices=vertices,
            faces=faces,
            vertex_attributes={'temperature': temperatures},
            process=False,
        )
        if mergeVertices and len(faces) > 0:
            mesh.merge_vertices()
        return mesh


######################################################################
# -- Extractor -- #
######################################################################

class MarchingCubesExtractor:
    '''
    Extracts the isosurface of a lattice density field.

    Parameters:
    -----------
    lattice : GridLattice
        Lattice the fields are sampled on
    isoEpsilon : float
        Density difference below which an edge crossing sits at the
        edge midpoint
    '''

    def __init__(self, lattice: GridLattice, isoEpsilon: float = const.isoEpsilon) -> None:
        self._lattice = lattice
        self._isoEpsilon = isoEpsilon

        corners = lattice.cubeCorners
        self._edgeStart = corners[:, EDGE_CORNERS[:, 0]]
        self._edgeEnd = corners[:, EDGE_CORNERS[:, 1]]

    @property
    def lattice(self) -> GridLattice:
        return self._lattice

    def caseIndices(self, densities: np.ndarray, isoDensity: float) -> np.ndarray:
        '''
        8-bit case index per cube, shape (nCubes,).

        Parameters:
        -----------
        densities : np.ndarray
            Density per lattice vertex, shape (nVertices,)
        isoDensity : float
            Isovalue
        '''
        below = densities[self._lattice.cubeCorners] < isoDensity
        weights = 1 << np.arange(8, dtype=np.int64)
        return (below.astype(np.int64) * weights).sum(axis=1)

    def extract(
        self,
        densities: np.ndarray,
        temperatures: np.ndarray,
        isoDensity: float,
    ) -> SurfaceMesh:
        '''
        Triangulate every cube of the lattice.

        Parameters:
        -----------
        densities : np.ndarray
            Density per lattice vertex, shape (nVertices,)
        temperatures : np.ndarray
            Temperature per lattice vertex [K], shape (nVertices,)
        isoDensity : float
            Isovalue

        Returns:
        --------
        SurfaceMesh : Fixed-layout triangle buffers
        '''
        nCubes = self._lattice.nCubes
        points = self._lattice.positions
        nSlots = 3 * MAX_TRIANGLES_PER_CUBE

        cases = self.caseIndices(densities, isoDensity)
        counts = TRIANGLE_COUNTS[cases]
        triangleMask = np.arange(MAX_TRIANGLES_PER_CUBE)[np.newaxis, :] < counts[:, np.newaxis]

        edgePositions, edgeTemperatures = self._interpolateEdges(
            densities, temperatures, points, isoDensity,
        )

        # Edge referenced by each of the 15 vertex slots of a cube
        slotEdges = TRIANGLE_TABLE[cases, :nSlots]
        validSlots = slotEdges >= 0
        gatherEdges = np.where(validSlots, slotEdges, 0)
        cubeIdx = np.arange(nCubes)[:, np.newaxis]

        vertices = edgePositions[cubeIdx, gatherEdges]
        vertices[~validSlots] = 0.0
        vertexTemperatures = edgeTemperatures[cubeIdx, gatherEdges]
        vertexTemperatures[~validSlots] = 0.0

        return SurfaceMesh(
            vertices=vertices.reshape(nCubes * nSlots, 3),
            temperatures=vertexTemperatures.reshape(nCubes * nSlots),
            triangleCounts=counts,
            triangleMask=triangleMask,
            caseIndices=cases,
        )

    def _interpolateEdges(
        self,
        densities: np.ndarray,
        temperatures: np.ndarray,
        points: np.ndarray,
        isoDensity: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        '''
        Crossing position and temperature on all 12 edges of all cubes.

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            positions (nCubes, 12, 3), temperatures (nCubes, 12)
        '''
        v0 = densities[self._edgeStart]
        v1 = densities[self._edgeEnd]
        delta = v1 - v0

        flat = np.abs(delta) < self._isoEpsilon
        safeDelta = np.where(flat, 1.0, delta)
        t = np.where(flat, 0.5, np.clip((isoDensity - v0) / safeDelta, 0.0, 1.0))

        p0 = points[self._edgeStart]
        p1 = points[self._edgeEnd]
        positions = p0 + t[..., np.newaxis] * (p1 - p0)

        T0 = temperatures[self._edgeStart]
        T1 = temperatures[self._edgeEnd]
        edgeTemperatures = T0 + t * (T1 - T0)

        return (positions, edgeTemperatures)
