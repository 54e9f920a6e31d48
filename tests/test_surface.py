# -- Lattice, Scalar Field and Marching Cubes Tests -- #

import numpy as np
import pytest

from thermoFluid.sph.protocols import SimulationBounds
from thermoFluid.sph.kernels import SpikyPow2Kernel
from thermoFluid.sph.neighborSearch import SpatialHashIndex
from thermoFluid.surface.tables import (
    CORNER_OFFSETS,
    EDGE_CORNERS,
    EDGE_TABLE,
    TRIANGLE_COUNTS,
    TRIANGLE_TABLE,
)
from thermoFluid.surface.lattice import GridLattice
from thermoFluid.surface.scalarField import ScalarFieldSampler
from thermoFluid.surface.marchingCubes import MarchingCubesExtractor


UNIT_CUBE = SimulationBounds(centre=(0.5, 0.5, 0.5), size=(1.0, 1.0, 1.0))


#--------------------------------------------------------------------#
# -- Tables -- #
#--------------------------------------------------------------------#

def test_edgeTableMatchesCornerSigns():
    for case in range(256):
        below = [(case >> c) & 1 for c in range(8)]
        crossing = 0
        for edge, (a, b) in enumerate(EDGE_CORNERS):
            if below[a] != below[b]:
                crossing |= 1 << edge
        assert EDGE_TABLE[case] == crossing, f'case {case}'


def test_triangleCountsWithinLimits():
    assert TRIANGLE_COUNTS[0] == 0
    assert TRIANGLE_COUNTS[255] == 0
    assert TRIANGLE_COUNTS.max() <= 5
    assert np.all(TRIANGLE_TABLE[:, 15] == -1)


#--------------------------------------------------------------------#
# -- Lattice -- #
#--------------------------------------------------------------------#

def test_latticeFlatIndexAndPositions():
    bounds = SimulationBounds(centre=(1.0, 0.0, -1.0), size=(2.0, 4.0, 6.0))
    lattice = GridLattice((3, 4, 5), bounds)

    assert lattice.nVertices == 60
    assert lattice.nCubes == 2 * 3 * 4
    assert lattice.flatIndex(2, 1, 3) == 2 + 3 * 1 + 12 * 3

    np.testing.assert_allclose(lattice.positions[0], bounds.minCorner)
    np.testing.assert_allclose(lattice.positions[-1], bounds.maxCorner)
    np.testing.assert_allclose(lattice.positions[lattice.flatIndex(1, 0, 0)], [1.0, -2.0, -4.0])
    np.testing.assert_allclose(lattice.spacing, [1.0, 4.0 / 3.0, 1.5])


def test_latticeCubeCornersFollowCornerOffsets():
    lattice = GridLattice((4, 3, 3), UNIT_CUBE)
    nx, ny = 4, 3
    expected = [ox + nx * oy + nx * ny * oz for ox, oy, oz in CORNER_OFFSETS]
    np.testing.assert_array_equal(lattice.cubeCorners[0], expected)

    # Second cube steps one vertex along x
    np.testing.assert_array_equal(lattice.cubeCorners[1], np.array(expected) + 1)


def test_latticeRejectsDegenerateAxis():
    with pytest.raises(ValueError):
        GridLattice((1, 4, 4), UNIT_CUBE)


#--------------------------------------------------------------------#
# -- Scalar Field -- #
#--------------------------------------------------------------------#

def _sample(positions, temperatures, resolution=(5, 5, 5), h=0.3, ambient=293.0):
    lattice = GridLattice(resolution, UNIT_CUBE)
    index = SpatialHashIndex(h)
    index.build(positions)
    sampler = ScalarFieldSampler(lattice, h, ambient)
    return lattice, sampler.sample(index, positions, temperatures)


def test_scalarFieldSingleParticle():
    positions = np.array([[0.0, 0.0, 0.0]])
    lattice, sample = _sample(positions, np.array([800.0]))

    origin = lattice.flatIndex(0, 0, 0)
    assert sample.densities[origin] == pytest.approx(SpikyPow2Kernel().evaluate(0.0, 0.3))
    assert sample.temperatures[origin] == pytest.approx(800.0)

    far = lattice.flatIndex(4, 4, 4)
    assert sample.densities[far] == 0.0
    assert sample.temperatures[far] == 293.0


def test_scalarFieldTemperatureIsShepardAverage():
    positions = np.array([[0.4, 0.5, 0.5], [0.6, 0.5, 0.5]])
    lattice, sample = _sample(positions, np.array([300.0, 500.0]))

    centre = lattice.flatIndex(2, 2, 2)
    assert sample.temperatures[centre] == pytest.approx(400.0)

    covered = sample.densities > 0.0
    assert np.all(sample.temperatures[covered] >= 300.0 - 1e-9)
    assert np.all(sample.temperatures[covered] <= 500.0 + 1e-9)


#--------------------------------------------------------------------#
# -- Marching Cubes -- #
#--------------------------------------------------------------------#

def _singleCube():
    lattice = GridLattice((2, 2, 2), UNIT_CUBE)
    return lattice, MarchingCubesExtractor(lattice)


@pytest.mark.parametrize('value', [0.0, 2.0])
def test_uniformFieldHasNoTriangles(value):
    lattice, extractor = _singleCube()
    surface = extractor.extract(np.full(8, value), np.full(8, 300.0), isoDensity=1.0)

    assert surface.nTriangles == 0
    assert not surface.triangleMask.any()
    assert surface.vertices.shape == (15, 3)


def test_singleCornerBelowGivesOneTriangle():
    lattice, extractor = _singleCube()
    densities = np.ones(8)
    densities[lattice.flatIndex(0, 0, 0)] = 0.0
    temperatures = np.full(8, 300.0)
    temperatures[lattice.flatIndex(0, 0, 0)] = 100.0

    surface = extractor.extract(densities, temperatures, isoDensity=0.25)

    assert surface.caseIndices[0] == 1
    assert surface.nTriangles == 1
    vertices, faces, temps = surface.compact()
    assert faces.shape == (1, 3)

    # Edges 0, 8 and 3 leave corner 0 along x, z and y
    expected = {(0.25, 0.0, 0.0), (0.0, 0.0, 0.25), (0.0, 0.25, 0.0)}
    assert {tuple(np.round(v, 12)) for v in vertices} == expected
    np.testing.assert_allclose(temps, 150.0)


@pytest.mark.parametrize('corner', range(8))
def test_singleCornerAboveGivesOneTriangle(corner):
    lattice, extractor = _singleCube()
    offset = np.array(CORNER_OFFSETS[corner], dtype=float)
    densities = np.zeros(8)
    densities[lattice.flatIndex(*CORNER_OFFSETS[corner])] = 1.0

    surface = extractor.extract(densities, np.full(8, 300.0), isoDensity=0.25)

    assert surface.caseIndices[0] == 255 - (1 << corner)
    assert surface.nTriangles == 1
    vertices, faces, _ = surface.compact()
    assert faces.shape == (1, 3)

    # Crossing sits 3/4 of the way from the raised corner to each neighbour
    expected = set()
    for a, b in EDGE_CORNERS:
        if corner in (a, b):
            other = np.array(CORNER_OFFSETS[b if a == corner else a], dtype=float)
            expected.add(tuple(np.round(offset + 0.75 * (other - offset), 12)))
    assert len(expected) == 3
    assert {tuple(np.round(v, 12)) for v in vertices} == expected


def test_flatEdgeCrossesAtMidpoint():
    lattice, extractor = _singleCube()
    densities = np.full(8, 1.0)
    densities[lattice.flatIndex(0, 0, 0)] = 1.0 - 1e-12
    surface = extractor.extract(densities, np.full(8, 300.0), isoDensity=1.0)

    vertices, _, _ = surface.compact()
    expected = {(0.5, 0.0, 0.0), (0.0, 0.0, 0.5), (0.0, 0.5, 0.0)}
    assert {tuple(np.round(v, 12)) for v in vertices} == expected


def test_sphereIsosurfaceEnclosesExpectedVolume():
    bounds = SimulationBounds(centre=(0.0, 0.0, 0.0), size=(2.0, 2.0, 2.0))
    lattice = GridLattice((25, 25, 25), bounds)
    extractor = MarchingCubesExtractor(lattice)
    radius = 0.6

    distances = np.linalg.norm(lattice.positions, axis=1)
    temperatures = 300.0 + 100.0 * distances
    surface = extractor.extract(distances, temperatures, isoDensity=radius)

    assert surface.nTriangles > 0
    assert np.all(surface.triangleCounts == surface.triangleMask.sum(axis=1))

    soup = surface.toTrimesh()
    assert abs(soup.volume) == pytest.approx(4.0 / 3.0 * np.pi * radius ** 3, rel=0.05)
    np.testing.assert_allclose(soup.vertex_attributes['temperature'], 360.0, atol=1e-6)

    welded = surface.toTrimesh(mergeVertices=True)
    assert len(welded.faces) == surface.nTriangles
    assert len(welded.vertices) < 3 * surface.nTriangles
