# -- Isosurface Package -- #

'''
Isosurface reconstruction of the particle fluid.

Samples density and temperature on a fixed lattice and triangulates
the density isosurface with Marching Cubes.
'''

from thermoFluid.surface.lattice import GridLattice
from thermoFluid.surface.scalarField import ScalarFieldSampler, LatticeSample
from thermoFluid.surface.marchingCubes import MarchingCubesExtractor, SurfaceMesh
