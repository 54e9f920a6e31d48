# -- Export Package -- #

'''
Data export utilities for thermal SPH results.

Frame snapshots as JSON and isosurface meshes through trimesh.
'''

from thermoFluid.export.frameExporter import FrameExporter
from thermoFluid.export.meshExporter import exportSurface, exportSurfaceSequence
