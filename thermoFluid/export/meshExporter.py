# -- Isosurface Mesh Exporter -- #

'''
Writes the extracted isosurface to standard mesh formats via trimesh.

The file type follows the extension (.stl, .ply, .obj, .glb, ...).
PLY output keeps the per-vertex temperature attribute.
'''

from __future__ import annotations

import os

import trimesh

from thermoFluid.surface.marchingCubes import SurfaceMesh


def exportSurface(
    surface: SurfaceMesh,
    filepath: str,
    mergeVertices: bool = True,
) -> trimesh.Trimesh:
    '''
    Export the valid triangles of an isosurface.

    Parameters:
    -----------
    surface : SurfaceMesh
        Marching cubes output
    filepath : str
        Destination path; the extension selects the format
    mergeVertices : bool
        Weld coincident vertices before writing

    Returns:
    --------
    trimesh.Trimesh : The mesh that was written

    Raises:
    -------
    ValueError : If the surface has no triangles
    '''
    if surface.nTriangles == 0:
        raise ValueError('Surface has no triangles to export')

    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)

    mesh = surface.toTrimesh(mergeVertices=mergeVertices)
    mesh.export(filepath)
    return mesh


def exportSurfaceSequence(
    surfaces: list[SurfaceMesh],
    outputDir: str,
    prefix: str = 'surface',
    extension: str = 'stl',
) -> list[str]:
    '''
    Export one mesh file per frame, skipping empty surfaces.

    Parameters:
    -----------
    surfaces : list[SurfaceMesh]
        Isosurfaces in frame order
    outputDir : str
        Output directory path
    prefix : str
        Filename prefix
    extension : str
        Mesh format extension

    Returns:
    --------
    list[str] : Paths of the written files
    '''
    os.makedirs(outputDir, exist_ok=True)
    paths = []
    for frameIdx, surface in enumerate(surfaces):
        if surface.nTriangles == 0:
            continue
        path = os.path.join(outputDir, f'{prefix}_{frameIdx:04d}.{extension}')
        exportSurface(surface, path)
        paths.append(path)
    return paths
