# -- Exporter and Runner Tests -- #

import json

import numpy as np
import pytest
import trimesh

from thermoFluid.sph.protocols import SimulationBounds, SimulationConfig
from thermoFluid.scenarios.spawner import SpawnConfig, createSpawnData
from thermoFluid.simulation import ThermoFluidSimulation
from thermoFluid.surface.lattice import GridLattice
from thermoFluid.surface.marchingCubes import MarchingCubesExtractor
from thermoFluid.export.frameExporter import FrameExporter
from thermoFluid.export.meshExporter import exportSurface, exportSurfaceSequence
from thermoFluid.visualization import plotParticles, plotSurface, plotFrame, saveFigure
from thermoFluid.runner import ThermoFluidRunner, main


#--------------------------------------------------------------------#
# -- Helpers -- #
#--------------------------------------------------------------------#

def _sphereSurface(radius: float = 0.5):
    bounds = SimulationBounds(centre=(0.0, 0.0, 0.0), size=(2.0, 2.0, 2.0))
    lattice = GridLattice((12, 12, 12), bounds)
    distances = np.linalg.norm(lattice.positions, axis=1)
    return MarchingCubesExtractor(lattice).extract(distances, 300.0 + distances, radius)


def _tinyScene() -> tuple[SimulationConfig, SpawnConfig]:
    config = SimulationConfig(
        latticeResolution=(10, 10, 10),
        latticeBounds=SimulationBounds(size=(1.0, 1.0, 1.0)),
        iterationsPerFrame=2,
    )
    spawn = SpawnConfig(particlesPerAxis=(5, 5, 5), size=(0.4, 0.4, 0.4))
    return config, spawn


#--------------------------------------------------------------------#
# -- Mesh Export -- #
#--------------------------------------------------------------------#

@pytest.mark.parametrize('extension', ['stl', 'ply'])
def test_exportSurfaceWritesReadableMesh(tmp_path, extension):
    surface = _sphereSurface()
    path = tmp_path / 'meshes' / f'sphere.{extension}'

    written = exportSurface(surface, str(path))

    assert path.exists()
    loaded = trimesh.load(str(path), force='mesh')
    assert len(loaded.faces) == surface.nTriangles
    assert len(written.faces) == surface.nTriangles


def test_exportEmptySurfaceRaises(tmp_path):
    empty = _sphereSurface(radius=5.0)
    assert empty.nTriangles == 0
    with pytest.raises(ValueError):
        exportSurface(empty, str(tmp_path / 'empty.stl'))


def test_exportSequenceSkipsEmptySurfaces(tmp_path):
    paths = exportSurfaceSequence(
        [_sphereSurface(), _sphereSurface(radius=5.0), _sphereSurface(0.7)],
        str(tmp_path),
        prefix='frame',
    )
    assert [p.split('_')[-1] for p in paths] == ['0000.stl', '0002.stl']


#--------------------------------------------------------------------#
# -- Frame Export -- #
#--------------------------------------------------------------------#

def test_frameExporterWritesAllFrames(tmp_path):
    config, spawn = _tinyScene()
    sim = ThermoFluidSimulation(config, createSpawnData(spawn))
    exporter = FrameExporter()

    exporter.addFrame(sim.currentState, sim.particles, sim.surface)
    sim.step()
    exporter.addFrame(sim.currentState, sim.particles, sim.surface)

    path = exporter.export(config, outputDir=str(tmp_path), scenarioName='test')
    with open(path) as f:
        data = json.load(f)

    assert data['meta']['nFrames'] == 2
    assert data['meta']['nParticles'] == 125
    assert data['config']['latticeResolution'] == [10, 10, 10]
    assert len(data['frames'][1]['temperatures']) == 125
    assert len(data['history']['times']) == 2

    surface = data['frames'][1]['surface']
    assert len(surface['faces']) == sim.surface.nTriangles
    assert len(surface['vertices']) == 3 * sim.surface.nTriangles


#--------------------------------------------------------------------#
# -- Runner -- #
#--------------------------------------------------------------------#

def test_runnerRunsFramesWithoutExport(tmp_path):
    config, spawn = _tinyScene()
    runner = ThermoFluidRunner()

    results = runner.run(config, spawn, nFrames=2, doExport=False, exportDir=str(tmp_path))

    assert results['nFrames'] == 3
    assert results['exportPath'] is None
    assert results['finalState'].step == 4
    assert len(runner.history) == 3
    assert not any(tmp_path.iterdir())


def test_runnerRejectsNegativeFrames():
    config, spawn = _tinyScene()
    with pytest.raises(ValueError):
        ThermoFluidRunner().run(config, spawn, nFrames=-1, doExport=False)


def test_mainFromConfigExportsEverything(tmp_path):
    configPath = tmp_path / 'scene.json'
    configPath.write_text(json.dumps({
        'run': {'frames': 5, 'scenarioName': 'tiny'},
        'simulation': {'iterationsPerFrame': 2},
        'surface': {'resolution': [10, 10, 10], 'bounds': {'size': [1.0, 1.0, 1.0]}},
        'spawn': {'particlesPerAxis': [5, 5, 5], 'size': [0.4, 0.4, 0.4]},
    }))
    outputDir = tmp_path / 'out'

    main([
        '--config', str(configPath),
        '--frames', '2',
        '--output-dir', str(outputDir),
        '--mesh-format', 'stl',
        '--plot',
    ])

    exported = list(outputDir.glob('thermoFluid_tiny_*.json'))
    assert len(exported) == 1
    with open(exported[0]) as f:
        assert json.load(f)['meta']['nFrames'] == 3

    assert (outputDir / 'tiny_final.html').exists()
    assert (outputDir / 'tiny_history.html').exists()
    assert len(list((outputDir / 'meshes').glob('tiny_*.stl'))) == 2


#--------------------------------------------------------------------#
# -- Figures -- #
#--------------------------------------------------------------------#

def test_figuresCarryParticlesAndSurface(tmp_path):
    particles = createSpawnData(SpawnConfig(particlesPerAxis=3))
    surface = _sphereSurface()

    assert len(plotParticles(particles).data) == 1
    meshFigure = plotSurface(surface)
    assert meshFigure.data[0].type == 'mesh3d'
    assert len(meshFigure.data[0].i) == surface.nTriangles
    assert len(plotFrame(particles, surface).data) == 2

    path = saveFigure(plotFrame(particles, surface), str(tmp_path / 'figs' / 'frame.html'))
    assert (tmp_path / 'figs' / 'frame.html').exists()
    assert path.endswith('frame.html')
