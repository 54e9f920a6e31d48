# -- Simulation Frame Exporter -- #

'''
Exports thermal SPH frames as JSON for offline viewers.

Collects particle and isosurface snapshots during a run and writes
them to one compact JSON file together with the run metadata and the
diagnostic history.
'''

from __future__ import annotations

import json
import os
from datetime import datetime

import numpy as np

from thermoFluid.sph.protocols import SimulationConfig, SimulationState
from thermoFluid.sph.particles import ParticleSystem
from thermoFluid.surface.marchingCubes import SurfaceMesh


class FrameExporter:
    '''
    Accumulates particle and isosurface snapshots for one JSON file.

    Usage:
        exporter = FrameExporter()
        # After every frame:
        exporter.addFrame(state, particles, surface)
        # Once the run is over:
        exporter.export(config, outputDir='output')

    Output JSON format:
    {
        "meta": { "type": "thermoFluid", "nFrames": 60, "created": "...", ... },
        "config": { "smoothingRadius": 0.2, ... },
        "frames": [
            {
                "time": 0.0,
                "positions": [[x0, y0, z0], ...],
                "temperatures": [T0, T1, ...],
                "densities": [rho0, rho1, ...],
                "surface": { "vertices": [...], "faces": [...], "temperatures": [...] }
            },
            ...
        ],
        "history": {
            "times": [...],
            "kinetic": [...],
            "meanTemperature": [...],
            "nTriangles": [...]
        }
    }

    Parameters:
    -----------
    includeSurface : bool
        Store the compacted isosurface with every frame
    '''

    def __init__(self, includeSurface: bool = True) -> None:
        self._includeSurface = includeSurface
        self._frames: list[dict] = []
        self._history: dict[str, list[float]] = {
            'times': [],
            'kinetic': [],
            'meanTemperature': [],
            'nTriangles': [],
        }

    @property
    def nFrames(self) -> int:
        '''Frames accumulated so far.'''
        return len(self._frames)

    def addFrame(
        self,
        state: SimulationState,
        particles: ParticleSystem,
        surface: SurfaceMesh | None = None,
    ) -> None:
        '''
        Snapshot particles, surface and diagnostics of one frame.

        Parameters:
        -----------
        state : SimulationState
            Diagnostics after the frame
        particles : ParticleSystem
            Particle buffers after the frame
        surface : SurfaceMesh | None
            Isosurface after the frame, or None to omit it
        '''
        frame = {
            'time': round(state.time, 6),
            'positions': np.round(particles.positions, 6).tolist(),
            'temperatures': np.round(particles.temperatures, 3).tolist(),
            'densities': np.round(particles.densities, 3).tolist(),
        }

        if self._includeSurface and surface is not None:
            vertices, faces, temperatures = surface.compact()
            frame['surface'] = {
                'vertices': np.round(vertices, 6).tolist(),
                'faces': faces.tolist(),
                'temperatures': np.round(temperatures, 3).tolist(),
            }

        self._frames.append(frame)

        self._history['times'].append(round(state.time, 6))
        self._history['kinetic'].append(round(state.kineticEnergy, 6))
        self._history['meanTemperature'].append(round(state.meanTemperature, 6))
        self._history['nTriangles'].append(state.nTriangles)

    def export(
        self,
        config: SimulationConfig,
        outputDir: str = 'output',
        scenarioName: str = 'hotBlock',
    ) -> str:
        '''
        Write the accumulated frames, metadata and history.

        Parameters:
        -----------
        config : SimulationConfig
            Configuration echoed into the 'config' section
        outputDir : str
            Directory created if missing
        scenarioName : str
            Label embedded in the file name

        Returns:
        --------
        str : Path of the written file
        '''
        os.makedirs(outputDir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = f'thermoFluid_{scenarioName}_{timestamp}.json'
        filepath = os.path.join(outputDir, filename)

        output = {
            'meta': {
                'type': 'thermoFluid',
                'nFrames': len(self._frames),
                'nParticles': len(self._frames[0]['positions']) if self._frames else 0,
                'created': datetime.now().isoformat(),
            },
            'config': {
                'smoothingRadius': config.smoothingRadius,
                'targetDensity': config.targetDensity,
                'isoDensity': config.isoDensity,
                'latticeResolution': list(config.latticeResolution),
                'boundsCentre': list(config.bounds.centre),
                'boundsSize': list(config.bounds.size),
                'frameTime': config.frameTime,
                'iterationsPerFrame': config.iterationsPerFrame,
            },
            'frames': self._frames,
            'history': self._history,
        }

        with open(filepath, 'w') as f:
            json.dump(output, f, indent=None, separators=(',', ':'))

        return filepath
