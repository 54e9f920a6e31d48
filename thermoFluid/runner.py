# -- Thermal Fluid Simulation Runner -- #

'''
Command-line entry point for running thermal SPH simulations.

Loads the scene configuration, runs the simulation frame by frame,
reports progress, and optionally exports frame data, isosurface meshes
and an interactive figure.

Usage:
    python -m thermoFluid                                  # Small hot block
    python -m thermoFluid --preset standard                # Standard quality
    python -m thermoFluid --config configs/thermo_default.json
    python -m thermoFluid --frames 120 --mesh-format ply   # Mesh per frame
    python -m thermoFluid --no-export                      # Skip all export
'''

from __future__ import annotations

import argparse
import json
import os
import time as timeModule

from tqdm import tqdm

from thermoFluid.sph.protocols import SimulationConfig, SimulationState
from thermoFluid.scenarios.spawner import SpawnConfig, createSpawnData
from thermoFluid.simulation import ThermoFluidSimulation
from thermoFluid.export.frameExporter import FrameExporter
from thermoFluid.export.meshExporter import exportSurface
from thermoFluid.visualization.surfacePlots import plotFrame, plotHistory, saveFigure


#--------------------------------------------------------------------#
# -- CLI Argument Parser -- #
#--------------------------------------------------------------------#

def buildParser() -> argparse.ArgumentParser:
    '''Build the CLI argument parser.'''
    parser = argparse.ArgumentParser(
        description='thermoFluid -- thermal SPH fluid with isosurface extraction',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to JSON configuration file',
    )
    parser.add_argument(
        '--preset', type=str, default='small',
        choices=['small', 'standard'],
        help='Scene preset (default: small)',
    )
    parser.add_argument(
        '--frames', type=int, default=None,
        help='Number of frames to simulate (default: 60, or the config value)',
    )
    parser.add_argument(
        '--no-export', action='store_true',
        help='Skip frame data, mesh and figure export',
    )
    parser.add_argument(
        '--mesh-format', type=str, default='none',
        choices=['none', 'stl', 'ply', 'obj'],
        help='Write the isosurface of every exported frame (default: none)',
    )
    parser.add_argument(
        '--plot', action='store_true',
        help='Write an HTML figure of the final frame and the run history',
    )
    parser.add_argument(
        '--output-dir', type=str, default='output',
        help='Output directory for exported data (default: output)',
    )

    return parser


#--------------------------------------------------------------------#
# -- Runner Class -- #
#--------------------------------------------------------------------#

DEFAULT_FRAMES = 60


class ThermoFluidRunner:
    '''
    Runs a thermal SPH simulation and stores results.

    Handles the full pipeline: scene setup, frame loop with progress
    reporting, and optional export.
    '''

    def __init__(self) -> None:
        self._history: list[SimulationState] = []
        self._exporter: FrameExporter = FrameExporter()

    @property
    def history(self) -> list[SimulationState]:
        '''States recorded after every frame.'''
        return self._history

    def runFromConfig(
        self,
        configPath: str,
        nFrames: int | None = None,
        doExport: bool = True,
        exportDir: str = 'output',
        meshFormat: str = 'none',
        doPlot: bool = False,
    ) -> dict:
        '''
        Run a simulation from a JSON configuration file.

        The 'run' section may set 'frames' and 'scenarioName'.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file
        nFrames : int | None
            Overrides the configured frame count
        doExport, exportDir, meshFormat, doPlot :
            As for `run`

        Returns:
        --------
        dict : Simulation results summary
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)

        simConfig = SimulationConfig.fromDict(data)
        spawnConfig = SpawnConfig.fromDict(data)
        runSection = data.get('run', {})

        return self.run(
            simConfig,
            spawnConfig,
            nFrames=nFrames if nFrames is not None else runSection.get('frames', DEFAULT_FRAMES),
            doExport=doExport,
            exportDir=exportDir,
            meshFormat=meshFormat,
            doPlot=doPlot,
            scenarioName=runSection.get('scenarioName', 'hotBlock'),
        )

    def run(
        self,
        simConfig: SimulationConfig,
        spawnConfig: SpawnConfig,
        nFrames: int = DEFAULT_FRAMES,
        doExport: bool = True,
        exportDir: str = 'output',
        meshFormat: str = 'none',
        doPlot: bool = False,
        scenarioName: str = 'hotBlock',
    ) -> dict:
        '''
        Run a simulation for a number of frames.

        Parameters:
        -----------
        simConfig : SimulationConfig
            Simulation configuration
        spawnConfig : SpawnConfig
            Initial particle block
        nFrames : int
            Number of frames to simulate
        doExport : bool
            Whether to export frame data (and meshes/figures if requested)
        exportDir : str
            Output directory
        meshFormat : str
            'none' or a trimesh export extension
        doPlot : bool
            Whether to write HTML figures
        scenarioName : str
            Scenario name for the filenames

        Returns:
        --------
        dict : Simulation results summary
        '''
        if nFrames < 0:
            raise ValueError(f'nFrames must be non-negative, got {nFrames}')

        print()
        print('=' * 62)
        print('  THERMOFLUID -- THERMAL SPH SIMULATION')
        print('=' * 62)
        print()

        #--------------------------------------------------------------------#
        # Scene Setup
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  SCENE SETUP')
        print('-' * 62)

        spawnData = createSpawnData(spawnConfig)
        sim = ThermoFluidSimulation(simConfig, spawnData)

        nx, ny, nz = spawnConfig.particlesPerAxis
        lx, ly, lz = simConfig.latticeResolution
        print(f'  Particles:         {spawnData.nParticles:8d}  ({nx} x {ny} x {nz})')
        print(f'  Smoothing Radius:  {simConfig.smoothingRadius:8.4f} m')
        print(f'  Target Density:    {simConfig.targetDensity:8.1f}')
        print(f'  Iso Density:       {simConfig.isoDensity:8.1f}')
        print(f'  Lattice:           {lx:4d} x {ly} x {lz}')
        print(f'  Frame Time:        {simConfig.frameTime:8.4f} s')
        print(f'  Steps per Frame:   {simConfig.iterationsPerFrame:8d}')
        print(f'  Sub-step:          {simConfig.subStepSize:10.2e} s')
        print(f'  Frames:            {nFrames:8d}')
        print()

        self._history = [sim.currentState]
        self._exporter = FrameExporter()
        self._exporter.addFrame(sim.currentState, sim.particles, sim.surface)

        meshDir = os.path.join(exportDir, 'meshes')
        meshPaths: list[str] = []
        writeMeshes = doExport and meshFormat != 'none'

        #--------------------------------------------------------------------#
        # Frame Loop
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  RUNNING SIMULATION')
        print('-' * 62)

        wallClockStart = timeModule.time()
        progress = tqdm(range(nFrames), desc='  Frames', unit='frame')
        for frameIdx in progress:
            state = sim.runFrame()
            self._history.append(state)
            self._exporter.addFrame(state, sim.particles, sim.surface)

            if writeMeshes and sim.surface.nTriangles > 0:
                path = os.path.join(meshDir, f'{scenarioName}_{frameIdx:04d}.{meshFormat}')
                exportSurface(sim.surface, path)
                meshPaths.append(path)

            progress.set_postfix(
                T=f'{state.meanTemperature:.1f}',
                vmax=f'{state.maxVelocity:.3f}',
                tris=state.nTriangles,
            )

        wallClockSeconds = timeModule.time() - wallClockStart
        finalState = sim.currentState

        print()
        print('  Simulation complete.')
        print(f'  Total steps:       {finalState.step:8d}')
        print(f'  Wall-clock time:   {wallClockSeconds:8.1f} s')
        print(f'  Frames recorded:   {self._exporter.nFrames:8d}')
        print()

        #--------------------------------------------------------------------#
        # Export
        #--------------------------------------------------------------------#
        exportPath = None
        figurePaths: list[str] = []
        if doExport:
            print('-' * 62)
            print('  EXPORTING')
            print('-' * 62)

            exportPath = self._exporter.export(
                config=sim.config,
                outputDir=exportDir,
                scenarioName=scenarioName,
            )
            print(f'  Frames:  {exportPath}')
            if meshPaths:
                print(f'  Meshes:  {len(meshPaths)} files in {meshDir}')

            if doPlot:
                figurePaths.append(saveFigure(
                    plotFrame(sim.particles, sim.surface, title=f'{scenarioName} t={finalState.time:.3f}s'),
                    os.path.join(exportDir, f'{scenarioName}_final.html'),
                ))
                figurePaths.append(saveFigure(
                    plotHistory(self._history),
                    os.path.join(exportDir, f'{scenarioName}_history.html'),
                ))
                for path in figurePaths:
                    print(f'  Figure:  {path}')
            print()

        #--------------------------------------------------------------------#
        # Summary
        #--------------------------------------------------------------------#
        print('=' * 62)
        print('  SIMULATION SUMMARY')
        print('=' * 62)
        print(f'  Final KE:          {finalState.kineticEnergy:10.6f}')
        print(f'  Mean Temperature:  {finalState.meanTemperature:10.3f} K')
        print(f'  Max Velocity:      {finalState.maxVelocity:10.4f} m/s')
        print(f'  Min Density:       {finalState.minDensity:10.3f}')
        print(f'  Triangles:         {finalState.nTriangles:10d}')
        print(f'  Non-finite resets: {finalState.nonFiniteCount:10d}')
        print('=' * 62)
        print()

        return {
            'finalState': finalState,
            'wallClockSeconds': wallClockSeconds,
            'nFrames': self._exporter.nFrames,
            'exportPath': exportPath,
            'meshPaths': meshPaths,
            'figurePaths': figurePaths,
        }


#--------------------------------------------------------------------#
# -- CLI Entry Point -- #
#--------------------------------------------------------------------#

def main(argv: list[str] | None = None) -> None:
    '''CLI entry point.'''
    parser = buildParser()
    args = parser.parse_args(argv)

    runner = ThermoFluidRunner()

    if args.config:
        runner.runFromConfig(
            args.config,
            nFrames=args.frames,
            doExport=not args.no_export,
            exportDir=args.output_dir,
            meshFormat=args.mesh_format,
            doPlot=args.plot,
        )
    else:
        presets = {
            'small': (SimulationConfig.small, SpawnConfig.small),
            'standard': (SimulationConfig.standard, SpawnConfig.standard),
        }
        simPreset, spawnPreset = presets[args.preset]
        runner.run(
            simPreset(),
            spawnPreset(),
            nFrames=args.frames if args.frames is not None else DEFAULT_FRAMES,
            doExport=not args.no_export,
            exportDir=args.output_dir,
            meshFormat=args.mesh_format,
            doPlot=args.plot,
        )


if __name__ == '__main__':
    main()
