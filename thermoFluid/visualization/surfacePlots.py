# -- Particle and Isosurface Visualizations -- #

'''
Plotly-based interactive figures of the thermal SPH fluid.
'''

from __future__ import annotations

import os

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from thermoFluid.sph.particles import ParticleSystem
from thermoFluid.sph.protocols import SimulationState
from thermoFluid.surface.marchingCubes import SurfaceMesh
from thermoFluid.visualization import theme


def _particleTrace(particles: ParticleSystem, cmin: float, cmax: float) -> go.Scatter3d:
    p = particles.positions
    return go.Scatter3d(
        x=p[:, 0], y=p[:, 1], z=p[:, 2],
        mode='markers',
        name='Particles',
        marker=dict(
            size=theme.PARTICLE_MARKER_SIZE,
            color=particles.temperatures,
            colorscale=theme.TEMPERATURE_COLORSCALE,
            cmin=cmin,
            cmax=cmax,
            colorbar=dict(title='T (K)', len=0.75),
        ),
        hovertemplate=(
            'X: %{x:.3f}m<br>'
            'Y: %{y:.3f}m<br>'
            'Z: %{z:.3f}m<br>'
            'T: %{marker.color:.1f}K<extra></extra>'
        ),
    )


def _surfaceTrace(surface: SurfaceMesh, cmin: float, cmax: float, opacity: float) -> go.Mesh3d:
    vertices, faces, temperatures = surface.compact()
    return go.Mesh3d(
        x=vertices[:, 0], y=vertices[:, 1], z=vertices[:, 2],
        i=faces[:, 0], j=faces[:, 1], k=faces[:, 2],
        intensity=temperatures,
        colorscale=theme.TEMPERATURE_COLORSCALE,
        cmin=cmin,
        cmax=cmax,
        opacity=opacity,
        name='Isosurface',
        showscale=False,
    )


def _temperatureRange(values: np.ndarray) -> tuple[float, float]:
    if len(values) == 0:
        return (0.0, 1.0)
    lo, hi = float(np.min(values)), float(np.max(values))
    return (lo, hi if hi > lo else lo + 1.0)


def _sceneLayout(fig: go.Figure, title: str) -> None:
    fig.update_layout(
        title=title,
        scene=dict(
            xaxis_title='X (m)',
            yaxis_title='Y (m)',
            zaxis_title='Z (m)',
            aspectmode='data',
        ),
        template=theme.TEMPLATE,
        height=650,
    )


def plotParticles(particles: ParticleSystem, title: str = 'Particles') -> go.Figure:
    '''
    3D scatter of the particles colored by temperature.

    Parameters:
    -----------
    particles : ParticleSystem
        Particle system
    title : str
        Plot title

    Returns:
    --------
    go.Figure : Plotly figure
    '''
    cmin, cmax = _temperatureRange(particles.temperatures)
    fig = go.Figure()
    fig.add_trace(_particleTrace(particles, cmin, cmax))
    _sceneLayout(fig, title)
    return fig


def plotSurface(surface: SurfaceMesh, title: str = 'Isosurface') -> go.Figure:
    '''
    Isosurface mesh colored by interpolated temperature.

    Parameters:
    -----------
    surface : SurfaceMesh
        Marching cubes output
    title : str
        Plot title

    Returns:
    --------
    go.Figure : Plotly figure
    '''
    _, _, temperatures = surface.compact()
    cmin, cmax = _temperatureRange(temperatures)
    fig = go.Figure()
    fig.add_trace(_surfaceTrace(surface, cmin, cmax, opacity=1.0))
    _sceneLayout(fig, f'{title} ({surface.nTriangles} triangles)')
    return fig


def plotFrame(
    particles: ParticleSystem,
    surface: SurfaceMesh,
    title: str = 'Thermal Fluid',
) -> go.Figure:
    '''
    Particles and isosurface on a shared temperature scale.

    Parameters:
    -----------
    particles : ParticleSystem
        Particle system
    surface : SurfaceMesh
        Marching cubes output
    title : str
        Plot title

    Returns:
    --------
    go.Figure : Plotly figure
    '''
    cmin, cmax = _temperatureRange(particles.temperatures)
    fig = go.Figure()
    fig.add_trace(_particleTrace(particles, cmin, cmax))
    if surface.nTriangles > 0:
        fig.add_trace(_surfaceTrace(surface, cmin, cmax, opacity=theme.SURFACE_OPACITY))
    _sceneLayout(fig, title)
    return fig


def plotHistory(states: list[SimulationState]) -> go.Figure:
    '''
    Kinetic energy, mean temperature and triangle count over time.

    Parameters:
    -----------
    states : list[SimulationState]
        Recorded states in time order

    Returns:
    --------
    go.Figure : Plotly figure with three stacked panels
    '''
    times = [s.time for s in states]

    fig = make_subplots(
        rows=3, cols=1, shared_xaxes=True,
        subplot_titles=('Kinetic Energy', 'Mean Temperature', 'Isosurface Triangles'),
    )
    fig.add_trace(go.Scatter(
        x=times, y=[s.kineticEnergy for s in states], mode='lines',
        line=dict(color=theme.BLUE, width=2), showlegend=False,
    ), row=1, col=1)
    fig.add_trace(go.Scatter(
        x=times, y=[s.meanTemperature for s in states], mode='lines',
        line=dict(color=theme.RED, width=2), showlegend=False,
    ), row=2, col=1)
    fig.add_trace(go.Scatter(
        x=times, y=[s.nTriangles for s in states], mode='lines',
        line=dict(color=theme.GREEN, width=2), showlegend=False,
    ), row=3, col=1)

    fig.update_xaxes(title_text='Time (s)', row=3, col=1)
    fig.update_layout(template=theme.TEMPLATE, height=700)
    return fig


def saveFigure(fig: go.Figure, filepath: str) -> str:
    '''Write a figure as standalone HTML and return the path.'''
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.write_html(filepath)
    return filepath
