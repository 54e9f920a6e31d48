# -- Visualization Package -- #

'''
Plotly figures of particles, isosurfaces and run history.
'''

from thermoFluid.visualization.surfacePlots import (
    plotParticles,
    plotSurface,
    plotFrame,
    plotHistory,
    saveFigure,
)
