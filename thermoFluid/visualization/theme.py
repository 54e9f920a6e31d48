# -- Visualization Theme -- #

'''
Centralized dark-mode theme for all thermoFluid Plotly figures.

Change colors or template here to restyle every plot at once.
'''

# Plotly template
TEMPLATE = 'plotly_dark'

# History panel line colors (visible on dark backgrounds)
BLUE = '#42A5F5'
RED = '#EF5350'
GREEN = '#66BB6A'

# Cold -> hot colorscale for temperatures
TEMPERATURE_COLORSCALE = [
    [0.0, '#2166AC'],
    [0.35, '#67A9CF'],
    [0.6, '#FDDBC7'],
    [0.8, '#EF8A62'],
    [1.0, '#B2182B'],
]

# Marker size of particle scatter plots
PARTICLE_MARKER_SIZE = 3

# Isosurface opacity when drawn over particles
SURFACE_OPACITY = 0.6
