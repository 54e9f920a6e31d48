# -- Physical Constants for Thermal SPH Simulation -- #

'''
Physical and numerical constants for the thermally-coupled SPH fluid.
All values in SI units unless otherwise noted.

References:
-----------
van der Waals (1873) -- On the continuity of the gaseous and liquid states
Incropera et al. (2007) -- Fundamentals of heat and mass transfer
'''

#--------------------------------------------------------------------#
# -- Thermodynamic Constants -- #
#--------------------------------------------------------------------#

# Universal gas constant [J/(mol*K)]
gasConstant: float = 8.3

# Molar mass of water [kg/mol]
waterMolarMass: float = 0.018

# Van der Waals cohesion term for water [Pa*m^6/mol^2]
waterCohesionA: float = 0.5536

# Van der Waals covolume for water [m^3/mol]
waterCovolumeB: float = 3.049e-5

# Bulk density of liquid water [kg/m^3]
waterBulkDensity: float = 1000.0

# Specific heat capacity of water [J/(kg*K)], scaled to simulation units
waterThermalCapacity: float = 4.186

# Reference ambient temperature [K]
ambientTemperature: float = 293.0

# Peak spawn temperature of the hot end of the block [K]
spawnMaxTemperature: float = 1273.0

#--------------------------------------------------------------------#
# -- Particle Representation -- #
#--------------------------------------------------------------------#

# Radius of the fluid sphere represented by one particle [m]
defaultParticleRadius: float = 0.002

#--------------------------------------------------------------------#
# -- SPH Numerical Parameters -- #
#--------------------------------------------------------------------#

# Default smoothing radius [m]
defaultSmoothingRadius: float = 0.2

# Gravitational acceleration along world y [m/s^2]
defaultGravity: float = -10.0

# Velocity retained (and reflected) on a boundary hit
defaultCollisionDamping: float = 0.05

# Fraction of the particle volume below which V - nb is floored
covolumeFloorFraction: float = 1e-3

# Distances below this are treated as coincident particles [m]
distanceEpsilon: float = 1e-9

# Density differences below this make an edge crossing ambiguous
isoEpsilon: float = 1e-9

# Real-axis stability bound of classical RK4 for linear relaxation (rate * h)
rk4StabilityLimit: float = 2.785

#--------------------------------------------------------------------#
# -- Spatial Hash Constants -- #
#--------------------------------------------------------------------#

# Large primes mixing the three cell coordinates
hashPrimeX: int = 15823
hashPrimeY: int = 9737333
hashPrimeZ: int = 440817757

#--------------------------------------------------------------------#
# -- Capacity Limits -- #
#--------------------------------------------------------------------#

# Largest particle count accepted at construction
maxParticles: int = 2_000_000

# Largest lattice vertex count accepted at construction
maxLatticeVertices: int = 8_000_000
