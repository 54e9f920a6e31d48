# -- Simulation Scenarios Package -- #

'''
Initial particle layouts for the thermal SPH fluid.

Each scenario provides the spawned particle block and its material
constants; the simulation stores it as the reset state.
'''

from thermoFluid.scenarios.spawner import SpawnConfig, createSpawnData
