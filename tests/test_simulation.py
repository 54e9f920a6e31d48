# -- Thermal SPH Simulation Tests -- #

import numpy as np
import pytest
from dataclasses import fields, replace

from thermoFluid.sph.protocols import SimulationBounds, SimulationConfig, PhysicsTerms
from thermoFluid.sph.particles import ParticleSystem
from thermoFluid.sph.equationOfState import VanDerWaalsEquationOfState
from thermoFluid.scenarios.spawner import SpawnConfig, createSpawnData
from thermoFluid.simulation import ThermoFluidSimulation


#--------------------------------------------------------------------#
# -- Helpers -- #
#--------------------------------------------------------------------#

def _smallBlock(**overrides) -> ParticleSystem:
    params = dict(particlesPerAxis=(5, 5, 5), size=(0.4, 0.4, 0.4), jitterStrength=0.01, seed=1)
    params.update(overrides)
    return createSpawnData(SpawnConfig(**params))


def _config(**overrides) -> SimulationConfig:
    params = dict(latticeResolution=(8, 8, 8))
    params.update(overrides)
    return SimulationConfig(**params)


def _snapshot(sim: ThermoFluidSimulation) -> dict:
    snap = {f.name: getattr(sim.particles, f.name).copy() for f in fields(sim.particles)}
    snap['latticeDensity'] = sim.latticeSample.densities.copy()
    snap['latticeTemperature'] = sim.latticeSample.temperatures.copy()
    snap['surfaceVertices'] = sim.surface.vertices.copy()
    snap['surfaceTemperatures'] = sim.surface.temperatures.copy()
    snap['triangleCounts'] = sim.surface.triangleCounts.copy()
    return snap


def _assertIdentical(a: dict, b: dict) -> None:
    assert a.keys() == b.keys()
    for key in a:
        assert np.array_equal(a[key], b[key]), key


#--------------------------------------------------------------------#
# -- Single Step -- #
#--------------------------------------------------------------------#

def test_isolatedParticlesFallUnderGravity():
    spawn = createSpawnData(SpawnConfig(particlesPerAxis=(2, 2, 2), size=(1.0, 1.0, 1.0)))
    config = _config(
        pressureMultiplier=0.0,
        nearPressureMultiplier=0.0,
        viscosityStrength=0.0,
        bounds=SimulationBounds(size=(10.0, 10.0, 10.0)),
    )
    sim = ThermoFluidSimulation(config, spawn)
    y0 = sim.particles.positions[:, 1].copy()
    T0 = sim.particles.temperatures.copy()

    state = sim.step(0.01)

    np.testing.assert_allclose(sim.particles.velocities[:, 1], -0.1)
    np.testing.assert_allclose(sim.particles.velocities[:, [0, 2]], 0.0)
    np.testing.assert_allclose(sim.particles.positions[:, 1], y0 - 0.001)
    np.testing.assert_allclose(sim.particles.temperatures, T0)
    np.testing.assert_allclose(sim.particles.densities, sim.selfDensity)
    assert state.step == 1
    assert state.time == pytest.approx(0.01)
    assert state.dt == pytest.approx(0.01)


def test_pairForcesConserveMomentum():
    spawn = _smallBlock(initialVelocity=(0.1, 0.0, 0.0))
    terms = PhysicsTerms(gravity=False, thermostat=False)
    config = _config(
        terms=terms,
        pressureMultiplier=1.0,
        bounds=SimulationBounds(size=(20.0, 20.0, 20.0)),
    )
    sim = ThermoFluidSimulation(config, spawn)
    before = sim.currentState.momentum.copy()

    for _ in range(3):
        state = sim.step(0.002)

    assert state.nonFiniteCount == 0
    np.testing.assert_allclose(state.momentum, before, atol=1e-6)
    assert np.all(np.abs(sim.particles.positions) < 10.0)


def test_densitiesStayAboveSelfContribution():
    sim = ThermoFluidSimulation(_config(), _smallBlock())
    for _ in range(2):
        state = sim.step()
    assert state.minDensity >= sim.selfDensity * (1.0 - 1e-12)
    assert np.all(np.isfinite(sim.particles.positions))


def test_setBoundsAppliesToNextStep():
    spawn = _smallBlock(centre=(0.0, 0.0, 0.0))
    sim = ThermoFluidSimulation(_config(), spawn)
    sim.setBounds(SimulationBounds(centre=(0.0, 0.0, 0.0), size=(0.3, 0.3, 0.3)))

    sim.step(0.001)

    assert np.all(np.abs(sim.particles.positions) <= 0.15 + 1e-12)


#--------------------------------------------------------------------#
# -- Frames -- #
#--------------------------------------------------------------------#

def test_runFrameUsesDerivedSubStep():
    config = _config(frameTime=0.03, iterationsPerFrame=3, timeScale=0.5)
    sim = ThermoFluidSimulation(config, _smallBlock())
    steps = []
    sim.addStepListener(steps.append)

    state = sim.runFrame()

    assert len(steps) == 3
    assert state.step == 3
    assert all(s.dt == pytest.approx(0.005) for s in steps)
    assert state.time == pytest.approx(0.015)


def test_listenerCanBeRemoved():
    sim = ThermoFluidSimulation(_config(), _smallBlock())
    calls = []
    sim.addStepListener(calls.append)
    sim.step()
    sim.removeStepListener(calls.append)
    sim.step()

    assert len(calls) == 1
    assert calls[0].step == 1


#--------------------------------------------------------------------#
# -- Thermostat Stability -- #
#--------------------------------------------------------------------#

def _rk4Amplification(z: float) -> float:
    '''RK4 growth factor for dT/dt = -rate * T at z = rate * h.'''
    return 1.0 - z + z ** 2 / 2.0 - z ** 3 / 6.0 + z ** 4 / 24.0


def test_thermostatParticleRelaxesWithoutOvershoot():
    config = SimulationConfig.small()
    config = replace(
        config,
        terms=PhysicsTerms(
            gravity=False, pressure=False, nearPressure=False, viscosity=False,
            thermalDiffusion=False, boundaryCollisions=False,
        ),
    )
    spawn = createSpawnData(SpawnConfig(
        particlesPerAxis=(1, 1, 1), centre=config.thermostatPosition, size=(0.0, 0.0, 0.0),
    ))
    spawn.temperatures[:] = 300.0
    sim = ThermoFluidSimulation(config, spawn)

    h = config.subStepSize
    z = config.thermostatConductivity / spawn.capacities[0] * h
    history = []
    for _ in range(10):
        sim.step()
        history.append(float(sim.particles.temperatures[0]))

    Tth = config.thermostatTemperature
    assert all(300.0 <= T <= Tth for T in history)
    assert all(a <= b for a, b in zip(history, history[1:]))
    expected = Tth - (Tth - 300.0) * _rk4Amplification(z) ** 10
    assert history[-1] == pytest.approx(expected, rel=1e-9)


def test_smallPresetTemperaturesStayBounded():
    config = SimulationConfig.small()
    spawn = createSpawnData(SpawnConfig.small())
    lowest = float(spawn.temperatures.min())
    sim = ThermoFluidSimulation(config, spawn)

    for _ in range(45):
        sim.runFrame()
        T = sim.particles.temperatures
        assert np.all(np.isfinite(T))
        assert T.min() >= lowest - 1e-6
        assert T.max() <= config.thermostatTemperature + 1e-6


def test_unstableThermostatStepRaises():
    config = replace(SimulationConfig.small(), iterationsPerFrame=1)
    with pytest.raises(ValueError):
        ThermoFluidSimulation(config, _smallBlock())

    sim = ThermoFluidSimulation(_config(), _smallBlock())
    with pytest.raises(ValueError):
        sim.step(1.0 / 60.0)
    with pytest.raises(ValueError):
        sim.runFrame(frameTime=0.1)
    assert sim.stepCount == 0


def test_largeStepAcceptedWithoutThermostat():
    terms = PhysicsTerms(thermostat=False)
    config = _config(terms=terms, iterationsPerFrame=1)
    sim = ThermoFluidSimulation(config, _smallBlock())

    state = sim.step(1.0 / 60.0)

    assert state.step == 1


#--------------------------------------------------------------------#
# -- Reset -- #
#--------------------------------------------------------------------#

def test_resetIsDeterministic():
    sim = ThermoFluidSimulation(_config(), _smallBlock())
    initial = _snapshot(sim)

    for _ in range(2):
        sim.step()
    sim.reset()
    first = _snapshot(sim)

    sim.step()
    sim.reset()
    second = _snapshot(sim)

    _assertIdentical(first, second)
    _assertIdentical(initial, first)
    assert sim.time == 0.0
    assert sim.stepCount == 0


def test_resetDoesNotTouchSpawnData():
    spawn = _smallBlock()
    original = spawn.positions.copy()
    sim = ThermoFluidSimulation(_config(), spawn)
    sim.step()

    np.testing.assert_array_equal(spawn.positions, original)
    np.testing.assert_array_equal(sim.spawnData.positions, original)


class _ResettingEquationOfState(VanDerWaalsEquationOfState):
    '''Calls back into the simulation in the middle of a step.'''

    simulation = None

    def pressure(self, *args, **kwargs):
        if self.simulation is not None and self.simulation.isStepping:
            self.simulation.reset()
        return super().pressure(*args, **kwargs)


def test_resetDuringStepRaises():
    eos = _ResettingEquationOfState()
    sim = ThermoFluidSimulation(_config(), _smallBlock(), equationOfState=eos)
    eos.simulation = sim

    with pytest.raises(RuntimeError):
        sim.step()
    assert not sim.isStepping


#--------------------------------------------------------------------#
# -- Construction Errors -- #
#--------------------------------------------------------------------#

def test_tooManyParticlesRaises():
    with pytest.raises(ValueError):
        ThermoFluidSimulation(_config(maxParticles=100), _smallBlock())


def test_hashTableSmallerThanParticleCountRaises():
    with pytest.raises(ValueError):
        ThermoFluidSimulation(_config(hashTableSize=10), _smallBlock())


def test_mismatchedMaterialArraysRaise():
    spawn = _smallBlock()
    spawn.capacities = spawn.capacities[:-1]
    with pytest.raises(ValueError):
        ThermoFluidSimulation(_config(), spawn)


def test_invalidStepSizeRaises():
    sim = ThermoFluidSimulation(_config(), _smallBlock())
    with pytest.raises(ValueError):
        sim.step(float('nan'))
    with pytest.raises(ValueError):
        sim.step(-0.01)
