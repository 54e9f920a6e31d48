# -- Field Evaluator Tests -- #

import numpy as np
import pytest

from thermoFluid.sph.protocols import SimulationConfig, PhysicsTerms
from thermoFluid.sph.particles import ParticleSystem
from thermoFluid.sph.neighborSearch import SpatialHashIndex
from thermoFluid.sph.fieldEvaluator import FieldEvaluator, FieldPass, PASS_ORDER, enabledPasses


#--------------------------------------------------------------------#
# -- Helpers -- #
#--------------------------------------------------------------------#

def _waterParticles(positions: np.ndarray, temperature: float = 600.0) -> ParticleSystem:
    n = len(positions)
    p = ParticleSystem.allocate(n)
    p.positions[:] = positions
    p.temperatures[:] = temperature
    p.viscosities[:] = 0.5
    p.conductivities[:] = 2.0
    p.capacities[:] = 4.186
    p.bulkDensities[:] = 1000.0
    p.molarMasses[:] = 0.018
    p.cohesionA[:] = 0.5536
    p.covolumeB[:] = 3.049e-5
    return p


def _evaluate(config: SimulationConfig, p: ParticleSystem):
    evaluator = FieldEvaluator(p)
    index = SpatialHashIndex(config.smoothingRadius)
    index.build(p.positions)
    sample = evaluator.evaluate(config, index, p.positions, p.velocities, p.temperatures)
    return evaluator, sample


def _termsOnly(**enabled) -> PhysicsTerms:
    flags = {name: False for name in PhysicsTerms.__dataclass_fields__}
    flags.update(enabled)
    return PhysicsTerms(**flags)


#--------------------------------------------------------------------#
# -- Pass Gating -- #
#--------------------------------------------------------------------#

def test_allPassesEnabledByDefault():
    assert enabledPasses(SimulationConfig()) == PASS_ORDER


def test_disabledTermsSkipTheirPasses():
    config = SimulationConfig(terms=_termsOnly(gravity=True, thermostat=True))
    assert enabledPasses(config) == (
        FieldPass.DENSITY,
        FieldPass.STATE_VARIABLES,
        FieldPass.EXTERNAL_FORCES,
        FieldPass.THERMOSTAT,
    )


def test_gravityOnlyGivesUniformAcceleration():
    rng = np.random.default_rng(3)
    p = _waterParticles(rng.uniform(-0.3, 0.3, size=(60, 3)))
    config = SimulationConfig(terms=_termsOnly(gravity=True))

    _, sample = _evaluate(config, p)
    np.testing.assert_allclose(sample.accelerations, np.tile([0.0, -10.0, 0.0], (60, 1)))
    np.testing.assert_array_equal(sample.heatRates, 0.0)


#--------------------------------------------------------------------#
# -- Density -- #
#--------------------------------------------------------------------#

def test_isolatedParticleKeepsSelfDensity():
    p = _waterParticles(np.array([[0.0, 0.0, 0.0], [5.0, 0.0, 0.0]]))
    config = SimulationConfig()

    evaluator, _ = _evaluate(config, p)
    np.testing.assert_allclose(p.densities, evaluator.selfDensity(config))
    assert np.all(p.nearDensities > 0.0)


def test_densityNeverBelowSelfContribution():
    rng = np.random.default_rng(11)
    p = _waterParticles(rng.uniform(-0.5, 0.5, size=(300, 3)))
    config = SimulationConfig()

    evaluator, _ = _evaluate(config, p)
    assert np.all(p.densities >= evaluator.selfDensity(config) * (1.0 - 1e-12))
    assert np.all(np.isfinite(p.pressures))


#--------------------------------------------------------------------#
# -- State Variables -- #
#--------------------------------------------------------------------#

def test_pressureUsesParticleVolumeMoles():
    rng = np.random.default_rng(8)
    p = _waterParticles(rng.uniform(-0.2, 0.2, size=(40, 3)))
    config = SimulationConfig(terms=_termsOnly(pressure=True, vanDerWaals=True))

    evaluator, _ = _evaluate(config, p)

    moles = p.molesPerParticle(config.particleVolume)
    gauge = evaluator.equationOfState.gaugePressure(
        p.densities, p.temperatures, moles, p.cohesionA, p.covolumeB, config.targetDensity,
    )
    np.testing.assert_allclose(p.pressures, config.pressureMultiplier * gauge)


def test_atmosphericPressureOffsetsEveryParticle():
    rng = np.random.default_rng(8)
    p = _waterParticles(rng.uniform(-0.2, 0.2, size=(40, 3)))
    terms = _termsOnly(pressure=True, vanDerWaals=True)

    _evaluate(SimulationConfig(terms=terms), p)
    gaugeOnly = p.pressures.copy()
    _evaluate(SimulationConfig(terms=terms, atmosphericPressure=100.0), p)

    np.testing.assert_allclose(p.pressures, gaugeOnly + 100.0)


#--------------------------------------------------------------------#
# -- Forces -- #
#--------------------------------------------------------------------#

def test_pressureForcesConserveMomentum():
    rng = np.random.default_rng(5)
    p = _waterParticles(rng.uniform(-0.25, 0.25, size=(120, 3)))
    p.velocities[:] = rng.normal(scale=0.1, size=(120, 3))
    config = SimulationConfig(
        terms=_termsOnly(pressure=True, vanDerWaals=True, nearPressure=True, viscosity=True),
    )

    _, sample = _evaluate(config, p)
    scale = np.abs(sample.accelerations).max()
    assert scale > 0.0
    np.testing.assert_allclose(sample.accelerations.sum(axis=0), 0.0, atol=1e-9 * scale * 120)


def test_compressedPairPushesApart():
    p = _waterParticles(np.array([[0.0, 0.0, 0.0], [0.05, 0.0, 0.0]]))
    config = SimulationConfig(
        targetDensity=1.0,
        terms=_termsOnly(pressure=True, vanDerWaals=True),
    )

    _, sample = _evaluate(config, p)
    assert sample.accelerations[0, 0] < 0.0
    assert sample.accelerations[1, 0] > 0.0
    np.testing.assert_allclose(sample.accelerations[0], -sample.accelerations[1])


def test_viscosityPullsVelocitiesTogether():
    p = _waterParticles(np.array([[0.0, 0.0, 0.0], [0.1, 0.0, 0.0]]))
    p.velocities[0] = [1.0, 0.0, 0.0]
    config = SimulationConfig(terms=_termsOnly(viscosity=True))

    _, sample = _evaluate(config, p)
    assert sample.accelerations[0, 0] < 0.0
    assert sample.accelerations[1, 0] > 0.0
    np.testing.assert_allclose(sample.accelerations[:, 1:], 0.0)


#--------------------------------------------------------------------#
# -- Heat -- #
#--------------------------------------------------------------------#

def test_thermalDiffusionFlowsFromHotToCold():
    p = _waterParticles(np.array([[0.0, 0.0, 0.0], [0.1, 0.0, 0.0]]))
    p.temperatures[:] = [300.0, 400.0]
    config = SimulationConfig(terms=_termsOnly(thermalDiffusion=True))

    _, sample = _evaluate(config, p)
    assert sample.heatRates[0] > 0.0 > sample.heatRates[1]
    assert sample.heatRates[0] == pytest.approx(-sample.heatRates[1])


def test_uniformTemperatureHasNoDiffusion():
    rng = np.random.default_rng(2)
    p = _waterParticles(rng.uniform(-0.2, 0.2, size=(50, 3)), temperature=500.0)
    config = SimulationConfig(terms=_termsOnly(thermalDiffusion=True))

    _, sample = _evaluate(config, p)
    np.testing.assert_allclose(sample.heatRates, 0.0, atol=1e-12)


def test_thermostatHeatsOnlyInsideInfluenceRadius():
    p = _waterParticles(np.array([[0.0, -2.0, 0.0], [0.0, 2.0, 0.0]]), temperature=300.0)
    config = SimulationConfig(terms=_termsOnly(thermostat=True))

    _, sample = _evaluate(config, p)
    expected = config.thermostatConductivity * (config.thermostatTemperature - 300.0) / 4.186
    assert sample.heatRates[0] == pytest.approx(expected)
    assert sample.heatRates[1] == 0.0
