# -- RK4 Integrator Tests -- #

import numpy as np
import pytest

from thermoFluid.sph.protocols import SimulationConfig, PhysicsTerms
from thermoFluid.sph.particles import ParticleSystem
from thermoFluid.sph.neighborSearch import SpatialHashIndex
from thermoFluid.sph.fieldEvaluator import FieldEvaluator, FieldSample
from thermoFluid.sph.rk4Integrator import Rk4Integrator, Rk4Stage, STAGE_TABLE


def _terms(**enabled) -> PhysicsTerms:
    flags = {name: False for name in PhysicsTerms.__dataclass_fields__}
    flags.update(enabled)
    return PhysicsTerms(**flags)


def _singleParticle(position, velocity, temperature: float = 300.0) -> ParticleSystem:
    p = ParticleSystem.allocate(1)
    p.positions[0] = position
    p.velocities[0] = velocity
    p.temperatures[0] = temperature
    p.capacities[:] = 4.186
    return p


def _integrator(p: ParticleSystem, config: SimulationConfig) -> Rk4Integrator:
    return Rk4Integrator(p, FieldEvaluator(p), SpatialHashIndex(config.smoothingRadius))


#--------------------------------------------------------------------#
# -- Stage Table -- #
#--------------------------------------------------------------------#

def test_stageTableAdvancesFromOriginalState():
    fractions = [STAGE_TABLE[stage].advanceFraction for stage in Rk4Stage]
    slots = [STAGE_TABLE[stage].slot for stage in Rk4Stage]
    assert fractions == [0.5, 0.5, 1.0, None]
    assert slots == [0, 1, 2, 3]


#--------------------------------------------------------------------#
# -- Closed-Form Motion -- #
#--------------------------------------------------------------------#

def test_freeFallMatchesClosedFormInRk4Mode():
    x0 = np.array([0.1, 0.5, -0.2])
    v0 = np.array([1.0, 2.0, 0.0])
    h = 0.01
    config = SimulationConfig(terms=_terms(gravity=True), positionUpdate='rk4')
    p = _singleParticle(x0, v0)

    nonFinite = _integrator(p, config).step(config, h)

    g = config.gravityVector
    assert nonFinite == 0
    np.testing.assert_allclose(p.velocities[0], v0 + g * h, atol=1e-14)
    np.testing.assert_allclose(p.positions[0], x0 + v0 * h + 0.5 * g * h * h, atol=1e-14)


def test_semiImplicitPositionUsesNewVelocity():
    x0 = np.array([0.0, 0.0, 0.0])
    v0 = np.array([0.0, 1.0, 0.0])
    h = 0.02
    config = SimulationConfig(terms=_terms(gravity=True))
    p = _singleParticle(x0, v0)

    _integrator(p, config).step(config, h)

    vNew = v0 + config.gravityVector * h
    np.testing.assert_allclose(p.velocities[0], vNew, atol=1e-14)
    np.testing.assert_allclose(p.positions[0], x0 + h * vNew, atol=1e-14)


def test_thermostatRelaxationIsFourthOrderAccurate():
    config = SimulationConfig(terms=_terms(thermostat=True))
    T0, h = 300.0, 1e-3
    p = _singleParticle(config.thermostatPosition, (0.0, 0.0, 0.0), temperature=T0)

    _integrator(p, config).step(config, h)

    rate = config.thermostatConductivity / 4.186
    Tth = config.thermostatTemperature
    expected = Tth + (T0 - Tth) * np.exp(-rate * h)
    assert p.temperatures[0] - Tth == pytest.approx(expected - Tth, rel=1e-4)


def test_collisionsApplyToFinalState():
    config = SimulationConfig(terms=_terms(gravity=True, boundaryCollisions=True))
    p = _singleParticle((0.0, -1.99, 0.0), (0.0, -5.0, 0.0))

    _integrator(p, config).step(config, 0.01)

    assert p.positions[0, 1] == pytest.approx(-2.0)
    assert p.velocities[0, 1] > 0.0


#--------------------------------------------------------------------#
# -- Non-Finite Guard -- #
#--------------------------------------------------------------------#

class _PoisonedEvaluator:
    '''Returns NaN acceleration (and optionally heat) for particle 0 on every sample.'''

    def __init__(self, poisonHeat=False):
        self.poisonHeat = poisonHeat

    def evaluate(self, config, index, positions, velocities, temperatures):
        accelerations = np.zeros_like(positions)
        accelerations[0] = np.nan
        heatRates = np.zeros(len(positions))
        if self.poisonHeat:
            heatRates[0] = np.inf
        return FieldSample(accelerations=accelerations, heatRates=heatRates)


@pytest.mark.parametrize('poisonHeat', [False, True])
def test_nonFiniteSamplesAreZeroedAndCountedPerParticle(poisonHeat):
    p = ParticleSystem.allocate(2)
    p.positions[1] = [0.5, 0.0, 0.0]
    p.velocities[:] = [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
    config = SimulationConfig(terms=_terms())
    integrator = Rk4Integrator(p, _PoisonedEvaluator(poisonHeat), SpatialHashIndex(config.smoothingRadius))

    nonFinite = integrator.step(config, 0.01)

    # One particle per derivative sample, whatever number of components
    assert nonFinite == 4
    assert np.all(np.isfinite(p.positions))
    assert np.all(np.isfinite(p.velocities))
    np.testing.assert_allclose(p.velocities, [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])


def test_clearScratchZeroesEveryBuffer():
    config = SimulationConfig(terms=_terms(gravity=True))
    p = _singleParticle((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))
    integrator = _integrator(p, config)
    integrator.step(config, 0.01)
    assert np.any(integrator.scratch.k1 != 0.0)

    integrator.clearScratch()
    for sample in integrator.scratch.accelerationSamples + integrator.scratch.velocitySamples:
        np.testing.assert_array_equal(sample, 0.0)
