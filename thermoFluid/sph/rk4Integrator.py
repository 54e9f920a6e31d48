# -- RK4 Time Integration -- #

'''
Fourth-order Runge-Kutta integration of the thermal SPH system.

The state y = (x, v, T) obeys dx/dt = v, dv/dt = a(y), dT/dt = q(y),
where a and q come from a full field evaluation. One step of size h
takes four samples, always advancing the predicted state from the
ORIGINAL state y0 (never from the previous stage's prediction):

    stage 0: sample at y0                 -> k1, q1;  y* = y0 + h/2 * (k1, q1)
    stage 1: sample at y*                 -> k2, q2;  y* = y0 + h/2 * (k2, q2)
    stage 2: sample at y*                 -> k3, q3;  y* = y0 + h   * (k3, q3)
    stage 3: sample at y*                 -> k4, q4

    v = v0 + h/6 * (k1 + 2*k2 + 2*k3 + k4)
    T = T0 + h/6 * (q1 + 2*q2 + 2*q3 + q4)
    x = x0 + h * v                          (semi-implicit, default)
      or x0 + h/6 * (u1 + 2*u2 + 2*u3 + u4) (RK4, u_s = stage velocity)

The spatial index is rebuilt before every sample, since positions move
between predicted states.

References:
-----------
Butcher (2008) -- Numerical Methods for Ordinary Differential Equations
Hairer et al. (1993) -- Solving Ordinary Differential Equations I
'''

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

from thermoFluid.sph.protocols import SimulationConfig
from thermoFluid.sph.particles import ParticleSystem
from thermoFluid.sph.neighborSearch import SpatialHashIndex
from thermoFluid.sph.fieldEvaluator import FieldEvaluator


######################################################################
# -- Stage and Update Types -- #
######################################################################

class Rk4Stage(Enum):
    '''The four sampling stages of one RK4 step.'''

    STAGE0 = 0
    STAGE1 = 1
    STAGE2 = 2
    STAGE3 = 3


class PositionUpdate(Enum):
    '''How the final combine advances positions.'''

    SEMI_IMPLICIT = 'semiImplicit'
    RK4 = 'rk4'


@dataclass(frozen=True)
class StageRule:
    '''
    What a stage does after sampling.

    Parameters:
    -----------
    slot : int
        Scratch slot (0-3) receiving the sample
    advanceFraction : float | None
        Fraction of h by which the predicted state is advanced from
        the original state, or None for the last stage
    '''

    slot: int
    advanceFraction: float | None


STAGE_TABLE: dict[Rk4Stage, StageRule] = {
    Rk4Stage.STAGE0: StageRule(slot=0, advanceFraction=0.5),
    Rk4Stage.STAGE1: StageRule(slot=1, advanceFraction=0.5),
    Rk4Stage.STAGE2: StageRule(slot=2, advanceFraction=1.0),
    Rk4Stage.STAGE3: StageRule(slot=3, advanceFraction=None),
}

RK4_WEIGHTS: tuple[float, ...] = (1.0, 2.0, 2.0, 1.0)


######################################################################
# -- Scratch Buffers -- #
######################################################################

@dataclass
class Rk4Scratch:
    '''
    Step-local scratch, allocated once and overwritten every step.

    Each sample has its own named buffer; no buffer is rebound to a
    different role between stages.

    Parameters:
    -----------
    k1, k2, k3, k4 : np.ndarray
        Acceleration samples, shape (N, 3)
    h1, h2, h3, h4 : np.ndarray
        Heat-rate samples, shape (N,)
    u1, u2, u3, u4 : np.ndarray
        Velocity at each sampling stage, shape (N, 3)
    predictedPositions : np.ndarray
        Positions of the state being sampled, shape (N, 3)
    predictedVelocities : np.ndarray
        Velocities of the state being sampled, shape (N, 3)
    predictedTemperatures : np.ndarray
        Temperatures of the state being sampled, shape (N,)
    '''

    k1: np.ndarray
    k2: np.ndarray
    k3: np.ndarray
    k4: np.ndarray
    h1: np.ndarray
    h2: np.ndarray
    h3: np.ndarray
    h4: np.ndarray
    u1: np.ndarray
    u2: np.ndarray
    u3: np.ndarray
    u4: np.ndarray
    predictedPositions: np.ndarray
    predictedVelocities: np.ndarray
    predictedTemperatures: np.ndarray

    @classmethod
    def allocate(cls, nParticles: int) -> Rk4Scratch:
        '''Zero-filled scratch for `nParticles` particles.'''
        vec = lambda: np.zeros((nParticles, 3))
        scalar = lambda: np.zeros(nParticles)
        return cls(
            k1=vec(), k2=vec(), k3=vec(), k4=vec(),
            h1=scalar(), h2=scalar(), h3=scalar(), h4=scalar(),
            u1=vec(), u2=vec(), u3=vec(), u4=vec(),
            predictedPositions=vec(),
            predictedVelocities=vec(),
            predictedTemperatures=scalar(),
        )

    @property
    def accelerationSamples(self) -> tuple[np.ndarray, ...]:
        '''(k1, k2, k3, k4).'''
        return (self.k1, self.k2, self.k3, self.k4)

    @property
    def heatSamples(self) -> tuple[np.ndarray, ...]:
        '''(h1, h2, h3, h4).'''
        return (self.h1, self.h2, self.h3, self.h4)

    @property
    def velocitySamples(self) -> tuple[np.ndarray, ...]:
        '''(u1, u2, u3, u4).'''
        return (self.u1, self.u2, self.u3, self.u4)


######################################################################
# -- RK4 Integrator -- #
######################################################################

class Rk4Integrator:
    '''
    Advances the persistent particle state by one RK4 step.

    Parameters:
    -----------
    particles : ParticleSystem
        Particle system owning the persistent state
    evaluator : FieldEvaluator
        Field evaluator bound to the same particle system
    index : SpatialHashIndex
        Spatial index rebuilt before every sample
    '''

    def __init__(
        self,
        particles: ParticleSystem,
        evaluator: FieldEvaluator,
        index: SpatialHashIndex,
    ) -> None:
        self._particles = particles
        self._evaluator = evaluator
        self._index = index
        self._scratch = Rk4Scratch.allocate(particles.nParticles)

    @property
    def scratch(self) -> Rk4Scratch:
        '''Scratch buffers of the last step.'''
        return self._scratch

    def clearScratch(self) -> None:
        '''Zero every scratch buffer.'''
        self._scratch = Rk4Scratch.allocate(self._particles.nParticles)

    def step(self, config: SimulationConfig, h: float) -> int:
        '''
        Advance positions, velocities and temperatures by one step.

        Parameters:
        -----------
        config : SimulationConfig
            Configuration of the current frame
        h : float
            Step size [s]

        Returns:
        --------
        int : Particle events where a non-finite value was repaired,
            summed over the four derivative samples and every state
            reset during the step
        '''
        p = self._particles
        s = self._scratch

        x0 = p.positions.copy()
        v0 = p.velocities.copy()
        T0 = p.temperatures.copy()

        s.predictedPositions[:] = x0
        s.predictedVelocities[:] = v0
        s.predictedTemperatures[:] = T0

        nonFinite = 0
        for stage in Rk4Stage:
            rule = STAGE_TABLE[stage]
            nonFinite += self._sample(config, rule.slot)
            if rule.advanceFraction is not None:
                nonFinite += self._advancePrediction(
                    config, x0, v0, T0, rule.slot, rule.advanceFraction * h,
                )

        nonFinite += self._combine(config, x0, v0, T0, h)
        return nonFinite

    ######################################################################
    # -- Stages -- #
    ######################################################################

    def _sample(self, config: SimulationConfig, slot: int) -> int:
        '''
        Rebuild the index on the predicted state and store a sample.

        Returns the number of particles whose sample held a non-finite
        component.
        '''
        s = self._scratch

        self._index.build(s.predictedPositions)
        sample = self._evaluator.evaluate(
            config,
            self._index,
            s.predictedPositions,
            s.predictedVelocities,
            s.predictedTemperatures,
        )

        acceleration = s.accelerationSamples[slot]
        heat = s.heatSamples[slot]
        acceleration[:] = sample.accelerations
        heat[:] = sample.heatRates
        s.velocitySamples[slot][:] = s.predictedVelocities

        badAccel = ~np.isfinite(acceleration)
        badHeat = ~np.isfinite(heat)
        acceleration[badAccel] = 0.0
        heat[badHeat] = 0.0
        return int((badAccel.any(axis=1) | badHeat).sum())

    def _advancePrediction(
        self,
        config: SimulationConfig,
        x0: np.ndarray,
        v0: np.ndarray,
        T0: np.ndarray,
        slot: int,
        dt: float,
    ) -> int:
        '''
        y* = y0 + dt * (u_s, k_s, q_s), from the original state.
        '''
        s = self._scratch

        s.predictedPositions[:] = x0 + dt * s.velocitySamples[slot]
        s.predictedVelocities[:] = v0 + dt * s.accelerationSamples[slot]
        s.predictedTemperatures[:] = T0 + dt * s.heatSamples[slot]

        if config.terms.boundaryCollisions:
            config.bounds.resolveCollisions(
                s.predictedPositions, s.predictedVelocities, config.collisionDamping,
            )

        return _resetNonFinite(
            (s.predictedPositions, s.predictedVelocities, s.predictedTemperatures),
            (x0, v0, T0),
        )

    def _combine(
        self,
        config: SimulationConfig,
        x0: np.ndarray,
        v0: np.ndarray,
        T0: np.ndarray,
        h: float,
    ) -> int:
        '''Weighted combination of the four samples into the new state.'''
        p = self._particles
        s = self._scratch

        acceleration = _weighted(s.accelerationSamples)
        heatRate = _weighted(s.heatSamples)

        p.velocities[:] = v0 + h * acceleration
        p.temperatures[:] = T0 + h * heatRate

        if PositionUpdate(config.positionUpdate) is PositionUpdate.RK4:
            p.positions[:] = x0 + h * _weighted(s.velocitySamples)
        else:
            p.positions[:] = x0 + h * p.velocities

        if config.terms.boundaryCollisions:
            config.bounds.resolveCollisions(p.positions, p.velocities, config.collisionDamping)

        return _resetNonFinite(
            (p.positions, p.velocities, p.temperatures),
            (x0, v0, T0),
        )


######################################################################
# -- Helpers -- #
######################################################################

def _weighted(samples: tuple[np.ndarray, ...]) -> np.ndarray:
    '''(s1 + 2*s2 + 2*s3 + s4) / 6'''
    total = sum(w * sample for w, sample in zip(RK4_WEIGHTS, samples))
    return total / sum(RK4_WEIGHTS)


def _resetNonFinite(
    targets: tuple[np.ndarray, ...],
    originals: tuple[np.ndarray, ...],
) -> int:
    '''
    Replace every particle with a non-finite entry by its original
    state, in place, across all target arrays.

    Returns:
    --------
    int : Number of particles reset
    '''
    bad = np.zeros(len(targets[0]), dtype=bool)
    for target in targets:
        finite = np.isfinite(target)
        bad |= ~(finite if finite.ndim == 1 else finite.all(axis=1))

    if np.any(bad):
        for target, original in zip(targets, originals):
            target[bad] = original[bad]
    return int(bad.sum())
