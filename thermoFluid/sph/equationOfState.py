# -- Equation of State -- #

'''
Pressure laws mapping particle density and temperature to pressure.

The physical pressure is the van der Waals real-gas law

    P = n*R*T / (V - n*b) - a * n^2 / V^2

evaluated per particle with its own amount of substance n, cohesion a
and covolume b. The particle's SPH number density stands in for
inverse volume (V = 1 / rho). With a = b = 0 the law reduces exactly
to the ideal gas P = n*R*T / V.

The near-pressure is a numerical device, not a physical law: a linear
stiffness on the near-density that keeps particles from clumping.

References:
-----------
van der Waals (1873) -- On the continuity of the gaseous and liquid states
Clavet et al. (2005) -- Particle-based viscoelastic fluid simulation
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from thermoFluid import constants as const


######################################################################
# -- Equation of State Protocol -- #
######################################################################

class EquationOfState(Protocol):
    '''Protocol for pressure laws.'''

    def pressure(
        self,
        densities: np.ndarray,
        temperatures: np.ndarray,
        moles: np.ndarray,
        cohesionA: np.ndarray,
        covolumeB: np.ndarray,
    ) -> np.ndarray:
        '''Absolute pressure per particle.'''
        ...


######################################################################
# -- Van der Waals Equation of State -- #
######################################################################

class VanDerWaalsEquationOfState:
    '''
    Real-gas van der Waals pressure law.

    Parameters:
    -----------
    gasConstant : float
        Universal gas constant R [J/(mol*K)]
    covolumeFloorFraction : float
        V - n*b is never allowed below this fraction of V, so a
        particle compressed past its covolume gets a large but finite
        pressure instead of a division blow-up
    '''

    def __init__(
        self,
        gasConstant: float = const.gasConstant,
        covolumeFloorFraction: float = const.covolumeFloorFraction,
    ) -> None:
        self._gasConstant = gasConstant
        self._floorFraction = covolumeFloorFraction

    @property
    def gasConstant(self) -> float:
        '''Universal gas constant R [J/(mol*K)].'''
        return self._gasConstant

    def pressure(
        self,
        densities: np.ndarray,
        temperatures: np.ndarray,
        moles: np.ndarray,
        cohesionA: np.ndarray,
        covolumeB: np.ndarray,
    ) -> np.ndarray:
        '''
        Evaluate P = nRT/(V - nb) - a n^2/V^2 with V = 1/rho.

        Parameters:
        -----------
        densities : np.ndarray
            SPH number densities, strictly positive, shape (N,)
        temperatures : np.ndarray
            Temperatures [K], shape (N,)
        moles : np.ndarray
            Amount of substance per particle [mol], shape (N,)
        cohesionA : np.ndarray
            Cohesion term a per particle, shape (N,)
        covolumeB : np.ndarray
            Covolume b per particle, shape (N,)

        Returns:
        --------
        np.ndarray : Pressure per particle, shape (N,)
        '''
        volume = 1.0 / densities
        freeVolume = np.maximum(volume - moles * covolumeB, self._floorFraction * volume)

        repulsive = moles * self._gasConstant * temperatures / freeVolume
        attractive = cohesionA * moles * moles * densities * densities

        return repulsive - attractive

    def gaugePressure(
        self,
        densities: np.ndarray,
        temperatures: np.ndarray,
        moles: np.ndarray,
        cohesionA: np.ndarray,
        covolumeB: np.ndarray,
        targetDensity: float,
    ) -> np.ndarray:
        '''
        Pressure relative to the rest state at the target density.

        P_gauge = P(rho, T) - P(rho_0, T)

        Vanishes for a particle sitting at the target density, so a
        fluid at rest feels no net pressure force regardless of its
        temperature; hotter particles react more stiffly to
        compression.

        Parameters:
        -----------
        densities, temperatures, moles, cohesionA, covolumeB : np.ndarray
            As for `pressure`
        targetDensity : float
            Rest density rho_0

        Returns:
        --------
        np.ndarray : Gauge pressure per particle, shape (N,)
        '''
        current = self.pressure(densities, temperatures, moles, cohesionA, covolumeB)
        rest = self.pressure(
            np.full_like(densities, targetDensity),
            temperatures, moles, cohesionA, covolumeB,
        )
        return current - rest


######################################################################
# -- Near Pressure -- #
######################################################################

def nearPressure(nearDensities: np.ndarray, nearPressureMultiplier: float) -> np.ndarray:
    '''
    Linear near-pressure used purely for numerical stability.

    P_near = k_near * rho_near

    Parameters:
    -----------
    nearDensities : np.ndarray
        Near-kernel densities, shape (N,)
    nearPressureMultiplier : float
        Linear stiffness k_near

    Returns:
    --------
    np.ndarray : Near-pressure per particle, shape (N,)
    '''
    return nearPressureMultiplier * nearDensities
