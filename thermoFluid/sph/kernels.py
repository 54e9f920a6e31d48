# -- SPH Smoothing Kernels -- #

'''
Smoothing kernel functions for 3D SPH interpolation.

Each kernel provides the weighting function W(r, h) used by one of
the field-evaluation passes, with compact support at r = h (the
smoothing radius itself is the cutoff, not 2h):

- SpikyPow2Kernel : density and pressure force
- SpikyPow3Kernel : near-density and near-pressure force (sharper)
- Poly6Kernel     : viscosity smoothing and lattice temperature weights
- ViscosityLaplacianKernel : second derivative used for heat diffusion

References:
-----------
Mueller et al. (2003) -- Particle-based fluid simulation for
    interactive applications
Clavet et al. (2005) -- Particle-based viscoelastic fluid simulation
Cleary & Monaghan (1999) -- Conduction modelling using SPH
'''

from __future__ import annotations

import math
from typing import Protocol

import numpy as np


######################################################################
# -- Kernel Protocol -- #
######################################################################

class SmoothingKernel(Protocol):
    '''Protocol for SPH smoothing kernel functions.'''

    def evaluate(self, r: float, radius: float) -> float:
        '''
        Evaluate kernel W(r, radius).

        Parameters:
        -----------
        r : float
            Distance between particles [m]
        radius : float
            Smoothing radius (support) [m]

        Returns:
        --------
        float : Kernel value [1/m^3]
        '''
        ...

    def evaluateBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        '''Evaluate W for an array of distances.'''
        ...

    def derivativeBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        '''Evaluate dW/dr for an array of distances.'''
        ...


######################################################################
# -- Spiky Kernels -- #
######################################################################

class SpikyPow2Kernel:
    '''
    Quadratic spiky kernel used for density.

    W(r) = 15 / (2 * pi * h^5) * (h - r)^2    for 0 <= r < h

    Non-zero gradient at r = 0, so close particles still repel.
    '''

    @staticmethod
    def _scale(radius: float) -> float:
        return 15.0 / (2.0 * math.pi * radius ** 5)

    def evaluate(self, r: float, radius: float) -> float:
        if r >= radius:
            return 0.0
        v = radius - r
        return v * v * self._scale(radius)

    def evaluateBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        v = np.clip(radius - distances, 0.0, None)
        return v * v * self._scale(radius)

    def derivativeBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        '''
        dW/dr = -15 / (pi * h^5) * (h - r)
        '''
        v = np.clip(radius - distances, 0.0, None)
        return -v * 15.0 / (math.pi * radius ** 5)


class SpikyPow3Kernel:
    '''
    Cubic spiky kernel used for near-density.

    W(r) = 15 / (pi * h^6) * (h - r)^3    for 0 <= r < h

    Falls off faster than SpikyPow2, so the near-pressure it drives
    only acts at very short range and prevents clumping.
    '''

    @staticmethod
    def _scale(radius: float) -> float:
        return 15.0 / (math.pi * radius ** 6)

    def evaluate(self, r: float, radius: float) -> float:
        if r >= radius:
            return 0.0
        v = radius - r
        return v * v * v * self._scale(radius)

    def evaluateBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        v = np.clip(radius - distances, 0.0, None)
        return v * v * v * self._scale(radius)

    def derivativeBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        '''
        dW/dr = -45 / (pi * h^6) * (h - r)^2
        '''
        v = np.clip(radius - distances, 0.0, None)
        return -v * v * 45.0 / (math.pi * radius ** 6)


######################################################################
# -- Poly6 Kernel -- #
######################################################################

class Poly6Kernel:
    '''
    Poly6 smoothing kernel.

    W(r) = 315 / (64 * pi * h^9) * (h^2 - r^2)^3    for 0 <= r < h

    Smooth everywhere with a flat top; used to weight the pairwise
    velocity differences of the viscosity term.
    '''

    @staticmethod
    def _scale(radius: float) -> float:
        return 315.0 / (64.0 * math.pi * radius ** 9)

    def evaluate(self, r: float, radius: float) -> float:
        if r >= radius:
            return 0.0
        v = radius * radius - r * r
        return v * v * v * self._scale(radius)

    def evaluateBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        v = np.clip(radius * radius - distances * distances, 0.0, None)
        return v * v * v * self._scale(radius)

    def derivativeBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        '''
        dW/dr = -945 / (32 * pi * h^9) * r * (h^2 - r^2)^2
        '''
        v = np.clip(radius * radius - distances * distances, 0.0, None)
        return -6.0 * distances * v * v * self._scale(radius)


######################################################################
# -- Laplacian Kernel -- #
######################################################################

class ViscosityLaplacianKernel:
    '''
    Laplacian of the Mueller viscosity kernel.

    lap_W(r) = 45 / (pi * h^6) * (h - r)    for 0 <= r < h

    Strictly positive inside the support, which keeps the discrete
    heat equation dissipative: heat always flows from hot to cold.
    '''

    @staticmethod
    def _scale(radius: float) -> float:
        return 45.0 / (math.pi * radius ** 6)

    def evaluate(self, r: float, radius: float) -> float:
        if r >= radius:
            return 0.0
        return (radius - r) * self._scale(radius)

    def evaluateBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        v = np.clip(radius - distances, 0.0, None)
        return v * self._scale(radius)

    def derivativeBatch(self, distances: np.ndarray, radius: float) -> np.ndarray:
        inside = distances < radius
        return np.where(inside, -self._scale(radius), 0.0)


######################################################################
# -- Kernel Factory -- #
######################################################################

def createKernel(kernelType: str) -> SmoothingKernel:
    '''
    Create a kernel instance by type name.

    Parameters:
    -----------
    kernelType : str
        One of 'spikyPow2', 'spikyPow3', 'poly6', 'viscosityLaplacian'

    Returns:
    --------
    SmoothingKernel : Kernel instance

    Raises:
    -------
    ValueError : If kernel type is unknown
    '''
    if kernelType == 'spikyPow2':
        return SpikyPow2Kernel()
    elif kernelType == 'spikyPow3':
        return SpikyPow3Kernel()
    elif kernelType == 'poly6':
        return Poly6Kernel()
    elif kernelType == 'viscosityLaplacian':
        return ViscosityLaplacianKernel()
    else:
        raise ValueError(f'Unknown kernel type: {kernelType}')
