# -- Smoothing Kernel Tests -- #

import math

import numpy as np
import pytest

from thermoFluid.sph.kernels import (
    SpikyPow2Kernel,
    SpikyPow3Kernel,
    Poly6Kernel,
    ViscosityLaplacianKernel,
    createKernel,
)


def _sphericalIntegral(kernel, h: float, n: int = 20000) -> float:
    '''Midpoint rule for the integral of 4 pi r^2 W(r) over [0, h].'''
    dr = h / n
    r = (np.arange(n) + 0.5) * dr
    return float(np.sum(4.0 * math.pi * r * r * kernel.evaluateBatch(r, h)) * dr)


@pytest.mark.parametrize('kernel', [SpikyPow2Kernel(), SpikyPow3Kernel(), Poly6Kernel()])
def test_kernelsIntegrateToOne(kernel):
    assert _sphericalIntegral(kernel, 0.2) == pytest.approx(1.0, rel=1e-4)


@pytest.mark.parametrize('kernelType', ['spikyPow2', 'spikyPow3', 'poly6', 'viscosityLaplacian'])
def test_kernelsVanishOutsideSupport(kernelType):
    kernel = createKernel(kernelType)
    h = 0.3
    values = kernel.evaluateBatch(np.array([h, 1.2 * h, 5.0 * h]), h)
    np.testing.assert_array_equal(values, 0.0)
    assert kernel.evaluate(h, h) == 0.0


@pytest.mark.parametrize('kernel', [SpikyPow2Kernel(), SpikyPow3Kernel(), Poly6Kernel()])
def test_derivativeMatchesFiniteDifference(kernel):
    h = 0.25
    r = np.array([0.02, 0.07, 0.13, 0.21])
    eps = 1e-6
    numeric = (kernel.evaluateBatch(r + eps, h) - kernel.evaluateBatch(r - eps, h)) / (2.0 * eps)
    np.testing.assert_allclose(kernel.derivativeBatch(r, h), numeric, rtol=1e-5)


def test_scalarAndBatchAgree():
    h = 0.2
    r = np.linspace(0.0, 0.25, 11)
    for kernel in (SpikyPow2Kernel(), SpikyPow3Kernel(), Poly6Kernel(), ViscosityLaplacianKernel()):
        scalar = np.array([kernel.evaluate(float(x), h) for x in r])
        np.testing.assert_allclose(kernel.evaluateBatch(r, h), scalar)


def test_spikyPow2SelfValue():
    h = 0.2
    assert SpikyPow2Kernel().evaluate(0.0, h) == pytest.approx(15.0 / (2.0 * math.pi * h ** 3))


def test_laplacianPositiveInsideSupport():
    h = 0.2
    values = ViscosityLaplacianKernel().evaluateBatch(np.linspace(0.0, 0.199, 20), h)
    assert np.all(values > 0.0)


def test_unknownKernelRaises():
    with pytest.raises(ValueError, match='Unknown kernel'):
        createKernel('cubicSpline')
