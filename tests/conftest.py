"""Pytest configuration and fixtures for advection-diffusion tests."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def element_1d():
    """Linear 1D element on [0, 0.5]."""
    from fem.basis import TensorLagrangeElement

    return TensorLagrangeElement(1, 1), np.array([0.0]), np.array([0.5])


@pytest.fixture
def element_2d():
    """Bilinear element on [0, 0.5] x [0, 0.25]."""
    from fem.basis import TensorLagrangeElement

    return TensorLagrangeElement(1, 2), np.array([0.0, 0.0]), np.array([0.5, 0.25])


@pytest.fixture
def gauss_2d():
    """3x3 Gauss rule on the reference square."""
    from fem.quadrature import tensor_gauss

    return tensor_gauss(3, 2)


@pytest.fixture
def diffusion_params():
    """Pure diffusion on the unit square with u = x(1-x)/2."""
    return {
        "nsd": 2,
        "nx": 4,
        "ny": 2,
        "order": 1,
        "diffusivity": 1.0,
        "source": 1.0,
        "stabilization": "none",
        "boundary_conditions": {
            "left": {"type": "dirichlet", "value": 0.0},
            "right": {"type": "dirichlet", "value": 0.0},
        },
    }


@pytest.fixture
def quadratic_solution():
    """Analytical solution u = x(1-x)/2 of -u'' = 1, u(0) = u(1) = 0."""
    from integrands import AnalyticalSolution

    return AnalyticalSolution(
        value=lambda X: 0.5 * X[0] * (1.0 - X[0]),
        gradient=lambda X: np.array([0.5 - X[0], 0.0][: len(X)]),
    )


@pytest.fixture
def advection_layer_params():
    """Advection-dominated 1D problem with an outflow boundary layer."""
    return {
        "nsd": 1,
        "nx": 9,
        "order": 1,
        "diffusivity": 1e-6,
        "advection_x": 1.0,
        "source": 0.0,
        "projection": False,
        "boundary_conditions": {
            "left": {"type": "dirichlet", "value": 1.0},
            "right": {"type": "dirichlet", "value": 0.0},
        },
    }
