"""Field callables consumed by the integrands.

Fields are plain callables of the Cartesian point X. Scalar fields return a
float, vector fields an array with (at least) nsd components.
"""

from dataclasses import dataclass
from typing import Callable

import numpy as np


def constant(value: float) -> Callable:
    """Scalar field with a constant value."""
    value = float(value)
    return lambda X: value


def constant_vector(*components: float) -> Callable:
    """Vector field with constant components."""
    U = np.asarray(components, dtype=float)
    return lambda X: U


@dataclass
class AnalyticalSolution:
    """Exact scalar solution and its gradient."""

    value: Callable
    gradient: Callable

    def flux(self, X, K: np.ndarray) -> np.ndarray:
        """Exact diffusive flux -K grad(u)."""
        return -K @ np.asarray(self.gradient(X), dtype=float)[: K.shape[0]]


def boundary_layer_solution(
    advection: float,
    diffusivity: float,
    source: float = 0.0,
    u_left: float = 0.0,
    u_right: float = 0.0,
    length: float = 1.0,
) -> AnalyticalSolution:
    r"""
    Exact solution of :math:`a u' - \kappa u'' = s` on :math:`[0, L]` with Dirichlet ends.

    .. math::

        u(x) = u_0 + \frac{s}{a} x + c\,\phi(x), \qquad
        \phi(x) = \frac{e^{Pe (x - L)} - e^{-Pe L}}{1 - e^{-Pe L}}

    with :math:`Pe = a / \kappa` and :math:`c = u_L - u_0 - s L / a`. Only the
    first coordinate of X is used, so the same solution serves 2D channels
    with natural conditions on the top and bottom sides.

    Parameters
    ----------
    advection : float
        Advection speed a (positive, towards x = L)
    diffusivity : float
        Diffusivity kappa
    source : float
        Constant source s
    u_left, u_right : float
        Prescribed values at x = 0 and x = L
    length : float
        Domain length L
    """
    if advection <= 0.0 or diffusivity <= 0.0:
        raise ValueError(
            f"Boundary layer solution needs positive advection and diffusivity, got a={advection}, kappa={diffusivity}"
        )
    Pe = advection / diffusivity
    denom = -np.expm1(-Pe * length)
    slope = source / advection
    c = u_right - u_left - slope * length

    def value(X):
        x = X[0]
        return u_left + slope * x + c * (np.exp(Pe * (x - length)) - np.exp(-Pe * length)) / denom

    def gradient(X):
        du = slope + c * Pe * np.exp(Pe * (X[0] - length)) / denom
        return np.array([du, 0.0, 0.0])

    return AnalyticalSolution(value=value, gradient=gradient)
