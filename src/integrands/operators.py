"""Weak-form and residual operators for equal-order scalar elements.

All weak operators add in place into element matrices/vectors, weighted by
the quadrature weight times Jacobian of the given ``FiniteElement``. Rows are
test functions, columns are trial functions.
"""

import numpy as np

from .datastructures import FiniteElement, Stabilization


# =============================================================================
# Weak operators
# =============================================================================


def laplacian(EM: np.ndarray, fe: FiniteElement, K: np.ndarray, scale: float = 1.0):
    """Add the diffusion term (grad N_i . K grad N_j)."""
    EM += scale * fe.detJxW * (fe.dNdX @ K @ fe.dNdX.T)


def advection(EM: np.ndarray, fe: FiniteElement, U: np.ndarray, scale: float = 1.0):
    """Add the convective term N_i (U . grad N_j)."""
    EM += scale * fe.detJxW * np.outer(fe.N, fe.dNdX @ U)


def mass(EM: np.ndarray, fe: FiniteElement, scale: float = 1.0):
    """Add the mass term N_i N_j."""
    EM += scale * fe.detJxW * np.outer(fe.N, fe.N)


def source(EV: np.ndarray, fe: FiniteElement, value: float, scale: float = 1.0):
    """Add the load term N_i * value."""
    EV += scale * value * fe.detJxW * fe.N


# =============================================================================
# Residual operators
# =============================================================================


def residual(fe: FiniteElement, U: np.ndarray, K: np.ndarray, react: float) -> np.ndarray:
    """Strong operator L N_j = U . grad N_j - div(K grad N_j) + r N_j."""
    return fe.dNdX @ U - fe.laplacian(K) + react * fe.N


def stabilized_test(
    stab: Stabilization, fe: FiniteElement, U: np.ndarray, K: np.ndarray, react: float
) -> np.ndarray:
    """Return the stabilization test function for each basis function.

    SUPG uses the streamline derivative, GLS the full operator L and the
    multiscale method the negative adjoint -L* (for solenoidal U).
    """
    conv = fe.dNdX @ U
    if stab is Stabilization.SUPG:
        return conv
    diff = fe.laplacian(K)
    if stab is Stabilization.GLS:
        return conv - diff + react * fe.N
    if stab is Stabilization.MS:
        return conv + diff - react * fe.N
    raise ValueError(f"No stabilized test function for {stab}")
