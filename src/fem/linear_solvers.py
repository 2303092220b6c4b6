"""Sparse linear solvers: direct LU or BiCGSTAB with PyAMG preconditioning."""

import logging

import numpy as np
import pyamg
from scipy.sparse import csr_matrix
from scipy.sparse.linalg import bicgstab, spsolve

log = logging.getLogger(__name__)


def scipy_solver(
    A_csr: csr_matrix,
    b_np: np.ndarray,
    method: str = "direct",
    M=None,
    tolerance=1e-10,
    max_iterations=1000,
):
    """Solve A x = b with scipy.

    Parameters
    ----------
    A_csr : csr_matrix
        Sparse matrix in CSR format.
    b_np : np.ndarray
        Right-hand side vector.
    method : str
        "direct" (sparse LU) or "bicgstab" (AMG-preconditioned BiCGSTAB).
    M : LinearOperator, optional
        Preconditioner. If None, builds AMG preconditioner automatically.
    tolerance : float, optional
        Relative convergence tolerance of the iterative solver.
    max_iterations : int, optional
        Maximum iterations of the iterative solver.

    Returns
    -------
    x_np : np.ndarray
        Solution vector.
    M : LinearOperator or None
        Preconditioner for reuse in subsequent solves.
    """
    A_csr = csr_matrix(A_csr)
    if method == "direct":
        return np.atleast_1d(spsolve(A_csr.tocsc(), b_np)), None
    if method != "bicgstab":
        raise ValueError(f"Unknown linear solver: {method}. Use 'direct' or 'bicgstab'")

    # Build AMG preconditioner if not provided
    if M is None:
        ml = pyamg.smoothed_aggregation_solver(A_csr, max_coarse=10)
        M = ml.aspreconditioner()

    x, info = bicgstab(A_csr, b_np, M=M, rtol=tolerance, atol=0, maxiter=max_iterations)

    if info > 0:
        log.warning(f"BiCGSTAB did not converge in {info} iterations")
    elif info < 0:
        raise RuntimeError(f"BiCGSTAB failed (info={info})")

    return x, M
