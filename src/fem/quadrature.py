"""Gauss-Legendre quadrature rules on the reference cell [-1, 1]^nsd."""

import itertools

import numpy as np


def gauss_legendre(n: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Return n-point Gauss-Legendre points and weights on [-1, 1].

    Parameters
    ----------
    n : int
        Number of points (exact for polynomials of degree 2n-1)

    Returns
    -------
    points, weights : np.ndarray
        Arrays of shape (n,)
    """
    if n <= 0:
        raise ValueError("Number of quadrature points must be positive.")
    return np.polynomial.legendre.leggauss(n)


def tensor_gauss(n: int, nsd: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Return the tensor-product Gauss rule on [-1, 1]^nsd.

    Returns
    -------
    points : np.ndarray
        Shape (n**nsd, nsd), first coordinate varying fastest
    weights : np.ndarray
        Shape (n**nsd,)
    """
    xi, w = gauss_legendre(n)
    if nsd == 0:
        return np.zeros((1, 0)), np.ones(1)
    idx = np.array(list(itertools.product(range(n), repeat=nsd)))[:, ::-1]
    points = xi[idx]
    weights = np.prod(w[idx], axis=1)
    return points, weights
