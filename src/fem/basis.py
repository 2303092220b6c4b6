"""Nodal Lagrange bases on the reference cell [-1, 1]^nsd.

The 1D basis is built from the inverse Vandermonde matrix of the nodes, the
tensor-product element maps the reference cell onto axis-aligned boxes.
"""

from __future__ import annotations

import itertools

import numpy as np
from numpy.polynomial import polynomial as P

from integrands.datastructures import FiniteElement


class LagrangeBasis1D:
    """Lagrange polynomials of order p on equispaced nodes in [-1, 1]."""

    def __init__(self, p: int):
        if p < 1:
            raise ValueError(f"Polynomial order must be at least 1, got {p}")
        self.p = p
        self.nodes = np.linspace(-1.0, 1.0, p + 1)

        # Column k holds the monomial coefficients of N_k: V C = I
        V = np.vander(self.nodes, p + 1, increasing=True)
        self.coeffs = np.linalg.solve(V, np.eye(p + 1))
        self.coeffs_x = P.polyder(self.coeffs, axis=0)
        self.coeffs_xx = P.polyder(self.coeffs, 2, axis=0)

    def evaluate(self, xi: float, derivative: int = 0) -> np.ndarray:
        """
        Return basis values (or derivatives) at a reference coordinate.

        Parameters
        ----------
        xi : float
            Reference coordinate in [-1, 1]
        derivative : int
            Derivative order (0, 1 or 2)

        Returns
        -------
        np.ndarray
            Shape (p+1,)
        """
        coeffs = (self.coeffs, self.coeffs_x, self.coeffs_xx)[derivative]
        if coeffs.shape[0] == 0:
            return np.zeros(self.p + 1)
        return P.polyval(xi, coeffs)


class TensorLagrangeElement:
    """Tensor-product Lagrange element of order p in nsd dimensions.

    Local nodes are numbered with the first coordinate running fastest.
    """

    def __init__(self, p: int, nsd: int):
        self.p = p
        self.nsd = nsd
        self.basis = LagrangeBasis1D(p)
        self.index = np.array(list(itertools.product(range(p + 1), repeat=nsd)))[:, ::-1]
        self.nen = self.index.shape[0]

    def reference_nodes(self) -> np.ndarray:
        """Reference coordinates of the local nodes, shape (nen, nsd)."""
        return self.basis.nodes[self.index]

    def evaluate(
        self,
        xi: np.ndarray,
        lo: np.ndarray,
        hi: np.ndarray,
        weight: float = 1.0,
        second_derivatives: bool = False,
        facet: int = None,
        iel: int = 0,
    ) -> tuple[FiniteElement, np.ndarray]:
        """
        Evaluate the basis at a reference point of the box [lo, hi].

        Parameters
        ----------
        xi : np.ndarray
            Reference coordinates, shape (nsd,)
        lo, hi : np.ndarray
            Lower and upper corners of the element
        weight : float
            Quadrature weight
        second_derivatives : bool
            Whether to compute second derivatives
        facet : int, optional
            Fixed direction when integrating over a facet; the measure then
            excludes that direction
        iel : int
            Element index stored on the record

        Returns
        -------
        fe : FiniteElement
            Basis data at the point
        X : np.ndarray
            Cartesian coordinates of the point
        """
        xi = np.atleast_1d(np.asarray(xi, dtype=float))
        lo = np.asarray(lo, dtype=float)
        hi = np.asarray(hi, dtype=float)
        J = 0.5 * (hi - lo)

        N1 = [self.basis.evaluate(xi[d]) for d in range(self.nsd)]
        dN1 = [self.basis.evaluate(xi[d], 1) / J[d] for d in range(self.nsd)]

        vals = np.stack([N1[d][self.index[:, d]] for d in range(self.nsd)], axis=1)
        ders = np.stack([dN1[d][self.index[:, d]] for d in range(self.nsd)], axis=1)

        N = np.prod(vals, axis=1)
        dNdX = np.empty((self.nen, self.nsd))
        for d in range(self.nsd):
            others = np.prod(np.delete(vals, d, axis=1), axis=1)
            dNdX[:, d] = ders[:, d] * others

        d2NdX2 = None
        if second_derivatives:
            d2N1 = [self.basis.evaluate(xi[d], 2) / J[d] ** 2 for d in range(self.nsd)]
            d2NdX2 = np.empty((self.nen, self.nsd, self.nsd))
            for d in range(self.nsd):
                for e in range(self.nsd):
                    if d == e:
                        factor = d2N1[d][self.index[:, d]]
                    else:
                        factor = ders[:, d] * ders[:, e]
                    others = np.prod(np.delete(vals, [d, e], axis=1), axis=1)
                    d2NdX2[:, d, e] = factor * others

        measure = np.prod(np.delete(J, facet)) if facet is not None else np.prod(J)
        h = float(np.prod(hi - lo) ** (1.0 / self.nsd))
        fe = FiniteElement(
            N=N, dNdX=dNdX, detJxW=weight * measure, d2NdX2=d2NdX2, h=h, iel=iel
        )
        X = lo + J * (xi + 1.0)
        return fe, X
