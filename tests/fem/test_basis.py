"""Tests for quadrature rules and Lagrange bases."""

import numpy as np
import pytest

from fem.basis import LagrangeBasis1D, TensorLagrangeElement
from fem.quadrature import gauss_legendre, tensor_gauss


class TestQuadrature:
    """Gauss-Legendre rules."""

    @pytest.mark.parametrize("n", [1, 2, 3, 5])
    def test_exact_for_polynomials(self, n):
        """n points integrate x^k exactly for k <= 2n-1."""
        xi, w = gauss_legendre(n)
        for k in range(2 * n):
            exact = 0.0 if k % 2 else 2.0 / (k + 1)
            assert np.isclose(np.sum(w * xi**k), exact, atol=1e-14)

    @pytest.mark.parametrize("nsd", [1, 2, 3])
    def test_tensor_weights(self, nsd):
        """Weights sum to the reference cell measure 2^nsd."""
        points, weights = tensor_gauss(3, nsd)
        assert points.shape == (3**nsd, nsd)
        assert np.isclose(weights.sum(), 2.0**nsd)

    def test_tensor_ordering(self):
        """First coordinate varies fastest."""
        points, _ = tensor_gauss(2, 2)
        assert points[0, 1] == points[1, 1]
        assert points[0, 0] != points[1, 0]

    def test_invalid(self):
        with pytest.raises(ValueError):
            gauss_legendre(0)


class TestLagrangeBasis1D:
    """Equispaced Lagrange polynomials."""

    @pytest.mark.parametrize("p", [1, 2, 3, 4])
    def test_kronecker_property(self, p):
        basis = LagrangeBasis1D(p)
        values = np.array([basis.evaluate(x) for x in basis.nodes])
        assert np.allclose(values, np.eye(p + 1), atol=1e-12)

    @pytest.mark.parametrize("p", [1, 2, 3])
    def test_partition_of_unity(self, p):
        basis = LagrangeBasis1D(p)
        for xi in np.linspace(-1.0, 1.0, 7):
            assert np.isclose(basis.evaluate(xi).sum(), 1.0)
            assert np.isclose(basis.evaluate(xi, 1).sum(), 0.0, atol=1e-12)
            assert np.isclose(basis.evaluate(xi, 2).sum(), 0.0, atol=1e-10)

    def test_quadratic_derivatives(self):
        """Interpolated x^2 has derivative 2x and second derivative 2."""
        basis = LagrangeBasis1D(2)
        f = basis.nodes**2
        for xi in [-0.7, 0.1, 0.9]:
            assert np.isclose(basis.evaluate(xi, 1) @ f, 2.0 * xi)
            assert np.isclose(basis.evaluate(xi, 2) @ f, 2.0)

    def test_linear_second_derivative_zero(self):
        assert np.allclose(LagrangeBasis1D(1).evaluate(0.3, 2), 0.0)

    def test_invalid_order(self):
        with pytest.raises(ValueError):
            LagrangeBasis1D(0)


class TestTensorLagrangeElement:
    """Tensor-product elements mapped onto boxes."""

    def test_node_count(self):
        assert TensorLagrangeElement(1, 2).nen == 4
        assert TensorLagrangeElement(2, 2).nen == 9
        assert TensorLagrangeElement(2, 3).nen == 27

    def test_reference_node_order(self):
        nodes = TensorLagrangeElement(1, 2).reference_nodes()
        assert np.allclose(nodes, [[-1, -1], [1, -1], [-1, 1], [1, 1]])

    def test_mapping_and_measure(self):
        element = TensorLagrangeElement(1, 2)
        lo, hi = np.array([1.0, 2.0]), np.array([3.0, 2.5])
        fe, X = element.evaluate([0.0, 1.0], lo, hi, weight=0.5)
        assert np.allclose(X, [2.0, 2.5])
        assert np.isclose(fe.detJxW, 0.5 * 1.0 * 0.25)
        assert np.isclose(fe.h, 1.0)

    def test_facet_measure(self):
        """Facet integration drops the fixed direction from the measure."""
        element = TensorLagrangeElement(1, 2)
        lo, hi = np.array([0.0, 0.0]), np.array([2.0, 0.5])
        fe, _ = element.evaluate([1.0, 0.0], lo, hi, weight=2.0, facet=0)
        assert np.isclose(fe.detJxW, 2.0 * 0.25)

    def test_gradient_of_linear_field(self):
        element = TensorLagrangeElement(2, 2)
        lo, hi = np.array([0.0, 0.0]), np.array([0.5, 2.0])
        nodes = lo + (element.reference_nodes() + 1.0) * 0.5 * (hi - lo)
        u = 3.0 * nodes[:, 0] - nodes[:, 1]
        fe, _ = element.evaluate([0.2, -0.4], lo, hi)
        assert np.allclose(fe.dNdX.T @ u, [3.0, -1.0])

    def test_second_derivatives(self):
        """Hessian of x^2 + xy reproduced by biquadratic elements."""
        element = TensorLagrangeElement(2, 2)
        lo, hi = np.array([0.0, 0.0]), np.array([1.0, 0.5])
        nodes = lo + (element.reference_nodes() + 1.0) * 0.5 * (hi - lo)
        u = nodes[:, 0] ** 2 + nodes[:, 0] * nodes[:, 1]
        fe, _ = element.evaluate([0.3, 0.6], lo, hi, second_derivatives=True)
        hessian = np.einsum("iab,i->ab", fe.d2NdX2, u)
        assert np.allclose(hessian, [[2.0, 1.0], [1.0, 0.0]])
        assert np.isclose(fe.laplacian(np.eye(2)) @ u, 2.0)

    def test_no_second_derivatives_by_default(self):
        fe, _ = TensorLagrangeElement(1, 2).evaluate([0.0, 0.0], [0.0, 0.0], [1.0, 1.0])
        assert fe.d2NdX2 is None
        assert np.allclose(fe.laplacian(np.eye(2)), 0.0)
