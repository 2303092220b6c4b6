"""Tests for field callables and closed-form solutions."""

import numpy as np
import pytest

from integrands import boundary_layer_solution, constant, constant_vector


class TestConstantFields:
    def test_constant(self):
        assert constant(2)([0.3, 0.4]) == 2.0

    def test_constant_vector(self):
        assert np.allclose(constant_vector(1.0, -2.0)([0.0, 0.0]), [1.0, -2.0])


class TestBoundaryLayerSolution:
    """u' a - kappa u'' = s with Dirichlet ends."""

    @pytest.fixture
    def solution(self):
        return boundary_layer_solution(1.0, 0.1, source=2.0, u_left=1.0, u_right=3.0, length=2.0)

    def test_boundary_values(self, solution):
        assert np.isclose(solution.value(np.array([0.0, 0.5])), 1.0)
        assert np.isclose(solution.value(np.array([2.0, 0.5])), 3.0)

    @pytest.mark.parametrize("x", [0.3, 1.2, 1.95])
    def test_satisfies_equation(self, solution, x):
        d = 1e-6
        du = solution.gradient(np.array([x]))[0]
        d2u = (solution.gradient(np.array([x + d]))[0] - solution.gradient(np.array([x - d]))[0]) / (2 * d)
        assert np.isclose(1.0 * du - 0.1 * d2u, 2.0, atol=1e-4)

    def test_gradient_matches_value(self, solution):
        d = 1e-7
        x = 1.5
        fd = (solution.value(np.array([x + d])) - solution.value(np.array([x - d]))) / (2 * d)
        assert np.isclose(solution.gradient(np.array([x]))[0], fd, rtol=1e-5)

    def test_gradient_independent_of_y(self, solution):
        g = solution.gradient(np.array([0.5, 0.9]))
        assert g[1] == 0.0

    def test_sharp_layer_finite(self):
        """Large Peclet numbers do not overflow."""
        solution = boundary_layer_solution(1.0, 1e-6, u_left=1.0)
        assert np.isclose(solution.value(np.array([0.5])), 1.0)
        assert np.isclose(solution.value(np.array([1.0])), 0.0)
        assert np.isfinite(solution.gradient(np.array([1.0]))[0])

    @pytest.mark.parametrize("a, kappa", [(0.0, 1.0), (1.0, 0.0), (-1.0, 1.0)])
    def test_invalid(self, a, kappa):
        with pytest.raises(ValueError):
            boundary_layer_solution(a, kappa)
