"""Tests for the stabilization parameter tau."""

import numpy as np
import pytest

from integrands import ElementInfo, compute_tau


class TestComputeTau:
    """Closed form and limits of the tau blend."""

    def test_closed_form(self):
        """tau = ((2|U|/h)^2 + (Cinv kappa p^2 / h^2)^2)^(-1/2)."""
        kappa, Cinv, p, hk, vel = 0.1, 12.0, 2, 0.25, 3.0
        expected = ((2 * vel / hk) ** 2 + (Cinv * kappa * p**2 / hk**2) ** 2) ** -0.5
        assert np.isclose(compute_tau(kappa, Cinv, p, hk, vel), expected)

    @pytest.mark.parametrize("kappa", [1e-8, 1e-3, 1.0, 1e3])
    @pytest.mark.parametrize("vel", [0.0, 1e-3, 1.0, 1e6])
    def test_finite_non_negative(self, kappa, vel):
        """Finite, non-negative tau over a wide parameter range."""
        tau = compute_tau(kappa, 12.0, 1, 0.1, vel)
        assert np.isfinite(tau)
        assert tau >= 0.0

    def test_diffusive_limit(self):
        """Vanishing advection gives the reciprocal diffusive time scale."""
        hk, kappa, Cinv, p = 0.1, 2.0, 12.0, 1
        tau = compute_tau(kappa, Cinv, p, hk, 1e-12)
        assert np.isclose(tau, hk**2 / (Cinv * kappa * p**2), rtol=1e-10)

    def test_advective_limit(self):
        """Large advection gives tau ~ h / (2|U|)."""
        hk = 0.1
        for vel in [1e4, 1e6]:
            assert np.isclose(compute_tau(1.0, 12.0, 1, hk, vel), hk / (2 * vel), rtol=1e-3)

    def test_decays_with_velocity(self):
        """tau decreases monotonically with |U|."""
        taus = [compute_tau(0.01, 12.0, 1, 0.1, v) for v in [0.0, 0.1, 1.0, 10.0, 100.0]]
        assert np.all(np.diff(taus) < 0)

    def test_no_advection_no_diffusion(self):
        """Nothing to stabilize returns zero instead of dividing by zero."""
        assert compute_tau(0.0, 12.0, 1, 0.1, 0.0) == 0.0

    def test_zero_element_size(self):
        """A degenerate element gives a zero or non-finite tau without raising."""
        assert compute_tau(1.0, 12.0, 1, 0.0, 0.0) == 0.0
        assert compute_tau(1.0, 12.0, 1, 0.0, 2.0) == 0.0
        assert np.isnan(compute_tau(0.0, 12.0, 1, 0.0, 0.0))

    def test_scaling_with_order(self):
        """Higher order shrinks the diffusive tau by p^2."""
        tau1 = compute_tau(1.0, 12.0, 1, 0.1, 0.0)
        tau2 = compute_tau(1.0, 12.0, 2, 0.1, 0.0)
        assert np.isclose(tau1 / tau2, 4.0)


class TestElementTau:
    """Tau from the element velocity integral and size."""

    def test_mean_velocity(self):
        """Mean velocity is |int U| / area."""
        elm = ElementInfo()
        elm.allocate_stabilization(4, 2)
        elm.Cv[:] = [0.3, 0.4, 0.5]
        assert np.isclose(elm.mean_velocity(), 1.0)
        assert np.isclose(elm.area, 0.5)

    def test_get_tau_matches_compute_tau(self):
        elm = ElementInfo()
        elm.allocate_stabilization(2, 1)
        elm.Cv[:] = [0.5, 0.25]
        elm.hk = 0.25
        assert np.isclose(elm.get_tau(0.01, 12.0, 1), compute_tau(0.01, 12.0, 1, 0.25, 2.0))
