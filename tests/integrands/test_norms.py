"""Tests for the advection-diffusion norm integrand."""

import numpy as np
import pytest

from fem import integrate_norms, rectangle_mesh
from integrands import (
    AdvectionDiffusion,
    AdvectionDiffusionNorm,
    AnalyticalSolution,
    ElementState,
    constant_vector,
)


@pytest.fixture
def linear_problem():
    """u = 1 + 2x + 3y, exactly representable on bilinear elements."""
    mesh = rectangle_mesh(2, 2, p=1)
    problem = AdvectionDiffusion(2)
    x, y = mesh.nodes[:, 0], mesh.nodes[:, 1]
    problem.set_solution(1.0 + 2.0 * x + 3.0 * y)
    problem.set_elements(mesh.n_elements)
    anasol = AnalyticalSolution(
        value=lambda X: 1.0 + 2.0 * X[0] + 3.0 * X[1],
        gradient=lambda X: np.array([2.0, 3.0]),
    )
    return mesh, problem, anasol


class TestNormLayout:
    """Groups, sizes and names."""

    def test_groups(self):
        norm = AdvectionDiffusion(2).get_norm_integrand()
        assert isinstance(norm, AdvectionDiffusionNorm)
        assert norm.get_no_fields(0) == 2
        assert norm.get_no_fields(1) == 3
        assert norm.get_no_fields(2) == 6
        assert norm.get_no_fields(3) == 0
        assert norm.n_values == 9

    def test_projection_groups(self):
        norm = AdvectionDiffusion(2).get_norm_integrand()
        norm.add_projection(np.zeros((4, 2)))
        norm.add_projection(np.zeros((4, 2)))
        assert norm.get_no_fields(0) == 4
        assert norm.get_no_fields(4) == 4
        assert norm.n_values == 17
        assert norm.effectivity_slots() == [12, 16]

    def test_names(self):
        norm = AdvectionDiffusion(2).get_norm_integrand()
        norm.add_projection(np.zeros((4, 2)))
        assert norm.get_name(1, 1) == "|||u^h|||"
        assert norm.get_name(2, 6) == "|||e|||"
        assert norm.get_name(3, 2) == "eta"
        assert norm.get_name(3, 4, "q1") == "q1 effectivity"
        with pytest.raises(IndexError):
            norm.get_name(4, 1)

    def test_no_boundary_terms(self):
        assert not AdvectionDiffusion(2).get_norm_integrand().has_boundary_terms()


class TestNormValues:
    """Integrated norms on an exactly representable solution."""

    def test_zero_error_for_exact_solution(self, linear_problem):
        mesh, problem, anasol = linear_problem
        norms, _ = integrate_norms(mesh, problem.get_norm_integrand(anasol))
        assert norms["|||e|||"] < 1e-12
        assert norms["||e||_L2"] < 1e-12
        assert norms["|e|_H1"] < 1e-12
        assert norms["a(e,e)^0.5"] < 1e-12
        assert np.isclose(norms["|||u|||"], norms["|||u^h|||"])

    def test_discrete_norms(self, linear_problem):
        mesh, problem, _ = linear_problem
        norms, element_norms = integrate_norms(mesh, problem.get_norm_integrand())
        assert np.isclose(norms["|||u^h|||"], np.sqrt(13.0))
        assert np.isclose(norms["|u^h|_H1"], np.sqrt(13.0))
        assert np.isclose(norms["||u^h||_L2"], np.sqrt(40.0 / 3.0))
        assert len(element_norms) == mesh.n_elements
        assert np.allclose(element_norms["|u^h|_H1"] ** 2, 13.0 / 4.0)

    def test_energy_norm_includes_tau(self, linear_problem):
        """|||v|||^2 adds tau ||U . grad v||^2 with the stored element tau."""
        mesh, problem, _ = linear_problem
        problem.set_advection_field(constant_vector(1.0, 0.0))
        problem.tauE[:] = 0.5
        norms, element_norms = integrate_norms(mesh, problem.get_norm_integrand())
        assert np.isclose(norms["|||u^h|||"], np.sqrt(13.0 + 0.5 * 4.0))
        assert np.allclose(element_norms["tau"], 0.5)

    def test_effectivity_unavailable_without_anasol(self, linear_problem):
        mesh, problem, _ = linear_problem
        norm = problem.get_norm_integrand()
        norm.add_projection(-np.tile([2.0, 3.0], (mesh.n_nodes, 1)))
        norms, element_norms = integrate_norms(mesh, norm)
        assert np.isnan(norms["q1 effectivity"])
        assert element_norms["q1 effectivity"].isna().all()
        assert norms["q1 eta"] < 1e-12

    def test_effectivity_unavailable_for_zero_error(self, linear_problem):
        mesh, problem, anasol = linear_problem
        norm = problem.get_norm_integrand(anasol)
        norm.add_projection(-np.tile([2.0, 3.0], (mesh.n_nodes, 1)))
        norms, element_norms = integrate_norms(mesh, norm)
        assert np.isnan(norms["q1 effectivity"])
        assert element_norms["q1 effectivity"].isna().all()
        assert norms["q1 ||q-q^r||"] < 1e-12

    def test_round_off_error_treated_as_zero(self, linear_problem):
        """a(e,e) at round-off level relative to |||u|||^2 gives NaN."""
        mesh, problem, anasol = linear_problem
        norm = problem.get_norm_integrand(anasol)
        norm.add_projection(np.zeros((mesh.n_nodes, 2)))
        slot = norm.effectivity_slots()[0]
        squared = np.zeros(norm.n_values)
        squared[norm.offset(2)] = 13.0
        squared[norm.offset(2) + 2] = 1e-30
        squared[slot - 2] = 1e-30
        out = np.zeros(norm.n_values)
        norm.set_effectivity(squared, out)
        assert np.isnan(out[slot])

        squared[norm.offset(2) + 2] = 4e-6
        squared[slot - 2] = 1e-6
        norm.set_effectivity(squared, out)
        assert np.isclose(out[slot], 0.5)


class TestNormState:
    """Element container handling."""

    def test_requires_solution(self):
        norm = AdvectionDiffusion(2).get_norm_integrand()
        elm = norm.get_local_integral(4)
        assert not norm.init_element(np.arange(4), elm)

    def test_uninitialized_rejected(self, element_2d):
        element, lo, hi = element_2d
        norm = AdvectionDiffusion(2).get_norm_integrand()
        elm = norm.get_local_integral(element.nen)
        fe, X = element.evaluate([0.0, 0.0], lo, hi, 1.0)
        assert not norm.eval_int(elm, fe, X)

    def test_finalize_once(self, linear_problem):
        mesh, problem, _ = linear_problem
        problem.tauE[:] = 0.25
        norm = problem.get_norm_integrand()
        elm = norm.get_local_integral(mesh.nen, iel=1)
        assert norm.init_element(mesh.elements[1], elm)
        assert norm.finalize_element(elm)
        assert elm.state is ElementState.FINALIZED
        assert elm.tau == 0.25
        assert not norm.finalize_element(elm)

    def test_zero_nodes_raises(self):
        with pytest.raises(ValueError):
            AdvectionDiffusion(2).get_norm_integrand().get_local_integral(0)
