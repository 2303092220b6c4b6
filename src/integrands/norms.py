"""Energy and error norms for advection-diffusion solutions.

Norm groups (one-based, values accumulated squared per element):
1. Discrete solution: |||u^h|||, ||u^h||_L2, |u^h|_H1
2. Analytical solution: |||u|||, ||u||_L2, a(e,e)^0.5, ||e||_L2, |e|_H1, |||e|||
3+. One group per projected (recovered) flux q^r:
   |||q^r|||, error estimate eta, ||q - q^r||, effectivity index

The energy norm |||v|||^2 = (grad v, K grad v) + (r v, v) + tau ||U . grad v||^2
matches the stabilized bilinear form, with tau taken from the primal
integrand's stored element values.
"""

import logging

import numpy as np

from .base import NormIntegrand
from .datastructures import ElementState, NormInfo

log = logging.getLogger(__name__)

DISCRETE_NORMS = ("|||u^h|||", "||u^h||_L2", "|u^h|_H1")
EXACT_NORMS = ("|||u|||", "||u||_L2", "a(e,e)^0.5", "||e||_L2", "|e|_H1", "|||e|||")
PROJECTION_NORMS = ("|||q^r|||", "eta", "||q-q^r||", "effectivity")
ZERO_ERROR_TOLERANCE = 1e-24


class AdvectionDiffusionNorm(NormIntegrand):
    """Integrand of advection-diffusion energy norms.

    Parameters
    ----------
    problem : AdvectionDiffusion
        The primal integrand to evaluate norms for
    anasol : AnalyticalSolution, optional
        Analytical solution
    """

    def __init__(self, problem, anasol=None):
        super().__init__(problem.nsd)
        self.problem = problem
        self.anasol = anasol
        self.projections = []

    def add_projection(self, nodal_flux: np.ndarray):
        """Add a recovered flux field given at the nodes, shape (nnod, nsd)."""
        self.projections.append(np.asarray(nodal_flux, dtype=float).reshape(-1, self.nsd))

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def get_no_fields(self, group: int = 0) -> int:
        """Returns the number of norm groups (group=0) or the size of a group."""
        if group == 0:
            return 2 + len(self.projections)
        if group == 1:
            return len(DISCRETE_NORMS)
        if group == 2:
            return len(EXACT_NORMS)
        if 3 <= group < 3 + len(self.projections):
            return len(PROJECTION_NORMS)
        return 0

    def offset(self, group: int) -> int:
        """Index of the first value of a (one-based) group in the flat layout."""
        if group == 1:
            return 0
        if group == 2:
            return len(DISCRETE_NORMS)
        return len(DISCRETE_NORMS) + len(EXACT_NORMS) + len(PROJECTION_NORMS) * (group - 3)

    @property
    def n_values(self) -> int:
        return self.offset(3 + len(self.projections))

    def get_name(self, i: int, j: int, prefix: str = None) -> str:
        if i == 1:
            name = DISCRETE_NORMS[j - 1]
        elif i == 2:
            name = EXACT_NORMS[j - 1]
        elif 3 <= i < 3 + len(self.projections):
            name = PROJECTION_NORMS[j - 1]
        else:
            raise IndexError(f"No norm group {i}")
        if not prefix:
            return name
        return f"{prefix} {name}"

    def effectivity_slots(self) -> list:
        """Flat indices holding effectivity indices (not summable)."""
        return [self.offset(g) + 3 for g in range(3, 3 + len(self.projections))]

    def set_effectivity(self, squared: np.ndarray, out: np.ndarray):
        """
        Write effectivity indices into the effectivity slots of ``out``.

        Parameters
        ----------
        squared : np.ndarray
            Squared norm values (element or summed over the mesh)
        out : np.ndarray
            Array receiving the indices, may be ``squared`` itself

        Notes
        -----
        The index is NaN (not available) without an analytical solution, or
        when a(e,e) is at round-off level relative to the exact energy norm
        squared, ``a(e,e) <= 1e-24 * max(|||u|||^2, 1)``.
        """
        off = self.offset(2)
        true_error = squared[off + 2]
        reference = max(squared[off], 1.0)
        available = self.anasol is not None and true_error > ZERO_ERROR_TOLERANCE * reference
        for slot in self.effectivity_slots():
            out[slot] = np.sqrt(squared[slot - 2] / true_error) if available else np.nan

    # ------------------------------------------------------------------
    # Element containers
    # ------------------------------------------------------------------

    def get_local_integral(self, nen: int, iel: int = 0, neumann: bool = False) -> NormInfo:
        if nen == 0:
            raise ValueError("Cannot create a local integral for an element without nodes")
        result = NormInfo(self.n_values)
        result.iEl = iel
        return result

    def init_element(self, mnpc, elm_norm: NormInfo) -> bool:
        """Gather the element solution and projections through the nodal correspondance."""
        if not self.problem.primsol:
            log.error("init_element: no primary solution defined")
            return False
        mnpc = np.asarray(mnpc, dtype=int)
        elm_norm.vec = [u[mnpc] for u in self.problem.primsol]
        elm_norm.projections = [q[mnpc] for q in self.projections]
        return True

    # ------------------------------------------------------------------
    # Integration
    # ------------------------------------------------------------------

    def eval_int(self, elm_int, fe, X) -> bool:
        """Evaluate the norm integrands at an interior point."""
        if not isinstance(elm_int, NormInfo) or not elm_int.vec:
            log.error("AdvectionDiffusionNorm.eval_int: expected an initialized NormInfo")
            return False
        if elm_int.state is not ElementState.ACCUMULATING:
            log.error("AdvectionDiffusionNorm.eval_int: element %d is already finalized", elm_int.iEl)
            return False

        problem = self.problem
        K = problem.props.diffusivity_tensor(self.nsd)
        U = problem.advection_at(X)
        react = problem.reaction_at(X)
        tau = problem.get_element_tau(elm_int.iEl)
        w = fe.detJxW

        def energy(value, grad):
            return grad @ K @ grad + react * value * value + tau * (U @ grad) ** 2

        ue = elm_int.vec[0]
        u_h = fe.N @ ue
        grad_h = fe.dNdX.T @ ue

        v = elm_int.values
        v[0] += energy(u_h, grad_h) * w
        v[1] += u_h * u_h * w
        v[2] += grad_h @ grad_h * w

        grad_exact = None
        if self.anasol is not None:
            u = float(self.anasol.value(X))
            grad_exact = np.asarray(self.anasol.gradient(X), dtype=float)[: self.nsd]
            e = u - u_h
            grad_e = grad_exact - grad_h

            off = self.offset(2)
            v[off] += energy(u, grad_exact) * w
            v[off + 1] += u * u * w
            v[off + 2] += grad_e @ K @ grad_e * w
            v[off + 3] += e * e * w
            v[off + 4] += grad_e @ grad_e * w
            v[off + 5] += energy(e, grad_e) * w

        if elm_int.projections:
            Kinv = np.linalg.inv(K)
            q_h = -K @ grad_h
            for k, qe in enumerate(elm_int.projections):
                off = self.offset(3 + k)
                q_r = fe.N @ qe
                d = q_r - q_h
                v[off] += q_r @ Kinv @ q_r * w
                v[off + 1] += d @ Kinv @ d * w
                if grad_exact is not None:
                    d = self.anasol.flux(X, K) - q_r
                    v[off + 2] += d @ Kinv @ d * w
        return True

    def finalize_element(self, elm_int) -> bool:
        """Finalize the element norms: attach tau and compute effectivity indices."""
        if not isinstance(elm_int, NormInfo) or elm_int.state is ElementState.FINALIZED:
            log.error("AdvectionDiffusionNorm.finalize_element: invalid or finalized container")
            return False

        elm_int.tau = self.problem.get_element_tau(elm_int.iEl)
        self.set_effectivity(elm_int.values, elm_int.values)
        elm_int.state = ElementState.FINALIZED
        return True
