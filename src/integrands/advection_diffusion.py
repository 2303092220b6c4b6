"""Integrands for stabilized advection-diffusion problems.

Solves (element by element)

    rho du/dt + U . grad(u) - div(K grad(u)) + r u = s

with optional residual-based stabilization:
- "supg": streamline-upwind/Petrov-Galerkin
- "gls": Galerkin/least-squares
- "ms": multiscale (adjoint) stabilization

The stabilization terms are accumulated without tau during the quadrature
loop and scaled by the element tau in finalize_element().
"""

import logging

import numpy as np

from . import operators as ops
from .base import Integrand
from .datastructures import (
    ElementInfo,
    ElementMatrices,
    ElementState,
    FluidProperties,
    IntegrandType,
    SolutionMode,
    Stabilization,
)
from .norms import AdvectionDiffusionNorm

log = logging.getLogger(__name__)


class AdvectionDiffusion(Integrand):
    """Integrand of the advection-diffusion problem.

    Parameters
    ----------
    nsd : int
        Number of spatial dimensions
    stab : Stabilization or str
        Stabilization option
    """

    def __init__(self, nsd: int = 3, stab=Stabilization.NONE):
        super().__init__(nsd)
        self.stab = Stabilization.parse(stab)

        # Borrowed field callables, None means absent
        self.advection = None
        self.reaction = None
        self.source = None
        self.flux = None

        self.tauE = np.zeros(0)  # stored tau values, needed for norm integration
        self.order = 1
        self.Cinv = 12.0
        self.fixed_tau = None
        self.props = FluidProperties()
        self.mode = SolutionMode.STATIC
        self.primsol = []

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_source(self, src):
        self.source = src

    def set_cinv(self, Cinv: float):
        self.Cinv = Cinv

    def get_cinv(self) -> float:
        return self.Cinv

    def set_stabilization(self, stab):
        self.stab = Stabilization.parse(stab)

    def get_stabilization(self) -> Stabilization:
        return self.stab

    def set_advection_field(self, U):
        self.advection = U

    def set_flux(self, f):
        self.flux = f

    def set_reaction_field(self, f):
        self.reaction = f

    def set_order(self, p: int):
        self.order = p

    def set_fixed_tau(self, tau):
        """Prescribe tau for every element (None restores the computed value)."""
        self.fixed_tau = tau

    def set_elements(self, nel: int, buffer: np.ndarray = None):
        """Size the per-element tau storage.

        Parameters
        ----------
        nel : int
            Global number of elements
        buffer : np.ndarray, optional
            Caller-owned array to write tau values into (at least nel long)
        """
        if buffer is None:
            self.tauE = np.zeros(nel)
            return
        if buffer.ndim != 1 or buffer.shape[0] < nel:
            raise ValueError(f"Tau buffer of shape {buffer.shape} cannot hold {nel} elements")
        buffer[:] = 0.0
        self.tauE = buffer

    def get_element_tau(self, e: int) -> float:
        """Return a previously calculated tau value (0 outside the element range)."""
        if 0 <= e < self.tauE.shape[0]:
            return float(self.tauE[e])
        return 0.0

    def get_fluid_properties(self) -> FluidProperties:
        return self.props

    def set_mode(self, mode: SolutionMode):
        """Defines the solution mode before the element assembly is started."""
        self.mode = mode

    def set_solution(self, *vectors):
        """Define the primary solution vector(s) used by eval_sol and norms."""
        self.primsol = [np.asarray(v, dtype=float) for v in vectors]

    def advance_step(self):
        """Advances the integrand one time step forward."""

    def get_integrand_type(self) -> IntegrandType:
        if self.stab in (Stabilization.GLS, Stabilization.MS):
            return IntegrandType.ELEMENT_CORNERS | IntegrandType.SECOND_DERIVATIVES
        return IntegrandType.ELEMENT_CORNERS

    # ------------------------------------------------------------------
    # Element containers
    # ------------------------------------------------------------------

    def get_local_integral(self, nen: int, iel: int = 0, neumann: bool = False) -> ElementInfo:
        """Return a local integral container for the given element.

        Parameters
        ----------
        nen : int
            Number of nodes on element
        iel : int
            Zero-based global element index
        neumann : bool
            Whether or not we are assembling Neumann BCs
        """
        if nen == 0:
            raise ValueError("Cannot create a local integral for an element without nodes")

        lhs = not neumann and self.mode is not SolutionMode.RHS_ONLY
        n_matrices = 0
        if lhs:
            n_matrices = 2 if self.mode is SolutionMode.DYNAMIC else 1

        result = ElementInfo(lhs)
        result.resize(n_matrices, 1)
        result.redim(nen)
        result.iEl = iel
        if not neumann:
            result.allocate_stabilization(nen, self.nsd, mass=n_matrices > 1)
        return result

    def advection_at(self, X) -> np.ndarray:
        if self.advection is None:
            return np.zeros(self.nsd)
        return np.asarray(self.advection(X), dtype=float)[: self.nsd]

    def reaction_at(self, X) -> float:
        return float(self.reaction(X)) if self.reaction is not None else 0.0

    # ------------------------------------------------------------------
    # Integration
    # ------------------------------------------------------------------

    def eval_int(self, elm_int, fe, X) -> bool:
        """Evaluate the integrand at an interior point.

        Parameters
        ----------
        elm_int : ElementInfo
            The local integral object to receive the contributions
        fe : FiniteElement
            Finite element data of current integration point
        X : np.ndarray
            Cartesian coordinates of current integration point
        """
        if not isinstance(elm_int, ElementInfo) or elm_int.Cv is None:
            log.error("eval_int: expected an interior ElementInfo, got %s", type(elm_int).__name__)
            return False
        if elm_int.state is not ElementState.ACCUMULATING:
            log.error("eval_int: element %d is already finalized", elm_int.iEl)
            return False

        U = self.advection_at(X)
        react = self.reaction_at(X)
        f = float(self.source(X)) if self.source is not None else 0.0
        K = self.props.diffusivity_tensor(self.nsd)
        rho = self.props.get_mass_density()

        # Galerkin terms
        if elm_int.with_lhs:
            ops.laplacian(elm_int.A[0], fe, K)
            ops.advection(elm_int.A[0], fe, U)
            if react != 0.0:
                ops.mass(elm_int.A[0], fe, react)
            if elm_int.has_mass:
                ops.mass(elm_int.A[1], fe, rho)
        if f != 0.0:
            ops.source(elm_int.b[0], fe, f)

        # Element velocity integral and measure for tau
        elm_int.Cv[:-1] += U * fe.detJxW
        elm_int.Cv[-1] += fe.detJxW
        if elm_int.hk == 0.0 and fe.h > 0.0:
            elm_int.hk = fe.h

        if self.stab is Stabilization.NONE:
            return True

        # Stabilization terms, scaled by tau in finalize_element()
        test = ops.stabilized_test(self.stab, fe, U, K, react)
        if elm_int.with_lhs:
            elm_int.eMs += fe.detJxW * np.outer(test, ops.residual(fe, U, K, react))
            if elm_int.eMt is not None:
                elm_int.eMt += rho * fe.detJxW * np.outer(test, fe.N)
        elm_int.eSs += f * fe.detJxW * test
        return True

    def finalize_element(self, elm_int) -> bool:
        """Scale the stabilization terms by tau and add them to the element system.

        Invoked once for each element, after the integration loop over
        interior points and before the element quantities are assembled into
        their system level equivalents.
        """
        if not isinstance(elm_int, ElementInfo):
            log.error("finalize_element: expected ElementInfo, got %s", type(elm_int).__name__)
            return False
        if elm_int.state is ElementState.FINALIZED:
            log.error("finalize_element: element %d finalized twice", elm_int.iEl)
            return False

        if elm_int.Cv is None:
            # Neumann-only container, nothing to stabilize
            elm_int.state = ElementState.FINALIZED
            return True

        tau = 0.0
        if self.stab is not Stabilization.NONE:
            if elm_int.hk == 0.0 and elm_int.area > 0.0:
                elm_int.hk = elm_int.area ** (1.0 / self.nsd)
            if self.fixed_tau is not None:
                tau = float(self.fixed_tau)
            else:
                tau = elm_int.get_tau(self.props.scalar_diffusivity(), self.Cinv, self.order)

            if elm_int.with_lhs:
                elm_int.A[0] += tau * elm_int.eMs
                if elm_int.eMt is not None:
                    elm_int.A[1] += tau * elm_int.eMt
            elm_int.b[0] += tau * elm_int.eSs

        if 0 <= elm_int.iEl < self.tauE.shape[0]:
            self.tauE[elm_int.iEl] = tau
        elm_int.state = ElementState.FINALIZED
        return True

    def eval_bou(self, elm_int, fe, X, normal) -> bool:
        """Evaluate the Neumann flux term at a boundary point."""
        if not isinstance(elm_int, ElementMatrices) or not elm_int.b:
            log.error("eval_bou: expected an element matrix set, got %s", type(elm_int).__name__)
            return False
        if getattr(elm_int, "state", ElementState.ACCUMULATING) is ElementState.FINALIZED:
            log.error("eval_bou: element is already finalized")
            return False

        if self.flux is not None:
            ops.source(elm_int.b[0], fe, float(self.flux(X)))
        return True

    # ------------------------------------------------------------------
    # Secondary solution
    # ------------------------------------------------------------------

    def eval_sol(self, fe, X, mnpc):
        """Evaluate the diffusive flux q = -K grad(u_h) at a result point.

        Parameters
        ----------
        fe : FiniteElement
            Finite element data at current point
        X : np.ndarray
            Cartesian coordinates of current point
        mnpc : sequence of int
            Nodal point correspondance for the basis function values

        Returns
        -------
        np.ndarray or None
            Flux components, or None if no primary solution is available
        """
        if not self.primsol:
            log.error("eval_sol: no primary solution defined")
            return None
        u = self.primsol[0]
        mnpc = np.asarray(mnpc, dtype=int)
        if mnpc.shape[0] != fe.nen or mnpc.min() < 0 or mnpc.max() >= u.shape[0]:
            log.error("eval_sol: nodal correspondance does not match the solution vector")
            return None

        grad_u = fe.dNdX.T @ u[mnpc]
        return -self.props.diffusivity_tensor(self.nsd) @ grad_u

    def get_no_fields(self, fld: int = 1) -> int:
        """Number of primary (fld=1) or secondary (fld=2) solution components."""
        return self.nsd if fld > 1 else 1

    def get_field1_name(self, i: int = 0, prefix: str = None) -> str:
        if not prefix:
            return "u"
        return f"{prefix} u"

    def get_field2_name(self, i: int, prefix: str = None) -> str:
        if not 0 <= i < self.nsd:
            raise IndexError(f"Flux component {i} out of range for nsd={self.nsd}")
        name = ("q_x", "q_y", "q_z")[i]
        if not prefix:
            return name
        return f"{prefix} {name}"

    def get_norm_integrand(self, anasol=None) -> AdvectionDiffusionNorm:
        """Return an integrand for solution norm evaluation."""
        return AdvectionDiffusionNorm(self, anasol)

    def make_weak_dirichlet(self, CBI: float = 4.0, gamma: float = 1.0) -> "WeakDirichlet":
        """Return a weak Dirichlet integrand sharing fields and fluid properties."""
        weak = WeakDirichlet(self.nsd, CBI, gamma, props=self.props)
        weak.set_advection_field(self.advection)
        return weak


class WeakDirichlet(Integrand):
    """Weakly enforced (Nitsche) Dirichlet condition.

    Parameters
    ----------
    nsd : int
        Number of spatial dimensions
    CBI : float
        Model constant of the penalty term CBI * kappa / h. Vanishing
        diffusivity switches the penalty off, leaving only the inflow term.
    gamma : float
        Adjoint factor (1.0 gives the symmetric variant)
    props : FluidProperties, optional
        Fluid properties to share with the interior integrand
    """

    def __init__(self, nsd: int, CBI: float = 4.0, gamma: float = 1.0, props: FluidProperties = None):
        super().__init__(nsd)
        self._CBI = CBI
        self._gamma = gamma
        self.advection = None
        self.flux = None
        self.props = props if props is not None else FluidProperties()

    @property
    def CBI(self) -> float:
        return self._CBI

    @property
    def gamma(self) -> float:
        return self._gamma

    def has_interior_terms(self) -> bool:
        return False

    def get_integrand_type(self) -> IntegrandType:
        return IntegrandType.ELEMENT_CORNERS

    def set_advection_field(self, U):
        self.advection = U

    def set_flux(self, f):
        """Define the prescribed boundary value."""
        self.flux = f

    def get_fluid_properties(self) -> FluidProperties:
        return self.props

    def get_local_integral(self, nen: int, iel: int = 0, neumann: bool = False) -> ElementMatrices:
        if nen == 0:
            raise ValueError("Cannot create a local integral for an element without nodes")
        result = ElementMatrices()
        result.resize(1, 1)
        result.redim(nen)
        return result

    def eval_bou(self, elm_int, fe, X, normal) -> bool:
        """Add consistency, adjoint, penalty and inflow terms at a boundary point."""
        if not isinstance(elm_int, ElementMatrices) or not elm_int.A:
            log.error("WeakDirichlet.eval_bou: expected an element matrix set")
            return False
        n = np.asarray(normal, dtype=float)[: self.nsd]
        if not np.any(n):
            log.error("WeakDirichlet.eval_bou: degenerate boundary normal")
            return False
        if fe.h <= 0.0:
            log.error("WeakDirichlet.eval_bou: element size required for the penalty, got h=%g", fe.h)
            return False

        g = float(self.flux(X)) if self.flux is not None else 0.0
        U = np.zeros(self.nsd)
        if self.advection is not None:
            U = np.asarray(self.advection(X), dtype=float)[: self.nsd]

        K = self.props.diffusivity_tensor(self.nsd)
        dNn = fe.dNdX @ (K @ n)  # K grad(N_i) . n
        C = self.CBI * self.props.scalar_diffusivity() / fe.h
        N = fe.N
        w = fe.detJxW

        A = elm_int.A[0]
        A -= w * np.outer(N, dNn)
        A -= self.gamma * w * np.outer(dNn, N)
        A += C * w * np.outer(N, N)
        elm_int.b[0] += g * w * (C * N - self.gamma * dNn)

        # Inflow boundary
        An = float(U @ n)
        if An < 0.0:
            A -= An * w * np.outer(N, N)
            elm_int.b[0] -= An * g * w * N
        return True
