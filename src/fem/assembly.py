"""Global assembly of element integrands on structured meshes.

The host side of the integrand interface: loops over elements and quadrature
points, hands FiniteElement records to the integrands and scatters the
finalized element matrices into sparse global matrices through COO
triplets.

Boundary conditions are given per side as
``{"left": {"type": "dirichlet", "value": 0.0}, ...}`` with type one of
"dirichlet" (strong), "weak" (Nitsche) or "neumann" (prescribed flux).
Unlisted sides are homogeneous Neumann.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from scipy.sparse import coo_matrix, csr_matrix, diags
from scipy.sparse.linalg import spsolve

from integrands.datastructures import IntegrandType, SolutionMode

from .basis import TensorLagrangeElement
from .mesh import MeshData, boundary_field
from .quadrature import tensor_gauss

log = logging.getLogger(__name__)

BC_TYPES = ("dirichlet", "weak", "neumann")


@dataclass
class LinearSystem:
    """Assembled global system: A u = b (and mass matrix M for transient runs)."""

    A: Optional[csr_matrix]
    b: np.ndarray
    M: Optional[csr_matrix] = None


class _Triplets:
    """COO triplet lists for one global matrix."""

    def __init__(self, n: int):
        self.n = n
        self.row = []
        self.col = []
        self.data = []

    def add(self, mnpc: np.ndarray, Ae: np.ndarray):
        nen = mnpc.shape[0]
        self.row.append(np.repeat(mnpc, nen))
        self.col.append(np.tile(mnpc, nen))
        self.data.append(Ae.ravel())

    def to_csr(self) -> csr_matrix:
        if not self.data:
            return csr_matrix((self.n, self.n))
        return coo_matrix(
            (np.concatenate(self.data), (np.concatenate(self.row), np.concatenate(self.col))),
            shape=(self.n, self.n),
        ).tocsr()


# ========================================================
# Boundary Conditions
# ========================================================


def parse_boundary_conditions(mesh: MeshData, boundary_conditions) -> dict:
    """
    Group the boundary condition config by type.

    Returns
    -------
    dict
        BC type -> {side: value}
    """
    grouped = {kind: {} for kind in BC_TYPES}
    for side, bc in (boundary_conditions or {}).items():
        if side not in mesh.boundary_facets:
            raise ValueError(f"Unknown boundary side: {side}. Use one of {mesh.sides}")
        kind = str(bc.get("type", "neumann")).lower()
        if kind not in BC_TYPES:
            raise ValueError(f"Unknown boundary condition type: {kind}. Use one of {BC_TYPES}")
        grouped[kind][side] = bc.get("value", 0.0)
    return grouped


def strong_dirichlet_dofs(mesh: MeshData, boundary_conditions) -> tuple[np.ndarray, np.ndarray]:
    """
    Collect the constrained nodes and their values.

    Nodes shared by several Dirichlet sides take the value of the side
    listed last.

    Returns
    -------
    dofs : np.ndarray
        Constrained global node indices (sorted, unique)
    values : np.ndarray
        Prescribed values at those nodes
    """
    grouped = parse_boundary_conditions(mesh, boundary_conditions)
    prescribed = {}
    for side, value in grouped["dirichlet"].items():
        for node in mesh.boundary_nodes[side]:
            X = mesh.nodes[node]
            prescribed[int(node)] = float(value(X)) if callable(value) else float(value)
    dofs = np.array(sorted(prescribed), dtype=int)
    values = np.array([prescribed[d] for d in dofs], dtype=float)
    return dofs, values


def apply_dirichlet(A: csr_matrix, b: np.ndarray, dofs: np.ndarray, values: np.ndarray):
    """
    Impose u[dofs] = values by row/column elimination.

    The constrained rows and columns are replaced by identity, the lifting
    of the prescribed values is moved to the right-hand side.

    Returns
    -------
    A_bc : csr_matrix
    b_bc : np.ndarray
    """
    n = A.shape[0]
    constrained = np.zeros(n, dtype=bool)
    constrained[dofs] = True
    g = np.zeros(n)
    g[dofs] = values

    free = diags((~constrained).astype(float))
    A_bc = (free @ A @ free + diags(constrained.astype(float))).tocsr()
    b_bc = b - A @ g
    b_bc[constrained] = g[constrained]
    return A_bc, b_bc


# ========================================================
# Assembly
# ========================================================


def _facet_rule(n_quad: int, nsd: int, direction: int, end: int):
    points, weights = tensor_gauss(n_quad, nsd - 1)
    points = np.insert(points, direction, 1.0 if end else -1.0, axis=1)
    return points, weights


def assemble(
    mesh: MeshData,
    integrand,
    boundary_conditions=None,
    weak=None,
    n_quad: int = None,
) -> LinearSystem:
    """
    Assemble the global system of an AdvectionDiffusion integrand.

    Parameters
    ----------
    mesh : MeshData
        Structured mesh
    integrand : AdvectionDiffusion
        Interior integrand, its mode decides which matrices are assembled
    boundary_conditions : dict, optional
        Side -> {"type": ..., "value": ...}; Neumann and weak values become
        the flux fields of the respective integrands
    weak : WeakDirichlet, optional
        Nitsche integrand for "weak" sides (created from the interior
        integrand when omitted)
    n_quad : int, optional
        Gauss points per direction (default p + 2)

    Returns
    -------
    LinearSystem
        Strong Dirichlet conditions are not applied, see apply_dirichlet()
    """
    grouped = parse_boundary_conditions(mesh, boundary_conditions)
    nsd, nel, nen, nnod = mesh.nsd, mesh.n_elements, mesh.nen, mesh.n_nodes
    if integrand.nsd != nsd:
        raise ValueError(f"Integrand has nsd={integrand.nsd}, mesh has nsd={nsd}")
    if not integrand.has_interior_terms():
        raise ValueError(f"{type(integrand).__name__} has no interior terms to assemble")

    element = TensorLagrangeElement(mesh.order, nsd)
    n_quad = n_quad or mesh.order + 2
    points, weights = tensor_gauss(n_quad, nsd)
    second = bool(integrand.get_integrand_type() & IntegrandType.SECOND_DERIVATIVES)

    if integrand.tauE.shape[0] < nel:
        integrand.set_elements(nel)

    with_lhs = integrand.mode is not SolutionMode.RHS_ONLY
    stiffness = _Triplets(nnod)
    mass = _Triplets(nnod)
    b = np.zeros(nnod)

    # --- Interior terms ---
    for iel in range(nel):
        mnpc = mesh.elements[iel]
        lo, hi = mesh.element_lo[iel], mesh.element_hi[iel]
        elm = integrand.get_local_integral(nen, iel)
        for xi, w in zip(points, weights):
            fe, X = element.evaluate(xi, lo, hi, w, second, iel=iel)
            if not integrand.eval_int(elm, fe, X):
                raise RuntimeError(f"Interior integration failed in element {iel}")
        if not integrand.finalize_element(elm):
            raise RuntimeError(f"Finalization failed in element {iel}")

        if elm.A:
            stiffness.add(mnpc, elm.A[0])
        if elm.has_mass:
            mass.add(mnpc, elm.A[1])
        b[mnpc] += elm.b[0]

    # --- Neumann terms ---
    if grouped["neumann"] and integrand.has_boundary_terms():
        integrand.set_flux(boundary_field(mesh, grouped["neumann"]))
        for side in grouped["neumann"]:
            for iel, d, end in mesh.boundary_facets[side]:
                elm = integrand.get_local_integral(nen, iel, neumann=True)
                _integrate_facet(mesh, element, integrand, elm, iel, d, end, n_quad)
                if not integrand.finalize_element(elm):
                    raise RuntimeError(f"Finalization failed on facet of element {iel}")
                b[mesh.elements[iel]] += elm.b[0]

    # --- Weak Dirichlet terms ---
    if grouped["weak"]:
        if weak is None:
            weak = integrand.make_weak_dirichlet()
        if not weak.has_boundary_terms():
            raise ValueError(f"{type(weak).__name__} has no boundary terms for weak Dirichlet sides")
        weak.set_flux(boundary_field(mesh, grouped["weak"]))
        for side in grouped["weak"]:
            for iel, d, end in mesh.boundary_facets[side]:
                elm = weak.get_local_integral(nen, iel)
                _integrate_facet(mesh, element, weak, elm, iel, d, end, n_quad)
                mnpc = mesh.elements[iel]
                if with_lhs:
                    stiffness.add(mnpc, elm.A[0])
                b[mnpc] += elm.b[0]

    log.debug(f"Assembled {nel} elements, {nnod} nodes")
    return LinearSystem(
        A=stiffness.to_csr() if with_lhs else None,
        b=b,
        M=mass.to_csr() if integrand.mode is SolutionMode.DYNAMIC else None,
    )


def _integrate_facet(mesh, element, integrand, elm, iel, direction, end, n_quad):
    lo, hi = mesh.element_lo[iel], mesh.element_hi[iel]
    normal = mesh.outward_normal(direction, end)
    for xi, w in zip(*_facet_rule(n_quad, mesh.nsd, direction, end)):
        fe, X = element.evaluate(xi, lo, hi, w, facet=direction, iel=iel)
        if not integrand.eval_bou(elm, fe, X, normal):
            raise RuntimeError(f"Boundary integration failed in element {iel}")


# ========================================================
# Norms and Secondary Solutions
# ========================================================


def norm_labels(norm) -> list:
    """Flat list of norm names, projection groups prefixed by q1, q2, ..."""
    labels = []
    for group in range(1, norm.get_no_fields(0) + 1):
        prefix = f"q{group - 2}" if group > 2 else None
        labels.extend(norm.get_name(group, j, prefix) for j in range(1, norm.get_no_fields(group) + 1))
    return labels


def integrate_norms(mesh: MeshData, norm, n_quad: int = None) -> tuple[pd.Series, pd.DataFrame]:
    """
    Integrate a norm integrand over the mesh.

    Parameters
    ----------
    mesh : MeshData
        Structured mesh
    norm : AdvectionDiffusionNorm
        Norm integrand (primary solution already set on its problem)
    n_quad : int, optional
        Gauss points per direction (default p + 3)

    Returns
    -------
    global_norms : pd.Series
        Square roots of the summed squared norms, global effectivity indices
    element_norms : pd.DataFrame
        Per-element norms with element size and tau
    """
    nsd, nel, nen = mesh.nsd, mesh.n_elements, mesh.nen
    element = TensorLagrangeElement(mesh.order, nsd)
    points, weights = tensor_gauss(n_quad or mesh.order + 3, nsd)

    values = np.zeros((nel, norm.n_values))
    taus = np.zeros(nel)
    for iel in range(nel):
        mnpc = mesh.elements[iel]
        lo, hi = mesh.element_lo[iel], mesh.element_hi[iel]
        elm = norm.get_local_integral(nen, iel)
        if not norm.init_element(mnpc, elm):
            raise RuntimeError(f"Norm initialization failed in element {iel}")
        for xi, w in zip(points, weights):
            fe, X = element.evaluate(xi, lo, hi, w, iel=iel)
            if not norm.eval_int(elm, fe, X):
                raise RuntimeError(f"Norm integration failed in element {iel}")
        if not norm.finalize_element(elm):
            raise RuntimeError(f"Norm finalization failed in element {iel}")
        values[iel] = elm.values
        taus[iel] = elm.tau

    slots = norm.effectivity_slots()
    summable = np.setdiff1d(np.arange(norm.n_values), slots)
    totals = values.sum(axis=0)

    global_values = np.sqrt(np.maximum(totals, 0.0))
    norm.set_effectivity(totals, global_values)

    element_values = values.copy()
    element_values[:, summable] = np.sqrt(np.maximum(values[:, summable], 0.0))

    labels = norm_labels(norm)
    element_norms = pd.DataFrame(element_values, columns=labels)
    element_norms.insert(0, "element", np.arange(nel))
    element_norms["h"] = mesh.element_sizes()
    element_norms["tau"] = taus
    return pd.Series(global_values, index=labels), element_norms


def _reference_coordinates(X, lo, hi):
    return 2.0 * (np.asarray(X, dtype=float)[: lo.shape[0]] - lo) / (hi - lo) - 1.0


def evaluate_secondary(mesh: MeshData, integrand, points) -> np.ndarray:
    """
    Evaluate the secondary solution (flux) at arbitrary points.

    Returns
    -------
    np.ndarray
        Shape (n_points, n_components)
    """
    element = TensorLagrangeElement(mesh.order, mesh.nsd)
    points = np.atleast_2d(np.asarray(points, dtype=float))
    result = []
    for X in points:
        iel = mesh.locate(X)
        lo, hi = mesh.element_lo[iel], mesh.element_hi[iel]
        fe, _ = element.evaluate(_reference_coordinates(X, lo, hi), lo, hi, iel=iel)
        q = integrand.eval_sol(fe, X, mesh.elements[iel])
        if q is None:
            raise RuntimeError(f"Secondary solution evaluation failed at {X}")
        result.append(q)
    return np.asarray(result)


def project_secondary(mesh: MeshData, integrand, n_quad: int = None) -> np.ndarray:
    """
    Consistent L2 projection of the secondary solution onto the nodal basis.

    Solves M q* = (N, q_h) once per flux component.

    Returns
    -------
    np.ndarray
        Nodal values, shape (n_nodes, n_components)
    """
    nsd, nel, nnod = mesh.nsd, mesh.n_elements, mesh.n_nodes
    ncmp = integrand.get_no_fields(2)
    element = TensorLagrangeElement(mesh.order, nsd)
    points, weights = tensor_gauss(n_quad or mesh.order + 1, nsd)

    mass = _Triplets(nnod)
    rhs = np.zeros((nnod, ncmp))
    for iel in range(nel):
        mnpc = mesh.elements[iel]
        lo, hi = mesh.element_lo[iel], mesh.element_hi[iel]
        Me = np.zeros((mesh.nen, mesh.nen))
        Re = np.zeros((mesh.nen, ncmp))
        for xi, w in zip(points, weights):
            fe, X = element.evaluate(xi, lo, hi, w, iel=iel)
            q = integrand.eval_sol(fe, X, mnpc)
            if q is None:
                raise RuntimeError(f"Secondary solution evaluation failed in element {iel}")
            Me += fe.detJxW * np.outer(fe.N, fe.N)
            Re += fe.detJxW * np.outer(fe.N, q)
        mass.add(mnpc, Me)
        rhs[mnpc] += Re

    projected = spsolve(mass.to_csr().tocsc(), rhs)
    return np.asarray(projected).reshape(nnod, ncmp)
