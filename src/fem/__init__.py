"""Host layer: quadrature, Lagrange bases, structured meshes and assembly."""

from .assembly import (
    LinearSystem,
    apply_dirichlet,
    assemble,
    evaluate_secondary,
    integrate_norms,
    parse_boundary_conditions,
    project_secondary,
    strong_dirichlet_dofs,
)
from .basis import LagrangeBasis1D, TensorLagrangeElement
from .linear_solvers import scipy_solver
from .mesh import MeshData, boundary_field, interval_mesh, rectangle_mesh, structured_mesh
from .quadrature import gauss_legendre, tensor_gauss

__all__ = [
    # Quadrature and bases
    "gauss_legendre",
    "tensor_gauss",
    "LagrangeBasis1D",
    "TensorLagrangeElement",
    # Meshes
    "MeshData",
    "structured_mesh",
    "interval_mesh",
    "rectangle_mesh",
    "boundary_field",
    # Assembly
    "LinearSystem",
    "assemble",
    "parse_boundary_conditions",
    "strong_dirichlet_dofs",
    "apply_dirichlet",
    "integrate_norms",
    "evaluate_secondary",
    "project_secondary",
    # Linear solvers
    "scipy_solver",
]
