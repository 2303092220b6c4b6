"""Stabilized advection-diffusion solver framework.

Solver Hierarchy:
-----------------
AdvectionDiffusionSolver (structured mesh, static or backward Euler)
├── AdvectionDiffusion integrand (interior + Neumann terms)
└── WeakDirichlet integrand (Nitsche boundary terms)
"""

from .base import AdvectionDiffusionSolver
from .datastructures import Fields, Metrics, Parameters, TimeSeries
from .metrics import (
    build_parameter_string,
    convergence_rates,
    convergence_table,
    fit_convergence_order,
)

__all__ = [
    # Solver
    "AdvectionDiffusionSolver",
    # Data structures
    "Parameters",
    "Metrics",
    "Fields",
    "TimeSeries",
    # Convergence studies
    "convergence_rates",
    "fit_convergence_order",
    "convergence_table",
    "build_parameter_string",
]
