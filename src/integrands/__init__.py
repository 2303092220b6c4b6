"""Element integrands for stabilized advection-diffusion problems.

Integrand Hierarchy:
--------------------
Integrand (capability interface)
├── AdvectionDiffusion (interior + Neumann terms, SUPG/GLS/MS stabilization)
├── WeakDirichlet (Nitsche boundary terms)
└── NormIntegrand
    └── AdvectionDiffusionNorm (energy/L2/H1 norms, effectivity indices)
"""

from .advection_diffusion import AdvectionDiffusion, WeakDirichlet
from .base import Integrand, NormIntegrand
from .datastructures import (
    ElementInfo,
    ElementMatrices,
    ElementState,
    FiniteElement,
    FluidProperties,
    IntegrandType,
    NormInfo,
    SolutionMode,
    Stabilization,
)
from .functions import AnalyticalSolution, boundary_layer_solution, constant, constant_vector
from .norms import AdvectionDiffusionNorm
from .stabilization import compute_tau

__all__ = [
    # Integrands
    "Integrand",
    "NormIntegrand",
    "AdvectionDiffusion",
    "WeakDirichlet",
    "AdvectionDiffusionNorm",
    # Data structures
    "FluidProperties",
    "FiniteElement",
    "ElementMatrices",
    "ElementInfo",
    "ElementState",
    "NormInfo",
    # Enums
    "Stabilization",
    "SolutionMode",
    "IntegrandType",
    # Fields
    "AnalyticalSolution",
    "boundary_layer_solution",
    "constant",
    "constant_vector",
    # Stabilization parameter
    "compute_tau",
]
