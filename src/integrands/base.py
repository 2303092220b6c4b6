"""Abstract integrand interface used by the host assembly loop.

Integrand Variants:
-------------------
Integrand (abstract capability interface)
├── AdvectionDiffusion      (interior terms + Neumann boundary terms)
├── WeakDirichlet           (Nitsche boundary terms only)
└── NormIntegrand
    └── AdvectionDiffusionNorm (element norms and effectivity indices)
"""

from abc import ABC, abstractmethod

from .datastructures import IntegrandType


class Integrand(ABC):
    """Evaluation capabilities an integrand offers the host.

    Subclasses must:
    - Implement get_local_integral() - allocate an element container
    - Override eval_int() and/or eval_bou() for the terms they provide
    - Report which of those they provide via has_interior_terms() and
      has_boundary_terms()
    """

    def __init__(self, nsd: int):
        self.nsd = nsd

    def has_interior_terms(self) -> bool:
        return True

    def has_boundary_terms(self) -> bool:
        return True

    def get_integrand_type(self) -> IntegrandType:
        """Defines which FE quantities are needed by the integrand."""
        return IntegrandType.STANDARD

    @abstractmethod
    def get_local_integral(self, nen: int, iel: int = 0, neumann: bool = False):
        """Return a zero-initialized element container for an element with nen nodes."""

    def eval_int(self, elm_int, fe, X) -> bool:
        """Evaluate the integrand at an interior point."""
        return False

    def eval_bou(self, elm_int, fe, X, normal) -> bool:
        """Evaluate the integrand at a boundary point."""
        return False

    def finalize_element(self, elm_int) -> bool:
        """Close out element quantities after the integration loop."""
        return True


class NormIntegrand(Integrand):
    """Integrand producing element norm contributions."""

    def has_boundary_terms(self) -> bool:
        return False

    @abstractmethod
    def get_no_fields(self, group: int = 0) -> int:
        """Number of norm groups (group=0) or size of a group."""

    @abstractmethod
    def get_name(self, i: int, j: int, prefix: str = None) -> str:
        """Name of norm j in group i (both one-based)."""
