"""Data structures shared by the advection-diffusion integrands.

Structure:
- FluidProperties: physical parameters (density, diffusivity)
- Stabilization / SolutionMode / IntegrandType: configuration enums
- FiniteElement: quadrature-point record supplied by the host
- ElementMatrices: element matrix set (A, b)
- ElementInfo: element matrices + stabilization accumulators
- NormInfo: element norm accumulator
"""

from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Optional

import numpy as np

from .stabilization import compute_tau


# ========================================================
# Physical Parameters
# ========================================================


@dataclass
class FluidProperties:
    """Mass density and diffusivity (scalar or nsd x nsd tensor)."""

    density: float = 1.0
    diffusivity: object = 1.0

    def get_mass_density(self) -> float:
        return self.density

    def get_diffusivity(self):
        return self.diffusivity

    def is_tensor(self) -> bool:
        return np.ndim(self.diffusivity) == 2

    def diffusivity_tensor(self, nsd: int) -> np.ndarray:
        """Return the diffusivity as an nsd x nsd matrix."""
        if self.is_tensor():
            K = np.asarray(self.diffusivity, dtype=float)
            if K.shape != (nsd, nsd):
                raise ValueError(
                    f"Diffusivity tensor has shape {K.shape}, expected {(nsd, nsd)}"
                )
            return K
        return float(self.diffusivity) * np.eye(nsd)

    def scalar_diffusivity(self) -> float:
        """Scalar diffusion scale (spectral norm for a tensor)."""
        if self.is_tensor():
            return float(np.linalg.norm(np.asarray(self.diffusivity, dtype=float), 2))
        return float(self.diffusivity)


# ========================================================
# Enums
# ========================================================


class Stabilization(Enum):
    """Available stabilization methods."""

    NONE = "none"
    SUPG = "supg"
    GLS = "gls"
    MS = "ms"

    @classmethod
    def parse(cls, value):
        """Accept an enum member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unknown stabilization: {value}. Use 'none', 'supg', 'gls' or 'ms'"
            ) from None


class SolutionMode(Enum):
    """Solution mode of the current assembly pass."""

    STATIC = "static"
    DYNAMIC = "dynamic"  # mass matrix is assembled as well
    RHS_ONLY = "rhs_only"


class IntegrandType(IntFlag):
    """FE quantities an integrand needs from the host."""

    STANDARD = 0
    SECOND_DERIVATIVES = 1
    ELEMENT_CORNERS = 2


class ElementState(Enum):
    ACCUMULATING = "accumulating"
    FINALIZED = "finalized"


# ========================================================
# Quadrature Point Record
# ========================================================


@dataclass
class FiniteElement:
    """Basis data at one quadrature (or result) point.

    Attributes
    ----------
    N : np.ndarray
        Basis function values, shape (nen,)
    dNdX : np.ndarray
        Cartesian basis gradients, shape (nen, nsd)
    detJxW : float
        Jacobian determinant times quadrature weight
    d2NdX2 : np.ndarray, optional
        Cartesian second derivatives, shape (nen, nsd, nsd)
    h : float
        Characteristic element size (0 if unknown)
    iel : int
        Zero-based element index
    """

    N: np.ndarray
    dNdX: np.ndarray
    detJxW: float = 0.0
    d2NdX2: Optional[np.ndarray] = None
    h: float = 0.0
    iel: int = 0

    @property
    def nen(self) -> int:
        return self.N.shape[0]

    def laplacian(self, K: np.ndarray) -> np.ndarray:
        """Return div(K grad N_i) for each basis function (zero without 2nd derivatives)."""
        if self.d2NdX2 is None:
            return np.zeros(self.nen)
        return np.einsum("iab,ab->i", self.d2NdX2, K)


# ========================================================
# Element Containers
# ========================================================


class ElementMatrices:
    """Element matrix set: system matrices A and load vectors b."""

    def __init__(self, lhs: bool = True):
        self.with_lhs = lhs
        self.rhs_only = not lhs
        self.A = []
        self.b = []

    def resize(self, n_matrices: int, n_vectors: int):
        self.A = [None] * n_matrices
        self.b = [None] * n_vectors

    def redim(self, nen: int):
        """Allocate zeroed storage for an element with nen nodes."""
        self.A = [np.zeros((nen, nen)) for _ in self.A]
        self.b = [np.zeros(nen) for _ in self.b]

    @property
    def has_mass(self) -> bool:
        return len(self.A) > 1


class ElementInfo(ElementMatrices):
    """Advection-diffusion element matrices with stabilization accumulators.

    The stabilization matrix/vector are accumulated without tau, since tau
    depends on element-aggregate quantities (``hk``, ``Cv``) that are only
    known once every quadrature point has been visited. They are scaled and
    folded into ``A``/``b`` by ``AdvectionDiffusion.finalize_element``.
    """

    def __init__(self, lhs: bool = True):
        super().__init__(lhs)
        self.eMs = None  # stabilized matrix
        self.eMt = None  # stabilized mass matrix
        self.eSs = None  # stabilized vector
        self.Cv = None  # velocity integral + element measure
        self.hk = 0.0
        self.iEl = 0
        self.state = ElementState.ACCUMULATING

    def allocate_stabilization(self, nen: int, nsd: int, mass: bool = False):
        self.eMs = np.zeros((nen, nen)) if self.with_lhs else None
        self.eMt = np.zeros((nen, nen)) if self.with_lhs and mass else None
        self.eSs = np.zeros(nen)
        self.Cv = np.zeros(nsd + 1)

    @property
    def area(self) -> float:
        return 0.0 if self.Cv is None else float(self.Cv[-1])

    def mean_velocity(self) -> float:
        """Magnitude of the element-averaged advection velocity."""
        if self.Cv is None or self.Cv[-1] <= 0.0:
            return 0.0
        return float(np.linalg.norm(self.Cv[:-1]) / self.Cv[-1])

    def get_tau(self, kappa: float, Cinv: float, p: int) -> float:
        """Return the stabilization parameter of this element."""
        return compute_tau(kappa, Cinv, p, self.hk, self.mean_velocity())


class NormInfo:
    """Element-level norm accumulator.

    ``values`` holds squared norm contributions laid out group by group.
    """

    def __init__(self, n_values: int):
        self.values = np.zeros(n_values)
        self.vec = []
        self.projections = []
        self.iEl = 0
        self.tau = 0.0
        self.state = ElementState.ACCUMULATING
