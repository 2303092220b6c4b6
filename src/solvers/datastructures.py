"""Data structures for solver configuration and results.

This module defines the configuration and result data structures
for the stabilized advection-diffusion solver.

Structure:
- Parameters: Input configuration (logged to MLflow at start)
- Metrics: Output results (logged to MLflow at end)
- Fields: Nodal solution data
- TimeSeries: Time-stepping history
"""

import json
from dataclasses import asdict, dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd


# ========================================================
# Parameters (Input Configuration)
# ========================================================


@dataclass
class Parameters:
    """Solver parameters - input configuration."""

    # Geometry and discretization
    nsd: int = 2
    nx: int = 8
    ny: int = 8
    Lx: float = 1.0
    Ly: float = 1.0
    order: int = 1

    # Physics (constant coefficient fields)
    diffusivity: float = 1.0
    density: float = 1.0
    advection_x: float = 0.0
    advection_y: float = 0.0
    reaction: float = 0.0
    source: float = 0.0

    # Stabilization
    stabilization: str = "none"
    Cinv: float = 12.0
    CBI: float = 4.0
    gamma: float = 1.0

    # Boundary conditions: side -> {"type": ..., "value": ...}
    boundary_conditions: dict = field(default_factory=dict)

    # Time stepping (static solve when n_steps == 0)
    dt: float = 0.0
    n_steps: int = 0

    linear_solver: str = "direct"
    tolerance: float = 1e-10
    projection: bool = True
    method: str = "FEM"

    def advection(self) -> np.ndarray:
        return np.array([self.advection_x, self.advection_y][: self.nsd])

    def to_dict(self) -> dict:
        params = asdict(self)
        params["boundary_conditions"] = json.dumps(params["boundary_conditions"], sort_keys=True)
        return params

    def to_dataframe(self):
        return pd.DataFrame([self.to_dict()])

    def to_mlflow(self) -> dict:
        return {k: str(v) for k, v in self.to_dict().items()}


# ========================================================
# Metrics (Output Results)
# ========================================================


@dataclass
class Metrics:
    """Solver metrics - output results computed during/after solving."""

    n_nodes: int = 0
    n_elements: int = 0
    h: float = 0.0
    steps: int = 0
    wall_time_seconds: float = 0.0
    final_change: float = 0.0
    energy_norm: float = 0.0
    l2_norm: float = 0.0
    h1_seminorm: float = 0.0
    energy_error: float = float("nan")
    l2_error: float = float("nan")
    h1_error: float = float("nan")
    error_estimate: float = float("nan")
    effectivity: float = float("nan")

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])

    def to_mlflow(self) -> dict:
        """Finite metrics only (MLflow rejects NaN)."""
        return {k: float(v) for k, v in asdict(self).items() if np.isfinite(v)}


# ========================================================
# Fields (Nodal Solution Data)
# ========================================================


@dataclass
class Fields:
    """Nodal solution u and (projected) flux on the node coordinates."""

    x: np.ndarray
    u: np.ndarray
    y: Optional[np.ndarray] = None
    q_x: Optional[np.ndarray] = None
    q_y: Optional[np.ndarray] = None

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per node."""
        return pd.DataFrame({k: v for k, v in asdict(self).items() if v is not None})


# ========================================================
# Time Series (Time-Stepping History)
# ========================================================


@dataclass
class TimeSeries:
    """Time-stepping history (one value per step)."""

    time: List[float]
    solution_change: List[float]
    solution_norm: List[float]

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per time step."""
        return pd.DataFrame(asdict(self))
