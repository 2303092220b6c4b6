"""Finite element solver for the stabilized advection-diffusion problem."""

import logging
import time
from pathlib import Path

import mlflow
import numpy as np
import pandas as pd

from fem import (
    apply_dirichlet,
    assemble,
    integrate_norms,
    interval_mesh,
    project_secondary,
    rectangle_mesh,
    scipy_solver,
    strong_dirichlet_dofs,
)
from fem.assembly import parse_boundary_conditions
from integrands import AdvectionDiffusion, SolutionMode, constant, constant_vector

from .datastructures import Fields, Metrics, Parameters, TimeSeries

log = logging.getLogger(__name__)


class AdvectionDiffusionSolver:
    """Stabilized advection-diffusion solver on a structured mesh.

    Handles:
    - Parameter management (input configuration)
    - Mesh and integrand setup
    - Static solve or backward Euler time stepping
    - Norms, error estimates and effectivity indices
    - Result storage (HDF5)

    Parameters
    ----------
    params : Parameters, optional
        Parameters object. If not provided, kwargs are used to create params.
    anasol : AnalyticalSolution, optional
        Analytical solution used for error norms.
    functions : dict, optional
        Field callables overriding the constant coefficients in params,
        keys "advection", "reaction" and "source".
    **kwargs
        Configuration parameters passed to Parameters if params is None.
    """

    Parameters = Parameters

    def __init__(self, params=None, anasol=None, functions=None, **kwargs):
        if params is None:
            params = self.Parameters(**kwargs)

        self.params = params
        self.anasol = anasol
        self.metrics = Metrics()
        self.fields = None
        self.time_series = None
        self.norms = None
        self.element_norms = None
        self.solution = None
        self.flux = None

        if params.nsd not in (1, 2):
            raise ValueError(f"Only 1D and 2D problems are supported, got nsd={params.nsd}")

        self.mesh = self._build_mesh()
        parse_boundary_conditions(self.mesh, params.boundary_conditions)
        self.problem = self._build_integrand(functions or {})
        self.weak = self.problem.make_weak_dirichlet(params.CBI, params.gamma)

    def _build_mesh(self):
        p = self.params
        if p.nsd == 1:
            return interval_mesh(p.nx, p.order, p.Lx)
        return rectangle_mesh(p.nx, p.ny, p.order, p.Lx, p.Ly)

    def _build_integrand(self, functions: dict) -> AdvectionDiffusion:
        p = self.params
        problem = AdvectionDiffusion(p.nsd, p.stabilization)
        problem.set_order(p.order)
        problem.set_cinv(p.Cinv)
        problem.props.density = p.density
        problem.props.diffusivity = p.diffusivity

        problem.set_advection_field(functions.get("advection", constant_vector(*p.advection())))
        if "reaction" in functions or p.reaction != 0.0:
            problem.set_reaction_field(functions.get("reaction", constant(p.reaction)))
        if "source" in functions or p.source != 0.0:
            problem.set_source(functions.get("source", constant(p.source)))

        problem.set_elements(self.mesh.n_elements)
        return problem

    # =========================================================================
    # Solve
    # =========================================================================

    def _linear_solve(self, A, b, dofs, values, M=None):
        A_bc, b_bc = apply_dirichlet(A, b, dofs, values)
        return scipy_solver(A_bc, b_bc, self.params.linear_solver, M=M, tolerance=self.params.tolerance)

    def _solve_static(self):
        self.problem.set_mode(SolutionMode.STATIC)
        system = assemble(self.mesh, self.problem, self.params.boundary_conditions, self.weak)
        dofs, values = strong_dirichlet_dofs(self.mesh, self.params.boundary_conditions)
        u, _ = self._linear_solve(system.A, system.b, dofs, values)
        return u

    def _solve_transient(self, u0=None):
        """Backward Euler: (M/dt + A) u^{n+1} = b + (M/dt) u^n."""
        p = self.params
        if p.dt <= 0.0:
            raise ValueError(f"Time step must be positive for transient runs, got dt={p.dt}")

        self.problem.set_mode(SolutionMode.DYNAMIC)
        system = assemble(self.mesh, self.problem, p.boundary_conditions, self.weak)
        dofs, values = strong_dirichlet_dofs(self.mesh, p.boundary_conditions)
        lhs = (system.M / p.dt + system.A).tocsr()

        u = np.zeros(self.mesh.n_nodes) if u0 is None else np.asarray(u0, dtype=float).copy()
        u[dofs] = values
        times, changes, norms = [], [], []
        precond = None
        for step in range(p.n_steps):
            rhs = system.b + system.M @ u / p.dt
            u_new, precond = self._linear_solve(lhs, rhs, dofs, values, M=precond)
            change = np.linalg.norm(u_new - u) / (np.linalg.norm(u_new) + 1e-12)
            u = u_new
            self.problem.advance_step()

            times.append((step + 1) * p.dt)
            changes.append(change)
            norms.append(float(np.linalg.norm(u)))

            if step % 50 == 0 and mlflow.active_run():
                mlflow.log_metrics({"solution_change": change}, step=step)

        self.time_series = TimeSeries(time=times, solution_change=changes, solution_norm=norms)
        log.info(f"Time stepping finished: {p.n_steps} steps, final change {changes[-1] if changes else 0.0:.3e}")
        return u

    def solve(self, u0=None):
        """Solve the problem and compute norms.

        Stores results in solver attributes:
        - self.fields : Fields dataclass with nodal solution and flux
        - self.time_series : TimeSeries (transient runs only)
        - self.metrics : Metrics dataclass with norms and errors
        - self.norms / self.element_norms : global and per-element norms

        Parameters
        ----------
        u0 : np.ndarray, optional
            Initial condition for transient runs (default zero).
        """
        time_start = time.time()
        if self.params.n_steps > 0:
            self.solution = self._solve_transient(u0)
        else:
            self.solution = self._solve_static()
        wall_time = time.time() - time_start

        self.compute_norms()
        self._store_results(wall_time)
        log.info(f"Solver finished in {wall_time:.2f} seconds.")
        return self.solution

    def compute_norms(self):
        """Integrate solution norms, true errors and the recovery-based estimate."""
        self.problem.set_solution(self.solution)
        norm = self.problem.get_norm_integrand(self.anasol)
        self.flux = None
        if self.params.projection:
            self.flux = project_secondary(self.mesh, self.problem)
            norm.add_projection(self.flux)
        self.norms, self.element_norms = integrate_norms(self.mesh, norm)
        return self.norms

    def _store_results(self, wall_time: float):
        """Store solve results in self.fields and self.metrics."""
        mesh = self.mesh
        nodes = mesh.nodes
        flux = self.flux
        self.fields = Fields(
            x=nodes[:, 0].copy(),
            u=self.solution.copy(),
            y=nodes[:, 1].copy() if mesh.nsd > 1 else None,
            q_x=flux[:, 0].copy() if flux is not None else None,
            q_y=flux[:, 1].copy() if flux is not None and mesh.nsd > 1 else None,
        )

        n = self.norms
        self.metrics = Metrics(
            n_nodes=mesh.n_nodes,
            n_elements=mesh.n_elements,
            h=float(mesh.element_sizes().max()),
            steps=self.params.n_steps,
            wall_time_seconds=wall_time,
            final_change=self.time_series.solution_change[-1] if self.time_series else 0.0,
            energy_norm=n["|||u^h|||"],
            l2_norm=n["||u^h||_L2"],
            h1_seminorm=n["|u^h|_H1"],
        )
        if self.anasol is not None:
            self.metrics.energy_error = n["|||e|||"]
            self.metrics.l2_error = n["||e||_L2"]
            self.metrics.h1_error = n["|e|_H1"]
        if flux is not None:
            self.metrics.error_estimate = n["q1 eta"]
            self.metrics.effectivity = n["q1 effectivity"]

    def save(self, filepath):
        """Save complete solver state to HDF5 file.

        Saves params, metrics, fields, element norms and (for transient
        runs) the time series for later analysis.

        Parameters
        ----------
        filepath : str or Path
            Output file path (use .h5 extension).
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with pd.HDFStore(filepath, mode="w", complevel=5) as store:
            store["params"] = self.params.to_dataframe()
            store["metrics"] = self.metrics.to_dataframe()
            store["fields"] = self.fields.to_dataframe()
            store["element_norms"] = self.element_norms
            if self.time_series is not None:
                store["time_series"] = self.time_series.to_dataframe()
