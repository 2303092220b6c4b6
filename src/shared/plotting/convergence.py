"""
Convergence Plots.

Error-versus-mesh-size plots for refinement studies and time-stepping
histories of transient runs.
"""

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from . import style  # noqa: F401
from solvers.metrics import build_parameter_string, fit_convergence_order

log = logging.getLogger(__name__)


def plot_convergence_study(
    df: pd.DataFrame,
    error_cols: list,
    output_dir: Path,
    h_col: str = "h",
    params: dict = None,
    filename: str = "convergence.pdf",
) -> Path:
    """Plot errors against element size on log-log axes with fitted orders."""
    df = df.dropna(subset=error_cols, how="all")
    if df.empty:
        log.warning("No error data available for convergence plot")
        return None

    fig, ax = plt.subplots()
    h = df[h_col].to_numpy()
    for col in error_cols:
        errors = df[col].to_numpy()
        mask = np.isfinite(errors) & (errors > 0.0)
        if mask.sum() < 2:
            log.warning(f"Skipping '{col}': fewer than two positive errors")
            continue
        order = fit_convergence_order(h[mask], errors[mask])
        ax.loglog(h[mask], errors[mask], "o-", label=f"{col} (order {order:.2f})")

    ax.set_xlabel(r"$h$")
    ax.set_ylabel(r"Error")
    if params:
        ax.set_title(build_parameter_string(params))
    ax.legend(frameon=True)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / filename
    fig.savefig(output_path, bbox_inches="tight")
    plt.close(fig)
    return output_path


def plot_time_series(timeseries_df: pd.DataFrame, output_dir: Path, filename: str = "time_series.pdf") -> Path:
    """Plot the relative solution change per time step."""
    if timeseries_df is None or timeseries_df.empty:
        log.warning("No timeseries data available for time-stepping plot")
        return None

    fig, ax = plt.subplots()
    ax.semilogy(timeseries_df["time"], timeseries_df["solution_change"], label="Solution change")
    ax.set_xlabel(r"$t$")
    ax.set_ylabel(r"$\|u^{n+1} - u^n\| / \|u^{n+1}\|$")
    ax.legend(frameon=True)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / filename
    fig.savefig(output_path, bbox_inches="tight")
    plt.close(fig)
    return output_path
