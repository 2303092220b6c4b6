"""Convergence-study metrics and formatting utilities."""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd


# -----------------------------------------------------------------------------
# Convergence rates
# -----------------------------------------------------------------------------


def convergence_rates(h: np.ndarray, errors: np.ndarray) -> np.ndarray:
    """Observed orders between consecutive refinements.

    rate_i = log(e_i / e_{i+1}) / log(h_i / h_{i+1})
    """
    h = np.asarray(h, dtype=float)
    errors = np.asarray(errors, dtype=float)
    if h.shape != errors.shape or h.size < 2:
        raise ValueError("Need at least two (h, error) pairs of equal length")
    return np.log(errors[:-1] / errors[1:]) / np.log(h[:-1] / h[1:])


def fit_convergence_order(h: np.ndarray, errors: np.ndarray) -> float:
    """Least-squares slope of log(error) against log(h)."""
    slope, _ = np.polyfit(np.log(np.asarray(h, dtype=float)), np.log(np.asarray(errors, dtype=float)), 1)
    return float(slope)


def convergence_table(df: pd.DataFrame, error_cols: list[str], h_col: str = "h") -> pd.DataFrame:
    """Append a "<col> rate" column per error column (NaN on the coarsest row)."""
    table = df.sort_values(h_col, ascending=False).reset_index(drop=True)
    for col in error_cols:
        rates = convergence_rates(table[h_col].to_numpy(), table[col].to_numpy())
        table[f"{col} rate"] = np.concatenate([[np.nan], rates])
    return table


# -----------------------------------------------------------------------------
# Formatting helpers
# -----------------------------------------------------------------------------


def format_parameter_range(values: list | tuple, name: str) -> str:
    """Format a parameter range for display."""
    if len(values) == 0:
        return f"{name} = ?"
    if len(values) == 1:
        return f"{name} = {values[0]}"

    min_val, max_val = min(values), max(values)
    if isinstance(min_val, int) and isinstance(max_val, int):
        return f"{name} in [{min_val}, {max_val}]"
    return f"{name} in [{min_val:.3g}, {max_val:.3g}]"


def build_parameter_string(params: dict[str, Any], separator: str = ", ") -> str:
    """Build a plot-title parameter string from a dictionary."""
    parts = []
    for name, value in params.items():
        if isinstance(value, (list, tuple)):
            parts.append(format_parameter_range(value, name))
        elif isinstance(value, float):
            parts.append(f"{name} = {value:.3g}")
        else:
            parts.append(f"{name} = {value}")
    return separator.join(parts)
