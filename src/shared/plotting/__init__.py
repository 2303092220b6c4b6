"""Plotting utilities for convergence studies and time-stepping histories."""

from .convergence import plot_convergence_study, plot_time_series

__all__ = [
    "plot_convergence_study",
    "plot_time_series",
]
