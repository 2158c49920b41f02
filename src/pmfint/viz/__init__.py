"""
Visualization utilities.

- Field heatmaps (PMF, divergence, weights)
- Integration summaries
- 1D free-energy profiles
"""

from pmfint.viz.fields import (
    plot_field,
    plot_pmf,
    plot_divergence,
    plot_weights,
    plot_integration_summary,
    plot_profile_1d,
    save_figure,
)

__all__ = [
    "plot_field",
    "plot_pmf",
    "plot_divergence",
    "plot_weights",
    "plot_integration_summary",
    "plot_profile_1d",
    "save_figure",
]
