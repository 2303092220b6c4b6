"""
Plotting Style Configuration.

Uses the seaborn darkgrid theme with mathtext (no LaTeX installation needed).
"""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import seaborn as sns  # noqa: E402

plt.rcParams.update(
    {
        "font.family": "serif",
        "mathtext.fontset": "cm",
        "axes.labelsize": 12,
        "font.size": 11,
        "legend.fontsize": 10,
        "xtick.labelsize": 10,
        "ytick.labelsize": 10,
    }
)

sns.set_theme(style="darkgrid", rc={"mathtext.fontset": "cm", "font.family": "serif"})
