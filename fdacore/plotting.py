"""
Built-in plotting utilities for analysis results.

Provides simple one-line plotting functions for stress fields and paths.

Example:
    >>> from fdacore import plotting
    >>> field = StressFieldRenderer().run(read_stress("fda.psa"), FrameSelection.parse("all"))
    >>> plotting.stress_field(field, show=False)
    >>> plotting.save("stress.png")
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .analysis import FramePaths, StressField

logger = logging.getLogger(__name__)

# Try to import matplotlib, but don't fail if not available
try:
    import matplotlib.pyplot as plt

    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False
    plt = None


def _check_matplotlib():
    """Check if matplotlib is available."""
    if not HAS_MATPLOTLIB:
        raise ImportError(
            "matplotlib is required for plotting. "
            "Install it with: pip install matplotlib"
        )


def stress_field(
    field: StressField,
    show: bool = True,
    figsize: tuple[float, float] = (10, 6),
    cmap: str = "Reds",
) -> None:
    """
    Plot a stress field as heat map.

    Entities run along x, frames (or averaged groups) along y. A field with
    a single row is drawn as profile instead.

    Args:
        field: Rendered stress field.
        show: Whether to display the plot immediately.
        figsize: Figure size (width, height) in inches.
        cmap: Colour map name.
    """
    _check_matplotlib()

    fig, ax = plt.subplots(figsize=figsize)
    x_label = "Atom" if field.force_type.value == "atoms" else "Residue"

    if field.n_rows == 1:
        ax.plot(field.entity_ids, field.values[0], "k-", lw=1)
        ax.set_ylabel("Stress")
        ax.set_title(field.labels[0])
        ax.grid(True, alpha=0.3)
    else:
        image = ax.imshow(
            field.values,
            aspect="auto",
            origin="lower",
            cmap=cmap,
            interpolation="nearest",
        )
        fig.colorbar(image, ax=ax, label="Stress")
        ticks = np.linspace(0, len(field.entity_ids) - 1, min(10, len(field.entity_ids))).astype(int)
        ax.set_xticks(ticks)
        ax.set_xticklabels(field.entity_ids[ticks])
        ax.set_ylabel("Frame")
        ax.set_title("Stress field")
    ax.set_xlabel(x_label)

    plt.tight_layout()
    if show:
        plt.show()


def path_weights(
    results: Sequence[FramePaths],
    show: bool = True,
    figsize: tuple[float, float] = (10, 4),
) -> None:
    """
    Plot the weight of every found path per frame group.

    Rank 0 (the shortest path) is drawn as line, the other ranks as points.
    Frame groups without path are left out.

    Args:
        results: Output of ``ShortestPathAnalyzer.run``.
        show: Whether to display the plot immediately.
        figsize: Figure size (width, height) in inches.
    """
    _check_matplotlib()

    fig, ax = plt.subplots(figsize=figsize)
    k = max((len(r.paths) for r in results), default=0)
    for rank in range(k):
        xs = [n for n, r in enumerate(results) if len(r.paths) > rank]
        ys = [results[n].paths[rank].weight for n in xs]
        style = "b-" if rank == 0 else "o"
        ax.plot(xs, ys, style, label=f"path {rank}", alpha=0.8, lw=1)

    ax.set_xticks(range(len(results)))
    ax.set_xticklabels([r.label for r in results], rotation=45, ha="right")
    ax.set_ylabel("Path weight")
    ax.set_title("k shortest paths")
    if k:
        ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    if show:
        plt.show()


def save(filename: str | Path, dpi: int = 150) -> None:
    """
    Save the current figure to a file.

    Args:
        filename: Output filename (e.g., "plot.png", "plot.pdf").
        dpi: Resolution in dots per inch.

    Example:
        >>> plotting.stress_field(field, show=False)
        >>> plotting.save("stress.png")
    """
    _check_matplotlib()
    plt.savefig(filename, dpi=dpi, bbox_inches="tight")
    logger.info("Saved plot to %s", filename)


def show() -> None:
    """Display all pending plots."""
    _check_matplotlib()
    plt.show()
