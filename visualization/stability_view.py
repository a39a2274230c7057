"""
visualization/stability_view.py
===============================
Renders the active tower section as a stability heatmap.

Filled and void cells are coloured by their cell stability on a diverging
colormap: blue for well-supported blocks, red for weak ones and for
enclosed voids (negative values). Empty cells and the gutters stay blank.

On top of the heatmap every void cluster gets an outline coloured by its
severity, and a side panel plots the per-row stability so the weakest
band of the tower stands out at a glance.

This is the debug overlay of the engine. It only reads a StabilityReport
and a grid and never touches a session.
"""

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import numpy as np

from core.config import BoardGeometry, DEFAULT_GEOMETRY
from core.models import StabilityReport, VoidCluster, SEVERITY_TIERS

SEVERITY_COLORS = {
    "minor": "gold",
    "moderate": "orange",
    "severe": "orangered",
    "critical": "darkred",
}


def plot_stability(
    report: StabilityReport,
    grid: np.ndarray,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    title: str | None = None,
    show: bool = True,
    save_path: str | None = None
) -> plt.Figure:
    """
    Render cell stability, void clusters and row stability for one grid.

    Args:
        report: StabilityReport computed from ``grid``.
        grid: Active occupancy grid the report was computed from.
        geometry: Board geometry (cutoff row, tower-zone columns).
        title: Figure title; a summary of the report by default.
        show: Whether to call plt.show() immediately.
        save_path: If provided, saves figure to this path instead of showing.

    Returns:
        matplotlib Figure object.
    """
    fig, (ax_grid, ax_rows) = plt.subplots(
        1, 2, figsize=(8, 9), sharey=True,
        gridspec_kw={"width_ratios": [4, 1]},
    )

    image = _draw_cells(ax_grid, report, grid, geometry)
    _draw_void_clusters(ax_grid, report.void_clusters)
    _draw_row_stability(ax_rows, report, geometry)
    _add_colorbar(fig, image, [ax_grid, ax_rows])
    _add_severity_legend(ax_grid, report.void_clusters)

    fig.suptitle(title or _summary(report), fontsize=12, fontweight="bold")

    if save_path:
        plt.savefig(save_path, dpi=150)
    elif show:
        plt.show()

    return fig


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------

def _draw_cells(ax, report: StabilityReport, grid: np.ndarray,
                geometry: BoardGeometry):
    """
    Draw the heatmap of filled and void cells over the active rows.

    Returns:
        The AxesImage, for the colorbar.
    """
    active = slice(0, geometry.cutoff_row)
    values = np.array(report.cell_stability[active], dtype=float)
    occupied = grid[active].astype(bool)
    values[~(occupied | (values < 0))] = np.nan

    cmap = plt.get_cmap("RdYlBu").copy()
    cmap.set_bad(color="white")
    image = ax.imshow(
        np.ma.masked_invalid(values), cmap=cmap, vmin=-1.0, vmax=1.0,
        aspect="equal", interpolation="nearest",
    )

    for x in (geometry.tower_start - 0.5, geometry.tower_end - 0.5):
        ax.axvline(x, color="black", linewidth=1.2)
    ax.axhline(geometry.buffer_rows - 0.5, color="grey", linewidth=0.8, linestyle=":")
    ax.set_xlabel("Column", fontsize=10)
    ax.set_ylabel("Row", fontsize=10)
    ax.set_title("Cell Stability", fontsize=10)
    return image


def _draw_void_clusters(ax, clusters: list[VoidCluster]):
    """
    Outline each void cluster's bounding box, coloured by severity.

    Args:
        ax: Heatmap axis.
        clusters: Void clusters from the report.
    """
    for cluster in clusters:
        ax.add_patch(mpatches.Rectangle(
            (cluster.min_x - 0.5, cluster.min_y - 0.5),
            cluster.width, cluster.height,
            fill=False, linewidth=2,
            edgecolor=SEVERITY_COLORS.get(cluster.severity, "black"),
        ))
        ax.text(cluster.min_x, cluster.min_y, str(cluster.id),
                fontsize=7, color="black", va="center", ha="center")


def _draw_row_stability(ax, report: StabilityReport, geometry: BoardGeometry):
    """
    Horizontal bars of row stability, skipping rows without blocks.

    Args:
        ax: Side-panel axis (shares y with the heatmap).
        report: StabilityReport with row values.
        geometry: Board geometry.
    """
    start = max(report.top_row, 0)
    rows = np.arange(start, geometry.cutoff_row)
    values = np.array([report.row_stability[y] for y in rows], dtype=float)
    colors = ["firebrick" if v < 0.4 else "steelblue" for v in values]

    ax.barh(rows, values, color=colors, height=0.8)
    ax.axvline(0.0, color="black", linewidth=0.8)
    ax.set_xlim(-1.05, 1.05)
    ax.set_xlabel("Row Stability", fontsize=10)
    ax.set_title("Rows", fontsize=10)
    ax.grid(True, axis="x", alpha=0.3)


# ---------------------------------------------------------------------------
# Annotation helpers
# ---------------------------------------------------------------------------

def _add_colorbar(fig, image, axes):
    """Attach the shared cell-stability colorbar."""
    cbar = fig.colorbar(image, ax=axes, shrink=0.6, pad=0.04)
    cbar.set_label("Cell stability", fontsize=9)


def _add_severity_legend(ax, clusters: list[VoidCluster]):
    """Legend entry per severity tier present in the report."""
    present = {c.severity for c in clusters}
    handles = [
        mpatches.Patch(edgecolor=SEVERITY_COLORS[tier], fill=False, label=tier)
        for tier in SEVERITY_TIERS if tier in present
    ]
    if handles:
        ax.legend(handles=handles, loc="upper left", fontsize=8, title="Voids")


def _summary(report: StabilityReport) -> str:
    return (
        f"Stability {report.stability:.1f}  |  "
        f"raw {report.raw_section_stability:.1f}  |  "
        f"voids {len(report.void_clusters)}"
    )
