"""
stability/aggregator.py
=======================
Rolls per-cell stability up into row, section and final tower scores.

Pipeline (compute_stability):
  1. Void detection        → void-seeded cell matrix + clusters
  2. Support penalties     → overhang, thin-width, balance passes
  3. Row stability         → mean over filled and void cells of each row
  4. Section stability     → worst-row tracking with a consecutive-critical
                             penalty, height and negative-row penalties
  5. Historical blending   → inherited weakness of locked sections
  6. External instability  → attacks subtracted last, floored at 0

The whole pass is recomputed from scratch on every call: a single block
can change void reachability anywhere in the stack, so nothing is patched
incrementally. Calling it twice on the same grid gives identical output.
"""

import logging

import numpy as np

from core.config import BoardGeometry, StabilityConfig, DEFAULT_GEOMETRY, DEFAULT_CONFIG
from core.models import StabilityReport
from structure.grid import (
    find_topmost_occupied_row, row_has_filled_cells, count_filled_rows, is_row_complete, NO_ROW,
)
from solver.voids import detect_voids
from solver.support import apply_support_penalties

logger = logging.getLogger(__name__)


def compute_stability(
    grid: np.ndarray,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
    historical_stability: float | None = None,
    external_instability: float = 0.0,
) -> StabilityReport:
    """
    Full stability recompute for one active grid.

    Args:
        grid: Active occupancy grid (read only).
        geometry: Board geometry.
        config: Stability tuning.
        historical_stability: Running average of locked sections, or None
                              when no section has been locked yet.
        external_instability: Accumulated attack strength.

    Returns:
        StabilityReport with cell, row, section and final scores.
    """
    top_row = find_topmost_occupied_row(grid, geometry)
    cell_stability, clusters = evaluate_cells(grid, top_row, geometry, config)
    row_stability = compute_row_stabilities(grid, cell_stability, geometry, config)

    if top_row == NO_ROW:
        raw = config.max_stability
    else:
        raw = section_stability(row_stability, grid, top_row, geometry, config)

    stability = blend_historical(raw, historical_stability, config)
    stability = apply_external_instability(stability, external_instability, config)

    logger.debug(
        "Stability recompute: top_row=%d voids=%d raw=%.1f final=%.1f",
        top_row, len(clusters), raw, stability,
    )

    return StabilityReport(
        cell_stability=cell_stability,
        row_stability=row_stability,
        void_clusters=clusters,
        top_row=top_row,
        raw_section_stability=raw,
        stability=stability,
        instability=config.max_stability - stability,
    )


def evaluate_cells(
    grid: np.ndarray,
    top_row: int,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
):
    """
    Build the per-cell stability matrix: voids first, then support passes.

    Returns:
        (cell_stability, void_clusters)
    """
    initial = np.full(grid.shape, config.cell_ceiling, dtype=float)
    cell_stability, clusters = detect_voids(grid, top_row, initial, geometry, config)
    apply_support_penalties(grid, cell_stability, geometry, config)
    return cell_stability, clusters


def raw_section_stability(
    grid: np.ndarray,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> float:
    """Section score of a grid without historical blending or attacks."""
    return compute_stability(grid, geometry, config).raw_section_stability


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------

def row_stability(
    grid: np.ndarray,
    cell_stability: np.ndarray,
    y: int,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> float:
    """
    Average stability over the filled and void cells of row y.

    Plain empty cells are excluded. A row with neither is perfectly stable
    (1.0). A full row gets the full_row_bonus multiplier. The result is
    clamped to [cell_floor, cell_ceiling].
    """
    start, end = geometry.tower_start, geometry.tower_end
    filled = grid[y, start:end].astype(bool)
    values = cell_stability[y, start:end]
    counted = filled | (values < 0)

    if not counted.any():
        return config.cell_ceiling

    average = float(values[counted].mean())
    if is_row_complete(grid, y, geometry):
        average *= config.full_row_bonus
    return float(np.clip(average, config.cell_floor, config.cell_ceiling))


def compute_row_stabilities(
    grid: np.ndarray,
    cell_stability: np.ndarray,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> np.ndarray:
    """Row stability for every active row; NaN for the history band."""
    rows = np.full(grid.shape[0], np.nan)
    for y in range(geometry.cutoff_row):
        rows[y] = row_stability(grid, cell_stability, y, geometry, config)
    return rows


# ---------------------------------------------------------------------------
# Section
# ---------------------------------------------------------------------------

def section_stability(
    row_stabilities: np.ndarray,
    grid: np.ndarray,
    top_row: int,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> float:
    """
    Whole-section score, 0–100, from row scores.

    Walking rows top to bottom from top_row to the cutoff:
      - the worst row score is tracked;
      - a run of consecutive_critical_limit or more rows below
        critical_row_stability drags the worst score to
        (worst row of the run) * consecutive_critical_multiplier;
      - every negative row costs negative_row_penalty.

        integrity = worst * worst_row_weight + baseline_weight
                    - negative_rows * negative_row_penalty
                    - max(0, filled_rows - height_penalty_threshold) * height_penalty_per_row

    Rows without filled or void cells are skipped.
    """
    if top_row < 0:
        return config.max_stability

    worst = config.cell_ceiling
    run_worst = config.cell_ceiling
    consecutive = 0
    negative_rows = 0

    for y in range(top_row, geometry.cutoff_row):
        value = row_stabilities[y]
        if np.isnan(value):
            continue
        if value == config.cell_ceiling and not row_has_filled_cells(grid, y, geometry):
            continue

        if value < config.critical_row_stability:
            consecutive += 1
            run_worst = min(run_worst, value)
            if consecutive >= config.consecutive_critical_limit:
                worst = min(worst, run_worst * config.consecutive_critical_multiplier)
            if value < 0:
                negative_rows += 1
        else:
            consecutive = 0
            run_worst = config.cell_ceiling

        worst = min(worst, value)

    integrity = worst * config.worst_row_weight + config.baseline_weight
    integrity -= negative_rows * config.negative_row_penalty

    filled_rows = count_filled_rows(grid, top_row, geometry.cutoff_row, geometry)
    excess = max(0, filled_rows - config.height_penalty_threshold)
    integrity -= excess * config.height_penalty_per_row

    return float(np.clip(integrity * 100.0, 0.0, config.max_stability))


# ---------------------------------------------------------------------------
# History and attacks
# ---------------------------------------------------------------------------

def blend_historical(section: float, historical: float | None,
                     config: StabilityConfig = DEFAULT_CONFIG) -> float:
    """
    Blend the section score with the inherited historical stability.

    "weighted": historical_weight * historical + section_weight * section,
                minus (threshold - historical) * factor when historical is
                below low_historical_threshold.
    "min":      min(section, historical).

    No blending happens while historical is None (nothing locked yet).

    Raises:
        ValueError: If config.history_blend is not recognised.
    """
    if historical is None:
        return section

    if config.history_blend == "weighted":
        blended = historical * config.historical_weight + section * config.section_weight
        if historical < config.low_historical_threshold:
            blended -= (config.low_historical_threshold - historical) * config.low_historical_factor
    elif config.history_blend == "min":
        blended = min(section, historical)
    else:
        raise ValueError(
            f"Unknown history blend '{config.history_blend}'. Use 'weighted' or 'min'."
        )

    return float(np.clip(blended, 0.0, config.max_stability))


def apply_external_instability(stability: float, external: float,
                               config: StabilityConfig = DEFAULT_CONFIG) -> float:
    """Subtract attack-driven instability, floored at 0."""
    return float(np.clip(stability - external, 0.0, config.max_stability))
