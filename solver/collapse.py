"""
solver/collapse.py
==================
Pure collapse rules: when a tower collapses, how much of it goes, and how
the survivors settle.

Two kinds of collapse, chosen from the current instability:

    instability >= full_collapse_threshold     → "full"
    instability >= partial_collapse_threshold  → "partial"

Both clear a band of whole board rows starting at the topmost row holding
any block, gutters included. A full collapse then compacts every column
under gravity onto the foundation; a partial collapse leaves the rest
of the tower as it is.

The foundation row is never cleared and never moves.

Timing, re-entrancy and event emission live in simulation/session.py;
everything here takes arrays and numbers and returns new ones.
"""

import math

import numpy as np

from core.config import BoardGeometry, SessionConfig, DEFAULT_GEOMETRY, DEFAULT_SESSION

PARTIAL = "partial"
FULL = "full"


def plan_collapse(instability: float,
                  session: SessionConfig = DEFAULT_SESSION) -> str | None:
    """
    Pick the collapse kind for an instability level.

    Returns:
        FULL, PARTIAL, or None when the tower holds.
    """
    if instability >= session.full_collapse_threshold:
        return FULL
    if instability >= session.partial_collapse_threshold:
        return PARTIAL
    return None


def rows_to_collapse(kind: str, instability: float,
                     session: SessionConfig = DEFAULT_SESSION) -> int:
    """
    Number of rows a collapse clears.

    full:    clamp(floor(instability / 10), 1, full_max_rows)
    partial: clamp(floor((instability - partial_threshold) / 5), 1, partial_max_rows)

    Raises:
        ValueError: If kind is not "full" or "partial".
    """
    if kind == FULL:
        return min(session.full_max_rows, max(1, math.floor(instability / 10)))
    if kind == PARTIAL:
        excess = instability - session.partial_collapse_threshold
        return max(1, min(session.partial_max_rows, math.floor(excess / 5)))
    raise ValueError(f"Unknown collapse kind: '{kind}'. Use 'full' or 'partial'.")


def instability_reduction(kind: str, session: SessionConfig = DEFAULT_SESSION) -> float:
    """Fixed instability relief granted once a collapse resolves."""
    return session.full_reduction if kind == FULL else session.partial_reduction


def score_penalty(rows_destroyed: int, score: int,
                  session: SessionConfig = DEFAULT_SESSION) -> int:
    """Points lost for destroyed rows; never more than the score or the cap."""
    return min(score, session.max_score_penalty, rows_destroyed * session.penalty_per_row)


def collapse_rows(top_row: int, count: int,
                  geometry: BoardGeometry = DEFAULT_GEOMETRY) -> list[int]:
    """
    Row indices cleared by a collapse of ``count`` rows from top_row.

    Stops short of the foundation row, so a tower made only of its
    foundation loses nothing.
    """
    if top_row < 0:
        return []
    end = min(top_row + count, geometry.foundation_row)
    return list(range(top_row, end))


def remove_rows(grid: np.ndarray, rows: list[int],
                geometry: BoardGeometry = DEFAULT_GEOMETRY) -> np.ndarray:
    """
    Return a copy of grid with the given rows emptied across the whole board.

    Gutter cells of a cleared row go with it; the foundation row is skipped.
    """
    cleared = np.array(grid, dtype=np.int8, copy=True)
    for y in rows:
        if y == geometry.foundation_row:
            continue
        cleared[y, :] = 0
    return cleared


def compact_columns(grid: np.ndarray,
                    geometry: BoardGeometry = DEFAULT_GEOMETRY) -> np.ndarray:
    """
    Gravity-shift every board column down onto the foundation row.

    Filled cells above the foundation keep their order within a column and
    close every gap beneath them, gutter columns included. The foundation
    row is copied unchanged.

    Returns:
        A new grid.
    """
    compacted = np.array(grid, dtype=np.int8, copy=True)
    foundation = geometry.foundation_row

    for x in range(grid.shape[1]):
        column = grid[:foundation, x]
        count = int(np.count_nonzero(column))
        compacted[:foundation, x] = 0
        if count:
            compacted[foundation - count:foundation, x] = 1

    return compacted
