"""
solver/lock.py
==============
Tower-section lock: archive the active section into history and re-base
the foundation on the old topmost row.

With topmost occupied row T and cutoff row C:

  1. raw section stability of the current grid is computed
  2. it is folded into the historical running average
         historical = (historical * count + current) / (count + 1)
  3. rows [T+1, C) are prepended to the history archive, which is then
     truncated to history_rows (oldest rows are dropped)
  4. the active grid is cleared
  5. old row T is re-seated on the foundation row (C - 1)
  6. lock charge and per-section bookkeeping are reset

All new arrays are built first and handed to TowerGrid.apply_lock in one
call, so a failed lock leaves the tower exactly as it was.

Lock charge lives here too: placements accrue charge, and a full charge
arms the lock.
"""

import logging

import numpy as np

from core.config import (
    BoardGeometry, StabilityConfig, SessionConfig,
    DEFAULT_CONFIG, DEFAULT_SESSION, AWKWARD_PIECES,
)
from core.models import TowerState, LockResult
from structure.grid import create_empty, find_topmost_occupied_row, copy_section, NO_ROW
from stability.aggregator import raw_section_stability

logger = logging.getLogger(__name__)


def fold_historical(historical: float, count: int, current: float,
                    config: StabilityConfig = DEFAULT_CONFIG) -> float:
    """
    Running average of section stabilities, weighted by locked-section count.

    Args:
        historical: Average over the ``count`` sections locked so far.
        count: Number of sections already folded in.
        current: Raw stability of the section being locked.
        config: Supplies the clamp bound.

    Returns:
        New average, clamped to [0, max_stability].
    """
    folded = (historical * count + current) / (count + 1)
    return float(np.clip(folded, 0.0, config.max_stability))


def archive_rows(history: np.ndarray, rows: np.ndarray, capacity: int) -> np.ndarray:
    """Prepend rows to the archive and keep at most ``capacity`` rows."""
    if len(rows) == 0:
        return np.array(history[:capacity], dtype=np.int8, copy=True)
    return np.vstack([rows, history])[:capacity].astype(np.int8)


def lock_section(
    state: TowerState,
    config: StabilityConfig = DEFAULT_CONFIG,
    force: bool = False,
) -> LockResult | None:
    """
    Lock the current tower section into history.

    Args:
        state: Tower state; its grid, history and bookkeeping are updated.
        config: Stability tuning.
        force: Bypass the lock-ready flag (auto-lock and emergency paths).

    Returns:
        LockResult, or None when the lock is not ready or nothing stands
        above the foundation.
    """
    if not state.lock_ready and not force:
        logger.warning("Lock requested before charge is full; ignored")
        return None

    tower = state.tower
    geometry: BoardGeometry = tower.geometry
    grid = tower.get_grid()
    top_row = find_topmost_occupied_row(grid, geometry)
    if top_row == NO_ROW or top_row >= geometry.foundation_row:
        logger.debug("Nothing above the foundation to lock")
        return None

    current = raw_section_stability(grid, geometry, config)
    historical = fold_historical(state.historical_stability, state.locked_sections, current, config)

    archived = copy_section(grid, top_row + 1, geometry.cutoff_row)
    new_history = archive_rows(tower.get_history(), archived, geometry.history_rows)

    new_grid = create_empty(geometry.board_height, geometry.board_width)
    new_grid[geometry.foundation_row] = grid[top_row]

    tower.apply_lock(new_grid, new_history)

    state.historical_stability = historical
    state.locked_sections += 1
    state.raw_section_stability = config.max_stability
    state.placements_in_section = 0
    reset_charge(state)

    logger.info(
        "Section locked: top_row=%d archived=%d section=%.1f historical=%.1f forced=%s",
        top_row, len(archived), current, historical, force,
    )

    return LockResult(
        top_row=top_row,
        rows_archived=len(archived),
        section_stability=current,
        historical_stability=historical,
        locked_sections=state.locked_sections,
        forced=force,
    )


# ---------------------------------------------------------------------------
# Lock charge
# ---------------------------------------------------------------------------

def placement_charge(kind: str | None, session: SessionConfig = DEFAULT_SESSION) -> int:
    """Charge earned by placing one piece; S and Z pieces earn a bonus."""
    charge = session.placement_charge
    if kind in AWKWARD_PIECES:
        charge += session.awkward_piece_bonus
    return charge


def add_charge(state: TowerState, amount: int,
               session: SessionConfig = DEFAULT_SESSION) -> bool:
    """Add charge, capped at max_charge; returns the resulting lock-ready flag."""
    state.charge = min(session.max_charge, state.charge + amount)
    state.lock_ready = state.charge >= session.max_charge
    return state.lock_ready


def reset_charge(state: TowerState) -> None:
    state.charge = 0
    state.lock_ready = False
