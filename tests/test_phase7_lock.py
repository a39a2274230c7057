"""
tests/test_phase7_lock.py
==========================
Phase 7: Verify the tower-section lock and the lock charge.

Checks:
  - Historical running average folding
  - Archived rows equal the pre-lock rows under the top row, and the old
    top row becomes the foundation
  - Archive capacity is respected
  - A lock without charge is a no-op; an empty or foundation-only tower
    cannot be locked
  - Charge accrual, the S/Z bonus and the cap
"""

import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np

from core.config import COMPACT_GEOMETRY, DEFAULT_SESSION
from core.models import TowerState
from structure.grid import TowerGrid, grid_from_rows
from solver.lock import (
    fold_historical, archive_rows, lock_section, placement_charge, add_charge, reset_charge,
)
from simulation.session import TowerSession, RecordingSink

G = COMPACT_GEOMETRY
S = G.tower_start
F = G.foundation_row
TOWER = slice(G.tower_start, G.tower_end)

STACK = ["###.......", "##########", "##########", "##########"]


def _state(rows=None):
    grid = grid_from_rows(rows, G) if rows is not None else None
    return TowerState(tower=TowerGrid(G, grid=grid))


def test_fold_historical():
    """Running average weighted by the locked-section count."""
    assert fold_historical(80.0, 1, 40.0) == 60.0
    assert fold_historical(100.0, 0, 70.0) == 70.0
    assert abs(fold_historical(60.0, 2, 90.0) - 70.0) < 1e-9
    print("  PASS: fold_historical")


def test_archive_rows_prepends_and_truncates():
    """New rows go first; the oldest rows fall off past capacity."""
    old = np.zeros((10, G.board_width), dtype=np.int8)
    new = np.ones((5, G.board_width), dtype=np.int8)
    archived = archive_rows(old, new, G.history_rows)
    assert archived.shape == (G.history_rows, G.board_width)
    assert archived[:5].all()
    assert not archived[5:].any()
    assert archive_rows(old, new[:0], G.history_rows).shape == (10, G.board_width)
    print("  PASS: archive_rows")


def test_lock_archives_and_reseats():
    """History gets rows [T+1, C); the foundation becomes the old row T."""
    state = _state(STACK)
    before = np.array(state.tower.get_grid())
    top = F - 3

    result = lock_section(state, force=True)

    assert result is not None
    assert result.top_row == top
    assert result.rows_archived == G.cutoff_row - top - 1
    history = state.tower.get_history()
    assert np.array_equal(history[:result.rows_archived], before[top + 1:G.cutoff_row])

    grid = state.tower.get_grid()
    assert np.array_equal(grid[F], before[top])
    assert not grid[:F].any(), "Everything above the foundation is cleared"
    print(f"  PASS: Lock archived {result.rows_archived} rows, re-seated row {top}")


def test_lock_updates_bookkeeping():
    """The first lock's section score becomes the historical stability."""
    state = _state(STACK)
    add_charge(state, 100)
    state.placements_in_section = 7

    result = lock_section(state)

    assert result.locked_sections == 1
    assert state.locked_sections == 1
    assert state.historical_stability == result.section_stability
    assert state.charge == 0 and state.lock_ready is False
    assert state.placements_in_section == 0
    assert result.forced is False
    print(f"  PASS: Lock bookkeeping (historical {state.historical_stability:.1f})")


def test_lock_respects_capacity():
    """Repeated locks never grow the archive past history_rows."""
    state = _state(["##########"] * 9)
    for _ in range(3):
        lock_section(state, force=True)
        for y in range(F - 7, F):
            state.tower.place_cells([(x, y) for x in range(G.tower_start, G.tower_end)])
        assert len(state.tower.get_history()) <= G.history_rows
    assert len(state.tower.get_history()) == G.history_rows
    print("  PASS: History capacity respected")


def test_lock_not_ready_is_noop():
    """Without charge or force nothing changes."""
    state = _state(STACK)
    before = np.array(state.tower.get_grid())
    assert lock_section(state) is None
    assert np.array_equal(state.tower.get_grid(), before)
    assert len(state.tower.get_history()) == 0
    assert state.locked_sections == 0
    print("  PASS: Lock without charge is a no-op")


def test_lock_empty_tower():
    """An empty tower zone has nothing to lock."""
    state = TowerState(tower=TowerGrid(G, with_foundation=False))
    assert lock_section(state, force=True) is None
    print("  PASS: Empty tower cannot be locked")


def test_lock_foundation_only_is_noop():
    """A bare foundation archives nothing and leaves the average alone."""
    state = _state()
    before = np.array(state.tower.get_grid())
    assert lock_section(state, force=True) is None
    assert np.array_equal(state.tower.get_grid(), before)
    assert len(state.tower.get_history()) == 0
    assert state.locked_sections == 0
    assert state.historical_stability == 100.0
    print("  PASS: Foundation-only tower cannot be locked")


def test_charge_rules():
    """+5 per piece, +2 for S and Z, capped at 100 with the ready flag."""
    assert placement_charge("I") == 5
    assert placement_charge("S") == 7
    assert placement_charge("Z") == 7
    assert placement_charge(None) == 5

    state = _state()
    assert add_charge(state, 60) is False
    assert add_charge(state, 60) is True
    assert state.charge == DEFAULT_SESSION.max_charge
    reset_charge(state)
    assert state.charge == 0 and not state.lock_ready
    print("  PASS: Charge rules")


def test_session_lock_turns_on_blending():
    """After a session lock, the historical average feeds every recompute."""
    sink = RecordingSink()
    tower = TowerGrid(G, grid=grid_from_rows(STACK, G))
    session = TowerSession(G, sink=sink, tower=tower)
    assert session.request_lock() is None, "No charge yet"

    add_charge(session.state, 100)
    result = session.request_lock()
    assert result is not None
    assert session.locks == [result]
    assert ("lock", False) in sink.events
    assert session.state.locked_sections == 1

    report = session.report
    historical = session.state.historical_stability
    expected = 0.7 * historical + 0.3 * report.raw_section_stability
    if historical < 50:
        expected -= (50 - historical) * 0.5
    assert abs(report.stability - max(0.0, min(100.0, expected))) < 1e-9
    print("  PASS: Session lock turns on historical blending")


if __name__ == "__main__":
    print("=== Phase 7: Lock ===")
    test_fold_historical()
    test_archive_rows_prepends_and_truncates()
    test_lock_archives_and_reseats()
    test_lock_updates_bookkeeping()
    test_lock_respects_capacity()
    test_lock_not_ready_is_noop()
    test_lock_empty_tower()
    test_lock_foundation_only_is_noop()
    test_charge_rules()
    test_session_lock_turns_on_blending()
    print("All Phase 7 tests passed.\n")
