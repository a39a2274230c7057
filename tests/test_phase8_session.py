"""
tests/test_phase8_session.py
=============================
Phase 8: Verify the event-driven TowerSession.

Checks:
  - Placement commits cells, score and charge, then spawns the next piece
  - Gutter-floor pieces are discarded
  - Attacks and inbound messages raise instability and can trigger collapses
  - Auto-lock countdown, its cancellation and the emergency lock
"""

import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np

from core.config import COMPACT_GEOMETRY, DEFAULT_SESSION, TETROMINO_SHAPES
from core.models import PlacedPiece
from structure.grid import TowerGrid, grid_from_rows
from solver.collapse import PARTIAL, FULL
from simulation.session import (
    TowerSession, RecordingSink, EffectsSink, ATTACK_MESSAGE,
    PHASE_STABLE, PHASE_WARNED, PHASE_COLLAPSING,
)

G = COMPACT_GEOMETRY
S = G.tower_start
F = G.foundation_row
TOWER = slice(G.tower_start, G.tower_end)

SOLID = ["##########"] * 4


def _session(rows=None, sink=None):
    sink = sink if sink is not None else RecordingSink()
    tower = TowerGrid(G, grid=grid_from_rows(rows, G)) if rows is not None else None
    return TowerSession(G, sink=sink, tower=tower), sink


def test_default_sink_is_silent():
    """A session without a sink runs against the no-op EffectsSink."""
    session = TowerSession(G)
    assert isinstance(session.sink, EffectsSink)
    assert session.report.stability == 100.0
    assert session.get_void_clusters() == []
    print("  PASS: Default sink")


def test_place_piece_commits():
    """A placed piece updates grid, score and charge, then requests a spawn."""
    session, sink = _session()
    piece = PlacedPiece.from_shape(TETROMINO_SHAPES["I"], S, F - 1, "I")
    assert session.place_piece(piece) is True

    grid = session.state.tower.get_grid()
    assert grid[F - 1, S:S + 4].all()
    assert session.state.score == DEFAULT_SESSION.points_per_placement
    assert session.state.charge == 5
    assert session.state.placements_in_section == 1
    assert session.piece_active is True
    names = sink.names()
    assert names.index("stability") < names.index("spawn")
    assert session.get_row_stability(F - 1) is not None
    print("  PASS: Placement commits and spawns")


def test_awkward_piece_charge():
    """S pieces earn the awkward-piece bonus."""
    session, _ = _session()
    piece = PlacedPiece.from_shape(TETROMINO_SHAPES["S"], S, F - 2, "S")
    session.place_piece(piece)
    assert session.state.charge == 7
    print("  PASS: Awkward piece charge")


def test_gutter_floor_piece_discarded():
    """A piece resting on the gutter floor never touches the grid."""
    session, sink = _session()
    bottom = G.board_height - 1
    piece = PlacedPiece([(0, bottom - 1), (1, bottom - 1), (0, bottom), (1, bottom)], kind="O")
    before = np.array(session.state.tower.get_grid())

    assert session.place_piece(piece) is False
    assert np.array_equal(session.state.tower.get_grid(), before)
    assert len(session.state.tower.get_history()) == 0
    assert session.state.score == 0
    assert "spawn" in sink.names()
    print("  PASS: Gutter-floor piece discarded")


def test_history_band_placement():
    """Cells landing past the cutoff are written into the history archive."""
    session, _ = _session()
    piece = PlacedPiece([(0, G.cutoff_row), (1, G.cutoff_row)], kind="I")
    assert session.place_piece(piece) is True
    history = session.state.tower.get_history()
    assert history[0, 0] == 1 and history[0, 1] == 1
    print("  PASS: History-band placement")


def test_receive_attack():
    """An attack lowers stability by its strength."""
    session, _ = _session()
    report = session.receive_attack(25.0)
    assert session.state.external_instability == 25.0
    assert report.stability == 75.0
    assert session.instability == 25.0
    assert not session.is_collapsing
    print("  PASS: Attack lowers stability")


def test_attack_rejects_non_positive():
    """Zero and negative attack strengths raise ValueError."""
    session, _ = _session()
    for strength in (0.0, -5.0):
        try:
            session.receive_attack(strength)
            assert False, "Should have raised ValueError"
        except ValueError:
            pass
    assert session.state.external_instability == 0.0
    print("  PASS: Non-positive attacks rejected")


def test_handle_message():
    """incomingAttack messages are applied; a missing strength uses the default."""
    session, _ = _session()
    session.handle_message({"type": ATTACK_MESSAGE, "strength": 15})
    assert session.state.external_instability == 15.0
    session.handle_message({"type": ATTACK_MESSAGE})
    assert session.state.external_instability == 15.0 + DEFAULT_SESSION.default_attack_strength
    print("  PASS: handle_message")


def test_handle_unknown_message():
    """Unknown message types raise ValueError."""
    session, _ = _session()
    try:
        session.handle_message({"type": "chat", "text": "hi"})
        assert False, "Should have raised ValueError"
    except ValueError as e:
        print(f"  PASS: ValueError raised correctly: {e}")


def test_attack_triggers_partial_collapse():
    """70 instability on a solid tower starts a two-row partial collapse."""
    session, sink = _session(SOLID)
    session.receive_attack(70.0)
    assert session.is_collapsing
    assert session.phase == PHASE_COLLAPSING
    assert ("collapse", PARTIAL) in sink.events

    session.advance(1.0)
    event = session.collapses[-1]
    assert event.kind == PARTIAL
    assert event.rows == [F - 3, F - 2]
    assert event.instability_before == 70.0
    # Two perfect rows remain, so only the 20-point relief lowers instability
    assert abs(event.new_instability - 50.0) < 1e-9
    assert session.phase == PHASE_STABLE
    print("  PASS: Attack triggers a partial collapse")


def test_attack_triggers_full_collapse():
    """Instability at or above 80 starts a full collapse that lowers instability."""
    session, sink = _session(SOLID)
    session.receive_attack(85.0)
    assert ("collapse", FULL) in sink.events
    session.advance(DEFAULT_SESSION.full_window)
    grid = session.state.tower.get_grid()
    assert grid[F, TOWER].all()
    assert not grid[:F, TOWER].any()

    event = session.collapses[-1]
    assert event.kind == FULL
    assert event.new_instability < event.instability_before
    assert session.instability == event.new_instability
    print("  PASS: Attack triggers a full collapse")


def test_partial_relief_smaller_than_full():
    """On the same tower a partial collapse relieves less than a full one."""
    reductions = {}
    for kind, strength in ((PARTIAL, 70.0), (FULL, 85.0)):
        session, _ = _session(SOLID)
        session.receive_attack(strength)
        session.advance(DEFAULT_SESSION.full_window)
        event = session.collapses[-1]
        assert event.kind == kind
        reductions[kind] = event.instability_before - event.new_instability
    assert 0 < reductions[PARTIAL] < reductions[FULL]
    print(f"  PASS: Relief partial {reductions[PARTIAL]:.0f} < full {reductions[FULL]:.0f}")


def test_attack_on_bare_foundation_keeps_piece():
    """A collapse with nothing to remove leaves the falling piece alone."""
    session, _ = _session()
    session.receive_attack(90.0)
    assert not session.is_collapsing
    assert session.piece_active is True
    assert session.collapses == []
    print("  PASS: Attack on a bare foundation")


def test_auto_lock_countdown():
    """A tall tower warns, counts down once per second, then force-locks."""
    session, sink = _session(["####"] + ["##########"] * 10)
    assert session.state.tower.top_row() == 9
    session.check_tower_height()
    assert session.phase == PHASE_WARNED
    assert session.countdown == DEFAULT_SESSION.auto_lock_countdown

    for expected in range(DEFAULT_SESSION.auto_lock_countdown - 1, 0, -1):
        session.advance(1.0)
        assert session.countdown == expected
    assert session.locks == []

    session.advance(1.0)
    assert session.countdown is None
    assert len(session.locks) == 1 and session.locks[0].forced
    assert session.phase == PHASE_STABLE
    assert ("lock", True) in sink.events
    print("  PASS: Auto-lock countdown")


def test_auto_lock_cancelled():
    """The countdown is cancelled by a collapse or by the tower shrinking."""
    session, _ = _session(["####"] + ["##########"] * 9)
    session.check_tower_height()
    assert session.trigger_collapse(PARTIAL)
    assert session.countdown is None

    session.advance(1.0)
    assert session.state.tower.top_row() > DEFAULT_SESSION.auto_lock_threshold
    session.check_tower_height()
    assert session.countdown is None
    assert session.phase == PHASE_STABLE
    print("  PASS: Auto-lock cancelled")


def test_emergency_lock():
    """A tower within two rows of the buffer is locked at once, without charge."""
    session, _ = _session(["####"] + ["##########"] * 13)
    assert session.state.tower.top_row() == G.buffer_rows + 2
    assert not session.state.lock_ready
    session.check_tower_height()
    assert len(session.locks) == 1
    result = session.locks[0]
    assert result.forced
    assert result.top_row == G.buffer_rows + 2
    assert len(session.state.tower.get_history()) == G.history_rows
    assert session.state.tower.top_row() == F
    print("  PASS: Emergency lock")


if __name__ == "__main__":
    print("=== Phase 8: Session ===")
    test_default_sink_is_silent()
    test_place_piece_commits()
    test_awkward_piece_charge()
    test_gutter_floor_piece_discarded()
    test_history_band_placement()
    test_receive_attack()
    test_attack_rejects_non_positive()
    test_handle_message()
    test_handle_unknown_message()
    test_attack_triggers_partial_collapse()
    test_attack_triggers_full_collapse()
    test_partial_relief_smaller_than_full()
    test_attack_on_bare_foundation_keeps_piece()
    test_auto_lock_countdown()
    test_auto_lock_cancelled()
    test_emergency_lock()
    print("All Phase 8 tests passed.\n")
