"""
tests/test_phase4_support.py
=============================
Phase 4: Verify the overhang, thin-width and balance passes.

Each pass is run on an all-ones stability matrix so its effect can be read
off directly; the last test runs all three in order to check they compose.
"""

import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np

from core.config import COMPACT_GEOMETRY, DEFAULT_CONFIG
from structure.grid import grid_from_rows
from solver.support import (
    apply_support_penalties, apply_overhang_penalties, apply_thin_width_penalties,
    apply_balance_penalties, thin_width_penalty, row_imbalance,
)

G = COMPACT_GEOMETRY
S = G.tower_start
F = G.foundation_row


def _ones(grid):
    return np.ones(grid.shape)


def test_supported_block_keeps_full_stability():
    """A block resting on the foundation with no neighbours stays at 1.0."""
    grid = grid_from_rows(["....#.....", "##########"], G)
    stability = _ones(grid)
    apply_overhang_penalties(grid, stability, G)
    assert stability[F - 1, S + 4] == 1.0
    print("  PASS: Supported block unchanged")


def test_diagonal_support_penalty():
    """A block propped up only diagonally loses overhang * 0.7."""
    grid = grid_from_rows([".#........", "#.........", "##########"], G)
    stability = _ones(grid)
    apply_overhang_penalties(grid, stability, G)
    expected = 1.0 - 0.35 * 0.7
    assert abs(stability[F - 2, S + 1] - expected) < 1e-9
    print(f"  PASS: Diagonal support -> {stability[F - 2, S + 1]:.3f}")


def test_unsupported_penalty():
    """A block with nothing below loses overhang * 2.0."""
    grid = grid_from_rows([".#........", "..........", "##########"], G)
    stability = _ones(grid)
    apply_overhang_penalties(grid, stability, G)
    assert abs(stability[F - 2, S + 1] - 0.3) < 1e-9
    print("  PASS: Unsupported block -> 0.30")


def test_lateral_neighbour_bonus():
    """An unsupported block earns +0.15 per filled left/right neighbour."""
    grid = grid_from_rows(["###.......", "#.........", "##########"], G)
    stability = _ones(grid)
    apply_overhang_penalties(grid, stability, G)
    # Tower column 2: no support below, no diagonal, one left neighbour
    assert abs(stability[F - 2, S + 2] - 0.45) < 1e-9
    assert stability[F - 2, S] == 1.0, "Edge block never exceeds the ceiling"
    print("  PASS: Lateral neighbour bonus")


def test_support_ordering():
    """Full support beats diagonal support beats no support."""
    supported = grid_from_rows([".#........", ".#........", "##########"], G)
    diagonal = grid_from_rows([".#........", "#.........", "##########"], G)
    floating = grid_from_rows([".#........", "..........", "##########"], G)
    values = []
    for grid in (supported, diagonal, floating):
        stability = _ones(grid)
        apply_overhang_penalties(grid, stability, G)
        values.append(stability[F - 2, S + 1])
    assert values[0] > values[1] > values[2], f"Unexpected ordering {values}"
    print(f"  PASS: Support ordering {[round(v, 3) for v in values]}")


def test_foundation_forced_to_ceiling():
    """Whatever came in, filled foundation cells leave the pass at 1.0."""
    grid = grid_from_rows(["##########"], G)
    stability = np.full(grid.shape, 0.2)
    apply_overhang_penalties(grid, stability, G)
    assert (stability[F, S:S + G.tower_width] == 1.0).all()
    print("  PASS: Foundation forced to 1.0")


def test_thin_width_penalty_values():
    """penalty = (6 - w) / 6 * 0.4 * 1.5 for 0 < w < 6, else 0."""
    assert thin_width_penalty(0) == 0.0
    assert thin_width_penalty(6) == 0.0
    assert thin_width_penalty(10) == 0.0
    assert abs(thin_width_penalty(4) - 0.2) < 1e-9
    assert abs(thin_width_penalty(1) - 0.5) < 1e-9
    print("  PASS: Thin-width penalty values")


def test_thin_width_pass():
    """Only the narrow row is penalised."""
    grid = grid_from_rows(["####......", "##########"], G)
    stability = _ones(grid)
    apply_thin_width_penalties(grid, stability, G)
    assert np.allclose(stability[F - 1, S:S + 4], 0.8)
    assert (stability[F - 1, S + 4:S + G.tower_width] == 1.0).all(), "Empty cells untouched"
    assert (stability[F] == 1.0).all()
    print("  PASS: Thin-width pass")


def test_row_imbalance():
    """Imbalance is |centre of mass - midpoint| / (tower_width / 2)."""
    grid = grid_from_rows(["##........", "....##....", ".#........", "##########"], G)
    assert abs(row_imbalance(grid, F - 3, G) - 0.8) < 1e-9
    assert row_imbalance(grid, F - 2, G) == 0.0
    assert row_imbalance(grid, F - 1, G) == 0.0, "Single block has no balance"
    assert row_imbalance(grid, F, G) == 0.0
    print("  PASS: Row imbalance")


def test_balance_pass():
    """Outlying blocks of a lopsided row lose more than inner ones."""
    grid = grid_from_rows(["##........", "##########"], G)
    stability = _ones(grid)
    apply_balance_penalties(grid, stability, G)
    # base = (0.8 - 0.3) * 0.3 = 0.15
    assert abs(stability[F - 1, S] - (1 - 0.15 * 0.95)) < 1e-9
    assert abs(stability[F - 1, S + 1] - (1 - 0.15 * 0.85)) < 1e-9
    assert (stability[F] == 1.0).all(), "Balanced rows untouched"
    print("  PASS: Balance pass")


def test_passes_compose_in_order():
    """Overhang, then thin width, then balance, each on top of the last."""
    grid = grid_from_rows(["##........", "##########"], G)
    stability = apply_support_penalties(grid, _ones(grid), G, DEFAULT_CONFIG)
    thin = thin_width_penalty(2)
    assert abs(stability[F - 1, S] - (1 - thin - 0.15 * 0.95)) < 1e-9
    assert abs(stability[F - 1, S + 1] - (1 - thin - 0.15 * 0.85)) < 1e-9
    assert stability.min() >= DEFAULT_CONFIG.cell_floor
    assert stability.max() <= DEFAULT_CONFIG.cell_ceiling
    print("  PASS: Passes compose in order")


if __name__ == "__main__":
    print("=== Phase 4: Support ===")
    test_supported_block_keeps_full_stability()
    test_diagonal_support_penalty()
    test_unsupported_penalty()
    test_lateral_neighbour_bonus()
    test_support_ordering()
    test_foundation_forced_to_ceiling()
    test_thin_width_penalty_values()
    test_thin_width_pass()
    test_row_imbalance()
    test_balance_pass()
    test_passes_compose_in_order()
    print("All Phase 4 tests passed.\n")
