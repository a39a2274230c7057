"""
tests/test_phase10_visualization.py
====================================
Phase 10: Smoke tests for visualization. No window is opened;
figures are saved to a temp directory and then deleted.

Checks:
  - plot_stability() runs without error and produces a file
  - plot_stability() handles void clusters and an empty tower
  - plot_instability() runs without error, with and without collapses
"""

import sys
import os
import tempfile
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend, no window
import matplotlib.pyplot as plt

from core.config import COMPACT_GEOMETRY
from structure.grid import TowerGrid, grid_from_rows
from stability.aggregator import compute_stability
from simulation.scenarios import run_scenario
from visualization.stability_view import plot_stability
from visualization.instability_plot import plot_instability

G = COMPACT_GEOMETRY


def test_plot_stability_saves_file():
    """plot_stability() saves a PNG for a tower with a capped void."""
    grid = grid_from_rows(["....###...", "#####.####", "##########"], G)
    report = compute_stability(grid, G)
    assert report.void_clusters

    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "stability_test.png")
        fig = plot_stability(report, grid, G, title="Capped", show=False, save_path=path)
        assert os.path.exists(path), "Stability plot file was not created"
        assert fig is not None
    plt.close(fig)
    print("  PASS: plot_stability() saved file successfully")


def test_plot_stability_empty_tower():
    """A tower with no blocks still renders."""
    grid = TowerGrid(G, with_foundation=False).get_grid()
    report = compute_stability(grid, G)
    fig = plot_stability(report, grid, G, show=False)
    assert fig is not None
    plt.close(fig)
    print("  PASS: plot_stability() handles an empty tower")


def test_plot_instability_saves_file():
    """plot_instability() saves a PNG for a run without collapses."""
    result = run_scenario("solid_stack", max_steps=6)
    assert not result.collapse_detected

    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "instability_test.png")
        fig = plot_instability(result, show=False, save_path=path)
        assert os.path.exists(path)
        assert fig is not None
    plt.close(fig)
    print("  PASS: plot_instability() saved file successfully")


def test_plot_instability_with_events():
    """plot_instability() marks collapses and locks without crashing."""
    for name in ("stair_cave", "lock_cycle"):
        result = run_scenario(name)
        fig = plot_instability(result, show=False)
        assert fig is not None
        assert len(fig.axes) == 3
        plt.close(fig)
    print("  PASS: plot_instability() handles collapse and lock markers")


if __name__ == "__main__":
    print("=== Phase 10: Visualization ===")
    test_plot_stability_saves_file()
    test_plot_stability_empty_tower()
    test_plot_instability_saves_file()
    test_plot_instability_with_events()
    print("All Phase 10 tests passed.\n")
