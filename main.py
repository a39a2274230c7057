"""
main.py
=======
Entry point for the Tower Stability Simulator.

Usage:
    python main.py                          # runs default scenario (stair_cave)
    python main.py --scenario lock_cycle
    python main.py --scenario leaning --steps 6 --save
    python main.py --list                   # list available scenarios

Arguments:
    --scenario  : Scenario name from the registry (default: stair_cave)
    --steps     : Maximum drops to replay (default: all)
    --save      : Save figures to disk instead of displaying them
    --list      : Print available scenarios and exit
    --verbose   : Log engine events (collapses, locks, attacks) to stderr
"""

import argparse
import logging
import os

from core.config import COMPACT_GEOMETRY
from simulation.scenarios import run_scenario, list_scenarios
from visualization.stability_view import plot_stability
from visualization.instability_plot import plot_instability


def main():
    """
    Parse CLI arguments, run the selected scenario, and display results.

    Runs the scripted plan, then shows:
      1. Stability heatmap of the final tower with void clusters
      2. Stability timeline (instability, section/historical, void count)
    """
    args = _parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.list:
        print("Available scenarios:")
        for name in list_scenarios():
            print(f"  {name}")
        return

    if args.scenario not in list_scenarios():
        print(f"Unknown scenario '{args.scenario}'. Use --list to see available options.")
        return

    print(f"Running scenario : {args.scenario}")
    print(f"Max steps        : {args.steps if args.steps is not None else 'all'}")
    print()

    result = run_scenario(args.scenario, max_steps=args.steps)

    # --- Report summary ---
    final = result.final_report
    print(f"Simulation complete: {result.plan_name}")
    print(f"  Steps run        : {len(result.steps)}")
    print(f"  Final stability  : {final.stability:.1f}")
    print(f"  Void clusters    : {len(final.void_clusters)}")
    print(f"  Collapse detected: {result.collapse_detected}")
    for event in result.collapses:
        print(f"    {event.kind:<8} {event.rows_collapsed} rows, "
              f"instability {event.instability_before:.1f} -> {event.new_instability:.1f}, "
              f"penalty {event.score_penalty}")
    print(f"  Sections locked  : {len(result.locks)}")
    if result.locks:
        print(f"  Historical       : {result.locks[-1].historical_stability:.1f}")
    print()

    # --- Visualization ---
    save_dir = "output_figures" if args.save else None
    if args.save:
        os.makedirs(save_dir, exist_ok=True)
        print(f"Saving figures to: {save_dir}/")

    plot_stability(
        report=final,
        grid=result.final_grid,
        geometry=COMPACT_GEOMETRY,
        title=f"{result.plan_name} — final tower",
        show=not args.save,
        save_path=os.path.join(save_dir, "stability_final.png") if args.save else None
    )

    plot_instability(
        result=result,
        show=not args.save,
        save_path=os.path.join(save_dir, "instability_timeline.png") if args.save else None
    )


def _parse_args() -> argparse.Namespace:
    """
    Define and parse CLI arguments.

    Returns:
        Parsed argparse.Namespace object.
    """
    parser = argparse.ArgumentParser(
        description="Tower Stability Simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument(
        "--scenario", type=str, default="stair_cave",
        help="Scenario name to run (default: stair_cave)"
    )
    parser.add_argument(
        "--steps", type=int, default=None,
        help="Maximum drops to replay (default: all)"
    )
    parser.add_argument(
        "--save", action="store_true",
        help="Save figures to output_figures/ instead of displaying"
    )
    parser.add_argument(
        "--list", action="store_true",
        help="List available scenarios and exit"
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log engine events to stderr"
    )
    return parser.parse_args()


if __name__ == "__main__":
    main()
