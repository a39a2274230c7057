"""
visualization/instability_plot.py
=================================
Plots the stability evolution over a full scripted run.

Three subplots in one figure:
  1. Instability vs step        — with partial and full collapse thresholds
  2. Section stability vs step  — raw section score and historical average
  3. Void count vs step         — how many enclosed voids each step found

Collapse events are marked on every subplot in red, locks in green.

Consumed by main.py after runner.run() completes.
"""

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches

from core.config import SessionConfig, DEFAULT_SESSION
from core.models import SimulationResult


def plot_instability(
    result: SimulationResult,
    session: SessionConfig = DEFAULT_SESSION,
    show: bool = True,
    save_path: str | None = None
) -> plt.Figure:
    """
    Render the stability timeline of a completed run.

    Args:
        result: Completed SimulationResult from runner.run().
        session: Supplies the collapse thresholds drawn on the top subplot.
        show: Whether to call plt.show() immediately.
        save_path: If provided, saves figure to this path.

    Returns:
        matplotlib Figure object.
    """
    steps = [r.step for r in result.steps]
    instability = [r.instability for r in result.steps]
    raw = [r.raw_section_stability for r in result.steps]
    historical = [r.historical_stability for r in result.steps]
    voids = [r.void_count for r in result.steps]

    fig, axes = plt.subplots(3, 1, figsize=(10, 9), sharex=True)
    fig.suptitle(
        f"Tower Stability — {result.plan_name}",
        fontsize=13, fontweight="bold"
    )

    _plot_instability_curve(axes[0], steps, instability, session)
    _plot_section_stability(axes[1], steps, raw, historical)
    _plot_void_count(axes[2], steps, voids)

    collapse_steps = _event_steps(result, "collapse")
    lock_steps = _event_steps(result, "lock")
    for ax in axes:
        for step in collapse_steps:
            ax.axvline(step, color="red", linewidth=1.6, linestyle="--", alpha=0.8)
        for step in lock_steps:
            ax.axvline(step, color="seagreen", linewidth=1.2, linestyle=":", alpha=0.8)

    _add_legend(axes[0], result.collapse_detected, bool(lock_steps))

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150)
    elif show:
        plt.show()

    return fig


# ---------------------------------------------------------------------------
# Subplot renderers
# ---------------------------------------------------------------------------

def _plot_instability_curve(ax, steps, instability, session: SessionConfig):
    ax.plot(steps, instability, color="firebrick", linewidth=2)
    ax.axhline(session.partial_collapse_threshold, color="orange",
               linestyle=":", linewidth=1, label="Partial collapse")
    ax.axhline(session.full_collapse_threshold, color="darkred",
               linestyle=":", linewidth=1, label="Full collapse")
    ax.set_ylabel("Instability", fontsize=10)
    ax.set_ylim(0, session.max_instability + 5)
    ax.set_title("Tower Instability", fontsize=10)
    ax.grid(True, alpha=0.3)


def _plot_section_stability(ax, steps, raw, historical):
    """
    Raw section score and the historical running average.

    Args:
        ax: matplotlib axis.
        steps: List of step indices.
        raw: Raw section stability per step.
        historical: Historical stability per step.
    """
    ax.plot(steps, raw, color="steelblue", linewidth=2, label="Section (raw)")
    ax.plot(steps, historical, color="slategrey", linewidth=1.5,
            linestyle="--", label="Historical")
    ax.set_ylabel("Stability", fontsize=10)
    ax.set_ylim(0, 105)
    ax.set_title("Section and Historical Stability", fontsize=10)
    ax.legend(loc="lower left", fontsize=8)
    ax.grid(True, alpha=0.3)


def _plot_void_count(ax, steps, voids):
    ax.step(steps, voids, where="post", color="darkorange", linewidth=2)
    ax.set_ylabel("Voids", fontsize=10)
    ax.set_xlabel("Simulation Step", fontsize=10)
    ax.set_title("Enclosed Void Clusters", fontsize=10)
    ax.grid(True, alpha=0.3)


# ---------------------------------------------------------------------------
# Annotation helpers
# ---------------------------------------------------------------------------

def _event_steps(result: SimulationResult, event: str) -> list[int]:
    """Steps whose record contains the given sink event."""
    prefix = f"{event}:"
    return [
        r.step for r in result.steps
        if any(e.startswith(prefix) for e in r.events)
    ]


def _add_legend(ax, collapse_detected: bool, locked: bool):
    """
    Add a legend to the top subplot indicating collapse and lock status.

    Args:
        ax: Top matplotlib axis.
        collapse_detected: Whether any collapse resolved in the run.
        locked: Whether any section was locked.
    """
    status = "Collapse Detected" if collapse_detected else "No Collapse"
    color = "red" if collapse_detected else "green"
    handles, _ = ax.get_legend_handles_labels()
    handles.append(mpatches.Patch(color=color, label=status))
    if locked:
        handles.append(mpatches.Patch(color="seagreen", label="Section Lock"))
    ax.legend(handles=handles, loc="upper left", fontsize=8)
