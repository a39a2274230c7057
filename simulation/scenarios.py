"""
simulation/scenarios.py
=======================
Predefined tower scenarios for quick testing and validation.

Each scenario builds a plan, configures the runner, and returns a
SimulationResult. New scenarios follow the same pattern: one function per
scenario, all returning SimulationResult.

To add a new scenario:
  1. Add a plan file to structure/towers/
  2. Define a function here that calls runner.run() with the desired config
  3. Register it in the SCENARIOS dict at the bottom of this file
"""

from core.config import COMPACT_GEOMETRY, DEFAULT_CONFIG, CLASSIC_CONFIG
from core.models import SimulationResult
from simulation import runner
from structure.towers import (
    tower_solid_stack, tower_capped_void, tower_stair_cave,
    tower_leaning, tower_lock_cycle, tower_under_siege,
)


# ---------------------------------------------------------------------------
# Scenario definitions
# ---------------------------------------------------------------------------

def scenario_solid_stack(max_steps: int | None = None) -> SimulationResult:
    """
    Fully packed layers; the baseline that should never collapse.

    Args:
        max_steps: Maximum drops to replay (all when None).

    Returns:
        SimulationResult from the runner.
    """
    return runner.run(tower_solid_stack.build(), COMPACT_GEOMETRY, max_steps=max_steps)


def scenario_capped_void(max_steps: int | None = None) -> SimulationResult:
    """
    Pillars roofed over enclosed gaps; critical voids drive collapses.

    Args:
        max_steps: Maximum drops to replay (all when None).

    Returns:
        SimulationResult from the runner.
    """
    return runner.run(tower_capped_void.build(), COMPACT_GEOMETRY, max_steps=max_steps)


def scenario_stair_cave(max_steps: int | None = None) -> SimulationResult:
    """
    Staircase roofing one large cave; every layer ends in a full collapse.

    Args:
        max_steps: Maximum drops to replay (all when None).

    Returns:
        SimulationResult from the runner.
    """
    return runner.run(tower_stair_cave.build(), COMPACT_GEOMETRY, max_steps=max_steps)


def scenario_leaning(max_steps: int | None = None) -> SimulationResult:
    """Narrow, off-centre spire with overhanging ledges; trips auto-lock."""
    return runner.run(tower_leaning.build(), COMPACT_GEOMETRY, max_steps=max_steps)


def scenario_lock_cycle(max_steps: int | None = None,
                        classic: bool = False) -> SimulationResult:
    """
    Three solid sections locked one after another.

    Args:
        max_steps: Maximum drops to replay (all when None).
        classic: Use the "min" historical blend instead of the weighted one.

    Returns:
        SimulationResult from the runner.
    """
    config = CLASSIC_CONFIG if classic else DEFAULT_CONFIG
    return runner.run(tower_lock_cycle.build(), COMPACT_GEOMETRY, config, max_steps=max_steps)


def scenario_under_siege(max_steps: int | None = None) -> SimulationResult:
    """Solid tower pushed into collapse by attacks alone."""
    return runner.run(tower_under_siege.build(), COMPACT_GEOMETRY, max_steps=max_steps)


# ---------------------------------------------------------------------------
# Scenario registry
# ---------------------------------------------------------------------------

SCENARIOS: dict[str, callable] = {
    "solid_stack":  scenario_solid_stack,
    "capped_void":  scenario_capped_void,
    "stair_cave":   scenario_stair_cave,
    "leaning":      scenario_leaning,
    "lock_cycle":   scenario_lock_cycle,
    "under_siege":  scenario_under_siege,
}


def run_scenario(name: str, **kwargs) -> SimulationResult:
    """
    Run a scenario by name with optional keyword overrides.

    Args:
        name: Scenario key from the SCENARIOS registry.
        **kwargs: Passed directly to the scenario function
                  (e.g. max_steps=10).

    Returns:
        SimulationResult from the selected scenario.

    Raises:
        ValueError: If the scenario name is not found in the registry.
    """
    if name not in SCENARIOS:
        available = ", ".join(SCENARIOS.keys())
        raise ValueError(f"Unknown scenario '{name}'. Available: {available}")
    return SCENARIOS[name](**kwargs)


def list_scenarios() -> list[str]:
    """Return all registered scenario names."""
    return list(SCENARIOS.keys())
