"""
structure/towers/tower_lock_cycle.py
====================================
Three solid sections, each locked into history once the charge is full.

A section is four solid layers (20 drops, eight full rows). Twenty
placements at five charge each fill the 100-point lock charge exactly, so
the lock requested after the last drop of a section always goes through.

With the compact board (12 history rows) the second lock already
overflows the archive, so the oldest archived rows are evicted.
"""

from core.models import TowerPlan, PieceDrop

SECTIONS = 3
LAYERS_PER_SECTION = 4


def build() -> TowerPlan:
    """
    Construct the lock-cycle plan.

    Returns:
        TowerPlan with a lock request after every section.
    """
    section = _layer() * LAYERS_PER_SECTION
    drops = section * SECTIONS
    locks = [len(section) * (i + 1) - 1 for i in range(SECTIONS)]
    return TowerPlan(name="Lock Cycle", drops=drops, locks=locks)


def _layer() -> list[PieceDrop]:
    return [
        PieceDrop("I", 0),
        PieceDrop("I", 4),
        PieceDrop("O", 8),
        PieceDrop("I", 0),
        PieceDrop("I", 4),
    ]
