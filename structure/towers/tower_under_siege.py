"""
structure/towers/tower_under_siege.py
=====================================
A well-built tower brought down by incoming attacks alone.

The drops are the same solid layers as the solid stack, so the grid
itself stays near-perfect. Attacks land after steps 2, 5 and 8 and add
up to 70 external instability, enough to push the tower into the
partial-collapse band without any structural defect.
"""

from core.models import TowerPlan, PieceDrop

ATTACKS = {
    2: 25.0,
    5: 25.0,
    8: 20.0,
}


def build() -> TowerPlan:
    """Construct the siege plan: two solid layers plus three attacks."""
    layer = [
        PieceDrop("I", 0),
        PieceDrop("I", 4),
        PieceDrop("O", 8),
        PieceDrop("I", 0),
        PieceDrop("I", 4),
    ]
    return TowerPlan(name="Under Siege", drops=layer * 2, attacks=dict(ATTACKS))
