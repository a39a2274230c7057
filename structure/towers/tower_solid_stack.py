"""
structure/towers/tower_solid_stack.py
=====================================
A tidy, fully packed tower for baseline validation.

Each layer lays two horizontal I pieces side by side and an O piece in
the last two columns, then a second pair of I pieces on top:

    col: 0 1 2 3 4 5 6 7 8 9
         I I I I I I I I O O    <- second pair of I pieces
         I I I I I I I I O O    <- first pair of I pieces
         # # # # # # # # # #    <- foundation

Every completed row is full, nothing overhangs and no voids form, so the
section should stay near 100% stable for the whole run. Useful to confirm
that ordinary play never trips a collapse.
"""

from core.models import TowerPlan, PieceDrop

LAYERS = 3


def build() -> TowerPlan:
    """
    Construct the solid stack plan.

    Returns:
        TowerPlan with LAYERS two-row layers (5 drops each), no locks or attacks.
    """
    return TowerPlan(
        name="Solid Stack",
        drops=_layer() * LAYERS,
    )


def _layer() -> list[PieceDrop]:
    """Five drops that complete two full rows."""
    return [
        PieceDrop("I", 0),
        PieceDrop("I", 4),
        PieceDrop("O", 8),
        PieceDrop("I", 0),
        PieceDrop("I", 4),
    ]
