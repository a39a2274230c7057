"""
structure/towers/tower_capped_void.py
=====================================
O-piece pillars with one-column gaps, roofed over by I pieces.

Geometry of one layer (rows counted up from the foundation):

    col: 0 1 2 3 4 5 6 7 8 9
                         O O    <- row 4 (top of the second O at col 8)
         I I I I I I I I O O    <- row 3: the I roof caps both gaps
         O O . O O . O O O O    <- row 2
         O O . O O . O O O O    <- row 1
         # # # # # # # # # #    <- foundation

Columns 2 and 5 end up as two-cell voids walled on both sides and capped
from above: fully enclosed, so they classify as critical. The roof row
above each pair of voids becomes the weakest row of the section, but the
full rows around it keep the tower standing. Two layers leave four void
clusters in the final grid.
"""

from core.models import TowerPlan, PieceDrop

LAYERS = 2


def build() -> TowerPlan:
    """
    Construct the capped-void plan.

    Returns:
        TowerPlan with LAYERS void-forming layers.
    """
    return TowerPlan(
        name="Capped Voids",
        drops=_layer() * LAYERS,
    )


def _layer() -> list[PieceDrop]:
    return [
        PieceDrop("O", 0),
        PieceDrop("O", 3),
        PieceDrop("O", 6),
        PieceDrop("O", 8),
        PieceDrop("I", 0),
        PieceDrop("I", 4),
        PieceDrop("O", 8),
    ]
