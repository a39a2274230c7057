"""
structure/towers/tower_stair_cave.py
====================================
A staircase of I pieces roofing over one large cave.

One layer:

    col: 0 1 2 3 4 5 6 7 8 9
                     I I I I    <- row 5: third step seals the cave
               I I I I . . .    <- row 4
         I I I I . . . . . .    <- row 3
         O O . . . . . . . .    <- row 2
         O O . . . . . . . .    <- row 1
         # # # # # # # # # #    <- foundation

Until the third step lands the space under the stairs is open to the
right. The last I piece closes it off, turning 25 empty cells into a
single capped void. The two rows under the cave are mostly void and
score negative, the section drops to zero and the tower takes a full
collapse that clears everything down to the foundation. Every layer
repeats the cycle.
"""

from core.models import TowerPlan, PieceDrop

LAYERS = 3


def build() -> TowerPlan:
    """
    Construct the stair-cave plan.

    Returns:
        TowerPlan with LAYERS four-drop layers, each ending in a collapse.
    """
    layer = [
        PieceDrop("O", 0),
        PieceDrop("I", 0),
        PieceDrop("I", 3),
        PieceDrop("I", 6),
    ]
    return TowerPlan(name="Stair Cave", drops=layer * LAYERS)
