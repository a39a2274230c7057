"""
structure/towers/tower_leaning.py
=================================
A narrow spire hugging the left wall with I-piece ledges sticking out.

Every O piece adds a two-wide, two-tall block in columns 0-1; every I
piece adds a four-wide ledge whose right half hangs over empty space.
The rows are thin, off-centre and partly unsupported, which exercises the
thin-width, balance and overhang penalties together. The tower also grows
tall enough to start the auto-lock countdown.
"""

from core.models import TowerPlan, PieceDrop


def build() -> TowerPlan:
    """Construct the leaning spire plan."""
    drops = [PieceDrop("O", 0), PieceDrop("O", 0)]
    for _ in range(3):
        drops += [PieceDrop("I", 0), PieceDrop("O", 0)]
    drops.append(PieceDrop("O", 0))
    return TowerPlan(name="Leaning Spire", drops=drops)
