"""
core/models.py
==============
Shared data contracts for the tower stability engine.

Every module in this project communicates through these dataclasses.
Grids themselves are plain numpy arrays (int8 occupancy, float64
stability); the records here wrap what the solver derives from them.

A stability pass is a pure function of the grid: it returns fresh
VoidCluster and StabilityReport objects every time and never keeps a
reference to the arrays it was given.
"""

from dataclasses import dataclass, field
from typing import List, Tuple, Optional, Dict, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from structure.grid import TowerGrid


# ---------------------------------------------------------------------------
# Void detection
# ---------------------------------------------------------------------------

SEVERITY_MINOR = "minor"
SEVERITY_MODERATE = "moderate"
SEVERITY_SEVERE = "severe"
SEVERITY_CRITICAL = "critical"

SEVERITY_TIERS = (SEVERITY_MINOR, SEVERITY_MODERATE, SEVERITY_SEVERE, SEVERITY_CRITICAL)


@dataclass
class VoidCluster:
    """
    A connected component of enclosed empty cells capped from above.

    Created fresh on every stability recompute; never persisted.

    Attributes:
        id (int): Index of the cluster within one recompute.
        cells (List[Tuple[int, int]]): Member cells as (x, y) board coordinates.
        min_x, max_x, min_y, max_y (int): Inclusive bounding box.
        size (int): Number of member cells.
        depth (int): Vertical extent, max_y - min_y + 1.
        coverage (float): size / bounding-box area.
        enclosure_ratio (float): Fraction of in-zone 8-neighbour positions,
                                 summed over members, that are filled.
        severity (str): One of SEVERITY_TIERS, derived from enclosure_ratio.
    """
    id: int
    cells: List[Tuple[int, int]]
    min_x: int
    max_x: int
    min_y: int
    max_y: int
    size: int
    depth: int
    coverage: float
    enclosure_ratio: float
    severity: str

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    def contains(self, x: int, y: int) -> bool:
        """True when (x, y) is one of the cluster's cells."""
        return (x, y) in self.cells


# ---------------------------------------------------------------------------
# Stability output
# ---------------------------------------------------------------------------

@dataclass
class StabilityReport:
    """
    Result of one full stability recompute.

    Attributes:
        cell_stability (np.ndarray): Float matrix parallel to the active grid.
                                     1.0 = perfect support, negative = void or
                                     severe defect.
        row_stability (np.ndarray): One value per active-grid row; NaN for rows
                                    at or past the cutoff (history band).
        void_clusters (List[VoidCluster]): Enclosed voids found this pass.
        top_row (int): Topmost occupied row, or -1 for an empty grid.
        raw_section_stability (float): Section score before historical blending
                                       and external instability, 0–100.
        stability (float): Final stability after blending and attacks, 0–100.
        instability (float): max_instability - stability.
    """
    cell_stability: np.ndarray
    row_stability: np.ndarray
    void_clusters: List[VoidCluster]
    top_row: int
    raw_section_stability: float
    stability: float
    instability: float

    def get_cell_stability(self, x: int, y: int) -> float:
        """Stability of cell (x, y); 0.0 for out-of-range queries."""
        rows, cols = self.cell_stability.shape
        if 0 <= y < rows and 0 <= x < cols:
            return float(self.cell_stability[y, x])
        return 0.0

    def get_row_stability(self, y: int) -> Optional[float]:
        """Stability of row y, or None for history and out-of-range rows."""
        if 0 <= y < len(self.row_stability):
            value = float(self.row_stability[y])
            return None if np.isnan(value) else value
        return None


# ---------------------------------------------------------------------------
# Placement input
# ---------------------------------------------------------------------------

@dataclass
class PlacedPiece:
    """
    A piece whose final position was already validated by the placement system.

    Attributes:
        cells (List[Tuple[int, int]]): Board coordinates (x, y) of the piece.
        kind (Optional[str]): Tetromino letter, used for the charge bonus.
    """
    cells: List[Tuple[int, int]]
    kind: Optional[str] = None

    @classmethod
    def from_shape(cls, shape: List[List[int]], x: int, y: int,
                   kind: Optional[str] = None) -> "PlacedPiece":
        """Build a piece from a row-major shape matrix and its top-left origin."""
        cells = [
            (x + col, y + row)
            for row, line in enumerate(shape)
            for col, filled in enumerate(line)
            if filled
        ]
        return cls(cells=cells, kind=kind)


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

@dataclass
class TowerState:
    """
    Everything a session knows about one player's tower.

    The TowerGrid owns the grid and history arrays; everything else here is
    scalar bookkeeping read and written by the session, the lock and the
    collapse resolution.

    Attributes:
        tower (TowerGrid): Owner of the active grid and history archive.
        historical_stability (float): Running average over locked sections, 0–100.
        locked_sections (int): Number of sections folded into the average.
        external_instability (float): Accumulated attack strength.
        instability (float): Gameplay-facing instability from the last recompute
                             or collapse resolution.
        raw_section_stability (float): Last raw section score.
        score (int): Player score.
        charge (int): Lock charge level.
        lock_ready (bool): Set when charge reaches max; consumed by a lock.
        placements_in_section (int): Pieces placed since the last lock.
    """
    tower: "TowerGrid"
    historical_stability: float = 100.0
    locked_sections: int = 0
    external_instability: float = 0.0
    instability: float = 0.0
    raw_section_stability: float = 100.0
    score: int = 0
    charge: int = 0
    lock_ready: bool = False
    placements_in_section: int = 0


@dataclass
class CollapseEvent:
    """
    Outcome of one resolved collapse.

    Attributes:
        kind (str): "partial" or "full".
        rows (List[int]): Row indices that were cleared.
        instability_before (float): Instability that triggered the collapse.
        new_instability (float): Instability after resolution.
        score_penalty (int): Points removed from the score.
    """
    kind: str
    rows: List[int]
    instability_before: float
    new_instability: float
    score_penalty: int

    @property
    def rows_collapsed(self) -> int:
        return len(self.rows)

    def to_payload(self) -> dict:
        """Outbound network message announcing the collapse to peers."""
        return {
            "type": "towerCollapse",
            "rows": self.rows_collapsed,
            "newInstability": self.new_instability,
            "penalty": self.score_penalty,
        }


@dataclass
class LockResult:
    """
    Outcome of a tower-section lock.

    Attributes:
        top_row (int): Topmost occupied row before the lock; re-seated as foundation.
        rows_archived (int): Rows pushed into the history archive.
        section_stability (float): Raw section stability folded into the average.
        historical_stability (float): Running average after folding.
        locked_sections (int): Section count after folding.
        forced (bool): True for auto-lock and emergency paths.
    """
    top_row: int
    rows_archived: int
    section_stability: float
    historical_stability: float
    locked_sections: int
    forced: bool = False


# ---------------------------------------------------------------------------
# Scenario input and simulation output
# ---------------------------------------------------------------------------

@dataclass
class PieceDrop:
    """
    A scripted hard drop: which piece, and at which tower-zone column.

    Attributes:
        kind (str): Tetromino letter (key of TETROMINO_SHAPES).
        column (int): Left edge of the shape, relative to the tower zone.
                      Negative values reach into the left gutter.
    """
    kind: str
    column: int


@dataclass
class TowerPlan:
    """
    A scripted sequence of drops, locks and attacks.

    Every module in structure/towers/ returns one of these from build().

    Attributes:
        name (str): Human-readable plan name.
        drops (List[PieceDrop]): Pieces in drop order; one step each.
        locks (List[int]): Step indices after which a lock is requested.
        attacks (Dict[int, float]): Step index -> attack strength received
                                    after that step.
    """
    name: str
    drops: List[PieceDrop]
    locks: List[int] = field(default_factory=list)
    attacks: Dict[int, float] = field(default_factory=dict)


@dataclass
class StepRecord:
    """Stability snapshot taken after one scripted step."""
    step: int
    stability: float
    instability: float
    raw_section_stability: float
    historical_stability: float
    void_count: int
    top_row: int
    events: List[str] = field(default_factory=list)


@dataclass
class SimulationResult:
    """
    Complete output of a scripted run, passed to the visualization layer.

    Attributes:
        plan_name (str): Name of the plan that was replayed.
        steps (List[StepRecord]): One record per placement.
        collapses (List[CollapseEvent]): Resolved collapses in order.
        locks (List[LockResult]): Completed locks in order.
        final_report (StabilityReport): Last recompute.
        final_grid (np.ndarray): Copy of the active grid at the end.
        final_history (np.ndarray): Copy of the history archive at the end.
    """
    plan_name: str
    steps: List[StepRecord]
    collapses: List[CollapseEvent]
    locks: List[LockResult]
    final_report: StabilityReport
    final_grid: np.ndarray
    final_history: np.ndarray

    @property
    def collapse_detected(self) -> bool:
        return bool(self.collapses)
