"""
core/config.py
==============
Board geometry and tuning constants for the tower stability engine.

Every threshold, penalty and weight used by the solver, aggregator and
session lives here as a named field on a frozen dataclass. Modules never
hard-code a tuning number: they receive a config object and read from it,
so a tuning change is a one-line edit and tests can inject their own.

Three config objects:
    BoardGeometry   — grid dimensions and the gutter / tower / history zones
    StabilityConfig — cell, row and section scoring constants (versioned)
    SessionConfig   — collapse, auto-lock, charge and scoring rules
"""

from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Board geometry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BoardGeometry:
    """
    Dimensions of the active grid and the history archive.

    The active grid is ``board_height x board_width``. Rows
    ``[0, buffer_rows)`` are the spawn buffer, rows up to ``cutoff_row``
    are the visible active section, and the trailing ``history_rows`` band
    is reserved: cell queries there are routed to the history archive.

    Columns are split into a left gutter, the tower zone and a right gutter.
    Only tower-zone columns take part in stability scoring.

    Attributes:
        gutter_width (int): Width of each dead-zone gutter, in cells.
        tower_width (int): Width of the playable tower zone, in cells.
        buffer_rows (int): Spawn rows above the visible section.
        visible_rows (int): Visible active rows.
        history_rows (int): Capacity of the history archive.
    """
    gutter_width: int = 4
    tower_width: int = 10
    buffer_rows: int = 4
    visible_rows: int = 30
    history_rows: int = 30

    @property
    def board_width(self) -> int:
        """Total columns including both gutters."""
        return self.tower_width + 2 * self.gutter_width

    @property
    def board_height(self) -> int:
        """Total active-grid rows including the reserved history band."""
        return self.buffer_rows + self.visible_rows + self.history_rows

    @property
    def cutoff_row(self) -> int:
        """First row index that belongs to the history archive."""
        return self.board_height - self.history_rows

    @property
    def foundation_row(self) -> int:
        """Last active row; holds the foundation after every lock."""
        return self.cutoff_row - 1

    @property
    def tower_start(self) -> int:
        """First tower-zone column."""
        return self.gutter_width

    @property
    def tower_end(self) -> int:
        """One past the last tower-zone column."""
        return self.gutter_width + self.tower_width

    @property
    def tower_midpoint(self) -> float:
        """Horizontal midpoint of the tower zone, in column coordinates."""
        return self.gutter_width + (self.tower_width - 1) / 2.0

    def in_tower(self, x: int) -> bool:
        """True when column x lies in the tower zone."""
        return self.tower_start <= x < self.tower_end


DEFAULT_GEOMETRY = BoardGeometry()

# Small board used by the bundled scenarios and most tests
COMPACT_GEOMETRY = BoardGeometry(
    gutter_width=2,
    tower_width=10,
    buffer_rows=4,
    visible_rows=16,
    history_rows=12,
)


# ---------------------------------------------------------------------------
# Stability scoring
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StabilityConfig:
    """
    Tuning constants for void detection, support penalties and aggregation.

    Clamp policy: cell and row stability live in [cell_floor, cell_ceiling];
    section, historical and final stability live in [0, max_stability].
    """
    version: str = "2"

    # Void severity tiers, keyed on enclosure ratio
    critical_enclosure: float = 0.8
    severe_enclosure: float = 0.6
    moderate_enclosure: float = 0.4

    # Stability assigned to void cells
    critical_void_base: float = -0.7
    severe_void_base: float = -0.5
    moderate_void_base: float = -0.3
    minor_void_base: float = -0.2
    void_depth_step: float = 0.1
    void_depth_cap: float = 0.4
    void_size_step: float = 0.05
    void_size_cap: float = 0.3

    # Penalty pushed onto filled cells around a void
    critical_effect: float = 0.4
    severe_effect: float = 0.3
    moderate_effect: float = 0.2
    minor_effect: float = 0.1
    effect_size_step: float = 0.01
    effect_cap: float = 0.5
    capping_multiplier: float = 1.5
    side_multiplier: float = 1.0
    below_multiplier: float = 0.5

    # Overhang and lateral support
    overhang_penalty: float = 0.35
    unsupported_multiplier: float = 2.0
    diagonal_multiplier: float = 0.7
    neighbor_bonus: float = 0.15
    edge_bonus_factor: float = 0.3

    # Thin rows
    min_stable_width: int = 6
    thin_tower_penalty: float = 0.4
    thin_multiplier: float = 1.5

    # Row balance
    balance_penalty: float = 0.3
    balance_tolerance: float = 0.3

    # Row and section aggregation
    full_row_bonus: float = 1.5
    critical_row_stability: float = 0.4
    consecutive_critical_limit: int = 2
    consecutive_critical_multiplier: float = 0.5
    worst_row_weight: float = 0.6
    baseline_weight: float = 0.4
    negative_row_penalty: float = 0.2
    height_penalty_threshold: int = 15
    height_penalty_per_row: float = 0.02

    # Historical blending
    history_blend: str = "weighted"   # "weighted" or "min"
    historical_weight: float = 0.7
    section_weight: float = 0.3
    low_historical_threshold: float = 50.0
    low_historical_factor: float = 0.5

    # Clamp bounds
    cell_floor: float = -1.0
    cell_ceiling: float = 1.0
    max_stability: float = 100.0


DEFAULT_CONFIG = StabilityConfig()

# Earlier tuning: historical stability only caps the section score
CLASSIC_CONFIG = StabilityConfig(version="1", history_blend="min")


# ---------------------------------------------------------------------------
# Session rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SessionConfig:
    """
    Gameplay rules wrapped around the stability engine.

    Attributes mirror the collapse state machine: thresholds pick the
    collapse kind, row formulas size it, reductions resolve it, and the
    windows model the removal animation delay.
    """
    max_instability: float = 100.0

    partial_collapse_threshold: float = 60.0
    full_collapse_threshold: float = 80.0
    partial_reduction: float = 20.0
    full_reduction: float = 50.0
    partial_max_rows: int = 5
    full_max_rows: int = 10
    penalty_per_row: int = 50
    max_score_penalty: int = 500
    partial_window: float = 0.9
    full_window: float = 1.1

    auto_lock_enabled: bool = True
    auto_lock_threshold: int = 10
    auto_lock_countdown: int = 5
    emergency_threshold: int = 2

    max_charge: int = 100
    placement_charge: int = 5
    awkward_piece_bonus: int = 2
    points_per_placement: int = 10
    default_attack_strength: float = 10.0


DEFAULT_SESSION = SessionConfig()


# ---------------------------------------------------------------------------
# Tetromino shapes (row-major, 1 = filled)
# ---------------------------------------------------------------------------

TETROMINO_SHAPES: dict[str, list[list[int]]] = {
    "I": [[1, 1, 1, 1]],
    "O": [[1, 1], [1, 1]],
    "T": [[0, 1, 0], [1, 1, 1]],
    "S": [[0, 1, 1], [1, 1, 0]],
    "Z": [[1, 1, 0], [0, 1, 1]],
    "J": [[1, 0, 0], [1, 1, 1]],
    "L": [[0, 0, 1], [1, 1, 1]],
}

AWKWARD_PIECES = ("S", "Z")
