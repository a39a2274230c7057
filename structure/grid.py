"""
structure/grid.py
=================
The occupancy board and the history archive.

Grids are int8 numpy arrays, ``rows x board_width``, holding 0 (empty) or
1 (filled). Two of them exist per tower:

    active grid  — buffer rows + visible rows + a reserved trailing band
                   the size of the history archive
    history      — archived rows, most recent first, at most history_rows

Coordinates are (x, y) with y growing downward. Any query at or past the
cutoff row is routed into the history archive, so the two arrays behave
as one tall board for collision purposes.

Module-level functions operate on bare arrays and are what the solver
uses. TowerGrid is the single owner of a tower's arrays: it hands out
read-only views and accepts mutations only through its apply_* methods.
"""

import logging

import numpy as np

from core.config import BoardGeometry, DEFAULT_GEOMETRY

logger = logging.getLogger(__name__)

NO_ROW = -1


# ---------------------------------------------------------------------------
# Array helpers
# ---------------------------------------------------------------------------

def create_empty(rows: int, cols: int) -> np.ndarray:
    """Return a zero-filled occupancy grid of the given shape."""
    return np.zeros((rows, cols), dtype=np.int8)


def find_topmost_occupied_row(grid: np.ndarray,
                              geometry: BoardGeometry = DEFAULT_GEOMETRY) -> int:
    """
    Find the first row, scanning from row 0, with a filled tower-zone cell.

    Args:
        grid: Active occupancy grid.
        geometry: Board geometry (tower-zone columns).

    Returns:
        Row index, or NO_ROW (-1) when the tower zone is empty.
    """
    zone = grid[:, geometry.tower_start:geometry.tower_end]
    occupied = np.flatnonzero(zone.any(axis=1))
    if occupied.size == 0:
        return NO_ROW
    return int(occupied[0])


def find_topmost_block_row(grid: np.ndarray,
                           geometry: BoardGeometry = DEFAULT_GEOMETRY) -> int:
    """
    First active row holding any block, gutter columns included.

    Collapses start here so that gutter cells of a straddling piece go
    down with the tower rows they belong to.

    Returns:
        Row index above the cutoff, or NO_ROW (-1) when nothing is placed.
    """
    occupied = np.flatnonzero(grid[:geometry.cutoff_row].any(axis=1))
    if occupied.size == 0:
        return NO_ROW
    return int(occupied[0])


def row_has_filled_cells(grid: np.ndarray, y: int,
                         geometry: BoardGeometry = DEFAULT_GEOMETRY) -> bool:
    """True when row y has at least one filled tower-zone cell."""
    if y < 0 or y >= grid.shape[0]:
        return False
    return bool(grid[y, geometry.tower_start:geometry.tower_end].any())


def count_filled_rows(grid: np.ndarray, top_row: int, cutoff_row: int,
                      geometry: BoardGeometry = DEFAULT_GEOMETRY) -> int:
    """Count rows in [top_row, cutoff_row) with any filled tower-zone cell."""
    if top_row < 0:
        return 0
    zone = grid[top_row:cutoff_row, geometry.tower_start:geometry.tower_end]
    return int(zone.any(axis=1).sum())


def is_occupied(grid: np.ndarray, history: np.ndarray, x: int, y: int,
                geometry: BoardGeometry = DEFAULT_GEOMETRY) -> bool:
    """
    Collision query over the active grid and the history archive.

    Out-of-bounds and negative coordinates count as occupied, so a
    placement system built on this never accepts an illegal position.
    Rows at or past the cutoff are looked up in the history archive;
    archive rows that do not exist yet are empty.

    Args:
        grid: Active occupancy grid.
        history: History archive, most recent row first.
        x: Column.
        y: Row.
        geometry: Board geometry.

    Returns:
        True when the cell is filled or outside the board.
    """
    if x < 0 or x >= geometry.board_width or y < 0 or y >= geometry.board_height:
        return True

    if y >= geometry.cutoff_row:
        history_y = y - geometry.cutoff_row
        if history_y < len(history):
            return bool(history[history_y, x])
        return False

    return bool(grid[y, x])


def copy_section(grid: np.ndarray, start_row: int, end_row: int) -> np.ndarray:
    """
    Deep-copy rows [start_row, end_row) for archival.

    The range is clipped to the grid, so an empty or inverted range yields
    a zero-row array of the right width.
    """
    start = max(0, start_row)
    end = min(grid.shape[0], end_row)
    if end <= start:
        return np.zeros((0, grid.shape[1]), dtype=grid.dtype)
    return grid[start:end].copy()


def is_row_complete(grid: np.ndarray, y: int,
                    geometry: BoardGeometry = DEFAULT_GEOMETRY) -> bool:
    """True when every tower-zone cell in row y is filled."""
    return bool(grid[y, geometry.tower_start:geometry.tower_end].all())


def build_foundation(grid: np.ndarray,
                     geometry: BoardGeometry = DEFAULT_GEOMETRY) -> np.ndarray:
    """Fill the tower zone of the foundation row in place and return the grid."""
    grid[geometry.foundation_row, geometry.tower_start:geometry.tower_end] = 1
    return grid


def grid_from_rows(rows: list[str],
                   geometry: BoardGeometry = DEFAULT_GEOMETRY) -> np.ndarray:
    """
    Build an active grid from a tower-zone picture anchored at the cutoff.

    Each string is one row of the tower zone, '#' for filled and any other
    character for empty. The last string lands on the foundation row, the
    one before it just above, and so on. Useful for scenarios and tests.

    Raises:
        ValueError: If a row is wider than the tower zone or there are more
                    rows than the active section holds.
    """
    if len(rows) > geometry.cutoff_row:
        raise ValueError(
            f"{len(rows)} rows do not fit in an active section of {geometry.cutoff_row} rows."
        )
    grid = create_empty(geometry.board_height, geometry.board_width)
    first = geometry.cutoff_row - len(rows)
    for offset, line in enumerate(rows):
        if len(line) > geometry.tower_width:
            raise ValueError(
                f"Row '{line}' is wider than the tower zone ({geometry.tower_width})."
            )
        for col, char in enumerate(line):
            if char == "#":
                grid[first + offset, geometry.tower_start + col] = 1
    return grid


# ---------------------------------------------------------------------------
# Owner of a tower's arrays
# ---------------------------------------------------------------------------

class TowerGrid:
    """
    Exclusive owner of one tower's active grid and history archive.

    Readers get read-only views via get_grid() / get_history(); the only
    mutation paths are place_cells, apply_collapse and apply_lock. No other
    object keeps a long-lived reference to the underlying arrays.
    """

    def __init__(self, geometry: BoardGeometry = DEFAULT_GEOMETRY,
                 grid: np.ndarray | None = None,
                 history: np.ndarray | None = None,
                 with_foundation: bool = True):
        self.geometry = geometry

        if grid is None:
            grid = create_empty(geometry.board_height, geometry.board_width)
            if with_foundation:
                build_foundation(grid, geometry)
        else:
            grid = np.array(grid, dtype=np.int8)
            _check_shape(grid, geometry)

        if history is None:
            history = np.zeros((0, geometry.board_width), dtype=np.int8)
        else:
            history = np.array(history, dtype=np.int8).reshape(-1, geometry.board_width)
            history = history[:geometry.history_rows]

        self._grid = grid
        self._history = history

    # --- read access -------------------------------------------------------

    def get_grid(self) -> np.ndarray:
        view = self._grid.view()
        view.flags.writeable = False
        return view

    def get_history(self) -> np.ndarray:
        view = self._history.view()
        view.flags.writeable = False
        return view

    def is_occupied(self, x: int, y: int) -> bool:
        return is_occupied(self._grid, self._history, x, y, self.geometry)

    def top_row(self) -> int:
        return find_topmost_occupied_row(self._grid, self.geometry)

    # --- mutations ---------------------------------------------------------

    def place_cells(self, cells: list[tuple[int, int]]) -> int:
        """
        Mark cells as filled, routing rows past the cutoff into history.

        Cells outside the board are ignored. History rows that do not exist
        yet are created as empty rows before being written.

        Returns:
            Number of cells written.
        """
        g = self.geometry
        written = 0
        for x, y in cells:
            if not (0 <= x < g.board_width and 0 <= y < g.board_height):
                continue
            if y >= g.cutoff_row:
                history_y = y - g.cutoff_row
                if history_y >= len(self._history):
                    padding = np.zeros((history_y + 1 - len(self._history), g.board_width),
                                       dtype=np.int8)
                    self._history = np.vstack([self._history, padding])
                self._history[history_y, x] = 1
            else:
                self._grid[y, x] = 1
            written += 1
        return written

    def apply_collapse(self, new_grid: np.ndarray) -> None:
        """Replace the active grid after a collapse or compaction."""
        new_grid = np.array(new_grid, dtype=np.int8)
        _check_shape(new_grid, self.geometry)
        self._grid = new_grid

    def apply_lock(self, new_grid: np.ndarray, new_history: np.ndarray) -> None:
        """
        Swap in the grid and history produced by a lock, both at once.

        Both arrays are validated before either is assigned, so a rejected
        lock leaves the tower untouched.

        Raises:
            ValueError: On shape mismatch or an over-capacity archive.
        """
        new_grid = np.array(new_grid, dtype=np.int8)
        new_history = np.array(new_history, dtype=np.int8)
        _check_shape(new_grid, self.geometry)
        if new_history.ndim != 2 or new_history.shape[1] != self.geometry.board_width:
            raise ValueError(
                f"History rows must be {self.geometry.board_width} wide, got shape {new_history.shape}."
            )
        if len(new_history) > self.geometry.history_rows:
            raise ValueError(
                f"History holds at most {self.geometry.history_rows} rows, got {len(new_history)}."
            )
        self._grid = new_grid
        self._history = new_history
        logger.debug("Lock applied: history now %d rows", len(new_history))


def _check_shape(grid: np.ndarray, geometry: BoardGeometry) -> None:
    """
    Raises:
        ValueError: If grid does not match the geometry's active-grid shape.
    """
    expected = (geometry.board_height, geometry.board_width)
    if grid.shape != expected:
        raise ValueError(f"Grid shape {grid.shape} does not match geometry {expected}.")
