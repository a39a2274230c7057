"""
solver/voids.py
===============
Flood-fill void detection over the active section of the tower.

An empty cell is "open" when it can be reached from the empty cells of the
topmost occupied row by 4-directional moves through empty tower-zone cells.
Every other empty cell sitting under a filled cell seeds a void: its
connected empty component is grown, kept only if at least one member is
capped from above, and classified by how enclosed it is:

    enclosure_ratio = filled 8-neighbour positions / in-zone 8-neighbour positions

    > 0.8 critical | > 0.6 severe | > 0.4 moderate | otherwise minor

Void cells receive a negative stability; filled cells around the void lose
stability too, capping blocks most, side blocks less, blocks below least.

Traversal state is an index-addressed boolean bitmap covering only the
tower zone of the active section. History rows never join a cluster.
"""

from collections import deque

import numpy as np

from core.config import BoardGeometry, StabilityConfig, DEFAULT_GEOMETRY, DEFAULT_CONFIG
from core.models import (
    VoidCluster,
    SEVERITY_MINOR, SEVERITY_MODERATE, SEVERITY_SEVERE, SEVERITY_CRITICAL,
)

FOUR_NEIGHBORS = ((1, 0), (-1, 0), (0, 1), (0, -1))
EIGHT_NEIGHBORS = (
    (-1, -1), (0, -1), (1, -1),
    (-1, 0),           (1, 0),
    (-1, 1),  (0, 1),  (1, 1),
)


def detect_voids(
    grid: np.ndarray,
    top_row: int,
    cell_stability: np.ndarray,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> tuple[np.ndarray, list[VoidCluster]]:
    """
    Find enclosed voids and seed their effect into a cell-stability matrix.

    Args:
        grid: Active occupancy grid.
        top_row: Topmost occupied row (-1 for an empty tower).
        cell_stability: Initial per-cell stability; not modified.
        geometry: Board geometry.
        config: Stability tuning.

    Returns:
        (updated_cell_stability, void_clusters). The matrix is a new array.
    """
    stability = np.array(cell_stability, dtype=float, copy=True)
    if top_row < 0:
        return stability, []

    start, end = geometry.tower_start, geometry.tower_end
    cutoff = geometry.cutoff_row

    open_cells = find_open_cells(grid, top_row, geometry)
    visited = np.zeros_like(open_cells)
    clusters: list[VoidCluster] = []

    for y in range(top_row, cutoff):
        for x in range(start, end):
            local_x = x - start
            if grid[y, x] or visited[y, local_x] or open_cells[y, local_x]:
                continue
            if not (y > 0 and grid[y - 1, x]):
                continue

            cells = grow_void_cluster(grid, visited, x, y, geometry)
            if not cells or not _is_capped(grid, cells):
                continue

            cluster = analyze_void_cluster(grid, cells, len(clusters), geometry, config)
            clusters.append(cluster)

            value = void_cell_stability(cluster, config)
            for cx, cy in cells:
                stability[cy, cx] = value

    for cluster in clusters:
        propagate_void_effects(grid, stability, cluster, geometry, config)

    return stability, clusters


# ---------------------------------------------------------------------------
# Flood fills
# ---------------------------------------------------------------------------

def find_open_cells(grid: np.ndarray, top_row: int,
                    geometry: BoardGeometry = DEFAULT_GEOMETRY) -> np.ndarray:
    """
    Mark every empty tower-zone cell reachable from the top of the stack.

    Seeds are the empty tower-zone cells of top_row; the fill is
    4-directional and bounded to the tower zone above the cutoff.

    Returns:
        Boolean bitmap of shape (cutoff_row, tower_width); True = open.
    """
    start = geometry.tower_start
    cutoff = geometry.cutoff_row
    open_cells = np.zeros((cutoff, geometry.tower_width), dtype=bool)
    if top_row < 0 or top_row >= cutoff:
        return open_cells

    frontier: deque[tuple[int, int]] = deque()
    for x in range(start, geometry.tower_end):
        if not grid[top_row, x]:
            open_cells[top_row, x - start] = True
            frontier.append((x, top_row))

    while frontier:
        cx, cy = frontier.popleft()
        for dx, dy in FOUR_NEIGHBORS:
            nx, ny = cx + dx, cy + dy
            if not geometry.in_tower(nx) or ny < 0 or ny >= cutoff:
                continue
            if open_cells[ny, nx - start] or grid[ny, nx]:
                continue
            open_cells[ny, nx - start] = True
            frontier.append((nx, ny))

    return open_cells


def grow_void_cluster(grid: np.ndarray, visited: np.ndarray, start_x: int, start_y: int,
                      geometry: BoardGeometry = DEFAULT_GEOMETRY) -> list[tuple[int, int]]:
    """
    Collect the connected empty component containing (start_x, start_y).

    Marks members in ``visited`` (tower-zone bitmap) as it goes. Rows at or
    past the cutoff are never entered.

    Returns:
        Member cells as (x, y), in breadth-first order.
    """
    start = geometry.tower_start
    cutoff = geometry.cutoff_row
    if grid[start_y, start_x] or visited[start_y, start_x - start]:
        return []

    visited[start_y, start_x - start] = True
    cells = [(start_x, start_y)]
    frontier = deque(cells)

    while frontier:
        cx, cy = frontier.popleft()
        for dx, dy in FOUR_NEIGHBORS:
            nx, ny = cx + dx, cy + dy
            if not geometry.in_tower(nx) or ny < 0 or ny >= cutoff:
                continue
            if visited[ny, nx - start] or grid[ny, nx]:
                continue
            visited[ny, nx - start] = True
            cells.append((nx, ny))
            frontier.append((nx, ny))

    return cells


def _is_capped(grid: np.ndarray, cells: list[tuple[int, int]]) -> bool:
    """True when at least one member has a filled cell directly above it."""
    return any(y > 0 and grid[y - 1, x] for x, y in cells)


# ---------------------------------------------------------------------------
# Cluster analysis
# ---------------------------------------------------------------------------

def analyze_void_cluster(
    grid: np.ndarray,
    cells: list[tuple[int, int]],
    cluster_id: int = 0,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> VoidCluster:
    """
    Measure a void component: bounding box, depth, coverage and enclosure.

    Enclosure counts, for every member cell, each of its eight neighbours
    that lies inside the tower zone above the cutoff; the ratio is the
    filled fraction of all those positions. Neighbouring void cells count
    as open positions.

    Args:
        grid: Active occupancy grid.
        cells: Member cells as (x, y).
        cluster_id: Index to stamp on the record.
        geometry: Board geometry.
        config: Stability tuning (severity thresholds).

    Returns:
        A populated VoidCluster.
    """
    xs = [x for x, _ in cells]
    ys = [y for _, y in cells]
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)

    size = len(cells)
    depth = max_y - min_y + 1
    coverage = size / ((max_x - min_x + 1) * depth)

    surrounding = 0
    positions = 0
    for x, y in cells:
        for dx, dy in EIGHT_NEIGHBORS:
            nx, ny = x + dx, y + dy
            if not geometry.in_tower(nx) or ny < 0 or ny >= geometry.cutoff_row:
                continue
            positions += 1
            if grid[ny, nx]:
                surrounding += 1

    enclosure_ratio = surrounding / positions if positions else 0.0

    return VoidCluster(
        id=cluster_id,
        cells=list(cells),
        min_x=min_x, max_x=max_x,
        min_y=min_y, max_y=max_y,
        size=size,
        depth=depth,
        coverage=coverage,
        enclosure_ratio=enclosure_ratio,
        severity=classify_severity(enclosure_ratio, config),
    )


def classify_severity(enclosure_ratio: float,
                      config: StabilityConfig = DEFAULT_CONFIG) -> str:
    """Map an enclosure ratio onto a severity tier."""
    if enclosure_ratio > config.critical_enclosure:
        return SEVERITY_CRITICAL
    if enclosure_ratio > config.severe_enclosure:
        return SEVERITY_SEVERE
    if enclosure_ratio > config.moderate_enclosure:
        return SEVERITY_MODERATE
    return SEVERITY_MINOR


def void_cell_stability(cluster: VoidCluster,
                        config: StabilityConfig = DEFAULT_CONFIG) -> float:
    """
    Stability assigned to every cell of a void cluster.

    severity base - min(depth_cap, depth * depth_step)
                  - min(size_cap, size * size_step), floored at cell_floor.
    """
    base = {
        SEVERITY_CRITICAL: config.critical_void_base,
        SEVERITY_SEVERE: config.severe_void_base,
        SEVERITY_MODERATE: config.moderate_void_base,
        SEVERITY_MINOR: config.minor_void_base,
    }[cluster.severity]
    depth_penalty = min(config.void_depth_cap, cluster.depth * config.void_depth_step)
    size_penalty = min(config.void_size_cap, cluster.size * config.void_size_step)
    return max(config.cell_floor, base - depth_penalty - size_penalty)


def void_effect_strength(cluster: VoidCluster,
                         config: StabilityConfig = DEFAULT_CONFIG) -> float:
    """Base penalty a cluster pushes onto its neighbouring blocks."""
    base = {
        SEVERITY_CRITICAL: config.critical_effect,
        SEVERITY_SEVERE: config.severe_effect,
        SEVERITY_MODERATE: config.moderate_effect,
        SEVERITY_MINOR: config.minor_effect,
    }[cluster.severity]
    return min(config.effect_cap, base + cluster.size * config.effect_size_step)


def propagate_void_effects(
    grid: np.ndarray,
    cell_stability: np.ndarray,
    cluster: VoidCluster,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> None:
    """
    Penalise filled cells adjacent (8-directional) to a void cluster, in place.

    Each affected block is penalised once per cluster, scaled by where it
    sits relative to the cluster's bounding box: above it (capping blocks)
    by capping_multiplier, below it by below_multiplier, beside it by
    side_multiplier.
    """
    strength = void_effect_strength(cluster, config)

    affected: set[tuple[int, int]] = set()
    for x, y in cluster.cells:
        for dx, dy in EIGHT_NEIGHBORS:
            nx, ny = x + dx, y + dy
            if not geometry.in_tower(nx) or ny < 0 or ny >= geometry.cutoff_row:
                continue
            if grid[ny, nx]:
                affected.add((nx, ny))

    for x, y in sorted(affected):
        if y < cluster.min_y:
            penalty = strength * config.capping_multiplier
        elif y > cluster.max_y:
            penalty = strength * config.below_multiplier
        else:
            penalty = strength * config.side_multiplier
        cell_stability[y, x] = max(config.cell_floor, cell_stability[y, x] - penalty)
