"""
solver/support.py
=================
Per-cell support penalties applied on top of the void-seeded stability matrix.

Three passes, always in this order, each composing with the previous one:

  1. Overhang  — blocks with nothing directly beneath lose stability
                 (less if a diagonal block below props them up); filled
                 left/right neighbours and tower-zone edges add a bonus.
                 The foundation row is reset to 1.0 afterwards.
  2. Thin rows — rows narrower than min_stable_width lose stability in
                 proportion to (min_width - width) / min_width.
  3. Balance   — rows whose centre of mass strays more than the tolerance
                 from the tower midpoint are penalised, outlying blocks more.

All passes mutate ``cell_stability`` in place and only touch filled
tower-zone cells in the active section. Values never drop below
config.cell_floor nor rise above config.cell_ceiling.
"""

import numpy as np

from core.config import BoardGeometry, StabilityConfig, DEFAULT_GEOMETRY, DEFAULT_CONFIG


def apply_support_penalties(
    grid: np.ndarray,
    cell_stability: np.ndarray,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> np.ndarray:
    """Run the overhang, thin-width and balance passes in order; returns the matrix."""
    apply_overhang_penalties(grid, cell_stability, geometry, config)
    apply_thin_width_penalties(grid, cell_stability, geometry, config)
    apply_balance_penalties(grid, cell_stability, geometry, config)
    return cell_stability


def apply_overhang_penalties(
    grid: np.ndarray,
    cell_stability: np.ndarray,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> None:
    """
    Penalise unsupported blocks and reward lateral support.

    For each filled cell above the foundation row:
        no block below, diagonal block below  -> - overhang * diagonal_multiplier
        no block below, no diagonal support   -> - overhang * unsupported_multiplier
        each filled left/right neighbour      -> + neighbor_bonus
        on a tower-zone edge column           -> + neighbor_bonus * edge_bonus_factor

    Then every filled foundation-row cell is forced to cell_ceiling.
    """
    start, end = geometry.tower_start, geometry.tower_end
    floor, ceiling = config.cell_floor, config.cell_ceiling
    foundation = geometry.foundation_row

    for y in range(0, foundation):
        for x in range(start, end):
            if not grid[y, x]:
                continue

            if not grid[y + 1, x]:
                left_diagonal = x > start and grid[y + 1, x - 1]
                right_diagonal = x < end - 1 and grid[y + 1, x + 1]
                if left_diagonal or right_diagonal:
                    penalty = config.overhang_penalty * config.diagonal_multiplier
                else:
                    penalty = config.overhang_penalty * config.unsupported_multiplier
                cell_stability[y, x] = max(floor, cell_stability[y, x] - penalty)

            if x > start and grid[y, x - 1]:
                cell_stability[y, x] = min(ceiling, cell_stability[y, x] + config.neighbor_bonus)
            if x < end - 1 and grid[y, x + 1]:
                cell_stability[y, x] = min(ceiling, cell_stability[y, x] + config.neighbor_bonus)

            if x == start or x == end - 1:
                edge_bonus = config.neighbor_bonus * config.edge_bonus_factor
                cell_stability[y, x] = min(ceiling, cell_stability[y, x] + edge_bonus)

    filled = grid[foundation, start:end].astype(bool)
    cell_stability[foundation, start:end][filled] = ceiling


def thin_width_penalty(width: int, config: StabilityConfig = DEFAULT_CONFIG) -> float:
    """
    Penalty applied to every block of a row holding ``width`` filled cells.

    Zero for empty rows and rows at least min_stable_width wide.
    """
    if width <= 0 or width >= config.min_stable_width:
        return 0.0
    factor = (config.min_stable_width - width) / config.min_stable_width
    return factor * config.thin_tower_penalty * config.thin_multiplier


def apply_thin_width_penalties(
    grid: np.ndarray,
    cell_stability: np.ndarray,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> None:
    """Penalise every block of each active row narrower than min_stable_width."""
    start, end = geometry.tower_start, geometry.tower_end

    for y in range(0, geometry.cutoff_row):
        filled = grid[y, start:end].astype(bool)
        penalty = thin_width_penalty(int(filled.sum()), config)
        if penalty == 0.0:
            continue
        row = cell_stability[y, start:end]
        row[filled] = np.maximum(config.cell_floor, row[filled] - penalty)


def row_imbalance(grid: np.ndarray, y: int,
                  geometry: BoardGeometry = DEFAULT_GEOMETRY) -> float:
    """
    Normalised distance of row y's centre of mass from the tower midpoint.

    0.0 is perfectly centred, 1.0 is half the tower width away. Rows with
    fewer than two blocks have no balance to speak of and return 0.0.
    """
    columns = np.flatnonzero(grid[y, geometry.tower_start:geometry.tower_end]) + geometry.tower_start
    if columns.size <= 1:
        return 0.0
    center_of_mass = columns.mean()
    half_width = geometry.tower_width / 2.0
    return float(abs(center_of_mass - geometry.tower_midpoint) / half_width)


def apply_balance_penalties(
    grid: np.ndarray,
    cell_stability: np.ndarray,
    geometry: BoardGeometry = DEFAULT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
) -> None:
    """
    Penalise rows whose centre of mass sits off the tower midpoint.

    Only imbalance beyond config.balance_tolerance counts:

        base  = (imbalance - tolerance) * balance_penalty
        block = base * (0.5 + 0.5 * |x - midpoint| / half_width)
    """
    start, end = geometry.tower_start, geometry.tower_end
    midpoint = geometry.tower_midpoint
    half_width = geometry.tower_width / 2.0

    for y in range(0, geometry.cutoff_row):
        imbalance = row_imbalance(grid, y, geometry)
        if imbalance <= config.balance_tolerance:
            continue

        base = (imbalance - config.balance_tolerance) * config.balance_penalty
        for x in range(start, end):
            if not grid[y, x]:
                continue
            distance = abs(x - midpoint) / half_width
            block_penalty = base * (0.5 + distance * 0.5)
            cell_stability[y, x] = max(config.cell_floor, cell_stability[y, x] - block_penalty)
