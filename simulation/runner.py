"""
simulation/runner.py
====================
Replays a scripted TowerPlan through a TowerSession.

Each step:
  1. Hard-drop the next piece against the live board → PlacedPiece
  2. Commit it through the session (recompute, collapse check, auto-lock)
  3. Let step_seconds pass, and keep advancing until any collapse resolves
  4. Deliver a scheduled attack, then settle any collapse it triggered
  5. Request a scheduled lock
  6. Snapshot the stability → StepRecord

Inputs:  TowerPlan (from any plan in structure/towers/)
Outputs: SimulationResult (consumed by visualization/)
"""

import logging

import numpy as np

from core.config import (
    BoardGeometry, StabilityConfig, SessionConfig,
    COMPACT_GEOMETRY, DEFAULT_CONFIG, DEFAULT_SESSION, TETROMINO_SHAPES,
)
from core.models import TowerPlan, PieceDrop, PlacedPiece, SimulationResult, StepRecord
from structure.grid import TowerGrid
from simulation.session import TowerSession, RecordingSink, ATTACK_MESSAGE

logger = logging.getLogger(__name__)

# Sink events worth keeping in a StepRecord
RECORDED_EVENTS = ("collapse", "lock", "countdown", "send")


def run(
    plan: TowerPlan,
    geometry: BoardGeometry = COMPACT_GEOMETRY,
    config: StabilityConfig = DEFAULT_CONFIG,
    session_config: SessionConfig = DEFAULT_SESSION,
    step_seconds: float = 1.0,
    max_steps: int | None = None,
) -> SimulationResult:
    """
    Execute a scripted tower plan from an empty foundation.

    Args:
        plan: Drops, lock requests and attacks to replay.
        geometry: Board geometry.
        config: Stability tuning.
        session_config: Collapse, auto-lock and charge rules.
        step_seconds: Time that passes after every drop.
        max_steps: Stop after this many drops; all of them when None.

    Returns:
        SimulationResult with one StepRecord per drop.
    """
    sink = RecordingSink()
    session = TowerSession(geometry, config, session_config, sink)
    drops = plan.drops if max_steps is None else plan.drops[:max_steps]
    steps: list[StepRecord] = []

    logger.info("Running plan '%s' (%d drops)", plan.name, len(drops))

    for step, drop in enumerate(drops):
        sink.clear()
        notes: list[str] = []

        # --- Step 1-3: drop, commit and let the board settle ---
        piece = land_piece(session.state.tower, drop, geometry)
        if piece is None:
            notes.append("blocked")
            logger.warning("Step %d: %s at column %d is blocked at spawn",
                           step, drop.kind, drop.column)
        elif not session.place_piece(piece):
            notes.append("discarded")
        _settle(session, step_seconds)

        # --- Step 4: incoming attack ---
        if step in plan.attacks:
            session.handle_message({"type": ATTACK_MESSAGE, "strength": plan.attacks[step]})
            _settle(session, step_seconds)

        # --- Step 5: lock request ---
        if step in plan.locks and session.request_lock() is None:
            notes.append("lock-refused")

        steps.append(_record(step, session, sink, notes))

    return SimulationResult(
        plan_name=plan.name,
        steps=steps,
        collapses=list(session.collapses),
        locks=list(session.locks),
        final_report=session.report,
        final_grid=np.array(session.state.tower.get_grid(), copy=True),
        final_history=np.array(session.state.tower.get_history(), copy=True),
    )


def land_piece(tower: TowerGrid, drop: PieceDrop,
               geometry: BoardGeometry = COMPACT_GEOMETRY) -> PlacedPiece | None:
    """
    Hard-drop a piece from the top of the board at the requested column.

    Args:
        tower: Board the piece falls onto.
        drop: Piece kind and tower-relative column.
        geometry: Board geometry.

    Returns:
        The resting PlacedPiece, or None when it collides at spawn.

    Raises:
        ValueError: If the piece kind is unknown.
    """
    if drop.kind not in TETROMINO_SHAPES:
        available = ", ".join(TETROMINO_SHAPES)
        raise ValueError(f"Unknown piece '{drop.kind}'. Available: {available}")

    shape = TETROMINO_SHAPES[drop.kind]
    x = geometry.tower_start + drop.column
    y = 0
    if _collides(tower, shape, x, y):
        return None
    while not _collides(tower, shape, x, y + 1):
        y += 1
    return PlacedPiece.from_shape(shape, x, y, drop.kind)


def _collides(tower: TowerGrid, shape: list[list[int]], x: int, y: int) -> bool:
    return any(
        tower.is_occupied(x + col, y + row)
        for row, line in enumerate(shape)
        for col, filled in enumerate(line)
        if filled
    )


def _settle(session: TowerSession, step_seconds: float) -> None:
    """Advance one step, then keep advancing until no collapse is in flight."""
    session.advance(step_seconds)
    while session.is_collapsing:
        session.advance(step_seconds)


def _record(step: int, session: TowerSession, sink: RecordingSink,
            notes: list[str]) -> StepRecord:
    report = session.report
    events = [f"{name}:{data}" for name, data in sink.events if name in RECORDED_EVENTS]
    return StepRecord(
        step=step,
        stability=report.stability,
        instability=session.instability,
        raw_section_stability=report.raw_section_stability,
        historical_stability=session.state.historical_stability,
        void_count=len(report.void_clusters),
        top_row=report.top_row,
        events=notes + events,
    )
