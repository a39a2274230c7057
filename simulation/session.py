"""
simulation/session.py
=====================
Event-driven wrapper around the stability engine for one player's tower.

A TowerSession owns a TowerState and reacts to four kinds of event:

    place_piece(piece)       a validated piece came to rest
    receive_attack(strength) an opponent pushed external instability
    request_lock(force)      the player (or auto-lock) locked the section
    advance(seconds)         time passed (collapse window, auto-lock ticks)

Every event that changes the grid triggers a full stability recompute.
After a placement or attack the instability is checked against the
collapse thresholds, which drives the phase machine:

    stable ──height──▶ warned ──countdown──▶ (forced lock) ──▶ stable
    stable/warned ──instability──▶ collapsing ──window──▶ [compacting] ──▶ stable

Only one collapse runs at a time. While it is in flight the falling piece
is cleared, placements and locks are rejected, and the grid is mutated
only when the removal window has elapsed.

Side effects (score display, tweens, network sends, piece spawning) are
pushed through an EffectsSink; the session never calls a renderer.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from core.config import (
    BoardGeometry, StabilityConfig, SessionConfig,
    DEFAULT_GEOMETRY, DEFAULT_CONFIG, DEFAULT_SESSION,
)
from core.models import TowerState, PlacedPiece, StabilityReport, CollapseEvent, LockResult
from structure.grid import TowerGrid, NO_ROW, find_topmost_block_row
from stability.aggregator import compute_stability
from solver.collapse import (
    FULL, plan_collapse, rows_to_collapse, collapse_rows, remove_rows,
    compact_columns, score_penalty, instability_reduction,
)
from solver.lock import lock_section, add_charge, placement_charge

logger = logging.getLogger(__name__)

PHASE_STABLE = "stable"
PHASE_WARNED = "warned"
PHASE_COLLAPSING = "collapsing"
PHASE_COMPACTING = "compacting"

ATTACK_MESSAGE = "incomingAttack"


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

class EffectsSink:
    """
    Receiver for everything the session wants the outside world to see.

    The base class ignores every call; renderers, network adapters and
    tests subclass it and override what they need.
    """

    def on_stability(self, report: StabilityReport) -> None:
        pass

    def on_phase(self, phase: str) -> None:
        pass

    def on_score(self, score: int) -> None:
        pass

    def on_collapse_started(self, kind: str, rows: list[int]) -> None:
        pass

    def on_lock(self, result: LockResult) -> None:
        pass

    def on_countdown(self, remaining: int) -> None:
        pass

    def request_spawn(self) -> None:
        pass

    def send(self, payload: dict) -> None:
        pass


class RecordingSink(EffectsSink):
    """EffectsSink that keeps every call as an (event, data) tuple."""

    def __init__(self):
        self.events: list[tuple[str, object]] = []
        self.sent: list[dict] = []

    def on_stability(self, report):
        self.events.append(("stability", report.stability))

    def on_phase(self, phase):
        self.events.append(("phase", phase))

    def on_score(self, score):
        self.events.append(("score", score))

    def on_collapse_started(self, kind, rows):
        self.events.append(("collapse", kind))

    def on_lock(self, result):
        self.events.append(("lock", result.forced))

    def on_countdown(self, remaining):
        self.events.append(("countdown", remaining))

    def request_spawn(self):
        self.events.append(("spawn", None))

    def send(self, payload):
        self.sent.append(payload)
        self.events.append(("send", payload["type"]))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def clear(self) -> None:
        self.events.clear()
        self.sent.clear()


@dataclass
class _PendingCollapse:
    kind: str
    rows: list[int]
    instability_before: float
    penalty: int
    remaining: float
    on_complete: Optional[Callable[[Optional[CollapseEvent]], None]] = None


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class TowerSession:
    """
    One tower, its stability bookkeeping and its collapse / lock state machine.

    Args:
        geometry: Board geometry.
        config: Stability tuning.
        session: Gameplay rules.
        sink: Receiver for side effects; a silent EffectsSink by default.
        tower: Pre-built TowerGrid; a fresh one with a foundation by default.
    """

    def __init__(
        self,
        geometry: BoardGeometry = DEFAULT_GEOMETRY,
        config: StabilityConfig = DEFAULT_CONFIG,
        session: SessionConfig = DEFAULT_SESSION,
        sink: EffectsSink | None = None,
        tower: TowerGrid | None = None,
    ):
        self.geometry = geometry
        self.config = config
        self.rules = session
        self.sink = sink if sink is not None else EffectsSink()
        self.state = TowerState(tower=tower if tower is not None else TowerGrid(geometry))

        self.phase = PHASE_STABLE
        self.is_collapsing = False
        self.piece_active = True
        self.report: StabilityReport | None = None
        self.collapses: list[CollapseEvent] = []
        self.locks: list[LockResult] = []

        self._pending: _PendingCollapse | None = None
        self._countdown: int | None = None
        self._tick_clock = 0.0

        self.recompute()

    # --- read-only accessors for renderers ---------------------------------

    def get_cell_stability(self, x: int, y: int) -> float:
        return self.report.get_cell_stability(x, y)

    def get_row_stability(self, y: int) -> float | None:
        return self.report.get_row_stability(y)

    def get_void_clusters(self):
        return list(self.report.void_clusters)

    @property
    def instability(self) -> float:
        return self.state.instability

    @property
    def countdown(self) -> int | None:
        return self._countdown

    # --- stability ---------------------------------------------------------

    def recompute(self) -> StabilityReport:
        """Recompute stability from the current grid and update instability."""
        state = self.state
        historical = state.historical_stability if state.locked_sections > 0 else None
        report = compute_stability(
            state.tower.get_grid(),
            self.geometry,
            self.config,
            historical_stability=historical,
            external_instability=state.external_instability,
        )
        state.raw_section_stability = report.raw_section_stability
        state.instability = self.rules.max_instability - report.stability
        self.report = report
        self.sink.on_stability(report)
        return report

    # --- events ------------------------------------------------------------

    def place_piece(self, piece: PlacedPiece) -> bool:
        """
        Commit a validated piece to the grid and react to the new stability.

        A piece that touches no tower-zone cell and rests on the gutter
        floor is discarded without changing the grid.

        Returns:
            True when the piece was written to the grid.
        """
        if self.is_collapsing:
            logger.warning("Placement rejected: collapse in progress")
            return False

        self.piece_active = False

        if self._lands_in_gutter(piece):
            logger.debug("Piece discarded on gutter floor")
            self._spawn()
            return False

        self.state.tower.place_cells(piece.cells)
        self.state.placements_in_section += 1
        self.state.score += self.rules.points_per_placement
        self.sink.on_score(self.state.score)
        add_charge(self.state, placement_charge(piece.kind, self.rules), self.rules)

        self.recompute()
        self.check_collapse()
        if not self.is_collapsing:
            self.check_tower_height()
            self._spawn()
        return True

    def receive_attack(self, strength: float) -> StabilityReport:
        """
        Add external instability and re-evaluate the tower.

        Raises:
            ValueError: If strength is not positive.
        """
        if strength <= 0:
            raise ValueError(f"Attack strength must be positive, got {strength}.")
        self.state.external_instability += strength
        logger.info("Attack received: +%.1f (external now %.1f)",
                    strength, self.state.external_instability)
        report = self.recompute()
        self.check_collapse()
        return report

    def handle_message(self, message: dict) -> StabilityReport:
        """
        Dispatch an inbound network message.

        Raises:
            ValueError: If the message type is not understood.
        """
        kind = message.get("type")
        if kind == ATTACK_MESSAGE:
            strength = message.get("strength") or self.rules.default_attack_strength
            return self.receive_attack(float(strength))
        raise ValueError(f"Unknown message type: '{kind}'. Expected '{ATTACK_MESSAGE}'.")

    def request_lock(self, force: bool = False) -> LockResult | None:
        """
        Lock the current section into history.

        Rejected while a collapse is in flight. Without ``force`` the lock
        also needs a full charge.
        """
        if self.is_collapsing:
            logger.warning("Lock rejected: collapse in progress")
            return None

        result = lock_section(self.state, self.config, force=force)
        if result is None:
            return None

        self.cancel_auto_lock()
        self.locks.append(result)
        self.sink.on_lock(result)
        self.recompute()
        return result

    def advance(self, seconds: float) -> None:
        """Let time pass: finish a due collapse and tick the auto-lock countdown."""
        if self._pending is not None:
            self._pending.remaining -= seconds
            if self._pending.remaining <= 0:
                self._finish_collapse()

        if self._countdown is not None:
            self._tick_clock += seconds
            while self._countdown is not None and self._tick_clock >= 1.0:
                self._tick_clock -= 1.0
                self._tick_countdown()

    # --- collapse ----------------------------------------------------------

    def check_collapse(self) -> bool:
        """Start a collapse if the current instability calls for one."""
        if self.is_collapsing:
            return False
        kind = plan_collapse(self.state.instability, self.rules)
        if kind is None:
            return False
        return self.trigger_collapse(kind)

    def trigger_collapse(
        self,
        kind: str,
        on_complete: Callable[[Optional[CollapseEvent]], None] | None = None,
    ) -> bool:
        """
        Begin a collapse of the given kind.

        The falling piece is cleared and the countdown cancelled at once;
        rows are removed when the collapse window elapses (see advance).
        With nothing to remove the call resolves ``on_complete(None)``
        immediately and leaves the session untouched.

        Returns:
            True when a collapse is now in flight.
        """
        if self.is_collapsing:
            logger.warning("Collapse already in progress; %s collapse ignored", kind)
            return False

        top_row = find_topmost_block_row(self.state.tower.get_grid(), self.geometry)
        count = rows_to_collapse(kind, self.state.instability, self.rules)
        rows = collapse_rows(top_row, count, self.geometry)

        if not rows:
            logger.debug("%s collapse has nothing above the foundation", kind.capitalize())
            if on_complete is not None:
                on_complete(None)
            return False

        self.is_collapsing = True
        self.piece_active = False
        self.cancel_auto_lock()

        penalty = score_penalty(len(rows), self.state.score, self.rules)
        self.state.score -= penalty
        self.sink.on_score(self.state.score)

        window = self.rules.full_window if kind == FULL else self.rules.partial_window
        self._pending = _PendingCollapse(
            kind=kind,
            rows=rows,
            instability_before=self.state.instability,
            penalty=penalty,
            remaining=window,
            on_complete=on_complete,
        )
        self._set_phase(PHASE_COLLAPSING)
        self.sink.on_collapse_started(kind, rows)
        logger.info("%s collapse started: rows %s, instability %.1f, penalty %d",
                    kind.capitalize(), rows, self.state.instability, penalty)
        return True

    def _finish_collapse(self) -> CollapseEvent:
        pending = self._pending
        tower = self.state.tower

        tower.apply_collapse(remove_rows(tower.get_grid(), pending.rows, self.geometry))
        if pending.kind == FULL:
            self._set_phase(PHASE_COMPACTING)
            tower.apply_collapse(compact_columns(tower.get_grid(), self.geometry))

        self.recompute()
        reduction = instability_reduction(pending.kind, self.rules)
        self.state.instability = max(0.0, self.state.instability - reduction)

        event = CollapseEvent(
            kind=pending.kind,
            rows=pending.rows,
            instability_before=pending.instability_before,
            new_instability=self.state.instability,
            score_penalty=pending.penalty,
        )
        self._pending = None
        self.is_collapsing = False
        self.collapses.append(event)
        self.sink.send(event.to_payload())
        self._set_phase(PHASE_STABLE)
        logger.info("Collapse resolved: %d rows, instability %.1f -> %.1f",
                    event.rows_collapsed, event.instability_before, event.new_instability)

        if pending.on_complete is not None:
            pending.on_complete(event)
        if not self.piece_active:
            self._spawn()
        return event

    # --- auto-lock ---------------------------------------------------------

    def check_tower_height(self) -> None:
        """
        Start, keep or cancel the auto-lock countdown from the tower height.

        A tower within emergency_threshold rows of the buffer zone is
        locked immediately, bypassing the charge.
        """
        if not self.rules.auto_lock_enabled:
            return
        top_row = self.state.tower.top_row()
        if top_row == NO_ROW:
            return

        rows_from_buffer = max(0, top_row - self.geometry.buffer_rows)
        if rows_from_buffer <= self.rules.emergency_threshold:
            logger.info("Emergency lock: tower %d rows from buffer", rows_from_buffer)
            self.cancel_auto_lock()
            self.request_lock(force=True)
            return

        if top_row <= self.rules.auto_lock_threshold and self._countdown is None:
            self._countdown = self.rules.auto_lock_countdown
            self._tick_clock = 0.0
            self._set_phase(PHASE_WARNED)
            self.sink.on_countdown(self._countdown)
        elif top_row > self.rules.auto_lock_threshold and self._countdown is not None:
            self.cancel_auto_lock()

    def cancel_auto_lock(self) -> None:
        if self._countdown is None:
            return
        self._countdown = None
        self._tick_clock = 0.0
        if self.phase == PHASE_WARNED:
            self._set_phase(PHASE_STABLE)

    def _tick_countdown(self) -> None:
        self._countdown -= 1
        if self._countdown > 0:
            self.sink.on_countdown(self._countdown)
            return
        self._countdown = None
        self._set_phase(PHASE_STABLE)
        self.request_lock(force=True)

    # --- helpers -----------------------------------------------------------

    def _lands_in_gutter(self, piece: PlacedPiece) -> bool:
        g = self.geometry
        in_tower = any(g.in_tower(x) for x, _ in piece.cells)
        on_floor = any(not g.in_tower(x) and y == g.board_height - 1 for x, y in piece.cells)
        return not in_tower and on_floor

    def _set_phase(self, phase: str) -> None:
        if phase != self.phase:
            self.phase = phase
            self.sink.on_phase(phase)

    def _spawn(self) -> None:
        self.piece_active = True
        self.sink.request_spawn()
