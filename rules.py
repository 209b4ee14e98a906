"""
TurnRuleEngine — shot lifecycle and carrom turn rules.

The whole match lives in one MatchState value that every engine call takes
and hands back. A shot goes Aiming → Shooting → Settling; once the board is
at rest the pocketed counts are diffed against the snapshot taken when the
shot began, exactly once, and the turn either continues, advances or ends
the match.

Outcome order:
  1. striker pocketed  → foul, turn advances no matter what else dropped
  2. own colour gained → turn continues
  3. queen pocketed    → owes a cover, turn continues
  4. cover owed        → own colour this shot covers it, otherwise the queen
                         goes back to the centre when the turn advances
  5. anything else     → turn advances
A colour reaching COINS_PER_COLOR ends the match before the turn decision.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from board import COINS_PER_COLOR, PieceStore
from physics import Piece, PhysicsEngine, Role

logger = logging.getLogger(__name__)

MIN_SHOT_SPEED: float = 0.1
DEFAULT_PLACEMENT: float = 0.5


class Phase(str, enum.Enum):
    AIMING = "aiming"
    SHOOTING = "shooting"
    SETTLING = "settling"
    GAME_OVER = "game_over"


class Verdict(str, enum.Enum):
    CONTINUE_TURN = "continue_turn"
    ADVANCE_TURN = "advance_turn"
    GAME_OVER = "game_over"


def player_color(slot: int, player_count: int = 2) -> Role:
    """Slot → colour. 2 players: 0 white, 1 black. 4 players: teams 0+2 / 1+3."""
    return Role.WHITE if slot % 2 == 0 else Role.BLACK


def winner_label(color: Role, player_count: int = 2) -> str:
    name = color.value.capitalize()
    return f"Team {name}" if player_count == 4 else name


def _empty_counts() -> dict:
    return {Role.WHITE: 0, Role.BLACK: 0, Role.QUEEN: 0}


@dataclass
class ShotOutcome:
    verdict: Verdict
    shooter: int
    color: Role
    pocketed: dict = field(default_factory=_empty_counts)
    foul: bool = False
    queen_pocketed: bool = False
    queen_covered: bool = False
    queen_respawned: bool = False
    winner: Optional[Role] = None

    @property
    def continue_turn(self) -> bool:
        return self.verdict == Verdict.CONTINUE_TURN


@dataclass
class MatchState:
    pieces: List[Piece]
    player_count: int = 2
    active_player: int = 0
    phase: Phase = Phase.AIMING
    placement: float = DEFAULT_PLACEMENT
    scores: dict = field(default_factory=_empty_counts)
    queen_pending: bool = False
    queen_owner: Optional[Role] = None
    shot_start_snapshot: Optional[dict] = None
    winner: Optional[Role] = None
    shots_taken: int = 0
    last_outcome: Optional[ShotOutcome] = None

    @property
    def active_color(self) -> Role:
        return player_color(self.active_player, self.player_count)

    @property
    def in_flight(self) -> bool:
        return self.phase in (Phase.SHOOTING, Phase.SETTLING)


class TurnRuleEngine:
    """Drives MatchState through shots using a PhysicsEngine and PieceStore."""

    def __init__(self, player_count: int = 2, physics: Optional[PhysicsEngine] = None):
        self.physics = physics or PhysicsEngine()
        self.store = PieceStore(self.physics.board_size, player_count)

    # ──────────────────────────────────────────────────────────────────────────
    # Match lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def new_match(self) -> MatchState:
        """Fresh layout, scores and queen state; player 0 to aim."""
        pieces = self.store.layout()
        state = MatchState(pieces=pieces, player_count=self.store.player_count)
        self.store.spawn_striker(state.pieces, state.active_player, state.placement)
        logger.info("[RULES] new match: %d players, %d pieces",
                    state.player_count, len(state.pieces))
        return state

    # ──────────────────────────────────────────────────────────────────────────
    # Aiming inputs
    # ──────────────────────────────────────────────────────────────────────────

    def set_placement(self, state: MatchState, placement: float) -> bool:
        """Slide the striker along the active baseline. Ignored unless aiming."""
        if state.phase != Phase.AIMING:
            return False
        try:
            placement = float(placement)
        except (TypeError, ValueError):
            return False
        if not np.isfinite(placement):
            placement = DEFAULT_PLACEMENT
        state.placement = min(1.0, max(0.0, placement))

        striker = self.store.find_striker(state.pieces)
        if striker is None:
            striker = self.store.spawn_striker(state.pieces, state.active_player,
                                               state.placement)
        striker.position = self.store.placement_point(state.active_player, state.placement)
        striker.stop()
        return True

    def begin_shot(self, state: MatchState, velocity) -> bool:
        """Aiming → Shooting → Settling.

        Snapshots the pocketed counts and launches the striker. Returns False
        (and changes nothing) when not aiming or the shot is too weak.
        """
        if state.phase != Phase.AIMING:
            logger.debug("[RULES] shot ignored in phase %s", state.phase.value)
            return False

        try:
            v = np.asarray(velocity, dtype=float).reshape(-1)
        except (TypeError, ValueError):
            return False
        if v.shape != (2,) or not np.all(np.isfinite(v)):
            return False
        if float(np.linalg.norm(v)) < MIN_SHOT_SPEED:
            return False

        striker = self.store.find_striker(state.pieces)
        if striker is None:
            striker = self.store.spawn_striker(state.pieces, state.active_player,
                                               state.placement)

        state.shot_start_snapshot = dict(self.store.pocketed_counts(state.pieces))
        state.phase = Phase.SHOOTING
        striker.velocity = v.copy()
        state.shots_taken += 1
        state.phase = Phase.SETTLING
        logger.debug("[RULES] player %d shoots v=(%.2f, %.2f)",
                     state.active_player, v[0], v[1])
        return True

    # ──────────────────────────────────────────────────────────────────────────
    # Settling
    # ──────────────────────────────────────────────────────────────────────────

    def tick(self, state: MatchState) -> Tuple[MatchState, bool]:
        """One simulation tick. Returns (state, still_settling).

        The shot outcome is evaluated on the first tick where nothing moves.
        """
        if state.phase != Phase.SETTLING:
            return state, False
        if self.physics.update(state.pieces):
            return state, True
        state.last_outcome = self.resolve_shot(state)
        return state, False

    def resolve_shot(self, state: MatchState) -> ShotOutcome:
        """Diff the settled board against the shot-start snapshot and apply rules."""
        counts = self.store.pocketed_counts(state.pieces)
        before = state.shot_start_snapshot or counts
        delta = {role: counts[role] - before.get(role, 0) for role in counts}

        shooter = state.active_player
        color = state.active_color
        own_gain = delta[color] > 0
        queen_new = delta[Role.QUEEN] > 0
        pending_before = state.queen_pending

        outcome = ShotOutcome(verdict=Verdict.ADVANCE_TURN, shooter=shooter,
                              color=color, pocketed=delta, queen_pocketed=queen_new)

        striker = self.store.find_striker(state.pieces)
        outcome.foul = striker is not None and striker.pocketed

        if outcome.foul:
            striker.pocketed = False
            continue_turn = False
            if queen_new or pending_before:
                self._void_queen(state, outcome)
            logger.info("[RULES] foul by player %d: striker pocketed", shooter)
        else:
            continue_turn = own_gain
            if queen_new:
                continue_turn = True
                if own_gain:
                    self._cover_queen(state, outcome, color)
                else:
                    state.queen_pending = True
                    logger.info("[RULES] queen pocketed by player %d, cover owed", shooter)
            elif pending_before:
                if own_gain:
                    self._cover_queen(state, outcome, color)
                elif not continue_turn:
                    self._void_queen(state, outcome)

        state.scores = dict(self.store.pocketed_counts(state.pieces))
        state.shot_start_snapshot = None

        winner = self._check_winner(state.scores, color)
        if winner is not None:
            state.winner = winner
            state.phase = Phase.GAME_OVER
            outcome.verdict = Verdict.GAME_OVER
            outcome.winner = winner
            logger.info("[RULES] %s wins", winner_label(winner, state.player_count))
            return outcome

        if continue_turn:
            outcome.verdict = Verdict.CONTINUE_TURN
        else:
            state.active_player = (state.active_player + 1) % state.player_count

        state.placement = DEFAULT_PLACEMENT
        self.store.spawn_striker(state.pieces, state.active_player, state.placement)
        state.phase = Phase.AIMING
        logger.debug("[RULES] %s -> player %d", outcome.verdict.value, state.active_player)
        return outcome

    # ──────────────────────────────────────────────────────────────────────────
    # Queen + win helpers
    # ──────────────────────────────────────────────────────────────────────────

    @staticmethod
    def _cover_queen(state: MatchState, outcome: ShotOutcome, color: Role) -> None:
        state.queen_pending = False
        state.queen_owner = color
        outcome.queen_covered = True
        logger.info("[RULES] queen covered by %s", color.value)

    def _void_queen(self, state: MatchState, outcome: ShotOutcome) -> None:
        self.store.respawn_queen(state.pieces)
        state.queen_pending = False
        state.queen_owner = None
        outcome.queen_respawned = True
        logger.info("[RULES] queen not covered, returned to centre")

    @staticmethod
    def _check_winner(scores: dict, shooter_color: Role) -> Optional[Role]:
        done = [c for c in (Role.WHITE, Role.BLACK) if scores[c] >= COINS_PER_COLOR]
        if not done:
            return None
        if shooter_color in done:
            return shooter_color
        return done[0]
