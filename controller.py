"""
CarromController — Layer 2 (Game Logic)

Owns the match state, the rule engine and the computer opponent.
Communicates with Layer 3 (server.py / any renderer) via two queues:
  - pending_events  : match events (shot_result, game_over, new_match, …)
  - physics_events  : collision/wall/pocket events for sounds

Layer 3 calls:
  ctrl.step(dt)               — advance physics + turn state machine each frame
  ctrl.snapshot()             — read-only view of pieces, scores and turn
  ctrl.submit_shot / set_striker_placement / pointer_* / rematch / exit_match
"""

import logging
import random
from typing import Callable, Optional

import numpy as np

from config import MatchConfig
from input_mapper import InputMapper
from physics import Role
from planner import ShotPlanner
from rules import MatchState, Phase, ShotOutcome, TurnRuleEngine, Verdict, winner_label

logger = logging.getLogger(__name__)


# ── Default info-bar message ───────────────────────────────────────────────────
DEFAULT_INFO_MSG = (
    "Drag back from the striker and release to shoot.  "
    "Slide to place the striker.  [N] Rematch  [1-3] Scenario"
)


class CarromController:
    """Layer 2: turn state machine + physics orchestration."""

    # ── Class-level constants ─────────────────────────────────────────────────
    SIM_SUBSTEPS   = 1
    AI_THINK_DELAY = 1.0

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, config: Optional[MatchConfig] = None,
                 on_finish: Optional[Callable[[Optional[str]], None]] = None,
                 rng: Optional[random.Random] = None):
        self.on_finish = on_finish
        self.rng = rng or random.Random()

        self.config: MatchConfig = config or MatchConfig()
        self.engine: TurnRuleEngine = TurnRuleEngine(self.config.player_count)
        self.state: Optional[MatchState] = None
        self.planner = ShotPlanner(self.config.difficulty, rng=self.rng)
        self.input = InputMapper(self.engine.store)

        self.running        = False
        self.scenario_mode  = False
        self._finished      = False
        self.ai_think_timer: Optional[float] = None

        # Status / info messages (L3 reads these to update text)
        self.status_msg = ""
        self.info_msg   = DEFAULT_INFO_MSG

        # Event queues
        self.pending_events: list[dict] = []   # L3 match events
        self.physics_events: list[dict] = []   # collision sounds

        self.new_match(self.config)

    # ──────────────────────────────────────────────────────────────────────────
    # Match lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def new_match(self, config: Optional[MatchConfig] = None) -> None:
        """Start a match with a fresh layout. Abandons any match in progress."""
        self._abandon()
        if config is not None:
            self.config = config

        self.engine  = TurnRuleEngine(self.config.player_count)
        self.planner = ShotPlanner(self.config.difficulty, rng=self.rng)
        self.input   = InputMapper(self.engine.store)
        self.state   = self.engine.new_match()

        self.running       = True
        self.scenario_mode = False
        self._finished     = False
        self.physics_events.clear()
        self.pending_events.append({
            "type": "new_match",
            "mode": self.config.mode.value,
            "difficulty": self.config.difficulty.value,
            "player_count": self.config.player_count,
        })
        self.info_msg = DEFAULT_INFO_MSG
        self._announce_turn()
        logger.info("[CTRL] new match: %s, %s, %d players", self.config.mode.value,
                    self.config.difficulty.value, self.config.player_count)

    def rematch(self) -> None:
        """Re-run the layout and reset scores, turn and queen state."""
        self.new_match()

    def exit_match(self) -> None:
        """Stop the loop, drop the board and cancel any pending computer shot."""
        self._abandon()
        self.running = False
        self.state = None
        self.physics_events.clear()
        self.status_msg = ""
        logger.info("[CTRL] match exited")

    def _abandon(self) -> None:
        self.cancel_ai_turn()
        self.input.cancel()
        if self.state is not None and not self._finished and not self.scenario_mode:
            self._finish(None)

    def _finish(self, label: Optional[str]) -> None:
        if self._finished:
            return
        self._finished = True
        if label is not None:
            self.pending_events.append({"type": "game_over", "winner": label})
        if self.on_finish is not None:
            self.on_finish(label)

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def step(self, dt_frame: float) -> None:
        """Advance physics + state machine. Called every frame by L3."""
        if not self.running or self.state is None:
            return

        if self.scenario_mode:
            self._step_scenario()
            return

        if self.state.phase == Phase.AIMING and self.is_computer_turn():
            self.update_ai_turn(dt_frame)

        if self.state.phase != Phase.SETTLING:
            return

        self.physics_events.clear()
        settling = True
        for _ in range(self.SIM_SUBSTEPS):
            _, settling = self.engine.tick(self.state)
            self.physics_events.extend(self.engine.physics.events)
            if not settling:
                break

        if not settling and self.state.last_outcome is not None:
            self._on_shot_finished(self.state.last_outcome)

    def _on_shot_finished(self, outcome: ShotOutcome) -> None:
        self.pending_events.append({
            "type": "shot_result",
            "verdict": outcome.verdict.value,
            "shooter": outcome.shooter,
            "color": outcome.color.value,
            "foul": outcome.foul,
            "pocketed": {role.value: n for role, n in outcome.pocketed.items()},
            "queen_pocketed": outcome.queen_pocketed,
            "queen_covered": outcome.queen_covered,
            "queen_respawned": outcome.queen_respawned,
        })

        if outcome.verdict == Verdict.GAME_OVER:
            label = winner_label(outcome.winner, self.state.player_count)
            self.status_msg = f"{label} wins!"
            self.info_msg = f"{label} wins!  [N] Play again"
            self._finish(label)
            return

        if outcome.foul:
            self.status_msg = "Foul! Striker pocketed."
        elif outcome.queen_respawned:
            self.status_msg = "Queen not covered, back to the centre."
        elif outcome.queen_covered:
            self.status_msg = "Queen covered!"
        elif self.state.queen_pending:
            self.status_msg = "Queen pocketed! Cover it with your own coin."
        else:
            self._announce_turn()

    def _announce_turn(self) -> None:
        slot = self.state.active_player
        color = self.state.active_color.value
        if self.is_computer_turn():
            self.status_msg = f"Computer (player {slot + 1}, {color}) thinking..."
        else:
            self.status_msg = f"Player {slot + 1} ({color}) to shoot."

    # ──────────────────────────────────────────────────────────────────────────
    # Human input
    # ──────────────────────────────────────────────────────────────────────────

    def _accepts_input(self) -> bool:
        return (self.running and self.state is not None and not self.scenario_mode
                and self.state.phase == Phase.AIMING and not self.is_computer_turn())

    def submit_shot(self, vector) -> bool:
        """Fire the striker with an explicit velocity. Ignored unless a human aims."""
        if not self._accepts_input():
            return False
        if not self.engine.begin_shot(self.state, vector):
            return False
        self.status_msg = "Running..."
        return True

    def set_striker_placement(self, value: float) -> bool:
        if not self._accepts_input():
            return False
        return self.engine.set_placement(self.state, value)

    def pointer_down(self, point) -> bool:
        if not self._accepts_input():
            return False
        return self.input.begin_drag(point, self.engine.store.find_striker(self.state.pieces))

    def pointer_move(self, point) -> np.ndarray:
        return self.input.drag_to(point)

    def pointer_up(self) -> bool:
        velocity = self.input.release()
        if velocity is None:
            return False
        return self.submit_shot(velocity)

    # ──────────────────────────────────────────────────────────────────────────
    # Computer turn
    # ──────────────────────────────────────────────────────────────────────────

    def is_computer_turn(self) -> bool:
        return self.state is not None and self.config.is_computer(self.state.active_player)

    def update_ai_turn(self, dt: float) -> None:
        """Count down the think delay, then let the planner shoot."""
        if self.ai_think_timer is None:
            self.ai_think_timer = self.AI_THINK_DELAY
            self._announce_turn()
            return

        self.ai_think_timer -= dt
        if self.ai_think_timer <= 0.0:
            self.ai_think_timer = None
            if self.planner.take_shot(self.engine, self.state):
                self.status_msg = "Computer shooting..."
            else:
                logger.debug("[CTRL] planner produced no shot for player %d",
                             self.state.active_player)

    def cancel_ai_turn(self) -> None:
        self.ai_think_timer = None

    # ──────────────────────────────────────────────────────────────────────────
    # Scenarios (physics only, no rules)
    # ──────────────────────────────────────────────────────────────────────────

    def load_scenario(self, scenario_fn, label: str) -> None:
        """Load a shot-preset scenario; the rule engine stays out of it."""
        if self.state is not None and self.state.in_flight and not self.scenario_mode:
            return
        self._abandon()

        result = scenario_fn(run=False)
        self.engine = TurnRuleEngine(self.config.player_count, physics=result["engine"])
        self.input = InputMapper(self.engine.store)
        self.state = MatchState(pieces=result["pieces"], player_count=self.config.player_count,
                                phase=Phase.SETTLING)
        self.scenario_mode = True
        self.running = True
        self.info_msg = f"Scenario {label}"
        self.status_msg = "Running..."

    def _step_scenario(self) -> None:
        if self.state.phase != Phase.SETTLING:
            return
        moving = self.engine.physics.update(self.state.pieces)
        self.physics_events = list(self.engine.physics.events)
        if not moving:
            self.state.phase = Phase.AIMING
            self.status_msg = "Scenario finished. [N] New match"

    # ──────────────────────────────────────────────────────────────────────────
    # Renderer view
    # ──────────────────────────────────────────────────────────────────────────

    def snapshot(self) -> dict:
        """Plain-data view of the board for the renderer (JSON-safe)."""
        if self.state is None:
            return {"running": False, "pieces": [], "status": self.status_msg}

        s = self.state
        return {
            "running": self.running,
            "scenario": self.scenario_mode,
            "phase": s.phase.value,
            "player_count": s.player_count,
            "active_player": s.active_player,
            "active_color": s.active_color.value,
            "computer_turn": self.is_computer_turn(),
            "scores": {role.value: int(n) for role, n in s.scores.items()},
            "queen_pending": s.queen_pending,
            "queen_owner": s.queen_owner.value if s.queen_owner else None,
            "winner": winner_label(s.winner, s.player_count) if s.winner else None,
            "placement": s.placement,
            "aim": [round(float(v), 3) for v in self.input.aim],
            "pieces": [
                {
                    "id": p.id,
                    "role": p.role.value,
                    "pos": [round(float(p.position[0]), 3), round(float(p.position[1]), 3)],
                    "radius": p.radius,
                    "pocketed": p.pocketed,
                }
                for p in s.pieces
            ],
            "status": self.status_msg,
            "info": self.info_msg,
        }

    def score_of(self, color: Role) -> int:
        return 0 if self.state is None else int(self.state.scores[color])
