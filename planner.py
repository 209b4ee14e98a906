"""
ShotPlanner — shot selection for computer-controlled players.

Picks a target (queen first, then a random coin of its own colour, then the
board centre), draws a power from the difficulty's range and adds a little
aim error.
"""

import math
import random
from typing import Optional

import numpy as np

from board import PieceStore
from config import Difficulty
from physics import BOARD_SIZE
from rules import MatchState

# (min power, max power), aim error std-dev in degrees
DIFFICULTY_PROFILE = {
    Difficulty.EASY: ((15.0, 25.0), 6.0),
    Difficulty.MEDIUM: ((18.0, 22.0), 3.0),
    Difficulty.HARD: ((25.0, 30.0), 1.0),
}
POWER_JITTER: float = 0.5
CENTER_FALLBACK_SCALE: float = 0.05


class ShotPlanner:
    """Computer opponent. Pass a seeded ``rng`` for repeatable shots."""

    def __init__(self, difficulty: Difficulty = Difficulty.MEDIUM,
                 rng: Optional[random.Random] = None,
                 board_size: float = BOARD_SIZE):
        self.difficulty = Difficulty(difficulty)
        self.rng = rng or random.Random()
        self.board_size = board_size

    def pick_target(self, state: MatchState) -> Optional[np.ndarray]:
        """Queen if it is still on the board, otherwise a random own coin."""
        color = state.active_color
        queen = PieceStore.find_queen(state.pieces)
        if queen is not None and not queen.pocketed:
            return queen.position.copy()
        own = [p for p in state.pieces if p.role == color and not p.pocketed]
        if not own:
            return None
        return self.rng.choice(own).position.copy()

    def plan(self, state: MatchState) -> np.ndarray:
        """Return the striker velocity for the active player's shot."""
        striker = PieceStore.find_striker(state.pieces)
        if striker is None:
            return np.zeros(2)

        target = self.pick_target(state)
        if target is None:
            center = np.array([self.board_size / 2, self.board_size / 2])
            return (center - striker.position) * CENTER_FALLBACK_SCALE

        diff = target - striker.position
        dist = float(np.linalg.norm(diff))
        if dist < 1e-9:
            return np.zeros(2)

        (lo, hi), aim_sigma = DIFFICULTY_PROFILE[self.difficulty]
        power = self.rng.uniform(lo, hi) + self.rng.gauss(0.0, POWER_JITTER)
        power = max(lo * 0.9, power)

        angle = math.atan2(diff[1], diff[0]) + math.radians(self.rng.gauss(0.0, aim_sigma))
        return np.array([math.cos(angle), math.sin(angle)]) * power


    def take_shot(self, engine, state: MatchState) -> bool:
        """Plan for the active player and launch it through the rule engine."""
        return engine.begin_shot(state, self.plan(state))
