"""
Shot Preset System
Canned board setups (break, straight pocket, striker foul) that place the
pieces, launch the striker and optionally simulate to rest. Used for physics
checks and for the server's scenario keys.
"""

import math

import numpy as np

from board import STRIKER_ID, PieceStore
from physics import BOARD_SIZE, Piece, PhysicsEngine, Role

MAX_STEPS = 5000


def _run(engine: PhysicsEngine, pieces, run: bool) -> int:
    return engine.simulate(pieces, max_steps=MAX_STEPS) if run else 0


class ShotPreset:
    """Each preset: place pieces → launch striker → simulate → result dict."""

    @staticmethod
    def scenario_1_break(run=True) -> dict:
        """Opening break: striker from the bottom baseline straight into the rosette."""
        engine = PhysicsEngine()
        store = PieceStore(BOARD_SIZE, player_count=2)

        pieces = store.layout()
        striker = store.spawn_striker(pieces, slot=0, placement=0.5)
        striker.velocity = np.array([0.0, -25.0])

        steps = _run(engine, pieces, run)
        return {"pieces": pieces, "striker": striker, "engine": engine, "steps": steps}

    @staticmethod
    def scenario_2_straight_pocket(run=True) -> dict:
        """Striker drives a lone white coin down the diagonal into the top-left pocket."""
        engine = PhysicsEngine()

        coin = Piece(1, Role.WHITE, position=[200.0, 200.0])
        striker = Piece(STRIKER_ID, Role.STRIKER, position=[300.0, 300.0])
        far = Piece(2, Role.BLACK, position=[600.0, 600.0])

        speed = 8.0
        striker.velocity = np.array([-1.0, -1.0]) / math.sqrt(2.0) * speed

        pieces = [coin, far, striker]
        steps = _run(engine, pieces, run)
        return {"pieces": pieces, "coin": coin, "striker": striker,
                "engine": engine, "steps": steps}

    @staticmethod
    def scenario_3_striker_foul(run=True) -> dict:
        """Striker sent straight at the top-left pocket with nothing in the way."""
        engine = PhysicsEngine()

        striker = Piece(STRIKER_ID, Role.STRIKER, position=[150.0, 150.0])
        coin = Piece(1, Role.BLACK, position=[600.0, 600.0])
        striker.velocity = np.array([-5.0, -5.0])

        pieces = [coin, striker]
        steps = _run(engine, pieces, run)
        return {"pieces": pieces, "striker": striker, "engine": engine, "steps": steps}
