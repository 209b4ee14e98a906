"""
InputMapper — pointer gestures and slider values to board actions.

Drag is a pull-back: the shot goes from the current pointer towards where the
drag started. The drag length is capped at MAX_DRAG and scaled to
MAX_SHOT_POWER; anything shorter than MIN_DRAG is not a shot.
"""

from typing import Optional

import numpy as np

from board import PieceStore
from physics import BOARD_SIZE, Piece

MIN_DRAG: float = 10.0
MAX_DRAG: float = 150.0
MAX_SHOT_POWER: float = 30.0
GRAB_RADIUS_FACTOR: float = 2.0  # pointer must land within this × striker radius


class InputMapper:

    def __init__(self, store: PieceStore):
        self.store = store
        self.dragging = False
        self.drag_start = np.zeros(2)
        self.aim = np.zeros(2)

    @staticmethod
    def screen_to_board(x: float, y: float, width: float, height: float,
                        board_size: float = BOARD_SIZE) -> np.ndarray:
        """Canvas pixel (relative to its top-left) → board units."""
        return np.array([x * board_size / width, y * board_size / height])

    # ──────────────────────────────────────────────────────────────────────────
    # Drag gesture
    # ──────────────────────────────────────────────────────────────────────────

    def begin_drag(self, point, striker: Optional[Piece]) -> bool:
        if striker is None:
            return False
        point = np.asarray(point, dtype=float)
        if np.linalg.norm(point - striker.position) >= striker.radius * GRAB_RADIUS_FACTOR:
            return False
        self.dragging = True
        self.drag_start = point
        self.aim = np.zeros(2)
        return True

    def drag_to(self, point) -> np.ndarray:
        if self.dragging:
            self.aim = self.aim_vector(self.drag_start, point)
        return self.aim.copy()

    def release(self) -> Optional[np.ndarray]:
        """End the drag; returns the shot velocity or None if too short."""
        if not self.dragging:
            return None
        self.dragging = False
        velocity = self.shot_velocity(self.aim)
        self.aim = np.zeros(2)
        return velocity

    def cancel(self) -> None:
        self.dragging = False
        self.aim = np.zeros(2)

    @staticmethod
    def aim_vector(start, current) -> np.ndarray:
        return np.asarray(start, dtype=float) - np.asarray(current, dtype=float)

    @staticmethod
    def shot_velocity(aim) -> Optional[np.ndarray]:
        aim = np.asarray(aim, dtype=float)
        mag = float(np.linalg.norm(aim))
        if mag <= MIN_DRAG:
            return None
        power = min(mag, MAX_DRAG) / MAX_DRAG * MAX_SHOT_POWER
        return aim / mag * power

    # ──────────────────────────────────────────────────────────────────────────
    # Slider
    # ──────────────────────────────────────────────────────────────────────────

    def placement_to_position(self, slot: int, placement: float) -> np.ndarray:
        return self.store.placement_point(slot, placement)
