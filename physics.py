"""
2D Carrom Board Physics Engine
Friction, Wall Reflection, Disc-Disc Collision, Pocket Capture
"""

import enum
import numpy as np
from dataclasses import dataclass, field
from typing import List

# ──────────────────────────────────────────────
# Constants (board units, per-tick velocities)
# ──────────────────────────────────────────────
BOARD_SIZE: float = 800.0  # side of the square playing surface
POCKET_RADIUS: float = 35.0  # capture radius around each pocket centre
POCKET_INSET: float = 10.0  # pocket centres sit this far in from each corner

COIN_RADIUS: float = 15.0
STRIKER_RADIUS: float = 22.0
COIN_MASS: float = 1.0
STRIKER_MASS: float = 2.0

# ── Runtime-editable behavior constants ───────────────────────────────────────
# These are read by name every call, so server.py can mutate them live via:
#   import physics as _phys;  _phys.FRICTION = 0.98
FRICTION: float = 0.985  # per-tick velocity retention
WALL_DAMPING: float = 0.6  # fraction of normal speed kept after a wall bounce
RESTITUTION: float = 0.8  # disc-disc restitution
REST_SPEED: float = 0.1  # below this speed a piece is snapped to rest

# Numerical thresholds
DEGENERATE_DISTANCE: float = 1e-9


class Role(str, enum.Enum):
    WHITE = "white"
    BLACK = "black"
    QUEEN = "queen"
    STRIKER = "striker"


ROLE_RADIUS = {
    Role.WHITE: COIN_RADIUS,
    Role.BLACK: COIN_RADIUS,
    Role.QUEEN: COIN_RADIUS,
    Role.STRIKER: STRIKER_RADIUS,
}

ROLE_MASS = {
    Role.WHITE: COIN_MASS,
    Role.BLACK: COIN_MASS,
    Role.QUEEN: COIN_MASS,
    Role.STRIKER: STRIKER_MASS,
}


def pocket_centers(board_size: float = BOARD_SIZE) -> np.ndarray:
    """Pocket centres in TL, TR, BL, BR order."""
    lo = POCKET_INSET
    hi = board_size - POCKET_INSET
    return np.array([[lo, lo], [hi, lo], [lo, hi], [hi, hi]], dtype=float)


@dataclass(eq=False)
class Piece:
    """Carrom disc. Radius and mass are fixed by role at creation."""
    id: int
    role: Role
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    pocketed: bool = False
    radius: float = field(init=False)
    mass: float = field(init=False)

    def __post_init__(self):
        self.role = Role(self.role)
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)
        self.radius = ROLE_RADIUS[self.role]
        self.mass = ROLE_MASS[self.role]

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def is_moving(self) -> bool:
        return not self.pocketed and self.speed > REST_SPEED

    def stop(self) -> None:
        self.velocity[:] = 0.0


def kinetic_energy(pieces: List[Piece]) -> float:
    """Total ½mv² over the pieces still on the board."""
    return float(sum(0.5 * p.mass * float(np.dot(p.velocity, p.velocity))
                     for p in pieces if not p.pocketed))


class PhysicsEngine:
    """Arcade carrom physics: one call to update() is one simulation tick."""

    def __init__(self, board_size: float = BOARD_SIZE):
        self.board_size = board_size
        self.pockets = pocket_centers(board_size)
        self.events: list = []

    # ──────────────────────────────────────────
    # Integration + friction
    # ──────────────────────────────────────────
    @staticmethod
    def _integrate(piece: Piece) -> None:
        """Semi-implicit Euler step followed by friction and rest snapping."""
        piece.position = piece.position + piece.velocity
        piece.velocity = piece.velocity * FRICTION
        if piece.speed < REST_SPEED:
            piece.stop()

    # ──────────────────────────────────────────
    # Walls
    # ──────────────────────────────────────────
    def _check_walls(self, piece: Piece) -> None:
        """Clamp to [r, S-r] on each axis and reflect the offending component."""
        lo = piece.radius
        hi = self.board_size - piece.radius
        for axis in (0, 1):
            if piece.position[axis] < lo:
                piece.position[axis] = lo
            elif piece.position[axis] > hi:
                piece.position[axis] = hi
            else:
                continue
            impact_speed = abs(float(piece.velocity[axis]))
            piece.velocity[axis] = -piece.velocity[axis] * WALL_DAMPING
            if impact_speed > 0.0:
                self.events.append({"type": "wall", "piece": piece.id, "speed": impact_speed})

    def _clamp_to_board(self, piece: Piece) -> None:
        lo = piece.radius
        hi = self.board_size - piece.radius
        piece.position = np.clip(piece.position, lo, hi)

    # ──────────────────────────────────────────
    # Disc-Disc Collision
    # ──────────────────────────────────────────
    @staticmethod
    def _check_collision(p1: Piece, p2: Piece) -> bool:
        """Check if two discs are overlapping."""
        dist = np.linalg.norm(p2.position - p1.position)
        return dist < (p1.radius + p2.radius)

    def _resolve_collision(self, p1: Piece, p2: Piece) -> None:
        """
        Separate two overlapping discs and exchange an impulse along the
        line of centres. Coincident centres are skipped for this tick.
        """
        diff = p2.position - p1.position
        dist = float(np.linalg.norm(diff))
        if dist < DEGENERATE_DISTANCE:
            return

        normal = diff / dist

        # Push apart symmetrically, half the penetration each
        overlap = (p1.radius + p2.radius) - dist
        if overlap > 0:
            p1.position = p1.position - normal * (overlap / 2)
            p2.position = p2.position + normal * (overlap / 2)

        # Relative velocity along normal (positive = already separating)
        vel_along_normal = float(np.dot(p2.velocity - p1.velocity, normal))
        if vel_along_normal >= 0:
            return

        inv_m1 = 1.0 / p1.mass
        inv_m2 = 1.0 / p2.mass
        j = -(1.0 + RESTITUTION) * vel_along_normal / (inv_m1 + inv_m2)

        impulse = j * normal
        p1.velocity = p1.velocity - impulse * inv_m1
        p2.velocity = p2.velocity + impulse * inv_m2

        self.events.append({
            "type": "collision", "piece1": p1.id, "piece2": p2.id,
            "speed": abs(vel_along_normal),
        })

    # ──────────────────────────────────────────
    # Pockets
    # ──────────────────────────────────────────
    def detect_pockets(self, pieces: List[Piece]) -> List[Piece]:
        """Mark every live piece inside a pocket's capture radius as pocketed.

        Only ever sets the flag; putting a piece back is a rules decision.
        Returns the pieces captured this call.
        """
        captured = []
        for piece in pieces:
            if piece.pocketed:
                continue
            dists = np.linalg.norm(self.pockets - piece.position, axis=1)
            if float(dists.min()) < POCKET_RADIUS:
                piece.pocketed = True
                piece.stop()
                captured.append(piece)
                self.events.append({
                    "type": "pocket", "piece": piece.id, "role": piece.role.value,
                    "pocket": int(dists.argmin()),
                })
        return captured

    # ──────────────────────────────────────────
    # Main Update Loop
    # ──────────────────────────────────────────
    def update(self, pieces: List[Piece]) -> bool:
        """Advance one tick. Returns True while any piece is still moving."""
        self.events.clear()
        live = [p for p in pieces if not p.pocketed]

        # Move, slow down, bounce off walls
        for piece in live:
            self._integrate(piece)
            self._check_walls(piece)

        # Check disc-disc collisions
        for i in range(len(live)):
            for j in range(i + 1, len(live)):
                if self._check_collision(live[i], live[j]):
                    self._resolve_collision(live[i], live[j])

        # Separation may have nudged a disc past a wall; impulses may have
        # left a disc creeping below the rest threshold
        for piece in live:
            self._clamp_to_board(piece)
            if piece.speed < REST_SPEED:
                piece.stop()

        self.detect_pockets(live)

        return any(p.is_moving() for p in pieces)

    def simulate(self, pieces: List[Piece], max_steps: int = 5000) -> int:
        """
        Run ticks until every piece is at rest or max_steps is reached.

        Returns:
            Number of ticks taken.
        """
        steps = 0
        while steps < max_steps:
            steps += 1
            if not self.update(pieces):
                break
        return steps
