"""
PieceStore — board layout, baselines and striker placement.

Owns the geometry that decides where pieces start: the 19-coin rosette in
the centre, the per-player baselines and the striker that is rebuilt on one
of them before every shot.
"""

import math
from typing import List, Optional, Tuple

import numpy as np

from physics import BOARD_SIZE, COIN_RADIUS, Piece, Role

BASELINE_OFFSET: float = 100.0
COINS_PER_COLOR: int = 9
STRIKER_ID: int = -1
QUEEN_ID: int = 0

INNER_RING_FACTOR: float = 2.1  # ring radius as a multiple of COIN_RADIUS
OUTER_RING_FACTOR: float = 4.1


def _ring_color(index: int) -> Role:
    return Role.WHITE if index % 2 == 0 else Role.BLACK


class PieceStore:
    """Creates pieces and places the striker for a board of a given size."""

    def __init__(self, board_size: float = BOARD_SIZE, player_count: int = 2):
        self.board_size = board_size
        self.player_count = player_count

    @property
    def center(self) -> np.ndarray:
        return np.array([self.board_size / 2, self.board_size / 2])

    # ──────────────────────────────────────────────────────────────────────────
    # Layout
    # ──────────────────────────────────────────────────────────────────────────

    def layout(self) -> List[Piece]:
        """Queen in the middle, 6 coins on the inner ring, 12 on the outer.

        Both rings alternate white/black by index. No striker is created here;
        call spawn_striker() once the acting player is known.
        """
        cx, cy = self.center
        pieces = [Piece(QUEEN_ID, Role.QUEEN, position=[cx, cy])]

        inner = COIN_RADIUS * INNER_RING_FACTOR
        for i in range(6):
            angle = math.radians(i * 60)
            pieces.append(Piece(
                len(pieces), _ring_color(i),
                position=[cx + math.cos(angle) * inner, cy + math.sin(angle) * inner],
            ))

        outer = COIN_RADIUS * OUTER_RING_FACTOR
        for i in range(12):
            angle = math.radians(i * 30)
            pieces.append(Piece(
                len(pieces), _ring_color(i),
                position=[cx + math.cos(angle) * outer, cy + math.sin(angle) * outer],
            ))
        return pieces

    # ──────────────────────────────────────────────────────────────────────────
    # Baselines + striker
    # ──────────────────────────────────────────────────────────────────────────

    def baseline(self, slot: int) -> Tuple[np.ndarray, np.ndarray]:
        """Endpoints of the baseline for a player slot.

        2 players: 0=bottom, 1=top.
        4 players: 0=bottom, 1=left (bottom→top), 2=top (right→left),
        3=right (top→bottom).
        """
        lo = BASELINE_OFFSET
        hi = self.board_size - BASELINE_OFFSET
        if self.player_count == 4:
            ends = {
                0: ((lo, hi), (hi, hi)),
                1: ((lo, hi), (lo, lo)),
                2: ((hi, lo), (lo, lo)),
                3: ((hi, lo), (hi, hi)),
            }
        else:
            ends = {
                0: ((lo, hi), (hi, hi)),
                1: ((lo, lo), (hi, lo)),
            }
        start, end = ends[slot % len(ends)]
        return np.array(start, dtype=float), np.array(end, dtype=float)

    def placement_point(self, slot: int, placement: float) -> np.ndarray:
        """Point along the slot's baseline; placement is clamped to [0, 1]."""
        if not math.isfinite(placement):
            placement = 0.5
        t = min(1.0, max(0.0, float(placement)))
        start, end = self.baseline(slot)
        return start + (end - start) * t

    def spawn_striker(self, pieces: List[Piece], slot: int,
                      placement: float = 0.5) -> Piece:
        """Drop any existing striker and insert a fresh one at rest."""
        pieces[:] = [p for p in pieces if p.role != Role.STRIKER]
        striker = Piece(STRIKER_ID, Role.STRIKER,
                        position=self.placement_point(slot, placement))
        pieces.append(striker)
        return striker

    # ──────────────────────────────────────────────────────────────────────────
    # Lookups
    # ──────────────────────────────────────────────────────────────────────────

    @staticmethod
    def find_striker(pieces: List[Piece]) -> Optional[Piece]:
        return next((p for p in pieces if p.role == Role.STRIKER), None)

    @staticmethod
    def find_queen(pieces: List[Piece]) -> Optional[Piece]:
        return next((p for p in pieces if p.role == Role.QUEEN), None)

    @staticmethod
    def pocketed_counts(pieces: List[Piece]) -> dict:
        counts = {Role.WHITE: 0, Role.BLACK: 0, Role.QUEEN: 0}
        for p in pieces:
            if p.pocketed and p.role in counts:
                counts[p.role] += 1
        return counts

    def respawn_queen(self, pieces: List[Piece]) -> Optional[Piece]:
        """Return the queen to the centre of the board, at rest."""
        queen = self.find_queen(pieces)
        if queen is None:
            return None
        queen.pocketed = False
        queen.position = self.center.copy()
        queen.stop()
        return queen
