"""
Physics Engine Tests — friction, walls, disc-disc collisions, pockets.

Scenario A: Friction decay — a lone disc slows down and comes to rest.
Scenario B: Wall bounce — a disc is clamped inside the board and reflected.
Scenario C: Collision — overlapping discs separate and exchange momentum.
Scenario D: Pockets — discs inside a capture radius are marked pocketed.
"""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import physics
from physics import (
    Piece, PhysicsEngine, Role, kinetic_energy, pocket_centers,
    BOARD_SIZE, COIN_RADIUS, COIN_MASS, STRIKER_RADIUS, STRIKER_MASS,
    FRICTION, WALL_DAMPING, REST_SPEED, POCKET_RADIUS,
)


# ── Helpers ──────────────────────────────────────────────

def coin(pid=1, pos=(400.0, 400.0), vel=(0.0, 0.0), role=Role.WHITE):
    return Piece(pid, role, position=list(pos), velocity=list(vel))


# ── Piece data model ─────────────────────────────────────

class TestPiece:

    def test_radius_and_mass_follow_role(self):
        c = coin(role=Role.BLACK)
        s = Piece(-1, Role.STRIKER)
        assert (c.radius, c.mass) == (COIN_RADIUS, COIN_MASS)
        assert (s.radius, s.mass) == (STRIKER_RADIUS, STRIKER_MASS)
        assert s.radius > c.radius and s.mass > c.mass

    def test_role_accepts_plain_string(self):
        q = Piece(0, "queen")
        assert q.role is Role.QUEEN

    def test_pocketed_piece_is_not_moving(self):
        c = coin(vel=(5.0, 0.0))
        c.pocketed = True
        assert not c.is_moving()


# ── Scenario A: Friction ─────────────────────────────────

class TestFriction:

    def test_single_step_moves_then_decays(self):
        c = coin(vel=(10.0, 0.0))
        engine = PhysicsEngine()
        engine.update([c])
        np.testing.assert_allclose(c.position, [410.0, 400.0])
        np.testing.assert_allclose(c.velocity, [10.0 * FRICTION, 0.0])

    def test_slow_disc_snaps_to_rest(self):
        c = coin(vel=(REST_SPEED * 0.9, 0.0))
        moving = PhysicsEngine().update([c])
        assert not moving
        assert c.speed == 0.0

    def test_disc_eventually_stops(self):
        c = coin(vel=(3.0, 2.0))
        engine = PhysicsEngine()
        steps = engine.simulate([c], max_steps=5000)
        assert steps < 5000
        assert c.speed == 0.0

    def test_energy_never_increases_without_collisions(self):
        c = coin(pos=(100.0, 400.0), vel=(-12.0, 3.0))
        engine = PhysicsEngine()
        prev = kinetic_energy([c])
        for _ in range(300):
            engine.update([c])
            now = kinetic_energy([c])
            assert now <= prev + 1e-9
            prev = now


# ── Scenario B: Walls ────────────────────────────────────

class TestWalls:

    def test_left_wall_clamps_and_reflects(self):
        c = coin(pos=(COIN_RADIUS + 2.0, 400.0), vel=(-6.0, 0.0))
        PhysicsEngine().update([c])
        assert c.position[0] == pytest.approx(COIN_RADIUS)
        assert c.velocity[0] == pytest.approx(6.0 * FRICTION * WALL_DAMPING)

    def test_bottom_wall_clamps_and_reflects(self):
        c = coin(pos=(400.0, BOARD_SIZE - COIN_RADIUS - 1.0), vel=(0.0, 5.0))
        engine = PhysicsEngine()
        engine.update([c])
        assert c.position[1] == pytest.approx(BOARD_SIZE - COIN_RADIUS)
        assert c.velocity[1] < 0
        assert any(ev["type"] == "wall" for ev in engine.events)

    def test_no_piece_escapes_the_board(self):
        pieces = [
            coin(1, pos=(400.0, 200.0), vel=(25.0, -18.0)),
            coin(2, pos=(300.0, 500.0), vel=(-22.0, 27.0), role=Role.BLACK),
            Piece(-1, Role.STRIKER, position=[500.0, 600.0], velocity=[14.0, 29.0]),
        ]
        engine = PhysicsEngine()
        for _ in range(400):
            engine.update(pieces)
            for p in pieces:
                assert p.radius - 1e-9 <= p.position[0] <= BOARD_SIZE - p.radius + 1e-9
                assert p.radius - 1e-9 <= p.position[1] <= BOARD_SIZE - p.radius + 1e-9


# ── Scenario C: Collisions ───────────────────────────────

class TestCollisions:

    def test_head_on_equal_mass_transfers_momentum(self):
        a = coin(1, pos=(300.0, 400.0), vel=(5.0, 0.0))
        b = coin(2, pos=(329.0, 400.0), role=Role.BLACK)
        engine = PhysicsEngine()
        engine.update([a, b])
        # e=0.8, equal masses: b takes (1+e)/2 of the approach speed
        assert b.velocity[0] > a.velocity[0] > 0
        assert b.velocity[0] == pytest.approx(0.9 * 5.0 * FRICTION)
        assert any(ev["type"] == "collision" for ev in engine.events)

    def test_momentum_conserved_in_collision(self):
        s = Piece(-1, Role.STRIKER, position=[300.0, 400.0], velocity=[6.0, 1.0])
        c = coin(1, pos=(335.0, 402.0))
        before = s.mass * s.velocity * FRICTION + c.mass * c.velocity
        PhysicsEngine().update([s, c])
        after = s.mass * s.velocity + c.mass * c.velocity
        np.testing.assert_allclose(after, before, atol=1e-9)

    def test_overlap_is_separated(self):
        a = coin(1, pos=(400.0, 400.0))
        b = coin(2, pos=(410.0, 400.0))
        PhysicsEngine().update([a, b])
        dist = np.linalg.norm(b.position - a.position)
        assert dist >= a.radius + b.radius - 1e-6
        # symmetric push, centre of the pair unchanged
        np.testing.assert_allclose((a.position + b.position) / 2, [405.0, 400.0])

    def test_separating_pair_gets_no_impulse(self):
        a = coin(1, pos=(400.0, 400.0), vel=(-2.0, 0.0))
        b = coin(2, pos=(425.0, 400.0), vel=(2.0, 0.0))
        PhysicsEngine().update([a, b])
        assert a.velocity[0] < 0 and b.velocity[0] > 0

    def test_coincident_centres_are_skipped(self):
        a = coin(1, pos=(400.0, 400.0))
        b = coin(2, pos=(400.0, 400.0))
        engine = PhysicsEngine()
        engine.update([a, b])
        assert np.all(np.isfinite(a.position)) and np.all(np.isfinite(b.position))
        np.testing.assert_array_equal(a.position, b.position)
        assert not any(ev["type"] == "collision" for ev in engine.events)

    def test_pocketed_pieces_do_not_collide(self):
        a = coin(1, pos=(400.0, 400.0), vel=(4.0, 0.0))
        b = coin(2, pos=(420.0, 400.0))
        b.pocketed = True
        PhysicsEngine().update([a, b])
        np.testing.assert_array_equal(b.position, [420.0, 400.0])
        assert b.speed == 0.0


# ── Scenario D: Pockets ──────────────────────────────────

class TestPockets:

    def test_pocket_centres_are_inset_corners(self):
        centres = pocket_centers(BOARD_SIZE)
        assert centres.shape == (4, 2)
        assert centres.min() > 0 and centres.max() < BOARD_SIZE

    def test_piece_inside_capture_radius_is_pocketed(self):
        c = coin(pos=(30.0, 30.0), vel=(-1.0, -1.0))
        engine = PhysicsEngine()
        captured = engine.detect_pockets([c])
        assert captured == [c]
        assert c.pocketed and c.speed == 0.0

    def test_piece_outside_capture_radius_stays(self):
        c = coin(pos=(10.0 + POCKET_RADIUS + 5.0, 400.0))
        assert PhysicsEngine().detect_pockets([c]) == []
        assert not c.pocketed

    def test_multiple_captures_in_one_step(self):
        a = coin(1, pos=(25.0, 25.0))
        b = coin(2, pos=(BOARD_SIZE - 25.0, BOARD_SIZE - 25.0), role=Role.BLACK)
        engine = PhysicsEngine()
        engine.update([a, b])
        assert a.pocketed and b.pocketed
        assert len([ev for ev in engine.events if ev["type"] == "pocket"]) == 2

    def test_detector_never_unpockets(self):
        c = coin(pos=(400.0, 400.0))
        c.pocketed = True
        PhysicsEngine().detect_pockets([c])
        assert c.pocketed

    def test_moving_disc_runs_into_pocket(self):
        c = coin(pos=(120.0, 120.0), vel=(-6.0, -6.0))
        PhysicsEngine().simulate([c])
        assert c.pocketed


# ── Runtime-editable constants ───────────────────────────

class TestLiveParams:

    def test_friction_read_at_call_time(self, monkeypatch):
        monkeypatch.setattr(physics, "FRICTION", 0.5)
        c = coin(vel=(10.0, 0.0))
        PhysicsEngine().update([c])
        assert c.velocity[0] == pytest.approx(5.0)
