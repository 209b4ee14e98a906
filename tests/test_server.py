"""
Server Tests — HTTP views and command dispatch.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

import physics as _phys
import server
from rules import Phase


@pytest.fixture
def client():
    # No context manager: the background game loop stays off
    return TestClient(server.app)


@pytest.fixture(autouse=True)
def fresh_match():
    server.ctrl.new_match()
    yield
    for attr, dflt in server.PARAM_DEFAULTS.items():
        setattr(_phys, attr, dflt)


class FakeSocket:

    def __init__(self):
        self.sent = []

    async def send_text(self, text):
        self.sent.append(json.loads(text))


def run(coro):
    return asyncio.run(coro)


class TestHttp:

    def test_state_lists_board(self, client):
        resp = client.get("/state")
        assert resp.status_code == 200
        body = resp.json()
        assert body["phase"] == "aiming"
        assert len(body["pieces"]) == 20

    def test_params_lists_tunables(self, client):
        body = client.get("/params").json()
        assert [p["attr"] for p in body] == [a for a, *_ in server.PHYSICS_PARAMS]


class TestCommands:

    def test_shot_command_starts_shot(self):
        run(server._handle_command(FakeSocket(), {"cmd": "shot", "vx": 0.0, "vy": -5.0}))
        assert server.ctrl.state.phase == Phase.SETTLING

    def test_bad_config_reports_error(self):
        ws = FakeSocket()
        run(server._handle_command(ws, {"cmd": "new_match", "config": {"playerCount": 3}}))
        assert ws.sent[0]["type"] == "error"

    def test_adjust_and_reset_param(self):
        ws = FakeSocket()
        run(server._handle_command(ws, {"cmd": "adjust_param", "index": 0, "direction": -1}))
        assert ws.sent[0]["type"] == "param_update"
        assert _phys.FRICTION == pytest.approx(server.PARAM_DEFAULTS["FRICTION"] - 0.001)
        run(server._handle_command(ws, {"cmd": "reset_params"}))
        assert _phys.FRICTION == server.PARAM_DEFAULTS["FRICTION"]

    def test_unknown_scenario_key_is_ignored(self):
        run(server._handle_command(FakeSocket(), {"cmd": "scenario", "key": "9"}))
        assert not server.ctrl.scenario_mode
