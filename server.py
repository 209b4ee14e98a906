"""
Carrom Web Server — Layer 3 (FastAPI + WebSocket)

Runs the simulation loop and streams board snapshots to browser clients over
WebSocket. Rendering and pointer capture happen in the client; it sends back
board-space pointer events, slider values and match commands.
"""

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

import config
import physics as _phys
from config import ConfigError, MatchConfig
from controller import CarromController
from physics import BOARD_SIZE, COIN_RADIUS, POCKET_RADIUS, STRIKER_RADIUS
from shot_presets import ShotPreset

logger = logging.getLogger(__name__)


def _on_match_finished(winner):
    if winner is None:
        logger.info("[SERVER] match abandoned")
    else:
        logger.info("[SERVER] match finished: %s", winner)


# ── Controller ──────────────────────────────────────────────────────────────

ctrl = CarromController(on_finish=_on_match_finished)


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(game_loop())
    yield
    task.cancel()
    ctrl.exit_match()


app = FastAPI(lifespan=lifespan)

# ── Client state ────────────────────────────────────────────────────────────

clients: list[WebSocket] = []

# Scenario map (keys 1-3)
SCENARIOS = {
    "1": (ShotPreset.scenario_1_break,           "1: Break"),
    "2": (ShotPreset.scenario_2_straight_pocket, "2: Straight pocket"),
    "3": (ShotPreset.scenario_3_striker_foul,    "3: Striker foul"),
}

# ── Physics params (live-tunable module constants) ──────────────────────────

PHYSICS_PARAMS = [
    ("FRICTION",     "Friction",      0.90,  0.999, 0.001),
    ("WALL_DAMPING", "Wall Damping",  0.10,  1.0,   0.01),
    ("RESTITUTION",  "Restitution",   0.10,  1.0,   0.01),
    ("REST_SPEED",   "Rest Speed",    0.01,  1.0,   0.01),
]

PARAM_DEFAULTS = {attr: getattr(_phys, attr) for attr, *_ in PHYSICS_PARAMS}

# ── Async game loop ─────────────────────────────────────────────────────────

TARGET_FPS = 60
FRAME_DT = 1.0 / TARGET_FPS


async def game_loop():
    """Main game loop running at ~60 fps."""
    last_time = time.perf_counter()

    while True:
        now = time.perf_counter()
        dt = now - last_time
        last_time = now

        # Clamp dt to avoid spiral-of-death
        if dt > 0.05:
            dt = 0.05

        ctrl.step(dt)

        if clients:
            frame_msg = _build_frame_message()
            dead: list[WebSocket] = []
            for ws in clients:
                try:
                    await ws.send_text(frame_msg)
                except Exception:
                    dead.append(ws)
            for ws in dead:
                if ws in clients:
                    clients.remove(ws)
                    logger.debug("[SERVER] dropped dead client")

        # Sleep to maintain target FPS
        elapsed = time.perf_counter() - now
        sleep_time = FRAME_DT - elapsed
        if sleep_time > 0:
            await asyncio.sleep(sleep_time)
        else:
            await asyncio.sleep(0)


def _build_frame_message() -> str:
    """Serialize current state into a JSON frame message."""
    events = list(ctrl.pending_events)
    ctrl.pending_events.clear()

    sounds = []
    for ev in ctrl.physics_events:
        sounds.append({
            "type": ev.get("type", ""),
            "speed": round(float(ev.get("speed", 0.0)), 3),
        })

    frame = {
        "type": "frame",
        "state": ctrl.snapshot(),
        "events": events,
        "sounds": sounds,
    }
    return json.dumps(frame, separators=(',', ':'))


def _get_params_data() -> list:
    """Return all physics params with current values."""
    result = []
    for attr, label, mn, mx, step in PHYSICS_PARAMS:
        result.append({
            "attr": attr, "label": label,
            "value": round(getattr(_phys, attr), 6),
            "min": mn, "max": mx, "step": step,
        })
    return result


def _point(msg: dict):
    return [float(msg.get("x", 0.0)), float(msg.get("y", 0.0))]


async def _handle_command(ws: WebSocket, msg: dict) -> None:
    """Dispatch one client command. Unknown commands are ignored."""
    cmd = msg.get("cmd", "")
    if cmd == "new_match":
        try:
            match_config = MatchConfig.from_dict(msg.get("config", {}))
        except ConfigError as exc:
            logger.warning("[SERVER] rejected match config: %s", exc)
            await ws.send_text(json.dumps({"type": "error", "message": str(exc)}))
            return
        ctrl.new_match(match_config)
    elif cmd == "rematch":
        ctrl.rematch()
    elif cmd == "exit":
        ctrl.exit_match()
    elif cmd == "place":
        ctrl.set_striker_placement(float(msg.get("value", 0.5)))
    elif cmd == "shot":
        ctrl.submit_shot([float(msg.get("vx", 0.0)), float(msg.get("vy", 0.0))])
    elif cmd == "pointer_down":
        ctrl.pointer_down(_point(msg))
    elif cmd == "pointer_move":
        ctrl.pointer_move(_point(msg))
    elif cmd == "pointer_up":
        ctrl.pointer_up()
    elif cmd == "scenario":
        entry = SCENARIOS.get(str(msg.get("key", "")))
        if entry is not None:
            ctrl.load_scenario(*entry)
    elif cmd == "get_params":
        await ws.send_text(json.dumps({"type": "params", "data": _get_params_data()}))
    elif cmd == "adjust_param":
        idx = int(msg.get("index", 0))
        direction = int(msg.get("direction", 0))
        fine = msg.get("fine", False)
        if 0 <= idx < len(PHYSICS_PARAMS):
            attr, label, mn, mx, step = PHYSICS_PARAMS[idx]
            s = step / 10.0 if fine else step
            cur = getattr(_phys, attr)
            new_val = max(mn, min(mx, cur + direction * s))
            setattr(_phys, attr, new_val)
            await ws.send_text(json.dumps({
                "type": "param_update",
                "index": idx,
                "value": round(new_val, 6),
            }))
    elif cmd == "reset_params":
        for attr, dflt in PARAM_DEFAULTS.items():
            setattr(_phys, attr, dflt)
        await ws.send_text(json.dumps({"type": "params", "data": _get_params_data()}))


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    clients.append(ws)

    # Send init message with board constants
    await ws.send_text(json.dumps({
        "type": "init",
        "board_size": BOARD_SIZE,
        "pocket_radius": POCKET_RADIUS,
        "coin_radius": COIN_RADIUS,
        "striker_radius": STRIKER_RADIUS,
        "pockets": _phys.pocket_centers(BOARD_SIZE).tolist(),
        "state": ctrl.snapshot(),
    }))

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue
            try:
                await _handle_command(ws, msg)
            except (TypeError, ValueError) as exc:
                logger.debug("[SERVER] bad command %r: %s", msg.get("cmd"), exc)
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)


# ── HTTP routes ─────────────────────────────────────────────────────────────

@app.get("/state")
async def state():
    return ctrl.snapshot()


@app.get("/params")
async def params():
    return _get_params_data()


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("server:app", host=config.HOST, port=config.PORT, reload=False)
