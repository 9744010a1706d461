from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Dict, List, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import SimulationConfig
from ..sim.core.environment import Environment
from ..sim.core.errors import InvalidConfiguration

logger = logging.getLogger(__name__)

_MAX_SPAWN_PER_REQUEST = 500
# Unacknowledged snapshots kept for slow clients; older ones are dropped.
_MAX_QUEUED_SNAPSHOTS = 120


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    """Drives an Environment on the event loop and fans snapshots out to websocket clients.

    Ticks, spawns and removals all take the same lock, so population changes
    land between ticks.
    """

    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1):
        self.config = config
        self.world = Environment(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.running = False
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque(maxlen=_MAX_QUEUED_SNAPSHOTS)
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._broadcast_task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.world.tick_count

    async def start(self) -> None:
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._loop())
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def reset(self) -> None:
        async with self._lock:
            self.world.reset()
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def spawn(self, count: int) -> List[int]:
        async with self._lock:
            return self.world.spawn(count)

    async def remove_near(self, x: float, y: float, radius: float) -> int:
        async with self._lock:
            return self.world.remove_near((x, y), radius)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.time_step / self.speed_multiplier)
            if not self.running:
                continue
            async with self._lock:
                self.world.tick()
            if self.tick % self.broadcast_interval == 0:
                await self._broadcast_snapshot()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.world.snapshot()
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": {
                "tick": snapshot.tick,
                "metrics": asdict(snapshot.metrics),
                "agents": snapshot.agents,
                "world": asdict(snapshot.world),
                "metadata": asdict(snapshot.metadata),
            },
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                stale.add(client)
        for client in stale:
            logger.info("dropping disconnected client")
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


def create_app(controller: SimulationController) -> FastAPI:
    app = FastAPI(title="Fish Tank Flocking Simulation")

    @app.on_event("startup")
    async def _startup() -> None:
        await controller.start()

    @app.get("/api/status")
    async def status() -> JSONResponse:
        snapshot = controller.world.snapshot()
        return JSONResponse(
            {
                "running": controller.running,
                "tick": controller.tick,
                "population": len(controller.world),
                "bounds": list(controller.world.bounds),
                "metrics": asdict(snapshot.metrics),
            }
        )

    @app.post("/api/control/start")
    async def start_simulation() -> JSONResponse:
        controller.running = True
        return JSONResponse({"running": True})

    @app.post("/api/control/stop")
    async def stop_simulation() -> JSONResponse:
        controller.running = False
        return JSONResponse({"running": False})

    @app.post("/api/control/reset")
    async def reset_simulation() -> JSONResponse:
        await controller.reset()
        return JSONResponse({"running": controller.running, "tick": controller.tick})

    @app.post("/api/control/speed")
    async def set_speed(payload: dict) -> JSONResponse:
        speed = float(payload.get("multiplier", 1.0))
        controller.speed_multiplier = max(0.1, min(5.0, speed))
        return JSONResponse({"multiplier": controller.speed_multiplier})

    @app.post("/api/control/spawn")
    async def spawn_fish(payload: dict) -> JSONResponse:
        count = payload.get("count", 1)
        if not isinstance(count, int) or count > _MAX_SPAWN_PER_REQUEST:
            return JSONResponse({"error": f"count must be an integer up to {_MAX_SPAWN_PER_REQUEST}"}, status_code=400)
        try:
            ids = await controller.spawn(count)
        except InvalidConfiguration as exc:
            return JSONResponse({"error": str(exc)}, status_code=400)
        return JSONResponse({"spawned": ids, "population": len(controller.world)})

    @app.post("/api/control/remove")
    async def remove_fish(payload: dict) -> JSONResponse:
        try:
            x = float(payload["x"])
            y = float(payload["y"])
            radius = float(payload.get("radius", 0.5))
        except (KeyError, TypeError, ValueError):
            return JSONResponse({"error": "x and y are required numbers"}, status_code=400)
        removed = await controller.remove_near(x, y, radius)
        return JSONResponse({"removed": removed, "population": len(controller.world)})

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        controller.clients.add(websocket)
        controller._client_last_sent[websocket] = -1
        await controller._send_pending_snapshots(websocket)
        try:
            while True:
                message = await websocket.receive_text()
                try:
                    payload = json.loads(message)
                except json.JSONDecodeError:
                    continue
                if payload.get("type") == "ack":
                    tick = payload.get("tick")
                    if isinstance(tick, int):
                        await controller.acknowledge(tick)
        except WebSocketDisconnect:
            controller.clients.discard(websocket)
            controller._client_last_sent.pop(websocket, None)

    return app


controller = SimulationController(SimulationConfig())
app = create_app(controller)


__all__ = ["app", "controller", "create_app", "SimulationController"]
