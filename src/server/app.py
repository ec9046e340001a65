from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import random
from dataclasses import asdict
from typing import List, Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from elevator_bank import BankConfig, Dispatcher, EventKind, RideRequest


class RideRequestIn(BaseModel):
    origin: int
    destination: int
    has_credential: bool = False


class BankManager:
    def __init__(
        self,
        config: Optional[BankConfig] = None,
        elevator_count: int = 4,
        initial_floors: Optional[List[int]] = None,
        tick_interval: float = 0.25,
        random_seed: Optional[int] = None,
    ) -> None:
        self.config = config or BankConfig()
        if initial_floors is None:
            rng = random.Random(random_seed)
            initial_floors = [
                rng.randint(self.config.min_floor, self.config.max_floor) for _ in range(elevator_count)
            ]
        self.dispatcher = Dispatcher.from_config(self.config, initial_floors)
        self.tick_interval = tick_interval
        self.clients: Set[WebSocket] = set()
        self._request_ids = itertools.count(1)
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        # shutdown blocks for up to the grace period
        await asyncio.to_thread(self.dispatcher.shutdown)

    async def _run(self) -> None:
        while True:
            await self.broadcast(self.current_state())
            await asyncio.sleep(self.tick_interval)

    async def broadcast(self, payload: dict) -> None:
        message = json.dumps(payload)
        disconnected: Set[WebSocket] = set()
        for client in set(self.clients):
            try:
                await client.send_text(message)
            except (WebSocketDisconnect, RuntimeError):
                disconnected.add(client)
        for client in disconnected:
            await self.unregister(client)

    async def register(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.clients.add(websocket)
        await websocket.send_text(json.dumps(self.current_state()))

    async def unregister(self, websocket: WebSocket) -> None:
        if websocket in self.clients:
            self.clients.remove(websocket)
        with contextlib.suppress(Exception):
            await websocket.close()

    def current_state(self) -> dict:
        return {
            "closed": self.dispatcher.closed,
            "elevators": [
                {
                    "id": elevator.elevator_id,
                    "floor": elevator.current_floor,
                    "busy": elevator.is_busy(),
                }
                for elevator in self.dispatcher.elevators
            ],
            "counts": asdict(self.dispatcher.events.snapshot()),
        }

    async def submit(self, origin: int, destination: int, has_credential: bool) -> dict:
        self.config.check_floor(origin)
        self.config.check_floor(destination)
        request = RideRequest(
            request_id=next(self._request_ids),
            origin=origin,
            destination=destination,
            has_credential=has_credential,
        )
        # submit can block on a saturated pool
        outcome = await asyncio.to_thread(self.dispatcher.submit, request)
        state = self.current_state()
        state["request_id"] = request.request_id
        state["outcome"] = outcome.value
        return state

    def events(self, kind: Optional[str] = None) -> List[dict]:
        event_kind = EventKind(kind) if kind is not None else None
        return [event.to_dict() for event in self.dispatcher.events.events(event_kind)]


def create_app(manager: BankManager) -> FastAPI:
    app = FastAPI(title="Elevator Bank API")
    app.state.manager = manager
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def on_startup() -> None:
        await manager.start()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await manager.stop()

    @app.get("/state")
    async def get_state() -> dict:
        return manager.current_state()

    @app.post("/requests")
    async def submit_request(request: RideRequestIn) -> dict:
        try:
            return await manager.submit(request.origin, request.destination, request.has_credential)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @app.get("/events")
    async def get_events(kind: Optional[str] = None) -> List[dict]:
        try:
            return manager.events(kind)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @app.websocket("/ws/stream")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await manager.register(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            await manager.unregister(websocket)

    return app


app = create_app(BankManager())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.app:app", host="0.0.0.0", port=8000, reload=False)
