# scoring_api/broadcast.py
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Protocol, Set

from fastapi import WebSocket
from loguru import logger

# Push-channel event names (what viewers subscribe to)
MATCH_STARTED = "matchStarted"
INNINGS_CHANGED = "inningsChanged"
BALL_UPDATE = "ballUpdate"
MATCH_ENDED = "matchEnded"
SCORE_UPDATE = "scoreUpdate"


class Broadcaster(Protocol):
    async def publish(self, event: str, payload: Dict[str, Any]) -> None:
        ...


class NullBroadcaster:
    """Drops every event. Used when no push channel is wired in."""

    async def publish(self, event: str, payload: Dict[str, Any]) -> None:
        return None


class ConnectionManager:
    """
    WebSocket fan-out.

    Every connected viewer receives every event. joinMatch/leaveMatch only
    record advisory room membership (see `room_members`).

    Delivery is best-effort and never blocks the publisher: each viewer has a
    bounded outbox drained by its own writer task, so frames reach a viewer in
    publish order. A viewer whose outbox fills up, or whose send fails, is
    dropped and never retried.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._outboxes: Dict[WebSocket, asyncio.Queue] = {}
        self._writers: Dict[WebSocket, asyncio.Task] = {}
        self._rooms: Dict[str, Set[WebSocket]] = {}
        self._closing: Set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._outboxes)

    def room_members(self, match_id: str) -> int:
        return len(self._rooms.get(match_id, ()))

    async def connect(self, websocket: WebSocket) -> None:
        # Only accepted sockets are published to
        await websocket.accept()
        async with self._lock:
            outbox: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
            self._outboxes[websocket] = outbox
            self._writers[websocket] = asyncio.create_task(self._write(websocket, outbox))
        logger.info(f"Viewer connected ({self.connection_count} total)")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._drop(websocket)
        logger.info(f"Viewer disconnected ({self.connection_count} total)")

    async def join(self, websocket: WebSocket, match_id: str) -> None:
        async with self._lock:
            self._rooms.setdefault(match_id, set()).add(websocket)
        logger.debug(f"Viewer joined room match_{match_id}")

    async def leave(self, websocket: WebSocket, match_id: str) -> None:
        async with self._lock:
            members = self._rooms.get(match_id)
            if members is not None:
                members.discard(websocket)
                if not members:
                    self._rooms.pop(match_id, None)
        logger.debug(f"Viewer left room match_{match_id}")

    async def handle_message(self, websocket: WebSocket, message: Dict[str, Any]) -> None:
        action = message.get("action")
        match_id: Optional[str] = message.get("matchId")
        if not match_id:
            return
        if action == "joinMatch":
            await self.join(websocket, str(match_id))
        elif action == "leaveMatch":
            await self.leave(websocket, str(match_id))

    async def publish(self, event: str, payload: Dict[str, Any]) -> None:
        frame = {"event": event, "data": payload}
        slow: List[WebSocket] = []
        async with self._lock:
            for ws, outbox in self._outboxes.items():
                try:
                    outbox.put_nowait(frame)
                except asyncio.QueueFull:
                    slow.append(ws)
            for ws in slow:
                logger.warning(f"Dropping viewer with {self.queue_size} undelivered events")
                self._drop(ws)

        for ws in slow:
            task = asyncio.create_task(self._close(ws))
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

    async def _write(self, websocket: WebSocket, outbox: asyncio.Queue) -> None:
        while True:
            frame = await outbox.get()
            try:
                await websocket.send_json(frame)
            except Exception as e:
                logger.warning(f"Dropping viewer after failed {frame['event']} send: {e}")
                async with self._lock:
                    self._drop(websocket)
                return

    async def _close(self, websocket: WebSocket) -> None:
        try:
            await websocket.close(code=1008)
        except Exception as e:
            logger.debug(f"Close of dropped viewer failed: {e}")

    def _drop(self, websocket: WebSocket) -> None:
        self._outboxes.pop(websocket, None)
        writer = self._writers.pop(websocket, None)
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()
        for match_id in list(self._rooms):
            self._rooms[match_id].discard(websocket)
            if not self._rooms[match_id]:
                del self._rooms[match_id]
