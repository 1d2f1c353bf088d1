from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from scoring_api.broadcast import ConnectionManager


class FakeSocket:
    def __init__(self, gate: Optional[asyncio.Event] = None) -> None:
        self.frames: List[Dict[str, Any]] = []
        self.accepted = False
        self.closed_with: Optional[int] = None
        self._gate = gate

    async def accept(self) -> None:
        if self._gate is not None:
            await self._gate.wait()
        self.accepted = True

    async def send_json(self, data: Dict[str, Any]) -> None:
        if not self.accepted:
            raise RuntimeError('WebSocket is not connected. Need to call "accept" first.')
        self.frames.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code


class StalledSocket(FakeSocket):
    """Accepts, then never finishes a send (peer stopped reading)."""

    async def send_json(self, data: Dict[str, Any]) -> None:
        await asyncio.Event().wait()


class BrokenSocket(FakeSocket):
    async def send_json(self, data: Dict[str, Any]) -> None:
        raise ConnectionResetError("peer gone")


async def _until(predicate, timeout: float = 1.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


def _numbers(ws: FakeSocket) -> List[int]:
    return [frame["data"]["n"] for frame in ws.frames]


def test_viewer_connecting_during_publish_keeps_receiving():
    async def scenario():
        manager = ConnectionManager()
        gate = asyncio.Event()
        ws = FakeSocket(gate)

        connecting = asyncio.create_task(manager.connect(ws))
        await asyncio.sleep(0)
        await manager.publish("ballUpdate", {"n": 1})
        gate.set()
        await connecting

        await manager.publish("ballUpdate", {"n": 2})
        await _until(lambda: ws.frames)

        assert manager.connection_count == 1
        assert _numbers(ws) == [2]
        await manager.disconnect(ws)
        assert manager.connection_count == 0

    asyncio.run(scenario())


def test_frames_arrive_in_publish_order():
    async def scenario():
        manager = ConnectionManager()
        ws = FakeSocket()
        await manager.connect(ws)

        for n in range(10):
            await manager.publish("ballUpdate", {"n": n})
        await _until(lambda: len(ws.frames) == 10)

        assert _numbers(ws) == list(range(10))
        assert ws.frames[0]["event"] == "ballUpdate"
        await manager.disconnect(ws)

    asyncio.run(scenario())


def test_stalled_viewer_does_not_hold_up_publisher_or_others():
    async def scenario():
        manager = ConnectionManager(queue_size=2)
        stalled = StalledSocket()
        healthy = FakeSocket()
        await manager.connect(stalled)
        await manager.connect(healthy)

        for n in range(4):
            await asyncio.wait_for(manager.publish("ballUpdate", {"n": n}), 0.5)
            await asyncio.sleep(0.01)

        await _until(lambda: stalled.closed_with is not None)
        assert stalled.closed_with == 1008
        assert manager.connection_count == 1
        assert _numbers(healthy) == [0, 1, 2, 3]
        await manager.disconnect(healthy)

    asyncio.run(scenario())


def test_failed_send_drops_viewer():
    async def scenario():
        manager = ConnectionManager()
        broken = BrokenSocket()
        await manager.connect(broken)
        await manager.join(broken, "M001")

        await manager.publish("matchStarted", {"n": 1})
        await _until(lambda: manager.connection_count == 0)
        assert manager.room_members("M001") == 0

    asyncio.run(scenario())


def test_join_and_leave_rooms():
    async def scenario():
        manager = ConnectionManager()
        ws = FakeSocket()
        await manager.connect(ws)

        await manager.handle_message(ws, {"action": "joinMatch", "matchId": "M001"})
        assert manager.room_members("M001") == 1
        await manager.handle_message(ws, {"action": "joinMatch"})
        await manager.handle_message(ws, {"action": "leaveMatch", "matchId": "M001"})
        assert manager.room_members("M001") == 0
        await manager.disconnect(ws)

    asyncio.run(scenario())
