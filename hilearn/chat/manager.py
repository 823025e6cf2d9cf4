import asyncio
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Registry of live sockets keyed by user id.

    Each user id is a room: every socket a user has open (one per tab or
    device) receives whatever is emitted to that user.
    """

    def __init__(self):
        self.rooms: Dict[int, Set[WebSocket]] = {}
        self.lock = asyncio.Lock()

    async def join(self, user_id: int, websocket: WebSocket) -> None:
        async with self.lock:
            self.rooms.setdefault(user_id, set()).add(websocket)

    async def leave(self, user_id: int, websocket: WebSocket) -> None:
        async with self.lock:
            sockets = self.rooms.get(user_id)
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                del self.rooms[user_id]

    def connection_count(self, user_id: int) -> int:
        return len(self.rooms.get(user_id, ()))

    async def emit(self, user_id: int, event: str, data: Any) -> int:
        """Send an event to every socket in a user's room. Returns how many sockets got it."""
        async with self.lock:
            targets = list(self.rooms.get(user_id, ()))

        if not targets:
            return 0

        frame = {"event": event, "data": data}
        results = await asyncio.gather(
            *(websocket.send_json(frame) for websocket in targets),
            return_exceptions=True,
        )

        delivered = 0
        for websocket, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning("Dropping dead socket for user %s: %s", user_id, result)
                await self.leave(user_id, websocket)
            else:
                delivered += 1
        return delivered


manager = ConnectionManager()
