"""
In-memory registry of live chat connections, keyed by team id.

Subscriptions are per process and vanish on restart; the messages
themselves are persisted by chat_service and refetched over REST.
"""

import json
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from felicity.core.logging import get_logger

logger = get_logger(__name__)


def frame(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, default=str)


class ChatHub:
    def __init__(self):
        self.rooms: Dict[int, Set[WebSocket]] = {}

    def join(self, websocket: WebSocket, team_id: int) -> None:
        self.rooms.setdefault(team_id, set()).add(websocket)

    def leave(self, websocket: WebSocket, team_id: int) -> None:
        room = self.rooms.get(team_id)
        if room is None:
            return
        room.discard(websocket)
        if not room:
            del self.rooms[team_id]

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a connection from every room it joined."""
        for team_id in list(self.rooms):
            self.leave(websocket, team_id)

    def is_subscribed(self, websocket: WebSocket, team_id: int) -> bool:
        return websocket in self.rooms.get(team_id, set())

    def room_size(self, team_id: int) -> int:
        return len(self.rooms.get(team_id, ()))

    async def broadcast(
        self,
        team_id: int,
        event: str,
        data: Any,
        exclude: Optional[WebSocket] = None,
    ) -> int:
        """Fan a frame out to the room. Connections that fail to receive it are dropped."""
        message = frame(event, data)
        delivered = 0
        for connection in list(self.rooms.get(team_id, ())):
            if connection is exclude:
                continue
            try:
                await connection.send_text(message)
                delivered += 1
            except Exception as e:
                logger.warning("chat_delivery_failed", team_id=team_id, error=str(e))
                self.leave(connection, team_id)
        return delivered


hub = ChatHub()
