import logging
from typing import Dict, Set

from fastapi import WebSocket

logger = logging.getLogger("fleet.realtime")


class WSManager:
    """Websocket rooms keyed by driver id."""

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = {}

    async def connect(self, room: str, ws: WebSocket):
        await ws.accept()
        self.rooms.setdefault(room, set()).add(ws)

    def disconnect(self, room: str, ws: WebSocket):
        if room in self.rooms:
            self.rooms[room].discard(ws)
            if not self.rooms[room]:
                self.rooms.pop(room, None)

    async def broadcast(self, room: str, message: dict):
        for ws in list(self.rooms.get(room, set())):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.warning("Dropping subscriber on %s: %s", room, e)
                self.disconnect(room, ws)

manager = WSManager()
