import logging
from typing import Dict, List

from fastapi import WebSocket


logger = logging.getLogger(__name__)


class ConnectionManager:
    """Live websockets per participant, local to this worker process."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, participant_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.setdefault(participant_id, []).append(websocket)

    def disconnect(self, participant_id: str, websocket: WebSocket) -> None:
        sockets = self.active_connections.get(participant_id)
        if sockets is None:
            return
        if websocket in sockets:
            sockets.remove(websocket)
        if not sockets:
            del self.active_connections[participant_id]

    def is_connected(self, participant_id: str) -> bool:
        return bool(self.active_connections.get(participant_id))

    async def send_personal_message(self, participant_id: str, message: str) -> int:
        """Send to every socket of the participant; returns how many got it.

        A socket whose send fails is closed on the client side already and is
        dropped from the registry.
        """
        sent = 0
        for conn in list(self.active_connections.get(participant_id, [])):
            try:
                await conn.send_text(message)
            except Exception:
                logger.info("Dropping dead socket for %s", participant_id, exc_info=True)
                self.disconnect(participant_id, conn)
                continue
            sent += 1
        return sent


manager = ConnectionManager()
