from typing import Dict, Set, Optional
from dataclasses import dataclass, field
from datetime import datetime
from fastapi import WebSocket
import asyncio
import structlog

from intentui.domain.models.ui_state import utcnow
from .schema.events import BaseEvent, ConnectionEvent, ErrorEvent

logger = structlog.get_logger(__name__)


@dataclass
class Connection:
    websocket: WebSocket
    connected_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)


class ConnectionManager:
    """One WebSocket per UI session; sends typed events to it"""

    def __init__(self):
        self.connections: Dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, session_id: str):
        await websocket.accept()

        async with self._lock:
            self.connections[session_id] = Connection(websocket=websocket)

        await self.send_event(session_id, ConnectionEvent(status="connected", session_id=session_id))
        logger.info("WebSocket connected", session_id=session_id)

    async def disconnect(self, session_id: str, close: bool = True):
        """Forget a connection, closing the socket unless the client already did"""

        async with self._lock:
            connection = self.connections.pop(session_id, None)

        if connection is not None and close:
            await self._close(session_id, connection.websocket)
        logger.info("WebSocket disconnected", session_id=session_id)

    async def _close(self, session_id: str, websocket: WebSocket):
        try:
            await websocket.close()
        except Exception as e:
            logger.error("Error closing WebSocket", session_id=session_id, error=str(e))

    async def send_event(self, session_id: str, event: BaseEvent) -> bool:
        connection = self.connections.get(session_id)
        if connection is None:
            logger.warning("Attempted to send to disconnected session", session_id=session_id)
            return False

        try:
            await connection.websocket.send_json(event.model_dump(mode="json"))
        except Exception as e:
            logger.error("Failed to send event", session_id=session_id, event_type=event.type.value, error=str(e))
            await self.disconnect(session_id)
            return False

        connection.last_activity = utcnow()
        return True

    async def send_error(self, session_id: str, error_message: str, error_code: Optional[str] = None):
        await self.send_event(
            session_id,
            ErrorEvent(payload={"message": error_message}, error_code=error_code, session_id=session_id)
        )

    def is_connected(self, session_id: str) -> bool:
        return session_id in self.connections

    def get_active_sessions(self) -> Set[str]:
        return set(self.connections)
