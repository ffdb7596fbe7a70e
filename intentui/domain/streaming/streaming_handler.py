from typing import Dict, Callable, Tuple
import asyncio
import structlog

from intentui.application.websocket.connection_manager import ConnectionManager
from intentui.application.websocket.schema.events import DiffEvent, DiffPayload
from intentui.domain.models.ui_state import StateDiff
from intentui.session import UISession

logger = structlog.get_logger(__name__)


class StreamingHandler:
    """Streams state-engine diffs of a session to its WebSocket client"""

    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager
        self.streaming_sessions: Dict[str, Tuple[asyncio.Queue, asyncio.Task, Callable[[], None]]] = {}

    def attach(self, session: UISession):
        """Subscribe to a session and start pumping its diffs"""

        session_id = session.session_id
        if session_id in self.streaming_sessions:
            return

        queue: asyncio.Queue = asyncio.Queue()

        def on_diff(diff: StateDiff):
            # Listeners run synchronously after the batch; snapshot the tree now
            components = [c.to_public() for c in session.get_visible_components()]
            queue.put_nowait(DiffPayload(**diff.model_dump(), components=components))

        unsubscribe = session.subscribe(on_diff)
        task = asyncio.create_task(self._pump(session_id, queue))
        self.streaming_sessions[session_id] = (queue, task, unsubscribe)

        logger.debug("Diff streaming started", session_id=session_id)

    async def _pump(self, session_id: str, queue: asyncio.Queue):
        while True:
            payload = await queue.get()
            try:
                await self.connection_manager.send_event(
                    session_id, DiffEvent(payload=payload, session_id=session_id)
                )
            finally:
                queue.task_done()

    async def flush(self, session_id: str):
        """Wait until every queued diff of the session has been sent"""

        entry = self.streaming_sessions.get(session_id)
        if entry:
            await entry[0].join()

    async def detach(self, session_id: str):
        entry = self.streaming_sessions.pop(session_id, None)
        if entry is None:
            return

        _, task, unsubscribe = entry
        unsubscribe()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.debug("Diff streaming stopped", session_id=session_id)
