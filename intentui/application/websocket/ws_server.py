from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import Dict, Any, Optional
from pydantic import ValidationError
import structlog

from intentui.domain.errors import OrchestratorBusyError
from intentui.domain.models.ui_state import EditBatchResult
from intentui.domain.streaming.streaming_handler import StreamingHandler
from intentui.session import UISession
from .schema.events import (
    BatchResultEvent, DialogActionEvent, EventType, FormSubmitEvent, UserMessage,
)

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.websocket("/ws/sessions/{session_id}")
async def session_websocket(websocket: WebSocket, session_id: str):
    """Streams diffs of a session and accepts intents, form values and dialog actions"""

    session = websocket.app.state.sessions.get(session_id)
    if session is None:
        await websocket.close(code=1008, reason="Unknown session")
        return

    connection_manager = websocket.app.state.connections
    streaming_handler: StreamingHandler = websocket.app.state.streaming

    if connection_manager.is_connected(session_id):
        await websocket.close(code=1008, reason="Session already connected")
        return

    structlog.contextvars.bind_contextvars(session_id=session_id)
    await connection_manager.connect(websocket, session_id)
    streaming_handler.attach(session)

    try:
        while True:
            data = await websocket.receive_json()

            try:
                result = await handle_client_event(session, data)
            except ValidationError as e:
                await connection_manager.send_error(
                    session_id, f"Invalid event: {e.error_count()} validation errors", "invalid_event"
                )
                continue
            except OrchestratorBusyError as e:
                await connection_manager.send_error(session_id, str(e), "busy")
                continue

            if result is None:
                await connection_manager.send_error(
                    session_id, f"Unsupported event type: {data.get('type')}", "unsupported_event"
                )
                continue

            await streaming_handler.flush(session_id)
            await connection_manager.send_event(
                session_id,
                BatchResultEvent(payload=result.to_public(), session_id=session_id)
            )

    except WebSocketDisconnect:
        logger.info("Client disconnected", session_id=session_id)
        await connection_manager.disconnect(session_id, close=False)
    finally:
        await streaming_handler.detach(session_id)
        if connection_manager.is_connected(session_id):
            await connection_manager.disconnect(session_id)


async def handle_client_event(session: UISession, data: Dict[str, Any]) -> Optional[EditBatchResult]:
    """Route one client event to the session; None when the type is not handled"""

    event_type = data.get("type")

    if event_type == EventType.USER_MESSAGE:
        message = UserMessage(**_fields(data))
        return await session.process_user_input(message.content)

    if event_type == EventType.FORM_SUBMIT:
        form = FormSubmitEvent(**_fields(data))
        logger.info("Form submitted", session_id=session.session_id, form_id=form.form_id)
        return await session.handle_form_submission(form.values)

    if event_type == EventType.DIALOG_ACTION:
        action = DialogActionEvent(**_fields(data))
        if action.action == "confirm":
            return await session.confirm_destructive_action(action.dialog_id)
        return await session.cancel_destructive_action(action.dialog_id)

    return None


def _fields(data: Dict[str, Any]) -> Dict[str, Any]:
    # the event class fixes "type" itself
    return {key: value for key, value in data.items() if key != "type"}
