from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

from intentui.domain.models.ui_state import utcnow


class EventType(str, Enum):
    """WebSocket event types"""
    DIFF = "diff"
    BATCH_RESULT = "batch_result"
    ERROR = "error"
    CONNECTION = "connection"
    USER_MESSAGE = "user_message"
    FORM_SUBMIT = "form_submit"
    DIALOG_ACTION = "dialog_action"


class BaseEvent(BaseModel):
    """Base event model for all WebSocket messages"""
    type: EventType
    timestamp: datetime = Field(default_factory=utcnow)
    session_id: Optional[str] = None


# Server -> client

class DiffPayload(BaseModel):
    """One state-engine notification plus the visible tree it produced"""
    version: int
    added: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)
    updated: List[str] = Field(default_factory=list)
    visibility_changed: List[str] = Field(default_factory=list)
    components: List[Dict[str, Any]] = Field(default_factory=list)


class DiffEvent(BaseEvent):
    type: Literal[EventType.DIFF] = EventType.DIFF
    payload: DiffPayload


class BatchResultEvent(BaseEvent):
    """Outcome of one processed client event"""
    type: Literal[EventType.BATCH_RESULT] = EventType.BATCH_RESULT
    payload: Dict[str, Any]


class ErrorEvent(BaseEvent):
    """Error event"""
    type: Literal[EventType.ERROR] = EventType.ERROR
    payload: Dict[str, Any]
    error_code: Optional[str] = None


class ConnectionEvent(BaseEvent):
    """Connection status event"""
    type: Literal[EventType.CONNECTION] = EventType.CONNECTION
    status: Literal["connected", "disconnected"]


# Client -> server

class UserMessage(BaseEvent):
    """Free-form user text"""
    type: Literal[EventType.USER_MESSAGE] = EventType.USER_MESSAGE
    content: str


class FormSubmitEvent(BaseEvent):
    """Values submitted from an InputForm"""
    type: Literal[EventType.FORM_SUBMIT] = EventType.FORM_SUBMIT
    form_id: Optional[str] = None
    values: Dict[str, Any] = Field(default_factory=dict)


class DialogActionEvent(BaseEvent):
    """Confirm or cancel on a GuardrailModal"""
    type: Literal[EventType.DIALOG_ACTION] = EventType.DIALOG_ACTION
    dialog_id: str
    action: Literal["confirm", "cancel"]
