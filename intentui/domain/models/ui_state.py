from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FactSource(str, Enum):
    """Provenance of a fact value"""
    SAMPLE = "sample"
    USER = "user"
    DERIVED = "derived"


class ComponentDescriptor(BaseModel):
    """A single component instance in the UI tree"""
    id: str = Field(description="Unique, stable component identifier")
    type: str = Field(description="Component type tag, selects a renderer")
    props: Dict[str, Any] = Field(default_factory=dict)
    visible: bool = Field(default=True)
    order: Optional[float] = Field(None, description="Render sequence; ties broken by insertion")

    def copy_out(self) -> "ComponentDescriptor":
        """Detached copy handed to callers so the engine's instance is never shared"""
        return self.model_copy(update={"props": dict(self.props)})

    def public_props(self) -> Dict[str, Any]:
        """Props without attached callbacks, safe to serialize"""
        return {key: value for key, value in self.props.items() if not callable(value)}

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "props": self.public_props(),
            "visible": self.visible,
            "order": self.order,
        }


class StateDiff(BaseModel):
    """Ids touched by one dispatch"""
    added: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)
    updated: List[str] = Field(default_factory=list)
    visibility_changed: List[str] = Field(default_factory=list)
    version: int = 0

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.updated or self.visibility_changed)

    def extend(self, other: "StateDiff"):
        self.added.extend(other.added)
        self.removed.extend(other.removed)
        self.updated.extend(other.updated)
        self.visibility_changed.extend(other.visibility_changed)

    def summary(self) -> str:
        parts = []
        for label, ids in (
            ("added", self.added),
            ("removed", self.removed),
            ("updated", self.updated),
            ("visibility", self.visibility_changed),
        ):
            if ids:
                parts.append(f"{label}: {', '.join(ids)}")
        return "; ".join(parts)


class FactEntry(BaseModel):
    """A fact value with its provenance"""
    value: Any = None
    source: FactSource
    timestamp: datetime = Field(default_factory=utcnow)


class IntentRecord(BaseModel):
    """One recorded user submission and the components it affected"""
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    raw_input: str
    intent_type: str
    affected_component_ids: List[str] = Field(default_factory=list)
    data: Optional[Dict[str, Any]] = None


class ComponentReference(BaseModel):
    """A named alias pointing at a component id"""
    key: str
    component_id: str
    timestamp: datetime
    description: Optional[str] = None


class Suggestion(BaseModel):
    """A follow-up action candidate"""
    label: str
    input_text: str
    confidence: float = Field(ge=0.0, le=1.0)
    reason: Optional[str] = None


class ComponentRef(BaseModel):
    """Resolved reference handed to the decision policy"""
    type: str
    id: str


class PropsUpdate(BaseModel):
    id: str
    props: Dict[str, Any] = Field(default_factory=dict)


class ComponentDecision(BaseModel):
    id: str
    type: str
    reason: str
    confidence: Optional[float] = None


class DebugInfo(BaseModel):
    """Reasoning trace of one policy decision"""
    reasoning: str = ""
    decisions: List[ComponentDecision] = Field(default_factory=list)
    error: Optional[str] = None


class PolicyRequest(BaseModel):
    """Input of a decision policy"""
    text: str
    referenced_component: Optional[ComponentRef] = None


class PolicyResponse(BaseModel):
    """Required response shape of a decision policy"""
    render: List[ComponentDescriptor] = Field(default_factory=list)
    remove: List[str] = Field(default_factory=list)
    update: List[PropsUpdate] = Field(default_factory=list)
    notes: str = ""
    intent_type: str = Field(default="ui_orchestration", description="Classification recorded with the intent")
    debug: Optional[DebugInfo] = None


class EditBatchResult(BaseModel):
    """Caller-facing outcome of one processed intent"""
    render: List[ComponentDescriptor] = Field(default_factory=list)
    remove: List[str] = Field(default_factory=list)
    update: List[PropsUpdate] = Field(default_factory=list)
    suggestions: List[Suggestion] = Field(default_factory=list)
    diff: StateDiff = Field(default_factory=StateDiff)
    intent_id: Optional[str] = None
    debug: Optional[DebugInfo] = None

    def to_public(self) -> Dict[str, Any]:
        return {
            "render": [component.to_public() for component in self.render],
            "remove": list(self.remove),
            "update": [
                {"id": item.id, "props": {k: v for k, v in item.props.items() if not callable(v)}}
                for item in self.update
            ],
            "suggestions": [suggestion.model_dump() for suggestion in self.suggestions],
            "diff": self.diff.model_dump(),
            "intent_id": self.intent_id,
            "debug": self.debug.model_dump() if self.debug else None,
        }
