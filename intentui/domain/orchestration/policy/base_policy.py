from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime

from intentui.domain.context.memory.fact_store import FactStore
from intentui.domain.models.ui_state import (
    ComponentDecision, ComponentDescriptor, DebugInfo, PolicyRequest, PolicyResponse, utcnow,
)


@dataclass
class PolicyContext:
    """Everything a policy may look at besides the request itself"""
    visible_components: List[ComponentDescriptor]
    facts: FactStore
    memory: Dict[str, Any] = field(default_factory=dict)
    summary: str = ""

    def has_component(self, component_id: str) -> bool:
        return any(c.id == component_id for c in self.visible_components)


class DecisionPolicy(ABC):
    """Strategy that turns a request into an edit batch"""

    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self.created_at = utcnow()
        self.last_active: Optional[datetime] = None

    @abstractmethod
    async def decide(
        self, request: PolicyRequest, context: PolicyContext
    ) -> Union[PolicyResponse, Dict[str, Any]]:
        """Return the edits for a request; dicts are validated against PolicyResponse"""
        pass

    def update_activity(self):
        self.last_active = utcnow()

    def get_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat() if self.last_active else None
        }


def debug_info(reasoning: str, decisions: Optional[List[ComponentDecision]] = None) -> DebugInfo:
    return DebugInfo(reasoning=reasoning, decisions=decisions or [])
