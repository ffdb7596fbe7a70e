from typing import Dict, List, Any, Optional, Tuple
import structlog

from intentui.domain.components.component_registry import ComponentRegistry
from intentui.domain.models.ui_state import ComponentRef
from intentui.domain.orchestration.policy.base_policy import PolicyContext
from .memory.fact_store import FactStore
from .memory.intent_memory import ReferenceMemory
from .state.state_engine import UIStateEngine

logger = structlog.get_logger(__name__)

CONTEXT_FACT_KEYS = [
    "salary.lastMonth",
    "salary.currentMonth",
    "salary.change",
    "salary.changePercent",
    "salary.trend",
]


class ContextManager:
    """Assembles what the decision policy sees for one intent"""

    def __init__(
        self,
        state_engine: UIStateEngine,
        facts: FactStore,
        memory: ReferenceMemory,
        registry: ComponentRegistry
    ):
        self.state_engine = state_engine
        self.facts = facts
        self.memory = memory
        self.registry = registry

    def resolve_references(self, user_input: str) -> Tuple[str, Optional[ComponentRef]]:
        """Annotate the input with the component it refers to, if any"""

        state = self.state_engine.get_state()
        type_to_id = self.registry.type_aliases(list(state.values()))

        resolved_ids = self.memory.resolve_references_in_text(user_input, type_to_id)
        for component_id in resolved_ids:
            component = state.get(component_id)
            if component is None:
                continue
            logger.debug("Resolved reference", component_id=component_id, component_type=component.type)
            reference = ComponentRef(type=component.type, id=component.id)
            return f"{user_input} [referencing: {component.type} id:{component.id}]", reference

        return user_input, None

    def build_context(self, user_input: str) -> PolicyContext:
        """Build the policy context from the tree, the facts and the memory"""

        visible = self.state_engine.get_visible_components()
        memory_context = self.memory.get_context()

        return PolicyContext(
            visible_components=visible,
            facts=self.facts,
            memory=memory_context,
            summary=self.describe(user_input, visible, memory_context),
        )

    def describe(self, user_input: str, visible: List[Any], memory_context: Dict[str, Any]) -> str:
        """Plain-text context for policies that work on prompts"""

        lines = ["CURRENT UI STATE:", f"Visible components ({len(visible)}):"]
        for component in visible:
            lines.append(f"  - {component.id} ({component.type})")

        lines.append("")
        lines.append("AVAILABLE DATA:")
        for key in CONTEXT_FACT_KEYS:
            entry = self.facts.with_source(key)
            if entry is None or entry.value is None:
                lines.append(f"  {key}: NOT SET")
            else:
                lines.append(f"  {key}: {entry.value} ({entry.source.value})")

        if memory_context.get("context_summary"):
            lines.append("")
            lines.append(f"MEMORY: {memory_context['context_summary']}")

        lines.append("")
        lines.append(f'USER INPUT: "{user_input}"')
        return "\n".join(lines)
