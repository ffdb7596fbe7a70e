"""
Per-session wiring of the fact store, reference memory, state engine and orchestrator
"""
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timedelta
from functools import lru_cache
import uuid

from intentui.domain.components.component_registry import ComponentRegistry
from intentui.domain.context.memory.fact_store import FactStore
from intentui.domain.context.memory.intent_memory import ReferenceMemory
from intentui.domain.context.state.state_engine import UIStateEngine
from intentui.domain.models.ui_state import ComponentDescriptor, EditBatchResult, StateDiff, utcnow
from intentui.domain.orchestration.core.orchestrator import UIOrchestrator
from intentui.domain.orchestration.policy.base_policy import DecisionPolicy
from intentui.domain.orchestration.policy.rule_based_policy import RuleBasedPolicy
from intentui.domain.suggestion.suggestion_engine import SuggestionEngine
from intentui.infrastructure.config.settings import Settings, get_settings


class UISession:
    """One user's interface state and everything that mutates it"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        policy: Optional[DecisionPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        session_id: Optional[str] = None
    ):
        settings = settings or get_settings()

        self.session_id = session_id or str(uuid.uuid4())
        self.created_at = utcnow()

        self.facts = FactStore(clock=clock)
        self.memory = ReferenceMemory(
            max_intents=settings.intent_max_count,
            max_age=timedelta(seconds=settings.intent_max_age_seconds),
            clock=clock,
        )
        self.state_engine = UIStateEngine()
        self.registry = ComponentRegistry()
        self.suggestion_engine = SuggestionEngine(
            min_confidence=settings.suggestion_min_confidence,
            max_suggestions=settings.suggestion_max_count,
            display_threshold=settings.suggestion_display_threshold,
        )
        self.orchestrator = UIOrchestrator(
            state_engine=self.state_engine,
            facts=self.facts,
            memory=self.memory,
            registry=self.registry,
            policy=policy or RuleBasedPolicy(),
            suggestion_engine=self.suggestion_engine,
            policy_timeout=settings.policy_timeout_seconds,
            suggestion_bar_order=settings.suggestion_bar_order,
        )

    async def process_user_input(self, text: str) -> EditBatchResult:
        return await self.orchestrator.process_user_input(text)

    async def handle_form_submission(self, values: Dict[str, Any]) -> EditBatchResult:
        return await self.orchestrator.handle_form_submission(values)

    async def confirm_destructive_action(self, dialog_id: str) -> EditBatchResult:
        return await self.orchestrator.confirm_destructive_action(dialog_id)

    async def cancel_destructive_action(self, dialog_id: str) -> EditBatchResult:
        return await self.orchestrator.cancel_destructive_action(dialog_id)

    def dismiss_suggestions(self) -> Optional[StateDiff]:
        return self.orchestrator.dismiss_suggestions()

    def subscribe(self, listener: Callable[[StateDiff], None]) -> Callable[[], None]:
        return self.orchestrator.subscribe(listener)

    def get_visible_components(self) -> List[ComponentDescriptor]:
        return self.orchestrator.get_visible_components()

    def get_component(self, component_id: str) -> Optional[ComponentDescriptor]:
        return self.orchestrator.get_component(component_id)

    def fact_source_summary(self) -> Dict[str, int]:
        return self.orchestrator.fact_source_summary()

    def get_info(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "version": self.state_engine.version,
            "components": len(self.state_engine.get_state()),
            "policy": self.orchestrator.policy.get_info(),
        }


def create_session(
    settings: Optional[Settings] = None,
    policy: Optional[DecisionPolicy] = None,
    clock: Optional[Callable[[], datetime]] = None
) -> UISession:
    return UISession(settings=settings, policy=policy, clock=clock)


@lru_cache()
def get_default_session() -> UISession:
    """Process-wide session for top-level wiring only; code paths take a session explicitly"""
    return create_session()
