from typing import TypedDict, Annotated, List, Dict, Any, Optional, Callable, Literal
from contextlib import asynccontextmanager
from dataclasses import dataclass, fields
from functools import partial
import asyncio
import operator
import time

from langgraph.graph import StateGraph, END
from langgraph.graph.message import add_messages
from langchain_core.messages import BaseMessage, HumanMessage, AIMessage
from pydantic import ValidationError
import structlog

from intentui.domain.components.component_registry import ComponentRegistry
from intentui.domain.context.context_manager import ContextManager
from intentui.domain.context.memory.fact_store import FactStore, coerce_form_value, map_form_field
from intentui.domain.context.memory.intent_memory import ReferenceMemory
from intentui.domain.context.state.state_engine import UIStateEngine, visible_sorted
from intentui.domain.errors import OrchestratorBusyError, PolicyError
from intentui.domain.models.edits import BatchEdit, hide, remove, render, update
from intentui.domain.models.ui_state import (
    ComponentDescriptor, DebugInfo, EditBatchResult, PolicyRequest, PolicyResponse, StateDiff,
)
from intentui.domain.orchestration.policy.base_policy import DecisionPolicy
from intentui.domain.suggestion.suggestion_engine import SuggestionContext, SuggestionEngine
from intentui.infrastructure.observability.logging import metrics, ui_logger
from .guardrail import DestructiveActionGuard, PendingAction

logger = structlog.get_logger(__name__)

SUGGESTION_BAR_ID = "predictive-actions"
ERROR_STATE_ID = "error-state"

# component type -> {callback slot: handler name}
HANDLER_SLOTS: Dict[str, Dict[str, str]] = {
    "InputForm": {"on_submit": "on_form_submit"},
    "GuardrailModal": {"on_confirm": "on_modal_confirm", "on_cancel": "on_modal_cancel"},
    "PredictiveActionBar": {"on_action_click": "on_predict_action", "on_dismiss": "on_dismiss_predictions"},
    "EmptyState": {"on_action": "on_empty_state_action"},
    "ExportActions": {"on_export": "on_export"},
}

# Callbacks of these types receive the component id as first argument
BOUND_TO_ID = {"GuardrailModal"}


@dataclass
class UIHandlers:
    """Presentation-layer callbacks attached to rendered components"""
    on_form_submit: Optional[Callable] = None
    on_modal_confirm: Optional[Callable] = None
    on_modal_cancel: Optional[Callable] = None
    on_predict_action: Optional[Callable] = None
    on_dismiss_predictions: Optional[Callable] = None
    on_empty_state_action: Optional[Callable] = None
    on_export: Optional[Callable] = None


class PipelineState(TypedDict):
    """State for the intent pipeline graph"""
    messages: Annotated[List[BaseMessage], add_messages]
    raw_input: str
    request: Optional[PolicyRequest]
    response: Optional[PolicyResponse]
    pending_action: Optional[PendingAction]
    result: Optional[EditBatchResult]
    trace: Annotated[List[str], operator.add]
    error: Optional[str]


def error_response(error: str) -> PolicyResponse:
    """Batch shown when the decision policy fails"""
    return PolicyResponse(
        render=[
            ComponentDescriptor(
                id=ERROR_STATE_ID,
                type="EmptyState",
                props={
                    "title": "Something went wrong",
                    "description": "An error occurred while processing your request. Please try again.",
                    "action_label": "Try Again",
                },
                order=0,
            )
        ],
        notes=f"Error: {error}",
        intent_type="error",
        debug=DebugInfo(reasoning="Decision policy failed; showing error state.", error=error),
    )


class UIOrchestrator:
    """Runs one intent at a time through reference resolution, policy and dispatch"""

    def __init__(
        self,
        state_engine: UIStateEngine,
        facts: FactStore,
        memory: ReferenceMemory,
        registry: ComponentRegistry,
        policy: DecisionPolicy,
        suggestion_engine: SuggestionEngine,
        policy_timeout: float = 30.0,
        suggestion_bar_order: float = 999
    ):
        self.state_engine = state_engine
        self.facts = facts
        self.memory = memory
        self.registry = registry
        self.policy = policy
        self.suggestion_engine = suggestion_engine
        self.policy_timeout = policy_timeout
        self.suggestion_bar_order = suggestion_bar_order

        self.context_manager = ContextManager(state_engine, facts, memory, registry)
        self.guard = DestructiveActionGuard()
        self.handlers = UIHandlers()
        self._pending_actions: Dict[str, PendingAction] = {}
        self._lock = asyncio.Lock()
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        """Create the intent pipeline graph"""

        workflow = StateGraph(PipelineState)

        workflow.add_node("resolve_references", self.resolve_references_node)
        workflow.add_node("guardrail", self.guardrail_node)
        workflow.add_node("decide", self.decide_node)
        workflow.add_node("error_handler", self.error_handler_node)
        workflow.add_node("apply", self.apply_node)

        workflow.set_entry_point("resolve_references")

        workflow.add_conditional_edges(
            "resolve_references",
            self.route_after_resolution,
            {
                "guarded": "guardrail",
                "policy": "decide",
            }
        )

        workflow.add_edge("guardrail", "apply")

        workflow.add_conditional_edges(
            "decide",
            self.check_policy_result,
            {
                "success": "apply",
                "error": "error_handler",
            }
        )

        workflow.add_edge("error_handler", "apply")
        workflow.add_edge("apply", END)

        return workflow.compile()

    # ------------------------------------------------------------------
    # Nodes

    async def resolve_references_node(self, state: PipelineState) -> Dict[str, Any]:
        annotated, reference = self.context_manager.resolve_references(state["raw_input"])
        return {
            "request": PolicyRequest(text=annotated, referenced_component=reference),
            "messages": [HumanMessage(content=annotated)],
            "trace": ["resolve_references"],
        }

    async def guardrail_node(self, state: PipelineState) -> Dict[str, Any]:
        """Replace a destructive request with a confirmation dialog"""

        action = self.guard.classify(state["raw_input"])
        dialog_id = self.guard.dialog_id(action)
        self._pending_actions[dialog_id] = action
        ui_logger.log_guardrail(dialog_id, action.value, "requested")

        return {
            "response": self.guard.confirmation_response(action, self.facts),
            "pending_action": action,
            "trace": ["guardrail"],
        }

    async def decide_node(self, state: PipelineState) -> Dict[str, Any]:
        """Call the decision policy and validate what it returns"""

        request = state["request"]
        context = self.context_manager.build_context(request.text)
        start = time.perf_counter()

        try:
            raw = await asyncio.wait_for(self.policy.decide(request, context), timeout=self.policy_timeout)
            response = PolicyResponse.model_validate(raw)
            self._validate_response(response)
        except asyncio.TimeoutError:
            return self._policy_failure(start, f"Policy timed out after {self.policy_timeout}s")
        except ValidationError as e:
            return self._policy_failure(start, f"Malformed policy response: {e.error_count()} validation errors")
        except Exception as e:
            return self._policy_failure(start, str(e) or type(e).__name__)

        duration_ms = (time.perf_counter() - start) * 1000
        metrics.record_latency("policy.decide", duration_ms, {"policy": self.policy.name})
        ui_logger.log_policy_decision(self.policy.name, response.intent_type, response.notes, duration_ms)

        return {"response": response, "trace": ["decide"]}

    async def error_handler_node(self, state: PipelineState) -> Dict[str, Any]:
        logger.error("Handling policy failure", error=state.get("error"), trace=state.get("trace"))
        metrics.increment_counter("policy.failure", tags={"policy": self.policy.name})
        return {
            "response": error_response(state.get("error") or "Unknown error"),
            "trace": ["error_handler"],
        }

    async def apply_node(self, state: PipelineState) -> Dict[str, Any]:
        response = state["response"]
        result = self._apply(state["raw_input"], response)
        return {
            "result": result,
            "messages": [AIMessage(content=response.notes)],
            "trace": ["apply"],
        }

    def route_after_resolution(self, state: PipelineState) -> Literal["guarded", "policy"]:
        """Destructive vocabulary never reaches the policy"""

        if self.guard.classify(state["raw_input"]) is not None:
            return "guarded"
        return "policy"

    def check_policy_result(self, state: PipelineState) -> Literal["success", "error"]:
        if state.get("error"):
            return "error"
        return "success"

    def _policy_failure(self, start: float, error: str) -> Dict[str, Any]:
        duration_ms = (time.perf_counter() - start) * 1000
        ui_logger.log_policy_decision(
            self.policy.name, "error", "", duration_ms, success=False, error=error
        )
        return {"error": error, "trace": ["decide"]}

    def _validate_response(self, response: PolicyResponse):
        """Rendered components and updated props must satisfy their type's contract"""

        problems: List[str] = []
        for component in response.render:
            problems.extend(self.registry.validate_descriptor(component))
        for item in response.update:
            existing = self.state_engine.get_component(item.id)
            if existing is None:
                continue
            merged = existing.model_copy(update={"props": {**existing.props, **item.props}})
            problems.extend(self.registry.validate_descriptor(merged))
        if problems:
            raise PolicyError(f"Malformed policy response: {'; '.join(problems)}")

    # ------------------------------------------------------------------
    # Applying a batch

    def _apply(self, raw_input: str, response: PolicyResponse, data: Optional[Dict[str, Any]] = None) -> EditBatchResult:
        """Turn a policy response into one dispatch plus one recorded intent"""

        rendered = [self._attach_handlers(component) for component in response.render]
        edits: List[Any] = [remove(component_id) for component_id in response.remove]
        edits.extend(update(item.id, item.props) for item in response.update)
        edits.extend(render(component) for component in rendered)

        preview = self.state_engine.preview(BatchEdit(edits=edits))
        visible = [c for c in visible_sorted(preview.state) if c.id != SUGGESTION_BAR_ID]
        last_action = " | ".join(part for part in (response.notes, preview.diff.summary()) if part)
        suggestions = self.suggestion_engine.suggest(SuggestionContext(components=visible, last_action=last_action))

        if self.suggestion_engine.should_display(suggestions):
            edits.append(render(self._suggestion_bar(suggestions)))
        else:
            suggestions = []
            if SUGGESTION_BAR_ID in preview.state:
                edits.append(remove(SUGGESTION_BAR_ID))

        affected = list(dict.fromkeys(
            [c.id for c in response.render] + [item.id for item in response.update] + list(response.remove)
        ))
        intent_data = {"notes": response.notes}
        if data:
            intent_data.update(data)

        with self.state_engine.deferred_notifications():
            diff = self.state_engine.dispatch(BatchEdit(edits=edits))
            intent = self.memory.record_intent(raw_input, response.intent_type, affected, intent_data)
            self.memory.index_components(
                c for c in self.state_engine.get_visible_components() if c.id != SUGGESTION_BAR_ID
            )

        self._pending_actions = {
            dialog_id: action
            for dialog_id, action in self._pending_actions.items()
            if self.state_engine.has(dialog_id)
        }

        return EditBatchResult(
            render=rendered,
            remove=list(response.remove),
            update=list(response.update),
            suggestions=suggestions,
            diff=diff,
            intent_id=intent.id,
            debug=response.debug,
        )

    def _suggestion_bar(self, suggestions) -> ComponentDescriptor:
        bar = ComponentDescriptor(
            id=SUGGESTION_BAR_ID,
            type="PredictiveActionBar",
            props={"actions": [
                {"label": s.label, "input_text": s.input_text, "confidence": s.confidence}
                for s in suggestions
            ]},
            visible=True,
            order=self.suggestion_bar_order,
        )
        return self._attach_handlers(bar)

    def _attach_handlers(self, component: ComponentDescriptor) -> ComponentDescriptor:
        slots = HANDLER_SLOTS.get(component.type)
        if not slots:
            return component

        props = dict(component.props)
        for slot, handler_name in slots.items():
            handler = getattr(self.handlers, handler_name)
            if handler is None:
                continue
            props[slot] = partial(handler, component.id) if component.type in BOUND_TO_ID else handler
        return component.model_copy(update={"props": props})

    def register_handlers(self, **handlers: Optional[Callable]):
        """Set presentation callbacks by name; unknown names raise ValueError"""

        known = {f.name for f in fields(UIHandlers)}
        unknown = set(handlers) - known
        if unknown:
            raise ValueError(f"Unknown handler(s): {', '.join(sorted(unknown))}")
        for name, handler in handlers.items():
            setattr(self.handlers, name, handler)

    # ------------------------------------------------------------------
    # Public surface

    @asynccontextmanager
    async def _exclusive(self):
        if self._lock.locked():
            raise OrchestratorBusyError("Another intent is being processed")
        async with self._lock:
            yield

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def process_user_input(self, text: str) -> EditBatchResult:
        """Process free-form user text into one applied edit batch"""

        if not text or not text.strip():
            return EditBatchResult()

        async with self._exclusive():
            return await self._run(text)

    async def handle_form_submission(self, values: Dict[str, Any]) -> EditBatchResult:
        """Store submitted form values as user facts and re-process"""

        async with self._exclusive():
            mapped = {map_form_field(name): coerce_form_value(value) for name, value in values.items()}
            if mapped:
                self.facts.set_many(mapped)
            text = "Form submitted with " + ", ".join(f"{key}: {value}" for key, value in mapped.items())
            return await self._run(text)

    async def confirm_destructive_action(self, dialog_id: str) -> EditBatchResult:
        """Execute the action bound to a confirmation dialog"""

        async with self._exclusive():
            action = self._pending_actions.pop(dialog_id, None)
            if action is None:
                logger.warning("No pending action for dialog", dialog_id=dialog_id)
                return EditBatchResult()

            ui_logger.log_guardrail(dialog_id, action.value, "confirmed")
            if action == PendingAction.DELETE_DATA:
                self.facts.clear()
                self.memory.clear()

            response = self.guard.confirmed_response(action, list(self.state_engine.get_state().keys()))
            return self._apply(f"confirm {dialog_id}", response, {"dialog_id": dialog_id})

    async def cancel_destructive_action(self, dialog_id: str) -> EditBatchResult:
        """Dismiss a confirmation dialog without executing anything"""

        async with self._exclusive():
            action = self._pending_actions.pop(dialog_id, None)
            if action is None:
                logger.warning("No pending action for dialog", dialog_id=dialog_id)
                return EditBatchResult()

            ui_logger.log_guardrail(dialog_id, action.value, "cancelled")
            response = self.guard.cancelled_response(action, dialog_id)
            return self._apply(f"cancel {dialog_id}", response, {"dialog_id": dialog_id})

    def dismiss_suggestions(self) -> Optional[StateDiff]:
        """Hide the suggestion bar if it is showing"""

        if not self.state_engine.is_visible(SUGGESTION_BAR_ID):
            return None
        return self.state_engine.dispatch(hide(SUGGESTION_BAR_ID))

    def pending_dialogs(self) -> Dict[str, str]:
        return {dialog_id: action.value for dialog_id, action in self._pending_actions.items()}

    def subscribe(self, listener: Callable[[StateDiff], None]) -> Callable[[], None]:
        return self.state_engine.subscribe(listener)

    def get_visible_components(self) -> List[ComponentDescriptor]:
        return self.state_engine.get_visible_components()

    def get_component(self, component_id: str) -> Optional[ComponentDescriptor]:
        return self.state_engine.get_component(component_id)

    def fact_source_summary(self) -> Dict[str, int]:
        return self.facts.source_summary()

    async def _run(self, text: str) -> EditBatchResult:
        initial_state: PipelineState = {
            "messages": [],
            "raw_input": text,
            "request": None,
            "response": None,
            "pending_action": None,
            "result": None,
            "trace": [],
            "error": None,
        }

        final_state = await self.workflow.ainvoke(initial_state)
        logger.debug("Intent pipeline finished", trace=final_state.get("trace"))
        return final_state["result"]
