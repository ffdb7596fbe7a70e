"""
Tests for UIOrchestrator through a UISession
"""
import asyncio

import pytest

from intentui.domain.errors import OrchestratorBusyError
from intentui.domain.models.edits import define_component, render
from intentui.domain.models.ui_state import ComponentDescriptor, PolicyResponse, PropsUpdate
from intentui.domain.orchestration.core.guardrail import DestructiveActionGuard, PendingAction
from intentui.domain.orchestration.core.orchestrator import SUGGESTION_BAR_ID
from intentui.domain.orchestration.policy.base_policy import DecisionPolicy
from intentui.session import UISession


class StaticPolicy(DecisionPolicy):
    """Returns a fixed value, or raises it when it is an exception"""

    def __init__(self, outcome):
        super().__init__(name="static", description="Fixed outcome")
        self.outcome = outcome
        self.requests = []

    async def decide(self, request, context):
        self.requests.append(request)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class BlockingPolicy(DecisionPolicy):
    """Waits until released so a second submission can arrive mid-flight"""

    def __init__(self):
        super().__init__(name="blocking", description="Waits for release")
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def decide(self, request, context):
        self.entered.set()
        await self.release.wait()
        return PolicyResponse(notes="released")


def _ids(components):
    return [c.id for c in components]


@pytest.mark.asyncio
async def test_salary_flow_end_to_end(session):
    """Test data collection form, submission and the comparison views"""
    first = await session.process_user_input("show salary comparison")

    assert [(c.id, c.type) for c in first.render] == [("salary-data-form", "InputForm")]
    assert first.remove == []
    assert _ids(session.get_visible_components()) == ["salary-data-form"]

    second = await session.handle_form_submission({"lastMonthSalary": "5000", "currentMonthSalary": "5500"})

    assert second.remove == ["salary-data-form"]
    assert [(c.id, c.type) for c in second.render] == [
        ("salary-comparison-cards", "SummaryCards"),
        ("salary-comparison-chart", "ChartView"),
    ]
    assert second.render[1].props["data"] == [5000, 5500]
    assert session.facts.is_user_provided("salary.lastMonth")

    visible = _ids(session.get_visible_components())
    assert visible[:2] == ["salary-comparison-cards", "salary-comparison-chart"]
    assert "salary-data-form" not in visible


@pytest.mark.asyncio
async def test_suggestion_bar_follows_salary_views(session):
    """Test that the suggestion bar is rendered last and reported separately"""
    await session.process_user_input("show salary comparison")
    result = await session.handle_form_submission({"lastMonthSalary": 5000, "currentMonthSalary": 5500})

    assert [s.label for s in result.suggestions] == ["Export Report", "View Expenses", "View Details"]
    assert SUGGESTION_BAR_ID not in _ids(result.render)
    assert _ids(session.get_visible_components())[-1] == SUGGESTION_BAR_ID

    session.dismiss_suggestions()
    assert SUGGESTION_BAR_ID not in _ids(session.get_visible_components())
    assert session.get_component(SUGGESTION_BAR_ID) is not None


@pytest.mark.asyncio
async def test_stale_suggestion_bar_removed(session):
    """Test that the bar goes away when nothing qualifies any more"""
    await session.process_user_input("hello")
    assert session.get_component(SUGGESTION_BAR_ID) is not None

    result = await session.process_user_input("remove this")

    assert result.remove == ["empty-state"]
    assert result.suggestions == []
    assert session.get_component(SUGGESTION_BAR_ID) is None


@pytest.mark.asyncio
async def test_one_dispatch_per_intent(session):
    """Test that subscribers see exactly one diff per processed intent"""
    diffs = []
    session.subscribe(diffs.append)

    await session.process_user_input("hello")

    assert len(diffs) == 1
    assert "empty-state" in diffs[0].added
    assert session.state_engine.version == 1


@pytest.mark.asyncio
async def test_intent_recorded_before_notification(session):
    """Test that listeners observe the recorded intent and indexed references"""
    seen = []
    session.subscribe(lambda diff: seen.append(session.memory.resolve_reference("this")))

    await session.process_user_input("show salary comparison")

    assert seen == ["salary-data-form"]


@pytest.mark.asyncio
async def test_empty_input_is_a_noop(session):
    """Test that blank input neither dispatches nor records"""
    result = await session.process_user_input("   ")

    assert result.render == [] and result.intent_id is None
    assert session.state_engine.version == 0
    assert session.memory.get_intents() == []


@pytest.mark.asyncio
async def test_destructive_input_requires_confirmation(session):
    """Test that data deletion renders exactly one dialog and writes nothing"""
    await session.handle_form_submission({"lastMonthSalary": 5000, "currentMonthSalary": 5500})
    before = session.facts.snapshot()

    result = await session.process_user_input("delete all my data")

    assert [(c.id, c.type) for c in result.render] == [("confirm-data-deletion", "GuardrailModal")]
    assert result.remove == [] and result.update == []
    assert session.facts.snapshot() == before
    assert session.orchestrator.pending_dialogs() == {"confirm-data-deletion": "delete_data"}


@pytest.mark.asyncio
async def test_destructive_input_never_reaches_policy(settings, clock):
    """Test that the guardrail runs instead of the decision policy"""
    policy = StaticPolicy(PolicyResponse(notes="should not run"))
    session = UISession(settings=settings, policy=policy, clock=clock)

    await session.process_user_input("clear the screen")

    assert policy.requests == []
    assert session.get_component("confirm-clear").type == "GuardrailModal"


@pytest.mark.asyncio
async def test_confirm_data_deletion(session):
    """Test that confirming deletes user data, memory and the screen"""
    await session.handle_form_submission({"lastMonthSalary": 5000, "currentMonthSalary": 5500})
    await session.process_user_input("delete all my data")

    result = await session.confirm_destructive_action("confirm-data-deletion")

    assert not session.facts.is_user_provided("salary.lastMonth")
    assert session.facts.get("expenses.rent") == 1500
    assert result.render[0].props["title"] == "All Data Deleted"
    assert _ids(session.get_visible_components())[0] == "empty-state"
    assert session.get_component("confirm-data-deletion") is None
    assert [intent.intent_type for intent in session.memory.get_intents()] == ["confirm_delete_data"]
    assert session.orchestrator.pending_dialogs() == {}


@pytest.mark.asyncio
async def test_confirm_clear_keeps_facts(session):
    """Test that clearing the screen leaves user facts alone"""
    await session.handle_form_submission({"lastMonthSalary": 5000, "currentMonthSalary": 5500})
    await session.process_user_input("clear everything")

    result = await session.confirm_destructive_action("confirm-clear")

    assert result.render[0].props["title"] == "Screen Cleared"
    assert session.facts.is_user_provided("salary.lastMonth")
    assert "salary-comparison-chart" not in _ids(session.get_visible_components())


@pytest.mark.asyncio
async def test_cancel_destructive_action(session):
    """Test that cancelling only removes the dialog"""
    await session.process_user_input("show salary comparison")
    await session.process_user_input("reset")

    result = await session.cancel_destructive_action("confirm-clear")

    assert result.remove == ["confirm-clear"]
    assert session.get_component("confirm-clear") is None
    assert session.get_component("salary-data-form") is not None

    unknown = await session.confirm_destructive_action("confirm-clear")
    assert unknown.intent_id is None


@pytest.mark.asyncio
async def test_unknown_dialog_is_a_noop(session):
    """Test that confirming an unknown dialog changes nothing"""
    result = await session.confirm_destructive_action("confirm-unknown")

    assert result.render == [] and result.remove == []
    assert session.state_engine.version == 0


@pytest.mark.asyncio
async def test_policy_failure_renders_error_state(settings, clock):
    """Test that a raising policy yields the error batch only"""
    session = UISession(settings=settings, policy=StaticPolicy(RuntimeError("model offline")), clock=clock)

    result = await session.process_user_input("show salary comparison")

    assert [(c.id, c.type) for c in result.render] == [("error-state", "EmptyState")]
    assert result.debug.error == "model offline"
    assert _ids(session.get_visible_components()) == ["error-state"]


@pytest.mark.asyncio
async def test_malformed_policy_response(settings, clock):
    """Test that invalid shapes and unregistered types are policy failures"""
    session = UISession(settings=settings, policy=StaticPolicy({"render": "nope"}), clock=clock)
    result = await session.process_user_input("anything")
    assert _ids(result.render) == ["error-state"]

    unknown = PolicyResponse(render=[ComponentDescriptor(id="x", type="Hologram")])
    session = UISession(settings=settings, policy=StaticPolicy(unknown), clock=clock)
    result = await session.process_user_input("anything")
    assert _ids(result.render) == ["error-state"]
    assert "Hologram" in result.debug.error


@pytest.mark.asyncio
async def test_update_breaking_props_contract(settings, clock):
    """Test that an update leaving invalid props is a policy failure"""
    bad_update = PolicyResponse(update=[PropsUpdate(id="c", props={"data": "oops", "type": "scatter"})])
    session = UISession(settings=settings, policy=StaticPolicy(bad_update), clock=clock)
    session.state_engine.dispatch(render(define_component("c", "ChartView", {"data": [1, 2]})))

    result = await session.process_user_input("anything")

    assert _ids(result.render) == ["error-state"]
    assert result.update == []
    assert "data" in result.debug.error
    chart = session.get_component("c")
    assert chart.props["data"] == [1, 2]
    assert "type" not in chart.props


@pytest.mark.asyncio
async def test_policy_may_return_dict(settings, clock):
    """Test that a plain dict satisfying the contract is accepted"""
    policy = StaticPolicy({
        "render": [{"id": "note", "type": "InsightSummary",
                    "props": {"insights": [{"title": "Hi", "description": "There"}]}}],
        "notes": "dict response",
        "intent_type": "custom",
    })
    session = UISession(settings=settings, policy=policy, clock=clock)

    result = await session.process_user_input("anything")

    assert _ids(result.render) == ["note"]
    assert session.memory.get_current_intent().intent_type == "custom"


@pytest.mark.asyncio
async def test_policy_timeout(clock):
    """Test that a slow policy is treated as a failure"""
    from intentui.infrastructure.config.settings import Settings

    policy = BlockingPolicy()
    session = UISession(settings=Settings(_env_file=None, policy_timeout_seconds=0.05), policy=policy, clock=clock)

    result = await session.process_user_input("anything")

    assert _ids(result.render) == ["error-state"]
    assert "timed out" in result.debug.error


@pytest.mark.asyncio
async def test_busy_orchestrator_rejects_second_intent(settings, clock):
    """Test that only one intent is in flight at a time"""
    policy = BlockingPolicy()
    session = UISession(settings=settings, policy=policy, clock=clock)

    task = asyncio.create_task(session.process_user_input("first"))
    await policy.entered.wait()

    with pytest.raises(OrchestratorBusyError):
        await session.process_user_input("second")
    with pytest.raises(OrchestratorBusyError):
        await session.handle_form_submission({"lastMonthSalary": 1})
    assert not session.facts.is_user_provided("salary.lastMonth")

    policy.release.set()
    result = await task
    assert result.intent_id is not None
    assert not session.orchestrator.busy


@pytest.mark.asyncio
async def test_reference_annotation_reaches_policy(settings, clock):
    """Test that a resolved reference is injected into the policy request"""
    policy = StaticPolicy(PolicyResponse(notes="noted"))
    session = UISession(settings=settings, policy=policy, clock=clock)
    session.facts.set_many({"salary.lastMonth": 5000, "salary.currentMonth": 5500})

    session.orchestrator.policy = StaticPolicy(PolicyResponse(
        render=[ComponentDescriptor(id="salary-comparison-chart", type="ChartView", props={"data": [1, 2]})]
    ))
    await session.process_user_input("show chart")

    session.orchestrator.policy = policy
    await session.process_user_input("make the chart a line chart")

    request = policy.requests[0]
    assert request.text.endswith("[referencing: ChartView id:salary-comparison-chart]")
    assert request.referenced_component.id == "salary-comparison-chart"


@pytest.mark.asyncio
async def test_restyle_referenced_chart(session):
    """Test the rule-based policy acting on a referenced chart"""
    await session.handle_form_submission({"lastMonthSalary": 5000, "currentMonthSalary": 5500})

    result = await session.process_user_input("make the chart a line chart")

    assert [u.id for u in result.update] == ["salary-comparison-chart"]
    assert session.get_component("salary-comparison-chart").props["type"] == "line"


@pytest.mark.asyncio
async def test_export_report(session):
    """Test the export branch of the rule-based policy"""
    result = await session.process_user_input("export my salary report")

    assert _ids(result.render) == ["export-success", "export-actions"]
    assert [f["id"] for f in result.render[1].props["formats"]] == ["pdf", "csv"]
    assert result.suggestions == []
    assert session.memory.get_intents()[-1].intent_type == "export"


@pytest.mark.asyncio
async def test_expenses_from_sample_data(session):
    """Test the expense breakdown built from sample facts"""
    result = await session.process_user_input("show my expenses")

    assert _ids(result.render) == ["expense-summary", "expense-breakdown"]
    cards = result.render[0].props["cards"]
    assert cards[0]["value"] == 3750
    assert cards[1]["value"] == "Rent"
    assert [s.label for s in result.suggestions] == ["View Income", "Calculate Savings Rate"]
    assert _ids(session.get_visible_components())[-1] == SUGGESTION_BAR_ID


@pytest.mark.asyncio
async def test_expense_form_submission(session):
    """Test that the expense form writes the reported total, not the derived one"""
    result = await session.handle_form_submission({"totalExpenses": "3500", "category": "Rent"})

    assert session.facts.get("expenses.reportedTotal") == 3500
    assert session.facts.is_user_provided("expenses.reportedTotal")
    assert session.facts.get("expenses.total") == 3750

    assert _ids(result.render) == ["expense-summary", "expense-breakdown"]
    assert result.render[0].props["cards"][0]["value"] == 3500
    assert "3500" in result.render[1].props["insights"][0]["description"]
    assert result.suggestions[0].label == "View Income"
    assert session.memory.get_intents()[-1].intent_type == "expenses"


@pytest.mark.asyncio
async def test_handlers_attached_by_convention(session):
    """Test that registered handlers are bound into component props"""
    confirmed = []
    session.orchestrator.register_handlers(on_modal_confirm=confirmed.append)

    result = await session.process_user_input("reset the screen")
    result.render[0].props["on_confirm"]()

    assert confirmed == ["confirm-clear"]
    assert "on_confirm" not in result.to_public()["render"][0]["props"]

    with pytest.raises(ValueError):
        session.orchestrator.register_handlers(on_unknown=print)


def test_guard_classification():
    """Test destructive vocabulary classification"""
    guard = DestructiveActionGuard()

    assert guard.classify("delete all my data") == PendingAction.DELETE_DATA
    assert guard.classify("please wipe everything") == PendingAction.DELETE_DATA
    assert guard.classify("clear my data") == PendingAction.DELETE_DATA
    assert guard.classify("clear the screen") == PendingAction.CLEAR_SCREEN
    assert guard.classify("Reset") == PendingAction.CLEAR_SCREEN
    assert guard.classify("remove all") == PendingAction.CLEAR_SCREEN
    assert guard.classify("make the chart clearer") is None
    assert guard.classify("show salary comparison") is None
    assert guard.classify("delete this chart and show all expenses") is None
    assert guard.classify("remove the chart, I want to see my data differently") is None
    assert guard.classify("remove everything") == PendingAction.DELETE_DATA
    assert guard.classify("clear everything") == PendingAction.CLEAR_SCREEN
