"""
Tests for ReferenceMemory
"""
from datetime import timedelta

from intentui.domain.context.memory.intent_memory import ReferenceMemory
from intentui.domain.models.edits import define_component


def test_this_and_that_rotation(memory):
    """Test that "that" takes over what "this" meant for the previous intent"""
    memory.record_intent("show salary comparison", "collect_salary", ["salary-data-form"])
    assert memory.resolve_reference("this") == "salary-data-form"
    assert memory.get_reference("that") is None

    memory.record_intent("form submitted", "salary_comparison", ["salary-comparison-cards", "salary-comparison-chart"])
    assert memory.resolve_reference("this") == "salary-comparison-cards"
    assert memory.resolve_reference("that") == "salary-data-form"


def test_that_keeps_previous_timestamp(memory, clock):
    """Test that the rotated reference carries the previous intent's timestamp"""
    first = memory.record_intent("first", "empty_state", ["empty-state"])
    clock.advance(minutes=10)
    memory.record_intent("second", "collect_salary", ["salary-data-form"])

    assert memory.get_reference("that").timestamp == first.timestamp


def test_intent_without_components_clears_this(memory):
    """Test that an intent touching nothing leaves no stale "this" """
    memory.record_intent("first", "empty_state", ["empty-state"])
    memory.record_intent("noop", "unknown", [])

    assert memory.get_reference("this") is None
    assert memory.resolve_reference("that") == "empty-state"


def test_reference_expiry(memory, clock):
    """Test that references older than the max age resolve to nothing"""
    memory.record_intent("first", "empty_state", ["empty-state"])
    clock.advance(minutes=61)

    assert memory.get_reference("this") is None
    assert memory.resolve_reference("this") is None
    assert memory.get_references() == {}


def test_cleanup_evicts_expired_intents(memory, clock):
    """Test that expired intents are dropped on the next write"""
    memory.record_intent("old", "empty_state", ["empty-state"])
    clock.advance(hours=2)
    memory.record_intent("new", "collect_salary", ["salary-data-form"])

    assert [intent.raw_input for intent in memory.get_intents()] == ["new"]


def test_intent_log_is_capped(clock):
    """Test that the log never grows past max_intents"""
    memory = ReferenceMemory(max_intents=3, max_age=timedelta(hours=1), clock=clock)
    for i in range(5):
        memory.record_intent(f"input {i}", "empty_state", [f"component-{i}"])

    intents = memory.get_intents()
    assert len(intents) == 3
    assert intents[0].raw_input == "input 2"
    assert memory.get_current_intent().raw_input == "input 4"


def test_fuzzy_fallback_matches_substring(memory):
    """Test the lenient fallback: a key contained in a recent affected id resolves"""
    memory.record_intent("show comparison", "salary_comparison", ["salary-comparison-chart"])

    assert memory.get_reference("chart") is None
    assert memory.resolve_reference("chart") == "salary-comparison-chart"


def test_extract_references(memory):
    """Test reference fragment extraction"""
    fragments = memory.extract_references("Make this the chart above and remove that")

    assert "this" in fragments
    assert "that" in fragments
    assert "the chart" in fragments
    assert len(fragments) == len(set(fragments))


def test_resolve_references_in_text_uses_type_map(memory):
    """Test that type names resolve through the type map when memory has no match"""
    resolved = memory.resolve_references_in_text("hide the chart", {"chart": "spending-chart"})
    assert resolved == ["spending-chart"]


def test_index_components_first_writer_wins(memory):
    """Test type references keep the first component of a type"""
    memory.index_components([
        define_component("chart-a", "ChartView", order=0),
        define_component("chart-b", "ChartView", order=1),
    ])
    memory.index_components([define_component("chart-c", "ChartView", order=0)])

    assert memory.resolve_reference("chartview") == "chart-a"


def test_index_components_positions(memory):
    """Test first/last bind to the lowest and highest order among visible components"""
    memory.index_components([
        define_component("cards", "SummaryCards", order=5),
        define_component("chart", "ChartView", order=1),
        define_component("hidden", "InsightSummary", visible=False, order=9),
    ])

    assert memory.resolve_reference("first") == "chart"
    assert memory.resolve_reference("last") == "cards"
    assert memory.get_reference("insightsummary") is None

    memory.index_components([])

    assert memory.resolve_reference("first") is None
    assert memory.resolve_reference("last") is None


def test_name_component(memory):
    """Test descriptive aliases"""
    memory.name_component("salary-comparison-chart", "Salary Chart")
    assert memory.resolve_reference("salary chart") == "salary-comparison-chart"


def test_get_context(memory):
    """Test the context summary handed to the policy"""
    memory.record_intent("show salary comparison", "collect_salary", ["salary-data-form"])
    context = memory.get_context()

    assert len(context["recent_intents"]) == 1
    assert context["active_references"]["this"] == "salary-data-form"
    assert "collect_salary" in context["context_summary"]


def test_clear(memory):
    """Test that clear forgets intents and references"""
    memory.record_intent("first", "empty_state", ["empty-state"])
    memory.clear()

    assert memory.get_intents() == []
    assert memory.get_references() == {}
    assert memory.get_current_intent() is None
