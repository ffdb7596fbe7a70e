"""
Tests for ContextManager
"""
import pytest

from intentui.domain.context.context_manager import ContextManager
from intentui.domain.models.edits import batch, define_component, remove, render


@pytest.fixture
def context_manager(engine, facts, memory, registry):
    return ContextManager(engine, facts, memory, registry)


def test_no_reference_leaves_text_untouched(context_manager):
    """Test that unresolved input is passed through"""
    text, reference = context_manager.resolve_references("show salary comparison")

    assert text == "show salary comparison"
    assert reference is None


def test_type_alias_reference(context_manager, engine):
    """Test resolving "the graph" through registry aliases"""
    engine.dispatch(render(define_component("spending", "ChartView", {"data": [1]})))

    text, reference = context_manager.resolve_references("hide the graph")

    assert text == "hide the graph [referencing: ChartView id:spending]"
    assert reference.id == "spending" and reference.type == "ChartView"


def test_reference_to_removed_component_is_skipped(context_manager, engine, memory):
    """Test that a remembered id no longer in the tree is not annotated"""
    engine.dispatch(batch([render(define_component("old-chart", "ChartView"))]))
    memory.record_intent("show chart", "chart", ["old-chart"])
    engine.dispatch(remove("old-chart"))

    text, reference = context_manager.resolve_references("make this bigger")

    assert reference is None
    assert "[referencing:" not in text


def test_build_context(context_manager, engine, facts, memory):
    """Test the assembled policy context"""
    facts.set_many({"salary.lastMonth": 5000, "salary.currentMonth": 5500})
    engine.dispatch(render(define_component("empty-state", "EmptyState", {"title": "Hi"})))
    memory.record_intent("hello", "empty_state", ["empty-state"])

    context = context_manager.build_context("show salary comparison")

    assert context.has_component("empty-state")
    assert context.facts is facts
    assert context.memory["active_references"]["this"] == "empty-state"
    assert "salary.lastMonth: 5000 (user)" in context.summary
    assert "salary.change: 500 (derived)" in context.summary
    assert 'USER INPUT: "show salary comparison"' in context.summary
