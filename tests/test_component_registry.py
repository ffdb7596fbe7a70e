"""
Tests for ComponentRegistry
"""
import pytest
from pydantic import BaseModel

from intentui.domain.components.component_registry import ComponentRegistry, ComponentSpec
from intentui.domain.components.props import ComponentProps
from intentui.domain.errors import ComponentRegistrationError
from intentui.domain.models.edits import define_component


class GaugeProps(ComponentProps):
    value: float


def test_default_components_registered(registry):
    """Test the bundled component types"""
    for component_type in ["EmptyState", "InputForm", "ChartView", "SummaryCards", "GuardrailModal",
                           "PredictiveActionBar", "ExportActions", "InsightSummary", "DateRangePicker"]:
        assert registry.is_registered(component_type)

    assert [spec.type for spec in registry.get_by_category("dialog")] == ["GuardrailModal"]


def test_register_custom_component(registry):
    """Test registering a new component type"""
    registry.register(ComponentSpec("Gauge", "Single value dial", GaugeProps, aliases=("gauge", "dial")))

    assert registry.find_by_alias("dial") == "Gauge"
    assert registry.validate_descriptor(define_component("g", "Gauge", {"value": 3})) == []


def test_register_rejects_duplicates(registry):
    """Test that a type cannot be registered twice"""
    with pytest.raises(ComponentRegistrationError, match="already registered"):
        registry.register(ComponentSpec("ChartView", "again", GaugeProps))


def test_register_rejects_alias_collision(registry):
    """Test that aliases are unique across types"""
    with pytest.raises(ComponentRegistrationError, match="Alias 'chart'"):
        registry.register(ComponentSpec("Gauge", "dial", GaugeProps, aliases=("chart",)))


def test_register_rejects_shadowing_callbacks(registry):
    """Test that callback slots cannot shadow props fields"""
    with pytest.raises(ComponentRegistrationError, match="shadow"):
        registry.register(ComponentSpec("Gauge", "dial", GaugeProps, callbacks=("value",)))


def test_register_rejects_non_model_props(registry):
    """Test that a props contract must be a pydantic model"""
    with pytest.raises(ComponentRegistrationError):
        registry.register(ComponentSpec("Gauge", "dial", dict))
    with pytest.raises(ComponentRegistrationError):
        registry.register(ComponentSpec(" ", "blank", GaugeProps))


def test_validate_descriptor(registry):
    """Test descriptor validation against the props contract"""
    assert registry.validate_descriptor(define_component("x", "Unknown")) == ["Unknown component type 'Unknown'"]

    problems = registry.validate_descriptor(define_component("chart", "ChartView", {"data": "not a list"}))
    assert problems and problems[0].startswith("chart:")

    valid = define_component("chart", "ChartView", {"data": [1, 2], "type": "line"})
    assert registry.validate_descriptor(valid) == []


def test_validate_ignores_attached_callbacks(registry):
    """Test that callback slots are not validated as props"""
    modal = define_component("confirm-clear", "GuardrailModal", {
        "title": "Clear", "message": "Sure?", "on_confirm": lambda: None,
    })
    assert registry.validate_descriptor(modal) == []


def test_type_aliases(registry):
    """Test the reference map from type names and aliases to the first component"""
    mapping = registry.type_aliases([
        define_component("chart-a", "ChartView"),
        define_component("chart-b", "ChartView"),
        define_component("cards", "SummaryCards"),
    ])

    assert mapping["chartview"] == "chart-a"
    assert mapping["graph"] == "chart-a"
    assert mapping["cards"] == "cards"


def test_independent_registries():
    """Test that registrations do not leak between registries"""
    first, second = ComponentRegistry(), ComponentRegistry()
    first.register(ComponentSpec("Gauge", "dial", GaugeProps))

    assert not second.is_registered("Gauge")


def test_plain_base_model_props_are_accepted(registry):
    """Test that any pydantic model can describe props"""

    class BadgeProps(BaseModel):
        text: str

    registry.register(ComponentSpec("Badge", "Small label", BadgeProps))
    assert registry.validate_descriptor(define_component("b", "Badge", {"text": "new"})) == []
