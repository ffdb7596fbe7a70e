from typing import Dict, List, Any, Optional, Tuple, Type
from dataclasses import dataclass, field
from pydantic import BaseModel, ValidationError
import structlog

from intentui.domain.errors import ComponentRegistrationError
from intentui.domain.models.ui_state import ComponentDescriptor
from . import props as p

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ComponentSpec:
    """Capability contract of one component type"""
    type: str
    description: str
    props_model: Type[BaseModel]
    aliases: Tuple[str, ...] = ()
    callbacks: Tuple[str, ...] = ()
    category: str = "display"


DEFAULT_COMPONENTS: List[ComponentSpec] = [
    ComponentSpec("EmptyState", "Onboarding or cleared-screen placeholder", p.EmptyStateProps,
                  aliases=("empty", "placeholder"), callbacks=("on_action",), category="feedback"),
    ComponentSpec("InputForm", "Collects missing facts from the user", p.InputFormProps,
                  aliases=("form",), callbacks=("on_submit",), category="input"),
    ComponentSpec("ChartView", "Plots a short numeric series", p.ChartViewProps,
                  aliases=("chart", "graph")),
    ComponentSpec("SummaryCards", "Headline figures as cards", p.SummaryCardsProps,
                  aliases=("cards", "summary")),
    ComponentSpec("InsightSummary", "Short textual insights", p.InsightSummaryProps,
                  aliases=("insight", "insights")),
    ComponentSpec("GuardrailModal", "Confirmation dialog for destructive actions", p.GuardrailModalProps,
                  aliases=("dialog", "modal"), callbacks=("on_confirm", "on_cancel"), category="dialog"),
    ComponentSpec("PredictiveActionBar", "Suggested follow-up actions", p.PredictiveActionBarProps,
                  aliases=("suggestions",), callbacks=("on_action_click", "on_dismiss"), category="feedback"),
    ComponentSpec("ExportActions", "Export format buttons", p.ExportActionsProps,
                  aliases=("export",), callbacks=("on_export",), category="input"),
    ComponentSpec("DateRangePicker", "Period selector", p.DateRangePickerProps,
                  aliases=("dates", "period"), category="input"),
]


class ComponentRegistry:
    """Registry of renderable component types"""

    def __init__(self, specs: Optional[List[ComponentSpec]] = None):
        self.components: Dict[str, ComponentSpec] = {}
        self.categories: Dict[str, List[str]] = {}
        for spec in (DEFAULT_COMPONENTS if specs is None else specs):
            self.register(spec)

    def register(self, spec: ComponentSpec):
        """Register a component type, validating its contract up front"""

        if not spec.type or not spec.type.strip():
            raise ComponentRegistrationError("Component type must be a non-empty string")
        if spec.type in self.components:
            raise ComponentRegistrationError(f"Component type '{spec.type}' is already registered")
        if not (isinstance(spec.props_model, type) and issubclass(spec.props_model, BaseModel)):
            raise ComponentRegistrationError(f"Component type '{spec.type}' needs a pydantic props model")
        overlap = set(spec.callbacks) & set(spec.props_model.model_fields)
        if overlap:
            raise ComponentRegistrationError(
                f"Callback slots of '{spec.type}' shadow props: {', '.join(sorted(overlap))}"
            )
        for alias in spec.aliases:
            owner = self.find_by_alias(alias)
            if owner is not None:
                raise ComponentRegistrationError(f"Alias '{alias}' already belongs to '{owner}'")

        self.components[spec.type] = spec
        self.categories.setdefault(spec.category, []).append(spec.type)

    def get(self, component_type: str) -> Optional[ComponentSpec]:
        return self.components.get(component_type)

    def is_registered(self, component_type: str) -> bool:
        return component_type in self.components

    def get_by_category(self, category: str) -> List[ComponentSpec]:
        return [self.components[name] for name in self.categories.get(category, [])]

    def find_by_alias(self, alias: str) -> Optional[str]:
        needle = alias.lower()
        for spec in self.components.values():
            if needle == spec.type.lower() or needle in spec.aliases:
                return spec.type
        return None

    def validate_descriptor(self, descriptor: ComponentDescriptor) -> List[str]:
        """Problems with a descriptor's type or props; empty when valid"""

        spec = self.components.get(descriptor.type)
        if spec is None:
            return [f"Unknown component type '{descriptor.type}'"]

        data: Dict[str, Any] = {k: v for k, v in descriptor.props.items() if k not in spec.callbacks}
        try:
            spec.props_model.model_validate(data)
        except ValidationError as e:
            return [f"{descriptor.id}: {error['loc']}: {error['msg']}" for error in e.errors()]
        return []

    def type_aliases(self, components: List[ComponentDescriptor]) -> Dict[str, str]:
        """Map of lower-cased type names and aliases to the first component of that type"""

        mapping: Dict[str, str] = {}
        for component in components:
            keys = [component.type.lower()]
            spec = self.components.get(component.type)
            if spec:
                keys.extend(spec.aliases)
            for key in keys:
                mapping.setdefault(key, component.id)
        return mapping
