from typing import Callable, List, Optional
from dataclasses import dataclass, field
import structlog

from intentui.domain.models.ui_state import ComponentDescriptor, Suggestion

logger = structlog.get_logger(__name__)


@dataclass
class SuggestionContext:
    """What the rules see: the visible tree and a summary of the last edit"""
    components: List[ComponentDescriptor] = field(default_factory=list)
    last_action: str = ""

    def has_id(self, component_id: str) -> bool:
        return any(c.id == component_id for c in self.components)

    def has_type(self, component_type: str) -> bool:
        return any(c.type == component_type for c in self.components)


SuggestionRule = Callable[[SuggestionContext], Optional[List[Suggestion]]]


def empty_state_rule(context: SuggestionContext) -> Optional[List[Suggestion]]:
    if context.has_id("empty-state"):
        return [
            Suggestion(
                label="Compare Salary",
                input_text="Show me salary comparison",
                confidence=0.8,
                reason="Most common starting point",
            )
        ]
    return None


def salary_comparison_rule(context: SuggestionContext) -> Optional[List[Suggestion]]:
    if context.has_id("salary-comparison-cards") and context.has_id("salary-comparison-chart"):
        return [
            Suggestion(
                label="Export Report",
                input_text="Export my salary comparison as PDF",
                confidence=0.7,
                reason="User just viewed salary data, may want to save it",
            ),
            Suggestion(
                label="View Expenses",
                input_text="Show me my expense breakdown",
                confidence=0.6,
                reason="Natural progression from income to expenses",
            ),
        ]
    return None


def after_form_rule(context: SuggestionContext) -> Optional[List[Suggestion]]:
    if "salary-data-form" in context.last_action and "salary-comparison-cards" in context.last_action:
        return [
            Suggestion(
                label="View Details",
                input_text="Show more details about my finances",
                confidence=0.6,
                reason="User just entered data, may want deeper analysis",
            )
        ]
    return None


def expenses_rule(context: SuggestionContext) -> Optional[List[Suggestion]]:
    for component in context.components:
        cards = component.props.get("cards") or []
        if any("expense" in str(card.get("title", "")).lower() for card in cards if isinstance(card, dict)):
            return [
                Suggestion(
                    label="View Income",
                    input_text="Show me my income breakdown",
                    confidence=0.7,
                    reason="Natural flow from expenses to income",
                ),
                Suggestion(
                    label="Calculate Savings Rate",
                    input_text="What is my savings rate?",
                    confidence=0.6,
                    reason="Common financial metric after viewing expenses",
                ),
            ]
    return None


def lone_chart_rule(context: SuggestionContext) -> Optional[List[Suggestion]]:
    if context.has_type("ChartView") and len(context.components) == 1:
        return [
            Suggestion(
                label="Add Summary Cards",
                input_text="Show me summary metrics",
                confidence=0.6,
                reason="Charts are often better with summary numbers",
            )
        ]
    return None


DEFAULT_RULES: List[SuggestionRule] = [
    empty_state_rule,
    salary_comparison_rule,
    after_form_rule,
    expenses_rule,
    lone_chart_rule,
]


class SuggestionEngine:
    """Ranks follow-up actions produced by an ordered list of rules"""

    def __init__(
        self,
        rules: Optional[List[SuggestionRule]] = None,
        min_confidence: float = 0.5,
        max_suggestions: int = 3,
        display_threshold: float = 0.6
    ):
        self.rules: List[SuggestionRule] = list(DEFAULT_RULES if rules is None else rules)
        self.min_confidence = min_confidence
        self.max_suggestions = max_suggestions
        self.display_threshold = display_threshold

    def register_rule(self, rule: SuggestionRule):
        """Append a rule; earlier rules win confidence ties"""
        self.rules.append(rule)

    def suggest(self, context: SuggestionContext) -> List[Suggestion]:
        """Run every rule and keep the most confident results"""

        collected: List[Suggestion] = []
        for rule in self.rules:
            suggestions = rule(context)
            if suggestions:
                collected.extend(suggestions)

        qualifying = [s for s in collected if s.confidence >= self.min_confidence]
        # sorted() is stable, so equal confidences keep rule registration order
        ranked = sorted(qualifying, key=lambda s: s.confidence, reverse=True)
        return ranked[:self.max_suggestions]

    def should_display(self, suggestions: List[Suggestion]) -> bool:
        return any(s.confidence >= self.display_threshold for s in suggestions)
