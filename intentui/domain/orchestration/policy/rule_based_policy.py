from typing import Dict, Any, List, Optional
import re
import structlog

from intentui.domain.context.memory.fact_store import salary_cards, salary_comparison
from intentui.domain.models.ui_state import (
    ComponentDecision, ComponentDescriptor, PolicyRequest, PolicyResponse, PropsUpdate,
)
from .base_policy import DecisionPolicy, PolicyContext, debug_info

logger = structlog.get_logger(__name__)

ANNOTATION = re.compile(r"\s*\[referencing: [^\]]*\]")
DISMISS_WORDS = re.compile(r"\b(remove|close|dismiss|hide)\b")
CHART_STYLE = re.compile(r"\b(bar|line|pie)\b")

EXPENSE_CATEGORIES = {
    "expenses.rent": "Rent",
    "expenses.utilities": "Utilities",
    "expenses.groceries": "Groceries",
    "expenses.transport": "Transport",
    "expenses.entertainment": "Entertainment",
    "expenses.savings": "Savings",
    "expenses.other": "Other",
}


class RuleBasedPolicy(DecisionPolicy):
    """Keyword-driven policy for the personal finance demo"""

    def __init__(self):
        super().__init__(
            name="rule_based",
            description="Sequential keyword rules over the user text and the fact store"
        )

    async def decide(self, request: PolicyRequest, context: PolicyContext) -> PolicyResponse:
        self.update_activity()
        text = ANNOTATION.sub("", request.text).lower()

        if request.referenced_component:
            response = self._referenced_component(text, request, context)
            if response:
                return response

        if "salary" in text and (
            "comparison" in text or "compare" in text or ("last month" in text and "current month" in text)
        ):
            if not context.facts.has_salary_data():
                return self._collect_salary(context)
            return self._salary_comparison(context, remove=["empty-state", "salary-data-form"],
                                           notes="Displayed salary comparison with available data")

        if "form submitted" in text and "salary." in text and context.facts.has_salary_data():
            return self._salary_comparison(context, remove=["salary-data-form"],
                                           notes="Processed salary data and displayed comparison")

        if "export" in text and ("report" in text or "pdf" in text or "salary" in text):
            return self._export()

        if "expense" in text:
            return self._expenses(context)

        return self._empty_state()

    # ------------------------------------------------------------------
    # Branches

    def _referenced_component(
        self, text: str, request: PolicyRequest, context: PolicyContext
    ) -> Optional[PolicyResponse]:
        target = request.referenced_component

        if DISMISS_WORDS.search(text):
            return PolicyResponse(
                remove=[target.id],
                notes=f"Removed {target.id}",
                intent_type="remove_component",
                debug=debug_info(
                    f"User referred to {target.type} {target.id} and asked to remove it.",
                    [ComponentDecision(id=target.id, type=target.type, reason="Referenced removal", confidence=0.9)]
                ),
            )

        style = CHART_STYLE.search(text)
        if target.type == "ChartView" and style and "chart" in text:
            return PolicyResponse(
                update=[PropsUpdate(id=target.id, props={"type": style.group(1)})],
                notes=f"Changed {target.id} to a {style.group(1)} chart",
                intent_type="restyle_chart",
                debug=debug_info(
                    f"User referred to chart {target.id} and asked for a {style.group(1)} chart.",
                    [ComponentDecision(id=target.id, type=target.type, reason="Referenced restyle", confidence=0.85)]
                ),
            )

        return None

    def _collect_salary(self, context: PolicyContext) -> PolicyResponse:
        facts = context.facts
        return PolicyResponse(
            render=[
                ComponentDescriptor(
                    id="salary-data-form",
                    type="InputForm",
                    props={
                        "title": "Salary Information",
                        "fields": [
                            {
                                "name": "lastMonthSalary",
                                "label": "Last Month Salary",
                                "type": "number",
                                "placeholder": "Enter your last month salary",
                                "required": not facts.exists("salary.lastMonth"),
                            },
                            {
                                "name": "currentMonthSalary",
                                "label": "Current Month Salary",
                                "type": "number",
                                "placeholder": "Enter your current month salary",
                                "required": not facts.exists("salary.currentMonth"),
                            },
                        ],
                        "submit_label": "Compare Salary",
                    },
                    order=0,
                )
            ],
            notes="Collecting missing salary data for comparison",
            intent_type="collect_salary",
            debug=debug_info(
                "User requested salary comparison but salary data is missing. "
                "Rendering InputForm to collect required values.",
                [ComponentDecision(
                    id="salary-data-form", type="InputForm",
                    reason="Salary data not found in store. User must provide both months.",
                    confidence=1.0,
                )]
            ),
        )

    def _salary_comparison(self, context: PolicyContext, remove: List[str], notes: str) -> PolicyResponse:
        data = salary_comparison(context.facts)
        last_month = data["last_month"] or 0
        current_month = data["current_month"] or 0

        return PolicyResponse(
            render=[
                ComponentDescriptor(
                    id="salary-comparison-cards",
                    type="SummaryCards",
                    props={"cards": salary_cards(context.facts)},
                    order=0,
                ),
                ComponentDescriptor(
                    id="salary-comparison-chart",
                    type="ChartView",
                    props={
                        "title": "Salary Comparison",
                        "data": [last_month, current_month],
                        "labels": ["Last Month", "Current Month"],
                        "type": "bar",
                    },
                    order=1,
                ),
            ],
            remove=remove,
            notes=notes,
            intent_type="salary_comparison",
            debug=debug_info(
                f"Salary data available. Last Month ({last_month}) vs Current Month ({current_month}), "
                f"change {data['change'] or 0} ({data['change_percent'] or 0:.1f}%).",
                [
                    ComponentDecision(id="salary-comparison-cards", type="SummaryCards",
                                      reason="Salary metrics with computed change and trend.", confidence=0.95),
                    ComponentDecision(id="salary-comparison-chart", type="ChartView",
                                      reason="Visual comparison of the two salary values.", confidence=0.9),
                ]
            ),
        )

    def _export(self) -> PolicyResponse:
        return PolicyResponse(
            render=[
                ComponentDescriptor(
                    id="export-success",
                    type="InsightSummary",
                    props={"insights": [{
                        "title": "Report Ready",
                        "description": "Salary comparison report has been prepared for export.",
                        "type": "success",
                    }]},
                    order=0,
                ),
                ComponentDescriptor(
                    id="export-actions",
                    type="ExportActions",
                    props={"formats": [{"id": "pdf", "label": "PDF"}, {"id": "csv", "label": "CSV"}]},
                    order=1,
                ),
            ],
            notes="Export options displayed for salary comparison",
            intent_type="export",
            debug=debug_info("User requested export. Showing format options."),
        )

    def _expenses(self, context: PolicyContext) -> PolicyResponse:
        facts = context.facts
        if facts.exists("expenses.reportedTotal"):
            total = facts.get("expenses.reportedTotal")
        else:
            total = facts.get("expenses.total")

        if total is None:
            return PolicyResponse(
                render=[
                    ComponentDescriptor(
                        id="expense-data-form",
                        type="InputForm",
                        props={
                            "title": "Expense Information",
                            "description": "Enter your expense details to see a breakdown",
                            "fields": [
                                {"name": "totalExpenses", "label": "Total Monthly Expenses",
                                 "type": "number", "placeholder": "e.g., 3500", "required": True},
                                {"name": "category", "label": "Highest Category",
                                 "type": "text", "placeholder": "e.g., Rent, Food, Transport", "required": True},
                            ],
                            "submit_label": "Analyze Expenses",
                        },
                        order=0,
                    )
                ],
                notes="Collecting expense data for breakdown",
                intent_type="collect_expenses",
                debug=debug_info("No expense data found. Requesting user input."),
            )

        category = facts.get_string("expenses.category") or self._top_category(context)

        return PolicyResponse(
            render=[
                ComponentDescriptor(
                    id="expense-summary",
                    type="SummaryCards",
                    props={"cards": [
                        {"title": "Total Expenses", "value": total, "trend": "neutral"},
                        {"title": "Top Category", "value": category, "trend": "neutral"},
                    ]},
                    order=0,
                ),
                ComponentDescriptor(
                    id="expense-breakdown",
                    type="InsightSummary",
                    props={"insights": [{
                        "title": "Expense Breakdown",
                        "description": f"Your highest spending category is {category}. "
                                       f"Total monthly expenses are {total}.",
                        "type": "info",
                    }]},
                    order=1,
                ),
            ],
            remove=["expense-data-form"],
            notes="Displayed expense breakdown",
            intent_type="expenses",
            debug=debug_info(f"Showing expense analysis. Total: {total}"),
        )

    def _top_category(self, context: PolicyContext) -> str:
        amounts = {
            label: context.facts.get_number(key) or 0
            for key, label in EXPENSE_CATEGORIES.items()
        }
        return max(amounts, key=amounts.get)

    def _empty_state(self) -> PolicyResponse:
        return PolicyResponse(
            render=[
                ComponentDescriptor(
                    id="empty-state",
                    type="EmptyState",
                    props={
                        "title": "What would you like to see?",
                        "description": "Try asking for a salary comparison, chart, or summary.",
                        "action_label": "Get Started",
                    },
                    order=0,
                )
            ],
            notes="Displayed empty state for new user",
            intent_type="empty_state",
            debug=debug_info(
                "User input did not match any known patterns. Showing empty state with helpful suggestions.",
                [ComponentDecision(id="empty-state", type="EmptyState",
                                   reason="No specific intent recognized.", confidence=0.4)]
            ),
        )
