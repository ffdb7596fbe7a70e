from typing import Dict, Any, Callable, Iterable, List, Optional, Set
from datetime import date, timedelta
from dataclasses import dataclass
import math
import structlog

from intentui.domain.models.ui_state import FactEntry, FactSource, utcnow
from intentui.infrastructure.observability.logging import ui_logger

logger = structlog.get_logger(__name__)


def _month(offset_days: int = 0) -> str:
    return (date.today() - timedelta(days=offset_days)).strftime("%Y-%m")


# Realistic sample values used until the user supplies their own
SAMPLE_FACTS: Dict[str, Any] = {
    "salary.lastMonth": 5000,
    "salary.currentMonth": 5500,
    "salary.previousMonth": 4800,

    "income.baseSalary": 4500,
    "income.bonuses": 500,
    "income.overtime": 500,
    "income.other": 0,

    "expenses.rent": 1500,
    "expenses.utilities": 200,
    "expenses.groceries": 400,
    "expenses.transport": 150,
    "expenses.entertainment": 200,
    "expenses.savings": 1000,
    "expenses.other": 300,

    "budget.total": 5000,
    "budget.remaining": 750,
    "budget.spent": 4250,

    "accounts.checking": 2500,
    "accounts.savings": 15000,
    "accounts.investments": 35000,
    "accounts.retirement": 25000,

    "debt.creditCard": 800,
    "debt.studentLoan": 12000,
    "debt.carLoan": 8000,
    "debt.mortgage": 180000,

    "goals.emergencyFund": {"target": 15000, "current": 12000},
    "goals.vacation": {"target": 3000, "current": 800},
    "goals.newCar": {"target": 20000, "current": 5000},
}

# Identity and compensation figures are only ever user supplied
USER_REQUIRED_KEYS: Set[str] = {
    "salary.lastMonth",
    "salary.currentMonth",
    "salary.previousMonth",
    "user.firstName",
    "user.lastName",
    "user.email",
    "user.phone",
}

# Keys each component type may read through facts_for()
COMPONENT_FACT_ACCESS: Dict[str, List[str]] = {
    "SummaryCards": [
        "salary.lastMonth",
        "salary.currentMonth",
        "salary.change",
        "salary.changePercent",
        "salary.trend",
        "expenses.total",
        "income.total",
        "accounts.netWorth",
    ],
    "ChartView": ["salary.lastMonth", "salary.currentMonth", "income.total", "expenses.total"],
    "InsightSummary": [
        "salary.change",
        "salary.changePercent",
        "budget.remaining",
        "goals.emergencyFund",
        "goals.vacation",
    ],
    "DateRangePicker": ["time.currentMonth", "time.lastMonth"],
    "EmptyState": [],
    "InputForm": [],
    "ExportActions": [],
    "PredictiveActionBar": [],
    "GuardrailModal": [],
}

# Presentation-layer form field name -> fact key
FORM_FIELD_TO_FACT_KEY: Dict[str, str] = {
    "lastMonthSalary": "salary.lastMonth",
    "currentMonthSalary": "salary.currentMonth",
    "previousMonthSalary": "salary.previousMonth",
    "baseSalary": "income.baseSalary",
    "monthlyRent": "expenses.rent",
    "monthlyUtilities": "expenses.utilities",
    "monthlyGroceries": "expenses.groceries",
    "checkingAccount": "accounts.checking",
    "savingsAccount": "accounts.savings",
    "totalExpenses": "expenses.reportedTotal",
    "category": "expenses.category",
}


def map_form_field(field_name: str) -> str:
    """Map a form field name to its fact key (unknown names pass through)"""
    return FORM_FIELD_TO_FACT_KEY.get(field_name, field_name)


def coerce_form_value(value: Any) -> Any:
    """Form widgets submit strings; numeric strings become numbers"""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return value
        try:
            number = float(text)
        except ValueError:
            return value
        if not math.isfinite(number):
            return value
        return int(number) if number.is_integer() else number
    return value


@dataclass(frozen=True)
class DerivedFact:
    """A fact computed from other facts at read time"""
    key: str
    depends_on: tuple
    compute: Callable[[Dict[str, Any]], Any]


class FactStore:
    """In-memory fact store with provenance and derived facts"""

    def __init__(self, clock: Optional[Callable] = None):
        self._clock = clock or utcnow
        self._entries: Dict[str, FactEntry] = {}
        self._derived: Dict[str, DerivedFact] = {}
        self._register_default_derived()
        self._load_samples()

    # ------------------------------------------------------------------
    # Derived facts

    def register_derived(self, key: str, depends_on: Iterable[str], compute: Callable[[Dict[str, Any]], Any]):
        """Register a derived fact.

        A derived fact may depend on stored keys and on derived keys that
        were registered before it, so the dependency graph is acyclic.
        Any dependency that is not already derived is treated as a stored
        key from then on and can no longer be registered as derived.
        """

        depends_on = tuple(depends_on)
        if key in depends_on:
            raise ValueError(f"Derived fact '{key}' cannot depend on itself")
        if key in self._derived:
            raise ValueError(f"Derived fact '{key}' is already registered")
        dependents = [d.key for d in self._derived.values() if key in d.depends_on]
        if dependents:
            raise ValueError(f"'{key}' is already a stored input of {', '.join(dependents)}")

        self._derived[key] = DerivedFact(key=key, depends_on=depends_on, compute=compute)

    def _register_default_derived(self):
        self.register_derived(
            "salary.change",
            ["salary.currentMonth", "salary.lastMonth"],
            lambda f: _difference(f["salary.currentMonth"], f["salary.lastMonth"]),
        )
        self.register_derived(
            "salary.changePercent",
            ["salary.currentMonth", "salary.lastMonth"],
            lambda f: _percent_change(f["salary.currentMonth"], f["salary.lastMonth"]),
        )
        self.register_derived(
            "salary.trend",
            ["salary.change"],
            lambda f: "neutral" if not _is_number(f["salary.change"]) else ("up" if f["salary.change"] >= 0 else "down"),
        )

        expense_keys = [
            "expenses.rent", "expenses.utilities", "expenses.groceries", "expenses.transport",
            "expenses.entertainment", "expenses.savings", "expenses.other",
        ]
        self.register_derived("expenses.total", expense_keys, lambda f: _sum(f, expense_keys))

        income_keys = ["income.baseSalary", "income.bonuses", "income.overtime", "income.other"]
        self.register_derived("income.total", income_keys, lambda f: _sum(f, income_keys))

        asset_keys = ["accounts.checking", "accounts.savings", "accounts.investments", "accounts.retirement"]
        debt_keys = ["debt.creditCard", "debt.studentLoan", "debt.carLoan", "debt.mortgage"]
        self.register_derived(
            "accounts.netWorth",
            asset_keys + debt_keys,
            lambda f: _sum(f, asset_keys) - _sum(f, debt_keys),
        )

        self.register_derived("time.currentMonth", [], lambda f: _month())
        self.register_derived("time.lastMonth", [], lambda f: _month(30))

    def _evaluate(self, key: str) -> Any:
        derived = self._derived[key]
        inputs = {dependency: self.get(dependency) for dependency in derived.depends_on}
        return derived.compute(inputs)

    # ------------------------------------------------------------------
    # Reads

    def _load_samples(self):
        now = self._clock()
        for key, value in SAMPLE_FACTS.items():
            if key not in USER_REQUIRED_KEYS:
                self._entries[key] = FactEntry(value=value, source=FactSource.SAMPLE, timestamp=now)

    def get(self, key: str) -> Any:
        """Get a value; derived facts are evaluated fresh on every read"""

        if key in self._derived:
            return self._evaluate(key)

        entry = self._entries.get(key)
        return entry.value if entry else None

    def get_number(self, key: str) -> Optional[float]:
        value = self.get(key)
        return value if _is_number(value) else None

    def get_string(self, key: str) -> Optional[str]:
        value = self.get(key)
        return value if isinstance(value, str) else None

    def with_source(self, key: str) -> Optional[FactEntry]:
        """Get a value together with its provenance"""

        if key in self._derived:
            return FactEntry(value=self._evaluate(key), source=FactSource.DERIVED, timestamp=self._clock())
        entry = self._entries.get(key)
        return entry.model_copy() if entry else None

    def has(self, key: str) -> bool:
        return key in self._entries or key in self._derived

    def exists(self, key: str) -> bool:
        """True when the key is known and currently has a value"""
        return self.has(key) and self.get(key) is not None

    def is_user_provided(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.source == FactSource.USER

    def has_salary_data(self) -> bool:
        return self.get_number("salary.lastMonth") is not None and self.get_number("salary.currentMonth") is not None

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def derived_keys(self) -> List[str]:
        return list(self._derived.keys())

    # ------------------------------------------------------------------
    # Writes

    def set(self, key: str, value: Any):
        """Store a user-supplied value, shadowing any sample value"""

        self._entries[key] = FactEntry(value=value, source=FactSource.USER, timestamp=self._clock())
        ui_logger.log_fact_update("set", [key])

    def set_many(self, values: Dict[str, Any]):
        now = self._clock()
        for key, value in values.items():
            self._entries[key] = FactEntry(value=value, source=FactSource.USER, timestamp=now)
        ui_logger.log_fact_update("set_many", list(values.keys()))

    def delete(self, key: str) -> bool:
        """Delete a stored value; the sample value is not restored"""

        if key in self._entries:
            del self._entries[key]
            ui_logger.log_fact_update("delete", [key])
            return True
        return False

    def reset_to_default(self, key: str) -> bool:
        """Restore the sample value of a key, if it has one and may be sampled"""

        if key not in SAMPLE_FACTS or key in USER_REQUIRED_KEYS:
            return False

        self._entries[key] = FactEntry(value=SAMPLE_FACTS[key], source=FactSource.SAMPLE, timestamp=self._clock())
        ui_logger.log_fact_update("reset_to_default", [key])
        return True

    def clear(self):
        """Drop every entry and reload the sample values"""

        user_keys = [key for key, entry in self._entries.items() if entry.source == FactSource.USER]
        self._entries.clear()
        self._load_samples()
        ui_logger.log_fact_update("clear", user_keys, {"user_entries_dropped": len(user_keys)})

    # ------------------------------------------------------------------
    # Projections

    def facts_for(self, component_type: str) -> Dict[str, Any]:
        """Only the facts the given component type is allowed to read"""

        allowed_keys = COMPONENT_FACT_ACCESS.get(component_type, [])
        result = {}
        for key in allowed_keys:
            value = self.get(key)
            if value is not None:
                result[key] = value
        return result

    def source_summary(self) -> Dict[str, int]:
        """Count of stored entries per provenance, plus the derived fact count"""

        summary = {FactSource.SAMPLE.value: 0, FactSource.USER.value: 0}
        for entry in self._entries.values():
            summary[entry.source.value] += 1
        summary[FactSource.DERIVED.value] = len(self._derived)
        return summary

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Export of stored entries for debugging surfaces"""
        return {key: entry.model_dump(mode="json") for key, entry in self._entries.items()}


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _difference(current: Any, last: Any) -> Optional[float]:
    if _is_number(current) and _is_number(last):
        return current - last
    return None


def _percent_change(current: Any, last: Any) -> Optional[float]:
    if _is_number(current) and _is_number(last) and last != 0:
        return (current - last) / last * 100
    return None


def _sum(facts: Dict[str, Any], keys: List[str]) -> float:
    return sum(facts[key] for key in keys if _is_number(facts.get(key)))


def salary_comparison(store: FactStore) -> Dict[str, Any]:
    """Salary comparison figures for the summary and chart views"""

    last_month = store.get_number("salary.lastMonth")
    current_month = store.get_number("salary.currentMonth")
    return {
        "last_month": last_month,
        "current_month": current_month,
        "change": store.get_number("salary.change"),
        "change_percent": store.get_number("salary.changePercent"),
        "trend": store.get("salary.trend") or "neutral",
        "has_data": last_month is not None and current_month is not None,
    }


def salary_cards(store: FactStore) -> List[Dict[str, Any]]:
    """Card definitions for the salary SummaryCards view"""

    data = salary_comparison(store)
    if not data["has_data"]:
        return []

    change = data["change"] or 0
    percent = data["change_percent"] or 0
    difference = f"+${change:g}" if change >= 0 else f"-${abs(change):g}"

    return [
        {"title": "Last Month", "value": data["last_month"], "trend": "neutral"},
        {"title": "Current Month", "value": data["current_month"], "trend": "neutral"},
        {"title": "Difference", "value": difference, "trend": data["trend"]},
        {"title": "Change %", "value": f"{percent:.1f}%", "trend": data["trend"]},
    ]
