from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, ConfigDict


class ComponentProps(BaseModel):
    """Base props model; extra keys carry attached callbacks"""
    model_config = ConfigDict(extra="allow")


class EmptyStateProps(ComponentProps):
    title: str
    description: Optional[str] = None
    action_label: Optional[str] = None


class FormField(BaseModel):
    """Form field definition"""
    name: str
    label: str
    type: Literal["text", "email", "number", "password", "textarea"] = "text"
    placeholder: Optional[str] = None
    required: bool = False


class InputFormProps(ComponentProps):
    title: Optional[str] = None
    description: Optional[str] = None
    fields: List[FormField]
    submit_label: str = "Submit"


class ChartViewProps(ComponentProps):
    title: Optional[str] = None
    data: List[float]
    labels: List[str] = []
    type: Literal["bar", "line", "pie"] = "bar"


class SummaryCard(BaseModel):
    title: str
    value: Any
    trend: Literal["up", "down", "neutral"] = "neutral"


class SummaryCardsProps(ComponentProps):
    cards: List[SummaryCard]


class Insight(BaseModel):
    title: str
    description: str
    type: Literal["info", "success", "warning"] = "info"


class InsightSummaryProps(ComponentProps):
    insights: List[Insight]


class GuardrailModalProps(ComponentProps):
    title: str
    message: str
    confirm_label: str = "Confirm"
    cancel_label: str = "Cancel"


class SuggestedAction(BaseModel):
    label: str
    input_text: str
    confidence: float


class PredictiveActionBarProps(ComponentProps):
    actions: List[SuggestedAction]


class ExportFormat(BaseModel):
    id: str
    label: str


class ExportActionsProps(ComponentProps):
    formats: List[ExportFormat]


class DateRangePickerProps(ComponentProps):
    start: Optional[str] = None
    end: Optional[str] = None
    presets: List[Dict[str, str]] = []
