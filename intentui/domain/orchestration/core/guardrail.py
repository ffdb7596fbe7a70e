from typing import List, Optional
from enum import Enum
import re

from intentui.domain.context.memory.fact_store import FactStore
from intentui.domain.models.ui_state import ComponentDecision, ComponentDescriptor, PolicyResponse
from intentui.domain.orchestration.policy.base_policy import debug_info


class PendingAction(str, Enum):
    """Destructive actions that wait for an explicit confirmation"""
    CLEAR_SCREEN = "clear_screen"
    DELETE_DATA = "delete_data"


DIALOG_IDS = {
    PendingAction.CLEAR_SCREEN: "confirm-clear",
    PendingAction.DELETE_DATA: "confirm-data-deletion",
}

DATA_DELETION_PATTERNS = [
    re.compile(r"\b(delete|erase|wipe|forget|destroy)\s+(all|everything|my data)\b"),
    re.compile(r"\b(clear|reset|remove)\s+(all data|my data)\b"),
    re.compile(r"\bremove everything\b"),
]

SCREEN_CLEAR_PATTERNS = [
    re.compile(r"\b(clear|reset)\b"),
    re.compile(r"\bremove all\b"),
]


class DestructiveActionGuard:
    """Routes destructive vocabulary to a confirmation dialog"""

    def classify(self, text: str) -> Optional[PendingAction]:
        lowered = text.lower()
        if any(pattern.search(lowered) for pattern in DATA_DELETION_PATTERNS):
            return PendingAction.DELETE_DATA
        if any(pattern.search(lowered) for pattern in SCREEN_CLEAR_PATTERNS):
            return PendingAction.CLEAR_SCREEN
        return None

    def dialog_id(self, action: PendingAction) -> str:
        return DIALOG_IDS[action]

    def confirmation_response(self, action: PendingAction, facts: FactStore) -> PolicyResponse:
        """Dialog asking the user to confirm; performs no mutation"""

        dialog_id = self.dialog_id(action)

        if action == PendingAction.DELETE_DATA:
            summary = facts.source_summary()
            message = "This action will permanently delete your data. "
            if summary["user"] > 0:
                message += f"You have {summary['user']} user-provided data entries that will be lost. "
            if summary["sample"] > 0:
                message += "Sample data will remain available. "
            message += "This action cannot be undone."
            props = {
                "title": "Delete All Data?",
                "message": message,
                "confirm_label": "Delete Everything",
                "cancel_label": "Keep My Data",
            }
            notes = "Awaiting confirmation for data deletion"
        else:
            props = {
                "title": "Clear All Components",
                "message": "This will remove all components from the screen. This action cannot be undone.",
                "confirm_label": "Clear All",
                "cancel_label": "Cancel",
            }
            notes = "Awaiting confirmation for destructive action"

        return PolicyResponse(
            render=[ComponentDescriptor(id=dialog_id, type="GuardrailModal", props=props, order=0)],
            notes=notes,
            intent_type="guardrail",
            debug=debug_info(
                f"Destructive request ({action.value}) detected. Requiring explicit confirmation.",
                [ComponentDecision(id=dialog_id, type="GuardrailModal",
                                   reason="Destructive action must be confirmed.", confidence=1.0)]
            ),
        )

    def confirmed_response(self, action: PendingAction, component_ids: List[str]) -> PolicyResponse:
        """Edits that carry out a confirmed action on the screen"""

        if action == PendingAction.DELETE_DATA:
            title = "All Data Deleted"
            description = "Your personal data has been removed. Sample data remains available."
        else:
            title = "Screen Cleared"
            description = "All components have been removed."

        return PolicyResponse(
            render=[ComponentDescriptor(
                id="empty-state",
                type="EmptyState",
                props={"title": title, "description": description, "action_label": "Start Over"},
                order=0,
            )],
            remove=list(component_ids),
            notes=f"Confirmed {action.value}",
            intent_type=f"confirm_{action.value}",
            debug=debug_info(f"User confirmed {action.value}. Resetting to empty state."),
        )

    def cancelled_response(self, action: PendingAction, dialog_id: str) -> PolicyResponse:
        return PolicyResponse(
            remove=[dialog_id],
            notes=f"Cancelled {action.value}",
            intent_type=f"cancel_{action.value}",
            debug=debug_info(f"User cancelled {action.value}. Dismissing dialog."),
        )
