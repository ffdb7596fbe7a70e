from typing import Dict, List, Any, Callable, Iterable, Optional
from datetime import datetime, timedelta
import re
import uuid
import structlog

from intentui.domain.models.ui_state import ComponentDescriptor, ComponentReference, IntentRecord, utcnow
from intentui.infrastructure.observability.logging import ui_logger

logger = structlog.get_logger(__name__)


REFERENCE_PATTERNS = [
    re.compile(r"\bthis\b", re.IGNORECASE),
    re.compile(r"\bthat\b", re.IGNORECASE),
    re.compile(r"\bthe (?:above )?\w+\b", re.IGNORECASE),    # "the chart", "the above card"
    re.compile(r"\b\w+ (?:above|below)\b", re.IGNORECASE),   # "chart above", "table below"
]

POSITION_WORDS = {"the", "above", "below"}


class ReferenceMemory:
    """Intent log plus named references to components, with expiry"""

    def __init__(
        self,
        max_intents: int = 50,
        max_age: timedelta = timedelta(hours=1),
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.max_intents = max_intents
        self.max_age = max_age
        self._clock = clock or utcnow
        self.intents: List[IntentRecord] = []
        self.references: Dict[str, ComponentReference] = {}
        self.current_intent_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Intents

    def record_intent(
        self,
        raw_input: str,
        intent_type: str,
        affected_ids: Iterable[str],
        data: Optional[Dict[str, Any]] = None
    ) -> IntentRecord:
        """Append an intent and rotate the "this" / "that" references"""

        now = self._clock()
        intent = IntentRecord(
            id=f"intent_{uuid.uuid4().hex[:12]}",
            timestamp=now,
            raw_input=raw_input,
            intent_type=intent_type,
            affected_component_ids=list(affected_ids),
            data=data,
        )

        self.cleanup()

        previous = self.intents[-1] if self.intents else None
        self.intents.append(intent)
        if len(self.intents) > self.max_intents:
            self.intents = self.intents[-self.max_intents:]
        self.current_intent_id = intent.id

        # "that" takes over what "this" meant for the previous intent
        if previous and previous.affected_component_ids:
            self.set_reference("that", previous.affected_component_ids[0], previous.timestamp)

        if intent.affected_component_ids:
            self.set_reference("this", intent.affected_component_ids[0], now)
        else:
            self.references.pop("this", None)

        ui_logger.log_intent(intent.id, intent_type, intent.affected_component_ids, raw_input)
        return intent

    def get_current_intent(self) -> Optional[IntentRecord]:
        if not self.current_intent_id:
            return None
        for intent in self.intents:
            if intent.id == self.current_intent_id:
                return intent
        return None

    def get_intents(self) -> List[IntentRecord]:
        return list(self.intents)

    def get_recent_intents(self, count: int = 10) -> List[IntentRecord]:
        return self.intents[-count:] if count > 0 else []

    def get_intents_for_component(self, component_id: str) -> List[IntentRecord]:
        return [intent for intent in self.intents if component_id in intent.affected_component_ids]

    # ------------------------------------------------------------------
    # References

    def set_reference(
        self,
        key: str,
        component_id: str,
        timestamp: Optional[datetime] = None,
        description: Optional[str] = None
    ):
        """Point a reference key at a component"""

        normalized = key.lower()
        self.references[normalized] = ComponentReference(
            key=normalized,
            component_id=component_id,
            timestamp=timestamp or self._clock(),
            description=description,
        )

    def name_component(self, component_id: str, name: str):
        """Give a component a descriptive alias"""
        self.set_reference(name, component_id, description=f"Component: {name}")

    def get_reference(self, key: str) -> Optional[ComponentReference]:
        """Live reference for an exact key; expired references are misses"""

        reference = self.references.get(key.lower())
        if reference is None or self._is_expired(reference.timestamp):
            return None
        return reference

    def resolve_reference(self, key: str) -> Optional[str]:
        """Resolve a reference key to a component id"""

        reference = self.get_reference(key)
        if reference:
            return reference.component_id

        # Lenient fallback: any live intent whose affected id contains the key
        needle = key.lower()
        if not needle:
            return None
        for intent in self.intents:
            if self._is_expired(intent.timestamp):
                continue
            for component_id in intent.affected_component_ids:
                if needle in component_id.lower():
                    return component_id
        return None

    def get_references(self) -> Dict[str, ComponentReference]:
        return {
            key: reference for key, reference in self.references.items()
            if not self._is_expired(reference.timestamp)
        }

    def extract_references(self, text: str) -> List[str]:
        """Find reference fragments such as "this", "the chart" or "table below"."""

        found: List[str] = []
        for pattern in REFERENCE_PATTERNS:
            found.extend(match.group(0).lower() for match in pattern.finditer(text))
        return list(dict.fromkeys(found))

    def resolve_references_in_text(self, text: str, type_to_id: Dict[str, str]) -> List[str]:
        """Resolve every reference fragment in text to component ids, first appearance first"""

        resolved: List[str] = []
        for fragment in self.extract_references(text):
            words = [word for word in fragment.split() if word not in POSITION_WORDS]
            cleaned = " ".join(words).strip()
            if not cleaned:
                continue

            component_id = self.resolve_reference(cleaned)
            if component_id is None:
                component_id = type_to_id.get(cleaned)
            if component_id is not None:
                resolved.append(component_id)

        return list(dict.fromkeys(resolved))

    def index_components(self, components: Iterable[ComponentDescriptor]):
        """Create type-name and position references for the visible components"""

        visible = [component for component in components if component.visible]

        for component in visible:
            key = component.type.lower()
            if self.get_reference(key) is None:
                self.set_reference(key, component.id, description=f"First {component.type}")

        if not visible:
            self.references.pop("first", None)
            self.references.pop("last", None)
            return

        ordered = sorted(visible, key=lambda c: c.order if c.order is not None else 0)
        self.set_reference("first", ordered[0].id)
        self.set_reference("last", ordered[-1].id)

    # ------------------------------------------------------------------
    # Context

    def get_context(self, component_id: Optional[str] = None) -> Dict[str, Any]:
        """Recent intents and active references for the decision policy"""

        if component_id:
            relevant = self.get_intents_for_component(component_id)[-5:]
        else:
            relevant = self.get_recent_intents(5)

        active_references = {key: ref.component_id for key, ref in self.get_references().items()}

        parts = []
        if relevant:
            parts.append(f"Recent actions: {', '.join(intent.intent_type for intent in relevant)}")
        if active_references:
            parts.append(f"Available references: {', '.join(active_references)}")

        return {
            "recent_intents": relevant,
            "active_references": active_references,
            "context_summary": ". ".join(parts),
        }

    # ------------------------------------------------------------------
    # Eviction

    def _is_expired(self, timestamp: datetime) -> bool:
        return self._clock() - timestamp > self.max_age

    def cleanup(self):
        """Drop expired intents and references, then cap the log size"""

        self.intents = [intent for intent in self.intents if not self._is_expired(intent.timestamp)]

        if len(self.intents) > self.max_intents:
            self.intents = self.intents[-self.max_intents:]

        expired = [key for key, ref in self.references.items() if self._is_expired(ref.timestamp)]
        for key in expired:
            del self.references[key]

        if expired:
            logger.debug("Evicted expired references", keys=expired)

    def clear(self):
        """Clear all memory"""
        self.intents = []
        self.references.clear()
        self.current_intent_id = None
