from typing import Callable, Dict, List, Optional
from contextlib import contextmanager
import itertools
import structlog

from intentui.domain.models.edits import BatchEdit
from intentui.domain.models.ui_state import ComponentDescriptor, StateDiff
from intentui.infrastructure.observability.logging import metrics, ui_logger
from .reducer import ReduceResult, UIState, reduce_state

logger = structlog.get_logger(__name__)

Listener = Callable[[StateDiff], None]


class UIStateEngine:
    """Holds the authoritative component tree and applies edits to it"""

    def __init__(self):
        self._state: UIState = {}
        self._version = 0
        self._order_counter = itertools.count()
        self._listeners: List[Listener] = []
        self._defer_depth = 0
        self._pending: List[StateDiff] = []

    @property
    def version(self) -> int:
        """Incremented on every dispatch"""
        return self._version

    def _allocate_order(self) -> float:
        return next(self._order_counter)

    # ------------------------------------------------------------------
    # Queries

    def get_state(self) -> Dict[str, ComponentDescriptor]:
        return {component_id: component.copy_out() for component_id, component in self._state.items()}

    def get_component(self, component_id: str) -> Optional[ComponentDescriptor]:
        component = self._state.get(component_id)
        return component.copy_out() if component else None

    def get_visible_components(self) -> List[ComponentDescriptor]:
        """Visible components by order; sorted() is stable so ties keep insertion order"""
        return visible_sorted(self._state)

    def has(self, component_id: str) -> bool:
        return component_id in self._state

    def is_visible(self, component_id: str) -> bool:
        component = self._state.get(component_id)
        return component.visible if component else False

    # ------------------------------------------------------------------
    # Mutations

    def preview(self, edit) -> ReduceResult:
        """Reduce an edit against the current tree without committing it"""
        return reduce_state(self._state, edit, self._allocate_order)

    def dispatch(self, edit) -> StateDiff:
        """Apply an edit, bump the version and notify subscribers"""

        result = reduce_state(self._state, edit, self._allocate_order)
        self._state = result.state
        self._version += 1

        diff = result.diff
        diff.version = self._version

        ui_logger.log_dispatch(
            self._version, diff.added, diff.removed, diff.updated, diff.visibility_changed
        )
        metrics.increment_counter("ui.dispatch")

        self._notify(diff)
        return diff

    def dispatch_all(self, edits) -> StateDiff:
        """Apply several edits as one dispatch"""
        return self.dispatch(BatchEdit(edits=list(edits)))

    def reset(self) -> StateDiff:
        """Remove every component"""

        removed = list(self._state.keys())
        self._state = {}
        self._version += 1

        diff = StateDiff(removed=removed, version=self._version)
        logger.info("UI state reset", removed=len(removed), version=self._version)
        self._notify(diff)
        return diff

    # ------------------------------------------------------------------
    # Subscriptions

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it"""

        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @contextmanager
    def deferred_notifications(self):
        """Hold back notifications until the outermost block exits"""

        self._defer_depth += 1
        try:
            yield
        finally:
            self._defer_depth -= 1
            if self._defer_depth == 0:
                pending, self._pending = self._pending, []
                for diff in pending:
                    self._deliver(diff)

    def _notify(self, diff: StateDiff):
        if self._defer_depth > 0:
            self._pending.append(diff)
        else:
            self._deliver(diff)

    def _deliver(self, diff: StateDiff):
        for listener in list(self._listeners):
            try:
                listener(diff.model_copy(deep=True))
            except Exception as e:
                logger.error("Error in UI state listener", error=str(e))


def visible_sorted(state: UIState) -> List[ComponentDescriptor]:
    visible = [component for component in state.values() if component.visible]
    visible.sort(key=lambda c: c.order if c.order is not None else 0)
    return [component.copy_out() for component in visible]
