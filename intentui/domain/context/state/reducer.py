"""
Pure reducer over the component tree.

``reduce_state`` never mutates the state it is given: every edit produces a
new mapping, and a changed descriptor is replaced by a new instance.
"""

from typing import Callable, Dict, NamedTuple

from intentui.domain.models.edits import (
    BatchEdit, HideEdit, RemoveEdit, RenderEdit, SetOrderEdit, ShowEdit, UpdateEdit,
)
from intentui.domain.models.ui_state import ComponentDescriptor, StateDiff

UIState = Dict[str, ComponentDescriptor]


class ReduceResult(NamedTuple):
    state: UIState
    diff: StateDiff


def reduce_state(state: UIState, edit, allocate_order: Callable[[], float]) -> ReduceResult:
    """Apply one edit and report which ids it touched"""

    if isinstance(edit, BatchEdit):
        current = state
        diff = StateDiff()
        for sub_edit in edit.edits:
            current, sub_diff = reduce_state(current, sub_edit, allocate_order)
            diff.extend(sub_diff)
        return ReduceResult(current, diff)

    new_state = dict(state)
    diff = StateDiff()

    if isinstance(edit, RenderEdit):
        component = edit.component
        existing = state.get(component.id)
        if existing is not None:
            changes = {
                field: getattr(component, field)
                for field in component.model_fields_set
                if field != "id" and not (field == "order" and component.order is None)
            }
            if "props" in changes:
                changes["props"] = dict(changes["props"])
            new_state[component.id] = existing.model_copy(update=changes)
            diff.updated.append(component.id)
        else:
            order = component.order if component.order is not None else allocate_order()
            new_state[component.id] = component.model_copy(
                update={"order": order, "props": dict(component.props)}
            )
            diff.added.append(component.id)

    elif isinstance(edit, RemoveEdit):
        if edit.id in state:
            del new_state[edit.id]
            diff.removed.append(edit.id)

    elif isinstance(edit, UpdateEdit):
        existing = state.get(edit.id)
        if existing is not None:
            new_state[edit.id] = existing.model_copy(update={"props": {**existing.props, **edit.props}})
            diff.updated.append(edit.id)

    elif isinstance(edit, ShowEdit):
        existing = state.get(edit.id)
        if existing is not None and not existing.visible:
            new_state[edit.id] = existing.model_copy(update={"visible": True})
            diff.visibility_changed.append(edit.id)

    elif isinstance(edit, HideEdit):
        existing = state.get(edit.id)
        if existing is not None and existing.visible:
            new_state[edit.id] = existing.model_copy(update={"visible": False})
            diff.visibility_changed.append(edit.id)

    elif isinstance(edit, SetOrderEdit):
        existing = state.get(edit.id)
        if existing is not None:
            new_state[edit.id] = existing.model_copy(update={"order": edit.order})
            diff.updated.append(edit.id)

    else:
        raise TypeError(f"Unsupported edit: {type(edit).__name__}")

    return ReduceResult(new_state, diff)
