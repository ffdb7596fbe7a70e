"""
Edit algebra applied by the reconciliation engine.

Each edit is a small pydantic model tagged by ``kind``. ``BatchEdit`` nests
other edits and is applied left to right as a single dispatch.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field

from .ui_state import ComponentDescriptor


class RenderEdit(BaseModel):
    kind: Literal["render"] = "render"
    component: ComponentDescriptor


class UpdateEdit(BaseModel):
    kind: Literal["update"] = "update"
    id: str
    props: Dict[str, Any] = Field(default_factory=dict)


class RemoveEdit(BaseModel):
    kind: Literal["remove"] = "remove"
    id: str


class ShowEdit(BaseModel):
    kind: Literal["show"] = "show"
    id: str


class HideEdit(BaseModel):
    kind: Literal["hide"] = "hide"
    id: str


class SetOrderEdit(BaseModel):
    kind: Literal["set_order"] = "set_order"
    id: str
    order: float


class BatchEdit(BaseModel):
    kind: Literal["batch"] = "batch"
    edits: List["Edit"] = Field(default_factory=list)


Edit = Annotated[
    Union[RenderEdit, UpdateEdit, RemoveEdit, ShowEdit, HideEdit, SetOrderEdit, BatchEdit],
    Field(discriminator="kind"),
]

BatchEdit.model_rebuild()


def define_component(
    id: str,
    type: str,
    props: Optional[Dict[str, Any]] = None,
    visible: bool = True,
    order: Optional[float] = None,
) -> ComponentDescriptor:
    """Create a component descriptor"""
    if order is None:
        return ComponentDescriptor(id=id, type=type, props=props or {}, visible=visible)
    return ComponentDescriptor(id=id, type=type, props=props or {}, visible=visible, order=order)


def render(component: ComponentDescriptor) -> RenderEdit:
    return RenderEdit(component=component)


def update(id: str, props: Dict[str, Any]) -> UpdateEdit:
    return UpdateEdit(id=id, props=props)


def remove(id: str) -> RemoveEdit:
    return RemoveEdit(id=id)


def show(id: str) -> ShowEdit:
    return ShowEdit(id=id)


def hide(id: str) -> HideEdit:
    return HideEdit(id=id)


def set_order(id: str, order: float) -> SetOrderEdit:
    return SetOrderEdit(id=id, order=order)


def batch(edits: List[Any]) -> BatchEdit:
    return BatchEdit(edits=list(edits))
