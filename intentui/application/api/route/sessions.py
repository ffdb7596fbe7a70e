from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Annotated, Dict, Any, List, Optional
from pydantic import BaseModel, Field
import structlog

from intentui.application.session_registry import SessionRegistry
from intentui.session import UISession

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


class SessionCreated(BaseModel):
    session_id: str
    websocket_url: str


class IntentRequest(BaseModel):
    text: str


class FormRequest(BaseModel):
    form_id: Optional[str] = None
    values: Dict[str, Any] = Field(default_factory=dict)


async def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


async def get_session(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_registry)]
) -> UISession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    structlog.contextvars.bind_contextvars(session_id=session_id)
    return session


SessionDep = Annotated[UISession, Depends(get_session)]


@router.post("", status_code=201, response_model=SessionCreated)
async def create_session(registry: Annotated[SessionRegistry, Depends(get_registry)]):
    session = registry.create()
    return SessionCreated(
        session_id=session.session_id,
        websocket_url=f"/ws/sessions/{session.session_id}",
    )


@router.get("/{session_id}")
async def get_session_info(session: SessionDep):
    return session.get_info()


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str, registry: Annotated[SessionRegistry, Depends(get_registry)]):
    if not registry.remove(session_id):
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.post("/{session_id}/intents")
async def submit_intent(body: IntentRequest, session: SessionDep):
    result = await session.process_user_input(body.text)
    return result.to_public()


@router.post("/{session_id}/forms")
async def submit_form(body: FormRequest, session: SessionDep):
    result = await session.handle_form_submission(body.values)
    return result.to_public()


@router.post("/{session_id}/dialogs/{dialog_id}/confirm")
async def confirm_dialog(dialog_id: str, session: SessionDep):
    result = await session.confirm_destructive_action(dialog_id)
    return result.to_public()


@router.post("/{session_id}/dialogs/{dialog_id}/cancel")
async def cancel_dialog(dialog_id: str, session: SessionDep):
    result = await session.cancel_destructive_action(dialog_id)
    return result.to_public()


@router.post("/{session_id}/suggestions/dismiss")
async def dismiss_suggestions(session: SessionDep):
    diff = session.dismiss_suggestions()
    return {"dismissed": diff is not None, "diff": diff.model_dump() if diff else None}


@router.get("/{session_id}/components")
async def list_components(session: SessionDep) -> List[Dict[str, Any]]:
    return [component.to_public() for component in session.get_visible_components()]


@router.get("/{session_id}/components/{component_id}")
async def get_component(component_id: str, session: SessionDep):
    component = session.get_component(component_id)
    if component is None:
        raise HTTPException(status_code=404, detail=f"Component '{component_id}' not found")
    return component.to_public()


@router.get("/{session_id}/facts/summary")
async def fact_summary(session: SessionDep) -> Dict[str, int]:
    return session.fact_source_summary()
