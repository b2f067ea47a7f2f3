"""Process execution endpoints — start, fill, advance and finish process instances."""

from __future__ import annotations

import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.api.deps import get_automation_runner, get_current_user
from bpmflow.database import get_db
from bpmflow.models.process import ProcessHistory, ProcessInstance
from bpmflow.models.user import User
from bpmflow.models.workflow import Workflow
from bpmflow.schemas.process import (
    AttendAll,
    FieldDefinitionResponse,
    FormValidate,
    HistoryEntryResponse,
    ProcessAdvance,
    ProcessComplete,
    ProcessDataSave,
    ProcessResponse,
    ProcessStart,
)
from bpmflow.services import execution_engine as engine
from bpmflow.services.automation_runner import AutomationRunner
from bpmflow.services.conditions import evaluate_condition, is_field_visible, translate_condition
from bpmflow.services.process_viewer import get_execution_state

router = APIRouter()


# ── Helpers ─────────────────────────────────────────────────────────


async def _get_process_for_user(
    db: AsyncSession, process_id: uuid.UUID, user: User
) -> ProcessInstance:
    instance = await engine.get_process(db, process_id)
    if (
        user.organization_id is not None
        and instance.organization_id is not None
        and instance.organization_id != user.organization_id
    ):
        raise engine.ProcessNotFound("Trámite no encontrado.")
    return instance


def _history_response(entry: ProcessHistory) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=entry.id,
        activity_id=entry.activity_id,
        activity_name=entry.activity.name if entry.activity else None,
        action=entry.action,
        comment=entry.comment,
        user_id=entry.user_id,
        created_at=entry.created_at,
    )


def _advance_response(result: engine.AdvanceResult) -> dict:
    automation = None
    if result.automation is not None:
        automation = {
            "success": result.automation.success,
            "error": result.automation.error,
            "steps_run": result.automation.steps_run,
        }
    return {
        "success": True,
        "process_id": result.process_id,
        "from_activity_id": result.from_activity_id,
        "to_activity_id": result.to_activity_id,
        **result.assignment.as_dict(),
        "steps": [asdict(s) for s in result.steps],
        "automation": automation,
    }


# ── Lifecycle ───────────────────────────────────────────────────────


@router.post("", status_code=201)
async def start_process(
    body: ProcessStart,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    workflow = await db.get(Workflow, body.workflow_id)
    if workflow is None or (
        user.organization_id is not None and workflow.organization_id != user.organization_id
    ):
        raise engine.WorkflowNotFound("Flujo de trabajo no encontrado.")
    instance = await engine.start_process(
        db,
        body.workflow_id,
        name=body.name,
        organization_id=workflow.organization_id,
        user_id=user.id,
    )
    return {"success": True, "instance": ProcessResponse.model_validate(instance)}


@router.get("/{process_id}")
async def get_process(
    process_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    instance = await _get_process_for_user(db, process_id, user)
    return {
        **ProcessResponse.model_validate(instance).model_dump(),
        "workflow_name": instance.workflow.name if instance.workflow else None,
        "current_activity_name": (
            instance.current_activity.name if instance.current_activity else None
        ),
        "current_activity_type": (
            instance.current_activity.type if instance.current_activity else None
        ),
    }


@router.get("/{process_id}/form")
async def get_form(
    process_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Current activity's form: fields, prefilled values, visibility and outgoing paths."""
    instance = await _get_process_for_user(db, process_id, user)
    fields = await engine.get_field_definitions(db, instance.current_activity_id)
    data = await engine.get_initial_form_data(db, process_id, instance.current_activity_id)
    transitions = await engine.get_outgoing_transitions(db, instance.current_activity_id)
    return {
        "process_id": instance.id,
        "activity_id": instance.current_activity_id,
        "fields": [FieldDefinitionResponse.model_validate(f) for f in fields],
        "data": data,
        "visibility": {f.name: is_field_visible(f, data) for f in fields},
        "transitions": [
            {
                "id": t.id,
                "target_id": t.target_id,
                "target_name": t.target.name if t.target else "Siguiente Actividad",
                "condition": t.condition,
                "condition_text": translate_condition(t.condition, fields),
                "active": evaluate_condition(t.condition, data),
            }
            for t in transitions
        ],
    }


@router.put("/{process_id}/data")
async def save_data(
    process_id: uuid.UUID,
    body: ProcessDataSave,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    instance = await _get_process_for_user(db, process_id, user)
    activity_id = body.activity_id or instance.current_activity_id
    instance = await engine.save_process_data(db, process_id, activity_id, body.fields)
    return {"success": True, "name": instance.name}


@router.post("/{process_id}/validate")
async def validate(
    process_id: uuid.UUID,
    body: FormValidate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _get_process_for_user(db, process_id, user)
    errors = await engine.validate_submission(db, process_id, body.fields)
    return {"valid": not errors, "errors": errors}


@router.post("/{process_id}/advance")
async def advance(
    process_id: uuid.UUID,
    body: ProcessAdvance,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    runner: AutomationRunner = Depends(get_automation_runner),
):
    """Take a transition. Without `fields` the saved values are validated and routed on."""
    await _get_process_for_user(db, process_id, user)
    result = await engine.submit_and_advance(
        db,
        process_id,
        body.transition_id,
        body.fields,
        comment=body.comment,
        user_id=user.id,
        expected_activity_id=body.expected_activity_id,
        runner=runner,
    )
    return _advance_response(result)


@router.post("/{process_id}/complete")
async def complete(
    process_id: uuid.UUID,
    body: ProcessComplete,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _get_process_for_user(db, process_id, user)
    instance = await engine.submit_and_complete(
        db, process_id, body.fields, comment=body.comment, user_id=user.id
    )
    return {"success": True, "instance": ProcessResponse.model_validate(instance)}


@router.post("/{process_id}/attend-all")
async def attend_all(
    process_id: uuid.UUID,
    body: AttendAll,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    runner: AutomationRunner = Depends(get_automation_runner),
):
    await _get_process_for_user(db, process_id, user)
    result = await engine.attend_all(
        db, process_id, body.fields, comment=body.comment, user_id=user.id, runner=runner
    )
    return {
        **_advance_response(result.advance),
        "active_transitions": result.active_transitions,
        "transition_id": result.transition_id,
    }


# ── Read paths ──────────────────────────────────────────────────────


@router.get("/{process_id}/history")
async def get_history(
    process_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _get_process_for_user(db, process_id, user)
    history = await engine.get_history(db, process_id)
    return [_history_response(entry) for entry in reversed(history)]


@router.get("/{process_id}/viewer")
async def get_viewer(
    process_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _get_process_for_user(db, process_id, user)
    state = await get_execution_state(db, process_id)
    return {
        "process_id": state.process_id,
        "workflow_id": state.workflow_id,
        "status": state.status,
        "current_activity_id": state.current_activity_id,
        "executed_activity_ids": sorted(str(a) for a in state.executed_activity_ids),
        "nodes": [asdict(n) for n in state.nodes],
        "edges": [asdict(e) for e in state.edges],
        "history": [_history_response(entry) for entry in state.history],
    }
