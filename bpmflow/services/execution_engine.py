"""Process execution engine.

Drives process instances through their workflow graph:

    start_process      create the instance on the workflow's start activity
    save_process_data  replace the captured values of one activity (draft save)
    advance_process    follow a transition, reassign, then run the target's automation
    complete_process   terminal action on an end activity or one with no way out
    attend_all         save the form and follow the first transition whose condition holds

``advance_process`` is an ordered sequence of steps recorded in an
``AdvanceResult``:

 1. transition   instance moves to the target activity (new assignment, status active)
 2. history      ``completed`` entry tagged to the target activity
 3. automation   the target's steps, when it declares an action
 4. outputs      new output keys stored as process data of the target activity
 5. automation_history  ``commented`` entry with the success or failure text

Steps 1-2 are committed together before any external call. Steps 3-5 are
committed afterwards; their failure never moves the instance back.
A transition is taken only from its source activity and only while its
condition holds. Structural errors (missing process, transition or activity,
blocked route, finished instance) are raised before anything is written.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bpmflow.core.encryption import decrypt_settings
from bpmflow.core.logging_config import log_context
from bpmflow.core.metrics import assignment_fallbacks_total, process_transitions_total
from bpmflow.models.activity_field import ActivityFieldDefinition
from bpmflow.models.base import utcnow
from bpmflow.models.organization import Organization
from bpmflow.models.process import (
    AUTOMATION_ERROR_PREFIX,
    AUTOMATION_SUCCESS_PREFIX,
    HistoryAction,
    ProcessData,
    ProcessHistory,
    ProcessInstance,
    ProcessStatus,
)
from bpmflow.models.workflow import Activity, ActivityType, Transition, Workflow
from bpmflow.services.assignment_resolver import (
    Assignment,
    AssignmentResolver,
    group_assignment,
)
from bpmflow.services.automation_runner import (
    AutomationResult,
    AutomationRunner,
    steps_from_activity,
    stringify_value,
)
from bpmflow.services.conditions import evaluate_condition
from bpmflow.services.form_validation import validate_form
from bpmflow.services.name_template import resolve_name_template

logger = logging.getLogger(__name__)

START_COMMENT = "Trámite iniciado automáticamente."
ADVANCE_COMMENT = "Actividad completada."
COMPLETE_COMMENT = "Trámite finalizado manualmente."
ATTEND_ALL_PREFIX = "[Atención Masiva] "

__all__ = [
    "EngineError",
    "NoStartActivity",
    "WorkflowNotFound",
    "ProcessNotFound",
    "TransitionNotFound",
    "ActivityNotFound",
    "ProcessNotActive",
    "NoActiveTransitions",
    "ConcurrentUpdate",
    "TransitionNotActive",
    "ActivityNotTerminal",
    "FormValidationFailed",
    "StepResult",
    "AdvanceResult",
    "AttendAllResult",
    "start_process",
    "get_process",
    "get_field_definitions",
    "get_process_data",
    "get_process_data_map",
    "get_initial_form_data",
    "get_outgoing_transitions",
    "get_history",
    "save_process_data",
    "validate_form",
    "validate_submission",
    "advance_process",
    "complete_process",
    "attend_all",
    "submit_and_advance",
    "submit_and_complete",
]


# ── Errors ──────────────────────────────────────────────────────────


class EngineError(Exception):
    """Base class for errors that abort an engine operation before any write."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoStartActivity(EngineError):
    pass


class WorkflowNotFound(EngineError):
    pass


class ProcessNotFound(EngineError):
    pass


class TransitionNotFound(EngineError):
    pass


class ActivityNotFound(EngineError):
    pass


class ProcessNotActive(EngineError):
    pass


class NoActiveTransitions(EngineError):
    pass


class ConcurrentUpdate(EngineError):
    pass


class TransitionNotActive(EngineError):
    pass


class ActivityNotTerminal(EngineError):
    pass


# ── Results ─────────────────────────────────────────────────────────


@dataclass
class StepResult:
    step: str  # transition / history / automation / outputs / automation_history
    ok: bool
    detail: str = ""


@dataclass
class AdvanceResult:
    process_id: uuid.UUID
    from_activity_id: uuid.UUID
    to_activity_id: uuid.UUID
    assignment: Assignment
    steps: list[StepResult] = field(default_factory=list)
    automation: AutomationResult | None = None

    @property
    def automation_failed(self) -> bool:
        return self.automation is not None and not self.automation.success

    @property
    def failed_steps(self) -> list[StepResult]:
        return [s for s in self.steps if not s.ok]


@dataclass
class AttendAllResult:
    active_transitions: int
    transition_id: uuid.UUID
    advance: AdvanceResult


# ── Reads ───────────────────────────────────────────────────────────


async def _load_instance(db: AsyncSession, process_id: uuid.UUID) -> ProcessInstance:
    instance = await db.get(ProcessInstance, process_id)
    if instance is None:
        raise ProcessNotFound("Trámite no encontrado.")
    return instance


async def _start_activities(db: AsyncSession, workflow_id: uuid.UUID) -> list[Activity]:
    result = await db.execute(
        select(Activity)
        .where(Activity.workflow_id == workflow_id, Activity.type == ActivityType.START.value)
        .order_by(Activity.created_at)
    )
    return list(result.scalars().all())


async def get_process(db: AsyncSession, process_id: uuid.UUID) -> ProcessInstance:
    """Instance with its workflow and current activity loaded."""
    result = await db.execute(
        select(ProcessInstance)
        .where(ProcessInstance.id == process_id)
        .options(
            selectinload(ProcessInstance.workflow),
            selectinload(ProcessInstance.current_activity),
        )
        .execution_options(populate_existing=True)
    )
    instance = result.scalar_one_or_none()
    if instance is None:
        raise ProcessNotFound("Trámite no encontrado.")
    return instance


async def get_field_definitions(
    db: AsyncSession, activity_id: uuid.UUID
) -> list[ActivityFieldDefinition]:
    result = await db.execute(
        select(ActivityFieldDefinition)
        .where(ActivityFieldDefinition.activity_id == activity_id)
        .order_by(ActivityFieldDefinition.order_index, ActivityFieldDefinition.created_at)
    )
    return list(result.scalars().all())


async def get_process_data(
    db: AsyncSession, process_id: uuid.UUID, activity_id: uuid.UUID
) -> list[ProcessData]:
    result = await db.execute(
        select(ProcessData)
        .where(ProcessData.process_id == process_id, ProcessData.activity_id == activity_id)
        .order_by(ProcessData.created_at)
    )
    return list(result.scalars().all())


async def get_process_data_map(
    db: AsyncSession, process_id: uuid.UUID, activity_id: uuid.UUID | None = None
) -> dict[str, str]:
    """Captured values as ``{field_name: value}``; the latest row wins on name clashes."""
    stmt = select(ProcessData).where(ProcessData.process_id == process_id)
    if activity_id is not None:
        stmt = stmt.where(ProcessData.activity_id == activity_id)
    result = await db.execute(stmt.order_by(ProcessData.created_at))
    return {row.field_name: row.value for row in result.scalars().all()}


async def get_initial_form_data(
    db: AsyncSession, process_id: uuid.UUID, activity_id: uuid.UUID | None = None
) -> dict[str, str]:
    """Values to prefill an activity's form.

    Saved draft values first, then values copied from an earlier activity
    (``source_activity_id`` / ``source_field_name``), then ``default_value``.
    """
    instance = await _load_instance(db, process_id)
    activity_id = activity_id or instance.current_activity_id

    data = await get_process_data_map(db, process_id, activity_id)
    for fd in await get_field_definitions(db, activity_id):
        if data.get(fd.name):
            continue
        if fd.source_activity_id and fd.source_field_name:
            source = await get_process_data_map(db, process_id, fd.source_activity_id)
            if source.get(fd.source_field_name):
                data[fd.name] = source[fd.source_field_name]
                continue
        if fd.default_value:
            data[fd.name] = fd.default_value
    return data


async def get_outgoing_transitions(db: AsyncSession, activity_id: uuid.UUID) -> list[Transition]:
    """Transitions leaving an activity, in declaration order, with targets loaded."""
    result = await db.execute(
        select(Transition)
        .where(Transition.source_id == activity_id)
        .options(selectinload(Transition.target))
        .execution_options(populate_existing=True)
        .order_by(Transition.created_at, Transition.id)
    )
    return list(result.scalars().all())


async def get_history(db: AsyncSession, process_id: uuid.UUID) -> list[ProcessHistory]:
    result = await db.execute(
        select(ProcessHistory)
        .where(ProcessHistory.process_id == process_id)
        .options(selectinload(ProcessHistory.activity))
        .execution_options(populate_existing=True)
        .order_by(ProcessHistory.created_at)
    )
    return list(result.scalars().all())


async def _organization_settings(
    db: AsyncSession, organization_id: uuid.UUID | None
) -> dict[str, Any]:
    if organization_id is None:
        return {}
    org = await db.get(Organization, organization_id)
    return decrypt_settings(org.settings if org else None)


# ── Start ───────────────────────────────────────────────────────────


async def start_process(
    db: AsyncSession,
    workflow_id: uuid.UUID,
    name: str | None = None,
    organization_id: uuid.UUID | None = None,
    user_id: uuid.UUID | None = None,
) -> ProcessInstance:
    """Create an active instance on the workflow's start activity, owned by ``user_id``."""
    workflow = await db.get(Workflow, workflow_id)
    if workflow is None:
        raise WorkflowNotFound("Flujo de trabajo no encontrado.")

    starts = await _start_activities(db, workflow_id)
    if len(starts) != 1:
        logger.warning("Workflow %s has %d start activities", workflow_id, len(starts))
        raise NoStartActivity("No se encontró el nodo de inicio para este flujo.")
    start = starts[0]

    instance = ProcessInstance(
        organization_id=organization_id or workflow.organization_id,
        workflow_id=workflow.id,
        name=name or workflow.name,
        status=ProcessStatus.ACTIVE.value,
        current_activity_id=start.id,
        created_by=user_id,
        assigned_user_id=user_id,
    )
    db.add(instance)
    await db.flush()

    db.add(
        ProcessHistory(
            process_id=instance.id,
            activity_id=start.id,
            action=HistoryAction.STARTED.value,
            comment=START_COMMENT,
            user_id=user_id,
        )
    )
    await db.commit()

    process_transitions_total.labels(action="started").inc()
    logger.info(
        "Process %s started on workflow %s",
        instance.id,
        workflow.id,
        extra=log_context(process_id=instance.id, activity_id=start.id),
    )
    return instance


# ── Form data ───────────────────────────────────────────────────────


async def save_process_data(
    db: AsyncSession,
    process_id: uuid.UUID,
    activity_id: uuid.UUID,
    fields: Mapping[str, Any],
) -> ProcessInstance:
    """Replace the values captured for one activity, then refresh the instance name.

    Re-saving the same fields leaves exactly one row per field name. When the
    activity is the workflow's start activity and the workflow has a
    ``name_template``, the name is updated only if every placeholder resolved.
    """
    instance = await _load_instance(db, process_id)
    if not instance.is_active:
        raise ProcessNotActive("El trámite ya fue finalizado.")

    activity = await db.get(Activity, activity_id)
    if activity is None or activity.workflow_id != instance.workflow_id:
        raise ActivityNotFound("Actividad no encontrada en este flujo.")

    values = {name: "" if value is None else stringify_value(value) for name, value in fields.items()}

    await db.execute(
        delete(ProcessData).where(
            ProcessData.process_id == process_id,
            ProcessData.activity_id == activity_id,
        )
    )
    db.add_all(
        ProcessData(process_id=process_id, activity_id=activity_id, field_name=name, value=value)
        for name, value in values.items()
    )

    workflow = await db.get(Workflow, instance.workflow_id)
    if workflow is not None and workflow.name_template and activity.type == ActivityType.START.value:
        new_name = resolve_name_template(workflow.name_template, values)
        if new_name is not None and new_name != instance.name:
            logger.info("Process %s renamed to %r", instance.id, new_name)
            instance.name = new_name

    await db.commit()
    return instance


async def validate_submission(
    db: AsyncSession, process_id: uuid.UUID, form_data: Mapping[str, Any]
) -> list[str]:
    """Validate ``form_data`` against the fields of the instance's current activity."""
    instance = await _load_instance(db, process_id)
    fields = await get_field_definitions(db, instance.current_activity_id)
    return validate_form(fields, form_data)


# ── Advance ─────────────────────────────────────────────────────────


async def _resolve_assignment(
    db: AsyncSession,
    activity: Activity,
    instance: ProcessInstance,
    resolver: AssignmentResolver | None,
) -> Assignment:
    resolver = resolver or AssignmentResolver(db)
    try:
        # The workflow creator, not the current actor, is the "creator" reference
        return await resolver.resolve(activity, instance.created_by, instance.organization_id)
    except Exception as exc:
        assignment_fallbacks_total.inc()
        logger.exception(
            "Assignment resolution failed for activity %s, using group queue",
            activity.id,
            extra=log_context(process_id=instance.id, activity_id=activity.id),
        )
        if isinstance(exc, SQLAlchemyError):
            # Nothing written yet; reset the failed transaction and reload
            await db.rollback()
            await db.refresh(instance)
            await db.refresh(activity)
        return group_assignment(activity)


def _as_form_values(form_data: Mapping[str, Any]) -> dict[str, str]:
    return {k: "" if v is None else stringify_value(v) for k, v in form_data.items()}


async def _check_route(
    db: AsyncSession,
    instance: ProcessInstance,
    transition_id: uuid.UUID,
    form_data: Mapping[str, Any] | None,
) -> Transition:
    """The transition, if it leaves the current activity and its condition holds."""
    transition = await db.get(Transition, transition_id)
    if (
        transition is None
        or transition.workflow_id != instance.workflow_id
        or transition.source_id != instance.current_activity_id
    ):
        raise TransitionNotFound("Transición no encontrada.")

    if form_data is None:
        data = await get_process_data_map(db, instance.id, instance.current_activity_id)
    else:
        data = _as_form_values(form_data)
    if not evaluate_condition(transition.condition, data):
        raise TransitionNotActive("La condición de esta transición no se cumple.")
    return transition


async def advance_process(
    db: AsyncSession,
    process_id: uuid.UUID,
    transition_id: uuid.UUID,
    comment: str | None = None,
    user_id: uuid.UUID | None = None,
    expected_activity_id: uuid.UUID | None = None,
    runner: AutomationRunner | None = None,
    resolver: AssignmentResolver | None = None,
    form_data: Mapping[str, Any] | None = None,
) -> AdvanceResult:
    """Move an instance along ``transition_id`` and run the target's automation.

    The transition must leave the current activity and its condition must
    hold for ``form_data`` (the saved values of the current activity when
    omitted). With ``expected_activity_id`` the move only happens if the
    instance is still on that activity (``ConcurrentUpdate`` otherwise).
    Without it the last writer wins.
    """
    instance = await _load_instance(db, process_id)
    if not instance.is_active:
        raise ProcessNotActive("El trámite ya fue finalizado.")
    if expected_activity_id is not None and instance.current_activity_id != expected_activity_id:
        raise ConcurrentUpdate("El trámite ya fue avanzado por otro usuario.")

    transition = await _check_route(db, instance, transition_id, form_data)

    target = await db.get(Activity, transition.target_id)
    if target is None:
        raise ActivityNotFound("Actividad destino no encontrada.")

    assignment = await _resolve_assignment(db, target, instance, resolver)
    result = AdvanceResult(
        process_id=instance.id,
        from_activity_id=instance.current_activity_id,
        to_activity_id=target.id,
        assignment=assignment,
    )
    log_extra = log_context(process_id=instance.id, activity_id=target.id)

    # 1. transition
    stmt = update(ProcessInstance).where(ProcessInstance.id == instance.id)
    if expected_activity_id is not None:
        stmt = stmt.where(ProcessInstance.current_activity_id == expected_activity_id)
    moved = await db.execute(
        stmt.values(
            current_activity_id=target.id,
            status=ProcessStatus.ACTIVE.value,
            updated_at=utcnow(),
            **assignment.as_dict(),
        )
    )
    if moved.rowcount == 0:
        await db.rollback()
        raise ConcurrentUpdate("El trámite ya fue avanzado por otro usuario.")
    result.steps.append(
        StepResult("transition", True, f"{result.from_activity_id} -> {result.to_activity_id}")
    )

    # 2. history, tagged to where the process arrived
    db.add(
        ProcessHistory(
            process_id=instance.id,
            activity_id=target.id,
            action=HistoryAction.COMPLETED.value,
            comment=comment or ADVANCE_COMMENT,
            user_id=user_id,
        )
    )
    await db.commit()
    await db.refresh(instance)
    result.steps.append(StepResult("history", True, HistoryAction.COMPLETED.value))

    process_transitions_total.labels(action="advanced").inc()
    logger.info(
        "Process %s advanced %s -> %s",
        instance.id,
        result.from_activity_id,
        target.id,
        extra=log_extra,
    )

    # 3-5. automation on entry
    if target.has_automation:
        await _run_entry_automation(db, instance, target, user_id, runner, result)

    return result


async def _run_entry_automation(
    db: AsyncSession,
    instance: ProcessInstance,
    target: Activity,
    user_id: uuid.UUID | None,
    runner: AutomationRunner | None,
    result: AdvanceResult,
) -> None:
    log_extra = log_context(process_id=instance.id, activity_id=target.id)
    steps = steps_from_activity(target)

    context: dict[str, Any] = {
        "process_id": str(instance.id),
        "user_id": str(user_id) if user_id else "",
    }
    context.update(await get_process_data_map(db, instance.id))
    org_settings = await _organization_settings(db, instance.organization_id)

    try:
        automation = await (runner or AutomationRunner()).run(steps, context, org_settings)
    except Exception as exc:
        logger.exception("Automation runner crashed on activity %s", target.id, extra=log_extra)
        automation = AutomationResult(success=False, outputs=dict(context), error=str(exc))
    result.automation = automation

    if not automation.success:
        result.steps.append(StepResult("automation", False, automation.error or ""))
        comment = f"{AUTOMATION_ERROR_PREFIX}{automation.error}"
        logger.warning("Automation failed on activity %s: %s", target.id, automation.error, extra=log_extra)
    else:
        result.steps.append(StepResult("automation", True, f"{len(steps)} pasos"))
        new_outputs = {k: v for k, v in automation.outputs.items() if k not in context}
        db.add_all(
            ProcessData(
                process_id=instance.id,
                activity_id=target.id,
                field_name=name,
                value=stringify_value(value),
            )
            for name, value in new_outputs.items()
        )
        result.steps.append(StepResult("outputs", True, ", ".join(new_outputs)))
        comment = (
            f"{AUTOMATION_SUCCESS_PREFIX}Acciones Automáticas ejecutadas con éxito. "
            f"({len(steps)} pasos)"
        )

    db.add(
        ProcessHistory(
            process_id=instance.id,
            activity_id=target.id,
            action=HistoryAction.COMMENTED.value,
            comment=comment,
            user_id=user_id,
        )
    )
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Could not record automation outcome", extra=log_extra)
        if automation.success:
            result.steps[-1] = StepResult("outputs", False, str(exc))
        result.steps.append(StepResult("automation_history", False, str(exc)))
        return
    result.steps.append(StepResult("automation_history", True, comment))


# ── Complete / attend all ───────────────────────────────────────────


async def _check_terminal(db: AsyncSession, instance: ProcessInstance) -> None:
    """Completion is only offered on end activities and on activities with no way out."""
    activity = await db.get(Activity, instance.current_activity_id)
    if activity is not None and activity.type == ActivityType.END.value:
        return
    outgoing = await db.execute(
        select(Transition.id).where(Transition.source_id == instance.current_activity_id).limit(1)
    )
    if outgoing.first() is not None:
        raise ActivityNotTerminal(
            "La actividad actual no es final; avance el trámite por una transición."
        )


async def complete_process(
    db: AsyncSession,
    process_id: uuid.UUID,
    comment: str | None = None,
    user_id: uuid.UUID | None = None,
) -> ProcessInstance:
    """Finish the instance on its current activity, which must be terminal."""
    instance = await _load_instance(db, process_id)
    if not instance.is_active:
        raise ProcessNotActive("El trámite ya fue finalizado.")
    await _check_terminal(db, instance)

    instance.status = ProcessStatus.COMPLETED.value
    db.add(
        ProcessHistory(
            process_id=instance.id,
            activity_id=instance.current_activity_id,
            action=HistoryAction.COMPLETED.value,
            comment=comment or COMPLETE_COMMENT,
            user_id=user_id,
        )
    )
    await db.commit()

    process_transitions_total.labels(action="completed").inc()
    logger.info(
        "Process %s completed",
        instance.id,
        extra=log_context(process_id=instance.id, activity_id=instance.current_activity_id),
    )
    return instance


async def attend_all(
    db: AsyncSession,
    process_id: uuid.UUID,
    form_data: Mapping[str, Any],
    comment: str | None = None,
    user_id: uuid.UUID | None = None,
    runner: AutomationRunner | None = None,
    resolver: AssignmentResolver | None = None,
) -> AttendAllResult:
    """Save the form, then advance along the first transition whose condition holds.

    Only one path is taken even when several conditions are true; the count
    of active transitions is reported back.
    """
    instance = await _load_instance(db, process_id)
    if not instance.is_active:
        raise ProcessNotActive("El trámite ya fue finalizado.")

    current_activity_id = instance.current_activity_id
    data = _as_form_values(form_data)
    transitions = await get_outgoing_transitions(db, current_activity_id)
    active = [t for t in transitions if evaluate_condition(t.condition, data)]
    if not active:
        raise NoActiveTransitions("No hay caminos activos para atender.")

    await save_process_data(db, process_id, current_activity_id, form_data)
    advance = await advance_process(
        db,
        process_id,
        active[0].id,
        comment=f"{ATTEND_ALL_PREFIX}{comment or ''}",
        user_id=user_id,
        expected_activity_id=current_activity_id,
        runner=runner,
        resolver=resolver,
        form_data=data,
    )
    return AttendAllResult(active_transitions=len(active), transition_id=active[0].id, advance=advance)


# ── Form submission ─────────────────────────────────────────────────


class FormValidationFailed(EngineError):
    def __init__(self, errors: list[str]):
        super().__init__("Por favor corrija los siguientes errores: " + " ".join(errors))
        self.errors = errors


async def _validated_form(
    db: AsyncSession, instance: ProcessInstance, form_data: Mapping[str, Any] | None
) -> None:
    """Validate the submitted values, or the saved ones when nothing was submitted."""
    if form_data is None:
        form_data = await get_process_data_map(db, instance.id, instance.current_activity_id)
    fields = await get_field_definitions(db, instance.current_activity_id)
    errors = validate_form(fields, form_data)
    if errors:
        raise FormValidationFailed(errors)


async def submit_and_advance(
    db: AsyncSession,
    process_id: uuid.UUID,
    transition_id: uuid.UUID,
    form_data: Mapping[str, Any] | None,
    comment: str | None = None,
    user_id: uuid.UUID | None = None,
    expected_activity_id: uuid.UUID | None = None,
    runner: AutomationRunner | None = None,
    resolver: AssignmentResolver | None = None,
) -> AdvanceResult:
    """Validate the current activity's form, save it, then advance.

    Every check (instance, route, validation) runs before the save. With
    ``form_data=None`` the saved values are validated and nothing is saved.
    """
    instance = await _load_instance(db, process_id)
    if not instance.is_active:
        raise ProcessNotActive("El trámite ya fue finalizado.")
    if expected_activity_id is not None and instance.current_activity_id != expected_activity_id:
        raise ConcurrentUpdate("El trámite ya fue avanzado por otro usuario.")

    activity_id = instance.current_activity_id
    await _check_route(db, instance, transition_id, form_data)
    await _validated_form(db, instance, form_data)
    if form_data is not None:
        await save_process_data(db, process_id, activity_id, form_data)
    return await advance_process(
        db,
        process_id,
        transition_id,
        comment=comment,
        user_id=user_id,
        expected_activity_id=activity_id,
        runner=runner,
        resolver=resolver,
        form_data=form_data,
    )


async def submit_and_complete(
    db: AsyncSession,
    process_id: uuid.UUID,
    form_data: Mapping[str, Any] | None,
    comment: str | None = None,
    user_id: uuid.UUID | None = None,
) -> ProcessInstance:
    """Validate and save the current activity's form, then complete the instance."""
    instance = await _load_instance(db, process_id)
    if not instance.is_active:
        raise ProcessNotActive("El trámite ya fue finalizado.")
    await _check_terminal(db, instance)
    await _validated_form(db, instance, form_data)
    if form_data is not None:
        await save_process_data(db, process_id, instance.current_activity_id, form_data)
    return await complete_process(db, process_id, comment=comment, user_id=user_id)
