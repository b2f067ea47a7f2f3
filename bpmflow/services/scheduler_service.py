"""Scheduled processes — start workflow instances at a set time, once or on a recurrence.

``run_due_schedules`` is called by the background loop in ``bpmflow.main``.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.core.logging_config import log_context
from bpmflow.models.base import as_utc, utcnow
from bpmflow.models.process import ProcessInstance
from bpmflow.models.scheduled_process import RecurrencePattern, ScheduledProcess, ScheduleStatus
from bpmflow.models.workflow import Workflow
from bpmflow.services.execution_engine import EngineError, WorkflowNotFound, start_process

logger = logging.getLogger(__name__)

_RUNNABLE = (ScheduleStatus.PENDING.value, ScheduleStatus.ACTIVE.value)
_UPDATABLE = {
    "name",
    "scheduled_at",
    "is_recurring",
    "recurrence_pattern",
    "recurrence_interval",
    "status",
}


class ScheduleNotFound(EngineError):
    pass


class InvalidSchedule(EngineError):
    pass


def recurrence_step(schedule: ScheduledProcess) -> timedelta | None:
    if not schedule.is_recurring:
        return None
    pattern = schedule.recurrence_pattern
    if pattern == RecurrencePattern.DAILY.value:
        return timedelta(days=1)
    if pattern == RecurrencePattern.WEEKLY.value:
        return timedelta(weeks=1)
    if pattern == RecurrencePattern.CUSTOM_DAYS.value:
        return timedelta(days=max(1, schedule.recurrence_interval or 1))
    return None


def next_occurrence(schedule: ScheduledProcess, after: datetime) -> datetime | None:
    """First occurrence strictly after ``after``; None for one-shot schedules."""
    step = recurrence_step(schedule)
    if step is None:
        return None
    current = as_utc(schedule.scheduled_at)
    after = as_utc(after)
    if current > after:
        return current
    periods = math.floor((after - current) / step) + 1
    return current + periods * step


def _check_recurrence(schedule: ScheduledProcess) -> None:
    valid = {p.value for p in RecurrencePattern}
    if schedule.recurrence_pattern not in valid:
        raise InvalidSchedule(f"Patrón de recurrencia inválido: {schedule.recurrence_pattern}")
    if schedule.is_recurring and schedule.recurrence_pattern == RecurrencePattern.NONE.value:
        raise InvalidSchedule("Una programación recurrente necesita un patrón.")
    if (
        schedule.recurrence_pattern == RecurrencePattern.CUSTOM_DAYS.value
        and (schedule.recurrence_interval or 0) < 1
    ):
        raise InvalidSchedule("El intervalo en días debe ser al menos 1.")


# ── CRUD ────────────────────────────────────────────────────────────


async def list_schedules(db: AsyncSession, organization_id: uuid.UUID) -> list[ScheduledProcess]:
    result = await db.execute(
        select(ScheduledProcess)
        .where(ScheduledProcess.organization_id == organization_id)
        .order_by(ScheduledProcess.scheduled_at)
    )
    return list(result.scalars().all())


async def get_schedule(db: AsyncSession, schedule_id: uuid.UUID) -> ScheduledProcess:
    schedule = await db.get(ScheduledProcess, schedule_id)
    if schedule is None:
        raise ScheduleNotFound("Programación no encontrada.")
    return schedule


async def create_schedule(
    db: AsyncSession,
    organization_id: uuid.UUID,
    workflow_id: uuid.UUID,
    name: str,
    scheduled_at: datetime,
    is_recurring: bool = False,
    recurrence_pattern: str = RecurrencePattern.NONE.value,
    recurrence_interval: int | None = None,
    created_by: uuid.UUID | None = None,
) -> ScheduledProcess:
    workflow = await db.get(Workflow, workflow_id)
    if workflow is None or workflow.organization_id != organization_id:
        raise WorkflowNotFound("Flujo de trabajo no encontrado.")

    schedule = ScheduledProcess(
        organization_id=organization_id,
        workflow_id=workflow_id,
        name=name,
        scheduled_at=as_utc(scheduled_at),
        is_recurring=is_recurring,
        recurrence_pattern=recurrence_pattern,
        recurrence_interval=recurrence_interval,
        created_by=created_by,
        status=ScheduleStatus.PENDING.value,
    )
    _check_recurrence(schedule)
    db.add(schedule)
    await db.commit()
    logger.info("Scheduled workflow %s for %s", workflow_id, schedule.scheduled_at.isoformat())
    return schedule


async def update_schedule(
    db: AsyncSession, schedule_id: uuid.UUID, changes: dict[str, Any]
) -> ScheduledProcess:
    schedule = await get_schedule(db, schedule_id)
    for key, value in changes.items():
        if key not in _UPDATABLE:
            continue
        if key == "scheduled_at" and value is not None:
            value = as_utc(value)
        setattr(schedule, key, value)
    _check_recurrence(schedule)
    await db.commit()
    return schedule


async def delete_schedule(db: AsyncSession, schedule_id: uuid.UUID) -> None:
    schedule = await get_schedule(db, schedule_id)
    await db.delete(schedule)
    await db.commit()


# ── Trigger ─────────────────────────────────────────────────────────


async def run_due_schedules(
    db: AsyncSession, now: datetime | None = None
) -> list[ProcessInstance]:
    """Start one process per due schedule. A failing schedule is logged and skipped."""
    now = as_utc(now or utcnow())
    result = await db.execute(
        select(ScheduledProcess.id)
        .where(
            ScheduledProcess.status.in_(_RUNNABLE),
            ScheduledProcess.scheduled_at <= now,
        )
        .order_by(ScheduledProcess.scheduled_at)
    )
    due_ids = list(result.scalars().all())

    started: list[ProcessInstance] = []
    for schedule_id in due_ids:
        schedule = await db.get(ScheduledProcess, schedule_id)
        if schedule is None:
            continue
        try:
            instance = await start_process(
                db,
                schedule.workflow_id,
                name=schedule.name,
                organization_id=schedule.organization_id,
                user_id=schedule.created_by,
            )
        except Exception:
            await db.rollback()
            logger.exception("Scheduled process %s could not start", schedule_id)
            continue

        schedule = await db.get(ScheduledProcess, schedule_id)
        schedule.last_run_at = now
        following = next_occurrence(schedule, now)
        if following is None:
            schedule.status = ScheduleStatus.COMPLETED.value
        else:
            schedule.scheduled_at = following
            schedule.status = ScheduleStatus.ACTIVE.value
        await db.commit()

        started.append(instance)
        logger.info(
            "Scheduled process %s started instance %s",
            schedule_id,
            instance.id,
            extra=log_context(process_id=instance.id),
        )
    return started
