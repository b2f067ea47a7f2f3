from __future__ import annotations

import enum
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.api.deps import get_current_user, require_organization
from bpmflow.database import get_db
from bpmflow.models.scheduled_process import ScheduledProcess
from bpmflow.models.user import User
from bpmflow.schemas.scheduled_process import (
    ScheduledProcessCreate,
    ScheduledProcessResponse,
    ScheduledProcessUpdate,
)
from bpmflow.services import scheduler_service

router = APIRouter()


async def _get_schedule_for_user(
    db: AsyncSession, schedule_id: uuid.UUID, user: User
) -> ScheduledProcess:
    schedule = await scheduler_service.get_schedule(db, schedule_id)
    if schedule.organization_id != require_organization(user):
        raise scheduler_service.ScheduleNotFound("Programación no encontrada.")
    return schedule


@router.get("", response_model=list[ScheduledProcessResponse])
async def list_scheduled(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await scheduler_service.list_schedules(db, require_organization(user))


@router.post("", status_code=201, response_model=ScheduledProcessResponse)
async def create_scheduled(
    body: ScheduledProcessCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await scheduler_service.create_schedule(
        db,
        organization_id=require_organization(user),
        workflow_id=body.workflow_id,
        name=body.name,
        scheduled_at=body.scheduled_at,
        is_recurring=body.is_recurring,
        recurrence_pattern=body.recurrence_pattern.value,
        recurrence_interval=body.recurrence_interval,
        created_by=user.id,
    )


@router.patch("/{schedule_id}", response_model=ScheduledProcessResponse)
async def update_scheduled(
    schedule_id: uuid.UUID,
    body: ScheduledProcessUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _get_schedule_for_user(db, schedule_id, user)
    changes = {
        key: value.value if isinstance(value, enum.Enum) else value
        for key, value in body.model_dump(exclude_unset=True).items()
    }
    return await scheduler_service.update_schedule(db, schedule_id, changes)


@router.delete("/{schedule_id}", status_code=204)
async def delete_scheduled(
    schedule_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _get_schedule_for_user(db, schedule_id, user)
    await scheduler_service.delete_schedule(db, schedule_id)
