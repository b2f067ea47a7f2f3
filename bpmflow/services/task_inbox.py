"""Task inbox — active process instances a user may work on, with SLA urgency flags."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.config import settings
from bpmflow.models.base import as_utc, utcnow
from bpmflow.models.org_chart import EmployeePosition, Position
from bpmflow.models.process import ProcessInstance, ProcessStatus
from bpmflow.models.workflow import Activity, Workflow

NEAR_DUE_HOURS = 4


@dataclass
class TaskUrgency:
    hours_elapsed: float
    due_hours: float
    overdue: bool
    near_due: bool
    escalated: bool


@dataclass
class InboxTask:
    instance: ProcessInstance
    workflow: Workflow
    activity: Activity
    urgency: TaskUrgency


def compute_urgency(
    instance: ProcessInstance, activity: Activity | None, now: datetime | None = None
) -> TaskUrgency:
    """SLA flags, measured from the instance's creation.

    overdue    elapsed > due_date_hours (DEFAULT_DUE_HOURS when unset)
    near_due   0 < remaining <= 4h
    escalated  supervisor alerts on and elapsed > sla_alert_hours
    """
    now = as_utc(now or utcnow())
    hours_elapsed = (now - as_utc(instance.created_at)).total_seconds() / 3600
    due_hours = (activity.due_date_hours if activity else None) or settings.DEFAULT_DUE_HOURS
    remaining = due_hours - hours_elapsed

    escalated = bool(
        activity is not None
        and activity.enable_supervisor_alerts
        and activity.sla_alert_hours is not None
        and hours_elapsed > activity.sla_alert_hours
    )
    return TaskUrgency(
        hours_elapsed=hours_elapsed,
        due_hours=due_hours,
        overdue=hours_elapsed > due_hours,
        near_due=0 < remaining <= NEAR_DUE_HOURS,
        escalated=escalated,
    )


async def get_user_groups(
    db: AsyncSession, user_id: uuid.UUID
) -> tuple[set[uuid.UUID], set[uuid.UUID]]:
    """Positions the user holds and the departments those positions belong to."""
    result = await db.execute(
        select(EmployeePosition.position_id, Position.department_id)
        .join(Position, Position.id == EmployeePosition.position_id)
        .where(EmployeePosition.user_id == user_id)
    )
    rows = result.all()
    return {pid for pid, _ in rows}, {did for _, did in rows if did is not None}


async def get_active_tasks(
    db: AsyncSession,
    user_id: uuid.UUID,
    organization_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> list[InboxTask]:
    """Active instances assigned to the user, to one of their groups, or to nobody.

    Newest first.
    """
    position_ids, department_ids = await get_user_groups(db, user_id)

    eligible = [
        ProcessInstance.assigned_user_id == user_id,
        and_(
            ProcessInstance.assigned_user_id.is_(None),
            ProcessInstance.assigned_department_id.is_(None),
            ProcessInstance.assigned_position_id.is_(None),
        ),
    ]
    if position_ids:
        eligible.append(ProcessInstance.assigned_position_id.in_(position_ids))
    if department_ids:
        eligible.append(ProcessInstance.assigned_department_id.in_(department_ids))

    stmt = (
        select(ProcessInstance, Workflow, Activity)
        .join(Workflow, Workflow.id == ProcessInstance.workflow_id)
        .join(Activity, Activity.id == ProcessInstance.current_activity_id)
        .where(ProcessInstance.status == ProcessStatus.ACTIVE.value, or_(*eligible))
        .order_by(ProcessInstance.created_at.desc())
    )
    if organization_id is not None:
        stmt = stmt.where(ProcessInstance.organization_id == organization_id)

    result = await db.execute(stmt)
    now = now or utcnow()
    return [
        InboxTask(instance, workflow, activity, compute_urgency(instance, activity, now))
        for instance, workflow, activity in result.all()
    ]
