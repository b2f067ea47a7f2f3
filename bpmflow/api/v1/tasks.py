from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.api.deps import get_current_user
from bpmflow.database import get_db
from bpmflow.models.user import User
from bpmflow.services.task_inbox import InboxTask, get_active_tasks

router = APIRouter()


def _task_response(task: InboxTask) -> dict:
    instance, activity = task.instance, task.activity
    return {
        "process_id": instance.id,
        "name": instance.name,
        "status": instance.status,
        "created_at": instance.created_at,
        "workflow_id": task.workflow.id,
        "workflow_name": task.workflow.name,
        "workflow_description": task.workflow.description,
        "activity_id": activity.id,
        "activity_name": activity.name,
        "activity_type": activity.type,
        "assigned_user_id": instance.assigned_user_id,
        "assigned_department_id": instance.assigned_department_id,
        "assigned_position_id": instance.assigned_position_id,
        **asdict(task.urgency),
    }


@router.get("/inbox")
async def inbox(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Active tasks for the caller: direct, by position, by department, or public."""
    tasks = await get_active_tasks(db, user.id, organization_id=user.organization_id)
    return [_task_response(t) for t in tasks]
