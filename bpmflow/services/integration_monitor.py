"""Integration error monitor — automation failures recorded in process history."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.models.process import (
    AUTOMATION_ERROR_PREFIX,
    HistoryAction,
    ProcessHistory,
    ProcessInstance,
    ProcessStatus,
)
from bpmflow.models.workflow import Activity, Workflow


@dataclass
class IntegrationError:
    id: uuid.UUID
    process_id: uuid.UUID
    process_name: str
    process_status: str
    workflow_name: str
    activity_id: uuid.UUID
    activity_name: str
    error_message: str
    failed_at: datetime

    @property
    def detail(self) -> str:
        """The error text without the history prefix."""
        return self.error_message.removeprefix(AUTOMATION_ERROR_PREFIX)


async def list_integration_errors(
    db: AsyncSession,
    organization_id: uuid.UUID | None = None,
    only_active: bool = True,
    search: str | None = None,
    limit: int = 200,
) -> list[IntegrationError]:
    """Newest first. ``search`` matches process name or message, case-insensitively."""
    stmt = (
        select(ProcessHistory, ProcessInstance, Workflow.name, Activity.name)
        .join(ProcessInstance, ProcessInstance.id == ProcessHistory.process_id)
        .join(Workflow, Workflow.id == ProcessInstance.workflow_id)
        .join(Activity, Activity.id == ProcessHistory.activity_id)
        .where(
            ProcessHistory.action == HistoryAction.COMMENTED.value,
            ProcessHistory.comment.startswith(AUTOMATION_ERROR_PREFIX, autoescape=True),
        )
        .order_by(ProcessHistory.created_at.desc())
        .limit(limit)
    )
    if organization_id is not None:
        stmt = stmt.where(ProcessInstance.organization_id == organization_id)
    if only_active:
        stmt = stmt.where(ProcessInstance.status == ProcessStatus.ACTIVE.value)
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(ProcessInstance.name).like(pattern),
                func.lower(ProcessHistory.comment).like(pattern),
            )
        )

    result = await db.execute(stmt)
    return [
        IntegrationError(
            id=entry.id,
            process_id=instance.id,
            process_name=instance.name,
            process_status=instance.status,
            workflow_name=workflow_name,
            activity_id=entry.activity_id,
            activity_name=activity_name,
            error_message=entry.comment or "",
            failed_at=entry.created_at,
        )
        for entry, instance, workflow_name, activity_name in result.all()
    ]
