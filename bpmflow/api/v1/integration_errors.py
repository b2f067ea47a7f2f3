from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.api.deps import get_current_user
from bpmflow.database import get_db
from bpmflow.models.user import User
from bpmflow.services.integration_monitor import list_integration_errors

router = APIRouter()


@router.get("")
async def list_errors(
    search: str | None = Query(None),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    errors = await list_integration_errors(
        db,
        organization_id=user.organization_id,
        only_active=not include_inactive,
        search=search,
    )
    return [
        {
            "id": e.id,
            "process_id": e.process_id,
            "process_name": e.process_name,
            "process_status": e.process_status,
            "workflow_name": e.workflow_name,
            "activity_id": e.activity_id,
            "activity_name": e.activity_name,
            "error_message": e.error_message,
            "detail": e.detail,
            "failed_at": e.failed_at,
        }
        for e in errors
    ]
