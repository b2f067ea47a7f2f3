from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from bpmflow.models.scheduled_process import RecurrencePattern, ScheduleStatus


class ScheduledProcessCreate(BaseModel):
    workflow_id: uuid.UUID
    name: str
    scheduled_at: datetime
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern = RecurrencePattern.NONE
    recurrence_interval: int | None = None


class ScheduledProcessUpdate(BaseModel):
    name: str | None = None
    scheduled_at: datetime | None = None
    is_recurring: bool | None = None
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_interval: int | None = None
    status: ScheduleStatus | None = None


class ScheduledProcessResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    workflow_id: uuid.UUID
    name: str
    scheduled_at: datetime
    is_recurring: bool
    recurrence_pattern: str
    recurrence_interval: int | None = None
    last_run_at: datetime | None = None
    created_by: uuid.UUID | None = None
    status: str

    model_config = {"from_attributes": True}
