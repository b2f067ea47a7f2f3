from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel


class ProcessStart(BaseModel):
    workflow_id: uuid.UUID
    name: str | None = None


class ProcessDataSave(BaseModel):
    activity_id: uuid.UUID | None = None  # defaults to the current activity
    fields: dict[str, Any] = {}


class FormValidate(BaseModel):
    fields: dict[str, Any] = {}


class ProcessAdvance(BaseModel):
    transition_id: uuid.UUID
    comment: str | None = None
    # When given, validated and saved on the current activity before moving
    fields: dict[str, Any] | None = None
    expected_activity_id: uuid.UUID | None = None


class ProcessComplete(BaseModel):
    comment: str | None = None
    fields: dict[str, Any] | None = None


class AttendAll(BaseModel):
    fields: dict[str, Any] = {}
    comment: str | None = None


class ProcessResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID | None = None
    workflow_id: uuid.UUID
    name: str
    status: str
    current_activity_id: uuid.UUID
    created_by: uuid.UUID | None = None
    assigned_user_id: uuid.UUID | None = None
    assigned_department_id: uuid.UUID | None = None
    assigned_position_id: uuid.UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class HistoryEntryResponse(BaseModel):
    id: uuid.UUID
    activity_id: uuid.UUID
    activity_name: str | None = None
    action: str
    comment: str | None = None
    user_id: uuid.UUID | None = None
    created_at: datetime | None = None


class FieldDefinitionResponse(BaseModel):
    id: uuid.UUID
    name: str
    label: str | None = None
    type: str
    required: bool = False
    placeholder: str | None = None
    description: str | None = None
    options: list | None = None
    min_value: float | None = None
    max_value: float | None = None
    regex_pattern: str | None = None
    default_value: str | None = None
    visibility_condition: str | None = None
    order_index: int = 0

    model_config = {"from_attributes": True}
