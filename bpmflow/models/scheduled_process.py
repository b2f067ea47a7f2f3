"""Scheduled Process — future or recurring instantiation of a workflow."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bpmflow.models.base import Base, TimestampMixin, UUIDMixin


class RecurrencePattern(str, enum.Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM_DAYS = "custom_days"


class ScheduleStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ScheduledProcess(Base, UUIDMixin, TimestampMixin):
    """States:
    pending    — waiting for its first run
    active     — recurring schedule that has run at least once
    cancelled  — switched off by a user
    completed  — one-shot schedule that already started its process
    """

    __tablename__ = "scheduled_processes"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), index=True
    )
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurrence_pattern: Mapped[str] = mapped_column(
        String(20), default=RecurrencePattern.NONE.value
    )
    recurrence_interval: Mapped[int | None] = mapped_column(Integer)  # days, for custom_days
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    status: Mapped[str] = mapped_column(String(20), default=ScheduleStatus.PENDING.value)
