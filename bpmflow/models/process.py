"""Runtime state of process instances: the instance row, captured data, audit history."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bpmflow.models.base import Base, TimestampMixin, UUIDMixin, utcnow


class ProcessStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class HistoryAction(str, enum.Enum):
    STARTED = "started"
    COMPLETED = "completed"
    COMMENTED = "commented"


# Prefix of the history comment recorded when an activity's automation fails.
# The integration error monitor selects failures by this exact text.
AUTOMATION_ERROR_PREFIX = "❌ Error en Acción Automática: "
AUTOMATION_SUCCESS_PREFIX = "✅ "


class ProcessInstance(Base, UUIDMixin, TimestampMixin):
    """A live execution of a workflow.

    States:
        active     — sitting on ``current_activity_id``, accepts advances
        completed  — terminal; ``current_activity_id`` kept for audit

    Assignment: ``assigned_user_id`` for a single owner, otherwise the
    department / position group queue; all three null means public.
    """

    __tablename__ = "process_instances"

    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), index=True
    )
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ProcessStatus.ACTIVE.value, index=True
    )
    current_activity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("activities.id"), nullable=False
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))

    assigned_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True
    )
    assigned_department_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="SET NULL"), index=True
    )
    assigned_position_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("positions.id", ondelete="SET NULL"), index=True
    )

    workflow = relationship("Workflow", lazy="noload")
    current_activity = relationship("Activity", lazy="noload")

    @property
    def is_active(self) -> bool:
        return self.status == ProcessStatus.ACTIVE.value


class ProcessData(Base, UUIDMixin, TimestampMixin):
    """Captured form value. Always a string; the field renderer restores the type."""

    __tablename__ = "process_data"
    __table_args__ = (
        UniqueConstraint("process_id", "activity_id", "field_name", name="uq_process_data_field"),
    )

    process_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("process_instances.id", ondelete="CASCADE"), index=True
    )
    activity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("activities.id", ondelete="CASCADE"), index=True
    )
    field_name: Mapped[str] = mapped_column(String(200), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")


class ProcessHistory(Base, UUIDMixin):
    """Append-only audit entry. Never updated or deleted."""

    __tablename__ = "process_history"

    process_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("process_instances.id", ondelete="CASCADE"), index=True
    )
    activity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("activities.id"), index=True
    )
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # started/completed/commented
    comment: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )

    activity = relationship("Activity", lazy="noload")
