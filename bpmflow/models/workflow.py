"""Workflow graph: workflows, activities (nodes) and transitions (edges).

The engine never writes to these tables; they are authored by the designer.
"""

from __future__ import annotations

import enum
import logging
import uuid

from sqlalchemy import JSON, Boolean, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bpmflow.models.base import Base, TimestampMixin, UUIDMixin

logger = logging.getLogger(__name__)


class WorkflowStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class ActivityType(str, enum.Enum):
    START = "start"
    TASK = "task"
    DECISION = "decision"
    END = "end"


class AssignmentType(str, enum.Enum):
    MANUAL = "manual"
    CREATOR = "creator"
    SPECIFIC_USER = "specific_user"
    DEPARTMENT = "department"
    POSITION = "position"

    @classmethod
    def parse(cls, value: str | None) -> AssignmentType:
        if not value:
            return cls.MANUAL
        try:
            return cls(value)
        except ValueError:
            logger.warning("Unknown assignment_type %r, treating as manual", value)
            return cls.MANUAL


class AssignmentStrategy(str, enum.Enum):
    MANUAL = "manual"
    WORKLOAD = "workload"
    EFFICIENCY = "efficiency"
    RANDOM = "random"

    @classmethod
    def parse(cls, value: str | None) -> AssignmentStrategy:
        if not value:
            return cls.MANUAL
        try:
            return cls(value)
        except ValueError:
            logger.warning("Unknown assignment_strategy %r, treating as manual", value)
            return cls.MANUAL


class ActionType(str, enum.Enum):
    NONE = "none"
    WEBHOOK = "webhook"
    SOAP = "soap"
    FINANCE = "finance"
    EMAIL = "email"


class Workflow(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "workflows"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default=WorkflowStatus.DRAFT.value)
    version: Mapped[str | None] = mapped_column(String(20))
    # Lineage pointer to the version this one was derived from (display only)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="SET NULL")
    )
    # e.g. "Compra {{proveedor}} - {{monto}}", resolved from the start activity's data
    name_template: Mapped[str | None] = mapped_column(String(500))
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))

    activities = relationship("Activity", back_populates="workflow", lazy="noload")
    transitions = relationship("Transition", lazy="noload")


class Activity(Base, UUIDMixin, TimestampMixin):
    """A node of the workflow graph.

    Assignment:
        assignment_type     manual / creator / specific_user / department / position
        assignment_strategy manual / workload / efficiency / random
                            (only for department / position)

    Automation:
        action_type   none / webhook / soap / finance / email
        action_config {"steps": [{"id": "1", "type": "webhook", ...}, ...]}
                      or a single legacy step config without "steps"
    """

    __tablename__ = "activities"

    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(20), default=ActivityType.TASK.value)

    assignment_type: Mapped[str | None] = mapped_column(String(20))
    assignment_strategy: Mapped[str | None] = mapped_column(String(20))
    assigned_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    assigned_department_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="SET NULL")
    )
    assigned_position_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("positions.id", ondelete="SET NULL")
    )

    action_type: Mapped[str | None] = mapped_column(String(20), default=ActionType.NONE.value)
    action_config: Mapped[dict | None] = mapped_column(JSON)

    # SLA
    due_date_hours: Mapped[float | None] = mapped_column(Float)
    sla_alert_hours: Mapped[float | None] = mapped_column(Float)
    enable_supervisor_alerts: Mapped[bool] = mapped_column(Boolean, default=False)

    workflow = relationship("Workflow", back_populates="activities", lazy="noload")
    fields = relationship(
        "ActivityFieldDefinition",
        foreign_keys="ActivityFieldDefinition.activity_id",
        order_by="ActivityFieldDefinition.order_index",
        lazy="noload",
    )

    @property
    def has_automation(self) -> bool:
        return bool(self.action_type) and self.action_type != ActionType.NONE.value


class Transition(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "transitions"

    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="CASCADE"), index=True
    )
    source_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("activities.id", ondelete="CASCADE"), index=True
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("activities.id", ondelete="CASCADE"), index=True
    )
    # "<field> <op> <literal>", empty = unconditional
    condition: Mapped[str | None] = mapped_column(String(500))

    target = relationship("Activity", foreign_keys=[target_id], lazy="noload")
