from __future__ import annotations

import enum
import logging
import uuid

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bpmflow.models.base import Base, TimestampMixin, UUIDMixin

logger = logging.getLogger(__name__)


class FieldKind(str, enum.Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"
    BOOLEAN = "boolean"
    EMAIL = "email"
    PHONE = "phone"
    PROVIDER = "provider"
    LOOKUP = "lookup"

    @classmethod
    def parse(cls, value: str | None) -> FieldKind:
        if not value:
            return cls.TEXT
        try:
            return cls(value)
        except ValueError:
            logger.warning("Unknown field type %r, treating as text", value)
            return cls.TEXT

    @property
    def is_numeric(self) -> bool:
        return self in (FieldKind.NUMBER, FieldKind.CURRENCY)


class ActivityFieldDefinition(Base, UUIDMixin, TimestampMixin):
    """One input of an activity's dynamic form."""

    __tablename__ = "activity_field_definitions"

    activity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("activities.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    label: Mapped[str | None] = mapped_column(String(300))
    type: Mapped[str] = mapped_column(String(20), default=FieldKind.TEXT.value)
    required: Mapped[bool] = mapped_column(Boolean, default=False)
    placeholder: Mapped[str | None] = mapped_column(String(300))
    description: Mapped[str | None] = mapped_column(Text)
    options: Mapped[list | None] = mapped_column(JSON)  # select choices

    # Validation
    min_value: Mapped[float | None] = mapped_column(Float)
    max_value: Mapped[float | None] = mapped_column(Float)
    regex_pattern: Mapped[str | None] = mapped_column(String(500))

    # Auto-population: copy a value captured in an earlier activity, else the default
    source_activity_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("activities.id", ondelete="SET NULL")
    )
    source_field_name: Mapped[str | None] = mapped_column(String(200))
    default_value: Mapped[str | None] = mapped_column(Text)

    order_index: Mapped[int] = mapped_column(Integer, default=0)
    # "<other_field> <op> <literal>" evaluated against the in-progress form
    visibility_condition: Mapped[str | None] = mapped_column(String(500))

    @property
    def kind(self) -> FieldKind:
        return FieldKind.parse(self.type)

    @property
    def display_label(self) -> str:
        return self.label or self.name
