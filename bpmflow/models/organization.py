from __future__ import annotations

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from bpmflow.models.base import Base, TimestampMixin, UUIDMixin


class Organization(Base, UUIDMixin, TimestampMixin):
    """Tenant owning workflows and process instances."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    plan: Mapped[str] = mapped_column(String(20), default="free")  # free / pro / enterprise

    # Key/value map available to automation steps as {{key}} substitutions.
    # Secrets are stored encrypted with the "enc:" prefix (see core.encryption).
    settings: Mapped[dict | None] = mapped_column(JSON, default=dict)
