"""TelemetryEvent model - append-only usage and error reports."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Enum, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from update_feed.core.database import Base
from update_feed.models.base import JSONType, utcnow

TelemetryType = Enum(
    "usage",
    "error",
    name="telemetry_type",
    create_constraint=True,
)


class TelemetryEvent(Base):
    """A telemetry report sent by an installation.

    Rows are never updated. ``site_hash`` is a pseudonymous installation
    id; ``payload`` is stored as received, its schema belongs to the
    client. Old rows are purged by the retention service.
    """

    __tablename__ = "telemetry_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    site_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    data_type: Mapped[str] = mapped_column(TelemetryType, nullable=False, default="usage")
    plugin_version: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        index=True,
    )

    __table_args__ = (Index("ix_telemetry_events_type_created", "data_type", "created_at"),)

    def __repr__(self) -> str:
        return f"<TelemetryEvent {self.data_type} site={self.site_hash[:8]}>"
