"""Pydantic schemas for telemetry ingestion and reporting."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class TrackResponse(BaseModel):
    """Response for an accepted telemetry event."""

    success: bool = True
    id: UUID


class DistributionEntry(BaseModel):
    """Number of distinct sites reporting a value."""

    value: str
    count: int


class ErrorSummaryEntry(BaseModel):
    """Error events grouped by handle and message prefix."""

    handle: str | None
    message_preview: str | None
    count: int
    last_seen: datetime | None


class TelemetryStats(BaseModel):
    """Aggregated telemetry for the admin dashboard."""

    unique_sites: int = 0
    php_versions: list[DistributionEntry] = Field(default_factory=list)
    wp_versions: list[DistributionEntry] = Field(default_factory=list)
    plugin_versions: list[DistributionEntry] = Field(default_factory=list)
    network_types: list[DistributionEntry] = Field(default_factory=list)
    gateways: list[DistributionEntry] = Field(default_factory=list)
    addons: list[DistributionEntry] = Field(default_factory=list)
    error_summary: list[ErrorSummaryEntry] = Field(default_factory=list)
    period_days: int


class RecentError(BaseModel):
    """A single error report."""

    id: UUID
    site_hash: str
    plugin_version: str | None
    handle: str | None
    message: str | None
    created_at: datetime


class RecentErrorsResponse(BaseModel):
    errors: list[RecentError]
