"""Telemetry endpoints: public ingestion and admin reporting."""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from update_feed.api.session import require_admin
from update_feed.core import get_db
from update_feed.schemas.telemetry import RecentErrorsResponse, TelemetryStats, TrackResponse
from update_feed.services.telemetry import (
    DEFAULT_ERRORS_LIMIT,
    DEFAULT_STATS_DAYS,
    TelemetryService,
)

router = APIRouter(
    prefix="/telemetry",
    tags=["telemetry"],
)


def get_telemetry_service(db: AsyncSession = Depends(get_db)) -> TelemetryService:
    """Dependency to get telemetry service."""
    return TelemetryService(db)


@router.post("/track", response_model=TrackResponse, status_code=status.HTTP_201_CREATED)
async def track(
    request: Request,
    data_type: str = Query("usage", alias="type"),
    service: TelemetryService = Depends(get_telemetry_service),
) -> TrackResponse:
    """Accept one usage or error report from an installation.

    The body is read raw; its structure belongs to the reporting client.
    """
    event_id = await service.ingest(await request.body(), data_type)
    return TrackResponse(id=event_id)


@router.get(
    "/stats",
    response_model=TelemetryStats,
    dependencies=[Depends(require_admin)],
)
async def stats(
    days: int = Query(DEFAULT_STATS_DAYS, description="Window in days, clamped to 1..365"),
    service: TelemetryService = Depends(get_telemetry_service),
) -> TelemetryStats:
    return await service.aggregate(days)


@router.get(
    "/errors",
    response_model=RecentErrorsResponse,
    dependencies=[Depends(require_admin)],
)
async def recent_errors(
    limit: int = Query(DEFAULT_ERRORS_LIMIT, description="Clamped to 1..200"),
    service: TelemetryService = Depends(get_telemetry_service),
) -> RecentErrorsResponse:
    """Newest error reports."""
    return RecentErrorsResponse(errors=await service.recent_errors(limit))
