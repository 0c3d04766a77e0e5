"""Telemetry service - ingests installation reports and aggregates them."""

import json
import logging
from collections import Counter
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import String, and_, case, cast, delete, desc, distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from update_feed.core.config import settings
from update_feed.core.exceptions import (
    InvalidPayloadError,
    RateLimitedError,
    StorageError,
    ValidationError,
)
from update_feed.middleware.rate_limit import RateLimiter
from update_feed.models.telemetry_event import TelemetryEvent
from update_feed.schemas.telemetry import (
    DistributionEntry,
    ErrorSummaryEntry,
    RecentError,
    TelemetryStats,
)

logger = logging.getLogger(__name__)

DATA_TYPES = ("usage", "error")

DEFAULT_STATS_DAYS = 30
MAX_STATS_DAYS = 365

DEFAULT_ERRORS_LIMIT = 50
MAX_ERRORS_LIMIT = 200

ERROR_SUMMARY_LIMIT = 20
MESSAGE_PREVIEW_CHARS = 100

MAX_SITE_HASH_LENGTH = 64
MAX_PLUGIN_VERSION_LENGTH = 20

# Characters of the site hash used as the rate limit key
RATE_KEY_CHARS = 16


def clamp(value: int | None, default: int, maximum: int) -> int:
    """Clamp ``value`` to 1..maximum, using ``default`` when unset."""
    if value is None:
        return default
    return max(1, min(int(value), maximum))


def clamp_days(days: int | None) -> int:
    return clamp(days, DEFAULT_STATS_DAYS, MAX_STATS_DAYS)


def _dig(payload: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(payload, dict):
            return None
        payload = payload.get(key)
    return payload


def _plugin_version(payload: dict[str, Any]) -> str | None:
    for path in (("plugin", "version"), ("environment", "plugin_version")):
        value = _dig(payload, *path)
        if isinstance(value, str) and value:
            return value[:MAX_PLUGIN_VERSION_LENGTH]
    return None


def _ranked(counts: Counter) -> list[DistributionEntry]:
    """Most common first, ties by value."""
    return [
        DistributionEntry(value=value, count=count)
        for value, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


class TelemetryService:
    """Service for telemetry ingestion, reporting and retention."""

    def __init__(self, db: AsyncSession, rate_limiter: RateLimiter | None = None):
        self.db = db
        self.rate_limiter = rate_limiter or RateLimiter.get_instance()

    # --- Ingestion ---

    @staticmethod
    def _parse_body(raw_body: bytes | str) -> dict[str, Any]:
        try:
            payload = json.loads(raw_body)
        except ValueError as e:
            raise InvalidPayloadError() from e
        if not isinstance(payload, dict):
            raise InvalidPayloadError()
        return payload

    async def ingest(self, raw_body: bytes | str, data_type: str = "usage") -> UUID:
        """Validate and store one telemetry report.

        Only accepted events count toward the per-site rate limit, so a
        burst of malformed requests cannot lock a site out.

        Returns:
            The id of the stored event
        """
        if data_type not in DATA_TYPES:
            raise InvalidPayloadError("Invalid telemetry type", code="invalid_type")

        payload = self._parse_body(raw_body)

        site_hash = payload.get("site_hash")
        if site_hash is None or site_hash == "":
            raise InvalidPayloadError("Missing site_hash", code="missing_site_hash")
        if not isinstance(site_hash, str) or len(site_hash) > MAX_SITE_HASH_LENGTH:
            raise InvalidPayloadError("Invalid site_hash", code="invalid_site_hash")

        rate_key = f"telemetry:{site_hash[:RATE_KEY_CHARS]}"
        limited, retry_after = await self.rate_limiter.is_limited(
            rate_key,
            settings.telemetry_rate_limit,
            settings.telemetry_rate_window_seconds,
        )
        if limited:
            logger.warning(
                "Telemetry rate limit exceeded", extra={"site_hash": site_hash[:RATE_KEY_CHARS]}
            )
            raise RateLimitedError("Rate limit exceeded", retry_after=retry_after)

        if not payload.get("tracker_version"):
            raise InvalidPayloadError("Missing tracker_version", code="missing_version")

        event = TelemetryEvent(
            site_hash=site_hash,
            data_type=data_type,
            plugin_version=_plugin_version(payload),
            payload=payload,
        )
        try:
            self.db.add(event)
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store telemetry event: {type(e).__name__}: {e}")
            raise StorageError() from e

        await self.rate_limiter.record(rate_key)
        logger.debug(f"Stored {data_type} telemetry for site {site_hash[:8]}")
        return event.id

    # --- Reporting ---

    async def _site_distribution(self, value_expr, since: datetime) -> list[DistributionEntry]:
        """Distinct usage-reporting sites per value of ``value_expr``."""
        sub = (
            select(
                TelemetryEvent.site_hash.label("site_hash"),
                value_expr.label("value"),
            )
            .where(TelemetryEvent.data_type == "usage", TelemetryEvent.created_at >= since)
            .subquery()
        )
        site_count = func.count(distinct(sub.c.site_hash)).label("site_count")
        result = await self.db.execute(
            select(sub.c.value, site_count)
            .where(sub.c.value.is_not(None))
            .group_by(sub.c.value)
            .order_by(desc(site_count), sub.c.value)
        )
        return [DistributionEntry(value=str(value), count=count) for value, count in result.all()]

    async def _latest_usage_payloads(self, since: datetime) -> list[dict[str, Any]]:
        """Each site's most recent usage payload in the window."""
        latest = (
            select(
                TelemetryEvent.site_hash.label("site_hash"),
                func.max(TelemetryEvent.created_at).label("latest_at"),
            )
            .where(TelemetryEvent.data_type == "usage", TelemetryEvent.created_at >= since)
            .group_by(TelemetryEvent.site_hash)
            .subquery()
        )
        result = await self.db.execute(
            select(TelemetryEvent.site_hash, TelemetryEvent.payload)
            .join(
                latest,
                and_(
                    TelemetryEvent.site_hash == latest.c.site_hash,
                    TelemetryEvent.created_at == latest.c.latest_at,
                ),
            )
            .where(TelemetryEvent.data_type == "usage")
        )

        payloads: dict[str, dict[str, Any]] = {}
        for site_hash, payload in result.all():
            # Two events with the same timestamp: keep one
            payloads.setdefault(site_hash, payload)
        return list(payloads.values())

    @staticmethod
    def _list_usage(payloads: list[dict[str, Any]], *path: str) -> list[DistributionEntry]:
        counts: Counter = Counter()
        for payload in payloads:
            values = _dig(payload, *path)
            if not isinstance(values, list):
                continue
            counts.update({str(v) for v in values if isinstance(v, (str, int)) and v != ""})
        return _ranked(counts)

    async def _error_summary(self, since: datetime) -> list[ErrorSummaryEntry]:
        sub = (
            select(
                TelemetryEvent.payload["handle"].as_string().label("handle"),
                func.substr(
                    TelemetryEvent.payload["message"].as_string(), 1, MESSAGE_PREVIEW_CHARS
                ).label("message_preview"),
                TelemetryEvent.created_at.label("created_at"),
            )
            .where(TelemetryEvent.data_type == "error", TelemetryEvent.created_at >= since)
            .subquery()
        )
        event_count = func.count().label("event_count")
        last_seen = func.max(sub.c.created_at).label("last_seen")
        result = await self.db.execute(
            select(sub.c.handle, sub.c.message_preview, event_count, last_seen)
            .group_by(sub.c.handle, sub.c.message_preview)
            .order_by(desc(event_count), desc(last_seen))
            .limit(ERROR_SUMMARY_LIMIT)
        )
        return [
            ErrorSummaryEntry(
                handle=row.handle,
                message_preview=row.message_preview,
                count=row.event_count,
                last_seen=row.last_seen,
            )
            for row in result.all()
        ]

    async def aggregate(self, days: int | None = DEFAULT_STATS_DAYS) -> TelemetryStats:
        """Aggregate statistics over the last ``days`` days (clamped to 1..365)."""
        days = clamp_days(days)
        since = datetime.now(UTC) - timedelta(days=days)

        unique_sites_result = await self.db.execute(
            select(func.count(distinct(TelemetryEvent.site_hash))).where(
                TelemetryEvent.created_at >= since
            )
        )
        unique_sites = unique_sites_result.scalar() or 0

        payload = TelemetryEvent.payload
        is_subdomain = func.lower(cast(payload[("network", "is_subdomain")].as_string(), String))
        network_type = case(
            (is_subdomain.in_(("true", "1")), "Subdomain"),
            else_="Subdirectory",
        )

        latest_payloads = await self._latest_usage_payloads(since)

        return TelemetryStats(
            unique_sites=unique_sites,
            php_versions=await self._site_distribution(
                payload[("environment", "php_version")].as_string(), since
            ),
            wp_versions=await self._site_distribution(
                payload[("environment", "wp_version")].as_string(), since
            ),
            plugin_versions=await self._site_distribution(TelemetryEvent.plugin_version, since),
            network_types=await self._site_distribution(network_type, since),
            gateways=self._list_usage(latest_payloads, "gateways", "active_gateways"),
            addons=self._list_usage(latest_payloads, "plugin", "active_addons"),
            error_summary=await self._error_summary(since),
            period_days=days,
        )

    async def recent_errors(self, limit: int | None = DEFAULT_ERRORS_LIMIT) -> list[RecentError]:
        """Newest error reports first (limit clamped to 1..200)."""
        limit = clamp(limit, DEFAULT_ERRORS_LIMIT, MAX_ERRORS_LIMIT)
        result = await self.db.execute(
            select(TelemetryEvent)
            .where(TelemetryEvent.data_type == "error")
            .order_by(TelemetryEvent.created_at.desc())
            .limit(limit)
        )
        errors = []
        for event in result.scalars().all():
            handle = _dig(event.payload, "handle")
            message = _dig(event.payload, "message")
            errors.append(
                RecentError(
                    id=event.id,
                    site_hash=event.site_hash,
                    plugin_version=event.plugin_version,
                    handle=str(handle) if handle is not None else None,
                    message=str(message) if message is not None else None,
                    created_at=event.created_at,
                )
            )
        return errors

    # --- Retention ---

    async def purge(self, older_than_days: int) -> int:
        """Delete events older than ``older_than_days`` (at least 1).

        Returns:
            Number of events deleted

        Raises:
            ValidationError: If ``older_than_days`` is below 1
        """
        if older_than_days < 1:
            raise ValidationError("Retention must be at least 1 day")
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)
        result = await self.db.execute(
            delete(TelemetryEvent)
            .where(TelemetryEvent.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        deleted = result.rowcount or 0
        if deleted:
            logger.info(f"Purged {deleted} telemetry events older than {older_than_days} days")
        return deleted
