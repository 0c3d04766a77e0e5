# Update Feed Pydantic Schemas
from update_feed.schemas.composer_token import (
    TokenCreate,
    TokenGenerateResponse,
    TokenListResponse,
    TokenResponse,
    TokenRevoke,
    TokenRevokeResponse,
)
from update_feed.schemas.product import (
    DownloadProduct,
    DownloadsResponse,
    DownloadVersion,
    EntitlementGrant,
    EntitlementResponse,
    ProductFileIn,
    ProductFileResponse,
    ProductFilesReplace,
    ProductResponse,
    ProductUpsert,
)
from update_feed.schemas.telemetry import (
    DistributionEntry,
    ErrorSummaryEntry,
    RecentError,
    RecentErrorsResponse,
    TelemetryStats,
    TrackResponse,
)

__all__ = [
    "DistributionEntry",
    "DownloadProduct",
    "DownloadVersion",
    "DownloadsResponse",
    "EntitlementGrant",
    "EntitlementResponse",
    "ErrorSummaryEntry",
    "ProductFileIn",
    "ProductFileResponse",
    "ProductFilesReplace",
    "ProductResponse",
    "ProductUpsert",
    "RecentError",
    "RecentErrorsResponse",
    "TelemetryStats",
    "TokenCreate",
    "TokenGenerateResponse",
    "TokenListResponse",
    "TokenResponse",
    "TokenRevoke",
    "TokenRevokeResponse",
    "TrackResponse",
]
