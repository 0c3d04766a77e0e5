# Update Feed Services
from update_feed.services.composer_token import ComposerTokenService
from update_feed.services.entitlements import EntitlementStore, SqlEntitlementStore
from update_feed.services.package_feed import PackageFeedBuilder
from update_feed.services.product_versions import ProductVersions, VersionCache
from update_feed.services.telemetry import TelemetryService
from update_feed.services.telemetry_retention import TelemetryRetentionService

__all__ = [
    "ComposerTokenService",
    "EntitlementStore",
    "PackageFeedBuilder",
    "ProductVersions",
    "SqlEntitlementStore",
    "TelemetryRetentionService",
    "TelemetryService",
    "VersionCache",
]
