# Update Feed Models
from update_feed.models.base import BaseModel
from update_feed.models.composer_token import ComposerToken
from update_feed.models.product import Entitlement, Product, ProductFile
from update_feed.models.telemetry_event import TelemetryEvent

__all__ = [
    "BaseModel",
    "ComposerToken",
    "Entitlement",
    "Product",
    "ProductFile",
    "TelemetryEvent",
]
