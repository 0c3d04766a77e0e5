# Update Feed API Routes
from update_feed.api.router import api_router

__all__ = ["api_router"]
