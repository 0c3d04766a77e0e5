"""Update Feed API Router - aggregates the session-authenticated routes."""

from fastapi import APIRouter

from update_feed.api import downloads, products, tokens

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(prefix="/api")

api_router.include_router(tokens.router)
api_router.include_router(downloads.router)
api_router.include_router(products.router)
