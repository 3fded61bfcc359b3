"""
Aggregate v1 API routes.

Convention: Use "" (not "/") for the root path of a segment (e.g. @router.get(""))
so the route is /api/v1/sync-logs not /api/v1/sync-logs/. This avoids 307 redirects when the
request arrives without a trailing slash.
"""

from fastapi import APIRouter

from byd_sync.api.v1.endpoints import sync, sync_logs

api_router = APIRouter()

api_router.include_router(sync.router, prefix="")
api_router.include_router(sync_logs.router, prefix="")
