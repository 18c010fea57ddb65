"""
API router aggregator.

Public key routes live under /api; admin routes under /admin.
"""

from fastapi import APIRouter

from koban.features.admin.router import router as admin_router
from koban.features.keys.router import router as keys_router
from koban.features.stats.router import router as stats_router

# Public API router
api_router = APIRouter(prefix="/api")
api_router.include_router(keys_router)

# Operator API router
admin_api_router = APIRouter()
admin_api_router.include_router(admin_router)
admin_api_router.include_router(stats_router)
