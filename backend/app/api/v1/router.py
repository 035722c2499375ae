"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import admin_freights, freights, proposals

router = APIRouter()

# Freight lifecycle
router.include_router(freights.router)
router.include_router(freights.cancellation_router)
router.include_router(proposals.router)

# Administrative paths
router.include_router(admin_freights.router)
