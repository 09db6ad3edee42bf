"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from placement_portal.api.routes.auth_routes import router as auth_router
from placement_portal.api.routes.attendance_routes import router as attendance_router
from placement_portal.api.routes.round_routes import router as round_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(attendance_router)
api_router.include_router(round_router)
