"""
API v1 Router

Aggregates all v1 endpoint routers.
"""

from fastapi import APIRouter

from pathway.api.v1.endpoints import admin, progress, quizzes

router = APIRouter()

# Include progress routes
router.include_router(progress.router)

# Include quiz routes
router.include_router(quizzes.router)

# Include admin routes
router.include_router(admin.router)
