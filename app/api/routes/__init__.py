"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.relation_routes import router as relation_router
from app.api.routes.admin_routes import router as admin_router
from app.api.routes.student_routes import router as student_router
from app.api.routes.exam_routes import router as exam_router
from app.api.routes.notification_routes import router as notification_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(relation_router)
api_router.include_router(admin_router)
api_router.include_router(student_router)
api_router.include_router(exam_router)
api_router.include_router(notification_router)
