"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from talent_portal.api.routes.auth_routes import router as auth_router
from talent_portal.api.routes.admin_routes import router as admin_router
from talent_portal.api.routes.job_profile_routes import router as job_profile_router
from talent_portal.api.routes.rq_routes import router as rq_router
from talent_portal.api.routes.candidate_routes import router as candidate_router
from talent_portal.api.routes.portal_routes import router as portal_router
from talent_portal.api.routes.empleos_routes import router as empleos_router
from talent_portal.api.routes.feeds_routes import router as feeds_router
from talent_portal.api.routes.analytics_routes import router as analytics_router
from talent_portal.api.routes.email_routes import router as email_router
from talent_portal.api.routes.calendar_routes import router as calendar_router
from talent_portal.api.routes.talent_routes import router as talent_router
from talent_portal.api.routes.talent_pipeline_routes import router as talent_pipeline_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(admin_router)
api_router.include_router(job_profile_router)
api_router.include_router(rq_router)
api_router.include_router(candidate_router)
api_router.include_router(portal_router)
api_router.include_router(empleos_router)
api_router.include_router(feeds_router)
api_router.include_router(analytics_router)
api_router.include_router(email_router)
api_router.include_router(calendar_router)
api_router.include_router(talent_router)
api_router.include_router(talent_pipeline_router)
