from fastapi import APIRouter
from traincrm.api.v1.endpoints import (
    auth,
    health,
    settings,
    navigation,
    scheduling,
    training,
    rosters,
    certificates,
    workflows,
    notifications,
)
from traincrm.api.v1.endpoints.admin import admin_router
from traincrm.api.v1.endpoints.crm import crm_router

api_router = APIRouter()

# Liveness / readiness probes
api_router.include_router(health.router)

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(admin_router)
api_router.include_router(settings.router, prefix="/settings", tags=["System Settings"])
api_router.include_router(navigation.router, prefix="/navigation", tags=["Navigation"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

# Training operations
api_router.include_router(scheduling.router, prefix="/scheduling", tags=["Scheduling"])
api_router.include_router(training.router, prefix="/training", tags=["Training"])
api_router.include_router(rosters.router, prefix="/rosters", tags=["Rosters"])
api_router.include_router(certificates.router, prefix="/certificates", tags=["Certificates"])
api_router.include_router(workflows.router, prefix="/workflows", tags=["Workflows"])

# Sales
api_router.include_router(crm_router)
