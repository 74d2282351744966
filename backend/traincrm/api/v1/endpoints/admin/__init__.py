"""
Admin API endpoints. All endpoints require AD or SA.
"""
from fastapi import APIRouter

from traincrm.api.v1.endpoints.admin import users, audit_logs

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

admin_router.include_router(users.router, prefix="/users", tags=["Admin Users"])
admin_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["Admin Audit Logs"])
