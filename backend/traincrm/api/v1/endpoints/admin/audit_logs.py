"""
Admin Audit Logs endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional

from traincrm.core.database import get_db
from traincrm.models.audit_log import AuditLog
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.admin import AuditLogResponse, AuditLogListResponse
from traincrm.services.audit_service import list_audit_logs

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def get_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    actor_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List audit logs with filtering and pagination"""
    logs, total = await list_audit_logs(
        db, action=action, target_type=target_type, actor_id=actor_id,
        page=page, page_size=page_size,
    )
    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/actions")
async def get_available_actions(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Distinct action types for filtering"""
    result = await db.execute(select(AuditLog.action).distinct().order_by(AuditLog.action))
    return {"actions": [row[0] for row in result.all() if row[0]]}
