from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from traincrm.core.database import get_db
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.crm import CRMStats, GlobalSearchResult
from traincrm.services.crm_dashboard_service import crm_dashboard_service

router = APIRouter()


@router.get("/stats", response_model=CRMStats)
async def get_crm_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await crm_dashboard_service.get_crm_stats(db)


@router.get("/search", response_model=GlobalSearchResult)
async def global_search(
    q: str = Query(..., min_length=2),
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Search leads, contacts, accounts and opportunities by name or email"""
    return await crm_dashboard_service.global_search(db, q, limit)
