"""
Revenue records, commission summaries and revenue reports
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date

from traincrm.core.database import get_db
from traincrm.models.crm import RevenueType
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.crm import (
    RevenueCreate,
    RevenueResponse,
    RevenueListResponse,
    RevenueMetrics,
    CommissionSummary,
    RevenueByAP,
    RevenueBySource,
    RevenueTrendPoint,
)
from traincrm.services.revenue_service import revenue_service

router = APIRouter()


@router.get("/metrics", response_model=RevenueMetrics)
async def get_revenue_metrics(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sales_rep_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await revenue_service.get_revenue_metrics(db, start_date, end_date, sales_rep_id)


@router.get("/commissions/{sales_rep_id}", response_model=CommissionSummary)
async def get_commission_summary(
    sales_rep_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await revenue_service.get_commission_summary(db, sales_rep_id, start_date, end_date)


@router.get("/by-provider", response_model=List[RevenueByAP])
async def get_revenue_by_provider(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Revenue per Authorized Provider location"""
    return await revenue_service.get_revenue_by_ap(db, start_date, end_date)


@router.get("/by-source", response_model=List[RevenueBySource])
async def get_revenue_by_source(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await revenue_service.get_revenue_by_source(db, start_date, end_date)


@router.get("/trends", response_model=List[RevenueTrendPoint])
async def get_revenue_trends(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await revenue_service.get_revenue_trends(db, start_date, end_date)


@router.get("", response_model=RevenueListResponse)
async def list_revenue_records(
    revenue_type: Optional[RevenueType] = None,
    sales_rep_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    records, total = await revenue_service.list_revenue_records(
        db, revenue_type, sales_rep_id, start_date, end_date, page, limit
    )
    return RevenueListResponse(
        records=[RevenueResponse.model_validate(r) for r in records],
        total=total,
        page=page,
        limit=limit,
        has_more=page * limit < total,
    )


@router.post("", response_model=RevenueResponse, status_code=status.HTTP_201_CREATED)
async def create_revenue_record(
    data: RevenueCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await revenue_service.create_revenue_record(db, data, current_user)


@router.get("/{record_id}", response_model=RevenueResponse)
async def get_revenue_record(
    record_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await revenue_service.get_revenue_record(db, record_id)
