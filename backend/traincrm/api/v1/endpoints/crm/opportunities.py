"""
Sales pipeline: opportunities, stage changes and pipeline analytics
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from traincrm.core.database import get_db
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.crm import (
    OpportunityCreate,
    OpportunityUpdate,
    OpportunityResponse,
    OpportunityFilters,
    OpportunityListResponse,
    StageUpdate,
    CloseOpportunity,
    PipelineValue,
    Forecast,
    StageConversion,
)
from traincrm.services.opportunity_service import opportunity_service

router = APIRouter()


# ==================== Analytics ====================

@router.get("/pipeline", response_model=PipelineValue)
async def get_pipeline_value(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await opportunity_service.calculate_pipeline_value(db)


@router.get("/forecast", response_model=Forecast)
async def get_forecast(
    period: str = Query("month", pattern="^(month|quarter|year)$"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Probability-weighted value of open deals closing within the period"""
    return await opportunity_service.get_forecast(db, period)


@router.get("/conversion-rates", response_model=List[StageConversion])
async def get_conversion_rates(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await opportunity_service.get_conversion_rates(db)


# ==================== Opportunities ====================

@router.get("", response_model=OpportunityListResponse)
async def list_opportunities(
    filters: OpportunityFilters = Depends(),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    opportunities, total = await opportunity_service.list_opportunities(db, filters, page, limit)
    return OpportunityListResponse(
        opportunities=[OpportunityResponse.model_validate(o) for o in opportunities],
        total=total,
        page=page,
        limit=limit,
        has_more=page * limit < total,
    )


@router.post("", response_model=OpportunityResponse, status_code=status.HTTP_201_CREATED)
async def create_opportunity(
    data: OpportunityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await opportunity_service.create_opportunity(db, data, current_user)


@router.get("/{opportunity_id}", response_model=OpportunityResponse)
async def get_opportunity(
    opportunity_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await opportunity_service.get_opportunity(db, opportunity_id)


@router.patch("/{opportunity_id}", response_model=OpportunityResponse)
async def update_opportunity(
    opportunity_id: str,
    data: OpportunityUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await opportunity_service.update_opportunity(db, opportunity_id, data)


@router.post("/{opportunity_id}/stage", response_model=OpportunityResponse)
async def update_stage(
    opportunity_id: str,
    update: StageUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await opportunity_service.update_stage(db, opportunity_id, update.stage, current_user, update.notes)


@router.post("/{opportunity_id}/close", response_model=OpportunityResponse)
async def close_opportunity(
    opportunity_id: str,
    request: CloseOpportunity,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await opportunity_service.close_opportunity(
        db, opportunity_id, request.outcome, current_user, request.notes
    )


@router.delete("/{opportunity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_opportunity(
    opportunity_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    await opportunity_service.delete_opportunity(db, opportunity_id)
