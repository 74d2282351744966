"""
Leads, lead scoring rules and lead conversion
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from traincrm.core.database import get_db
from traincrm.models.crm import LeadStatus, LeadSource
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.crm import (
    LeadCreate,
    LeadUpdate,
    LeadResponse,
    LeadListResponse,
    LeadConversionRequest,
    LeadConversionResult,
    ScoringRuleCreate,
    ScoringRuleUpdate,
    ScoringRuleResponse,
)
from traincrm.services.lead_service import lead_service

router = APIRouter()


# ==================== Scoring rules ====================

@router.get("/scoring-rules", response_model=List[ScoringRuleResponse])
async def list_scoring_rules(
    active_only: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await lead_service.list_scoring_rules(db, active_only)


@router.post("/scoring-rules", response_model=ScoringRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_scoring_rule(
    data: ScoringRuleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await lead_service.create_scoring_rule(db, data, current_user)


@router.patch("/scoring-rules/{rule_id}", response_model=ScoringRuleResponse)
async def update_scoring_rule(
    rule_id: str,
    data: ScoringRuleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await lead_service.update_scoring_rule(db, rule_id, data)


@router.delete("/scoring-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_scoring_rule(
    rule_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    await lead_service.delete_scoring_rule(db, rule_id)


# ==================== Leads ====================

@router.get("", response_model=LeadListResponse)
async def list_leads(
    lead_status: Optional[LeadStatus] = Query(None, alias="status"),
    source: Optional[LeadSource] = None,
    assigned_to: Optional[str] = None,
    min_score: Optional[int] = Query(None, ge=0, le=100),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Leads ordered by score, highest first"""
    leads, total = await lead_service.list_leads(
        db,
        status=lead_status,
        source=source,
        assigned_to=assigned_to,
        min_score=min_score,
        search=search,
        page=page,
        limit=limit,
    )
    return LeadListResponse(
        leads=[LeadResponse.model_validate(lead) for lead in leads],
        total=total,
        page=page,
        limit=limit,
        has_more=page * limit < total,
    )


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    data: LeadCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await lead_service.create_lead(db, data, current_user)


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await lead_service.get_lead(db, lead_id)


@router.patch("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: str,
    data: LeadUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await lead_service.update_lead(db, lead_id, data)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    lead_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    await lead_service.delete_lead(db, lead_id)


@router.post("/{lead_id}/score", response_model=LeadResponse)
async def recalculate_score(
    lead_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await lead_service.recalculate_lead_score(db, lead_id)


@router.post("/{lead_id}/convert", response_model=LeadConversionResult)
async def convert_lead(
    lead_id: str,
    request: LeadConversionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Turn a lead into a contact, optionally with an account and an opportunity"""
    return await lead_service.convert_lead(
        db, lead_id, current_user,
        create_account=request.create_account,
        create_opportunity=request.create_opportunity,
        opportunity_value=request.opportunity_value,
        opportunity_name=request.opportunity_name,
    )
