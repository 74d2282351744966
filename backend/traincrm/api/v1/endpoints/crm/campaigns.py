"""
Email campaigns, templates and nurture sequences
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from traincrm.core.database import get_db
from traincrm.core.rate_limiter import limiter
from traincrm.models.crm import CampaignStatus
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.crm import (
    EmailTemplateCreate,
    EmailTemplateUpdate,
    EmailTemplateResponse,
    CampaignCreate,
    CampaignUpdate,
    CampaignResponse,
    ScheduleCampaign,
    TrackEngagement,
    CampaignSendResult,
    CampaignMetrics,
    CampaignPerformanceSummary,
    NurtureSequenceCreate,
)
from traincrm.services.campaign_service import campaign_service

router = APIRouter()


# ==================== Templates ====================

@router.get("/templates", response_model=List[EmailTemplateResponse])
async def list_templates(
    template_type: Optional[str] = None,
    active_only: bool = True,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.list_templates(db, template_type, active_only)


@router.post("/templates", response_model=EmailTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    data: EmailTemplateCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.create_template(db, data, current_user)


@router.get("/templates/{template_id}", response_model=EmailTemplateResponse)
async def get_template(
    template_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.get_template(db, template_id)


@router.patch("/templates/{template_id}", response_model=EmailTemplateResponse)
async def update_template(
    template_id: str,
    data: EmailTemplateUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.update_template(db, template_id, data)


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    await campaign_service.delete_template(db, template_id)


# ==================== Sequences & reports ====================

@router.post("/nurture-sequences", response_model=List[CampaignResponse], status_code=status.HTTP_201_CREATED)
async def create_nurture_sequence(
    data: NurtureSequenceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Schedule one lead-nurture campaign per template at the given day offsets"""
    return await campaign_service.create_nurture_sequence(
        db,
        data.sequence_name,
        data.target_audience,
        data.template_ids,
        data.day_intervals,
        current_user,
        start_date=data.start_date,
    )


@router.get("/performance", response_model=CampaignPerformanceSummary)
async def get_performance_summary(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.get_campaign_performance_summary(db)


# ==================== Campaigns ====================

@router.get("", response_model=List[CampaignResponse])
async def list_campaigns(
    campaign_status: Optional[CampaignStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.list_campaigns(db, campaign_status)


@router.post("", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    data: CampaignCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.create_campaign(db, data, current_user)


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.get_campaign(db, campaign_id)


@router.patch("/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(
    campaign_id: str,
    data: CampaignUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.update_campaign(db, campaign_id, data)


@router.post("/{campaign_id}/schedule", response_model=CampaignResponse)
async def schedule_campaign(
    campaign_id: str,
    data: ScheduleCampaign,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.schedule_campaign(db, campaign_id, data.scheduled_date)


@router.post("/{campaign_id}/send", response_model=CampaignSendResult)
@limiter.limit("5/minute")
async def send_campaign(
    request: Request,
    campaign_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.send_campaign(db, campaign_id)


@router.post("/{campaign_id}/track", response_model=CampaignMetrics)
async def track_engagement(
    campaign_id: str,
    event: TrackEngagement,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Record a recipient event and return the refreshed campaign metrics"""
    await campaign_service.track_engagement(db, campaign_id, event.event_type, event.email)
    return await campaign_service.get_campaign_metrics(db, campaign_id)


@router.get("/{campaign_id}/metrics", response_model=CampaignMetrics)
async def get_campaign_metrics(
    campaign_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await campaign_service.get_campaign_metrics(db, campaign_id)
