from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from traincrm.core.database import get_db
from traincrm.models.crm import ActivityType
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_admin
from traincrm.schemas.crm import ActivityCreate, ActivityUpdate, ActivityResponse, ActivityListResponse
from traincrm.services.contact_service import contact_service

router = APIRouter()


@router.get("", response_model=ActivityListResponse)
async def list_activities(
    lead_id: Optional[str] = None,
    opportunity_id: Optional[str] = None,
    contact_id: Optional[str] = None,
    account_id: Optional[str] = None,
    activity_type: Optional[ActivityType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    activities, total = await contact_service.list_activities(
        db,
        lead_id=lead_id,
        opportunity_id=opportunity_id,
        contact_id=contact_id,
        account_id=account_id,
        activity_type=activity_type,
        page=page,
        limit=limit,
    )
    return ActivityListResponse(
        activities=[ActivityResponse.model_validate(a) for a in activities],
        total=total,
        page=page,
        limit=limit,
        has_more=page * limit < total,
    )


@router.get("/upcoming", response_model=List[ActivityResponse])
async def get_upcoming_tasks(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Open tasks assigned to the caller, soonest due first"""
    return await contact_service.get_upcoming_tasks(db, current_user, limit=limit)


@router.post("", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def create_activity(
    data: ActivityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await contact_service.create_activity(db, data, current_user)


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await contact_service.get_activity(db, activity_id)


@router.patch("/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: str,
    data: ActivityUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    return await contact_service.update_activity(db, activity_id, data)


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity(
    activity_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    await contact_service.delete_activity(db, activity_id)
