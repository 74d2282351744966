"""
Student profiles, rosters, capacity, waitlist and CSV export
"""
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from traincrm.core.database import get_db
from traincrm.models.roster import RosterStatus, MemberStatus
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_user, get_current_provider
from traincrm.schemas.roster import (
    StudentProfileCreate,
    StudentProfileResponse,
    StudentProfileListResponse,
    RosterCreate,
    RosterUpdate,
    RosterResponse,
    RosterListResponse,
    RosterMemberResponse,
    CapacityStatus,
    RosterEnrollRequest,
    BatchEnrollRequest,
    RosterEnrollmentResult,
    BatchEnrollmentResult,
    PromoteRequest,
    PromotionResult,
    WithdrawResult,
)
from traincrm.services.roster_service import roster_service

router = APIRouter()


# ==================== Students ====================

@router.get("/students", response_model=StudentProfileListResponse)
async def list_students(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    students, total = await roster_service.list_student_profiles(db, search, page, page_size)
    return StudentProfileListResponse(
        students=[StudentProfileResponse.model_validate(s) for s in students],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/students", response_model=StudentProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    data: StudentProfileCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await roster_service.create_student_profile(db, data, created_by=str(current_user.id))


# ==================== Rosters ====================

@router.get("", response_model=RosterListResponse)
async def list_rosters(
    roster_status: Optional[RosterStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    rosters, total = await roster_service.list_rosters(db, current_user, roster_status, page, page_size)
    return RosterListResponse(
        rosters=[RosterResponse.model_validate(r) for r in rosters],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=RosterResponse, status_code=status.HTTP_201_CREATED)
async def create_roster(
    data: RosterCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await roster_service.create_roster(db, data, current_user)


@router.get("/{roster_id}", response_model=RosterResponse)
async def get_roster(
    roster_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await roster_service.get_roster(db, roster_id)


@router.patch("/{roster_id}", response_model=RosterResponse)
async def update_roster(
    roster_id: str,
    data: RosterUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await roster_service.update_roster(db, roster_id, data)


@router.get("/{roster_id}/capacity", response_model=CapacityStatus)
async def get_capacity_status(
    roster_id: str,
    additional_students: int = Query(0, ge=0),
    include_waitlist: bool = True,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Capacity, waitlist and advice for a roster"""
    return await roster_service.check_roster_capacity_status(
        db, roster_id, additional_students, include_waitlist
    )


# ==================== Members ====================

@router.get("/{roster_id}/members", response_model=List[RosterMemberResponse])
async def list_members(
    roster_id: str,
    member_status: Optional[MemberStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await roster_service.list_members(db, roster_id, member_status)


@router.post("/{roster_id}/enroll", response_model=RosterEnrollmentResult)
async def enroll_student(
    roster_id: str,
    request: RosterEnrollRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Enroll one student; a full roster waitlists them when allowed"""
    return await roster_service.enroll_student(
        db, roster_id, request.student_id, current_user,
        force=request.force, allow_waitlist=request.allow_waitlist, notes=request.notes,
    )


@router.post("/{roster_id}/enroll/batch", response_model=BatchEnrollmentResult)
async def enroll_students(
    roster_id: str,
    request: BatchEnrollRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await roster_service.enroll_multiple_students(
        db, roster_id, request.student_ids, current_user,
        force=request.force,
        allow_waitlist=request.allow_waitlist,
        continue_on_error=request.continue_on_error,
    )


@router.post("/{roster_id}/waitlist/promote", response_model=PromotionResult)
async def promote_from_waitlist(
    roster_id: str,
    request: PromoteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await roster_service.promote_from_waitlist(
        db, roster_id, current_user,
        max_promotions=request.max_promotions,
        specific_student_id=request.specific_student_id,
    )


@router.post("/{roster_id}/members/{student_id}/withdraw", response_model=WithdrawResult)
async def withdraw_student(
    roster_id: str,
    student_id: str,
    auto_promote: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await roster_service.withdraw_student(db, roster_id, student_id, current_user, auto_promote)


@router.get("/{roster_id}/export")
async def export_roster(
    roster_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    """Roster members as CSV"""
    content = await roster_service.export_roster_csv(db, roster_id)
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=roster_{roster_id}.csv"}
    )
