"""
Instructor availability, exceptions, bookings and conflict checks.

Instructors manage their own records. Authorized Providers and above may
pass ``user_id`` to work on someone else's calendar.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List, Optional
from datetime import date

from traincrm.core.database import get_db
from traincrm.core.exceptions import InsufficientRoleError
from traincrm.core.roles import UserRole, has_minimum_role
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_user
from traincrm.schemas.scheduling import (
    AvailabilityCreate,
    AvailabilityResponse,
    ExceptionCreate,
    ExceptionResponse,
    BookingCreate,
    BookingResponse,
    ConflictCheckRequest,
    ConflictResult,
    TimeSlot,
)
from traincrm.services.scheduling_service import scheduling_service

router = APIRouter()


def _target_user(current_user: User, user_id: Optional[str]) -> str:
    """The calendar being worked on; other people's calendars need AP or above"""
    if not user_id or str(user_id) == str(current_user.id):
        return str(current_user.id)
    if not has_minimum_role(current_user.role, UserRole.AP):
        raise InsufficientRoleError("Only providers can manage other users' schedules", UserRole.AP.value)
    return str(user_id)


# ==================== Availability ====================

@router.get("/availability", response_model=List[AvailabilityResponse])
async def list_availability(
    user_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await scheduling_service.list_availability(db, _target_user(current_user, user_id))


@router.post("/availability", response_model=AvailabilityResponse, status_code=status.HTTP_201_CREATED)
async def create_availability(
    data: AvailabilityCreate,
    user_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await scheduling_service.create_availability(db, _target_user(current_user, user_id), data)


@router.delete("/availability/{availability_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_availability(
    availability_id: str,
    user_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await scheduling_service.delete_availability(db, availability_id, _target_user(current_user, user_id))


# ==================== Exceptions ====================

@router.get("/exceptions", response_model=List[ExceptionResponse])
async def list_exceptions(
    user_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await scheduling_service.list_exceptions(
        db, _target_user(current_user, user_id), start_date, end_date
    )


@router.post("/exceptions", response_model=ExceptionResponse, status_code=status.HTTP_201_CREATED)
async def create_exception(
    data: ExceptionCreate,
    user_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await scheduling_service.create_exception(db, _target_user(current_user, user_id), data)


@router.delete("/exceptions/{exception_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exception(
    exception_id: str,
    user_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await scheduling_service.delete_exception(db, exception_id, _target_user(current_user, user_id))


# ==================== Conflicts and slots ====================

@router.post("/conflicts", response_model=ConflictResult)
async def check_conflicts(
    request: ConflictCheckRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Check a proposed time against availability, bookings and exceptions"""
    return await scheduling_service.check_conflicts(
        db,
        _target_user(current_user, request.user_id),
        request.booking_date,
        request.start_time,
        request.end_time,
        request.exclude_booking_id,
    )


@router.get("/slots", response_model=List[TimeSlot])
async def get_available_time_slots(
    on_date: date,
    duration_minutes: int = Query(60, ge=15, le=480),
    user_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await scheduling_service.get_available_time_slots(
        db, _target_user(current_user, user_id), on_date, duration_minutes
    )


# ==================== Bookings ====================

@router.get("/bookings", response_model=List[BookingResponse])
async def list_bookings(
    user_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await scheduling_service.list_bookings(
        db, _target_user(current_user, user_id), start_date, end_date
    )


@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    user_id: Optional[str] = None,
    force: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Book time; conflicting bookings are rejected with 409 unless ``force`` is set"""
    return await scheduling_service.create_booking(
        db, _target_user(current_user, user_id), data, created_by=str(current_user.id), force=force
    )


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    user_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await scheduling_service.cancel_booking(db, booking_id, _target_user(current_user, user_id))


@router.get("/week", response_model=Dict[str, List[BookingResponse]])
async def get_week_schedule(
    week_start: date,
    user_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await scheduling_service.get_week_schedule(db, _target_user(current_user, user_id), week_start)
