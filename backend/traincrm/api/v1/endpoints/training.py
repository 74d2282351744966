"""
Courses, locations, instructors, training sessions and session enrollment
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date

from traincrm.core.database import get_db
from traincrm.core.exceptions import InsufficientRoleError
from traincrm.core.roles import UserRole, has_minimum_role
from traincrm.models.training import SessionStatus
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import get_current_user, get_current_provider
from traincrm.schemas.training import (
    CourseCreate,
    CourseUpdate,
    CourseResponse,
    LocationCreate,
    LocationUpdate,
    LocationResponse,
    InstructorProfileUpsert,
    InstructorProfileResponse,
    SessionCreate,
    SessionUpdate,
    SessionResponse,
    SessionListResponse,
    SessionCompletion,
    EnrollmentRequest,
    EnrollmentResponse,
    AttendanceUpdate,
    CompletionUpdate,
    CapacityCheck,
)
from traincrm.services.training_service import training_service

router = APIRouter()


# ==================== Courses ====================

@router.get("/courses", response_model=List[CourseResponse])
async def list_courses(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await training_service.list_courses(db, include_inactive)


@router.post("/courses", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
async def create_course(
    data: CourseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await training_service.create_course(db, data)


@router.patch("/courses/{course_id}", response_model=CourseResponse)
async def update_course(
    course_id: str,
    data: CourseUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await training_service.update_course(db, course_id, data)


# ==================== Locations ====================

@router.get("/locations", response_model=List[LocationResponse])
async def list_locations(
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await training_service.list_locations(db, include_inactive)


@router.post("/locations", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
async def create_location(
    data: LocationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await training_service.create_location(db, data)


@router.patch("/locations/{location_id}", response_model=LocationResponse)
async def update_location(
    location_id: str,
    data: LocationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await training_service.update_location(db, location_id, data)


# ==================== Instructors ====================

@router.get("/instructors", response_model=List[InstructorProfileResponse])
async def list_instructors(
    specialization: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await training_service.list_instructors(db, specialization)


@router.put("/instructors/{user_id}", response_model=InstructorProfileResponse)
async def upsert_instructor_profile(
    user_id: str,
    data: InstructorProfileUpsert,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Instructors edit their own profile; providers may edit anyone's"""
    if str(user_id) != str(current_user.id) and not has_minimum_role(current_user.role, UserRole.AP):
        raise InsufficientRoleError("Only providers can edit other instructors' profiles", UserRole.AP.value)
    return await training_service.upsert_instructor_profile(db, user_id, data)


# ==================== Sessions ====================

@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    course_id: Optional[str] = None,
    instructor_id: Optional[str] = None,
    session_status: Optional[SessionStatus] = Query(None, alias="status"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Sessions visible to the caller's role"""
    sessions, total = await training_service.list_sessions(
        db, current_user,
        course_id=course_id,
        instructor_id=instructor_id,
        status=session_status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    data: SessionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    """Create a session and book the instructor; schedule conflicts return 409"""
    return await training_service.create_session(db, data, current_user)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await training_service.get_session(db, session_id)


@router.patch("/sessions/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str,
    data: SessionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await training_service.update_session(db, session_id, data)


@router.get("/sessions/{session_id}/capacity", response_model=CapacityCheck)
async def get_session_capacity(
    session_id: str,
    additional: int = Query(1, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await training_service.validate_enrollment_capacity(db, session_id, additional)


@router.get("/sessions/{session_id}/completion", response_model=SessionCompletion)
async def get_session_completion(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    rate = await training_service.calculate_session_completion(db, session_id)
    return SessionCompletion(session_id=session_id, completion_rate=rate)


# ==================== Enrollment ====================

@router.get("/sessions/{session_id}/enrollments", response_model=List[EnrollmentResponse])
async def list_enrollments(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await training_service.list_enrollments(db, session_id)


@router.post(
    "/sessions/{session_id}/enrollments",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_student(
    session_id: str,
    request: EnrollmentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Enroll a student user in a session (AP or above)"""
    return await training_service.enroll_student_in_session(db, session_id, request.student_id, current_user)


@router.patch("/enrollments/{enrollment_id}/attendance", response_model=EnrollmentResponse)
async def update_attendance(
    enrollment_id: str,
    update: AttendanceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await training_service.update_attendance(db, enrollment_id, update.attendance_status)


@router.patch("/enrollments/{enrollment_id}/completion", response_model=EnrollmentResponse)
async def update_completion(
    enrollment_id: str,
    update: CompletionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_provider)
):
    return await training_service.update_completion(db, enrollment_id, update.completion_status, update.score)
