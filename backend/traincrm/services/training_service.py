"""
Training Service - courses, locations, sessions and session enrollment

Handles:
- Course / location / instructor profile maintenance
- Session scheduling (books the instructor's calendar)
- Capacity checks and student enrollment
- Attendance and completion tracking
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError
from datetime import datetime, date
from typing import Optional, List, Tuple

from traincrm.core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    DuplicateRecordError,
    InsufficientRoleError,
    InvalidStateTransitionError,
    ResourceNotFoundError,
    SchedulingConflictError,
    SessionNotFoundError,
    UserNotFoundError,
)
from traincrm.core.logging_config import get_logger
from traincrm.core.roles import UserRole, has_minimum_role
from traincrm.models.scheduling import BookingType
from traincrm.models.training import (
    Course,
    Location,
    InstructorProfile,
    TrainingSession,
    SessionEnrollment,
    SessionStatus,
    AttendanceStatus,
    CompletionStatus,
)
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import scope_query
from traincrm.schemas.scheduling import BookingCreate
from traincrm.schemas.training import (
    CourseCreate,
    CourseUpdate,
    LocationCreate,
    LocationUpdate,
    InstructorProfileUpsert,
    SessionCreate,
    SessionUpdate,
    CapacityCheck,
)
from traincrm.services.scheduling_service import scheduling_service

logger = get_logger(__name__)

CLOSED_SESSION_STATUSES = (SessionStatus.CANCELLED, SessionStatus.COMPLETED)


class TrainingService:
    """Service for training sessions and their enrollments"""

    # ==================== COURSES ====================

    async def create_course(self, db: AsyncSession, data: CourseCreate) -> Course:
        existing = await db.execute(select(Course).where(Course.code == data.code))
        if existing.scalar_one_or_none():
            raise DuplicateRecordError("Course", "code", data.code)

        course = Course(**data.model_dump())
        db.add(course)
        await db.commit()
        await db.refresh(course)
        logger.info(f"Created course {course.code}")
        return course

    async def list_courses(self, db: AsyncSession, include_inactive: bool = False) -> List[Course]:
        query = select(Course)
        if not include_inactive:
            query = query.where(Course.is_active.is_(True))
        result = await db.execute(query.order_by(Course.name))
        return list(result.scalars().all())

    async def update_course(self, db: AsyncSession, course_id: str, data: CourseUpdate) -> Course:
        course = await db.get(Course, course_id)
        if not course:
            raise ResourceNotFoundError("Course", course_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(course, field, value)
        course.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(course)
        return course

    # ==================== LOCATIONS ====================

    async def create_location(self, db: AsyncSession, data: LocationCreate) -> Location:
        location = Location(**data.model_dump())
        db.add(location)
        await db.commit()
        await db.refresh(location)
        return location

    async def list_locations(self, db: AsyncSession, include_inactive: bool = False) -> List[Location]:
        query = select(Location)
        if not include_inactive:
            query = query.where(Location.is_active.is_(True))
        result = await db.execute(query.order_by(Location.name))
        return list(result.scalars().all())

    async def update_location(self, db: AsyncSession, location_id: str, data: LocationUpdate) -> Location:
        location = await db.get(Location, location_id)
        if not location:
            raise ResourceNotFoundError("Location", location_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(location, field, value)
        await db.commit()
        await db.refresh(location)
        return location

    # ==================== INSTRUCTORS ====================

    async def upsert_instructor_profile(
        self, db: AsyncSession, user_id: str, data: InstructorProfileUpsert
    ) -> InstructorProfile:
        if not await db.get(User, user_id):
            raise UserNotFoundError(user_id)

        result = await db.execute(select(InstructorProfile).where(InstructorProfile.user_id == user_id))
        profile = result.scalar_one_or_none()
        if profile is None:
            profile = InstructorProfile(user_id=user_id)
            db.add(profile)

        for field, value in data.model_dump().items():
            setattr(profile, field, value)
        profile.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(profile)
        return profile

    async def list_instructors(self, db: AsyncSession, specialization: Optional[str] = None) -> List[InstructorProfile]:
        result = await db.execute(
            select(InstructorProfile).where(InstructorProfile.is_active.is_(True))
        )
        profiles = list(result.scalars().all())
        if specialization:
            wanted = specialization.lower()
            profiles = [p for p in profiles if any(wanted == s.lower() for s in (p.specializations or []))]
        return profiles

    # ==================== SESSIONS ====================

    async def create_session(self, db: AsyncSession, data: SessionCreate, created_by: User) -> TrainingSession:
        """
        Create a session and reserve the instructor's time.

        The instructor's calendar is checked first; conflicts raise
        SchedulingConflictError unless ``force_schedule`` is set.
        """
        instructor_id = data.instructor_id or str(created_by.id)
        if data.instructor_id and not await db.get(User, data.instructor_id):
            raise UserNotFoundError(data.instructor_id)

        check = await scheduling_service.check_conflicts(
            db, instructor_id, data.session_date, data.start_time, data.end_time
        )
        if check.has_conflicts and not data.force_schedule:
            raise SchedulingConflictError(
                [c.model_dump() for c in check.conflicts],
                [s.model_dump(mode="json") for s in check.suggested_times],
            )

        payload = data.model_dump(exclude={"force_schedule", "instructor_id"})
        session = TrainingSession(instructor_id=instructor_id, created_by=str(created_by.id), **payload)
        db.add(session)
        await db.flush()

        await scheduling_service.create_booking(
            db,
            instructor_id,
            BookingCreate(
                booking_date=data.session_date,
                start_time=data.start_time,
                end_time=data.end_time,
                title=data.title,
                booking_type=BookingType.TRAINING_SESSION,
                training_session_id=str(session.id),
            ),
            created_by=str(created_by.id),
            force=True,
            commit=False,
        )

        await db.commit()
        await db.refresh(session)
        logger.log_domain_event("TrainingSession", "created", str(session.id), instructor_id=instructor_id)
        return session

    async def get_session(self, db: AsyncSession, session_id: str) -> TrainingSession:
        session = await db.get(TrainingSession, session_id)
        if not session:
            raise SessionNotFoundError(session_id)
        return session

    async def list_sessions(
        self,
        db: AsyncSession,
        user: User,
        course_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        status: Optional[SessionStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[TrainingSession], int]:
        conditions = []
        if course_id:
            conditions.append(TrainingSession.course_id == course_id)
        if instructor_id:
            conditions.append(TrainingSession.instructor_id == instructor_id)
        if status:
            conditions.append(TrainingSession.status == status)
        if start_date:
            conditions.append(TrainingSession.session_date >= start_date)
        if end_date:
            conditions.append(TrainingSession.session_date <= end_date)

        query = scope_query(select(TrainingSession), TrainingSession, user)
        count_query = scope_query(select(func.count(TrainingSession.id)), TrainingSession, user)
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        total = (await db.execute(count_query)).scalar() or 0
        query = query.order_by(TrainingSession.session_date, TrainingSession.start_time)
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def update_session(self, db: AsyncSession, session_id: str, data: SessionUpdate) -> TrainingSession:
        session = await self.get_session(db, session_id)
        updates = data.model_dump(exclude_unset=True)

        if "max_capacity" in updates and updates["max_capacity"] is not None:
            current = await self._count_enrollments(db, session_id)
            if updates["max_capacity"] < current:
                raise CapacityExceededError(updates["max_capacity"], current, 0)

        for field, value in updates.items():
            setattr(session, field, value)
        session.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(session)
        return session

    # ==================== ENROLLMENT ====================

    async def _count_enrollments(self, db: AsyncSession, session_id: str) -> int:
        result = await db.execute(
            select(func.count(SessionEnrollment.id)).where(SessionEnrollment.session_id == session_id)
        )
        return result.scalar() or 0

    async def validate_enrollment_capacity(
        self,
        db: AsyncSession,
        session_id: str,
        additional: int = 1,
    ) -> CapacityCheck:
        """Capacity snapshot for a session; ``max_capacity`` None means unlimited"""
        session = await self.get_session(db, session_id)
        current = await self._count_enrollments(db, session_id)

        if session.max_capacity is None:
            available = None
            can_enroll = True
        else:
            available = max(0, session.max_capacity - current)
            can_enroll = current + additional <= session.max_capacity

        return CapacityCheck(
            session_id=str(session.id),
            max_capacity=session.max_capacity,
            current_enrollment=current,
            available_spots=available,
            can_enroll=can_enroll,
        )

    async def enroll_student_in_session(
        self,
        db: AsyncSession,
        session_id: str,
        student_id: str,
        enrolled_by: User,
    ) -> SessionEnrollment:
        """
        Enroll a student in a training session.

        Checks, in order: enrolling user's role (AP or above), session exists and
        is open, student exists, not already enrolled, capacity. The unique
        (session, student) constraint catches concurrent duplicates.
        """
        if not has_minimum_role(enrolled_by.role, UserRole.AP):
            raise InsufficientRoleError("Insufficient permissions to enroll students", UserRole.AP.value)

        session = await self.get_session(db, session_id)
        if session.status in CLOSED_SESSION_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot enroll in a {session.status.value} session", session.status.value
            )

        if not await db.get(User, student_id):
            raise UserNotFoundError(student_id)

        existing = await db.execute(
            select(SessionEnrollment.id).where(
                and_(
                    SessionEnrollment.session_id == session_id,
                    SessionEnrollment.student_id == student_id,
                )
            )
        )
        if existing.scalar_one_or_none():
            raise AlreadyEnrolledError(student_id, session_id)

        capacity = await self.validate_enrollment_capacity(db, session_id)
        if not capacity.can_enroll:
            raise CapacityExceededError(capacity.max_capacity, capacity.current_enrollment)

        enrollment = SessionEnrollment(
            session_id=session_id,
            student_id=student_id,
            enrolled_by=str(enrolled_by.id),
            enrollment_date=datetime.utcnow(),
            attendance_status=AttendanceStatus.REGISTERED,
            completion_status=CompletionStatus.NOT_STARTED,
        )
        db.add(enrollment)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise AlreadyEnrolledError(student_id, session_id)

        await db.refresh(enrollment)
        logger.log_domain_event(
            "SessionEnrollment", "created", str(enrollment.id),
            session_id=session_id, student_id=student_id,
        )
        return enrollment

    async def list_enrollments(self, db: AsyncSession, session_id: str) -> List[SessionEnrollment]:
        await self.get_session(db, session_id)
        result = await db.execute(
            select(SessionEnrollment)
            .where(SessionEnrollment.session_id == session_id)
            .order_by(SessionEnrollment.enrollment_date)
        )
        return list(result.scalars().all())

    async def _get_enrollment(self, db: AsyncSession, enrollment_id: str) -> SessionEnrollment:
        enrollment = await db.get(SessionEnrollment, enrollment_id)
        if not enrollment:
            raise ResourceNotFoundError("Enrollment", enrollment_id)
        return enrollment

    async def update_attendance(
        self, db: AsyncSession, enrollment_id: str, attendance_status: AttendanceStatus
    ) -> SessionEnrollment:
        enrollment = await self._get_enrollment(db, enrollment_id)
        enrollment.attendance_status = attendance_status
        await db.commit()
        await db.refresh(enrollment)
        return enrollment

    async def update_completion(
        self,
        db: AsyncSession,
        enrollment_id: str,
        completion_status: CompletionStatus,
        score: Optional[float] = None,
    ) -> SessionEnrollment:
        enrollment = await self._get_enrollment(db, enrollment_id)
        enrollment.completion_status = completion_status
        if score is not None:
            enrollment.score = score
        enrollment.completion_date = (
            datetime.utcnow() if completion_status in (CompletionStatus.COMPLETED, CompletionStatus.FAILED) else None
        )
        await db.commit()
        await db.refresh(enrollment)
        return enrollment

    async def calculate_session_completion(self, db: AsyncSession, session_id: str) -> float:
        """Percentage of enrollments marked COMPLETED (0 when nobody is enrolled)"""
        await self.get_session(db, session_id)
        total = await self._count_enrollments(db, session_id)
        if total == 0:
            return 0.0
        completed = (await db.execute(
            select(func.count(SessionEnrollment.id)).where(
                and_(
                    SessionEnrollment.session_id == session_id,
                    SessionEnrollment.completion_status == CompletionStatus.COMPLETED,
                )
            )
        )).scalar() or 0
        return round(completed / total * 100, 2)


training_service = TrainingService()
