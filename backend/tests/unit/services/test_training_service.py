"""
Unit Tests for the Training Service
Tests for: session scheduling, capacity, enrollment, completion
"""
import pytest
from datetime import date, time

from traincrm.core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    DuplicateRecordError,
    InsufficientRoleError,
    InvalidStateTransitionError,
    SchedulingConflictError,
)
from traincrm.core.roles import UserRole
from traincrm.models.training import SessionStatus, CompletionStatus
from traincrm.schemas.scheduling import AvailabilityCreate
from traincrm.schemas.training import CourseCreate, SessionCreate, SessionUpdate
from traincrm.services.scheduling_service import scheduling_service
from traincrm.services.training_service import training_service

MONDAY = date(2030, 1, 7)


async def _session(db, provider, instructor=None, max_capacity=2, force=True, **kw):
    data = SessionCreate(
        title=kw.pop("title", "First Aid Level 1"),
        instructor_id=str(instructor.id) if instructor else None,
        session_date=kw.pop("session_date", MONDAY),
        start_time=kw.pop("start_time", time(9)),
        end_time=kw.pop("end_time", time(12)),
        max_capacity=max_capacity,
        force_schedule=force,
        **kw,
    )
    return await training_service.create_session(db, data, provider)


class TestCourses:

    @pytest.mark.asyncio
    async def test_course_code_is_normalised_and_unique(self, db_session):
        course = await training_service.create_course(db_session, CourseCreate(name="CPR", code=" cpr-c "))

        assert course.code == "CPR-C"
        with pytest.raises(DuplicateRecordError):
            await training_service.create_course(db_session, CourseCreate(name="CPR again", code="cpr-c"))


class TestSessionScheduling:
    """Sessions reserve the instructor's calendar"""

    @pytest.mark.asyncio
    async def test_session_books_instructor(self, db_session, provider_user, instructor_user):
        await scheduling_service.create_availability(
            db_session, instructor_user.id,
            AvailabilityCreate(day_of_week=1, start_time=time(8), end_time=time(17)),
        )

        session = await _session(db_session, provider_user, instructor_user, force=False)
        bookings = await scheduling_service.list_bookings(db_session, instructor_user.id)

        assert session.status == SessionStatus.SCHEDULED
        assert str(session.instructor_id) == str(instructor_user.id)
        assert len(bookings) == 1
        assert str(bookings[0].training_session_id) == str(session.id)

    @pytest.mark.asyncio
    async def test_conflicting_session_rejected(self, db_session, provider_user, instructor_user):
        with pytest.raises(SchedulingConflictError):
            await _session(db_session, provider_user, instructor_user, force=False)

    @pytest.mark.asyncio
    async def test_instructor_defaults_to_creator(self, db_session, provider_user):
        session = await _session(db_session, provider_user)

        assert str(session.instructor_id) == str(provider_user.id)


class TestEnrollment:
    """Capacity and duplicate checks on session enrollment"""

    @pytest.mark.asyncio
    async def test_enroll_and_capacity(self, db_session, provider_user, make_user):
        session = await _session(db_session, provider_user, max_capacity=1)
        student = await make_user(UserRole.IN)

        await training_service.enroll_student_in_session(db_session, session.id, student.id, provider_user)
        capacity = await training_service.validate_enrollment_capacity(db_session, session.id)

        assert capacity.current_enrollment == 1
        assert capacity.available_spots == 0
        assert capacity.can_enroll is False

        other = await make_user(UserRole.IN)
        with pytest.raises(CapacityExceededError):
            await training_service.enroll_student_in_session(db_session, session.id, other.id, provider_user)

    @pytest.mark.asyncio
    async def test_unlimited_capacity(self, db_session, provider_user):
        session = await _session(db_session, provider_user, max_capacity=None)

        capacity = await training_service.validate_enrollment_capacity(db_session, session.id)

        assert capacity.can_enroll is True
        assert capacity.available_spots is None

    @pytest.mark.asyncio
    async def test_duplicate_enrollment_rejected(self, db_session, provider_user, test_user):
        session = await _session(db_session, provider_user)
        await training_service.enroll_student_in_session(db_session, session.id, test_user.id, provider_user)

        with pytest.raises(AlreadyEnrolledError):
            await training_service.enroll_student_in_session(db_session, session.id, test_user.id, provider_user)

    @pytest.mark.asyncio
    async def test_instructor_cannot_enroll(self, db_session, provider_user, instructor_user, test_user):
        session = await _session(db_session, provider_user)

        with pytest.raises(InsufficientRoleError):
            await training_service.enroll_student_in_session(db_session, session.id, test_user.id, instructor_user)

    @pytest.mark.asyncio
    async def test_cancelled_session_closed_for_enrollment(self, db_session, provider_user, test_user):
        session = await _session(db_session, provider_user)
        await training_service.update_session(db_session, session.id, SessionUpdate(status=SessionStatus.CANCELLED))

        with pytest.raises(InvalidStateTransitionError):
            await training_service.enroll_student_in_session(db_session, session.id, test_user.id, provider_user)

    @pytest.mark.asyncio
    async def test_capacity_cannot_drop_below_enrollment(self, db_session, provider_user, make_user):
        session = await _session(db_session, provider_user, max_capacity=3)
        for _ in range(2):
            student = await make_user(UserRole.IN)
            await training_service.enroll_student_in_session(db_session, session.id, student.id, provider_user)

        with pytest.raises(CapacityExceededError):
            await training_service.update_session(db_session, session.id, SessionUpdate(max_capacity=1))


class TestCompletion:

    @pytest.mark.asyncio
    async def test_completion_rate(self, db_session, provider_user, make_user):
        session = await _session(db_session, provider_user, max_capacity=None)
        enrollments = []
        for _ in range(4):
            student = await make_user(UserRole.IN)
            enrollments.append(
                await training_service.enroll_student_in_session(db_session, session.id, student.id, provider_user)
            )

        done = await training_service.update_completion(
            db_session, enrollments[0].id, CompletionStatus.COMPLETED, score=91
        )

        assert done.completion_date is not None
        assert await training_service.calculate_session_completion(db_session, session.id) == 25.0

    @pytest.mark.asyncio
    async def test_completion_rate_empty_session(self, db_session, provider_user):
        session = await _session(db_session, provider_user)

        assert await training_service.calculate_session_completion(db_session, session.id) == 0.0
