"""
Unit Tests for the Roster Service
Tests for: capacity advice, waitlisting, promotion, withdrawal, export
"""
import pytest
from faker import Faker

from traincrm.core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    DuplicateRecordError,
    InsufficientRoleError,
    InvalidStateTransitionError,
)
from traincrm.models.notification import Notification
from traincrm.models.roster import StudentRoster, RosterStatus, MemberStatus
from traincrm.schemas.roster import StudentProfileCreate, RosterCreate, RosterUpdate
from traincrm.services.roster_service import (
    roster_service,
    compute_capacity_info,
    build_capacity_advice,
    CSV_HEADER,
)
from sqlalchemy import select

fake = Faker()


async def _student(db, **kw):
    data = StudentProfileCreate(
        first_name=kw.get("first_name", fake.first_name()),
        last_name=kw.get("last_name", fake.last_name()),
        email=kw.get("email", fake.unique.email()),
    )
    return await roster_service.create_student_profile(db, data)


async def _roster(db, owner, max_capacity=2):
    return await roster_service.create_roster(
        db, RosterCreate(roster_name="Standard First Aid - March", max_capacity=max_capacity), owner
    )


class TestCapacityAdvice:
    """Pure capacity calculations"""

    def test_unlimited_roster_always_enrolls(self):
        roster = StudentRoster(id="r1", roster_name="Open", max_capacity=None, current_enrollment=500)

        info = compute_capacity_info(roster, 10)

        assert info.can_enroll is True
        assert info.available_spots is None

    def test_nearly_full_warning(self):
        roster = StudentRoster(id="r1", roster_name="Busy", max_capacity=10, current_enrollment=9)

        info = compute_capacity_info(roster)
        warnings, recommendations = build_capacity_advice(info, 0, 0.9)

        assert warnings == ["Roster is nearly full (90%+ capacity)"]
        assert recommendations == []

    def test_full_roster_recommendations(self):
        roster = StudentRoster(id="r1", roster_name="Full", max_capacity=10, current_enrollment=10)

        info = compute_capacity_info(roster, 2)
        warnings, recommendations = build_capacity_advice(info, 3, 0.9)

        assert warnings == ["Roster is nearly full (90%+ capacity)", "Roster is at full capacity"]
        assert recommendations == [
            "Consider promoting from waitlist (3 waiting) once capacity is increased",
            "Consider increasing roster capacity or creating additional roster",
        ]

    def test_full_roster_without_request_still_recommends_waitlist(self):
        roster = StudentRoster(id="r1", roster_name="Full", max_capacity=10, current_enrollment=10)

        info = compute_capacity_info(roster)
        warnings, recommendations = build_capacity_advice(info, 2, 0.9)

        assert "Roster is nearly full (90%+ capacity)" in warnings
        assert recommendations == ["Consider promoting from waitlist (2 waiting) once capacity is increased"]

    def test_promotion_recommendation_bounded_by_spots(self):
        roster = StudentRoster(id="r1", roster_name="Gap", max_capacity=10, current_enrollment=8)

        info = compute_capacity_info(roster)
        _, recommendations = build_capacity_advice(info, 5, 0.9)

        assert recommendations == ["Consider promoting 2 students from waitlist"]


class TestEnrollment:
    """Enrollment, waitlisting and promotion"""

    @pytest.mark.asyncio
    async def test_duplicate_student_email(self, db_session):
        await _student(db_session, email="Pat@Example.com")

        with pytest.raises(DuplicateRecordError):
            await _student(db_session, email="pat@example.com")

    @pytest.mark.asyncio
    async def test_full_roster_waitlists(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user, max_capacity=1)
        first, second, third = [await _student(db_session) for _ in range(3)]

        enrolled = await roster_service.enroll_student(db_session, roster.id, first.id, provider_user)
        waitlisted = await roster_service.enroll_student(db_session, roster.id, second.id, provider_user)
        also_waitlisted = await roster_service.enroll_student(db_session, roster.id, third.id, provider_user)

        assert enrolled.status == MemberStatus.ENROLLED
        assert waitlisted.status == MemberStatus.WAITLISTED
        assert waitlisted.waitlist_position == 1
        assert also_waitlisted.waitlist_position == 2
        assert roster.current_enrollment == 1

    @pytest.mark.asyncio
    async def test_full_roster_without_waitlist_raises(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user, max_capacity=1)
        first, second = await _student(db_session), await _student(db_session)
        await roster_service.enroll_student(db_session, roster.id, first.id, provider_user)

        with pytest.raises(CapacityExceededError):
            await roster_service.enroll_student(
                db_session, roster.id, second.id, provider_user, allow_waitlist=False
            )

    @pytest.mark.asyncio
    async def test_force_enrolls_past_capacity(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user, max_capacity=1)
        first, second = await _student(db_session), await _student(db_session)
        await roster_service.enroll_student(db_session, roster.id, first.id, provider_user)

        result = await roster_service.enroll_student(db_session, roster.id, second.id, provider_user, force=True)

        assert result.status == MemberStatus.ENROLLED
        assert roster.current_enrollment == 2

    @pytest.mark.asyncio
    async def test_already_enrolled(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user)
        student = await _student(db_session)
        await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)

        with pytest.raises(AlreadyEnrolledError):
            await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)

    @pytest.mark.asyncio
    async def test_instructor_cannot_enroll(self, db_session, provider_user, instructor_user):
        roster = await _roster(db_session, provider_user)
        student = await _student(db_session)

        with pytest.raises(InsufficientRoleError):
            await roster_service.enroll_student(db_session, roster.id, student.id, instructor_user)

    @pytest.mark.asyncio
    async def test_closed_roster_rejects_enrollment(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user)
        await roster_service.update_roster(db_session, roster.id, RosterUpdate(status=RosterStatus.CLOSED))
        student = await _student(db_session)

        with pytest.raises(InvalidStateTransitionError):
            await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)

    @pytest.mark.asyncio
    async def test_enrollment_notifies_student(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user)
        student = await _student(db_session)

        await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)
        result = await db_session.execute(select(Notification).where(Notification.student_id == student.id))

        assert result.scalar_one().title == "Enrollment Confirmed"

    @pytest.mark.asyncio
    async def test_batch_collects_failures(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user, max_capacity=1)
        first, second = await _student(db_session), await _student(db_session)

        result = await roster_service.enroll_multiple_students(
            db_session, roster.id, [first.id, second.id, "missing-student"], provider_user
        )

        assert result.total_requested == 3
        assert result.summary.enrolled == 1
        assert result.summary.waitlisted == 1
        assert result.failed_enrollments == 1
        assert result.summary.failed[0].code == "STUDENT_NOT_FOUND"
        assert result.success is False

    @pytest.mark.asyncio
    async def test_batch_stops_at_first_failure(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user)
        student = await _student(db_session)

        result = await roster_service.enroll_multiple_students(
            db_session, roster.id, ["missing-student", student.id], provider_user, continue_on_error=False
        )

        assert result.total_requested == 2
        assert result.failed_enrollments == 1
        assert result.successful_enrollments == 0
        assert result.summary.enrolled == 0
        assert roster.current_enrollment == 0


class TestWaitlist:

    @pytest.mark.asyncio
    async def test_promotion_without_space_fails(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user, max_capacity=1)
        first, second = await _student(db_session), await _student(db_session)
        await roster_service.enroll_student(db_session, roster.id, first.id, provider_user)
        await roster_service.enroll_student(db_session, roster.id, second.id, provider_user)

        result = await roster_service.promote_from_waitlist(db_session, roster.id, provider_user)

        assert result.success is False
        assert result.error == "No available capacity for promotion"
        assert result.remaining_waitlist == 1

    @pytest.mark.asyncio
    async def test_promote_specific_student_out_of_order(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user, max_capacity=1)
        first, second, third = [await _student(db_session) for _ in range(3)]
        for student in (first, second, third):
            await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)
        await roster_service.update_roster(db_session, roster.id, RosterUpdate(max_capacity=2))

        result = await roster_service.promote_from_waitlist(
            db_session, roster.id, provider_user, specific_student_id=third.id
        )

        assert result.success is True
        assert result.promoted_count == 1
        assert result.promoted_students[0].student_id == str(third.id)
        assert result.promoted_students[0].previous_position == 2
        assert result.remaining_waitlist == 1
        assert await roster_service.get_waitlist_position(db_session, roster.id, second.id) == 1

    @pytest.mark.asyncio
    async def test_promote_specific_student_not_waitlisted(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user)
        student = await _student(db_session)
        await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)

        result = await roster_service.promote_from_waitlist(
            db_session, roster.id, provider_user, specific_student_id=student.id
        )

        assert result.success is False
        assert result.error == "Student is not on the waitlist"

    @pytest.mark.asyncio
    async def test_withdraw_promotes_next_in_line(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user, max_capacity=1)
        first, second, third = [await _student(db_session) for _ in range(3)]
        for student in (first, second, third):
            await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)

        result = await roster_service.withdraw_student(db_session, roster.id, first.id, provider_user)

        assert result.previous_status == MemberStatus.ENROLLED
        assert result.promoted.promoted_count == 1
        assert result.promoted.promoted_students[0].student_id == str(second.id)
        assert result.promoted.remaining_waitlist == 1
        assert roster.current_enrollment == 1
        assert await roster_service.get_waitlist_position(db_session, roster.id, third.id) == 1

    @pytest.mark.asyncio
    async def test_withdrawn_student_can_reenroll(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user)
        student = await _student(db_session)
        await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)
        await roster_service.withdraw_student(db_session, roster.id, student.id, provider_user)

        result = await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)

        assert result.status == MemberStatus.ENROLLED
        assert roster.current_enrollment == 1

    @pytest.mark.asyncio
    async def test_capacity_status_lists_waitlist(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user, max_capacity=1)
        first, second = await _student(db_session), await _student(db_session)
        await roster_service.enroll_student(db_session, roster.id, first.id, provider_user)
        await roster_service.enroll_student(db_session, roster.id, second.id, provider_user)

        status = await roster_service.check_roster_capacity_status(db_session, roster.id)

        assert status.waitlist_info.total == 1
        assert status.waitlist_info.students[0].position == 1
        assert "Roster is nearly full (90%+ capacity)" in status.warnings
        assert "Roster is at full capacity" in status.warnings
        assert len(status.recommendations) == 1


class TestExport:

    @pytest.mark.asyncio
    async def test_csv_export(self, db_session, provider_user):
        roster = await _roster(db_session, provider_user)
        student = await _student(db_session, first_name="Ada", last_name="Lovelace", email="ada@example.com")
        await roster_service.enroll_student(db_session, roster.id, student.id, provider_user)

        content = await roster_service.export_roster_csv(db_session, roster.id)
        lines = content.strip().splitlines()

        assert lines[0] == ",".join(CSV_HEADER)
        assert lines[1].startswith("Ada,Lovelace,ada@example.com,,,enrolled,")
