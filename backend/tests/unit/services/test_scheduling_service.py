"""
Unit Tests for the Scheduling Service
Tests for: conflict detection, suggestions, time slots, bookings
"""
import pytest
from datetime import date, time

from traincrm.core.exceptions import SchedulingConflictError, ValidationError
from traincrm.models.scheduling import AvailabilityType, BookingStatus
from traincrm.schemas.scheduling import AvailabilityCreate, ExceptionCreate, BookingCreate
from traincrm.services.scheduling_service import (
    scheduling_service,
    day_of_week,
    candidate_windows,
    times_overlap,
)

MONDAY = date(2030, 1, 7)


class TestHelpers:
    """Pure helpers used by the conflict checker"""

    def test_day_of_week_starts_on_sunday(self):
        assert day_of_week(date(2030, 1, 6)) == 0  # Sunday
        assert day_of_week(MONDAY) == 1
        assert day_of_week(date(2030, 1, 12)) == 6  # Saturday

    def test_times_overlap_is_half_open(self):
        assert times_overlap(time(9), time(10), time(9, 30), time(11))
        assert not times_overlap(time(9), time(10), time(10), time(11))

    def test_candidate_windows_fit_inside_day(self):
        windows = candidate_windows(60, 8, 10, 30)

        assert windows == [
            (time(8, 0), time(9, 0)),
            (time(8, 30), time(9, 30)),
            (time(9, 0), time(10, 0)),
        ]


async def _available_monday(db, user, start=time(9), end=time(17)):
    return await scheduling_service.create_availability(
        db, user.id, AvailabilityCreate(day_of_week=1, start_time=start, end_time=end)
    )


class TestConflicts:
    """Conflict detection against availability, bookings and exceptions"""

    @pytest.mark.asyncio
    async def test_no_availability_is_a_conflict(self, db_session, instructor_user):
        result = await scheduling_service.check_conflicts(
            db_session, instructor_user.id, MONDAY, time(10), time(11)
        )

        assert result.has_conflicts
        assert result.conflicts[0].type == "availability"
        assert "Monday" in result.conflicts[0].message

    @pytest.mark.asyncio
    async def test_within_available_hours_is_clear(self, db_session, instructor_user):
        await _available_monday(db_session, instructor_user)

        result = await scheduling_service.check_conflicts(
            db_session, instructor_user.id, MONDAY, time(10), time(11)
        )

        assert not result.has_conflicts
        assert result.suggested_times == []

    @pytest.mark.asyncio
    async def test_outside_hours_suggests_alternatives(self, db_session, instructor_user):
        await _available_monday(db_session, instructor_user, time(9), time(12))

        result = await scheduling_service.check_conflicts(
            db_session, instructor_user.id, MONDAY, time(16), time(17)
        )

        assert result.has_conflicts
        assert result.conflicts[0].message == "Requested time is outside available hours"
        assert 0 < len(result.suggested_times) <= 3
        for slot in result.suggested_times:
            assert slot.start_time >= time(9)
            assert slot.end_time <= time(12)

    @pytest.mark.asyncio
    async def test_overlapping_booking_conflicts(self, db_session, instructor_user):
        await _available_monday(db_session, instructor_user)
        booking = await scheduling_service.create_booking(
            db_session,
            instructor_user.id,
            BookingCreate(booking_date=MONDAY, start_time=time(10), end_time=time(11), title="Staff meeting"),
        )

        result = await scheduling_service.check_conflicts(
            db_session, instructor_user.id, MONDAY, time(10, 30), time(11, 30)
        )

        assert result.has_conflicts
        assert result.conflicts[0].type == "booking"
        assert result.conflicts[0].conflicting_item_id == str(booking.id)

    @pytest.mark.asyncio
    async def test_excluded_booking_is_ignored(self, db_session, instructor_user):
        await _available_monday(db_session, instructor_user)
        booking = await scheduling_service.create_booking(
            db_session,
            instructor_user.id,
            BookingCreate(booking_date=MONDAY, start_time=time(10), end_time=time(11), title="Moveable"),
        )

        result = await scheduling_service.check_conflicts(
            db_session, instructor_user.id, MONDAY, time(10), time(11), exclude_booking_id=str(booking.id)
        )

        assert not result.has_conflicts

    @pytest.mark.asyncio
    async def test_all_day_out_of_office(self, db_session, instructor_user):
        await _available_monday(db_session, instructor_user)
        await scheduling_service.create_exception(
            db_session,
            instructor_user.id,
            ExceptionCreate(exception_date=MONDAY, reason="Vacation"),
        )

        result = await scheduling_service.check_conflicts(
            db_session, instructor_user.id, MONDAY, time(10), time(11)
        )

        assert result.has_conflicts
        assert result.conflicts[0].type == "exception"
        assert "Vacation" in result.conflicts[0].message

    @pytest.mark.asyncio
    async def test_tentative_exception_does_not_block(self, db_session, instructor_user):
        await _available_monday(db_session, instructor_user)
        await scheduling_service.create_exception(
            db_session,
            instructor_user.id,
            ExceptionCreate(exception_date=MONDAY, availability_type=AvailabilityType.TENTATIVE),
        )

        result = await scheduling_service.check_conflicts(
            db_session, instructor_user.id, MONDAY, time(10), time(11)
        )

        assert not result.has_conflicts

    @pytest.mark.asyncio
    async def test_inverted_window_rejected(self, db_session, instructor_user):
        with pytest.raises(ValidationError):
            await scheduling_service.check_conflicts(
                db_session, instructor_user.id, MONDAY, time(11), time(10)
            )


class TestBookings:
    """Booking creation and cancellation"""

    @pytest.mark.asyncio
    async def test_conflicting_booking_raises(self, db_session, instructor_user):
        with pytest.raises(SchedulingConflictError) as exc_info:
            await scheduling_service.create_booking(
                db_session,
                instructor_user.id,
                BookingCreate(booking_date=MONDAY, start_time=time(10), end_time=time(11), title="No hours"),
            )

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["conflicts"]

    @pytest.mark.asyncio
    async def test_forced_booking_is_saved(self, db_session, instructor_user):
        booking = await scheduling_service.create_booking(
            db_session,
            instructor_user.id,
            BookingCreate(booking_date=MONDAY, start_time=time(10), end_time=time(11), title="Forced"),
            force=True,
        )

        assert booking.status == BookingStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_cancelled_booking_frees_the_slot(self, db_session, instructor_user):
        await _available_monday(db_session, instructor_user)
        booking = await scheduling_service.create_booking(
            db_session,
            instructor_user.id,
            BookingCreate(booking_date=MONDAY, start_time=time(10), end_time=time(11), title="Cancel me"),
        )

        cancelled = await scheduling_service.cancel_booking(db_session, booking.id, instructor_user.id)
        result = await scheduling_service.check_conflicts(
            db_session, instructor_user.id, MONDAY, time(10), time(11)
        )

        assert cancelled.status == BookingStatus.CANCELLED
        assert not result.has_conflicts

    @pytest.mark.asyncio
    async def test_time_slots_flag_booked_windows(self, db_session, instructor_user):
        await _available_monday(db_session, instructor_user, time(9), time(12))
        await scheduling_service.create_booking(
            db_session,
            instructor_user.id,
            BookingCreate(booking_date=MONDAY, start_time=time(10), end_time=time(11), title="Taken"),
        )

        slots = await scheduling_service.get_available_time_slots(db_session, instructor_user.id, MONDAY, 60)

        assert [s.available for s in slots] == [True, False, True]
        assert slots[1].conflict_reason == "Booked: Taken"

    @pytest.mark.asyncio
    async def test_week_schedule_has_seven_days(self, db_session, instructor_user):
        await scheduling_service.create_booking(
            db_session,
            instructor_user.id,
            BookingCreate(booking_date=MONDAY, start_time=time(10), end_time=time(11), title="Week"),
            force=True,
        )

        schedule = await scheduling_service.get_week_schedule(db_session, instructor_user.id, date(2030, 1, 6))

        assert len(schedule) == 7
        assert len(schedule[MONDAY.isoformat()]) == 1
