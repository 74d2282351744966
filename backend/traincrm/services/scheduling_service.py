"""
Scheduling Service - instructor availability, bookings and conflict detection

Conflict rules for a requested [start, end) on a date:
- availability: the weekday has no ``available`` slot, or no single slot covers the request
- booking: a non-cancelled booking that day overlaps (start < req_end and end > req_start)
- exception: an ``out_of_office`` exception that day, all-day or overlapping
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_
from datetime import date, time, datetime, timedelta
from typing import Optional, List, Sequence

from traincrm.core.config import settings
from traincrm.core.exceptions import ResourceNotFoundError, SchedulingConflictError, ValidationError
from traincrm.core.logging_config import get_logger
from traincrm.models.scheduling import (
    UserAvailability,
    AvailabilityException,
    AvailabilityBooking,
    AvailabilityType,
    BookingStatus,
)
from traincrm.schemas.scheduling import (
    AvailabilityCreate,
    ExceptionCreate,
    BookingCreate,
    ConflictResult,
    SchedulingConflict,
    TimeSlot,
)

logger = get_logger(__name__)

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def day_of_week(d: date) -> int:
    """0=Sunday .. 6=Saturday"""
    return (d.weekday() + 1) % 7


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def times_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    return start_a < end_b and end_a > start_b


def find_conflicts(
    weekday: int,
    available_slots: Sequence[UserAvailability],
    bookings: Sequence[AvailabilityBooking],
    exceptions: Sequence[AvailabilityException],
    start_time: time,
    end_time: time,
    exclude_booking_id: Optional[str] = None,
) -> List[SchedulingConflict]:
    """Evaluate one candidate window against already-loaded schedule rows"""
    conflicts: List[SchedulingConflict] = []

    if not available_slots:
        conflicts.append(SchedulingConflict(
            type="availability",
            message=f"User is not available on {WEEKDAY_NAMES[weekday]}",
        ))
    elif not any(s.start_time <= start_time and s.end_time >= end_time for s in available_slots):
        conflicts.append(SchedulingConflict(
            type="availability",
            message="Requested time is outside available hours",
        ))

    for booking in bookings:
        if exclude_booking_id and str(booking.id) == str(exclude_booking_id):
            continue
        if booking.status == BookingStatus.CANCELLED:
            continue
        if times_overlap(booking.start_time, booking.end_time, start_time, end_time):
            conflicts.append(SchedulingConflict(
                type="booking",
                message=(
                    f"Conflicts with existing booking: {booking.title} "
                    f"({booking.start_time.strftime('%H:%M')} - {booking.end_time.strftime('%H:%M')})"
                ),
                conflicting_item_id=str(booking.id),
            ))

    for exc in exceptions:
        if exc.availability_type != AvailabilityType.OUT_OF_OFFICE:
            continue
        if exc.is_all_day:
            conflicts.append(SchedulingConflict(
                type="exception",
                message=f"User is out of office all day: {exc.reason or 'No reason provided'}",
                conflicting_item_id=str(exc.id),
            ))
        elif times_overlap(exc.start_time, exc.end_time, start_time, end_time):
            conflicts.append(SchedulingConflict(
                type="exception",
                message=f"User is out of office: {exc.reason or 'No reason provided'}",
                conflicting_item_id=str(exc.id),
            ))

    return conflicts


def candidate_windows(duration_minutes: int, day_start: int, day_end: int, step: int) -> List[tuple]:
    """All (start, end) windows of a fixed duration inside the working day"""
    windows = []
    current = day_start * 60
    last_start = day_end * 60 - duration_minutes
    while current <= last_start:
        windows.append((from_minutes(current), from_minutes(current + duration_minutes)))
        current += step
    return windows


class SchedulingService:
    """Service for instructor availability and bookings"""

    # ==================== LOADERS ====================

    async def _available_slots(self, db: AsyncSession, user_id: str, on_date: date) -> List[UserAvailability]:
        result = await db.execute(
            select(UserAvailability).where(
                and_(
                    UserAvailability.user_id == user_id,
                    UserAvailability.day_of_week == day_of_week(on_date),
                    UserAvailability.availability_type == AvailabilityType.AVAILABLE,
                    or_(UserAvailability.effective_date.is_(None), UserAvailability.effective_date <= on_date),
                    or_(UserAvailability.expiry_date.is_(None), UserAvailability.expiry_date >= on_date),
                )
            ).order_by(UserAvailability.start_time)
        )
        return list(result.scalars().all())

    async def _bookings_on(self, db: AsyncSession, user_id: str, on_date: date) -> List[AvailabilityBooking]:
        result = await db.execute(
            select(AvailabilityBooking).where(
                and_(
                    AvailabilityBooking.user_id == user_id,
                    AvailabilityBooking.booking_date == on_date,
                    AvailabilityBooking.status != BookingStatus.CANCELLED,
                )
            ).order_by(AvailabilityBooking.start_time)
        )
        return list(result.scalars().all())

    async def _exceptions_on(self, db: AsyncSession, user_id: str, on_date: date) -> List[AvailabilityException]:
        result = await db.execute(
            select(AvailabilityException).where(
                and_(
                    AvailabilityException.user_id == user_id,
                    AvailabilityException.exception_date == on_date,
                )
            )
        )
        return list(result.scalars().all())

    # ==================== CONFLICTS ====================

    async def check_conflicts(
        self,
        db: AsyncSession,
        user_id: str,
        on_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> ConflictResult:
        """
        Check a requested window for conflicts.

        When conflicts are found, up to SCHEDULING_MAX_SUGGESTIONS conflict-free
        windows of the same duration on the same day are suggested.
        """
        if end_time <= start_time:
            raise ValidationError("end_time must be after start_time", field="end_time")

        slots = await self._available_slots(db, user_id, on_date)
        bookings = await self._bookings_on(db, user_id, on_date)
        exceptions = await self._exceptions_on(db, user_id, on_date)
        weekday = day_of_week(on_date)

        conflicts = find_conflicts(weekday, slots, bookings, exceptions, start_time, end_time, exclude_booking_id)

        suggestions: List[TimeSlot] = []
        if conflicts:
            duration = to_minutes(end_time) - to_minutes(start_time)
            windows = candidate_windows(
                duration,
                settings.SCHEDULING_DAY_START_HOUR,
                settings.SCHEDULING_DAY_END_HOUR,
                settings.SCHEDULING_SLOT_STEP_MINUTES,
            )
            for cand_start, cand_end in windows:
                if len(suggestions) >= settings.SCHEDULING_MAX_SUGGESTIONS:
                    break
                if cand_start == start_time:
                    continue
                if not find_conflicts(weekday, slots, bookings, exceptions, cand_start, cand_end, exclude_booking_id):
                    suggestions.append(TimeSlot(start_time=cand_start, end_time=cand_end))

        if conflicts:
            logger.info(
                f"[Scheduling] {len(conflicts)} conflict(s) for user {user_id} on {on_date} "
                f"{start_time}-{end_time}, {len(suggestions)} suggestion(s)"
            )

        return ConflictResult(
            has_conflicts=bool(conflicts),
            conflicts=conflicts,
            suggested_times=suggestions,
        )

    async def get_available_time_slots(
        self,
        db: AsyncSession,
        user_id: str,
        on_date: date,
        duration_minutes: int = 60,
    ) -> List[TimeSlot]:
        """Split each available weekly slot into fixed-length windows and flag the blocked ones"""
        if duration_minutes <= 0:
            raise ValidationError("duration_minutes must be positive", field="duration_minutes")

        slots = await self._available_slots(db, user_id, on_date)
        bookings = await self._bookings_on(db, user_id, on_date)
        exceptions = [
            e for e in await self._exceptions_on(db, user_id, on_date)
            if e.availability_type == AvailabilityType.OUT_OF_OFFICE
        ]

        result: List[TimeSlot] = []
        for slot in slots:
            current = to_minutes(slot.start_time)
            slot_end = to_minutes(slot.end_time)
            while current + duration_minutes <= slot_end:
                win_start = from_minutes(current)
                win_end = from_minutes(current + duration_minutes)
                reason = None

                for booking in bookings:
                    if times_overlap(booking.start_time, booking.end_time, win_start, win_end):
                        reason = f"Booked: {booking.title}"
                        break

                if reason is None:
                    for exc in exceptions:
                        if exc.is_all_day or times_overlap(exc.start_time, exc.end_time, win_start, win_end):
                            reason = f"Out of office: {exc.reason or 'No reason provided'}"
                            break

                result.append(TimeSlot(
                    start_time=win_start,
                    end_time=win_end,
                    available=reason is None,
                    conflict_reason=reason,
                ))
                current += duration_minutes

        return result

    # ==================== AVAILABILITY ====================

    async def create_availability(self, db: AsyncSession, user_id: str, data: AvailabilityCreate) -> UserAvailability:
        availability = UserAvailability(user_id=user_id, **data.model_dump())
        db.add(availability)
        await db.commit()
        await db.refresh(availability)
        logger.info(f"[Scheduling] Added availability for {user_id} on {WEEKDAY_NAMES[data.day_of_week]}")
        return availability

    async def list_availability(self, db: AsyncSession, user_id: str) -> List[UserAvailability]:
        result = await db.execute(
            select(UserAvailability)
            .where(UserAvailability.user_id == user_id)
            .order_by(UserAvailability.day_of_week, UserAvailability.start_time)
        )
        return list(result.scalars().all())

    async def delete_availability(self, db: AsyncSession, availability_id: str, user_id: str) -> None:
        availability = await db.get(UserAvailability, availability_id)
        if not availability or str(availability.user_id) != str(user_id):
            raise ResourceNotFoundError("Availability", availability_id)
        await db.delete(availability)
        await db.commit()

    # ==================== EXCEPTIONS ====================

    async def create_exception(self, db: AsyncSession, user_id: str, data: ExceptionCreate) -> AvailabilityException:
        exc = AvailabilityException(user_id=user_id, **data.model_dump())
        db.add(exc)
        await db.commit()
        await db.refresh(exc)
        logger.info(f"[Scheduling] Added {data.availability_type.value} exception for {user_id} on {data.exception_date}")
        return exc

    async def list_exceptions(
        self,
        db: AsyncSession,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AvailabilityException]:
        query = select(AvailabilityException).where(AvailabilityException.user_id == user_id)
        if start_date:
            query = query.where(AvailabilityException.exception_date >= start_date)
        if end_date:
            query = query.where(AvailabilityException.exception_date <= end_date)
        result = await db.execute(query.order_by(AvailabilityException.exception_date))
        return list(result.scalars().all())

    async def delete_exception(self, db: AsyncSession, exception_id: str, user_id: str) -> None:
        exc = await db.get(AvailabilityException, exception_id)
        if not exc or str(exc.user_id) != str(user_id):
            raise ResourceNotFoundError("Availability exception", exception_id)
        await db.delete(exc)
        await db.commit()

    # ==================== BOOKINGS ====================

    async def create_booking(
        self,
        db: AsyncSession,
        user_id: str,
        data: BookingCreate,
        created_by: Optional[str] = None,
        force: bool = False,
        commit: bool = True,
    ) -> AvailabilityBooking:
        """
        Book time for a user.

        Raises SchedulingConflictError when the window conflicts, unless ``force``.
        """
        check = await self.check_conflicts(db, user_id, data.booking_date, data.start_time, data.end_time)
        if check.has_conflicts and not force:
            raise SchedulingConflictError(
                [c.model_dump() for c in check.conflicts],
                [s.model_dump(mode="json") for s in check.suggested_times],
            )

        booking = AvailabilityBooking(
            user_id=user_id,
            created_by=created_by or user_id,
            **data.model_dump(),
        )
        db.add(booking)
        if commit:
            await db.commit()
            await db.refresh(booking)
        else:
            await db.flush()

        if check.has_conflicts:
            logger.warning(f"[Scheduling] Booking {booking.id} forced over {len(check.conflicts)} conflict(s)")
        return booking

    async def cancel_booking(self, db: AsyncSession, booking_id: str, user_id: Optional[str] = None) -> AvailabilityBooking:
        booking = await db.get(AvailabilityBooking, booking_id)
        if not booking or (user_id and str(booking.user_id) != str(user_id)):
            raise ResourceNotFoundError("Booking", booking_id)
        booking.status = BookingStatus.CANCELLED
        booking.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(booking)
        return booking

    async def list_bookings(
        self,
        db: AsyncSession,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_cancelled: bool = False,
    ) -> List[AvailabilityBooking]:
        query = select(AvailabilityBooking).where(AvailabilityBooking.user_id == user_id)
        if start_date:
            query = query.where(AvailabilityBooking.booking_date >= start_date)
        if end_date:
            query = query.where(AvailabilityBooking.booking_date <= end_date)
        if not include_cancelled:
            query = query.where(AvailabilityBooking.status != BookingStatus.CANCELLED)
        result = await db.execute(query.order_by(AvailabilityBooking.booking_date, AvailabilityBooking.start_time))
        return list(result.scalars().all())

    async def get_week_schedule(self, db: AsyncSession, user_id: str, week_start: date) -> dict:
        """Bookings grouped by ISO date for the seven days from ``week_start``"""
        week_end = week_start + timedelta(days=6)
        bookings = await self.list_bookings(db, user_id, week_start, week_end)
        schedule = {(week_start + timedelta(days=i)).isoformat(): [] for i in range(7)}
        for booking in bookings:
            schedule[booking.booking_date.isoformat()].append(booking)
        return schedule


scheduling_service = SchedulingService()
