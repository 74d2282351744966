"""
Roster Service - student rosters with capacity limits and a FIFO waitlist

Handles:
- Student profile and roster maintenance
- Capacity status with warnings and recommendations
- Single and batch enrollment (enrolled, or waitlisted when full)
- Withdrawal and waitlist promotion
- CSV export
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import Optional, List, Tuple
import csv
import io

from traincrm.core.config import settings
from traincrm.core.exceptions import (
    AlreadyEnrolledError,
    CapacityExceededError,
    DuplicateRecordError,
    InsufficientRoleError,
    InvalidStateTransitionError,
    ResourceNotFoundError,
    RosterNotFoundError,
    StudentNotFoundError,
    TrainCRMError,
)
from traincrm.core.logging_config import get_logger
from traincrm.core.roles import UserRole, has_minimum_role
from traincrm.models.roster import (
    StudentProfile,
    StudentRoster,
    StudentRosterMember,
    RosterStatus,
    MemberStatus,
)
from traincrm.models.user import User
from traincrm.modules.auth.dependencies import scope_query
from traincrm.schemas.roster import (
    StudentProfileCreate,
    RosterCreate,
    RosterUpdate,
    CapacityInfo,
    CapacityStatus,
    WaitlistEntry,
    WaitlistInfo,
    RosterEnrollmentResult,
    BatchEnrollmentResult,
    BatchEnrollmentSummary,
    FailedEnrollment,
    PromotionResult,
    PromotedStudent,
    WithdrawResult,
)
from traincrm.services.audit_service import notify

logger = get_logger(__name__)

CSV_HEADER = ["first_name", "last_name", "email", "phone", "organization", "enrollment_status", "enrolled_at"]


def compute_capacity_info(roster: StudentRoster, additional_students: int = 0) -> CapacityInfo:
    """Capacity snapshot; a roster without max_capacity never fills up"""
    current = roster.current_enrollment or 0
    if roster.max_capacity is None:
        available = None
        can_enroll = True
    else:
        available = max(0, roster.max_capacity - current)
        can_enroll = current + additional_students <= roster.max_capacity

    return CapacityInfo(
        roster_id=str(roster.id),
        roster_name=roster.roster_name,
        max_capacity=roster.max_capacity,
        current_enrollment=current,
        available_spots=available,
        can_enroll=can_enroll,
        requested_students=additional_students,
    )


def build_capacity_advice(
    info: CapacityInfo,
    waitlist_total: int,
    nearly_full_ratio: float,
) -> Tuple[List[str], List[str]]:
    """Warnings and recommendations shown alongside the capacity status"""
    warnings: List[str] = []
    recommendations: List[str] = []

    if info.max_capacity is not None:
        if info.current_enrollment >= nearly_full_ratio * info.max_capacity:
            warnings.append(f"Roster is nearly full ({int(nearly_full_ratio * 100)}%+ capacity)")
        if info.current_enrollment >= info.max_capacity:
            warnings.append("Roster is at full capacity")

    if waitlist_total > 0:
        promotable = waitlist_total if info.available_spots is None else min(waitlist_total, info.available_spots)
        if promotable > 0:
            recommendations.append(f"Consider promoting {promotable} students from waitlist")
        else:
            recommendations.append(
                f"Consider promoting from waitlist ({waitlist_total} waiting) once capacity is increased"
            )

    if info.requested_students > 0 and not info.can_enroll:
        recommendations.append("Consider increasing roster capacity or creating additional roster")

    return warnings, recommendations


class RosterService:
    """Service for rosters, enrollment and waitlists"""

    # ==================== STUDENTS ====================

    async def create_student_profile(
        self, db: AsyncSession, data: StudentProfileCreate, created_by: Optional[str] = None
    ) -> StudentProfile:
        email = data.email.lower()
        existing = await db.execute(select(StudentProfile).where(StudentProfile.email == email))
        if existing.scalar_one_or_none():
            raise DuplicateRecordError("Student", "email", email)

        student = StudentProfile(**data.model_dump(exclude={"email"}), email=email, created_by=created_by)
        db.add(student)
        await db.commit()
        await db.refresh(student)
        return student

    async def list_student_profiles(
        self, db: AsyncSession, search: Optional[str] = None, page: int = 1, page_size: int = 50
    ) -> Tuple[List[StudentProfile], int]:
        query = select(StudentProfile)
        count_query = select(func.count(StudentProfile.id))
        if search:
            term = f"%{search}%"
            condition = or_(
                StudentProfile.first_name.ilike(term),
                StudentProfile.last_name.ilike(term),
                StudentProfile.email.ilike(term),
                StudentProfile.organization.ilike(term),
            )
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = (await db.execute(count_query)).scalar() or 0
        query = query.order_by(StudentProfile.last_name, StudentProfile.first_name)
        result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
        return list(result.scalars().all()), total

    # ==================== ROSTERS ====================

    async def create_roster(self, db: AsyncSession, data: RosterCreate, created_by: User) -> StudentRoster:
        roster = StudentRoster(
            **data.model_dump(exclude={"instructor_id"}),
            instructor_id=data.instructor_id or str(created_by.id),
            current_enrollment=0,
            status=RosterStatus.ACTIVE,
            created_by=str(created_by.id),
        )
        db.add(roster)
        await db.commit()
        await db.refresh(roster)
        logger.log_domain_event("Roster", "created", str(roster.id), max_capacity=roster.max_capacity)
        return roster

    async def get_roster(self, db: AsyncSession, roster_id: str) -> StudentRoster:
        roster = await db.get(StudentRoster, roster_id)
        if not roster:
            raise RosterNotFoundError(roster_id)
        return roster

    async def list_rosters(
        self,
        db: AsyncSession,
        user: User,
        status: Optional[RosterStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[StudentRoster], int]:
        query = scope_query(select(StudentRoster), StudentRoster, user)
        count_query = scope_query(select(func.count(StudentRoster.id)), StudentRoster, user)
        if status:
            query = query.where(StudentRoster.status == status)
            count_query = count_query.where(StudentRoster.status == status)

        total = (await db.execute(count_query)).scalar() or 0
        query = query.order_by(StudentRoster.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def update_roster(self, db: AsyncSession, roster_id: str, data: RosterUpdate) -> StudentRoster:
        roster = await self.get_roster(db, roster_id)
        updates = data.model_dump(exclude_unset=True)

        new_capacity = updates.get("max_capacity")
        if new_capacity is not None and new_capacity < roster.current_enrollment:
            raise CapacityExceededError(new_capacity, roster.current_enrollment, 0)

        for field, value in updates.items():
            setattr(roster, field, value)
        roster.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(roster)
        return roster

    # ==================== CAPACITY ====================

    async def _waitlist(self, db: AsyncSession, roster_id: str) -> List[Tuple[StudentRosterMember, StudentProfile]]:
        result = await db.execute(
            select(StudentRosterMember, StudentProfile)
            .join(StudentProfile, StudentProfile.id == StudentRosterMember.student_id)
            .where(
                and_(
                    StudentRosterMember.roster_id == roster_id,
                    StudentRosterMember.enrollment_status == MemberStatus.WAITLISTED,
                )
            )
            .order_by(StudentRosterMember.enrolled_at, StudentRosterMember.id)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def get_waitlist_position(self, db: AsyncSession, roster_id: str, student_id: str) -> Optional[int]:
        for position, (member, _) in enumerate(await self._waitlist(db, roster_id), start=1):
            if str(member.student_id) == str(student_id):
                return position
        return None

    async def check_roster_capacity_status(
        self,
        db: AsyncSession,
        roster_id: str,
        additional_students: int = 0,
        include_waitlist: bool = True,
    ) -> CapacityStatus:
        roster = await self.get_roster(db, roster_id)
        info = compute_capacity_info(roster, additional_students)

        waitlist_info = None
        waitlist_total = 0
        if include_waitlist:
            waitlist = await self._waitlist(db, roster_id)
            waitlist_total = len(waitlist)
            waitlist_info = WaitlistInfo(
                total=waitlist_total,
                students=[
                    WaitlistEntry(
                        student_id=str(student.id),
                        student_name=student.full_name,
                        email=student.email,
                        position=position,
                        enrolled_at=member.enrolled_at,
                    )
                    for position, (member, student) in enumerate(waitlist, start=1)
                ],
            )

        warnings, recommendations = build_capacity_advice(info, waitlist_total, settings.ROSTER_NEARLY_FULL_RATIO)
        return CapacityStatus(
            capacity_info=info,
            waitlist_info=waitlist_info,
            warnings=warnings,
            recommendations=recommendations,
        )

    # ==================== ENROLLMENT ====================

    def _require_provider(self, user: User, action: str) -> None:
        if not has_minimum_role(user.role, UserRole.AP):
            raise InsufficientRoleError(f"Insufficient permissions to {action}", UserRole.AP.value)

    async def _enroll_one(
        self,
        db: AsyncSession,
        roster: StudentRoster,
        student_id: str,
        enrolled_by: User,
        force: bool,
        allow_waitlist: bool,
        notes: Optional[str],
    ) -> RosterEnrollmentResult:
        student = await db.get(StudentProfile, student_id)
        if not student:
            raise StudentNotFoundError(student_id)

        existing = await db.execute(
            select(StudentRosterMember).where(
                and_(
                    StudentRosterMember.roster_id == roster.id,
                    StudentRosterMember.student_id == student_id,
                )
            )
        )
        member = existing.scalar_one_or_none()
        if member and member.enrollment_status != MemberStatus.WITHDRAWN:
            raise AlreadyEnrolledError(student_id, roster.id)

        info = compute_capacity_info(roster, 1)
        if info.can_enroll or force:
            status = MemberStatus.ENROLLED
        elif allow_waitlist:
            status = MemberStatus.WAITLISTED
        else:
            raise CapacityExceededError(info.max_capacity, info.current_enrollment)

        now = datetime.utcnow()
        if member is None:
            member = StudentRosterMember(roster_id=roster.id, student_id=student_id)
            db.add(member)
        member.enrollment_status = status
        member.enrolled_at = now
        member.enrolled_by = str(enrolled_by.id)
        member.withdrawn_at = None
        member.notes = notes

        if status == MemberStatus.ENROLLED:
            roster.current_enrollment = (roster.current_enrollment or 0) + 1
            roster.updated_at = now
            notify(
                db,
                title="Enrollment Confirmed",
                message=f"You have been successfully enrolled in {roster.roster_name}.",
                student_id=student_id,
                notification_type="success",
                category="enrollment",
            )
        else:
            notify(
                db,
                title="Added to Waitlist",
                message=f"{roster.roster_name} is full. You have been added to the waitlist.",
                student_id=student_id,
                notification_type="info",
                category="enrollment",
            )

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise AlreadyEnrolledError(student_id, roster.id)
        await db.refresh(member)

        position = None
        if status == MemberStatus.WAITLISTED:
            position = await self.get_waitlist_position(db, str(roster.id), student_id)

        logger.log_domain_event(
            "RosterMember", status.value, str(member.id),
            roster_id=str(roster.id), student_id=student_id, forced=force and not info.can_enroll,
        )

        message = (
            f"Student enrolled in {roster.roster_name}"
            if status == MemberStatus.ENROLLED
            else f"Roster is full; student added to waitlist at position {position}"
        )
        return RosterEnrollmentResult(
            success=True,
            student_id=student_id,
            status=status,
            member_id=str(member.id),
            waitlist_position=position,
            message=message,
        )

    async def enroll_student(
        self,
        db: AsyncSession,
        roster_id: str,
        student_id: str,
        enrolled_by: User,
        force: bool = False,
        allow_waitlist: bool = True,
        notes: Optional[str] = None,
    ) -> RosterEnrollmentResult:
        """
        Enroll one student.

        Full rosters waitlist the student when ``allow_waitlist`` and raise
        CapacityExceededError otherwise. ``force`` enrolls past capacity.
        """
        self._require_provider(enrolled_by, "enroll students")
        roster = await self.get_roster(db, roster_id)
        if roster.status != RosterStatus.ACTIVE:
            raise InvalidStateTransitionError(
                f"Roster is {roster.status.value.lower()} and not accepting enrollments", roster.status.value
            )
        return await self._enroll_one(db, roster, student_id, enrolled_by, force, allow_waitlist, notes)

    async def enroll_multiple_students(
        self,
        db: AsyncSession,
        roster_id: str,
        student_ids: List[str],
        enrolled_by: User,
        force: bool = False,
        allow_waitlist: bool = True,
        continue_on_error: bool = True,
    ) -> BatchEnrollmentResult:
        """Enroll students one by one; failures are collected per student"""
        self._require_provider(enrolled_by, "enroll students")
        roster = await self.get_roster(db, roster_id)
        if roster.status != RosterStatus.ACTIVE:
            raise InvalidStateTransitionError(
                f"Roster is {roster.status.value.lower()} and not accepting enrollments", roster.status.value
            )

        summary = BatchEnrollmentSummary()
        for student_id in student_ids:
            try:
                result = await self._enroll_one(db, roster, student_id, enrolled_by, force, allow_waitlist, None)
            except TrainCRMError as e:
                summary.failed.append(FailedEnrollment(student_id=student_id, error=e.message, code=e.code))
                if not continue_on_error:
                    break
                continue

            if result.status == MemberStatus.ENROLLED:
                summary.enrolled += 1
            else:
                summary.waitlisted += 1

        successful = summary.enrolled + summary.waitlisted
        logger.info(
            f"[Roster] Batch enrollment into {roster_id}: {summary.enrolled} enrolled, "
            f"{summary.waitlisted} waitlisted, {len(summary.failed)} failed"
        )
        return BatchEnrollmentResult(
            success=len(summary.failed) == 0,
            total_requested=len(student_ids),
            successful_enrollments=successful,
            failed_enrollments=len(summary.failed),
            summary=summary,
        )

    async def list_members(
        self, db: AsyncSession, roster_id: str, status: Optional[MemberStatus] = None
    ) -> List[StudentRosterMember]:
        await self.get_roster(db, roster_id)
        query = select(StudentRosterMember).where(StudentRosterMember.roster_id == roster_id)
        if status:
            query = query.where(StudentRosterMember.enrollment_status == status)
        result = await db.execute(query.order_by(StudentRosterMember.enrolled_at))
        return list(result.scalars().all())

    # ==================== WAITLIST ====================

    async def promote_from_waitlist(
        self,
        db: AsyncSession,
        roster_id: str,
        promoted_by: User,
        max_promotions: int = 1,
        specific_student_id: Optional[str] = None,
    ) -> PromotionResult:
        """
        Move waitlisted students into open places, oldest first.

        At most ``min(max_promotions, available_spots)`` students move.
        ``specific_student_id`` promotes that one student regardless of position.
        """
        self._require_provider(promoted_by, "promote students")
        roster = await self.get_roster(db, roster_id)
        info = compute_capacity_info(roster)
        waitlist = await self._waitlist(db, roster_id)

        if info.available_spots is not None and info.available_spots <= 0:
            return PromotionResult(
                success=False,
                remaining_waitlist=len(waitlist),
                error="No available capacity for promotion",
            )

        positioned = list(enumerate(waitlist, start=1))
        if specific_student_id:
            positioned = [p for p in positioned if str(p[1][0].student_id) == str(specific_student_id)]
            if not positioned:
                return PromotionResult(
                    success=False,
                    remaining_waitlist=len(waitlist),
                    error="Student is not on the waitlist",
                )

        limit = max_promotions if info.available_spots is None else min(max_promotions, info.available_spots)
        now = datetime.utcnow()
        promoted: List[PromotedStudent] = []

        for position, (member, student) in positioned[:limit]:
            member.enrollment_status = MemberStatus.ENROLLED
            member.promoted_at = now
            roster.current_enrollment = (roster.current_enrollment or 0) + 1
            notify(
                db,
                title="Promoted from Waitlist",
                message=f"A place opened up and you are now enrolled in {roster.roster_name}.",
                student_id=str(student.id),
                notification_type="success",
                category="enrollment",
                priority="high",
            )
            promoted.append(PromotedStudent(
                student_id=str(student.id),
                student_name=student.full_name,
                previous_position=position,
            ))

        roster.updated_at = now
        await db.commit()

        logger.log_domain_event("Roster", "waitlist_promoted", roster_id, promoted_count=len(promoted))
        return PromotionResult(
            success=True,
            promoted_count=len(promoted),
            promoted_students=promoted,
            remaining_waitlist=len(waitlist) - len(promoted),
        )

    async def withdraw_student(
        self,
        db: AsyncSession,
        roster_id: str,
        student_id: str,
        withdrawn_by: User,
        auto_promote: Optional[bool] = None,
    ) -> WithdrawResult:
        """Withdraw a member; an enrolled withdrawal frees a place and may promote the next in line"""
        self._require_provider(withdrawn_by, "withdraw students")
        roster = await self.get_roster(db, roster_id)

        result = await db.execute(
            select(StudentRosterMember).where(
                and_(
                    StudentRosterMember.roster_id == roster_id,
                    StudentRosterMember.student_id == student_id,
                )
            )
        )
        member = result.scalar_one_or_none()
        if not member or member.enrollment_status == MemberStatus.WITHDRAWN:
            raise ResourceNotFoundError("Roster member", student_id)

        previous = member.enrollment_status
        member.enrollment_status = MemberStatus.WITHDRAWN
        member.withdrawn_at = datetime.utcnow()
        if previous == MemberStatus.ENROLLED:
            roster.current_enrollment = max(0, (roster.current_enrollment or 0) - 1)
        await db.commit()

        promoted = None
        if auto_promote is None:
            auto_promote = settings.ROSTER_AUTO_PROMOTE_ON_WITHDRAW
        if previous == MemberStatus.ENROLLED and auto_promote and await self._waitlist(db, roster_id):
            promoted = await self.promote_from_waitlist(db, roster_id, withdrawn_by, max_promotions=1)

        return WithdrawResult(success=True, student_id=student_id, previous_status=previous, promoted=promoted)

    # ==================== EXPORT ====================

    async def export_roster_csv(self, db: AsyncSession, roster_id: str) -> str:
        await self.get_roster(db, roster_id)
        result = await db.execute(
            select(StudentRosterMember, StudentProfile)
            .join(StudentProfile, StudentProfile.id == StudentRosterMember.student_id)
            .where(StudentRosterMember.roster_id == roster_id)
            .order_by(StudentProfile.last_name, StudentProfile.first_name)
        )

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_HEADER)
        for member, student in result.all():
            writer.writerow([
                student.first_name,
                student.last_name,
                student.email,
                student.phone or "",
                student.organization or "",
                member.enrollment_status.value,
                member.enrolled_at.isoformat(),
            ])
        return buffer.getvalue()


roster_service = RosterService()
