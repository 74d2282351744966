"""
Roster Models - student profiles grouped into capacity-limited rosters

StudentRoster.current_enrollment counts members with status ``enrolled``;
waitlisted and withdrawn members do not take a place.
"""

from sqlalchemy import (
    Column, String, DateTime, Integer, Text, ForeignKey,
    Enum as SQLEnum, UniqueConstraint, Index,
)
from datetime import datetime
import enum

from traincrm.core.database import Base
from traincrm.core.types import GUID, generate_uuid


class RosterStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


class MemberStatus(str, enum.Enum):
    ENROLLED = "enrolled"
    WAITLISTED = "waitlisted"
    WITHDRAWN = "withdrawn"


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(30), nullable=True)
    organization = Column(String(255), nullable=True)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<StudentProfile {self.email}>"


class StudentRoster(Base):
    __tablename__ = "rosters"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    roster_name = Column(String(255), nullable=False)
    course_id = Column(GUID, ForeignKey("courses.id"), nullable=True)
    instructor_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    location_id = Column(GUID, ForeignKey("locations.id"), nullable=True)
    training_session_id = Column(GUID, ForeignKey("training_sessions.id", ondelete="SET NULL"), nullable=True)

    max_capacity = Column(Integer, nullable=True)  # null = unlimited
    current_enrollment = Column(Integer, default=0, nullable=False)
    status = Column(SQLEnum(RosterStatus), default=RosterStatus.ACTIVE, nullable=False)
    notes = Column(Text, nullable=True)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<StudentRoster {self.roster_name} {self.current_enrollment}/{self.max_capacity}>"


class StudentRosterMember(Base):
    __tablename__ = "student_roster_members"

    __table_args__ = (
        UniqueConstraint('roster_id', 'student_id', name='uq_roster_member_student'),
        Index('ix_roster_members_status', 'roster_id', 'enrollment_status'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    roster_id = Column(GUID, ForeignKey("rosters.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(GUID, ForeignKey("student_profiles.id", ondelete="CASCADE"), nullable=False)
    enrollment_status = Column(SQLEnum(MemberStatus), default=MemberStatus.ENROLLED, nullable=False)
    enrolled_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    enrolled_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    promoted_at = Column(DateTime, nullable=True)
    withdrawn_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<StudentRosterMember {self.student_id} {self.enrollment_status}>"
