"""
Training Models - courses, locations, scheduled sessions and session enrollments
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Time, Integer, Float, Text,
    ForeignKey, Enum as SQLEnum, UniqueConstraint, Index,
)
from datetime import datetime
import enum

from traincrm.core.database import Base
from traincrm.core.types import GUID, generate_uuid, JSONType


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AttendanceStatus(str, enum.Enum):
    REGISTERED = "REGISTERED"
    ATTENDED = "ATTENDED"
    ABSENT = "ABSENT"
    EXCUSED = "EXCUSED"


class CompletionStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Course(Base):
    __tablename__ = "courses"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    duration_hours = Column(Float, nullable=True)
    certificate_validity_years = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Course {self.code}>"


class Location(Base):
    __tablename__ = "locations"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    capacity = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Location {self.name}>"


class InstructorProfile(Base):
    __tablename__ = "instructor_profiles"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    specializations = Column(JSONType, default=list)
    bio = Column(Text, nullable=True)
    hourly_rate = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class TrainingSession(Base):
    __tablename__ = "training_sessions"

    __table_args__ = (
        Index('ix_training_sessions_date', 'session_date'),
        Index('ix_training_sessions_instructor', 'instructor_id'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    course_id = Column(GUID, ForeignKey("courses.id"), nullable=True)
    instructor_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    location_id = Column(GUID, ForeignKey("locations.id"), nullable=True)

    session_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    max_capacity = Column(Integer, nullable=True)  # null = unlimited
    status = Column(SQLEnum(SessionStatus), default=SessionStatus.SCHEDULED, nullable=False)
    notes = Column(Text, nullable=True)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<TrainingSession {self.title} {self.session_date}>"


class SessionEnrollment(Base):
    __tablename__ = "session_enrollments"

    __table_args__ = (
        UniqueConstraint('session_id', 'student_id', name='uq_session_enrollment_student'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    session_id = Column(GUID, ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    enrolled_by = Column(GUID, ForeignKey("users.id"), nullable=True)

    enrollment_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    attendance_status = Column(SQLEnum(AttendanceStatus), default=AttendanceStatus.REGISTERED, nullable=False)
    completion_status = Column(SQLEnum(CompletionStatus), default=CompletionStatus.NOT_STARTED, nullable=False)
    completion_date = Column(DateTime, nullable=True)
    score = Column(Float, nullable=True)

    def __repr__(self):
        return f"<SessionEnrollment {self.student_id} in {self.session_id}>"
