"""
Instructor scheduling models

- UserAvailability: recurring weekly slots (day_of_week 0=Sunday .. 6=Saturday)
- AvailabilityException: one-off changes for a date (leave, sickness)
- AvailabilityBooking: committed time on a date
"""

from sqlalchemy import Column, String, Boolean, DateTime, Date, Time, Integer, Text, ForeignKey, Enum as SQLEnum, Index
from datetime import datetime
import enum

from traincrm.core.database import Base
from traincrm.core.types import GUID, generate_uuid


class AvailabilityType(str, enum.Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OUT_OF_OFFICE = "out_of_office"
    TENTATIVE = "tentative"


class BookingType(str, enum.Enum):
    TRAINING_SESSION = "training_session"
    MEETING = "meeting"
    COURSE_INSTRUCTION = "course_instruction"
    ADMINISTRATIVE = "administrative"
    PERSONAL = "personal"


class BookingStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class UserAvailability(Base):
    __tablename__ = "user_availability"

    __table_args__ = (
        Index('ix_user_availability_user_day', 'user_id', 'day_of_week'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    availability_type = Column(SQLEnum(AvailabilityType), default=AvailabilityType.AVAILABLE, nullable=False)
    is_recurring = Column(Boolean, default=True)
    effective_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<UserAvailability {self.user_id} day={self.day_of_week} {self.start_time}-{self.end_time}>"


class AvailabilityException(Base):
    __tablename__ = "availability_exceptions"

    __table_args__ = (
        Index('ix_availability_exceptions_user_date', 'user_id', 'exception_date'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    exception_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)  # both null = all day
    end_time = Column(Time, nullable=True)
    availability_type = Column(SQLEnum(AvailabilityType), default=AvailabilityType.OUT_OF_OFFICE, nullable=False)
    reason = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_all_day(self) -> bool:
        return self.start_time is None or self.end_time is None


class AvailabilityBooking(Base):
    __tablename__ = "availability_bookings"

    __table_args__ = (
        Index('ix_availability_bookings_user_date', 'user_id', 'booking_date'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    booking_type = Column(SQLEnum(BookingType), default=BookingType.MEETING, nullable=False)
    status = Column(SQLEnum(BookingStatus), default=BookingStatus.SCHEDULED, nullable=False)
    training_session_id = Column(GUID, ForeignKey("training_sessions.id", ondelete="SET NULL"), nullable=True)

    created_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<AvailabilityBooking {self.title} {self.booking_date} {self.start_time}-{self.end_time}>"
