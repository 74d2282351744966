"""
Scheduling Schemas - availability, exceptions, bookings and conflict results
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List
from datetime import date, time, datetime

from traincrm.models.scheduling import AvailabilityType, BookingType, BookingStatus


class AvailabilityCreate(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    start_time: time
    end_time: time
    availability_type: AvailabilityType = AvailabilityType.AVAILABLE
    is_recurring: bool = True
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AvailabilityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    day_of_week: int
    start_time: time
    end_time: time
    availability_type: AvailabilityType
    is_recurring: bool
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None


class ExceptionCreate(BaseModel):
    exception_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    availability_type: AvailabilityType = AvailabilityType.OUT_OF_OFFICE
    reason: Optional[str] = Field(None, max_length=255)

    @model_validator(mode='after')
    def check_times(self):
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("Provide both start_time and end_time, or neither for an all-day exception")
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ExceptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    exception_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    availability_type: AvailabilityType
    reason: Optional[str] = None


class BookingCreate(BaseModel):
    booking_date: date
    start_time: time
    end_time: time
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    booking_type: BookingType = BookingType.MEETING
    training_session_id: Optional[str] = None

    @model_validator(mode='after')
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    booking_date: date
    start_time: time
    end_time: time
    title: str
    description: Optional[str] = None
    booking_type: BookingType
    status: BookingStatus
    training_session_id: Optional[str] = None
    created_at: datetime


class ConflictCheckRequest(BaseModel):
    user_id: Optional[str] = None
    booking_date: date
    start_time: time
    end_time: time
    exclude_booking_id: Optional[str] = None


class SchedulingConflict(BaseModel):
    type: str  # availability, booking, exception
    message: str
    severity: str = "high"
    conflicting_item_id: Optional[str] = None


class TimeSlot(BaseModel):
    start_time: time
    end_time: time
    available: bool = True
    conflict_reason: Optional[str] = None


class ConflictResult(BaseModel):
    has_conflicts: bool
    conflicts: List[SchedulingConflict] = []
    suggested_times: List[TimeSlot] = []
