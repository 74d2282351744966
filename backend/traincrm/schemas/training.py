"""
Training Schemas - courses, locations, instructors, sessions and enrollments
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List
from datetime import date, time, datetime

from traincrm.models.training import SessionStatus, AttendanceStatus, CompletionStatus
from traincrm.schemas import reject_null


# ============== Courses / Locations ==============

class CourseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = None
    duration_hours: Optional[float] = Field(None, gt=0)
    certificate_validity_years: Optional[int] = Field(None, ge=1, le=10)

    @field_validator('code')
    @classmethod
    def uppercase_code(cls, v):
        return v.upper().strip()


class CourseUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    duration_hours: Optional[float] = Field(None, gt=0)
    certificate_validity_years: Optional[int] = Field(None, ge=1, le=10)
    is_active: Optional[bool] = None

    @field_validator("name", "is_active")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: str
    description: Optional[str] = None
    duration_hours: Optional[float] = None
    certificate_validity_years: Optional[int] = None
    is_active: bool


class LocationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)


class LocationUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

    @field_validator("name", "is_active")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class LocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    capacity: Optional[int] = None
    is_active: bool


class InstructorProfileUpsert(BaseModel):
    specializations: List[str] = []
    bio: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    is_active: bool = True


class InstructorProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    specializations: List[str] = []
    bio: Optional[str] = None
    hourly_rate: Optional[float] = None
    is_active: bool


# ============== Sessions ==============

class SessionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    course_id: Optional[str] = None
    instructor_id: Optional[str] = None
    location_id: Optional[str] = None
    session_date: date
    start_time: time
    end_time: time
    max_capacity: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None
    force_schedule: bool = Field(False, description="Book the instructor even if the slot conflicts")

    @model_validator(mode='after')
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SessionUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    location_id: Optional[str] = None
    max_capacity: Optional[int] = Field(None, ge=1)
    status: Optional[SessionStatus] = None
    notes: Optional[str] = None

    @field_validator("title", "status")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    course_id: Optional[str] = None
    instructor_id: Optional[str] = None
    location_id: Optional[str] = None
    session_date: date
    start_time: time
    end_time: time
    max_capacity: Optional[int] = None
    status: SessionStatus
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


# ============== Enrollment ==============

class EnrollmentRequest(BaseModel):
    student_id: str


class EnrollmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    student_id: str
    enrolled_by: Optional[str] = None
    enrollment_date: datetime
    attendance_status: AttendanceStatus
    completion_status: CompletionStatus
    completion_date: Optional[datetime] = None
    score: Optional[float] = None


class AttendanceUpdate(BaseModel):
    attendance_status: AttendanceStatus


class CompletionUpdate(BaseModel):
    completion_status: CompletionStatus
    score: Optional[float] = Field(None, ge=0, le=100)


class CapacityCheck(BaseModel):
    session_id: str
    max_capacity: Optional[int] = None
    current_enrollment: int
    available_spots: Optional[int] = None
    can_enroll: bool


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]
    total: int
    page: int
    page_size: int


class SessionCompletion(BaseModel):
    session_id: str
    completion_rate: float
