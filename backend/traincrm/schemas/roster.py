"""
Roster Schemas - student profiles, rosters, capacity and enrollment results
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime

from traincrm.models.roster import RosterStatus, MemberStatus
from traincrm.schemas import reject_null


# ============== Student profiles ==============

class StudentProfileCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)
    organization: Optional[str] = Field(None, max_length=255)


class StudentProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    organization: Optional[str] = None
    created_at: datetime


# ============== Rosters ==============

class RosterCreate(BaseModel):
    roster_name: str = Field(..., min_length=1, max_length=255)
    course_id: Optional[str] = None
    instructor_id: Optional[str] = None
    location_id: Optional[str] = None
    training_session_id: Optional[str] = None
    max_capacity: Optional[int] = Field(None, ge=1, description="Leave empty for unlimited")
    notes: Optional[str] = None


class RosterUpdate(BaseModel):
    roster_name: Optional[str] = Field(None, max_length=255)
    max_capacity: Optional[int] = Field(None, ge=1)
    status: Optional[RosterStatus] = None
    notes: Optional[str] = None

    @field_validator("roster_name", "status")
    @classmethod
    def not_null(cls, v):
        return reject_null(v)


class RosterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    roster_name: str
    course_id: Optional[str] = None
    instructor_id: Optional[str] = None
    location_id: Optional[str] = None
    training_session_id: Optional[str] = None
    max_capacity: Optional[int] = None
    current_enrollment: int
    status: RosterStatus
    notes: Optional[str] = None
    created_at: datetime


class RosterMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    roster_id: str
    student_id: str
    enrollment_status: MemberStatus
    enrolled_at: datetime
    promoted_at: Optional[datetime] = None
    withdrawn_at: Optional[datetime] = None
    notes: Optional[str] = None


# ============== Capacity ==============

class CapacityInfo(BaseModel):
    roster_id: str
    roster_name: str
    max_capacity: Optional[int] = None
    current_enrollment: int
    available_spots: Optional[int] = None
    can_enroll: bool
    requested_students: int = 0


class WaitlistEntry(BaseModel):
    student_id: str
    student_name: str
    email: str
    position: int
    enrolled_at: datetime


class WaitlistInfo(BaseModel):
    total: int
    students: List[WaitlistEntry] = []


class CapacityStatus(BaseModel):
    capacity_info: CapacityInfo
    waitlist_info: Optional[WaitlistInfo] = None
    warnings: List[str] = []
    recommendations: List[str] = []


# ============== Enrollment ==============

class RosterEnrollRequest(BaseModel):
    student_id: str
    force: bool = False
    allow_waitlist: bool = True
    notes: Optional[str] = None


class BatchEnrollRequest(BaseModel):
    student_ids: List[str] = Field(..., min_length=1)
    force: bool = False
    allow_waitlist: bool = True
    continue_on_error: bool = True


class RosterEnrollmentResult(BaseModel):
    success: bool
    student_id: str
    status: Optional[MemberStatus] = None
    member_id: Optional[str] = None
    waitlist_position: Optional[int] = None
    message: str


class FailedEnrollment(BaseModel):
    student_id: str
    error: str
    code: Optional[str] = None


class BatchEnrollmentSummary(BaseModel):
    enrolled: int = 0
    waitlisted: int = 0
    failed: List[FailedEnrollment] = []


class BatchEnrollmentResult(BaseModel):
    success: bool
    total_requested: int
    successful_enrollments: int
    failed_enrollments: int
    summary: BatchEnrollmentSummary


class PromoteRequest(BaseModel):
    max_promotions: int = Field(1, ge=1, le=100)
    specific_student_id: Optional[str] = None


class PromotedStudent(BaseModel):
    student_id: str
    student_name: str
    previous_position: int


class PromotionResult(BaseModel):
    success: bool
    promoted_count: int = 0
    promoted_students: List[PromotedStudent] = []
    remaining_waitlist: int = 0
    error: Optional[str] = None


class WithdrawResult(BaseModel):
    success: bool
    student_id: str
    previous_status: MemberStatus
    promoted: Optional[PromotionResult] = None


class StudentProfileListResponse(BaseModel):
    students: List[StudentProfileResponse]
    total: int
    page: int
    page_size: int


class RosterListResponse(BaseModel):
    rosters: List[RosterResponse]
    total: int
    page: int
    page_size: int
